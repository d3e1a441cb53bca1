"""
One-shot deferred actions, decoupled from the flow that scheduled them.

The keyword filter uses this to kick a member about a second after muting
them, so the notice lands first. The scheduling caller never awaits the
action; each :class:`ScheduledAction` carries its own completion event, and
:meth:`DeferredActionScheduler.drain` lets shutdown code and tests wait for
everything still pending.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from groupguard.util.logger import get_logger

logger = get_logger("deferred_action_scheduler")


@dataclass
class ScheduledAction:
    """
    Handle for one deferred action.

    Attributes:
        name (str): Label used in logs, e.g. ``"kick 123 from 456"``.
        delay_seconds (float): Delay before the action runs.
        done (asyncio.Event): Set once the action finished, failed, or was cancelled.
        error (BaseException | None): Exception raised by the action, if any.
    """
    name: str
    delay_seconds: float
    done: asyncio.Event = field(default_factory=asyncio.Event)
    error: Optional[BaseException] = None
    task: Optional[asyncio.Task] = None

    @property
    def succeeded(self) -> bool:
        return self.done.is_set() and self.error is None and not (self.task and self.task.cancelled())


class DeferredActionScheduler:
    """
    Runs delayed coroutines as background tasks and tracks them until done.

    Finished actions are forgotten as soon as their task completes; callers
    that need the outcome keep the returned handle.
    """

    def __init__(self) -> None:
        self._tasks: Dict[asyncio.Task, ScheduledAction] = {}

    @property
    def pending(self) -> List[ScheduledAction]:
        return [action for action in self._tasks.values() if not action.done.is_set()]

    def schedule(
        self,
        name: str,
        delay_seconds: float,
        factory: Callable[[], Awaitable[object]],
    ) -> ScheduledAction:
        """
        Schedule ``factory()`` to run after ``delay_seconds`` and return its handle.

        Must be called from a running event loop. Errors raised by the action
        are logged and stored on the handle, never propagated.
        """
        scheduled = ScheduledAction(name=name, delay_seconds=delay_seconds)
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(scheduled, factory), name=f"groupguard-deferred-{name}")
        scheduled.task = task
        self._tasks[task] = scheduled
        task.add_done_callback(self._forget)
        logger.debug("[SCHEDULER] Scheduled %s in %.1fs", name, delay_seconds)
        return scheduled

    def _forget(self, task: asyncio.Task) -> None:
        self._tasks.pop(task, None)

    async def _run(self, scheduled: ScheduledAction, factory: Callable[[], Awaitable[object]]) -> None:
        try:
            if scheduled.delay_seconds > 0:
                await asyncio.sleep(scheduled.delay_seconds)
            await factory()
            logger.debug("[SCHEDULER] Executed %s", scheduled.name)
        except asyncio.CancelledError:
            logger.info("[SCHEDULER] Cancelled %s", scheduled.name)
            raise
        except Exception as exc:
            scheduled.error = exc
            logger.exception("[SCHEDULER] Deferred action %s failed", scheduled.name)
        finally:
            scheduled.done.set()

    async def drain(self) -> None:
        """Wait for every pending action to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel pending actions. In-flight actions are dropped, not rolled back."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("[SCHEDULER] Deferred action scheduler shut down (%d cancelled)", len(tasks))
