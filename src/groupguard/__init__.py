"""
GroupGuard - Moderation Policy Engine for QQ Group Bots

GroupGuard consumes the event stream of a OneBot-style QQ host (messages,
recalls, member joins, card changes) and decides which enforcement actions to
issue against the host's action API.

Core Components:

- **Event Pipeline**: Fixed-order rule dispatch per message (blacklist, keyword
  filter, message-type filter, spam detection, targeted recall, Q&A replies,
  card-lock reconciliation)
- **Stateful Engines**: Sliding-window spam detector, TTL-bounded recall cache,
  escalating keyword filter, ordered Q&A matcher
- **Configuration**: Global defaults with per-group overrides, persisted as a
  single JSON document on every change
- **Admin Commands**: Chat commands gated by owner / group-admin / member tiers

Usage:
    from groupguard.main import create_guard
    guard = create_guard(action_api)
    await guard.dispatch(event)
"""
