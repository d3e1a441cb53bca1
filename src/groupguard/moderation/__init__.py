"""
Moderation rules and the event pipeline for GroupGuard.

- **spam_detector.py**: Sliding-window message counter per (group, user) and
  the rule that mutes members who exceed the configured rate.

- **recall_cache.py**: TTL-bounded cache of recent messages and the anti-recall
  rule that reposts or reports withdrawn messages.

- **keyword_filter.py**: Substring keyword scan with the cumulative 4-level
  punishment ladder (delete, mute, deferred kick, blacklist).

- **message_type_filter.py**: Deletes messages carrying blocked content types.

- **qa_matcher.py**: Ordered exact/contains/regex keyword replies.

- **card_lock.py**: Restores pinned group cards (display names).

- **engagement.py**: Emoji auto-react and welcome messages.

- **event_pipeline.py**: Fixed-order dispatch of every inbound event.
"""
