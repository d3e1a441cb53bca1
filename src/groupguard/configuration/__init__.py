"""
Configuration management for GroupGuard.

This package handles application and group-level configuration:

- **app_configuration.py**: YAML loader for runtime knobs (plugin config path,
  recall cache TTL, deferred kick delay, emoji id, default owners).

- **group_settings.py**: Dataclasses for the plugin document (PluginConfig,
  GroupSettings, MsgFilter, QAEntry) and their JSON (camelCase) conversion,
  plus the single merge function that resolves group overrides over globals.

- **config_store.py**: The owning ConfigStore. All reads go through
  ``read()``/``effective_settings()``, all writes through ``mutate()``, and each
  write persists the whole document best-effort.
"""
