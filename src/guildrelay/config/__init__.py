"""Configuration APIs."""

from guildrelay.config.settings import (
    AppSettings,
    DiscordSettings,
    FormSettings,
    RelaySettings,
    RuntimeSettings,
    SettingsError,
    TokenSettings,
    load_settings,
    resolve_env_secret,
    settings_summary,
)

__all__ = [
    "AppSettings",
    "DiscordSettings",
    "FormSettings",
    "RelaySettings",
    "RuntimeSettings",
    "SettingsError",
    "TokenSettings",
    "load_settings",
    "resolve_env_secret",
    "settings_summary",
]
