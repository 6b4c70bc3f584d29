"""Typed settings loader for guildrelay."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Tuple
import json
import os

from guildrelay.relay.layout import FORM_LAYOUT_PRESETS, NAME_LINE_POLICIES


_MISSING = object()
_VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
_VALID_ARCHIVE_MINUTES = (60, 1440, 4320, 10080)
_VALID_THREAD_FAILURE_POLICIES = ("report", "fatal")

Caster = Callable[[Any], Any]


class SettingsError(ValueError):
    """Raised when settings cannot be loaded or validated."""


@dataclass(frozen=True)
class DiscordSettings:
    public_channel: str
    bot_token_env: str = "DISCORD_BOT_TOKEN"
    self_id: Optional[int] = None
    source_channel: str = "applications"
    form_bot_name: str = "Appy"

    def __post_init__(self) -> None:
        public_channel = self.public_channel.strip()
        if not public_channel:
            raise SettingsError("discord.public_channel cannot be empty.")

        bot_token_env = self.bot_token_env.strip()
        if not bot_token_env:
            raise SettingsError("discord.bot_token_env cannot be empty.")

        source_channel = self.source_channel.strip()
        if not source_channel:
            raise SettingsError("discord.source_channel cannot be empty.")

        form_bot_name = self.form_bot_name.strip()
        if not form_bot_name:
            raise SettingsError("discord.form_bot_name cannot be empty.")

        if self.self_id is not None and self.self_id <= 0:
            raise SettingsError("discord.self_id must be a positive integer.")

        object.__setattr__(self, "public_channel", public_channel)
        object.__setattr__(self, "bot_token_env", bot_token_env)
        object.__setattr__(self, "source_channel", source_channel)
        object.__setattr__(self, "form_bot_name", form_bot_name)


@dataclass(frozen=True)
class FormSettings:
    """Which upstream form layout is in effect, with optional per-field overrides."""

    layout: str = "heading-v2"
    delimiter: Optional[str] = None
    redacted_index: Optional[int] = None
    name_section_index: Optional[int] = None
    name_line: Optional[str] = None

    def __post_init__(self) -> None:
        layout = self.layout.strip().lower()
        if layout not in FORM_LAYOUT_PRESETS:
            raise SettingsError(
                "form.layout must be one of: " + ", ".join(sorted(FORM_LAYOUT_PRESETS))
            )

        if self.delimiter is not None and self.delimiter == "":
            raise SettingsError("form.delimiter cannot be empty.")

        if self.redacted_index is not None and self.redacted_index < 0:
            raise SettingsError("form.redacted_index must be >= 0.")

        if self.name_section_index is not None and self.name_section_index < 0:
            raise SettingsError("form.name_section_index must be >= 0.")

        name_line = self.name_line.strip().lower() if self.name_line else None
        if name_line is not None and name_line not in NAME_LINE_POLICIES:
            raise SettingsError(
                "form.name_line must be one of: " + ", ".join(NAME_LINE_POLICIES)
            )

        object.__setattr__(self, "layout", layout)
        object.__setattr__(self, "name_line", name_line)


@dataclass(frozen=True)
class RelaySettings:
    thread_name_max_length: int = 15
    auto_archive_minutes: int = 1440
    thread_failure_policy: str = "report"
    request_timeout_seconds: float = 5.0
    max_attempts: int = 3
    retry_backoff_seconds: float = 0.5

    def __post_init__(self) -> None:
        if self.thread_name_max_length <= 0:
            raise SettingsError("relay.thread_name_max_length must be > 0.")

        if self.auto_archive_minutes not in _VALID_ARCHIVE_MINUTES:
            raise SettingsError(
                "relay.auto_archive_minutes must be one of: "
                + ", ".join(str(value) for value in _VALID_ARCHIVE_MINUTES)
            )

        policy = self.thread_failure_policy.strip().lower()
        if policy not in _VALID_THREAD_FAILURE_POLICIES:
            raise SettingsError("relay.thread_failure_policy must be 'report' or 'fatal'.")

        if self.request_timeout_seconds <= 0:
            raise SettingsError("relay.request_timeout_seconds must be > 0.")

        if self.max_attempts <= 0:
            raise SettingsError("relay.max_attempts must be > 0.")

        if self.retry_backoff_seconds < 0:
            raise SettingsError("relay.retry_backoff_seconds must be >= 0.")

        object.__setattr__(self, "thread_failure_policy", policy)


@dataclass(frozen=True)
class TokenSettings:
    enabled: bool = False
    region: str = "eu"
    client_id_env: str = "WOWAH_CLIENT_ID"
    client_secret_env: str = "WOWAH_CLIENT_SECRET"
    guild_name: Optional[str] = None
    channel_name: str = "wow-token"
    poll_interval_seconds: float = 30.0
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        region = self.region.strip().lower()
        if not region:
            raise SettingsError("token.region cannot be empty.")

        client_id_env = self.client_id_env.strip()
        if not client_id_env:
            raise SettingsError("token.client_id_env cannot be empty.")

        client_secret_env = self.client_secret_env.strip()
        if not client_secret_env:
            raise SettingsError("token.client_secret_env cannot be empty.")

        channel_name = self.channel_name.strip()
        if not channel_name:
            raise SettingsError("token.channel_name cannot be empty.")

        guild_name = self.guild_name.strip() if self.guild_name else None
        if self.enabled and not guild_name:
            raise SettingsError("token.guild_name is required when token.enabled is true.")

        if self.poll_interval_seconds <= 0:
            raise SettingsError("token.poll_interval_seconds must be > 0.")

        if self.timeout_seconds <= 0:
            raise SettingsError("token.timeout_seconds must be > 0.")

        object.__setattr__(self, "region", region)
        object.__setattr__(self, "client_id_env", client_id_env)
        object.__setattr__(self, "client_secret_env", client_secret_env)
        object.__setattr__(self, "guild_name", guild_name)
        object.__setattr__(self, "channel_name", channel_name)


@dataclass(frozen=True)
class RuntimeSettings:
    log_level: str = "INFO"
    dry_run: bool = False

    def __post_init__(self) -> None:
        log_level = self.log_level.strip().upper()
        if log_level not in _VALID_LOG_LEVELS:
            raise SettingsError(
                "runtime.log_level must be one of: " + ", ".join(sorted(_VALID_LOG_LEVELS))
            )

        object.__setattr__(self, "log_level", log_level)


@dataclass(frozen=True)
class AppSettings:
    discord: DiscordSettings
    form: FormSettings
    relay: RelaySettings
    token: TokenSettings
    runtime: RuntimeSettings


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppSettings:
    """Load validated settings from JSON config and environment overrides."""

    source = _SettingsSource(
        _load_config(config_path),
        dict(environ) if environ is not None else dict(os.environ),
    )
    read = source.read

    discord = DiscordSettings(
        public_channel=read("discord", "public_channel", _as_str),
        bot_token_env=read("discord", "bot_token_env", _as_str, "DISCORD_BOT_TOKEN"),
        self_id=read("discord", "self_id", _as_optional_int, None),
        source_channel=read("discord", "source_channel", _as_str, "applications"),
        form_bot_name=read("discord", "form_bot_name", _as_str, "Appy"),
    )

    form = FormSettings(
        layout=read("form", "layout", _as_str, "heading-v2"),
        delimiter=read("form", "delimiter", _as_delimiter, None),
        redacted_index=read("form", "redacted_index", _as_optional_int, None),
        name_section_index=read("form", "name_section_index", _as_optional_int, None),
        name_line=read("form", "name_line", _as_optional_str, None),
    )

    relay = RelaySettings(
        thread_name_max_length=read("relay", "thread_name_max_length", _as_int, 15),
        auto_archive_minutes=read("relay", "auto_archive_minutes", _as_int, 1440),
        thread_failure_policy=read("relay", "thread_failure_policy", _as_str, "report"),
        request_timeout_seconds=read("relay", "request_timeout_seconds", _as_float, 5.0),
        max_attempts=read("relay", "max_attempts", _as_int, 3),
        retry_backoff_seconds=read("relay", "retry_backoff_seconds", _as_float, 0.5),
    )

    token = TokenSettings(
        enabled=read("token", "enabled", _as_bool, False),
        region=read("token", "region", _as_str, "eu"),
        client_id_env=read("token", "client_id_env", _as_str, "WOWAH_CLIENT_ID"),
        client_secret_env=read("token", "client_secret_env", _as_str, "WOWAH_CLIENT_SECRET"),
        guild_name=read("token", "guild_name", _as_optional_str, None),
        channel_name=read("token", "channel_name", _as_str, "wow-token"),
        poll_interval_seconds=read("token", "poll_interval_seconds", _as_float, 30.0),
        timeout_seconds=read("token", "timeout_seconds", _as_float, 10.0),
    )

    runtime = RuntimeSettings(
        log_level=read("runtime", "log_level", _as_str, "INFO"),
        dry_run=read("runtime", "dry_run", _as_bool, False),
    )

    return AppSettings(
        discord=discord,
        form=form,
        relay=relay,
        token=token,
        runtime=runtime,
    )


def resolve_env_secret(env_name: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Resolve a secret value from environment by indirection key."""

    env = environ if environ is not None else os.environ
    value = env.get(env_name)
    if value is None:
        raise SettingsError(f"Required secret environment variable '{env_name}' is not set.")

    if not value.strip():
        raise SettingsError(f"Secret environment variable '{env_name}' cannot be empty.")

    return value


def settings_summary(settings: AppSettings) -> dict:
    """Render redacted settings for diagnostics."""

    return {
        "discord": {
            "bot_token_env": settings.discord.bot_token_env,
            "self_id": settings.discord.self_id,
            "source_channel": settings.discord.source_channel,
            "public_channel": settings.discord.public_channel,
            "form_bot_name": settings.discord.form_bot_name,
        },
        "form": {
            "layout": settings.form.layout,
            "delimiter": settings.form.delimiter,
            "redacted_index": settings.form.redacted_index,
            "name_section_index": settings.form.name_section_index,
            "name_line": settings.form.name_line,
        },
        "relay": {
            "thread_name_max_length": settings.relay.thread_name_max_length,
            "auto_archive_minutes": settings.relay.auto_archive_minutes,
            "thread_failure_policy": settings.relay.thread_failure_policy,
            "request_timeout_seconds": settings.relay.request_timeout_seconds,
            "max_attempts": settings.relay.max_attempts,
            "retry_backoff_seconds": settings.relay.retry_backoff_seconds,
        },
        "token": {
            "enabled": settings.token.enabled,
            "region": settings.token.region,
            "client_id_env": settings.token.client_id_env,
            "client_secret_env": settings.token.client_secret_env,
            "guild_name": settings.token.guild_name,
            "channel_name": settings.token.channel_name,
            "poll_interval_seconds": settings.token.poll_interval_seconds,
            "timeout_seconds": settings.token.timeout_seconds,
        },
        "runtime": {
            "log_level": settings.runtime.log_level,
            "dry_run": settings.runtime.dry_run,
        },
    }


def _load_config(config_path: Optional[Path]) -> Mapping[str, Any]:
    if config_path is None:
        return {}

    resolved = config_path.expanduser()
    if not resolved.is_file():
        raise SettingsError(f"Config file does not exist: {resolved}")

    try:
        loaded = json.loads(resolved.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SettingsError(f"Config file is not valid JSON: {resolved}") from exc

    if not isinstance(loaded, dict):
        raise SettingsError("Config root must be an object.")
    return loaded


class _SettingsSource:
    """``GUILDRELAY_<SECTION>_<KEY>`` environment values layered over the config file."""

    def __init__(self, config: Mapping[str, Any], environ: Mapping[str, str]) -> None:
        self._config = config
        self._environ = environ

    @staticmethod
    def env_key(section: str, key: str) -> str:
        return f"GUILDRELAY_{section}_{key}".upper()

    def _section(self, section: str) -> Mapping[str, Any]:
        values = self._config.get(section)
        if values is None:
            return {}
        if not isinstance(values, Mapping):
            raise SettingsError(f"Config section '{section}' must be an object.")
        return values

    def read(
        self,
        section: str,
        key: str,
        caster: Caster,
        default: Any = _MISSING,
    ) -> Any:
        env_key = self.env_key(section, key)
        values = self._section(section)

        # An exported but empty variable does not override the file.
        if self._environ.get(env_key):
            raw, origin = self._environ[env_key], env_key
        elif key in values:
            raw, origin = values[key], "config"
        elif default is not _MISSING:
            raw, origin = default, "default"
        else:
            raise SettingsError(
                f"Missing required setting '{section}.{key}'. "
                f"Provide it in config or via '{env_key}'."
            )

        try:
            return caster(raw)
        except SettingsError:
            raise
        except (TypeError, ValueError) as exc:
            raise SettingsError(f"Invalid value for {section}.{key} from {origin}: {raw!r}") from exc


def _optional(caster: Caster) -> Caster:
    def cast(value: Any) -> Any:
        return None if value is None else caster(value)

    return cast


def _text(*, strip: bool, required: bool) -> Caster:
    def cast(value: Any) -> Optional[str]:
        if not isinstance(value, str):
            raise SettingsError("Expected string value.")
        text = value.strip() if strip else value
        if not text and required:
            raise SettingsError("Value cannot be empty.")
        return text or None

    return cast


def _number(kind: type, accepted: Tuple[type, ...]) -> Caster:
    def cast(value: Any) -> Any:
        # bool is an int subclass; ``true`` is never a count.
        if isinstance(value, bool) or not isinstance(value, accepted + (str,)):
            raise SettingsError(f"Expected {kind.__name__} value.")
        return kind(value.strip() if isinstance(value, str) else value)

    return cast


_BOOL_WORDS = {
    "1": True, "true": True, "yes": True, "on": True,
    "0": False, "false": False, "no": False, "off": False,
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _BOOL_WORDS:
        return _BOOL_WORDS[value.strip().lower()]
    raise SettingsError("Expected boolean value.")


_as_str = _text(strip=True, required=True)
_as_optional_str = _optional(_text(strip=True, required=False))
# Delimiters may carry meaningful surrounding whitespace.
_as_delimiter = _optional(_text(strip=False, required=False))
_as_int = _number(int, (int,))
_as_optional_int = _optional(_as_int)
_as_float = _number(float, (int, float))
