"""Factory for wiring up the complete guildrelay runtime."""

from __future__ import annotations

from typing import Optional
import asyncio
import logging

from guildrelay.config.settings import AppSettings, resolve_env_secret
from guildrelay.discord.client import DiscordClientService
from guildrelay.discord.message_handler import RelayMessageHandler
from guildrelay.relay.pipeline import ApplicationRelay
from guildrelay.runtime.app import RuntimeApp
from guildrelay.tokenprice.client import BlizzardTokenClient
from guildrelay.tokenprice.watcher import TokenPriceWatcher


def build_runtime(
    settings: AppSettings,
    *,
    logger: Optional[logging.Logger] = None,
) -> RuntimeApp:
    """Create the runtime host with the Discord service and background tasks.

    Must be called from a running event loop; the token watcher task is
    scheduled immediately and waits one poll interval before its first check.
    """

    _logger = logger or logging.getLogger("guildrelay.factory")

    # Resolve every secret up front so a missing one fails before connecting.
    bot_token = resolve_env_secret(settings.discord.bot_token_env)
    token_client = None
    if settings.token.enabled:
        token_client = BlizzardTokenClient(
            client_id=resolve_env_secret(settings.token.client_id_env),
            client_secret=resolve_env_secret(settings.token.client_secret_env),
            region=settings.token.region,
            timeout_seconds=settings.token.timeout_seconds,
        )

    discord_service = DiscordClientService(bot_token=bot_token)
    relay = ApplicationRelay.from_settings(settings, gateway=discord_service.gateway)
    _logger.info(
        "Application relay configured: layout=%s delimiter=%r redacted_index=%s",
        relay.layout.version,
        relay.layout.delimiter,
        relay.layout.redacted_index,
    )

    stop_event = asyncio.Event()
    background_tasks: list[asyncio.Task] = []
    app = RuntimeApp(
        settings=settings,
        services=[discord_service],
        background_tasks=background_tasks,
        stop_event=stop_event,
        logger=_logger,
    )

    discord_service.set_message_handler(
        RelayMessageHandler(
            relay=relay,
            thread_failure_policy=settings.relay.thread_failure_policy,
            on_fatal=app.fail,
        )
    )

    if token_client is not None:
        watcher = TokenPriceWatcher(
            source=token_client,
            sender=discord_service.gateway,
            guild_name=settings.token.guild_name,
            channel_name=settings.token.channel_name,
            poll_interval_seconds=settings.token.poll_interval_seconds,
        )
        background_tasks.append(asyncio.create_task(watcher.run_forever(stop_event)))
        _logger.info(
            "Token price watcher started: guild=%s channel=%s interval=%ss",
            settings.token.guild_name,
            settings.token.channel_name,
            settings.token.poll_interval_seconds,
        )

    return app
