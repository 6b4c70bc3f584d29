"""Runtime lifecycle wiring for guildrelay."""

from __future__ import annotations

from typing import Optional, Protocol
import asyncio
import logging
import signal

from guildrelay.config.settings import AppSettings


class RuntimeService(Protocol):
    """Small lifecycle contract used by the runtime host."""

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...


class RuntimeApp:
    """Application host with deterministic startup and shutdown ordering."""

    def __init__(
        self,
        settings: AppSettings,
        services: Optional[list[RuntimeService]] = None,
        background_tasks: Optional[list[asyncio.Task]] = None,
        stop_event: Optional[asyncio.Event] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or logging.getLogger("guildrelay.runtime")
        self._services = services or []
        self._background_tasks = background_tasks or []
        self._stop_event = stop_event or asyncio.Event()
        self._started = False
        self.exit_code = 0

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    def fail(self, exc: BaseException) -> None:
        """Request shutdown with a non-zero exit code."""
        self.logger.critical("Fatal runtime error: %s", exc)
        self.exit_code = 1
        self._stop_event.set()

    async def start(self) -> None:
        if self._started:
            return

        for service in self._services:
            await service.start()

        self._started = True

    async def stop(self) -> None:
        for task in self._background_tasks:
            if not task.done():
                task.cancel()

        if self._background_tasks:
            await asyncio.wait(
                self._background_tasks,
                timeout=5.0,
                return_when=asyncio.ALL_COMPLETED,
            )

        if not self._started:
            return

        # Stop services in reverse order
        for service in reversed(self._services):
            try:
                await service.stop()
            except Exception:
                self.logger.exception("Service shutdown failed.")

        self._started = False

    async def run(self) -> int:
        added_signals = self._install_signal_handlers(self._stop_event)

        try:
            await self.start()
            self.logger.info(
                "Runtime started: relaying '%s' -> '%s' (form_bot=%s, token_watcher=%s).",
                self.settings.discord.source_channel,
                self.settings.discord.public_channel,
                self.settings.discord.form_bot_name,
                self.settings.token.enabled,
            )
            await self._stop_event.wait()
        finally:
            self.logger.info("Runtime shutdown requested.")
            await self.stop()
            self._remove_signal_handlers(added_signals)

        return self.exit_code

    @staticmethod
    def _install_signal_handlers(stop_event: asyncio.Event) -> list[signal.Signals]:
        loop = asyncio.get_running_loop()
        added = []

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
                added.append(sig)
            except (NotImplementedError, RuntimeError):
                # Signal handlers may be unsupported on some environments.
                break

        return added

    @staticmethod
    def _remove_signal_handlers(signals_to_remove: list[signal.Signals]) -> None:
        loop = asyncio.get_running_loop()

        for sig in signals_to_remove:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                break


def configure_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


async def run_runtime(settings: AppSettings, *, once: bool = False) -> int:
    from guildrelay.runtime.factory import build_runtime

    configure_logging(settings.runtime.log_level)
    logger = logging.getLogger("guildrelay.runtime")

    app = build_runtime(settings, logger=logger)
    if once:
        app.stop_event.set()
    return await app.run()
