"""Per-event dispatch between the Discord client and the application relay."""

from __future__ import annotations

from typing import Callable, Optional, Protocol
import logging

from guildrelay.relay.errors import (
    DestinationNotFoundError,
    PublishError,
    ThreadCreateError,
)
from guildrelay.relay.pipeline import InboundMessage, RelayOutcome


FatalCallback = Callable[[BaseException], None]


class Relay(Protocol):
    async def handle(self, message: InboundMessage) -> RelayOutcome:
        ...


class RelayMessageHandler:
    """Runs the relay for each message and decides which failures are fatal.

    Only ``ThreadCreateError`` under the ``fatal`` policy stops the runtime;
    every other failure is logged and the next event is processed normally.
    """

    def __init__(
        self,
        *,
        relay: Relay,
        thread_failure_policy: str = "report",
        on_fatal: Optional[FatalCallback] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if thread_failure_policy not in ("report", "fatal"):
            raise ValueError("thread_failure_policy must be 'report' or 'fatal'.")
        self._relay = relay
        self._thread_failure_policy = thread_failure_policy
        self._on_fatal = on_fatal
        self._logger = logger or logging.getLogger("guildrelay.discord.handler")

    async def handle(self, message: InboundMessage) -> Optional[RelayOutcome]:
        try:
            outcome = await self._relay.handle(message)
        except DestinationNotFoundError as exc:
            self._logger.error(
                "Configuration error relaying message_id=%s: %s",
                message.message_id,
                exc,
            )
            return None
        except PublishError as exc:
            self._logger.error(
                "Application not relayed message_id=%s: %s",
                exc.source_message_id,
                exc.__cause__ or exc,
            )
            return None
        except ThreadCreateError as exc:
            self._on_thread_failure(exc)
            return None
        except Exception:
            self._logger.exception("Relay failed message_id=%s", message.message_id)
            return None

        if outcome.relayed:
            self._logger.info(
                "Application relayed message_id=%s notice_id=%s thread=%r",
                message.message_id,
                outcome.notice_message_id,
                outcome.thread_name,
            )
        return outcome

    def _on_thread_failure(self, exc: ThreadCreateError) -> None:
        if self._thread_failure_policy == "fatal":
            self._logger.critical(
                "Thread creation failed message_id=%s notice_id=%s; stopping: %s",
                exc.source_message_id,
                exc.notice_message_id,
                exc.__cause__ or exc,
            )
            if self._on_fatal is not None:
                self._on_fatal(exc)
            return

        self._logger.error(
            "Thread creation failed message_id=%s notice_id=%s; notice kept: %s",
            exc.source_message_id,
            exc.notice_message_id,
            exc.__cause__ or exc,
        )
