"""Application relay: detect, redact, republish and open a discussion thread."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol, Sequence
import logging

from guildrelay.relay.errors import (
    DestinationNotFoundError,
    PublishError,
    ThreadCreateError,
)
from guildrelay.relay.layout import (
    DEFAULT_THREAD_NAME,
    FormLayout,
    resolve_form_layout,
    truncate_thread_name,
)
from guildrelay.relay.retry import Sleeper, call_with_retry

if TYPE_CHECKING:
    from guildrelay.config.settings import AppSettings


NOTICE_TITLE = "Application received"


@dataclass(frozen=True)
class EmbedData:
    title: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class InboundMessage:
    message_id: int
    channel_id: int
    author_id: int
    author_name: str
    embeds: tuple[EmbedData, ...] = ()


class RelayGateway(Protocol):
    """Discord operations the relay depends on."""

    @property
    def bot_user_id(self) -> Optional[int]:
        ...

    def channel_name(self, channel_id: int) -> Optional[str]:
        ...

    def find_channel_id(self, name: str) -> Optional[int]:
        ...

    async def send_embed(self, channel_id: int, *, title: str, description: str) -> int:
        ...

    async def create_thread(
        self,
        channel_id: int,
        message_id: int,
        *,
        name: str,
        auto_archive_minutes: int,
    ) -> None:
        ...


@dataclass(frozen=True)
class RelayOutcome:
    relayed: bool
    reason: str
    notice_message_id: Optional[int] = None
    thread_name: Optional[str] = None
    thread_created: bool = False


def _skipped(reason: str) -> RelayOutcome:
    return RelayOutcome(relayed=False, reason=reason)


class ApplicationRelay:
    """Reposts form-bot application embeds to the public channel."""

    def __init__(
        self,
        *,
        gateway: RelayGateway,
        public_channel: str,
        layout: FormLayout,
        source_channel: str = "applications",
        form_bot_name: str = "Appy",
        self_id: Optional[int] = None,
        thread_name_max_length: int = 15,
        auto_archive_minutes: int = 1440,
        request_timeout_seconds: float = 5.0,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        dry_run: bool = False,
        sleep: Optional[Sleeper] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if thread_name_max_length <= 0:
            raise ValueError("thread_name_max_length must be a positive integer.")

        self._gateway = gateway
        self._public_channel = public_channel
        self._layout = layout
        self._source_channel = source_channel
        self._form_bot_name = form_bot_name
        self._self_id = self_id
        self._thread_name_max_length = thread_name_max_length
        self._auto_archive_minutes = auto_archive_minutes
        self._request_timeout_seconds = request_timeout_seconds
        self._max_attempts = max_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._dry_run = dry_run
        self._sleep = sleep
        self._logger = logger or logging.getLogger("guildrelay.relay")

    @classmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        *,
        gateway: RelayGateway,
        logger: Optional[logging.Logger] = None,
    ) -> "ApplicationRelay":
        return cls(
            gateway=gateway,
            public_channel=settings.discord.public_channel,
            layout=resolve_form_layout(settings.form),
            source_channel=settings.discord.source_channel,
            form_bot_name=settings.discord.form_bot_name,
            self_id=settings.discord.self_id,
            thread_name_max_length=settings.relay.thread_name_max_length,
            auto_archive_minutes=settings.relay.auto_archive_minutes,
            request_timeout_seconds=settings.relay.request_timeout_seconds,
            max_attempts=settings.relay.max_attempts,
            retry_backoff_seconds=settings.relay.retry_backoff_seconds,
            dry_run=settings.runtime.dry_run,
            logger=logger,
        )

    @property
    def layout(self) -> FormLayout:
        return self._layout

    def _relay_identity(self) -> Optional[int]:
        if self._self_id is not None:
            return self._self_id
        return self._gateway.bot_user_id

    def qualify(self, message: InboundMessage) -> Optional[str]:
        """Return the reason a message is skipped, or ``None`` if it qualifies."""

        channel_name = self._gateway.channel_name(message.channel_id)
        if channel_name is None:
            # Threads and DMs are not relay sources.
            return "unknown_channel"
        if channel_name != self._source_channel:
            return "wrong_channel"

        if message.author_id == self._relay_identity():
            return "self_authored"

        if message.author_name != self._form_bot_name:
            return "wrong_author"

        if len(message.embeds) != 1:
            self._logger.warning(
                "got %d embeds message_id=%s", len(message.embeds), message.message_id
            )
            return "unexpected_embed_count"

        return None

    def redact_description(self, description: str) -> tuple[str, list[str]]:
        sections = self._layout.split(description)
        if self._layout.redacted_index >= len(sections):
            self._logger.warning(
                "redacted_index_out_of_range layout=%s index=%s sections=%s",
                self._layout.version,
                self._layout.redacted_index,
                len(sections),
            )
        filtered = self._layout.redact(sections)
        return self._layout.join(filtered), filtered

    def thread_name(self, sections: Sequence[str]) -> str:
        name = self._layout.applicant_name(sections)
        if name is None:
            self._logger.warning(
                "applicant_name_missing layout=%s section=%s line=%s",
                self._layout.version,
                self._layout.name_section_index,
                self._layout.name_line,
            )
            name = DEFAULT_THREAD_NAME
        return truncate_thread_name(name, self._thread_name_max_length)

    async def handle(self, message: InboundMessage) -> RelayOutcome:
        skip_reason = self.qualify(message)
        if skip_reason is not None:
            self._logger.debug(
                "relay_skipped message_id=%s reason=%s", message.message_id, skip_reason
            )
            return _skipped(skip_reason)

        description, sections = self.redact_description(message.embeds[0].description or "")
        thread_name = self.thread_name(sections)

        public_channel_id = self._gateway.find_channel_id(self._public_channel)
        if public_channel_id is None:
            raise DestinationNotFoundError(self._public_channel)

        if self._dry_run:
            self._logger.info(
                "relay_dry_run message_id=%s channel=%s thread_name=%r description=%r",
                message.message_id,
                self._public_channel,
                thread_name,
                description,
            )
            return RelayOutcome(relayed=False, reason="dry_run", thread_name=thread_name)

        # Single attempt: a timed-out send may still have been delivered.
        try:
            notice_message_id = await call_with_retry(
                lambda: self._gateway.send_embed(
                    public_channel_id,
                    title=NOTICE_TITLE,
                    description=description,
                ),
                step="publish",
                attempts=1,
                timeout_seconds=self._request_timeout_seconds,
                logger=self._logger,
            )
        except Exception as exc:
            raise PublishError(
                f"Failed to publish application from message {message.message_id}.",
                source_message_id=message.message_id,
            ) from exc

        self._logger.info(
            "application_published message_id=%s notice_id=%s",
            message.message_id,
            notice_message_id,
        )

        # Transient failures only; the gateway reports "already created" as success.
        try:
            await call_with_retry(
                lambda: self._gateway.create_thread(
                    public_channel_id,
                    notice_message_id,
                    name=thread_name,
                    auto_archive_minutes=self._auto_archive_minutes,
                ),
                step="create_thread",
                attempts=self._max_attempts,
                timeout_seconds=self._request_timeout_seconds,
                backoff_seconds=self._retry_backoff_seconds,
                sleep=self._sleep,
                logger=self._logger,
            )
        except Exception as exc:
            raise ThreadCreateError(
                f"Failed to create thread for application from message {message.message_id}.",
                source_message_id=message.message_id,
                notice_message_id=notice_message_id,
            ) from exc

        self._logger.info(
            "application_thread_created notice_id=%s thread_name=%r",
            notice_message_id,
            thread_name,
        )
        return RelayOutcome(
            relayed=True,
            reason="relayed",
            notice_message_id=notice_message_id,
            thread_name=thread_name,
            thread_created=True,
        )
