from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base error for application relay failures."""


class DestinationNotFoundError(RelayError):
    """Raised when the public application channel cannot be resolved by name."""

    def __init__(self, channel_name: str) -> None:
        super().__init__(f"Public application channel '{channel_name}' not found.")
        self.channel_name = channel_name


class RelayTransportError(RelayError):
    """Raised when a Discord call fails after an application was accepted."""

    def __init__(
        self,
        message: str,
        *,
        source_message_id: int,
        notice_message_id: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.source_message_id = source_message_id
        self.notice_message_id = notice_message_id


class PublishError(RelayTransportError):
    """Raised when the application notice could not be posted."""


class ThreadCreateError(RelayTransportError):
    """Raised when the discussion thread could not be opened on a posted notice."""
