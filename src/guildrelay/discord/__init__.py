"""Discord-facing utilities."""

from guildrelay.discord.message_handler import RelayMessageHandler

__all__ = [
    "RelayMessageHandler",
]
