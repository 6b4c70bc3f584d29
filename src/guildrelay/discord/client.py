"""Discord client service wrapping discord.py."""

from __future__ import annotations

from typing import Optional, Protocol
import asyncio
import logging

import discord

from guildrelay.relay.pipeline import EmbedData, InboundMessage


# Discord JSON error code for "A thread has already been created for this message".
THREAD_ALREADY_CREATED = 160004


class OnMessageHandler(Protocol):
    """Handler invoked on each incoming message."""

    async def handle(self, message: InboundMessage) -> None:
        ...


def to_inbound_message(message: "discord.Message") -> InboundMessage:
    """Adapt a discord.py message to the relay's read-only view."""

    return InboundMessage(
        message_id=message.id,
        channel_id=message.channel.id,
        author_id=message.author.id,
        # Username, not nickname: guilds can rename the form bot locally.
        author_name=message.author.name,
        embeds=tuple(
            EmbedData(title=embed.title, description=embed.description)
            for embed in message.embeds
        ),
    )


class DiscordGateway:
    """Channel directory and publishing operations on a connected client."""

    def __init__(self, client: "discord.Client", logger: Optional[logging.Logger] = None) -> None:
        self._client = client
        self._logger = logger or logging.getLogger("guildrelay.discord.gateway")

    @property
    def bot_user_id(self) -> Optional[int]:
        user = self._client.user
        return None if user is None else int(user.id)

    def channel_name(self, channel_id: int) -> Optional[str]:
        channel = self._client.get_channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            return None
        return channel.name

    def find_channel_id(self, name: str) -> Optional[int]:
        channel = self._find_text_channel(name)
        return None if channel is None else channel.id

    async def send_embed(self, channel_id: int, *, title: str, description: str) -> int:
        channel = self._text_channel(channel_id)
        sent = await channel.send(embed=discord.Embed(title=title, description=description))
        return sent.id

    async def create_thread(
        self,
        channel_id: int,
        message_id: int,
        *,
        name: str,
        auto_archive_minutes: int,
    ) -> None:
        channel = self._text_channel(channel_id)
        try:
            await channel.get_partial_message(message_id).create_thread(
                name=name,
                auto_archive_duration=auto_archive_minutes,
            )
        except discord.HTTPException as exc:
            # An earlier attempt that timed out on our side may have gone through.
            if exc.code != THREAD_ALREADY_CREATED:
                raise
            self._logger.info(
                "thread_already_exists channel_id=%s message_id=%s", channel_id, message_id
            )

    async def send_text(self, guild_name: str, channel_name: str, content: str) -> None:
        guild = discord.utils.get(self._client.guilds, name=guild_name)
        if guild is None:
            raise LookupError(f"Guild '{guild_name}' not found.")
        channel = discord.utils.get(guild.text_channels, name=channel_name)
        if channel is None:
            raise LookupError(f"Channel '{channel_name}' not found in guild '{guild_name}'.")
        await channel.send(content)

    def _find_text_channel(self, name: str) -> Optional["discord.TextChannel"]:
        for guild in self._client.guilds:
            channel = discord.utils.get(guild.text_channels, name=name)
            if channel is not None:
                return channel
        return None

    def _text_channel(self, channel_id: int) -> "discord.TextChannel":
        channel = self._client.get_channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            raise LookupError(f"Channel {channel_id} is not an available text channel.")
        return channel


class DiscordClientService:
    """Discord bot service that feeds discord.py message events to a handler."""

    def __init__(
        self,
        *,
        bot_token: str,
        on_message_handler: Optional[OnMessageHandler] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._bot_token = bot_token
        self._handler = on_message_handler
        self._logger = logger or logging.getLogger("guildrelay.discord.client")

        intents = discord.Intents.default()
        # Embeds of other bots' messages are only delivered with message content.
        intents.message_content = True
        intents.messages = True
        intents.guilds = True
        intents.guild_messages = True

        self._client = discord.Client(intents=intents)
        self._gateway = DiscordGateway(self._client)

        self._ready_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        @self._client.event
        async def on_ready():
            await self._on_ready()

        @self._client.event
        async def on_message(message):
            await self._on_message(message)

    @property
    def gateway(self) -> DiscordGateway:
        return self._gateway

    def set_message_handler(self, handler: OnMessageHandler) -> None:
        self._handler = handler

    async def start(self) -> None:
        """Start the Discord client in the background."""
        self._task = asyncio.create_task(self._client.start(self._bot_token))
        ready = asyncio.create_task(self._ready_event.wait())
        done, _ = await asyncio.wait({self._task, ready}, return_when=asyncio.FIRST_COMPLETED)
        if self._task in done:
            ready.cancel()
            # Login failures surface here instead of hanging on the ready event.
            self._task.result()
            raise RuntimeError("Discord client stopped before becoming ready.")
        self._logger.info(
            "Discord client ready: bot_user_id=%s guilds=%s",
            self._gateway.bot_user_id,
            len(self._client.guilds),
        )

    async def stop(self) -> None:
        """Stop the Discord client gracefully."""
        await self._client.close()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _on_ready(self) -> None:
        self._logger.info("Discord client connected as %s", self._client.user)
        self._ready_event.set()

    async def _on_message(self, message: "discord.Message") -> None:
        if self._handler is None:
            return
        try:
            await self._handler.handle(to_inbound_message(message))
        except Exception:
            self._logger.exception("Message handler failed message_id=%s", message.id)
