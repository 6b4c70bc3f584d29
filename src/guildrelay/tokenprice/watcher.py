"""Periodic token price poll that posts changes to a channel."""

from __future__ import annotations

from typing import Optional, Protocol
import asyncio
import logging

from guildrelay.tokenprice.client import TokenQuote


class QuoteSource(Protocol):
    async def fetch_quote(self) -> TokenQuote:
        ...


class TextSender(Protocol):
    async def send_text(self, guild_name: str, channel_name: str, content: str) -> None:
        ...


def format_price_message(previous: Optional[TokenQuote], current: TokenQuote) -> str:
    if previous is None:
        return f"Wow token price: {current.gold}g (bot startup)"

    # Truncate toward zero so a 9999 copper drop reads as 0, not -1.
    diff = int((current.price - previous.price) / 10000)
    prefix = "+" if diff > 0 else ""
    return f"Wow token price updated: {current.gold}g ({prefix}{diff})"


class TokenPriceWatcher:
    """Polls the token price and announces it whenever it moves."""

    def __init__(
        self,
        *,
        source: QuoteSource,
        sender: TextSender,
        guild_name: str,
        channel_name: str = "wow-token",
        poll_interval_seconds: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0.")
        self._source = source
        self._sender = sender
        self._guild_name = guild_name
        self._channel_name = channel_name
        self._poll_interval_seconds = poll_interval_seconds
        self._logger = logger or logging.getLogger("guildrelay.tokenprice.watcher")
        self._last_quote: Optional[TokenQuote] = None

    @property
    def last_quote(self) -> Optional[TokenQuote]:
        return self._last_quote

    async def run_once(self) -> bool:
        """Poll once; return True when an announcement was sent."""
        self._logger.debug("checking token")
        try:
            quote = await self._source.fetch_quote()
        except Exception as exc:
            self._logger.warning("token_fetch_failed error_type=%s error=%s", type(exc).__name__, exc)
            return False

        previous = self._last_quote
        if previous is not None and (
            quote.last_updated_timestamp == previous.last_updated_timestamp
            or quote.price == previous.price
        ):
            self._logger.debug("no diff")
            self._last_quote = quote
            return False

        content = format_price_message(previous, quote)
        self._last_quote = quote
        try:
            await self._sender.send_text(self._guild_name, self._channel_name, content)
        except Exception as exc:
            self._logger.warning("token_announce_failed error_type=%s error=%s", type(exc).__name__, exc)
            return False

        self._logger.info("token_price_announced price=%s", quote.price)
        return True

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._poll_interval_seconds)
            except asyncio.TimeoutError:
                await self.run_once()
