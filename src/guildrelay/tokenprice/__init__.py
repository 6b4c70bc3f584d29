"""WoW token price polling."""

from guildrelay.tokenprice.client import (
    BlizzardTokenClient,
    TokenPriceError,
    TokenQuote,
    UrllibTransport,
)
from guildrelay.tokenprice.watcher import TokenPriceWatcher, format_price_message

__all__ = [
    "BlizzardTokenClient",
    "TokenPriceError",
    "TokenPriceWatcher",
    "TokenQuote",
    "UrllibTransport",
    "format_price_message",
]
