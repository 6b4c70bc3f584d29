"""Runtime host and wiring."""

from guildrelay.runtime.app import RuntimeApp, configure_logging, run_runtime

__all__ = [
    "RuntimeApp",
    "configure_logging",
    "run_runtime",
]
