"""CLI for the guildrelay runtime."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence
import argparse
import asyncio
import json
import sys

from guildrelay import __version__
from guildrelay.config.settings import SettingsError, load_settings, settings_summary
from guildrelay.runtime.app import run_runtime


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Guild application relay bot")
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to JSON config file. Environment variables override file values.",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate settings and print a redacted summary.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Boot runtime and stop immediately (startup wiring smoke check).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"guildrelay {__version__}",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(config_path=args.config)
    except SettingsError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    if args.check:
        print(json.dumps(settings_summary(settings), indent=2, sort_keys=True))
        return 0

    try:
        return asyncio.run(run_runtime(settings=settings, once=args.once))
    except SettingsError as exc:
        # Secrets are resolved at wiring time, after the config itself loaded.
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130
