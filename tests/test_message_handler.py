from __future__ import annotations

from pathlib import Path
import sys
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from guildrelay.discord.message_handler import RelayMessageHandler
from guildrelay.relay.errors import DestinationNotFoundError, PublishError, ThreadCreateError
from guildrelay.relay.pipeline import EmbedData, InboundMessage, RelayOutcome


def _message() -> InboundMessage:
    return InboundMessage(
        message_id=42,
        channel_id=10,
        author_id=300,
        author_name="Appy",
        embeds=(EmbedData(description="a###b"),),
    )


class _Relay:
    def __init__(self, *, outcome=None, error=None) -> None:
        self.outcome = outcome
        self.error = error
        self.calls = 0

    async def handle(self, message):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.outcome


def _thread_error() -> ThreadCreateError:
    return ThreadCreateError("thread failed", source_message_id=42, notice_message_id=5000)


class RelayMessageHandlerTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_relay_outcome(self):
        outcome = RelayOutcome(relayed=True, reason="relayed", notice_message_id=5000)
        handler = RelayMessageHandler(relay=_Relay(outcome=outcome))

        with self.assertLogs("guildrelay.discord.handler", level="INFO") as logs:
            result = await handler.handle(_message())

        self.assertIs(result, outcome)
        self.assertTrue(any("notice_id=5000" in line for line in logs.output), logs.output)

    async def test_missing_destination_is_reported_not_raised(self):
        handler = RelayMessageHandler(relay=_Relay(error=DestinationNotFoundError("public")))

        with self.assertLogs("guildrelay.discord.handler", level="ERROR") as logs:
            result = await handler.handle(_message())

        self.assertIsNone(result)
        self.assertTrue(any("Configuration error" in line for line in logs.output), logs.output)

    async def test_publish_failure_names_source_message(self):
        error = PublishError("publish failed", source_message_id=42)
        handler = RelayMessageHandler(relay=_Relay(error=error))

        with self.assertLogs("guildrelay.discord.handler", level="ERROR") as logs:
            await handler.handle(_message())

        self.assertTrue(any("message_id=42" in line for line in logs.output), logs.output)

    async def test_thread_failure_reports_and_continues_by_default(self):
        fatal_calls = []
        handler = RelayMessageHandler(
            relay=_Relay(error=_thread_error()),
            on_fatal=fatal_calls.append,
        )

        with self.assertLogs("guildrelay.discord.handler", level="ERROR") as logs:
            await handler.handle(_message())

        self.assertEqual(fatal_calls, [])
        self.assertTrue(any("notice kept" in line for line in logs.output), logs.output)

    async def test_thread_failure_is_fatal_when_configured(self):
        fatal_calls = []
        error = _thread_error()
        handler = RelayMessageHandler(
            relay=_Relay(error=error),
            thread_failure_policy="fatal",
            on_fatal=fatal_calls.append,
        )

        with self.assertLogs("guildrelay.discord.handler", level="CRITICAL"):
            await handler.handle(_message())

        self.assertEqual(fatal_calls, [error])

    async def test_unexpected_error_is_logged(self):
        handler = RelayMessageHandler(relay=_Relay(error=KeyError("boom")))

        with self.assertLogs("guildrelay.discord.handler", level="ERROR") as logs:
            result = await handler.handle(_message())

        self.assertIsNone(result)
        self.assertTrue(any("Relay failed" in line for line in logs.output), logs.output)

    def test_rejects_unknown_policy(self):
        with self.assertRaises(ValueError):
            RelayMessageHandler(relay=_Relay(), thread_failure_policy="retry")


if __name__ == "__main__":
    unittest.main()
