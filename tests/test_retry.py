from __future__ import annotations

from pathlib import Path
import asyncio
import sys
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from guildrelay.relay.retry import call_with_retry, is_transient_error


class _Flaky:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"failure {self.calls}")
        return "ok"


class CallWithRetryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.sleeps: list[float] = []

    async def _sleep(self, delay: float) -> None:
        self.sleeps.append(delay)

    async def test_retries_with_exponential_backoff(self):
        operation = _Flaky(failures=2)

        result = await call_with_retry(
            operation,
            step="create_thread",
            attempts=3,
            backoff_seconds=0.5,
            sleep=self._sleep,
        )

        self.assertEqual(result, "ok")
        self.assertEqual(operation.calls, 3)
        self.assertEqual(self.sleeps, [0.5, 1.0])

    async def test_raises_last_error_when_attempts_exhausted(self):
        operation = _Flaky(failures=5)

        with self.assertRaises(ConnectionError) as ctx:
            await call_with_retry(operation, step="create_thread", attempts=2, sleep=self._sleep)

        self.assertEqual(str(ctx.exception), "failure 2")
        self.assertEqual(self.sleeps, [0.5])

    async def test_single_attempt_does_not_sleep(self):
        operation = _Flaky(failures=1)

        with self.assertRaises(ConnectionError):
            await call_with_retry(operation, step="publish", attempts=1, sleep=self._sleep)

        self.assertEqual(operation.calls, 1)
        self.assertEqual(self.sleeps, [])

    async def test_times_out_slow_call(self):
        async def _slow() -> None:
            await asyncio.sleep(5)

        with self.assertRaises(asyncio.TimeoutError):
            await call_with_retry(_slow, step="publish", timeout_seconds=0.01)

    async def test_rejects_non_positive_attempts(self):
        with self.assertRaises(ValueError):
            await call_with_retry(_Flaky(0), step="publish", attempts=0)

    async def test_non_transient_error_is_raised_without_retry(self):
        calls = []

        async def _forbidden() -> None:
            calls.append(1)
            raise PermissionError("missing access")

        with self.assertRaises(PermissionError):
            await call_with_retry(_forbidden, step="create_thread", attempts=3, sleep=self._sleep)

        self.assertEqual(len(calls), 1)
        self.assertEqual(self.sleeps, [])

    async def test_custom_retry_predicate(self):
        operation = _Flaky(failures=2)

        with self.assertRaises(ConnectionError):
            await call_with_retry(
                operation,
                step="create_thread",
                attempts=3,
                retryable=lambda exc: False,
                sleep=self._sleep,
            )

        self.assertEqual(operation.calls, 1)

    async def test_failed_attempts_are_logged(self):
        with self.assertLogs("guildrelay.relay.retry", level="WARNING") as logs:
            await call_with_retry(_Flaky(failures=1), step="create_thread", attempts=2, sleep=self._sleep)

        self.assertEqual(len(logs.output), 1)
        self.assertIn("step=create_thread attempt=1/2 error_type=ConnectionError retry=True", logs.output[0])


class _StatusError(Exception):
    def __init__(self, status) -> None:
        super().__init__(f"HTTP {status}")
        self.status = status


class IsTransientErrorTests(unittest.TestCase):
    def test_timeouts_and_connection_errors(self):
        self.assertTrue(is_transient_error(asyncio.TimeoutError()))
        self.assertTrue(is_transient_error(ConnectionResetError()))

    def test_server_errors_only(self):
        self.assertTrue(is_transient_error(_StatusError(503)))
        self.assertFalse(is_transient_error(_StatusError(403)))
        self.assertFalse(is_transient_error(_StatusError("500")))

    def test_other_errors(self):
        self.assertFalse(is_transient_error(LookupError("channel gone")))
        self.assertFalse(is_transient_error(RuntimeError("bug")))


if __name__ == "__main__":
    unittest.main()
