import asyncio
from pathlib import Path
import sys
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from guildrelay.config.settings import load_settings
from guildrelay.runtime.app import RuntimeApp


class _RecordingService:
    def __init__(self, name, order):
        self.name = name
        self.order = order

    async def start(self):
        self.order.append(f"start:{self.name}")

    async def stop(self):
        self.order.append(f"stop:{self.name}")


class RuntimeAppTests(unittest.IsolatedAsyncioTestCase):
    def _settings(self):
        return load_settings(
            environ={
                "GUILDRELAY_DISCORD_PUBLIC_CHANNEL": "public-applications",
                "GUILDRELAY_RUNTIME_LOG_LEVEL": "DEBUG",
            }
        )

    async def test_run_starts_and_stops_services_in_order(self):
        order = []
        app = RuntimeApp(
            settings=self._settings(),
            services=[_RecordingService("a", order), _RecordingService("b", order)],
        )
        app.stop_event.set()

        exit_code = await app.run()

        self.assertEqual(exit_code, 0)
        self.assertEqual(order, ["start:a", "start:b", "stop:b", "stop:a"])

    async def test_fail_stops_runtime_with_error_code(self):
        order = []
        app = RuntimeApp(settings=self._settings(), services=[_RecordingService("a", order)])

        async def _fail_later():
            await asyncio.sleep(0)
            app.fail(RuntimeError("thread create failed"))

        with self.assertLogs("guildrelay.runtime", level="CRITICAL"):
            failer = asyncio.create_task(_fail_later())
            exit_code = await app.run()
            await failer

        self.assertEqual(exit_code, 1)
        self.assertEqual(order, ["start:a", "stop:a"])

    async def test_stop_cancels_background_tasks(self):
        stop_event = asyncio.Event()
        task = asyncio.create_task(asyncio.sleep(60))
        app = RuntimeApp(
            settings=self._settings(),
            background_tasks=[task],
            stop_event=stop_event,
        )
        stop_event.set()

        await app.run()

        self.assertTrue(task.cancelled())


if __name__ == "__main__":
    unittest.main()
