import json
import unittest
from datetime import datetime, timezone

from healthcheck.checks.results import CheckResult
from healthcheck.formatting import format_transition, render

TS = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

RESULTS = [
    CheckResult(
        name="api",
        url="https://api.local/health",
        type="http",
        healthy=True,
        status_code=200,
        latency_ms=42,
        timestamp=TS,
    ),
    CheckResult(
        name="db",
        url="db.local:5432",
        type="tcp",
        healthy=False,
        latency_ms=3,
        error="tcp connect: [Errno 111] Connection refused",
        timestamp=TS,
        retries=2,
    ),
]


class RenderTests(unittest.TestCase):
    def test_text(self) -> None:
        out = render(RESULTS, "text")
        lines = out.splitlines()

        self.assertEqual(lines[0], "[OK  ] api (http) 42ms HTTP 200")
        self.assertEqual(
            lines[1],
            "[FAIL] db (tcp) 3ms retries=2 - tcp connect: [Errno 111] Connection refused",
        )
        self.assertEqual(lines[-1], "1/2 healthy")

    def test_json(self) -> None:
        payload = json.loads(render(RESULTS, "json"))

        self.assertEqual(payload["summary"], {"total": 2, "healthy": 1, "unhealthy": 1})
        api, db = payload["results"]
        self.assertEqual(api["timestamp"], "2026-03-01T12:00:00Z")
        self.assertEqual(api["status_code"], 200)
        self.assertNotIn("error", api)
        self.assertNotIn("status_code", db)
        self.assertEqual(db["retries"], 2)

    def test_table(self) -> None:
        lines = render(RESULTS, "table").splitlines()

        self.assertTrue(lines[0].startswith("NAME"))
        self.assertIn("STATUS", lines[0])
        self.assertIn("UP", lines[1])
        self.assertIn("DOWN", lines[2])
        # columns line up
        self.assertEqual(lines[0].index("TYPE"), lines[1].index("http"))

    def test_unknown_format(self) -> None:
        with self.assertRaises(ValueError):
            render(RESULTS, "xml")


class TransitionFormatTests(unittest.TestCase):
    def test_down_message(self) -> None:
        title, message = format_transition(
            {"event": "DOWN", "ts": "2026-03-01T12:00:00Z"}, RESULTS[1]
        )

        self.assertEqual(title, "[DOWN] db")
        self.assertIn("Target: db.local:5432", message)
        self.assertIn("Error: tcp connect", message)
        self.assertIn("Retries: 2", message)
        self.assertNotIn("HTTP:", message)


if __name__ == "__main__":
    unittest.main()
