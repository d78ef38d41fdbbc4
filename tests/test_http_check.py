import json
import socket
import threading
import time
import unittest
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from healthcheck.checks.cancel import CancelToken
from healthcheck.checks.engine import Engine, Options
from healthcheck.checks.http_check import MAX_BODY_BYTES, build_session, run_http
from healthcheck.config import USER_AGENT
from healthcheck.models import Endpoint


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format, *args) -> None:
        pass

    def _send(self, status: int, body: bytes, headers: dict | None = None) -> None:
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        for k, v in (headers or {}).items():
            self.send_header(k, v)
        self.end_headers()
        self.wfile.write(body)

    def _dispatch(self) -> None:
        path = self.path.split("?", 1)[0]
        if path == "/ok":
            self._send(200, b"all good")
        elif path == "/unavailable":
            self._send(503, b"maintenance")
        elif path == "/big":
            self._send(200, b"x" * (MAX_BODY_BYTES * 5))
        elif path.startswith("/hop/"):
            left = int(path.rsplit("/", 1)[1])
            target = "/ok" if left <= 0 else f"/hop/{left - 1}"
            self._send(302, b"", {"Location": target})
        elif path == "/echo":
            length = int(self.headers.get("Content-Length") or 0)
            payload = {
                "method": self.command,
                "user_agent": self.headers.get("User-Agent"),
                "token": self.headers.get("X-Token"),
                "cookie": self.headers.get("Cookie"),
                "body": self.rfile.read(length).decode() if length else "",
            }
            self._send(200, json.dumps(payload).encode())
        elif path == "/login":
            self._send(200, b"welcome", {"Set-Cookie": "session=leaked; Path=/"})
        elif path == "/slow":
            time.sleep(3)
            self._send(200, b"late")
        elif path == "/trickle":
            self.send_response(200)
            self.send_header("Content-Length", "40")
            self.end_headers()
            for _ in range(40):
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(0.1)
        else:
            self._send(404, b"not found")

    do_GET = _dispatch
    do_POST = _dispatch
    do_PUT = _dispatch


class _QuietServer(ThreadingHTTPServer):
    def handle_error(self, request, client_address) -> None:
        # clients hang up early once they have read enough of the body
        pass


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class HttpCheckTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.server = _QuietServer(("127.0.0.1", 0), _Handler)
        cls.base = f"http://127.0.0.1:{cls.server.server_address[1]}"
        cls.thread = threading.Thread(target=cls.server.serve_forever, daemon=True)
        cls.thread.start()

    @classmethod
    def tearDownClass(cls) -> None:
        cls.server.shutdown()
        cls.server.server_close()

    def setUp(self) -> None:
        self.session = build_session()
        self.session.trust_env = False

    def tearDown(self) -> None:
        self.session.close()

    def _run(self, verbose: bool = False, **kw):
        path = kw.pop("path", "/ok")
        ep = Endpoint(name="svc", url=f"{self.base}{path}", **kw)
        return run_http(self.session, ep, timeout_s=3, verbose=verbose)

    def test_healthy_endpoint(self) -> None:
        res = self._run()

        self.assertTrue(res.healthy)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.error, "")
        self.assertEqual(res.type, "http")
        self.assertEqual(res.name, "svc")
        self.assertGreaterEqual(res.latency_ms, 0)
        self.assertIsNotNone(res.timestamp.tzinfo)

    def test_unexpected_status(self) -> None:
        res = self._run(path="/unavailable")

        self.assertFalse(res.healthy)
        self.assertEqual(res.status_code, 503)
        self.assertEqual(res.error, "expected status 200, got 503")

    def test_status_check_disabled(self) -> None:
        res = self._run(path="/unavailable", expected_status=0)

        self.assertTrue(res.healthy)
        self.assertEqual(res.status_code, 503)

    def test_body_not_captured_without_body_check_or_verbose(self) -> None:
        self.assertEqual(self._run().body, "")
        self.assertEqual(self._run(path="/unavailable").body, "")

    def test_body_captured_in_verbose_mode(self) -> None:
        self.assertEqual(self._run(verbose=True).body, "all good")

    def test_body_contains_match(self) -> None:
        res = self._run(expected_body_contains="good")

        self.assertTrue(res.healthy)
        self.assertEqual(res.body, "all good")

    def test_body_contains_mismatch(self) -> None:
        res = self._run(expected_body_contains="healthy")

        self.assertFalse(res.healthy)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.error, "response body does not contain 'healthy'")

    def test_body_is_truncated(self) -> None:
        res = self._run(path="/big", verbose=True)

        self.assertTrue(res.healthy)
        self.assertEqual(len(res.body), MAX_BODY_BYTES)

    def test_follows_redirects(self) -> None:
        res = self._run(path="/hop/5")

        self.assertTrue(res.healthy)
        self.assertEqual(res.status_code, 200)

    def test_too_many_redirects(self) -> None:
        res = self._run(path="/hop/50")

        self.assertFalse(res.healthy)
        self.assertEqual(res.status_code, 0)
        self.assertTrue(res.error.startswith("request failed:"))
        self.assertIn("redirects", res.error)

    def test_default_user_agent(self) -> None:
        res = self._run(path="/echo", verbose=True)
        self.assertEqual(json.loads(res.body)["user_agent"], USER_AGENT)

    def test_user_agent_header_is_not_overridden(self) -> None:
        res = self._run(path="/echo", verbose=True, headers={"user-agent": "probe/2"})
        self.assertEqual(json.loads(res.body)["user_agent"], "probe/2")

    def test_method_headers_and_body_are_sent(self) -> None:
        res = self._run(
            path="/echo",
            verbose=True,
            method="POST",
            headers={"X-Token": "abc"},
            body='{"ping": true}',
        )

        payload = json.loads(res.body)
        self.assertEqual(payload["method"], "POST")
        self.assertEqual(payload["token"], "abc")
        self.assertEqual(payload["body"], '{"ping": true}')

    def test_connection_refused(self) -> None:
        ep = Endpoint(name="down", url=f"http://127.0.0.1:{_closed_port()}/health")
        res = run_http(self.session, ep, timeout_s=2)

        self.assertFalse(res.healthy)
        self.assertEqual(res.status_code, 0)
        self.assertTrue(res.error.startswith("request failed:"))

    def test_malformed_url(self) -> None:
        ep = Endpoint(name="bad", url="not-a-url")
        res = run_http(self.session, ep, timeout_s=2)

        self.assertFalse(res.healthy)
        self.assertTrue(res.error.startswith("build request:"))

    def test_cancelled_token_skips_request(self) -> None:
        cancel = CancelToken()
        cancel.cancel()
        ep = Endpoint(name="svc", url=f"{self.base}/ok")
        res = run_http(self.session, ep, timeout_s=2, cancel=cancel)

        self.assertFalse(res.healthy)
        self.assertEqual(res.error, "request failed: check cancelled")
        self.assertEqual(res.status_code, 0)

    def test_cookies_are_not_shared_between_checks(self) -> None:
        engine = Engine(Options(timeout=3, verbose=True), session=self.session)
        login = Endpoint(name="login", url=f"{self.base}/login")
        echo = Endpoint(name="echo", url=f"{self.base}/echo")

        self.assertTrue(engine.check_all([login])[0].healthy)
        res = engine.check_all([echo])[0]

        self.assertIsNone(json.loads(res.body)["cookie"])
        self.assertEqual(len(self.session.cookies), 0)

    def test_cancel_aborts_request_in_flight(self) -> None:
        engine = Engine(Options(timeout=5), session=self.session)
        cancel = CancelToken()
        threading.Timer(0.2, cancel.cancel).start()

        start = time.monotonic()
        res = engine.check_all([Endpoint(name="slow", url=f"{self.base}/slow")], cancel)[0]

        self.assertLess(time.monotonic() - start, 1.5)
        self.assertFalse(res.healthy)
        self.assertEqual(res.error, "request failed: check cancelled")
        self.assertEqual(res.status_code, 0)

    def test_timeout_bounds_the_whole_exchange(self) -> None:
        ep = Endpoint(name="trickle", url=f"{self.base}/trickle")

        start = time.monotonic()
        res = run_http(self.session, ep, timeout_s=0.5, verbose=True)

        self.assertLess(time.monotonic() - start, 2)
        self.assertFalse(res.healthy)
        self.assertTrue(res.error.startswith("request failed:"))


if __name__ == "__main__":
    unittest.main()
