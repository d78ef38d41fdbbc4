from __future__ import annotations

import time
from http.cookiejar import DefaultCookiePolicy

import requests
from requests.structures import CaseInsensitiveDict

from healthcheck.checks.cancel import CancelToken, CheckCancelled
from healthcheck.checks.results import CheckResult
from healthcheck.config import USER_AGENT
from healthcheck.models import Endpoint

MAX_BODY_BYTES = 10 * 1024
MAX_REDIRECTS = 10


def build_session() -> requests.Session:
    session = requests.Session()
    session.max_redirects = MAX_REDIRECTS
    # shared by every endpoint: never store cookies between checks
    session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
    return session


def _read_body(resp: requests.Response, deadline: float) -> str:
    buf = b""
    try:
        for chunk in resp.iter_content(chunk_size=1024):
            buf += chunk
            if len(buf) >= MAX_BODY_BYTES or time.monotonic() >= deadline:
                break
    except requests.RequestException:
        return ""
    return buf[:MAX_BODY_BYTES].decode("utf-8", errors="replace")


def _exchange(
    session: requests.Session,
    ep: Endpoint,
    headers: CaseInsensitiveDict,
    data: bytes | None,
    timeout_s: float,
    capture_body: bool,
) -> tuple[int, int, str]:
    """Send the request; returns (status code, latency ms, body)."""
    deadline = time.monotonic() + timeout_s
    start = time.perf_counter()
    resp = session.request(
        ep.method,
        ep.url,
        headers=headers,
        data=data,
        timeout=timeout_s,
        allow_redirects=True,
        stream=True,
    )
    latency_ms = int((time.perf_counter() - start) * 1000)
    with resp:
        body = _read_body(resp, deadline) if capture_body else ""
        return resp.status_code, latency_ms, body


def run_http(
    session: requests.Session,
    ep: Endpoint,
    timeout_s: float,
    verbose: bool = False,
    cancel: CancelToken | None = None,
) -> CheckResult:
    res = CheckResult(name=ep.name, url=ep.url, type="http")

    headers = CaseInsensitiveDict(ep.headers)
    if not headers.get("User-Agent"):
        headers["User-Agent"] = USER_AGENT
    data = ep.body.encode("utf-8") if ep.body else None
    capture_body = bool(ep.expected_body_contains) or verbose

    start = time.perf_counter()
    try:
        status_code, latency_ms, body = (cancel or CancelToken()).run(
            lambda: _exchange(session, ep, headers, data, timeout_s, capture_body),
            timeout=timeout_s,
        )
    except (
        requests.exceptions.MissingSchema,
        requests.exceptions.InvalidSchema,
        requests.exceptions.InvalidURL,
    ) as e:
        res.error = f"build request: {e}"
        return res
    except (requests.RequestException, CheckCancelled, TimeoutError) as e:
        res.latency_ms = int((time.perf_counter() - start) * 1000)
        res.error = f"request failed: {e}"
        return res

    res.status_code = status_code
    res.latency_ms = latency_ms
    res.body = body

    res.healthy = True
    if ep.expected_status > 0 and status_code != ep.expected_status:
        res.healthy = False
        res.error = f"expected status {ep.expected_status}, got {status_code}"
    if ep.expected_body_contains and ep.expected_body_contains not in body:
        res.healthy = False
        res.error = f"response body does not contain '{ep.expected_body_contains}'"
    return res
