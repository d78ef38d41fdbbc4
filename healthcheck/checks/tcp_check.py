from __future__ import annotations

import socket
import time

from healthcheck.checks.cancel import CancelToken
from healthcheck.checks.results import CheckResult


def dial(host: str, port: int, timeout_s: float, cancel: CancelToken | None = None) -> int:
    """Open and immediately close a TCP connection. Returns the dial latency in ms."""

    def connect() -> int:
        start = time.perf_counter()
        with socket.create_connection((host, port), timeout=timeout_s):
            return int((time.perf_counter() - start) * 1000)

    # name resolution is not covered by the socket timeout
    return (cancel or CancelToken()).run(connect, timeout=timeout_s)


def run_tcp(
    name: str,
    host: str,
    port: int,
    timeout_s: float,
    cancel: CancelToken | None = None,
) -> CheckResult:
    res = CheckResult(name=name, url=f"{host}:{port}", type="tcp")
    start = time.perf_counter()
    try:
        res.latency_ms = dial(host, port, timeout_s, cancel)
    except OSError as e:
        res.latency_ms = int((time.perf_counter() - start) * 1000)
        res.error = f"tcp connect: {e}"
        return res
    res.healthy = True
    return res
