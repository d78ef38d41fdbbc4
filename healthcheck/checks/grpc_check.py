from __future__ import annotations

import time

from healthcheck.checks.cancel import CancelToken
from healthcheck.checks.results import CheckResult
from healthcheck.checks.tcp_check import dial


def run_grpc(
    name: str,
    host: str,
    port: int,
    timeout_s: float,
    cancel: CancelToken | None = None,
) -> CheckResult:
    # Reachability only: the port is dialled and closed, the
    # grpc.health.v1 protocol is not spoken.
    res = CheckResult(name=name, url=f"{host}:{port}", type="grpc")
    start = time.perf_counter()
    try:
        res.latency_ms = dial(host, port, timeout_s, cancel)
    except OSError as e:
        res.latency_ms = int((time.perf_counter() - start) * 1000)
        res.error = f"grpc connect: {e}"
        return res
    res.healthy = True
    return res
