"""
Concurrent check engine.

Every endpoint gets its own thread; each thread runs the retry loop for
its endpoint and stores the final result at the endpoint's index in a
pre-sized list, so the output order always matches the input order and
no lock is needed around it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import requests

from healthcheck.checks.cancel import CancelToken
from healthcheck.checks.grpc_check import run_grpc
from healthcheck.checks.http_check import build_session, run_http
from healthcheck.checks.results import CheckResult
from healthcheck.checks.tcp_check import run_tcp
from healthcheck.models import Endpoint

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "check cancelled"

# (token, seconds) -> True when cancelled before the wait finished
BackoffWait = Callable[[CancelToken, float], bool]


@dataclass(frozen=True)
class Options:
    timeout: float = 5.0
    retries: int = 0
    verbose: bool = False
    webhook_url: Optional[str] = None
    max_concurrency: Optional[int] = None

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")


def backoff_delay(attempt: int) -> float:
    """Seconds to wait before `attempt` (1s, 2s, 4s, ... for attempts 1, 2, 3, ...)."""
    return float(2 ** (attempt - 1))


def _cancellable_sleep(cancel: CancelToken, seconds: float) -> bool:
    return cancel.wait(seconds)


class Engine:
    def __init__(
        self,
        opts: Options,
        session: requests.Session | None = None,
        wait: BackoffWait | None = None,
    ) -> None:
        self.opts = opts
        self.session = session or build_session()
        self._wait = wait or _cancellable_sleep
        self._gate = (
            threading.BoundedSemaphore(opts.max_concurrency) if opts.max_concurrency else None
        )
        self._probes: dict[str, Callable[[Endpoint, float, CancelToken], CheckResult]] = {
            "http": self._probe_http,
            "tcp": self._probe_tcp,
            "grpc": self._probe_grpc,
        }

    def check_all(
        self, endpoints: Sequence[Endpoint], cancel: CancelToken | None = None
    ) -> list[CheckResult]:
        cancel = cancel or CancelToken()
        results: list[CheckResult | None] = [None] * len(endpoints)

        def work(idx: int, ep: Endpoint) -> None:
            try:
                results[idx] = self.check_with_retry(ep, cancel)
            except Exception as e:
                # a crash stays local to its own slot
                logger.exception("check %s crashed", ep.name)
                results[idx] = CheckResult(
                    name=ep.name, url=ep.url, type=ep.type, error=f"internal error: {e}"
                )

        threads = [
            threading.Thread(target=work, args=(i, ep), name=f"check-{i}", daemon=True)
            for i, ep in enumerate(endpoints)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        return [r for r in results if r is not None]

    def check_with_retry(self, ep: Endpoint, cancel: CancelToken) -> CheckResult:
        max_attempts = self.opts.retries + 1
        last: CheckResult | None = None

        for attempt in range(max_attempts):
            if attempt > 0:
                delay = backoff_delay(attempt)
                logger.debug(
                    "check %s failed (%s), retry %d/%d in %.0fs",
                    ep.name,
                    last.error,
                    attempt,
                    self.opts.retries,
                    delay,
                )
                if self._wait(cancel, delay):
                    logger.info("check %s cancelled during backoff", ep.name)
                    last.healthy = False
                    last.error = CANCELLED_ERROR
                    return last

            last = self.check(ep, cancel)
            last.retries = attempt
            if last.healthy:
                return last

        return last

    def check(self, ep: Endpoint, cancel: CancelToken) -> CheckResult:
        """Run exactly one probe against `ep`."""
        timeout_s = self.effective_timeout(ep, cancel)
        probe = self._probes[ep.type]
        if self._gate is None:
            return probe(ep, timeout_s, cancel)
        with self._gate:
            return probe(ep, timeout_s, cancel)

    def effective_timeout(self, ep: Endpoint, cancel: CancelToken | None = None) -> float:
        timeout_s = ep.timeout or self.opts.timeout
        remaining = cancel.remaining() if cancel is not None else None
        if remaining is not None:
            timeout_s = min(timeout_s, remaining)
        return timeout_s

    def _probe_http(self, ep: Endpoint, timeout_s: float, cancel: CancelToken) -> CheckResult:
        return run_http(self.session, ep, timeout_s, verbose=self.opts.verbose, cancel=cancel)

    def _probe_tcp(self, ep: Endpoint, timeout_s: float, cancel: CancelToken) -> CheckResult:
        return run_tcp(ep.name, ep.host, ep.port, timeout_s, cancel=cancel)

    def _probe_grpc(self, ep: Endpoint, timeout_s: float, cancel: CancelToken) -> CheckResult:
        host, port = ep.grpc_address()
        return run_grpc(ep.name, host, port, timeout_s, cancel=cancel)
