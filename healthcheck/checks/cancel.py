from __future__ import annotations

import threading
import time
from typing import Any, Callable, TypeVar

T = TypeVar("T")

POLL_INTERVAL_S = 0.05


class CheckCancelled(ConnectionAbortedError):
    def __init__(self) -> None:
        super().__init__("check cancelled")


class CancelToken:
    """
    Shared cancellation signal with an optional deadline.

    One token is handed to every concurrent check. `cancel()` stops all
    backoff waits and in-flight probe calls early; once the deadline
    passes the token reports itself as cancelled too.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """
        Sleep for `seconds` unless cancelled first.

        Returns True when the token was cancelled (or hit its deadline)
        before the full wait elapsed.
        """
        if self.cancelled:
            return True
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            self._event.set()
            return True
        if self._event.wait(seconds):
            return True
        return self.cancelled

    def run(self, fn: Callable[[], T], timeout: float | None = None) -> T:
        """
        Call `fn` in a worker thread and wait for it.

        Raises CheckCancelled as soon as the token is cancelled and
        TimeoutError once `timeout` seconds have passed. The worker is
        abandoned in both cases; `fn` must bound its own blocking I/O so
        the thread still finishes. Exceptions raised by `fn` propagate.
        """
        if self.cancelled:
            raise CheckCancelled()

        done = threading.Event()
        outcome: dict[str, Any] = {}

        def target() -> None:
            try:
                outcome["value"] = fn()
            except Exception as e:
                outcome["error"] = e
            finally:
                done.set()

        threading.Thread(target=target, name="check-call", daemon=True).start()

        deadline = time.monotonic() + timeout if timeout is not None else None
        while not done.wait(POLL_INTERVAL_S):
            if self.cancelled:
                raise CheckCancelled()
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"timed out after {timeout:g}s")

        if "error" in outcome:
            raise outcome["error"]
        return outcome["value"]
