from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any

from healthcheck.checks.results import CheckResult, serialize_ts


@dataclass
class EndpointState:
    name: str
    type: str
    target: str
    healthy: bool | None = None
    last_run: str | None = None
    last_ok: str | None = None
    last_change: str | None = None
    latency_ms: int | None = None
    status_code: int | None = None
    error: str | None = None
    retries: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class StateStore:
    def __init__(self, max_events: int = 500) -> None:
        self._states: dict[str, EndpointState] = {}
        self._events: list[dict[str, Any]] = []
        self._max_events = max_events
        self._lock = threading.Lock()

    def _build_event(self, ts: str, res: CheckResult, event_name: str) -> dict[str, Any]:
        return {
            "ts": ts,
            "name": res.name,
            "event": event_name,
            "healthy": res.healthy,
            "latency_ms": res.latency_ms,
            "status_code": res.status_code or None,
            "error": res.error or None,
        }

    def ensure_endpoint(self, name: str, check_type: str, target: str) -> None:
        with self._lock:
            if name not in self._states:
                self._states[name] = EndpointState(name=name, type=check_type, target=target)

    def update(self, res: CheckResult) -> dict[str, Any] | None:
        """
        Record a result and return the INIT/UP/DOWN event it caused, if any.
        """
        with self._lock:
            st = self._states.get(res.name)
            if st is None:
                st = EndpointState(name=res.name, type=res.type, target=res.url)
                self._states[res.name] = st
            prev = st.healthy

            st.healthy = res.healthy
            st.last_run = serialize_ts(res.timestamp)
            st.latency_ms = res.latency_ms
            st.status_code = res.status_code or None
            st.error = res.error or None
            st.retries = res.retries
            if res.healthy:
                st.last_ok = st.last_run

            event: dict[str, Any] | None = None
            if prev is None:
                st.last_change = st.last_run
                event = self._build_event(st.last_run, res, "INIT")
            elif prev != res.healthy:
                st.last_change = st.last_run
                event = self._build_event(st.last_run, res, "UP" if res.healthy else "DOWN")

            if event is not None:
                self._events.append(event)
                if len(self._events) > self._max_events:
                    self._events = self._events[-self._max_events :]

            return event

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {k: v.to_dict() for k, v in self._states.items()}

    def summary(self) -> dict[str, Any]:
        snap = self.snapshot()
        down = [v for v in snap.values() if v["healthy"] is False]
        return {
            "total": len(snap),
            "up": sum(1 for v in snap.values() if v["healthy"] is True),
            "down": len(down),
            "unknown": sum(1 for v in snap.values() if v["healthy"] is None),
            "down_endpoints": down,
        }

    def events(self, limit: int = 50) -> list[dict[str, Any]]:
        with self._lock:
            return list(reversed(self._events[-limit:]))
