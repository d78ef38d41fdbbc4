from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize_ts(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class CheckResult:
    name: str
    url: str
    type: str
    healthy: bool = False
    status_code: int = 0
    latency_ms: int = 0
    error: str = ""
    body: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    retries: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "url": self.url,
            "type": self.type,
            "healthy": self.healthy,
            "latency_ms": self.latency_ms,
            "timestamp": serialize_ts(self.timestamp),
            "retries": self.retries,
        }
        # empty fields are left out
        if self.status_code:
            out["status_code"] = self.status_code
        if self.error:
            out["error"] = self.error
        if self.body:
            out["body"] = self.body
        return out
