from __future__ import annotations

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CheckType = Literal["http", "tcp", "grpc"]

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> float:
    """
    Convert a duration to seconds.

    Accepts plain numbers (seconds) and Go-style duration strings such as
    "500ms", "5s" or "1m30s".
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos == 0 or pos != len(text):
                raise ValueError(f"invalid duration: {value!r}") from None
    if seconds < 0:
        raise ValueError(f"duration must not be negative: {value!r}")
    return seconds


class Endpoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    url: str = ""
    type: CheckType = "http"
    method: str = "GET"
    host: str = ""
    port: int = Field(default=0, ge=0, le=65535)
    expected_status: int = Field(default=0, ge=0)
    expected_body_contains: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""
    timeout: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # YAML/JSON nulls mean "use the default"
        for key in ("type", "method", "expected_status", "headers", "timeout"):
            if key in data and data[key] is None:
                del data[key]
        # status checks only apply to http
        if data.get("type", "http") == "http" and "expected_status" not in data:
            data["expected_status"] = 200
        if not data.get("name"):
            if data.get("url"):
                data["name"] = data["url"]
            elif data.get("port"):
                data["name"] = f"{data.get('host') or ''}:{data['port']}"
            else:
                data["name"] = data.get("host") or ""
        return data

    @field_validator("method")
    @classmethod
    def _upper_method(cls, v: str) -> str:
        return (v or "GET").upper()

    @field_validator("timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, v: Any) -> float:
        return parse_duration(v)

    @model_validator(mode="after")
    def _check_target(self) -> "Endpoint":
        if self.type == "http" and not self.url:
            raise ValueError(f"endpoint {self.name!r}: http endpoints require a url")
        if self.type == "tcp":
            if not self.host:
                raise ValueError(f"endpoint {self.name!r}: tcp endpoints require a host")
            if not 1 <= self.port <= 65535:
                raise ValueError(f"endpoint {self.name!r}: tcp endpoints require a port in 1..65535")
        if self.type == "grpc":
            if not (self.url or self.host):
                raise ValueError(f"endpoint {self.name!r}: grpc endpoints require a host or url")
            self.grpc_address()
        return self

    def target(self) -> str:
        if self.type == "http":
            return self.url
        if self.type == "tcp":
            return f"{self.host}:{self.port}"
        host, port = self.grpc_address()
        return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"

    def grpc_address(self) -> tuple[str, int]:
        """
        Resolve the (host, port) a gRPC endpoint is dialled on.

        `host` + `port` win; otherwise `host` or `url` is parsed as
        "host:port" (an optional "scheme://" prefix and any path are ignored).
        """
        if self.host and self.port:
            return self.host, self.port
        raw = self.host or self.url
        if "://" in raw:
            raw = raw.split("://", 1)[1]
        raw = raw.split("/", 1)[0]
        host, sep, port = raw.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"grpc address {raw!r} must be in host:port form")
        return host.strip("[]"), int(port)

    @classmethod
    def from_url(cls, url: str) -> "Endpoint":
        return cls(name=url, url=url, type="http", method="GET", expected_status=200)


class ConfigSettings(BaseModel):
    timeout: float = 0.0
    retries: int = Field(default=0, ge=0)
    interval: float = 0.0

    @field_validator("timeout", "interval", mode="before")
    @classmethod
    def _parse_duration(cls, v: Any) -> float:
        return parse_duration(v)

    @field_validator("retries", mode="before")
    @classmethod
    def _none_retries(cls, v: Any) -> Any:
        return 0 if v is None else v


class SlackAlert(BaseModel):
    webhook_url: str = Field(..., min_length=1)
    on_failure: bool = True
    on_recovery: bool = False


class WebhookAlert(BaseModel):
    url: str = Field(..., min_length=1)
    on_failure: bool = True
    on_recovery: bool = False


class Alerts(BaseModel):
    slack: Optional[SlackAlert] = None
    webhook: Optional[WebhookAlert] = None


class ConfigFile(BaseModel):
    settings: ConfigSettings = Field(default_factory=ConfigSettings)
    endpoints: List[Endpoint] = Field(default_factory=list)
    alerts: Alerts = Field(default_factory=Alerts)

    @field_validator("settings", "alerts", mode="before")
    @classmethod
    def _none_section(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("endpoints", mode="before")
    @classmethod
    def _none_endpoints(cls, v: Any) -> Any:
        return [] if v is None else v
