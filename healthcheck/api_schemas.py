from __future__ import annotations

from typing import Any, Literal
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(description="Health status")


class ConfigResponse(BaseModel):
    config_path: str | None = Field(default=None)
    version: str
    timeout: float = Field(gt=0)
    retries: int = Field(ge=0)
    interval: float = Field(gt=0)
    alerts: list[str] = Field(default_factory=list, description="Enabled alert channels")


class EndpointsResponse(BaseModel):
    endpoints: list[dict[str, Any]]
    count: int


class EndpointStateResponse(BaseModel):
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


class StatusSummaryResponse(BaseModel):
    total: int
    up: int
    down: int
    unknown: int
    down_endpoints: list[EndpointStateResponse]


class StatusEventResponse(BaseModel):
    ts: str
    name: str
    event: Literal["INIT", "UP", "DOWN"]
    healthy: bool | None = None
    latency_ms: int | None = None
    status_code: int | None = None
    error: str | None = None


class CheckRequest(BaseModel):
    names: list[str] | None = Field(
        default=None,
        description="Endpoint names to check; all configured endpoints when omitted",
    )


class CheckResultResponse(BaseModel):
    name: str
    url: str
    type: str
    healthy: bool
    status_code: int | None = None
    latency_ms: int
    error: str | None = None
    body: str | None = None
    timestamp: str
    retries: int


class CheckSummary(BaseModel):
    total: int
    healthy: int
    unhealthy: int


class CheckRunResponse(BaseModel):
    results: list[CheckResultResponse]
    summary: CheckSummary
