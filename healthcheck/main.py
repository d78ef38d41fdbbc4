import logging
import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query

from healthcheck.api_schemas import (
    CheckRequest,
    CheckRunResponse,
    ConfigResponse,
    EndpointsResponse,
    EndpointStateResponse,
    HealthResponse,
    StatusEventResponse,
    StatusSummaryResponse,
)
from healthcheck.checks.cancel import CancelToken
from healthcheck.checks.engine import Engine, Options
from healthcheck.config import VERSION, settings
from healthcheck.formatting import summarize
from healthcheck.models import ConfigFile
from healthcheck.notifier import build_notifiers
from healthcheck.registry import load_config
from healthcheck.runner import loop_forever, run_once
from healthcheck.state import StateStore

logger = logging.getLogger(__name__)
store = StateStore()
_watch_cancel: CancelToken | None = None


def _load() -> ConfigFile:
    if not settings.HEALTHCHECK_CONFIG:
        raise HTTPException(status_code=400, detail="HEALTHCHECK_CONFIG must be configured")
    try:
        return load_config(settings.HEALTHCHECK_CONFIG)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid config: {e}")


def _options(cfg: ConfigFile) -> Options:
    return Options(
        timeout=cfg.settings.timeout or settings.HEALTHCHECK_TIMEOUT,
        retries=cfg.settings.retries or settings.HEALTHCHECK_RETRIES,
        verbose=settings.HEALTHCHECK_VERBOSE,
        webhook_url=settings.HEALTHCHECK_WEBHOOK_URL,
    )


def _interval(cfg: ConfigFile) -> float:
    return cfg.settings.interval or settings.HEALTHCHECK_INTERVAL


@asynccontextmanager
async def lifespan(_: FastAPI):
    global _watch_cancel
    if settings.HEALTHCHECK_CONFIG:
        try:
            cfg = _load()
        except HTTPException as e:
            logger.error("watch loop not started: %s", e.detail)
        else:
            _watch_cancel = CancelToken()
            opts = _options(cfg)
            t = threading.Thread(
                target=loop_forever,
                args=(Engine(opts), cfg.endpoints, store, _interval(cfg)),
                kwargs={
                    "notifiers": build_notifiers(cfg.alerts, opts.webhook_url),
                    "cancel": _watch_cancel,
                },
                daemon=True,
            )
            t.start()
    yield
    if _watch_cancel is not None:
        _watch_cancel.cancel()


app = FastAPI(
    title="Health Checker",
    version=VERSION,
    description=(
        "Concurrent endpoint health checker that loads HTTP/TCP/gRPC endpoints "
        "from a config file, probes them with retries, and exposes current "
        "status and transition history."
    ),
    lifespan=lifespan,
)


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["system"],
    summary="Health Check",
    description="Liveness endpoint used by probes and orchestration.",
)
def health():
    return {"status": "ok"}


@app.get(
    "/config",
    response_model=ConfigResponse,
    tags=["system"],
    summary="Current Effective Config",
    description="Returns non-secret runtime config values.",
)
def config():
    cfg = _load() if settings.HEALTHCHECK_CONFIG else ConfigFile()
    opts = _options(cfg)
    channels = [n.channel for n in build_notifiers(cfg.alerts, opts.webhook_url)]
    return {
        "config_path": settings.HEALTHCHECK_CONFIG,
        "version": VERSION,
        "timeout": opts.timeout,
        "retries": opts.retries,
        "interval": _interval(cfg),
        "alerts": channels,
    }


@app.get(
    "/api/endpoints",
    response_model=EndpointsResponse,
    tags=["endpoints"],
    summary="Configured Endpoints",
    description="Returns endpoints as parsed from the config file, defaults applied.",
)
def endpoints():
    cfg = _load()
    return {
        "endpoints": [ep.model_dump() for ep in cfg.endpoints],
        "count": len(cfg.endpoints),
    }


@app.get(
    "/api/status/checks",
    response_model=dict[str, EndpointStateResponse],
    tags=["status"],
    summary="Current Endpoint States",
    description="Latest known state per endpoint name.",
)
def status_checks():
    return store.snapshot()


@app.get(
    "/api/status/summary",
    response_model=StatusSummaryResponse,
    tags=["status"],
    summary="Status Summary",
    description="Aggregate counts and list of currently down endpoints.",
)
def status_summary():
    return store.summary()


@app.get(
    "/api/status/events",
    response_model=list[StatusEventResponse],
    tags=["status"],
    summary="Recent Status Events",
    description="Recent INIT/UP/DOWN events, newest first.",
)
def status_events(
    limit: int = Query(default=50, ge=1, le=500, description="Max number of events to return")
):
    return store.events(limit=limit)


@app.post(
    "/api/check",
    response_model=CheckRunResponse,
    tags=["checks"],
    summary="Run Checks Now",
    description="Runs one round of checks synchronously and records the results.",
)
def check_now(request: CheckRequest | None = None):
    cfg = _load()
    selected = cfg.endpoints
    if request is not None and request.names:
        by_name = {ep.name: ep for ep in cfg.endpoints}
        missing = [n for n in request.names if n not in by_name]
        if missing:
            raise HTTPException(status_code=404, detail=f"Unknown endpoints: {', '.join(missing)}")
        selected = [by_name[n] for n in request.names]

    opts = _options(cfg)
    results = run_once(
        Engine(opts),
        selected,
        store,
        build_notifiers(cfg.alerts, opts.webhook_url),
    )
    return {
        "results": [r.to_dict() for r in results],
        "summary": summarize(results),
    }
