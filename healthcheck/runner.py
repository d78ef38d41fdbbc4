from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional, Sequence

from healthcheck.checks.cancel import CancelToken
from healthcheck.checks.engine import Engine
from healthcheck.checks.results import CheckResult
from healthcheck.formatting import format_transition
from healthcheck.models import Endpoint
from healthcheck.notifier import Notifier
from healthcheck.state import StateStore

logger = logging.getLogger(__name__)


def _alert_event_name(event: dict) -> str | None:
    name = event["event"]
    if name in {"UP", "DOWN"}:
        return name
    # An endpoint that is already failing on its first check is a failure too.
    if name == "INIT" and not event["healthy"]:
        return "DOWN"
    return None


def _notify_transition(
    notifiers: Iterable[Notifier],
    event: dict | None,
    result: CheckResult,
) -> None:
    if event is None:
        return
    event_name = _alert_event_name(event)
    if event_name is None:
        return

    title, message = format_transition(event={**event, "event": event_name}, result=result)
    for notifier in notifiers:
        if not notifier.wants(event_name):
            continue
        try:
            notifier.send(event_name, title, message, result)
        except Exception as e:
            # Notification errors should never stop the check loop.
            logger.warning("%s alert for %s failed: %s", notifier.channel, result.name, e)


def run_once(
    engine: Engine,
    endpoints: Sequence[Endpoint],
    store: Optional[StateStore] = None,
    notifiers: Iterable[Notifier] = (),
    cancel: Optional[CancelToken] = None,
) -> list[CheckResult]:
    results = engine.check_all(endpoints, cancel)
    if store is None:
        return results

    notifiers = list(notifiers)
    for res in results:
        event = store.update(res)
        _notify_transition(notifiers, event, res)
    return results


def loop_forever(
    engine: Engine,
    endpoints: Sequence[Endpoint],
    store: StateStore,
    interval_s: float,
    notifiers: Iterable[Notifier] = (),
    cancel: Optional[CancelToken] = None,
    on_results: Optional[Callable[[list[CheckResult]], None]] = None,
) -> None:
    cancel = cancel or CancelToken()
    notifiers = list(notifiers)
    for ep in endpoints:
        store.ensure_endpoint(ep.name, ep.type, ep.target())

    while not cancel.cancelled:
        start = time.perf_counter()
        results = run_once(engine, endpoints, store, notifiers, cancel)
        if on_results is not None:
            on_results(results)
        elapsed = time.perf_counter() - start
        if cancel.wait(max(0.0, interval_s - elapsed)):
            break
    logger.info("watch loop stopped")
