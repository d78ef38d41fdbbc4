import logging
import sys
from typing import List, Optional

import typer
from pydantic import ValidationError
from typing_extensions import Annotated

from healthcheck.checks.cancel import CancelToken
from healthcheck.checks.engine import Engine, Options
from healthcheck.config import VERSION, settings
from healthcheck.formatting import FORMATS, render
from healthcheck.models import Alerts, Endpoint, SlackAlert, parse_duration
from healthcheck.notifier import build_notifiers
from healthcheck.registry import endpoints_from_args, load_config
from healthcheck.runner import loop_forever, run_once
from healthcheck.state import StateStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNHEALTHY = 1
EXIT_CONFIG_ERROR = 2

app = typer.Typer(
    help="A fast, concurrent API health checker.",
    add_completion=False,
)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(
        logging, str(settings.HEALTHCHECK_LOG_LEVEL).upper(), logging.INFO
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"healthcheck {VERSION}")
        raise typer.Exit()


def _duration_option(value: Optional[str], flag: str) -> Optional[float]:
    if value is None:
        return None
    try:
        seconds = parse_duration(value)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint=flag) from e
    if seconds <= 0:
        raise typer.BadParameter("must be greater than zero", param_hint=flag)
    return seconds


@app.command()
def main(
    urls: Annotated[
        Optional[List[str]], typer.Argument(help="http:// or https:// URLs to check")
    ] = None,
    config: Annotated[
        Optional[str], typer.Option("--config", "-c", help="Config file path (YAML/JSON)")
    ] = None,
    timeout: Annotated[
        Optional[str], typer.Option("--timeout", "-t", help="Request timeout, e.g. 5s or 500ms")
    ] = None,
    retries: Annotated[
        Optional[int], typer.Option("--retries", "-r", min=0, help="Retry count on failure")
    ] = None,
    interval: Annotated[
        Optional[str], typer.Option("--interval", "-i", help="Check interval (watch mode)")
    ] = None,
    watch: Annotated[bool, typer.Option("--watch", "-w", help="Re-check every interval")] = False,
    fmt: Annotated[
        str, typer.Option("--format", "-f", help=f"Output format: {', '.join(FORMATS)}")
    ] = "text",
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Capture bodies and log debug output")
    ] = False,
    webhook: Annotated[
        Optional[str], typer.Option("--webhook", help="Webhook URL for failure/recovery alerts")
    ] = None,
    max_concurrency: Annotated[
        Optional[int],
        typer.Option("--max-concurrency", min=1, help="Cap on simultaneous probes (default: no cap)"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version"),
    ] = False,
) -> None:
    """Check the health of HTTP, TCP and gRPC endpoints concurrently."""
    verbose = verbose or settings.HEALTHCHECK_VERBOSE
    setup_logging(verbose)

    if fmt not in FORMATS:
        raise typer.BadParameter(f"use one of {', '.join(FORMATS)}", param_hint="--format")

    timeout_s = _duration_option(timeout, "--timeout")
    interval_s = _duration_option(interval, "--interval")

    endpoints: list[Endpoint] = []
    alerts = Alerts()
    config_path = config or settings.HEALTHCHECK_CONFIG
    if config_path:
        try:
            cfg = load_config(config_path)
        except (OSError, ValueError, ValidationError) as e:
            typer.echo(f"Error loading config: {e}", err=True)
            raise typer.Exit(code=EXIT_CONFIG_ERROR)
        endpoints.extend(cfg.endpoints)
        alerts = cfg.alerts
        # Config file settings apply unless overridden by flags
        if timeout_s is None and cfg.settings.timeout > 0:
            timeout_s = cfg.settings.timeout
        if retries is None and cfg.settings.retries > 0:
            retries = cfg.settings.retries
        if interval_s is None and cfg.settings.interval > 0:
            interval_s = cfg.settings.interval

    endpoints.extend(endpoints_from_args(urls or []))

    if not endpoints:
        typer.echo(
            "Error: no endpoints specified. Use -c <config> or pass URLs as arguments.",
            err=True,
        )
        raise typer.Exit(code=EXIT_UNHEALTHY)

    try:
        opts = Options(
            timeout=timeout_s or settings.HEALTHCHECK_TIMEOUT,
            retries=retries if retries is not None else settings.HEALTHCHECK_RETRIES,
            verbose=verbose,
            webhook_url=webhook or settings.HEALTHCHECK_WEBHOOK_URL,
            max_concurrency=max_concurrency,
        )
    except ValueError as e:
        typer.echo(f"Error: invalid settings: {e}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    if settings.HEALTHCHECK_SLACK_WEBHOOK_URL and alerts.slack is None:
        alerts = alerts.model_copy(
            update={"slack": SlackAlert(webhook_url=settings.HEALTHCHECK_SLACK_WEBHOOK_URL)}
        )
    notifiers = build_notifiers(alerts, opts.webhook_url)
    engine = Engine(opts)
    store = StateStore()
    cancel = CancelToken()

    if watch:
        def show(results):
            typer.echo(render(results, fmt, verbose=verbose))

        try:
            loop_forever(
                engine,
                endpoints,
                store,
                interval_s or settings.HEALTHCHECK_INTERVAL,
                notifiers=notifiers,
                cancel=cancel,
                on_results=show,
            )
        except KeyboardInterrupt:
            cancel.cancel()
            logger.info("interrupted, stopping")
        raise typer.Exit(code=EXIT_OK)

    results = run_once(engine, endpoints, store, notifiers, cancel)
    typer.echo(render(results, fmt, verbose=verbose))
    raise typer.Exit(code=EXIT_OK if all(r.healthy for r in results) else EXIT_UNHEALTHY)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
