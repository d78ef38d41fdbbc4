from __future__ import annotations

import json
from typing import Any, Dict, Sequence

from healthcheck.checks.results import CheckResult

FORMATS = ("text", "json", "table")


def summarize(results: Sequence[CheckResult]) -> dict[str, int]:
    healthy = sum(1 for r in results if r.healthy)
    return {"total": len(results), "healthy": healthy, "unhealthy": len(results) - healthy}


def render_text(results: Sequence[CheckResult], verbose: bool = False) -> str:
    lines = []
    for r in results:
        mark = "OK  " if r.healthy else "FAIL"
        line = f"[{mark}] {r.name} ({r.type}) {r.latency_ms}ms"
        if r.status_code:
            line += f" HTTP {r.status_code}"
        if r.retries:
            line += f" retries={r.retries}"
        if r.error:
            line += f" - {r.error}"
        lines.append(line)
        if verbose and r.body:
            lines.append("       " + r.body.replace("\n", "\n       "))
    s = summarize(results)
    lines.append(f"{s['healthy']}/{s['total']} healthy")
    return "\n".join(lines)


def render_json(results: Sequence[CheckResult]) -> str:
    payload = {
        "results": [r.to_dict() for r in results],
        "summary": summarize(results),
    }
    return json.dumps(payload, indent=2)


def render_table(results: Sequence[CheckResult]) -> str:
    header = ("NAME", "TYPE", "STATUS", "CODE", "LATENCY", "RETRIES", "ERROR")
    rows = [
        (
            r.name,
            r.type,
            "UP" if r.healthy else "DOWN",
            str(r.status_code) if r.status_code else "-",
            f"{r.latency_ms}ms",
            str(r.retries),
            r.error or "-",
        )
        for r in results
    ]
    widths = [max(len(row[i]) for row in [header, *rows]) for i in range(len(header))]
    out = []
    for row in [header, *rows]:
        out.append("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
    return "\n".join(out)


def render(results: Sequence[CheckResult], fmt: str = "text", verbose: bool = False) -> str:
    if fmt == "text":
        return render_text(results, verbose=verbose)
    if fmt == "json":
        return render_json(results)
    if fmt == "table":
        return render_table(results)
    raise ValueError(f"unknown output format: {fmt} (use {', '.join(FORMATS)})")


def format_transition(event: Dict[str, Any], result: CheckResult) -> tuple[str, str]:
    # Title
    status = event["event"]  # "UP" or "DOWN"
    title = f"[{status}] {result.name}"

    # Body
    lines = [
        f"Endpoint: {result.name} ({result.type})",
        f"Target: {result.url}",
        f"Latency: {result.latency_ms} ms",
    ]
    if result.status_code:
        lines.append(f"HTTP: {result.status_code}")
    if result.error:
        lines.append(f"Error: {result.error}")
    if result.retries:
        lines.append(f"Retries: {result.retries}")
    lines.append(f"Time: {event['ts']}")
    return title, "\n".join(lines)
