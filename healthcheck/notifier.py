from __future__ import annotations

from typing import Any, Optional

import requests

from healthcheck.checks.results import CheckResult
from healthcheck.models import Alerts, SlackAlert, WebhookAlert

NOTIFY_TIMEOUT_S = 5


class Notifier:
    channel = "base"

    def __init__(self, url: str, on_failure: bool = True, on_recovery: bool = False) -> None:
        self.url = url
        self.on_failure = on_failure
        self.on_recovery = on_recovery

    def wants(self, event_name: str) -> bool:
        if event_name == "DOWN":
            return self.on_failure
        if event_name == "UP":
            return self.on_recovery
        return False

    def _payload(
        self, event_name: str, title: str, message: str, result: CheckResult
    ) -> dict[str, Any]:
        raise NotImplementedError

    def send(self, event_name: str, title: str, message: str, result: CheckResult) -> None:
        resp = requests.post(
            self.url,
            json=self._payload(event_name, title, message, result),
            timeout=NOTIFY_TIMEOUT_S,
        )
        resp.raise_for_status()


class SlackNotifier(Notifier):
    channel = "slack"

    def _payload(self, event_name, title, message, result):
        icon = ":rotating_light:" if event_name == "DOWN" else ":white_check_mark:"
        return {"text": f"{icon} *{title}*\n```{message}```"}


class WebhookNotifier(Notifier):
    channel = "webhook"

    def _payload(self, event_name, title, message, result):
        return {
            "event": event_name,
            "title": title,
            "message": message,
            "result": result.to_dict(),
        }


def build_notifiers(alerts: Optional[Alerts] = None, webhook_url: Optional[str] = None) -> list[Notifier]:
    out: list[Notifier] = []
    alerts = alerts or Alerts()
    slack: SlackAlert | None = alerts.slack
    if slack is not None:
        out.append(SlackNotifier(slack.webhook_url, slack.on_failure, slack.on_recovery))
    hook: WebhookAlert | None = alerts.webhook
    if hook is not None:
        out.append(WebhookNotifier(hook.url, hook.on_failure, hook.on_recovery))
    if webhook_url:
        out.append(WebhookNotifier(webhook_url, on_failure=True, on_recovery=True))
    return out
