"""Release/failure notifications and their delivery channels."""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from functools import lru_cache
from typing import Any
from typing import Mapping
from typing import Sequence

import httpx
from jinja2 import Environment
from jinja2 import PackageLoader
from jinja2 import select_autoescape

from .config import EmailConfig
from .workorder import FailureSummary
from .workorder import ReleaseSummary

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _templates() -> Environment:
    return Environment(
        loader=PackageLoader("build_worker", "templates"),
        autoescape=select_autoescape(["html"]),
    )


@dataclass
class NotificationMessage:
    title: str
    body: str
    kind: str = "info"
    html: bool = False
    meta: Mapping[str, Any] | None = None


class Notifier:
    def __init__(
        self,
        channel: str = "stdout",
        *,
        email: EmailConfig | None = None,
        webhook_url: str | None = None,
    ) -> None:
        channels = [item.strip() for item in channel.split(",") if item.strip()]
        if not channels:
            raise ValueError("notification channel must not be empty")
        self.channels: Sequence[str] = channels
        self.email = email or EmailConfig()
        self.webhook_url = webhook_url
        self._disabled_channels: set[str] = set()

    def send(self, message: NotificationMessage) -> None:
        for channel in self.channels:
            self._dispatch(channel, message)

    # Dispatch helpers -----------------------------------------------------
    def _dispatch(self, channel: str, message: NotificationMessage) -> None:
        if channel in self._disabled_channels:
            return
        if channel == "stdout":
            print(f"[NOTIFY] {message.title}\n{message.body}")
            return
        if channel == "email":
            self._send_email(message)
            return
        if channel == "webhook":
            self._send_webhook(message)
            return
        raise ValueError(f"Unknown notification channel: {channel}")

    def _send_email(self, message: NotificationMessage) -> None:
        cfg = self.email
        to = cfg.recipients
        cc = cfg.cc
        if message.kind == "failure" and cfg.failure_recipients:
            to = cfg.failure_recipients
            cc = cfg.failure_cc
        if not to:
            self._disable_channel_once("email", "no email recipients configured")
            return

        mail = EmailMessage()
        mail["From"] = cfg.sender
        mail["To"] = ", ".join(to)
        if cc:
            mail["Cc"] = ", ".join(cc)
        mail["Subject"] = message.title
        if message.html:
            mail.set_content(message.body, subtype="html")
        else:
            mail.set_content(message.body)

        with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout) as server:
            if cfg.starttls:
                server.starttls()
            if cfg.username and cfg.password:
                server.login(cfg.username, cfg.password)
            server.send_message(mail, from_addr=cfg.sender, to_addrs=[*to, *cc])

    def _send_webhook(self, message: NotificationMessage) -> None:
        if not self.webhook_url:
            self._disable_channel_once("webhook", "webhook_url not configured")
            return
        payload: dict[str, Any] = {
            "title": message.title,
            "body": message.body,
            "kind": message.kind,
            "html": message.html,
        }
        if message.meta:
            payload["meta"] = dict(message.meta)
        with httpx.Client(timeout=5.0) as client:
            response = client.post(self.webhook_url, json=payload)
            response.raise_for_status()

    def _disable_channel_once(self, channel: str, reason: str) -> None:
        if channel in self._disabled_channels:
            return
        logger.warning("Notification channel '%s' disabled: %s", channel, reason)
        self._disabled_channels.add(channel)


class MockNotifier(Notifier):
    def __init__(self) -> None:
        super().__init__(channel="stdout")
        self.sent: list[NotificationMessage] = []

    def send(self, message: NotificationMessage) -> None:
        self.sent.append(message)


def render_release(summary: ReleaseSummary) -> str:
    template = _templates().get_template("release.html")
    return template.render(
        environment=summary.environment.upper(),
        stories=summary.stories,
        services=summary.commits,
    )


def render_failure(summary: FailureSummary) -> str:
    template = _templates().get_template("failure.html")
    return template.render(environment=summary.environment.upper(), errors=summary.errors)


def build_message(summary: ReleaseSummary | FailureSummary) -> NotificationMessage:
    environment = summary.environment.upper()
    if isinstance(summary, FailureSummary):
        return NotificationMessage(
            title=f"{environment} Build Failed!",
            body=render_failure(summary),
            kind="failure",
            html=True,
            meta={"services": [item.service for item in summary.errors if item.error]},
        )
    return NotificationMessage(
        title=f"{environment} Release Notes!",
        body=render_release(summary),
        kind="release",
        html=True,
        meta={"stories": list(summary.stories)},
    )


class BuildReporter:
    """Turn a work-order summary into a notification and deliver it.

    Delivery problems are logged and reported back as ``False``; they never
    change the outcome of the build itself.
    """

    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier

    def send(self, summary: ReleaseSummary | FailureSummary) -> bool:
        message = build_message(summary)
        try:
            self.notifier.send(message)
        except (OSError, smtplib.SMTPException, httpx.HTTPError, ValueError) as exc:
            logger.error("Failed to send notification '%s': %s", message.title, exc)
            return False
        return True


__all__ = [
    "BuildReporter",
    "MockNotifier",
    "NotificationMessage",
    "Notifier",
    "build_message",
    "render_failure",
    "render_release",
]
