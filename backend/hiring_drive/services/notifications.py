"""Notification gateway.

The coordinator hands notifications over and moves on: delivery happens on
a worker pool and a failed delivery is only logged, it never touches the
drive.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from html import escape
from typing import Any, Dict, Optional, Union

from ..core.config import Settings
from ..domain.models import Candidate, Event, Interviewer
from .mailer import SmtpMailer

logger = logging.getLogger(__name__)

FEEDBACK_FIELDS = [
    "Decision (YES/NO/STRONG_YES/STRONG_NO)",
    "Question Asked",
    "Ready for next interview? (Y/N)",
    "If No, Break Time (15/30 mins)",
]


@dataclass(frozen=True)
class Notification:
    kind: str
    to: str
    subject: str
    body: Dict[str, Any] = field(default_factory=dict)


class NotificationChannel(ABC):
    @abstractmethod
    def send(self, notification: Notification) -> None:
        ...


class LogChannel(NotificationChannel):
    """Writes notifications to the log instead of delivering them."""

    def send(self, notification: Notification) -> None:
        logger.info(
            "notification %s to %s: %s %s",
            notification.kind,
            notification.to,
            notification.subject,
            json.dumps(notification.body, default=str),
        )


class SmtpChannel(NotificationChannel):
    def __init__(self, mailer: SmtpMailer) -> None:
        self.mailer = mailer

    def send(self, notification: Notification) -> None:
        rows = "".join(
            f"<tr><td>{escape(str(k))}</td><td>{escape(str(v))}</td></tr>"
            for k, v in notification.body.items()
        )
        html = (
            '<div style="font-family:system-ui,Segoe UI,Roboto,Arial,sans-serif;font-size:14px">'
            f"<p>{escape(notification.subject)}</p><table>{rows}</table>"
            "<p>Thanks,<br/>Recruiting Team</p></div>"
        )
        self.mailer.send(
            to=[notification.to],
            subject=notification.subject,
            html_body=html,
            headers={"X-Category": f"drive-{notification.kind}"},
        )


class NotificationGateway:
    def __init__(
        self,
        channel: NotificationChannel,
        executor: Optional[Executor] = None,
        workers: int = 4,
    ) -> None:
        self.channel = channel
        self._executor = executor or ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="notify"
        )

    def notify_scheduled(
        self, event: Event, participant: Union[Candidate, Interviewer]
    ) -> None:
        body: Dict[str, Any] = {
            "event_id": event.id,
            "round": event.round.name.value,
            "start_time": event.start_time.isoformat(),
            "duration": event.duration,
            "meeting_link": event.meeting_link,
            "assessment_link": event.assessment_link,
            "candidate_email": event.candidate_email,
        }
        if isinstance(participant, Interviewer):
            body["scorecard_link"] = event.scorecard_link
        self._dispatch(
            Notification(
                kind="scheduled",
                to=participant.email,
                subject=f"Interview Scheduled - {event.round.name.value}",
                body=body,
            )
        )

    def notify_start(self, event: Event, interviewer: Interviewer) -> None:
        self._dispatch(
            Notification(
                kind="start",
                to=interviewer.email,
                subject=f"Interview Starting - {event.round.name.value}",
                body={"message": "Has the interview started?", "event_id": event.id},
            )
        )

    def notify_complete(self, event: Event, interviewer: Interviewer) -> None:
        self._dispatch(
            Notification(
                kind="complete",
                to=interviewer.email,
                subject=f"Interview Ending - {event.round.name.value}",
                body={
                    "message": "Please provide interview feedback",
                    "event_id": event.id,
                    "required_fields": FEEDBACK_FIELDS,
                },
            )
        )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _dispatch(self, notification: Notification) -> None:
        try:
            self._executor.submit(self._deliver, notification)
        except RuntimeError:
            # executor already shut down
            logger.warning(
                "dropped %s notification to %s", notification.kind, notification.to
            )

    def _deliver(self, notification: Notification) -> None:
        try:
            self.channel.send(notification)
        except Exception:
            logger.exception(
                "failed to deliver %s notification to %s",
                notification.kind,
                notification.to,
            )


def build_gateway(settings: Settings) -> NotificationGateway:
    if settings.NOTIFY_CHANNEL == "smtp":
        channel: NotificationChannel = SmtpChannel(
            SmtpMailer(
                server=settings.SMTP_SERVER,
                port=settings.SMTP_PORT,
                username=settings.SMTP_USERNAME or None,
                password=settings.SMTP_PASSWORD or None,
                from_email=settings.MAIL_SENDER,
                from_name=settings.MAIL_SENDER_NAME,
            )
        )
    else:
        channel = LogChannel()
    return NotificationGateway(channel, workers=settings.NOTIFY_WORKERS)
