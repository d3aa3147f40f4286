"""SMTP delivery with retry on transient failures."""

from __future__ import annotations

import logging
import re
import smtplib
import socket
import time
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from html import unescape
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class SmtpMailer:
    def __init__(
        self,
        server: str,
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_email: str = "noreply@example.com",
        from_name: str = "Recruiting Bot",
        timeout: int = 30,
        max_retries: int = 3,
        backoff_seconds: float = 1.5,
    ):
        self.server, self.port = server, port
        self.username, self.password = username, password
        self.from_email, self.from_name = from_email, from_name
        self.timeout, self.max_retries, self.backoff_seconds = timeout, max_retries, backoff_seconds

    def _open_and_auth(self) -> smtplib.SMTP:
        client = smtplib.SMTP(self.server, self.port, timeout=self.timeout)
        client.ehlo()
        client.starttls()
        client.ehlo()
        if self.username:
            if not self.password:
                client.quit()
                raise RuntimeError("SMTP_USERNAME is set but SMTP_PASSWORD is empty.")
            client.login(self.username, self.password)
        return client

    def _retryable(self, exc: Exception) -> bool:
        if isinstance(exc, (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError, socket.timeout, ConnectionError)):
            return True
        if isinstance(exc, smtplib.SMTPResponseException):
            code = getattr(exc, "smtp_code", 0) or 0
            return 400 <= code < 500
        return False

    def build_message(
        self,
        to: List[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = ", ".join(to)
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain=self.from_email.split("@")[-1])
        msg["X-Mailer"] = "HiringDrive/SMTP"
        if headers:
            for k, v in headers.items():
                msg[k] = str(v)

        if not text_body:
            text_body = unescape(re.sub(r"<[^>]+>", "", html_body))
        msg.set_content(text_body)
        msg.add_alternative(html_body, subtype="html")
        return msg

    def send(
        self,
        to: List[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        msg = self.build_message(to, subject, html_body, text_body, headers)

        attempt = 0
        while True:
            try:
                with self._open_and_auth() as client:
                    client.send_message(msg)
                return msg["Message-ID"]
            except Exception as exc:
                if self._retryable(exc) and attempt < self.max_retries - 1:
                    attempt += 1
                    logger.warning(
                        "smtp send to %s failed (%s), retry %d/%d",
                        msg["To"], exc, attempt, self.max_retries - 1,
                    )
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise
