"""Mail transports.

Both senders raise SendError on any failure; callers decide whether that
aborts anything (the dispatcher does not).
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol

import requests

from blogwatch.errors import SendError
from blogwatch.notify.formatting import MailMessage

logger = logging.getLogger(__name__)


class MailSender(Protocol):
    def send(self, message: MailMessage) -> None:
        ...


class SmtpMailSender:
    def __init__(
        self,
        server: str,
        port: int = 587,
        *,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: int = 30,
    ):
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_mime(self, message: MailMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg['From'] = message.sender
        msg['To'] = ", ".join(message.recipients)
        msg['Subject'] = message.subject
        msg.attach(MIMEText(message.html_body, 'html', 'utf-8'))
        return msg

    def send(self, message: MailMessage) -> None:
        msg = self.build_mime(message)
        try:
            if self.port == 465:
                server = smtplib.SMTP_SSL(self.server, self.port, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.server, self.port, timeout=self.timeout)
            try:
                if self.use_tls and self.port != 465:
                    server.starttls()
                if self.password:
                    server.login(self.username or message.sender, self.password)
                server.sendmail(message.sender, message.recipients, msg.as_string())
            finally:
                server.quit()
        except smtplib.SMTPAuthenticationError as e:
            logger.error("Email authentication failed - check credentials")
            raise SendError(f"SMTP authentication failed: {e}") from e
        except smtplib.SMTPRecipientsRefused as e:
            logger.error("Email recipient refused - check email address")
            raise SendError(f"SMTP recipients refused: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise SendError(f"SMTP error: {e}") from e
        logger.info(f"Email sent successfully to {', '.join(message.recipients)}")


class MailChannelsMailSender:
    """HTTP JSON transport (MailChannels send API); success is HTTP 202."""

    def __init__(
        self,
        endpoint: str = "https://api.mailchannels.net/tx/v1/send",
        *,
        api_key: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def payload(self, message: MailMessage) -> dict:
        return {
            "personalizations": [
                {"to": [{"email": addr} for addr in message.recipients]},
            ],
            "from": {"email": message.sender},
            "subject": message.subject,
            "content": [{"type": "text/html", "value": message.html_body}],
        }

    def send(self, message: MailMessage) -> None:
        headers = {"content-type": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        try:
            resp = self.session.post(self.endpoint, json=self.payload(message), headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise SendError(f"mail API request failed: {e}") from e
        if resp.status_code != 202:
            raise SendError(f"mail API returned {resp.status_code}: {resp.text[:200]}")
        logger.info(f"Email sent successfully to {', '.join(message.recipients)}")
