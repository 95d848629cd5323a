"""Mail transport used for one-time code delivery.

SmtpMailer raises on delivery failure; callers decide whether that matters (the OTP
negotiator logs and carries on). LogMailer stands in when SMTP is not configured.
"""
from __future__ import annotations
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict
import logging
import smtplib

logger = logging.getLogger(__name__)


class LogMailer:
    """Development transport: writes the message to the log instead of sending it."""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.warning('[MAIL NOT SENT - SMTP NOT CONFIGURED] to=%s subject=%s body=%s', to, subject, body[:200])


class SmtpMailer:
    def __init__(self, host: str, port: int, user: str, password: str,
                 sender: str = '', use_tls: bool = True, timeout: float = 10):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.use_tls = use_tls
        self.timeout = timeout

    def _message(self, to: str, subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f'"RFQ login" <{self.sender}>'
        msg['To'] = to
        msg.attach(MIMEText(body, 'html'))
        return msg

    def send(self, to: str, subject: str, body: str) -> None:
        msg = self._message(to, subject, body)
        # Port 465 is implicit TLS; anything else upgrades with STARTTLS when enabled
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        with server:
            if self.use_tls and self.port != 465:
                server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.sendmail(self.sender, [to], msg.as_string())
        logger.info('Mail sent: %s -> %s', subject, to)


def mailer_from_config(config: Dict[str, Any]):
    if not config.get('SMTP_HOST'):
        return LogMailer()
    return SmtpMailer(
        host=config['SMTP_HOST'],
        port=int(config.get('SMTP_PORT') or 587),
        user=config.get('SMTP_USER') or '',
        password=config.get('SMTP_PASS') or '',
        sender=config.get('MAIL_FROM') or '',
        use_tls=bool(config.get('SMTP_USE_TLS', True)),
        timeout=float(config.get('SMTP_TIMEOUT_SECONDS') or 10),
    )


__all__ = ['LogMailer', 'SmtpMailer', 'mailer_from_config']
