"""SMTP mail adapter."""

import asyncio
import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate

import certifi

from paper_courier.core import Credentials, DigestMessage, Mailer, SendError

logger = logging.getLogger(__name__)

SECURITY_MODES = ("starttls", "ssl", "none")


def create_secure_smtp_context() -> ssl.SSLContext:
    """Create a secure SSL context for SMTP."""
    context = ssl.create_default_context(
        purpose=ssl.Purpose.SERVER_AUTH,
        cafile=certifi.where(),
    )
    context.verify_mode = ssl.CERT_REQUIRED
    return context


def render_html(body: str) -> str:
    """Wrap the plain-text digest in minimal HTML with clickable links."""
    lines = []
    for line in body.splitlines():
        escaped = html.escape(line)
        title, sep, link = line.rpartition(" - ")
        if sep and link.startswith(("http://", "https://")):
            escaped = f'{html.escape(title)} - <a href="{html.escape(link, quote=True)}">{html.escape(link)}</a>'
        lines.append(escaped)
    return "<html><body><pre style=\"font-family: sans-serif; white-space: pre-wrap;\">" + "\n".join(lines) + "</pre></body></html>"


class SMTPMailer(Mailer):
    """Send digests through an authenticated SMTP account."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        security: str = "starttls",
        sender_name: str = "Paper Courier",
    ) -> None:
        if security not in SECURITY_MODES:
            raise ValueError(f"Unknown SMTP security mode: {security}")
        self.host = host
        self.port = port
        self.security = security
        self.sender_name = sender_name

    def build_mime(self, message: DigestMessage, sender: str) -> MIMEMultipart:
        """Build the multipart message: plain text first, HTML as the preferred part."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = formataddr((self.sender_name, sender))
        msg["To"] = message.recipient
        msg["Date"] = formatdate(message.built_at.timestamp(), localtime=True)

        msg.attach(MIMEText(message.body, "plain", "utf-8"))
        msg.attach(MIMEText(render_html(message.body), "html", "utf-8"))
        return msg

    async def send(self, message: DigestMessage, credentials: Credentials, timeout: float) -> None:
        await asyncio.to_thread(self._deliver, message, credentials, timeout)

    def _deliver(self, message: DigestMessage, credentials: Credentials, timeout: float) -> None:
        msg = self.build_mime(message, credentials.account_id)

        server = None
        try:
            server = self._connect(timeout)
            server.login(credentials.account_id, credentials.secret)
            server.send_message(msg)
            logger.info("Email for %s sent to %s", message.period_key, message.recipient)
        except (OSError, smtplib.SMTPException) as e:
            raise SendError(f"SMTP delivery via {self.host}:{self.port} failed: {e}") from e
        finally:
            if server is not None:
                try:
                    server.quit()
                except (OSError, smtplib.SMTPException):
                    logger.debug("SMTP QUIT failed, connection already closed")

    def _connect(self, timeout: float) -> smtplib.SMTP:
        if self.security == "ssl":
            return smtplib.SMTP_SSL(
                self.host, self.port, timeout=timeout, context=create_secure_smtp_context()
            )

        server = smtplib.SMTP(self.host, self.port, timeout=timeout)
        if self.security == "starttls":
            try:
                server.starttls(context=create_secure_smtp_context())
            except (OSError, smtplib.SMTPException):
                server.close()
                raise
        return server
