import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from starlette.concurrency import run_in_threadpool

from portal.core.config import settings

logger = logging.getLogger(__name__)


def _redact_email(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class EmailService:
    """Transactional mail over SMTP; logs instead of sending when unconfigured."""

    def __init__(
        self,
        *,
        smtp_host: str | None = None,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        from_email: str | None = None,
        login_url: str = "http://localhost:3000",
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.login_url = login_url

    @classmethod
    def from_settings(cls) -> "EmailService":
        return cls(
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=settings.SMTP_PASSWORD,
            from_email=settings.SMTP_FROM,
            login_url=settings.FRONTEND_URL,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def _send(self, to_email: str, subject: str, text_body: str, html_body: str) -> None:
        if not self.is_configured:
            logger.info("SMTP not configured, skipping email to=%s subject=%s", _redact_email(to_email), subject)
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        if self.smtp_port == 465:
            server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=ssl.create_default_context(), timeout=10)
        else:
            server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10)
        with server:
            if self.smtp_port != 465:
                server.starttls(context=ssl.create_default_context())
            if self.smtp_user and self.smtp_password:
                server.login(self.smtp_user, self.smtp_password)
            server.sendmail(self.from_email, [to_email], msg.as_string())
        logger.info("Email sent to=%s subject=%s", _redact_email(to_email), subject)

    def send_welcome(self, to_email: str, first_name: str) -> None:
        text = (
            f"Hi {first_name},\n\n"
            f"An account has been created for you. Sign in at {self.login_url}\n"
        )
        html = (
            f"<p>Hi {first_name},</p>"
            f"<p>An account has been created for you. "
            f'<a href="{self.login_url}">Sign in to the portal</a>.</p>'
        )
        self._send(to_email, "Welcome to the client portal", text, html)

    def send_recovery(self, to_email: str, link: str) -> None:
        text = f"Use this link to set a new password:\n{link}\n\nIf you did not ask for this, ignore this email.\n"
        html = (
            f'<p>Use <a href="{link}">this link</a> to set a new password.</p>'
            "<p>If you did not ask for this, ignore this email.</p>"
        )
        self._send(to_email, "Reset your password", text, html)


def get_email_service() -> EmailService:
    return EmailService.from_settings()


async def send_best_effort(send, *args) -> bool:
    """Run a blocking send off the event loop; a failure is logged, not raised."""
    try:
        await run_in_threadpool(send, *args)
    except (smtplib.SMTPException, OSError):
        logger.exception("Best-effort email failed via %s", getattr(send, "__name__", "send"))
        return False
    return True
