"""Outgoing email notifications.

Delivery is best-effort: every ``send_*`` method returns a ``DeliveryResult``
and never raises, so a mail outage cannot undo a user or membership that
was already committed. Callers log or ignore the result.
"""
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from .config import Settings

logger = logging.getLogger("tasknestle.notifications")


@dataclass
class DeliveryResult:
    """Outcome of a single email delivery attempt."""

    delivered: bool
    error: Optional[str] = None


class Mailer:
    """SMTP mailer configured from ``Settings``."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.smtp_host and self.settings.email_from)

    def _link(self, path: str) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}{path}"

    def send(self, to_email: str, subject: str, body: str, html: Optional[str] = None) -> DeliveryResult:
        """
        Send one message.

        Args:
            to_email: Recipient address
            subject: Subject line
            body: Plain-text body
            html: Optional HTML alternative

        Returns:
            DeliveryResult describing success or the failure reason
        """
        if not self.is_configured:
            logger.info(f"SMTP not configured; skipping email to {to_email}: {subject}")
            return DeliveryResult(delivered=False, error="SMTP not configured")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.email_from
        msg["To"] = to_email
        msg.set_content(body)
        if html:
            msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as smtp:
                if self.settings.smtp_use_tls:
                    smtp.starttls()
                if self.settings.smtp_username:
                    smtp.login(self.settings.smtp_username, self.settings.smtp_password or "")
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email} ({subject}): {e}", exc_info=True)
            return DeliveryResult(delivered=False, error=str(e)[:400])

        logger.info(f"Sent email to {to_email}: {subject}")
        return DeliveryResult(delivered=True)

    def send_project_invitation(
        self,
        email: str,
        project_title: str,
        inviter_name: str,
        token: str,
    ) -> DeliveryResult:
        link = self._link(f"/invite?token={token}")
        body = (
            f"Hello!\n\n"
            f"{inviter_name} has invited you to join the project \"{project_title}\".\n\n"
            f"Accept the invitation and create your account here:\n{link}\n\n"
            f"This invitation will expire in {self.settings.invitation_token_days} days.\n"
            f"If you didn't expect this invitation, you can safely ignore this email.\n"
        )
        html = (
            f"<h2>Project Invitation</h2>"
            f"<p><strong>{inviter_name}</strong> has invited you to join the project "
            f"<strong>\"{project_title}\"</strong>.</p>"
            f"<p><a href=\"{link}\">Accept Invitation</a></p>"
            f"<p>This invitation will expire in {self.settings.invitation_token_days} days.</p>"
        )
        return self.send(email, f"Invitation to join project: {project_title}", body, html)

    def send_login_credentials(
        self,
        email: str,
        name: str,
        password: Optional[str],
        project_title: Optional[str] = None,
    ) -> DeliveryResult:
        """Send new-account credentials, or a project notice when ``password`` is None."""
        lines = [f"Hello {name},", ""]
        if password is not None:
            lines.append("Your TaskNestle account has been created.")
        if project_title:
            lines.append(f"You've been added to the project: \"{project_title}\".")
        lines.append("")
        lines.append(f"Email: {email}")
        lines.append(f"Password: {password if password is not None else 'Your existing password'}")
        lines.append("")
        lines.append(f"Log in at {self._link('/login')}")
        if password is not None:
            lines.append("Please change your password after your first login.")
        return self.send(email, "Your TaskNestle Login Credentials", "\n".join(lines) + "\n")

    def send_welcome(self, email: str, name: str) -> DeliveryResult:
        body = (
            f"Hello {name},\n\n"
            f"Welcome to TaskNestle! Your account is ready.\n"
            f"Go to your dashboard: {self._link('/dashboard')}\n"
        )
        return self.send(email, "Welcome to TaskNestle", body)

    def send_task_assignment(
        self,
        email: str,
        task_title: str,
        project_title: str,
        assigner_name: str,
    ) -> DeliveryResult:
        body = (
            f"Hello!\n\n"
            f"{assigner_name} has assigned you a new task:\n\n"
            f"  {task_title}\n  Project: {project_title}\n\n"
            f"View it on your dashboard: {self._link('/dashboard')}\n"
        )
        return self.send(email, f"New task assigned: {task_title}", body)
