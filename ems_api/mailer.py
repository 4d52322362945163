"""
Account emails (invites and password resets). Sent through the SendGrid v3 API when
an API key and sender are configured; otherwise the links are only logged (demo).
Every message is also kept in an in-memory outbox.
"""
import logging
from dataclasses import dataclass

import httpx

from ems_api.config import (
    FRONTEND_BASE_URL,
    SENDGRID_API_KEY,
    SENDGRID_API_URL,
    SENDGRID_FROM_EMAIL,
    SENDGRID_FROM_NAME,
)

logger = logging.getLogger(__name__)

INVITE_SUBJECT = "Welcome to Employee Management System - Set Your Password"
RESET_SUBJECT = "Password Reset Request - Employee Management System"


@dataclass(frozen=True)
class Message:
    kind: str  # invite | reset
    to: str
    link: str
    subject: str = ""

    def text(self) -> str:
        if self.kind == "invite":
            return (
                "An account has been created for you in the Employee Management System.\n\n"
                f"Set your password here (valid for 24 hours):\n{self.link}\n"
            )
        return (
            "We received a request to reset your password.\n\n"
            f"Choose a new password here (valid for 24 hours):\n{self.link}\n\n"
            "If you did not ask for this, ignore this email.\n"
        )


class DemoMailer:
    """Logs links instead of sending them."""

    def __init__(self, base_url: str = FRONTEND_BASE_URL):
        self.base_url = base_url
        self.outbox: list[Message] = []

    def send_invite(self, email: str, token: str) -> Message:
        return self._send(Message("invite", email, f"{self.base_url}/activate?token={token}", INVITE_SUBJECT))

    def send_password_reset(self, email: str, token: str) -> Message:
        return self._send(Message("reset", email, f"{self.base_url}/reset?token={token}", RESET_SUBJECT))

    def _send(self, message: Message) -> Message:
        self.outbox.append(message)
        self.deliver(message)
        return message

    def deliver(self, message: Message) -> None:
        logger.info("[demo] %s email to %s: %s", message.kind, message.to, message.link)


class SendGridMailer(DemoMailer):
    """
    Delivers through SendGrid. A failed delivery is logged and does not fail the
    request that triggered it; the token stays valid and can be re-issued.
    """

    def __init__(
        self,
        api_key: str,
        from_email: str,
        from_name: str = SENDGRID_FROM_NAME,
        base_url: str = FRONTEND_BASE_URL,
        api_url: str = SENDGRID_API_URL,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(base_url)
        self.from_email = from_email
        self.from_name = from_name
        self.api_url = api_url
        self._http = httpx.Client(
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=httpx.Timeout(10.0, connect=5.0),
            transport=transport,
        )

    def payload(self, message: Message) -> dict:
        return {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": message.subject,
            "content": [{"type": "text/plain", "value": message.text()}],
        }

    def deliver(self, message: Message) -> None:
        try:
            r = self._http.post(self.api_url, json=self.payload(message))
        except httpx.HTTPError as e:
            logger.error("Failed to send %s email to %s via SendGrid: %s", message.kind, message.to, e)
            return
        if r.is_success:
            logger.info("%s email sent to %s via SendGrid", message.kind, message.to)
        else:
            logger.warning("SendGrid returned %s for %s email to %s", r.status_code, message.kind, message.to)


def build_mailer() -> DemoMailer:
    """SendGrid when both the API key and sender are configured, demo otherwise."""
    if SENDGRID_API_KEY and SENDGRID_FROM_EMAIL:
        logger.info("Account emails go through SendGrid as %s", SENDGRID_FROM_EMAIL)
        return SendGridMailer(SENDGRID_API_KEY, SENDGRID_FROM_EMAIL)
    logger.info("No SendGrid key configured; account email links are logged")
    return DemoMailer()


mailer = build_mailer()
