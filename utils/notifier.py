import logging

from security.otp_codes import Purpose
from services.errors import DeliveryError
from utils.emailer import send_email

logger = logging.getLogger(__name__)

SUBJECTS = {
    Purpose.SIGNUP: "Confirm your email address",
    Purpose.PASSWORD_RESET: "Your password reset code",
}


def render_message(purpose: Purpose, code: str, ttl_minutes: int = 10):
    subject = SUBJECTS.get(purpose, "Your verification code")
    body = f"Your verification code is {code}. It expires in {ttl_minutes} minutes."
    if purpose is Purpose.PASSWORD_RESET:
        body += "\n\nIf you did not ask to reset your password, you can ignore this email."
    return subject, body


class Notifier:
    def send(self, email: str, purpose: Purpose, code: str) -> None:
        raise NotImplementedError


class EmailNotifier(Notifier):
    def __init__(self, ttl_minutes: int = 10):
        self.ttl_minutes = ttl_minutes

    def send(self, email: str, purpose: Purpose, code: str) -> None:
        subject, body = render_message(purpose, code, self.ttl_minutes)
        sent, error = send_email(email, subject, body)
        if not sent:
            raise DeliveryError(error or "Email delivery failed")


class ConsoleNotifier(Notifier):
    """Local development only: writes the message to the log instead of mailing it."""

    def __init__(self, ttl_minutes: int = 10):
        self.ttl_minutes = ttl_minutes

    def send(self, email: str, purpose: Purpose, code: str) -> None:
        subject, body = render_message(purpose, code, self.ttl_minutes)
        logger.info("[console mail] to=%s subject=%s\n%s", email, subject, body)
