import asyncio
from typing import Optional
import resend

from app.core.errors import UpstreamError
from app.core.logger import logger


class EmailNotifier:
    """
    Transactional email over Resend.
    send() returns the provider's message id or raises UpstreamError.
    """

    def __init__(self, api_key: str, default_from: str):
        self.api_key = api_key
        self.default_from = default_from

    def _send(self, email_data: dict) -> dict:
        resend.api_key = self.api_key
        return resend.Emails.send(email_data)

    async def send(self, to: str, subject: str, html_body: str, from_email: Optional[str] = None) -> str:
        if not self.api_key:
            logger.error("❌ RESEND_API_KEY missing, cannot send email")
            raise UpstreamError("Email service not configured", reason="notifier_unavailable")
        if not to:
            raise UpstreamError("No recipient email address", reason="notifier_error")

        email_data = {
            "from": from_email or self.default_from,
            "to": [to],
            "subject": subject,
            "html": html_body,
        }

        try:
            logger.info(f"📧 Sending email via Resend to: {to}")
            response = await asyncio.to_thread(self._send, email_data)
        except Exception as e:
            logger.error(f"❌ Email send error to {to}: {e}")
            raise UpstreamError(f"Failed to send email: {e}", reason="notifier_error") from e

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info(f"✅ Email sent to {to} with subject '{subject}' (id {message_id})")
        return message_id
