import pytest
from unittest.mock import patch

from app.core.errors import UpstreamError
from app.services.notification_service import EmailNotifier


@pytest.mark.asyncio
@patch("app.services.notification_service.resend.Emails.send")
async def test_send_email_mocked(mock_send):
    mock_send.return_value = {"id": "re_123"}
    notifier = EmailNotifier("re_test_key", "AI Receptionist <noreply@example.com>")

    message_id = await notifier.send("owner@test.com", "AI Call: BOOK", "<p>hi</p>")

    assert message_id == "re_123"
    mock_send.assert_called_once()
    email_data = mock_send.call_args[0][0]
    assert email_data["from"] == "AI Receptionist <noreply@example.com>"
    assert email_data["to"] == ["owner@test.com"]
    assert email_data["subject"] == "AI Call: BOOK"
    assert email_data["html"] == "<p>hi</p>"


@pytest.mark.asyncio
@patch("app.services.notification_service.resend.Emails.send")
async def test_send_email_custom_sender(mock_send):
    mock_send.return_value = {"id": "re_456"}
    notifier = EmailNotifier("re_test_key", "default@example.com")

    await notifier.send("owner@test.com", "s", "b", from_email="clinic@example.com")

    assert mock_send.call_args[0][0]["from"] == "clinic@example.com"


@pytest.mark.asyncio
@patch("app.services.notification_service.resend.Emails.send")
async def test_send_email_failure_is_upstream_error(mock_send):
    mock_send.side_effect = Exception("Resend is down")
    notifier = EmailNotifier("re_test_key", "default@example.com")

    with pytest.raises(UpstreamError) as exc:
        await notifier.send("owner@test.com", "s", "b")
    assert exc.value.reason == "notifier_error"


@pytest.mark.asyncio
@patch("app.services.notification_service.resend.Emails.send")
async def test_send_email_not_configured(mock_send):
    notifier = EmailNotifier("", "default@example.com")

    with pytest.raises(UpstreamError) as exc:
        await notifier.send("owner@test.com", "s", "b")
    assert exc.value.reason == "notifier_unavailable"
    mock_send.assert_not_called()


@pytest.mark.asyncio
@patch("app.services.notification_service.resend.Emails.send")
async def test_send_email_without_sender_uses_default(mock_send):
    mock_send.return_value = {"id": "re_789"}
    notifier = EmailNotifier("re_test_key", "default@example.com")

    await notifier.send("owner@test.com", "s", "b", from_email=None)

    assert mock_send.call_args[0][0]["from"] == "default@example.com"
