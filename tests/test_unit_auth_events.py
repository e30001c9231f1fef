"""Unit tests for auth state notifications and the mail outbox."""

import smtplib
from unittest.mock import patch

from allowance.services.auth_events import AuthEvent, AuthStateNotifier
from allowance.services.email_service import EmailClient


class TestAuthStateNotifier:
    async def test_listener_receives_events(self):
        notifier = AuthStateNotifier()
        received = []

        async def listener(event, session):
            received.append((event, session))

        await notifier.subscribe(listener)
        delivered = await notifier.publish(AuthEvent.SIGNED_IN, "session-1")
        await notifier.publish(AuthEvent.SIGNED_OUT, None)

        assert delivered == 1
        assert received == [(AuthEvent.SIGNED_IN, "session-1"), (AuthEvent.SIGNED_OUT, None)]

    async def test_unsubscribe(self):
        notifier = AuthStateNotifier()
        received = []

        async def listener(event, session):
            received.append(event)

        unsubscribe = await notifier.subscribe(listener)
        assert notifier.listener_count == 1
        await unsubscribe()
        assert notifier.listener_count == 0

        assert await notifier.publish(AuthEvent.TOKEN_REFRESHED, None) == 0
        assert received == []

    async def test_failing_listener_does_not_block_others(self):
        notifier = AuthStateNotifier()
        received = []

        async def broken(event, session):
            raise RuntimeError("boom")

        async def healthy(event, session):
            received.append(event)

        await notifier.subscribe(broken)
        await notifier.subscribe(healthy)

        assert await notifier.publish(AuthEvent.USER_UPDATED, None) == 1
        assert received == [AuthEvent.USER_UPDATED]

    def test_event_values(self):
        assert AuthEvent.PASSWORD_RECOVERY.value == "PASSWORD_RECOVERY"
        assert AuthEvent("SIGNED_IN") is AuthEvent.SIGNED_IN


class TestEmailClient:
    async def test_without_host_mail_is_queued(self):
        mailer = EmailClient(None, 587)
        sent = await mailer.send("Hello", "Body text", "kid@test.de")
        assert sent is False

        [message] = mailer.deliveries()
        assert message["To"] == "kid@test.de"
        assert message["Subject"] == "Hello"
        assert "Body text" in message.get_content()

    async def test_sends_through_smtp(self):
        mailer = EmailClient("smtp.test", 2525, username="u", password="p", sender="from@test.de")
        with patch("allowance.services.email_service.smtplib.SMTP") as smtp_cls:
            sent = await mailer.send("Hi", "Body", "to@test.de")

        assert sent is True
        smtp = smtp_cls.return_value.__enter__.return_value
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("u", "p")
        smtp.send_message.assert_called_once()
        assert mailer.deliveries() == ()

    async def test_smtp_failure_falls_back_to_outbox(self):
        mailer = EmailClient("smtp.test", 2525, use_tls=False)
        with patch("allowance.services.email_service.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.__enter__.return_value.send_message.side_effect = (
                smtplib.SMTPException("down")
            )
            sent = await mailer.send("Hi", "Body", "to@test.de")

        assert sent is False
        assert len(mailer.deliveries()) == 1

    async def test_outbox_keeps_only_newest(self):
        mailer = EmailClient(None, 587, outbox_size=2)
        for n in range(3):
            await mailer.send(f"Mail {n}", "Body", "kid@test.de")

        assert [m["Subject"] for m in mailer.deliveries()] == ["Mail 1", "Mail 2"]

    def test_clear(self):
        mailer = EmailClient(None, 587)
        mailer._outbox.append(mailer.build_message("s", "b", "r@test.de"))
        mailer.clear()
        assert mailer.deliveries() == ()
