import smtplib

from app.models.email_log import EmailLog
from app.services import email_service, email_templates
from app.services.email_service import notify_best_effort, process_pending_emails, queue_email


def test_unconfigured_mail_is_skipped_not_raised(db, sent_emails):
    assert notify_best_effort(db, "a@example.com", email_templates.welcome("A"), kind="welcome") is False
    log = db.query(EmailLog).one()
    assert log.status == "skipped"
    assert "not configured" in log.error
    assert sent_emails == []


def test_disabled_mail_is_skipped(db, smtp_configured, sent_emails):
    from app.services import settings_service
    settings_service.save_settings(db, {"SMTP_ENABLED": False})
    queue_email(db, "a@example.com", "Hi", "Body")
    assert db.query(EmailLog).one().status == "skipped"
    assert sent_emails == []


def test_failed_mail_is_retried_by_the_worker(db, smtp_configured, monkeypatch):
    attempts = []

    def flaky(cfg, to_email, subject, body, html=None):
        attempts.append(to_email)
        if len(attempts) == 1:
            raise smtplib.SMTPServerDisconnected("Connection unexpectedly closed")

    monkeypatch.setattr(email_service, "send_email", flaky)
    log = queue_email(db, "b@example.com", "Booking Confirmed", "See you soon", kind="booking_confirmation")
    assert log.status == "failed"
    assert "unexpectedly closed" in log.error

    counts = process_pending_emails(db)
    assert counts == {"processed": 1, "sent": 1, "failed": 0, "skipped": 0}
    db.refresh(log)
    assert log.status == "sent"
    assert log.sent_at is not None
    assert log.error is None

    assert process_pending_emails(db)["processed"] == 0


def test_templates_escape_user_text():
    subject, html, text = email_templates.contact_notification("<b>Eve</b>", "eve@example.com", "Hello <script>")
    assert "<script>" not in html
    assert "Hello <script>" in text
