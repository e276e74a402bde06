import pytest
from google.api_core import exceptions as google_exceptions

from app.core.errors import IntegrationFailure
from app.models.contact_message import ContactMessage
from app.models.email_log import EmailLog
from app.services import chat_service, recaptcha_service, settings_service
from app.services.recaptcha_service import RecaptchaResult

from conftest import make_tour

CONTACT = {"name": "Asha", "email": "asha@example.com", "message": "Do you run trips to Ladakh in May?"}


def test_contact_rejects_short_message(client, db):
    r = client.post("/api/v1/contact", json={**CONTACT, "message": "hi"})
    assert r.status_code == 400
    assert r.json()["error"] == "Message is too short"
    assert db.query(ContactMessage).count() == 0


def test_contact_is_stored_and_forwarded_to_support(client, db, smtp_configured, sent_emails):
    r = client.post("/api/v1/contact", json=CONTACT)
    assert r.status_code == 201
    assert r.json()["data"]["status"] == "NEW"
    assert [m["to"] for m in sent_emails] == ["support@gofly.test"]
    assert db.query(EmailLog).filter(EmailLog.kind == "contact_notification").count() == 1


def test_contact_stored_even_when_mail_is_down(client, db):
    r = client.post("/api/v1/contact", json=CONTACT)
    assert r.status_code == 201
    assert db.query(ContactMessage).count() == 1
    assert {log.status for log in db.query(EmailLog).all()} == {"skipped"}


def _with_recaptcha(db):
    settings_service.save_settings(db, {"recaptchaSiteKey": "site-key", "recaptchaSecretKey": "secret-key"})


def test_contact_low_recaptcha_score_is_rejected(client, db, monkeypatch):
    _with_recaptcha(db)
    monkeypatch.setattr(recaptcha_service, "verify_token", lambda secret, token: RecaptchaResult(True, 0.1))
    r = client.post("/api/v1/contact", json={**CONTACT, "recaptchaToken": "tok"})
    assert r.status_code == 400
    assert db.query(ContactMessage).count() == 0


def test_contact_accepted_when_recaptcha_unreachable(client, db, monkeypatch):
    _with_recaptcha(db)

    def unreachable(secret, token):
        raise IntegrationFailure("reCAPTCHA verification request failed: timeout")

    monkeypatch.setattr(recaptcha_service, "verify_token", unreachable)
    r = client.post("/api/v1/contact", json={**CONTACT, "recaptchaToken": "tok"})
    assert r.status_code == 201


def test_recaptcha_config_and_verify(client, db, monkeypatch):
    assert client.get("/api/v1/recaptcha/config").json()["data"] == {"siteKey": ""}
    assert client.post("/api/v1/recaptcha/verify", json={"token": "tok"}).status_code == 500

    _with_recaptcha(db)
    assert client.get("/api/v1/recaptcha/config").json()["data"] == {"siteKey": "site-key"}
    assert client.post("/api/v1/recaptcha/verify", json={"token": ""}).status_code == 400

    monkeypatch.setattr(recaptcha_service, "verify_token",
                        lambda secret, token: RecaptchaResult(True, 0.9, action="contact"))
    r = client.post("/api/v1/recaptcha/verify", json={"token": "tok"})
    assert r.json()["data"] == {"score": 0.9, "action": "contact"}

    monkeypatch.setattr(recaptcha_service, "verify_token", lambda secret, token: RecaptchaResult(False))
    assert client.post("/api/v1/recaptcha/verify", json={"token": "tok"}).status_code == 400


def test_chat_without_key(client):
    r = client.post("/api/v1/chat", json={"message": "Any beach trips?"})
    assert r.status_code == 500
    assert "not configured" in r.json()["error"]


class _FakeReply:
    def __init__(self, text=None):
        self._text = text

    @property
    def text(self):
        if self._text is None:
            raise ValueError("The response has no candidates")
        return self._text


class _FakeModel:
    calls = []
    reply = _FakeReply("Try Goa Weekend!")
    error = None

    def __init__(self, model_name, generation_config=None):
        self.model_name = model_name

    def generate_content(self, prompt, request_options=None):
        _FakeModel.calls.append(prompt)
        if _FakeModel.error is not None:
            raise _FakeModel.error
        return _FakeModel.reply


@pytest.fixture
def gemini(db, monkeypatch):
    settings_service.save_settings(db, {"geminiApiKey": "gem-key"})
    configured = {}
    monkeypatch.setattr(chat_service.genai, "configure", lambda api_key: configured.update(api_key=api_key))
    monkeypatch.setattr(chat_service.genai, "GenerativeModel", _FakeModel)
    monkeypatch.setattr(_FakeModel, "calls", [])
    monkeypatch.setattr(_FakeModel, "reply", _FakeReply("Try Goa Weekend!"))
    monkeypatch.setattr(_FakeModel, "error", None)
    return configured


def test_chat_answers_with_published_tours_only(client, db, gemini):
    make_tour(db, slug="goa-weekend", title="Goa Weekend", city="Goa")
    make_tour(db, slug="secret-draft", title="Secret Draft", published=False)

    r = client.post("/api/v1/chat", json={
        "message": "Any beach trips?",
        "conversationHistory": [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello!"}],
    })
    assert r.status_code == 200
    assert r.json() == {"success": True, "response": "Try Goa Weekend!"}
    assert gemini == {"api_key": "gem-key"}
    prompt = _FakeModel.calls[0]
    assert "Goa Weekend" in prompt
    assert "Secret Draft" not in prompt
    assert "Assistant: Hello!" in prompt
    assert prompt.rstrip().endswith("User: Any beach trips?")


def test_chat_upstream_error(client, gemini):
    _FakeModel.error = google_exceptions.InvalidArgument("API key not valid")
    r = client.post("/api/v1/chat", json={"message": "Hello"})
    assert r.status_code == 502
    assert r.json()["error"] == "API key not valid"


def test_chat_blocked_reply(client, gemini):
    _FakeModel.reply = _FakeReply(None)
    r = client.post("/api/v1/chat", json={"message": "Hello"})
    assert r.status_code == 502
    assert r.json()["success"] is False


def test_chat_status(client):
    r = client.get("/api/v1/chat")
    assert r.json()["success"] is True
