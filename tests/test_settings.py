from app.core.config import settings
from app.models.setting import Setting
from app.services import settings_service


def test_row_wins_over_environment(db, monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "env-key")
    assert settings_service.get_str(db, "geminiApiKey") == "env-key"

    settings_service.save_settings(db, {"geminiApiKey": "  row-key  "})
    assert settings_service.get_str(db, "geminiApiKey") == "row-key"


def test_empty_row_falls_back_to_environment_then_default(db, monkeypatch):
    settings_service.save_settings(db, {"SMTP_HOST": "   "})
    assert settings_service.get_str(db, "SMTP_HOST") == settings.SMTP_HOST

    monkeypatch.setattr(settings, "SMTP_HOST", "")
    assert settings_service.get_str(db, "SMTP_HOST", "smtp.fallback.test") == "smtp.fallback.test"
    assert settings_service.get_str(db, "unknownKey", "dflt") == "dflt"


def test_typed_readers(db):
    settings_service.save_settings(db, {"SMTP_ENABLED": "false", "SMTP_PORT": "2525"})
    assert settings_service.get_bool(db, "SMTP_ENABLED", True) is False
    assert settings_service.get_int(db, "SMTP_PORT", 587) == 2525

    settings_service.save_settings(db, {"SMTP_PORT": "not-a-port"})
    assert settings_service.get_int(db, "SMTP_PORT", 587) == 587


def test_reads_are_cached_until_a_save(db):
    settings_service.save_settings(db, {"supportEmail": "first@gofly.test"})
    assert settings_service.get_str(db, "supportEmail") == "first@gofly.test"

    # a write that bypasses save_settings is not seen until the cache is dropped
    db.get(Setting, "supportEmail").value_json = '"second@gofly.test"'
    db.commit()
    assert settings_service.get_str(db, "supportEmail") == "first@gofly.test"

    settings_service.invalidate_cache("supportEmail")
    assert settings_service.get_str(db, "supportEmail") == "second@gofly.test"

    settings_service.save_settings(db, {"supportEmail": "third@gofly.test"})
    assert settings_service.get_str(db, "supportEmail") == "third@gofly.test"


def test_save_coerces_boolean_strings(db):
    saved = settings_service.save_settings(db, {"SMTP_ENABLED": "TRUE", "featureFlag": "false", "note": "hello"})
    assert saved == {"SMTP_ENABLED": True, "featureFlag": False, "note": "hello"}
    assert settings_service.all_settings(db) == saved
