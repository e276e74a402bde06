"""Admin-editable settings with environment fallback.

Every integration reads its credentials through here at call time: the
``settings`` row wins when it holds a non-empty value, otherwise the matching
``app.core.config.settings`` attribute (environment / .env) is used. Rows are
cached for ``SETTINGS_CACHE_TTL`` seconds and the cache is dropped on every
write made through :func:`save_settings`.
"""
import json
import logging
import threading
import time

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.setting import Setting

logger = logging.getLogger(__name__)

# settings-table key -> environment attribute on app.core.config.Settings
ENV_FALLBACKS = {
    "RAZORPAY_KEY_ID": "RAZORPAY_KEY_ID",
    "RAZORPAY_SECRET_KEY": "RAZORPAY_SECRET_KEY",
    "RAZORPAY_WEBHOOK_SECRET": "RAZORPAY_WEBHOOK_SECRET",
    "SMTP_ENABLED": "SMTP_ENABLED",
    "SMTP_HOST": "SMTP_HOST",
    "SMTP_PORT": "SMTP_PORT",
    "SMTP_EMAIL": "SMTP_EMAIL",
    "SMTP_PASSWORD": "SMTP_PASSWORD",
    "SMTP_FROM_NAME": "SMTP_FROM_NAME",
    "cloudinaryCloudName": "CLOUDINARY_CLOUD_NAME",
    "cloudinaryApiKey": "CLOUDINARY_API_KEY",
    "cloudinaryApiSecret": "CLOUDINARY_API_SECRET",
    "recaptchaSiteKey": "RECAPTCHA_SITE_KEY",
    "recaptchaSecretKey": "RECAPTCHA_SECRET_KEY",
    "geminiApiKey": "GEMINI_API_KEY",
    "supportEmail": "SUPPORT_EMAIL",
}

BOOL_KEYS = {"SMTP_ENABLED"}
INT_KEYS = {"SMTP_PORT"}

_MISSING = object()
_cache: dict[str, tuple[object, float]] = {}
_cache_lock = threading.Lock()


def invalidate_cache(key: str | None = None) -> None:
    with _cache_lock:
        if key is None:
            _cache.clear()
        else:
            _cache.pop(key, None)


def _read_row(db: Session, key: str):
    now = time.monotonic()
    with _cache_lock:
        hit = _cache.get(key)
        if hit and hit[1] > now:
            return hit[0]
    row = db.get(Setting, key)
    value = row.value if row else _MISSING
    with _cache_lock:
        _cache[key] = (value, now + settings.SETTINGS_CACHE_TTL)
    return value


def get_setting(db: Session, key: str, default=None):
    value = _read_row(db, key)
    if isinstance(value, str):
        value = value.strip()
    if value is not _MISSING and value is not None and value != "":
        return value
    env_attr = ENV_FALLBACKS.get(key)
    if env_attr is not None:
        env_value = getattr(settings, env_attr, None)
        if isinstance(env_value, str):
            env_value = env_value.strip()
        if env_value is not None and env_value != "":
            return env_value
    return default


def get_str(db: Session, key: str, default: str = "") -> str:
    value = get_setting(db, key, default)
    return str(value).strip() if value is not None else default


def get_bool(db: Session, key: str, default: bool = False) -> bool:
    value = get_setting(db, key, default)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def get_int(db: Session, key: str, default: int = 0) -> int:
    value = get_setting(db, key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Setting %s is not an integer (%r); using %s", key, value, default)
        return default


def all_settings(db: Session) -> dict:
    return {s.key: s.value for s in db.query(Setting).order_by(Setting.key.asc()).all()}


def coerce_value(key: str, value):
    if key in BOOL_KEYS:
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)
    if value in ("true", "false"):
        return value == "true"
    if key in INT_KEYS and isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return value
    return value


def save_settings(db: Session, values: dict) -> dict:
    saved = {}
    for key, raw in values.items():
        value = coerce_value(key, raw)
        s = db.get(Setting, key)
        if not s:
            s = Setting(key=key, value_json=json.dumps(value))
            db.add(s)
        else:
            s.value_json = json.dumps(value)
        saved[key] = value
    db.commit()
    invalidate_cache()
    return saved
