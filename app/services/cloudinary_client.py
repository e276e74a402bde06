"""Signed Cloudinary REST upload/destroy.

Signature: SHA-1 over the sorted ``k=v`` params joined with ``&`` followed by
the API secret. ``file``, ``api_key`` and ``resource_type`` are not signed.
"""
import hashlib
import time
from dataclasses import dataclass
import logging

import requests
from sqlalchemy.orm import Session

from app.core.config import settings
from app.services import settings_service

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


@dataclass
class CloudinaryConfig:
    cloud_name: str
    api_key: str
    api_secret: str
    timeout: int = 30


class CloudinaryError(RuntimeError):
    pass


def load_config(db: Session) -> CloudinaryConfig:
    cfg = CloudinaryConfig(
        cloud_name=settings_service.get_str(db, "cloudinaryCloudName"),
        api_key=settings_service.get_str(db, "cloudinaryApiKey"),
        api_secret=settings_service.get_str(db, "cloudinaryApiSecret"),
        timeout=max(settings.HTTP_TIMEOUT, 30),
    )
    if not (cfg.cloud_name and cfg.api_key and cfg.api_secret):
        raise CloudinaryError(
            "Cloudinary credentials not configured. Please configure them in Admin Settings."
        )
    return cfg


def sign_params(params: dict, api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()


def _explain(message: str) -> str:
    if "Invalid Signature" in message:
        return "Invalid Cloudinary API Secret. Please check your API Secret in Admin Settings and ensure it matches your API Key."
    if "Invalid api_key" in message:
        return "Invalid Cloudinary API Key. Please check your API Key in Admin Settings."
    return message


class CloudinaryClient:
    def __init__(self, cfg: CloudinaryConfig):
        self.cfg = cfg
        self.base = f"https://api.cloudinary.com/v1_1/{cfg.cloud_name}/image"

    def _post(self, action: str, params: dict, files: dict | None = None) -> dict:
        params = {**params, "timestamp": int(time.time())}
        data = {**params, "api_key": self.cfg.api_key, "signature": sign_params(params, self.cfg.api_secret)}
        try:
            r = requests.post(f"{self.base}/{action}", data=data, files=files, timeout=self.cfg.timeout)
        except requests.RequestException as e:
            raise CloudinaryError(f"Cloudinary request failed: {e}") from e
        try:
            body = r.json()
        except ValueError:
            body = {"raw": r.text}
        if r.status_code >= 400:
            msg = (body.get("error") or {}).get("message") if isinstance(body.get("error"), dict) else str(body)
            raise CloudinaryError(_explain(msg or f"Cloudinary {r.status_code}"))
        return body

    def upload(self, content: bytes, filename: str, content_type: str, folder: str = "travel-agency") -> dict:
        body = self._post("upload", {"folder": folder}, files={"file": (filename or "upload", content, content_type)})
        return {"public_id": body.get("public_id"), "secure_url": body.get("secure_url")}

    def destroy(self, public_id: str) -> dict:
        return self._post("destroy", {"public_id": public_id})


def get_client(db: Session) -> CloudinaryClient:
    return CloudinaryClient(load_config(db))


def delete_images_best_effort(db: Session, public_ids: list[str]) -> None:
    """Remove replaced images from the host; failures are only logged."""
    public_ids = [p for p in public_ids if p]
    if not public_ids:
        return
    try:
        client = get_client(db)
    except CloudinaryError as e:
        logger.warning("Skipping image cleanup for %d image(s): %s", len(public_ids), e)
        return
    for pid in public_ids:
        try:
            client.destroy(pid)
        except CloudinaryError:
            logger.exception("Could not delete image %s", pid)
