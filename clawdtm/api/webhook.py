"""Signature verification for identity-provider (svix) webhooks."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass
from typing import Mapping

from clawdtm.clock import NowFn, to_epoch_ms, utcnow

SECRET_PREFIX = "whsec_"
SIGNATURE_VERSION = "v1"
REQUIRED_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None


def decode_secret(secret: str) -> bytes:
    """Signing key bytes: the base64 part of ``whsec_...``; other values are used verbatim."""
    raw = secret.strip()
    if raw.startswith(SECRET_PREFIX):
        try:
            return base64.b64decode(raw[len(SECRET_PREFIX):], validate=True)
        except (binascii.Error, ValueError):
            return raw[len(SECRET_PREFIX):].encode("utf-8")
    return raw.encode("utf-8")


def sign(secret: str, msg_id: str, timestamp: str, body: bytes | str) -> str:
    """``v1,<base64 hmac-sha256>`` over ``{id}.{timestamp}.{body}``."""
    payload = body if isinstance(body, bytes) else body.encode("utf-8")
    content = f"{msg_id}.{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(decode_secret(secret), content, hashlib.sha256).digest()
    return f"{SIGNATURE_VERSION},{base64.b64encode(digest).decode('ascii')}"


class WebhookVerifier:
    """Checks headers, timestamp tolerance and any of the offered ``v1`` signatures."""

    def __init__(self, secret: str, *, tolerance_seconds: int = 300, now_fn: NowFn = utcnow) -> None:
        self.secret = secret
        self.tolerance_seconds = tolerance_seconds
        self._now = now_fn

    @staticmethod
    def missing_headers(headers: Mapping[str, str]) -> list[str]:
        lowered = {key.lower(): value for key, value in headers.items()}
        return [name for name in REQUIRED_HEADERS if not lowered.get(name)]

    def verify(self, headers: Mapping[str, str], body: bytes | str) -> ValidationResult:
        lowered = {key.lower(): value for key, value in headers.items()}
        msg_id = lowered.get("svix-id", "")
        timestamp = lowered.get("svix-timestamp", "")
        offered = lowered.get("svix-signature", "")
        if not msg_id or not timestamp or not offered:
            return ValidationResult(valid=False, error="missing svix headers")
        try:
            sent_at = int(timestamp)
        except ValueError:
            return ValidationResult(valid=False, error="invalid timestamp")
        now_seconds = to_epoch_ms(self._now()) // 1000
        if abs(now_seconds - sent_at) > self.tolerance_seconds:
            return ValidationResult(valid=False, error="timestamp outside tolerance")
        expected = sign(self.secret, msg_id, timestamp, body).split(",", 1)[1]
        for entry in offered.split():
            version, _, signature = entry.partition(",")
            if version != SIGNATURE_VERSION or not signature:
                continue
            if hmac.compare_digest(signature.encode("ascii", "ignore"), expected.encode("ascii")):
                return ValidationResult(valid=True)
        return ValidationResult(valid=False, error="no matching signature")
