"""Identity-provider webhook: keeps the users table in step with sign-ups."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from clawdtm.api.auth import ServicesDep
from clawdtm.api.webhook import WebhookVerifier
from clawdtm.db import session_scope
from clawdtm.errors import ValidationFailedError, WebhookVerificationError
from clawdtm.logs import log_json

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)


def _identity_fields(data: dict[str, Any]) -> dict[str, str | None]:
    emails = data.get("email_addresses") or []
    email = None
    if emails and isinstance(emails[0], dict):
        email = emails[0].get("email_address")
    name = " ".join(part for part in (data.get("first_name"), data.get("last_name")) if part) or None
    return {"email": email, "name": name, "image_url": data.get("image_url")}


@router.post("/identity", response_class=PlainTextResponse)
async def identity_webhook(request: Request, services: ServicesDep) -> PlainTextResponse:
    config = services.config.webhook
    if not config.secret:
        logger.error("identity webhook secret not configured")
        return PlainTextResponse("Webhook secret not configured", status_code=500)
    verifier = WebhookVerifier(config.secret, tolerance_seconds=config.tolerance_seconds, now_fn=services.now_fn)
    if verifier.missing_headers(request.headers):
        return PlainTextResponse("Missing svix headers", status_code=400)
    body = await request.body()
    result = verifier.verify(request.headers, body)
    if not result.valid:
        logger.warning("identity webhook verification failed: %s", result.error)
        raise WebhookVerificationError("Invalid signature")
    try:
        event = json.loads(body)
    except ValueError:
        raise ValidationFailedError("Invalid payload") from None
    event_type = event.get("type") if isinstance(event, dict) else None
    data = event.get("data") if isinstance(event, dict) else None
    if not isinstance(data, dict) or not data.get("id"):
        log_json(logger, logging.INFO, "identity_event_ignored", type=event_type)
        return PlainTextResponse("OK")

    external_id = str(data["id"])
    async with session_scope(services.session_factory) as session:
        if event_type in ("user.created", "user.updated"):
            _, created = await services.users.upsert_from_identity(session, external_id, **_identity_fields(data))
            log_json(logger, logging.INFO, "identity_user_upserted", external_id=external_id, created=created)
        elif event_type == "user.deleted":
            deleted = await services.users.delete_by_external_id(session, external_id)
            log_json(logger, logging.INFO, "identity_user_deleted", external_id=external_id, found=deleted)
        else:
            log_json(logger, logging.INFO, "identity_event_ignored", type=event_type)
    return PlainTextResponse("OK")
