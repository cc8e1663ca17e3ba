"""
Outbound events: notify external automation (n8n, Zapier, ...) of HR changes.

Any connected, enabled app whose config has an `outbound` block
({"url", "api_key", "events"}) receives a JSON POST for each event it
subscribes to (all events when `events` is omitted).
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx
from sqlalchemy import select

from peopleos.core.config import get_settings
from peopleos.db.postgres import get_db_session
from peopleos.models import App
from peopleos.services.integrations.base import ConnectionResult
from peopleos.services.integrations.webhook import build_headers
from peopleos.services.mongo_service import DeliveryLogService

logger = logging.getLogger(__name__)
settings = get_settings()

TIMEOUT = 10.0

OUTBOUND_EVENTS = [
    {"id": "offer.sent", "label": "Offer sent"},
    {"id": "offer.signed", "label": "Offer signed"},
    {"id": "offer.cancelled", "label": "Offer cancelled"},
    {"id": "employee.created", "label": "Employee created"},
    {"id": "employee.updated", "label": "Employee updated"},
    {"id": "onboarding.started", "label": "Onboarding started"},
    {"id": "onboarding.completed", "label": "Onboarding completed"},
    {"id": "offboarding.started", "label": "Offboarding started"},
    {"id": "offboarding.completed", "label": "Offboarding completed"},
]
OUTBOUND_EVENT_IDS = {e["id"] for e in OUTBOUND_EVENTS}


def extract_outbound_config(config: dict) -> Optional[dict]:
    outbound = (config or {}).get("outbound") or {}
    url = outbound.get("url")
    if not isinstance(url, str) or not url.strip():
        return None
    events = outbound.get("events")
    return {
        "url": url.strip(),
        "api_key": outbound.get("api_key"),
        "events": [e for e in events if isinstance(e, str)] if isinstance(events, list) else None,
    }


def actor_payload(actor: Optional[dict]) -> Optional[dict]:
    if not actor:
        return None
    role = actor.get("role")
    return {
        "id": actor.get("user_id"),
        "email": actor.get("email"),
        "role": getattr(role, "value", role),
    }


def build_event(event: str, data: Any, actor: Optional[dict] = None) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "event": event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data,
        "actor": actor_payload(actor),
        "source": settings.organization_slug,
    }


def _subscribers(event: str) -> List[tuple]:
    with get_db_session() as db:
        apps = db.scalars(
            select(App).where(App.is_connected.is_(True), App.is_enabled.is_(True))
        ).all()
        targets = []
        for app in apps:
            outbound = extract_outbound_config(app.config)
            if outbound is None:
                continue
            if outbound["events"] is not None and event not in outbound["events"]:
                continue
            targets.append((app.id, outbound))
        return targets


def _record(event: str, app_id: int, url: str, success: bool, status_code: int = None, error: str = None):
    try:
        DeliveryLogService().record(event, app_id, url, success, status_code=status_code, error=error)
    except Exception as e:
        logger.warning(f"Could not record delivery of {event}: {e}")


def send_outbound_event(event: str, data: Any, actor: Optional[dict] = None) -> int:
    """
    Deliver an event to every subscribed app. Background task entry point.

    Returns:
        Number of successful deliveries
    """
    if event not in OUTBOUND_EVENT_IDS:
        logger.warning(f"Unknown outbound event {event}, not sent")
        return 0

    try:
        targets = _subscribers(event)
    except Exception as e:
        logger.error(f"Failed to load outbound subscribers for {event}: {e}")
        return 0

    payload = build_event(event, data, actor)
    delivered = 0
    for app_id, outbound in targets:
        try:
            response = httpx.post(
                outbound["url"], json=payload, headers=build_headers(outbound["api_key"]), timeout=TIMEOUT
            )
        except httpx.HTTPError as e:
            logger.warning(f"Outbound event {event} to {outbound['url']} failed: {e}")
            _record(event, app_id, outbound["url"], False, error=str(e))
            continue

        if response.is_success:
            delivered += 1
            _record(event, app_id, outbound["url"], True, status_code=response.status_code)
        else:
            logger.warning(f"Outbound event {event} to {outbound['url']} returned {response.status_code}")
            _record(event, app_id, outbound["url"], False, status_code=response.status_code, error=response.text[:500])

    return delivered


def test_outbound(url: str, api_key: Optional[str] = None) -> ConnectionResult:
    payload = build_event(f"{settings.organization_slug}.test", {"message": "Connection test"})
    try:
        response = httpx.post(url, json=payload, headers=build_headers(api_key), timeout=TIMEOUT)
    except httpx.HTTPError as e:
        return ConnectionResult(False, str(e))
    if not response.is_success:
        return ConnectionResult(False, response.text or f"HTTP {response.status_code}")
    return ConnectionResult(True)
