"""
Audit Service - append-only record of who changed what.
"""
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from peopleos.models import AuditLog
from peopleos.models.enums import ActorType

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    action: str,
    resource_type: str,
    resource_id: Any = None,
    actor: Optional[dict] = None,
    metadata: Optional[dict] = None,
) -> AuditLog:
    """
    Add an audit record to the current session.

    Args:
        actor: the dict from get_current_user, or None for system actions
        metadata: free-form JSON details
    """
    entry = AuditLog(
        actor_id=actor["user_id"] if actor else None,
        actor_email=actor["email"] if actor else None,
        actor_type=ActorType.user if actor else ActorType.system,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=metadata,
    )
    db.add(entry)
    logger.debug(f"audit {action} {resource_type}:{resource_id}")
    return entry
