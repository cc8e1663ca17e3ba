"""
Audit Routes

GET /audit - List audit records, newest first (admin)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select

from peopleos.core.auth import get_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import AuditLog
from peopleos.schemas.schemas import AuditLogResponse

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=List[AuditLogResponse])
async def list_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: dict = Depends(get_admin)
):
    query = select(AuditLog)
    if action:
        query = query.where(AuditLog.action == action)
    if resource_type:
        query = query.where(AuditLog.resource_type == resource_type)
    if resource_id:
        query = query.where(AuditLog.resource_id == resource_id)

    with get_db_session() as db:
        logs = db.scalars(
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit)
        ).all()
        return [AuditLogResponse.model_validate(log) for log in logs]
