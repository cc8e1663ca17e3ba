"""
Stage Email Routes

GET /stage-emails - List stage email templates (HR admin)
POST /stage-emails - Create template for a stage (HR admin)
PUT /stage-emails/{template_id} - Update template (HR admin)
DELETE /stage-emails/{template_id} - Delete template (HR admin)

Placeholders available in subject and body: {candidate_name}, {job_title}, {stage}
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select

from peopleos.core.auth import get_hr_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import StageEmailTemplate
from peopleos.schemas.schemas import MessageResponse, StageEmailCreate, StageEmailResponse, StageEmailUpdate
from peopleos.services.pipeline import STAGE_ORDER

router = APIRouter(prefix="/stage-emails", tags=["Stage Emails"])


def _get_template_or_404(db, template_id: int) -> StageEmailTemplate:
    template = db.get(StageEmailTemplate, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Stage email template not found")
    return template


@router.get("", response_model=List[StageEmailResponse])
async def list_stage_emails(admin: dict = Depends(get_hr_admin)):
    """Templates in pipeline stage order."""
    with get_db_session() as db:
        templates = db.scalars(select(StageEmailTemplate)).all()
        templates = sorted(templates, key=lambda t: STAGE_ORDER.index(t.stage))
        return [StageEmailResponse.model_validate(t) for t in templates]


@router.post("", response_model=StageEmailResponse, status_code=201)
async def create_stage_email(request: StageEmailCreate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        if db.scalar(select(StageEmailTemplate.id).where(StageEmailTemplate.stage == request.stage)):
            raise HTTPException(status_code=409, detail="A template for this stage already exists")

        template = StageEmailTemplate(**request.model_dump())
        db.add(template)
        db.flush()
        return StageEmailResponse.model_validate(template)


@router.put("/{template_id}", response_model=StageEmailResponse)
async def update_stage_email(template_id: int, request: StageEmailUpdate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        template = _get_template_or_404(db, template_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(template, field, value)
        return StageEmailResponse.model_validate(template)


@router.delete("/{template_id}", response_model=MessageResponse)
async def delete_stage_email(template_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        db.delete(_get_template_or_404(db, template_id))
    return MessageResponse(message="Stage email template deleted")
