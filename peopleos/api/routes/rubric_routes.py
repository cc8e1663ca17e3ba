"""
Hiring Rubric Routes

GET /rubrics - List active rubrics
GET /rubrics/select - Id/name pairs for dropdowns
GET /rubrics/{rubric_id} - Rubric with criteria
POST /rubrics - Create rubric (HR admin)
PUT /rubrics/{rubric_id} - Update rubric, new version when criteria change (HR admin)
DELETE /rubrics/{rubric_id} - Soft delete (HR admin)
POST /rubrics/{rubric_id}/duplicate - Copy rubric (HR admin)
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select

from peopleos.core.auth import get_current_user, get_hr_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import HiringRubric, HiringRubricCriterion
from peopleos.schemas.schemas import (
    MessageResponse,
    RubricCreate,
    RubricCriterionInput,
    RubricResponse,
    RubricUpdate,
    SelectOption,
)
from peopleos.services.audit_service import log_audit

router = APIRouter(prefix="/rubrics", tags=["Hiring Rubrics"])


def _get_rubric_or_404(db, rubric_id: int) -> HiringRubric:
    rubric = db.get(HiringRubric, rubric_id)
    if not rubric or not rubric.is_active:
        raise HTTPException(status_code=404, detail="Hiring rubric not found")
    return rubric


def _criteria(items: List[RubricCriterionInput]) -> List[HiringRubricCriterion]:
    return [
        HiringRubricCriterion(name=c.name, description=c.description, weight=c.weight, sort_order=index)
        for index, c in enumerate(items)
    ]


def _active_rubrics(db) -> List[HiringRubric]:
    return db.scalars(
        select(HiringRubric).where(HiringRubric.is_active.is_(True)).order_by(HiringRubric.name)
    ).all()


@router.get("", response_model=List[RubricResponse])
async def list_rubrics(user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return [RubricResponse.model_validate(r) for r in _active_rubrics(db)]


@router.get("/select", response_model=List[SelectOption])
async def list_for_select(user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return [SelectOption(id=r.id, name=r.name) for r in _active_rubrics(db)]


@router.get("/{rubric_id}", response_model=RubricResponse)
async def get_rubric(rubric_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return RubricResponse.model_validate(_get_rubric_or_404(db, rubric_id))


@router.post("", response_model=RubricResponse, status_code=201)
async def create_rubric(request: RubricCreate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        rubric = HiringRubric(
            name=request.name.strip(),
            description=request.description,
            criteria=_criteria(request.criteria),
        )
        db.add(rubric)
        db.flush()
        log_audit(db, "RUBRIC_CREATED", "hiring_rubric", rubric.id, actor=admin, metadata={"name": rubric.name})
        return RubricResponse.model_validate(rubric)


@router.put("/{rubric_id}", response_model=RubricResponse)
async def update_rubric(rubric_id: int, request: RubricUpdate, admin: dict = Depends(get_hr_admin)):
    """Replacing the criteria bumps the rubric version."""
    with get_db_session() as db:
        rubric = _get_rubric_or_404(db, rubric_id)

        if request.name is not None:
            rubric.name = request.name.strip()
        if request.description is not None:
            rubric.description = request.description
        if request.is_active is not None:
            rubric.is_active = request.is_active
        if request.criteria is not None:
            rubric.criteria = _criteria(request.criteria)
            rubric.version += 1

        db.flush()
        return RubricResponse.model_validate(rubric)


@router.delete("/{rubric_id}", response_model=MessageResponse)
async def delete_rubric(rubric_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        rubric = _get_rubric_or_404(db, rubric_id)
        rubric.is_active = False
        log_audit(db, "RUBRIC_DELETED", "hiring_rubric", rubric.id, actor=admin)
    return MessageResponse(message="Hiring rubric deleted")


@router.post("/{rubric_id}/duplicate", response_model=RubricResponse, status_code=201)
async def duplicate_rubric(rubric_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        source = _get_rubric_or_404(db, rubric_id)
        copy = HiringRubric(
            name=f"{source.name} (Copy)",
            description=source.description,
            version=1,
            criteria=[
                HiringRubricCriterion(
                    name=c.name, description=c.description, weight=c.weight, sort_order=c.sort_order
                )
                for c in source.criteria
            ],
        )
        db.add(copy)
        db.flush()
        return RubricResponse.model_validate(copy)
