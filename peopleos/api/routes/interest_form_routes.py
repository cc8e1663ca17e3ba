"""
Interest Form Routes

GET /interest-forms - List active forms with question/response counts
GET /interest-forms/select - Id/name pairs for dropdowns
GET /interest-forms/{form_id} - Form with questions
POST /interest-forms - Create form (HR admin)
PUT /interest-forms/{form_id} - Update form, replaces questions when given (HR admin)
DELETE /interest-forms/{form_id} - Soft delete (HR admin)
POST /interest-forms/{form_id}/duplicate - Copy form (HR admin)
GET /interest-forms/public/{job_id} - Form assigned to a job (no auth)
POST /interest-forms/public/{job_id} - Submit answers (no auth)
GET /interest-forms/candidates/{candidate_id}/responses - A candidate's submissions
"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy import func, select, update

from peopleos.core.auth import get_current_user, get_hr_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import (
    InterestFormQuestion,
    InterestFormResponse,
    InterestFormTemplate,
    Job,
    JobCandidate,
)
from peopleos.models.enums import CandidateSource, CandidateStage, InboundChannel
from peopleos.schemas.schemas import (
    CandidateFormResponse,
    FormQuestionInput,
    FormSubmission,
    FormSubmissionResponse,
    InterestFormCreate,
    InterestFormListItem,
    InterestFormResponse as InterestFormSchema,
    InterestFormUpdate,
    MessageResponse,
    PublicFormResponse,
    SelectOption,
)
from peopleos.services.audit_service import log_audit
from peopleos.services.candidate_analysis_service import run_candidate_analysis
from peopleos.services.mongo_service import FormAnswerService

router = APIRouter(prefix="/interest-forms", tags=["Interest Forms"])


# ============================================================
# HELPERS
# ============================================================

def _get_form_or_404(db, form_id: int) -> InterestFormTemplate:
    form = db.get(InterestFormTemplate, form_id)
    if not form or not form.is_active:
        raise HTTPException(status_code=404, detail="Interest form not found")
    return form


def _questions(items: List[FormQuestionInput]) -> List[InterestFormQuestion]:
    return [
        InterestFormQuestion(
            question=q.label,
            description=q.help_text,
            type=q.type,
            required=q.is_required,
            options=q.options,
            sort_order=index,
        )
        for index, q in enumerate(items)
    ]


def _clear_other_defaults(db, form_id: int) -> None:
    db.execute(
        update(InterestFormTemplate)
        .where(InterestFormTemplate.id != form_id, InterestFormTemplate.is_default.is_(True))
        .values(is_default=False)
    )


def _active_forms(db) -> List[InterestFormTemplate]:
    return db.scalars(
        select(InterestFormTemplate)
        .where(InterestFormTemplate.is_active.is_(True))
        .order_by(InterestFormTemplate.is_default.desc(), InterestFormTemplate.name)
    ).all()


# ============================================================
# TEMPLATES
# ============================================================

@router.get("", response_model=List[InterestFormListItem])
async def list_forms(user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        forms = _active_forms(db)
        response_counts = dict(db.execute(
            select(InterestFormResponse.template_id, func.count(InterestFormResponse.id))
            .group_by(InterestFormResponse.template_id)
        ).all())
        return [
            InterestFormListItem(
                **InterestFormSchema.model_validate(form).model_dump(),
                question_count=len(form.questions),
                response_count=response_counts.get(form.id, 0),
            )
            for form in forms
        ]


@router.get("/select", response_model=List[SelectOption])
async def list_for_select(user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return [SelectOption(id=f.id, name=f.name) for f in _active_forms(db)]


@router.get("/public/{job_id}", response_model=PublicFormResponse)
async def get_public_form(job_id: int):
    with get_db_session() as db:
        job = db.get(Job, job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        form = db.get(InterestFormTemplate, job.interest_form_id) if job.interest_form_id else None
        if not form or not form.is_active:
            raise HTTPException(status_code=404, detail="No interest form is assigned to this job.")

        return PublicFormResponse(job_id=job.id, job_title=job.title, form=InterestFormSchema.model_validate(form))


@router.post("/public/{job_id}", response_model=FormSubmissionResponse, status_code=201)
async def submit_response(job_id: int, request: FormSubmission, background_tasks: BackgroundTasks):
    """
    Store an interest form submission.

    The candidate is matched by candidate_id (which must belong to the job),
    then by email on the job;
    otherwise a new inbound candidate is created. Answers go to MongoDB
    and the AI analysis runs in the background.
    """
    with get_db_session() as db:
        job = db.get(Job, job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        form = db.get(InterestFormTemplate, job.interest_form_id) if job.interest_form_id else None
        if not form:
            raise HTTPException(status_code=404, detail="No interest form is assigned to this job.")

        candidate = None
        if request.candidate_id is not None:
            candidate = db.get(JobCandidate, request.candidate_id)
            if candidate is None or candidate.job_id != job.id:
                raise HTTPException(status_code=404, detail="Candidate not found")
        if candidate is None and request.email:
            candidate = db.scalar(select(JobCandidate).where(
                JobCandidate.job_id == job.id, func.lower(JobCandidate.email) == request.email.lower()
            ))

        if candidate is None:
            name = " ".join(p.strip() for p in (request.first_name, request.last_name) if p and p.strip())
            if not name or not request.email:
                raise HTTPException(status_code=400, detail="Candidate information is required")
            candidate = JobCandidate(
                job_id=job.id,
                name=name,
                email=request.email.lower(),
                phone=request.phone,
                stage=CandidateStage.APPLIED,
                source=CandidateSource.INBOUND,
                inbound_channel=InboundChannel.PEOPLEOS,
            )
            db.add(candidate)
            db.flush()

        answers = [
            {
                "question_id": q.id,
                "question": q.question,
                "type": q.type.value,
                "answer": request.answers.get(str(q.id)),
            }
            for q in form.questions
        ]
        document_id = FormAnswerService().insert(candidate.id, form.id, answers)

        response = InterestFormResponse(candidate_id=candidate.id, template_id=form.id, document_id=document_id)
        db.add(response)
        db.flush()
        log_audit(db, "INTEREST_FORM_SUBMITTED", "job_candidate", candidate.id,
                  metadata={"template_id": form.id, "response_id": response.id})
        candidate_id, response_id = candidate.id, response.id

    background_tasks.add_task(run_candidate_analysis, candidate_id)
    return FormSubmissionResponse(success=True, candidate_id=candidate_id, response_id=response_id)


@router.get("/candidates/{candidate_id}/responses", response_model=List[CandidateFormResponse])
async def get_responses(candidate_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        candidate = db.get(JobCandidate, candidate_id)
        if not candidate:
            raise HTTPException(status_code=404, detail="Candidate not found")

        answers = FormAnswerService()
        results = []
        for response in candidate.form_responses:
            doc = answers.get_by_id(response.document_id) if response.document_id else None
            results.append(CandidateFormResponse(
                id=response.id,
                template_id=response.template_id,
                template_name=response.template.name if response.template else None,
                submitted_at=response.submitted_at,
                answers=doc["answers"] if doc else [],
            ))
        return results


@router.get("/{form_id}", response_model=InterestFormSchema)
async def get_form(form_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return InterestFormSchema.model_validate(_get_form_or_404(db, form_id))


@router.post("", response_model=InterestFormSchema, status_code=201)
async def create_form(request: InterestFormCreate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        form = InterestFormTemplate(
            name=request.name.strip(),
            description=request.description,
            is_default=request.is_default,
            questions=_questions(request.questions),
        )
        db.add(form)
        db.flush()
        if form.is_default:
            _clear_other_defaults(db, form.id)
        log_audit(db, "INTEREST_FORM_CREATED", "interest_form", form.id, actor=admin, metadata={"name": form.name})
        return InterestFormSchema.model_validate(form)


@router.put("/{form_id}", response_model=InterestFormSchema)
async def update_form(form_id: int, request: InterestFormUpdate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        form = _get_form_or_404(db, form_id)

        if request.name is not None:
            form.name = request.name.strip()
        if request.description is not None:
            form.description = request.description
        if request.is_active is not None:
            form.is_active = request.is_active
        if request.is_default is not None:
            form.is_default = request.is_default
            if request.is_default:
                _clear_other_defaults(db, form.id)
        if request.questions is not None:
            form.questions = _questions(request.questions)

        db.flush()
        return InterestFormSchema.model_validate(form)


@router.delete("/{form_id}", response_model=MessageResponse)
async def delete_form(form_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        form = _get_form_or_404(db, form_id)
        form.is_active = False
        form.is_default = False
        log_audit(db, "INTEREST_FORM_DELETED", "interest_form", form.id, actor=admin)
    return MessageResponse(message="Interest form deleted")


@router.post("/{form_id}/duplicate", response_model=InterestFormSchema, status_code=201)
async def duplicate_form(form_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        source = _get_form_or_404(db, form_id)
        copy = InterestFormTemplate(
            name=f"{source.name} (Copy)",
            description=source.description,
            is_default=False,
            questions=[
                InterestFormQuestion(
                    question=q.question, description=q.description, type=q.type,
                    required=q.required, options=q.options, sort_order=q.sort_order,
                )
                for q in source.questions
            ],
        )
        db.add(copy)
        db.flush()
        return InterestFormSchema.model_validate(copy)
