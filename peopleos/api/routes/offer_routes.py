"""
Offer Routes

Templates (HR admin):
GET /offers/templates - List active offer templates
GET /offers/templates/{template_id} - Get template
POST /offers/templates - Create template
PUT /offers/templates/{template_id} - Update template
DELETE /offers/templates/{template_id} - Soft delete

Offers:
GET /offers - List offers (filters: status, candidate_email, search)
POST /offers/preview - Render a template without saving
GET /offers/public/{token} - Candidate view of an offer (no auth)
POST /offers/public/{token}/sign - Candidate signs the offer (no auth)
GET /offers/{offer_id} - Offer with events
POST /offers - Create DRAFT offer
PUT /offers/{offer_id} - Update offer (not after it is signed or closed)
POST /offers/{offer_id}/send - Email the signing link
POST /offers/{offer_id}/resend - Email the signing link again
POST /offers/{offer_id}/cancel - Cancel offer
POST /offers/{offer_id}/restore - Back to DRAFT after a cancel
POST /offers/{offer_id}/sign - Record a signature collected outside the system
"""

import logging
import math
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy import func, or_, select

from peopleos.core.auth import get_hr_admin
from peopleos.core.config import get_settings
from peopleos.db.postgres import get_db_session
from peopleos.models import Employee, JobCandidate, Offer, OfferEvent, OfferTemplate, utcnow
from peopleos.models.enums import EmployeeStatus, OfferStatus
from peopleos.schemas.schemas import (
    MessageResponse,
    OfferCreate,
    OfferListResponse,
    OfferPreviewRequest,
    OfferPreviewResponse,
    OfferResponse,
    OfferSignRequest,
    OfferTemplateCreate,
    OfferTemplateResponse,
    OfferTemplateUpdate,
    OfferUpdate,
    PublicOfferResponse,
)
from peopleos.services.audit_service import log_audit
from peopleos.services.email_service import send_email
from peopleos.services.integrations.outbound import send_outbound_event
from peopleos.utils.templating import render_template

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/offers", tags=["Offers"])
settings = get_settings()

LOCKED_STATUSES = (OfferStatus.SIGNED, OfferStatus.DECLINED, OfferStatus.EXPIRED, OfferStatus.CANCELLED)
RESENDABLE_STATUSES = (OfferStatus.DRAFT, OfferStatus.SENT, OfferStatus.VIEWED)
SIGNABLE_STATUSES = (OfferStatus.SENT, OfferStatus.VIEWED)
# Never shown through the public link
HIDDEN_STATUSES = (OfferStatus.DRAFT, OfferStatus.CANCELLED)


# ============================================================
# HELPERS
# ============================================================

def _get_template_or_404(db, template_id: int) -> OfferTemplate:
    template = db.get(OfferTemplate, template_id)
    if not template or not template.is_active:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


def _get_offer_or_404(db, offer_id: int) -> Offer:
    offer = db.get(Offer, offer_id)
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


def _add_event(offer: Offer, event_type: str, description: str, details: dict = None) -> None:
    offer.events.append(OfferEvent(type=event_type, description=description, details=details))


def _response(db, offer: Offer) -> OfferResponse:
    db.flush()
    response = OfferResponse.model_validate(offer)
    response.events = sorted(response.events, key=lambda e: (e.created_at, e.id), reverse=True)
    return response


def offer_payload(offer: Offer) -> dict:
    return {
        "id": offer.id,
        "status": offer.status.value,
        "employee_id": offer.employee_id,
        "candidate_id": offer.candidate_id,
        "candidate_name": offer.candidate_name,
        "candidate_email": offer.candidate_email,
        "variables": offer.variables or {},
    }


def signing_link(offer: Offer) -> str:
    return f"{settings.app_base_url.rstrip('/')}/offer/{offer.public_token}/sign"


def _get_public_offer_or_404(db, token: str) -> Offer:
    offer = db.scalar(select(Offer).where(Offer.public_token == token))
    if not offer or offer.status in HIDDEN_STATUSES:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


def _public_response(offer: Offer) -> PublicOfferResponse:
    return PublicOfferResponse(
        candidate_name=offer.candidate_name,
        rendered_html=offer.rendered_html,
        status=offer.status,
        esign_signed_at=offer.esign_signed_at,
    )


def mark_signed(db, offer: Offer, description: str, details: dict, actor: Optional[dict] = None) -> dict:
    """SIGNED offer, OFFER_SIGNED employee. Returns the outbound event payload."""
    if offer.status not in SIGNABLE_STATUSES:
        raise HTTPException(status_code=400, detail="Offer cannot be signed")

    offer.status = OfferStatus.SIGNED
    offer.esign_signed_at = utcnow()
    offer.employee.status = EmployeeStatus.OFFER_SIGNED
    _add_event(offer, "signed", description, details)

    log_audit(db, "OFFER_SIGNED", "offer", offer.id, actor=actor, metadata={"manual": actor is not None})
    db.flush()
    return offer_payload(offer)


def _offer_email(offer: Offer) -> Tuple[str, str, str]:
    """Recipient, subject and body of the signing email."""
    link = signing_link(offer)
    role = (offer.variables or {}).get("role") or (offer.variables or {}).get("job_title") or "the role"
    html = (
        f"<p>Hi {offer.candidate_name},</p>"
        f"<p>We are delighted to offer you {role}. You can review and sign your offer here:</p>"
        f"<p><a href=\"{link}\">{link}</a></p>"
    )
    return offer.candidate_email, f"Your offer from {settings.app_name}", html


def _parse_date(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _parse_amount(value) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(str(value).replace(",", ""))
    except ValueError:
        return None


def resolve_employee(db, request: OfferCreate, admin: dict) -> Employee:
    """
    Employee the offer belongs to: the given employee, the candidate's
    employee, a match on personal email, or a new CANDIDATE record.
    """
    if request.employee_id is not None:
        employee = db.get(Employee, request.employee_id)
        if not employee:
            raise HTTPException(status_code=404, detail="Employee not found")
        return employee

    if request.candidate_id is not None:
        candidate = db.get(JobCandidate, request.candidate_id)
        if candidate and candidate.employee_id:
            return db.get(Employee, candidate.employee_id)

    email = request.candidate_email.lower()
    employee = db.scalar(select(Employee).where(func.lower(Employee.personal_email) == email))
    if employee:
        return employee

    variables = request.variables
    employee = Employee(
        full_name=request.candidate_name.strip(),
        personal_email=email,
        job_title=variables.get("role") or variables.get("job_title"),
        department=variables.get("department"),
        salary_amount=_parse_amount(variables.get("salary")),
        salary_currency=variables.get("currency") or "USD",
        start_date=_parse_date(variables.get("start_date")),
        location=variables.get("location"),
        status=EmployeeStatus.CANDIDATE,
    )
    db.add(employee)
    db.flush()
    log_audit(db, "EMPLOYEE_CREATED", "employee", employee.id, actor=admin, metadata={"source": "offer"})
    return employee


# ============================================================
# TEMPLATES
# ============================================================

@router.get("/templates", response_model=List[OfferTemplateResponse])
async def list_templates(admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        templates = db.scalars(
            select(OfferTemplate).where(OfferTemplate.is_active.is_(True)).order_by(OfferTemplate.name)
        ).all()
        return [OfferTemplateResponse.model_validate(t) for t in templates]


@router.get("/templates/{template_id}", response_model=OfferTemplateResponse)
async def get_template(template_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        return OfferTemplateResponse.model_validate(_get_template_or_404(db, template_id))


@router.post("/templates", response_model=OfferTemplateResponse, status_code=201)
async def create_template(request: OfferTemplateCreate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        template = OfferTemplate(**request.model_dump())
        db.add(template)
        db.flush()
        return OfferTemplateResponse.model_validate(template)


@router.put("/templates/{template_id}", response_model=OfferTemplateResponse)
async def update_template(template_id: int, request: OfferTemplateUpdate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        template = _get_template_or_404(db, template_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            if field in ("name", "body_html", "is_active") and value is None:
                continue
            setattr(template, field, value)
        db.flush()
        return OfferTemplateResponse.model_validate(template)


@router.delete("/templates/{template_id}", response_model=MessageResponse)
async def delete_template(template_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        _get_template_or_404(db, template_id).is_active = False
    return MessageResponse(message="Offer template deleted")


# ============================================================
# OFFERS
# ============================================================

@router.get("", response_model=OfferListResponse)
async def list_offers(
    status: Optional[OfferStatus] = Query(None),
    candidate_email: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_hr_admin)
):
    conditions = []
    if status:
        conditions.append(Offer.status == status)
    if candidate_email:
        conditions.append(func.lower(Offer.candidate_email) == candidate_email.lower())
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(or_(Offer.candidate_name.ilike(pattern), Offer.candidate_email.ilike(pattern)))

    with get_db_session() as db:
        total = db.scalar(select(func.count(Offer.id)).where(*conditions))
        offers = db.scalars(
            select(Offer)
            .where(*conditions)
            .order_by(Offer.created_at.desc(), Offer.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return OfferListResponse(
            offers=[OfferResponse.model_validate(o) for o in offers],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if total else 0,
        )


@router.post("/preview", response_model=OfferPreviewResponse)
async def preview_offer(request: OfferPreviewRequest, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        template = _get_template_or_404(db, request.template_id)
        return OfferPreviewResponse(rendered_html=render_template(template.body_html, request.variables))


@router.get("/public/{token}", response_model=PublicOfferResponse)
async def get_public_offer(token: str):
    """The candidate opened the signing link. SENT becomes VIEWED."""
    with get_db_session() as db:
        offer = _get_public_offer_or_404(db, token)
        if offer.status == OfferStatus.SENT:
            offer.status = OfferStatus.VIEWED
            _add_event(offer, "viewed", "Candidate opened the offer")
        return _public_response(offer)


@router.post("/public/{token}/sign", response_model=PublicOfferResponse)
async def sign_public_offer(token: str, request: OfferSignRequest, background_tasks: BackgroundTasks):
    with get_db_session() as db:
        offer = _get_public_offer_or_404(db, token)
        offer.signature_name = request.signature
        offer.signature_image = request.signature_image
        payload = mark_signed(
            db, offer, "Offer signed by the candidate",
            {"signed_by": offer.candidate_email, "signature": request.signature},
        )
        response = _public_response(offer)

    background_tasks.add_task(send_outbound_event, "offer.signed", payload, None)
    logger.info(f"Offer {payload['id']} signed by the candidate")
    return response


@router.get("/{offer_id}", response_model=OfferResponse)
async def get_offer(offer_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        return _response(db, _get_offer_or_404(db, offer_id))


@router.post("", response_model=OfferResponse, status_code=201)
async def create_offer(request: OfferCreate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        template = _get_template_or_404(db, request.template_id)
        employee = resolve_employee(db, request, admin)

        offer = Offer(
            employee_id=employee.id,
            candidate_id=request.candidate_id,
            template_id=template.id,
            candidate_name=request.candidate_name.strip(),
            candidate_email=request.candidate_email.lower(),
            variables=dict(request.variables),
            rendered_html=render_template(template.body_html, request.variables),
            status=OfferStatus.DRAFT,
            created_by_id=admin["user_id"],
        )
        _add_event(offer, "created", "Offer created")
        db.add(offer)
        db.flush()

        log_audit(db, "OFFER_CREATED", "offer", offer.id, actor=admin, metadata={"employee_id": employee.id})
        return _response(db, offer)


@router.put("/{offer_id}", response_model=OfferResponse)
async def update_offer(offer_id: int, request: OfferUpdate, admin: dict = Depends(get_hr_admin)):
    """Template or variable changes re-render the offer."""
    with get_db_session() as db:
        offer = _get_offer_or_404(db, offer_id)
        if offer.status in LOCKED_STATUSES:
            raise HTTPException(status_code=400, detail="Signed or closed offers cannot be edited")

        rerender = False
        if request.template_id is not None and request.template_id != offer.template_id:
            offer.template_id = _get_template_or_404(db, request.template_id).id
            rerender = True
        if request.candidate_name is not None:
            offer.candidate_name = request.candidate_name.strip()
        if request.candidate_email is not None:
            offer.candidate_email = request.candidate_email.lower()
        if request.variables is not None:
            offer.variables = dict(request.variables)
            rerender = True

        if rerender and offer.template_id:
            template = db.get(OfferTemplate, offer.template_id)
            offer.rendered_html = render_template(template.body_html, offer.variables)
        _add_event(offer, "updated", "Offer updated")

        return _response(db, offer)


@router.post("/{offer_id}/send", response_model=OfferResponse)
async def send_offer(offer_id: int, background_tasks: BackgroundTasks, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        offer = _get_offer_or_404(db, offer_id)
        if offer.status != OfferStatus.DRAFT:
            raise HTTPException(status_code=400, detail="Only draft offers can be sent")

        email = _offer_email(offer)
        offer.status = OfferStatus.SENT
        offer.esign_provider = "internal"
        offer.esign_sent_at = utcnow()
        offer.employee.status = EmployeeStatus.OFFER_SENT
        _add_event(offer, "sent", f"Offer sent to {offer.candidate_email}")

        log_audit(db, "OFFER_SENT", "offer", offer.id, actor=admin)
        response = _response(db, offer)
        payload = offer_payload(offer)

    background_tasks.add_task(send_email, *email)
    background_tasks.add_task(send_outbound_event, "offer.sent", payload, admin)
    return response


@router.post("/{offer_id}/resend", response_model=OfferResponse)
async def resend_offer(offer_id: int, background_tasks: BackgroundTasks, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        offer = _get_offer_or_404(db, offer_id)
        if offer.status not in RESENDABLE_STATUSES:
            raise HTTPException(status_code=400, detail="Only draft or previously sent offers can be resent")

        email = _offer_email(offer)
        if offer.status == OfferStatus.DRAFT:
            offer.status = OfferStatus.SENT
            offer.esign_provider = "internal"
            offer.employee.status = EmployeeStatus.OFFER_SENT
        offer.esign_sent_at = utcnow()
        _add_event(offer, "resent", f"Offer resent to {offer.candidate_email}")
        response = _response(db, offer)

    background_tasks.add_task(send_email, *email)
    return response


@router.post("/{offer_id}/cancel", response_model=OfferResponse)
async def cancel_offer(offer_id: int, background_tasks: BackgroundTasks, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        offer = _get_offer_or_404(db, offer_id)
        if offer.status == OfferStatus.SIGNED:
            raise HTTPException(status_code=400, detail="Cannot cancel signed offers")

        offer.status = OfferStatus.CANCELLED
        _add_event(offer, "cancelled", "Offer cancelled")
        log_audit(db, "OFFER_CANCELLED", "offer", offer.id, actor=admin)
        response = _response(db, offer)
        payload = offer_payload(offer)

    background_tasks.add_task(send_outbound_event, "offer.cancelled", payload, admin)
    return response


@router.post("/{offer_id}/restore", response_model=OfferResponse)
async def restore_offer(offer_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        offer = _get_offer_or_404(db, offer_id)
        if offer.status != OfferStatus.CANCELLED:
            raise HTTPException(status_code=400, detail="Only cancelled offers can be restored")

        offer.status = OfferStatus.DRAFT
        _add_event(offer, "restored", "Offer restored to draft")
        return _response(db, offer)


@router.post("/{offer_id}/sign", response_model=OfferResponse)
async def manual_sign(offer_id: int, background_tasks: BackgroundTasks, admin: dict = Depends(get_hr_admin)):
    """Record a signature collected outside the system."""
    with get_db_session() as db:
        offer = _get_offer_or_404(db, offer_id)
        payload = mark_signed(db, offer, "Offer marked as signed", {"signed_by": admin["email"]}, actor=admin)
        response = _response(db, offer)

    background_tasks.add_task(send_outbound_event, "offer.signed", payload, admin)
    return response
