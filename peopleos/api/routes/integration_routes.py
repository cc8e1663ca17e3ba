"""
Integration Routes (admin)

Apps:
GET /integrations/apps - List apps
POST /integrations/apps - Create app
GET /integrations/apps/{app_id} - App details
PUT /integrations/apps/{app_id} - Update app
DELETE /integrations/apps/{app_id} - Delete app
POST /integrations/apps/{app_id}/test - Test the app connection

Provisioning rules:
GET /integrations/apps/{app_id}/rules - Rules of an app
POST /integrations/apps/{app_id}/rules - Add rule
PUT /integrations/rules/{rule_id} - Update rule
DELETE /integrations/rules/{rule_id} - Delete rule

Accounts:
GET /integrations/employees/{employee_id}/accounts - Employee's app accounts
POST /integrations/apps/{app_id}/provision/{employee_id} - Provision account
POST /integrations/apps/{app_id}/deprovision/{employee_id} - Remove account

Outbound events:
GET /integrations/outbound/events - Event catalog
POST /integrations/outbound/test - Send a test event to a URL
GET /integrations/outbound/deliveries - Recent delivery attempts
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select

from peopleos.core.auth import get_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import App, AppAccount, AppProvisioningRule, Employee
from peopleos.schemas.schemas import (
    AppAccountResponse,
    AppCreate,
    AppResponse,
    AppUpdate,
    IntegrationResult,
    MessageResponse,
    OutboundEventInfo,
    OutboundTestRequest,
    ProvisioningRuleCreate,
    ProvisioningRuleResponse,
    ProvisioningRuleUpdate,
)
from peopleos.services.audit_service import log_audit
from peopleos.services.integrations.outbound import OUTBOUND_EVENTS, test_outbound
from peopleos.services.integrations.provisioning import deprovision_employee, provision_employee, test_app_connection
from peopleos.services.mongo_service import DeliveryLogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["Integrations"])


def _get_app_or_404(db, app_id: int) -> App:
    app = db.get(App, app_id)
    if not app:
        raise HTTPException(status_code=404, detail="App not found")
    return app


def _get_rule_or_404(db, rule_id: int) -> AppProvisioningRule:
    rule = db.get(AppProvisioningRule, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Provisioning rule not found")
    return rule


def _get_employee_or_404(db, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


def _name_taken(db, name: str, exclude_id: int = None) -> bool:
    query = select(App.id).where(func.lower(App.name) == name.lower())
    if exclude_id is not None:
        query = query.where(App.id != exclude_id)
    return db.scalar(query.limit(1)) is not None


def _account_response(account: AppAccount) -> AppAccountResponse:
    return AppAccountResponse(
        id=account.id,
        employee_id=account.employee_id,
        app_id=account.app_id,
        app_name=account.app.name,
        status=account.status,
        status_message=account.status_message,
        external_user_id=account.external_user_id,
        external_email=account.external_email,
        provisioned_resources=account.provisioned_resources,
        provisioned_at=account.provisioned_at,
        deprovisioned_at=account.deprovisioned_at,
    )


# ============================================================
# APPS
# ============================================================

@router.get("/apps", response_model=List[AppResponse])
async def list_apps(admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        apps = db.scalars(select(App).order_by(App.name)).all()
        return [AppResponse.model_validate(a) for a in apps]


@router.post("/apps", response_model=AppResponse, status_code=201)
async def create_app(request: AppCreate, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        name = request.name.strip()
        if _name_taken(db, name):
            raise HTTPException(status_code=409, detail="An app with this name already exists")

        app = App(
            name=name,
            type=request.type,
            description=request.description,
            is_enabled=request.is_enabled,
            is_connected=request.is_connected,
            config=request.config,
        )
        db.add(app)
        db.flush()
        log_audit(db, "APP_CREATED", "app", app.id, actor=admin, metadata={"type": app.type.value})
        return AppResponse.model_validate(app)


@router.get("/apps/{app_id}", response_model=AppResponse)
async def get_app(app_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        return AppResponse.model_validate(_get_app_or_404(db, app_id))


@router.put("/apps/{app_id}", response_model=AppResponse)
async def update_app(app_id: int, request: AppUpdate, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        app = _get_app_or_404(db, app_id)
        changes = request.model_dump(exclude_unset=True)

        if changes.get("name"):
            changes["name"] = changes["name"].strip()
            if _name_taken(db, changes["name"], exclude_id=app.id):
                raise HTTPException(status_code=409, detail="An app with this name already exists")

        for field, value in changes.items():
            if field in ("name", "is_enabled", "is_connected", "config") and value is None:
                continue
            setattr(app, field, value)

        log_audit(db, "APP_UPDATED", "app", app.id, actor=admin, metadata={"fields": sorted(changes)})
        db.flush()
        return AppResponse.model_validate(app)


@router.delete("/apps/{app_id}", response_model=MessageResponse)
async def delete_app(app_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        app = _get_app_or_404(db, app_id)
        log_audit(db, "APP_DELETED", "app", app.id, actor=admin, metadata={"name": app.name})
        db.delete(app)
    return MessageResponse(message="App deleted")


@router.post("/apps/{app_id}/test", response_model=IntegrationResult)
async def check_connection(app_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        app = _get_app_or_404(db, app_id)
        result = test_app_connection(app)
    return IntegrationResult(success=result.success, error=result.error)


# ============================================================
# PROVISIONING RULES
# ============================================================

@router.get("/apps/{app_id}/rules", response_model=List[ProvisioningRuleResponse])
async def list_rules(app_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        app = _get_app_or_404(db, app_id)
        return [ProvisioningRuleResponse.model_validate(r) for r in app.rules]


@router.post("/apps/{app_id}/rules", response_model=ProvisioningRuleResponse, status_code=201)
async def create_rule(app_id: int, request: ProvisioningRuleCreate, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        app = _get_app_or_404(db, app_id)
        rule = AppProvisioningRule(app_id=app.id, **request.model_dump())
        db.add(rule)
        db.flush()
        return ProvisioningRuleResponse.model_validate(rule)


@router.put("/rules/{rule_id}", response_model=ProvisioningRuleResponse)
async def update_rule(rule_id: int, request: ProvisioningRuleUpdate, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        rule = _get_rule_or_404(db, rule_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            setattr(rule, field, value)
        db.flush()
        return ProvisioningRuleResponse.model_validate(rule)


@router.delete("/rules/{rule_id}", response_model=MessageResponse)
async def delete_rule(rule_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        db.delete(_get_rule_or_404(db, rule_id))
    return MessageResponse(message="Provisioning rule deleted")


# ============================================================
# ACCOUNTS
# ============================================================

@router.get("/employees/{employee_id}/accounts", response_model=List[AppAccountResponse])
async def list_employee_accounts(employee_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        _get_employee_or_404(db, employee_id)
        accounts = db.scalars(
            select(AppAccount).where(AppAccount.employee_id == employee_id).order_by(AppAccount.id)
        ).all()
        return [_account_response(a) for a in accounts]


@router.post("/apps/{app_id}/provision/{employee_id}", response_model=IntegrationResult)
async def provision(app_id: int, employee_id: int, admin: dict = Depends(get_admin)):
    """Failures come back as success=false, not as an HTTP error."""
    with get_db_session() as db:
        app = _get_app_or_404(db, app_id)
        employee = _get_employee_or_404(db, employee_id)
        result = provision_employee(db, employee, app, actor=admin)
        return IntegrationResult(
            success=result.success,
            error=result.error,
            external_user_id=result.external_user_id,
            external_email=result.external_email,
            account_id=result.account_id,
        )


@router.post("/apps/{app_id}/deprovision/{employee_id}", response_model=IntegrationResult)
async def deprovision(app_id: int, employee_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        app = _get_app_or_404(db, app_id)
        employee = _get_employee_or_404(db, employee_id)
        result = deprovision_employee(db, employee, app, actor=admin)
        return IntegrationResult(success=result.success, error=result.error, account_id=result.account_id)


# ============================================================
# OUTBOUND EVENTS
# ============================================================

@router.get("/outbound/events", response_model=List[OutboundEventInfo])
async def list_outbound_events(admin: dict = Depends(get_admin)):
    return OUTBOUND_EVENTS


@router.post("/outbound/test", response_model=IntegrationResult)
async def send_test_event(request: OutboundTestRequest, admin: dict = Depends(get_admin)):
    result = test_outbound(request.url.strip(), request.api_key)
    return IntegrationResult(success=result.success, error=result.error)


@router.get("/outbound/deliveries", response_model=List[Dict[str, Any]])
async def list_deliveries(limit: int = Query(50, ge=1, le=200), admin: dict = Depends(get_admin)):
    try:
        return DeliveryLogService().recent(limit)
    except Exception as e:
        logger.error(f"Failed to read outbound deliveries: {e}")
        raise HTTPException(status_code=503, detail="Delivery log unavailable")
