"""
Provisioning orchestration: pick a connector, track the AppAccount, audit.

Used by the integrations API and by onboarding/offboarding task runners.
Everything happens inside the caller's session; nothing here commits.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from peopleos.models import App, AppAccount, Employee, utcnow
from peopleos.models.enums import AppAccountStatus, AppType
from peopleos.services.audit_service import log_audit
from peopleos.services.integrations.base import ConnectionResult, DeprovisionResult, ProvisionResult
from peopleos.services.integrations.google_workspace import GoogleWorkspaceConnector
from peopleos.services.integrations.slack import SlackConnector
from peopleos.services.integrations.webhook import WebhookConnector, has_webhook_config

logger = logging.getLogger(__name__)

PROVISION_ACTIONS = {
    AppType.GOOGLE_WORKSPACE: "GOOGLE_USER_CREATED",
    AppType.SLACK: "SLACK_USER_CREATED",
}
DEPROVISION_ACTIONS = {
    AppType.GOOGLE_WORKSPACE: "GOOGLE_USER_DISABLED",
    AppType.SLACK: "SLACK_USER_DISABLED",
}


def get_connector(app: App):
    """
    Resolve the connector for an app, or None when it cannot be reached.

    Webhook URLs in the config win over the built-in connector for the type.
    """
    if not app.is_connected:
        return None

    config = app.config or {}
    if has_webhook_config(config):
        return WebhookConnector(config)

    if app.type == AppType.GOOGLE_WORKSPACE:
        return GoogleWorkspaceConnector(config)
    if app.type == AppType.SLACK:
        if not isinstance(config.get("bot_token"), str) or not config["bot_token"]:
            return None
        return SlackConnector(config)
    return None


def test_app_connection(app: App) -> ConnectionResult:
    connector = get_connector(app)
    if connector is None:
        return ConnectionResult(False, f"No active connection for {app.name}")
    return connector.test_connection()


def _get_account(db: Session, employee_id: int, app_id: int) -> Optional[AppAccount]:
    return db.scalar(
        select(AppAccount).where(AppAccount.employee_id == employee_id, AppAccount.app_id == app_id)
    )


def provision_employee(db: Session, employee: Employee, app: App, actor: Optional[dict] = None) -> ProvisionResult:
    if not app.is_enabled:
        return ProvisionResult(False, f"App {app.name} is not enabled")

    connector = get_connector(app)
    if connector is None:
        return ProvisionResult(False, f"No active connection for {app.name}")

    rules = [r for r in app.rules if r.is_active]

    account = _get_account(db, employee.id, app.id)
    if account is None:
        account = AppAccount(employee_id=employee.id, app_id=app.id, status=AppAccountStatus.PROVISIONING)
        db.add(account)
    else:
        account.status = AppAccountStatus.PROVISIONING
        account.status_message = None
    db.flush()

    result = connector.provision(employee, app, rules, account)

    if not result.success:
        account.status = AppAccountStatus.FAILED
    elif app.type == AppType.SLACK and not result.external_user_id:
        account.status = AppAccountStatus.PENDING
    else:
        account.status = AppAccountStatus.ACTIVE
    account.status_message = result.error
    if result.external_user_id:
        account.external_user_id = result.external_user_id
    if result.external_email:
        account.external_email = result.external_email
    account.provisioned_resources = result.provisioned_resources or None
    if result.success:
        account.provisioned_at = utcnow()
        account.deprovisioned_at = None
    account.last_sync_at = utcnow()

    if result.success and app.type == AppType.GOOGLE_WORKSPACE and result.external_email:
        employee.work_email = result.external_email

    log_audit(
        db,
        PROVISION_ACTIONS.get(app.type, "APP_ACCOUNT_PROVISIONED"),
        "app_account",
        account.id,
        actor=actor,
        metadata={
            "app": app.type.value,
            "app_id": app.id,
            "employee_id": employee.id,
            "success": result.success,
            "error": result.error,
            "external_user_id": result.external_user_id,
            "external_email": result.external_email,
        },
    )
    if not result.success:
        logger.warning(f"Provisioning {app.name} for employee {employee.id} failed: {result.error}")

    result.account_id = account.id
    return result


def deprovision_employee(
    db: Session, employee: Employee, app: App, actor: Optional[dict] = None
) -> DeprovisionResult:
    account = _get_account(db, employee.id, app.id)
    if account is None:
        return DeprovisionResult(True)
    if account.status in (AppAccountStatus.DEPROVISIONED, AppAccountStatus.DISABLED):
        return DeprovisionResult(True, account_id=account.id)

    connector = get_connector(app)
    if connector is None:
        # Nothing to call; record that access has to be removed by hand
        account.status = AppAccountStatus.DISABLED
        account.status_message = f"No active connection for {app.name}"
        account.deprovisioned_at = utcnow()
        result = DeprovisionResult(True, account_id=account.id)
    else:
        result = connector.deprovision(employee, app, account)
        result.account_id = account.id
        if result.success:
            account.status = AppAccountStatus.DEPROVISIONED
            account.deprovisioned_at = utcnow()
            account.status_message = None
        else:
            account.status = AppAccountStatus.FAILED
            account.status_message = result.error
    account.last_sync_at = utcnow()

    log_audit(
        db,
        DEPROVISION_ACTIONS.get(app.type, "APP_ACCOUNT_DEPROVISIONED"),
        "app_account",
        account.id,
        actor=actor,
        metadata={
            "app": app.type.value,
            "app_id": app.id,
            "employee_id": employee.id,
            "success": result.success,
            "error": result.error,
        },
    )
    return result
