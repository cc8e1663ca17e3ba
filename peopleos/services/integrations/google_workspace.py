"""Google Workspace connector (Admin SDK Directory API).

Uses a service account with domain-wide delegation, impersonating the
workspace admin. App config keys: domain, admin_email and
service_account_key; missing keys fall back to the GOOGLE_* settings.
"""
import json
import logging
import re
import secrets
import string
from typing import List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from peopleos.core.config import get_settings
from peopleos.models import App, AppAccount, AppProvisioningRule, Employee
from peopleos.services.email_service import send_email
from peopleos.services.integrations.base import ConnectionResult, DeprovisionResult, ProvisionResult
from peopleos.services.integrations.rules import matching_rules, merge_list_field

logger = logging.getLogger(__name__)
settings = get_settings()

SCOPES = [
    "https://www.googleapis.com/auth/admin.directory.user",
    "https://www.googleapis.com/auth/admin.directory.group",
]


def generate_work_email(full_name: str, domain: str) -> str:
    """'Ada Lovelace' -> ada.lovelace@domain (first and last name part only)."""
    parts = [re.sub(r"[^a-z0-9]", "", p) for p in full_name.lower().split()]
    parts = [p for p in parts if p]
    if not parts:
        raise ValueError("Employee name is required to generate a work email")
    local = parts[0] if len(parts) == 1 else f"{parts[0]}.{parts[-1]}"
    return f"{local}@{domain}"


def generate_temporary_password() -> str:
    alphabet = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"
    core = "".join(secrets.choice(alphabet) for _ in range(10))
    return core + "".join(secrets.choice("!@#$%&*") for _ in range(2)) + secrets.choice(string.digits)


class GoogleWorkspaceConnector:

    def __init__(self, config: dict):
        config = config or {}
        self.domain = config.get("domain") or settings.google_workspace_domain
        self.admin_email = config.get("admin_email") or settings.google_workspace_admin_email
        self.service_account_key = config.get("service_account_key") or settings.google_service_account_key
        self._directory = None

    @property
    def directory(self):
        if self._directory is None:
            info = json.loads(self.service_account_key)
            credentials = service_account.Credentials.from_service_account_info(
                info, scopes=SCOPES, subject=self.admin_email
            )
            self._directory = build("admin", "directory_v1", credentials=credentials, cache_discovery=False)
        return self._directory

    def test_connection(self) -> ConnectionResult:
        try:
            self.directory.users().list(domain=self.domain, maxResults=1).execute()
            return ConnectionResult(True)
        except (HttpError, ValueError, TypeError) as e:
            return ConnectionResult(False, str(e))

    def _create_user(self, work_email: str, employee: Employee, password: str, org_unit: Optional[str]) -> str:
        names = employee.full_name.split()
        body = {
            "primaryEmail": work_email,
            "name": {
                "givenName": names[0],
                "familyName": " ".join(names[1:]) or names[0],
            },
            "password": password,
            "changePasswordAtNextLogin": True,
            "orgUnitPath": org_unit or "/",
        }
        created = self.directory.users().insert(body=body).execute()
        return created["id"]

    def provision(
        self,
        employee: Employee,
        app: App,
        rules: List[AppProvisioningRule],
        account: Optional[AppAccount] = None,
    ) -> ProvisionResult:
        matched = matching_rules(employee, rules)
        groups = merge_list_field(matched, "groups")
        # highest priority rule with an org unit wins
        org_unit = next(
            (r.provision_data.get("org_unit_path") for r in matched if (r.provision_data or {}).get("org_unit_path")),
            None,
        )

        try:
            work_email = employee.work_email or generate_work_email(employee.full_name, self.domain)
            users = self.directory.users()

            user_key = account.external_user_id if account and account.external_user_id else work_email
            try:
                existing = users.get(userKey=user_key).execute()
            except HttpError as e:
                if e.resp.status != 404:
                    raise
                existing = None

            if existing:
                if existing.get("suspended"):
                    users.update(userKey=existing["id"], body={"suspended": False}).execute()
                user_id = existing["id"]
            else:
                password = generate_temporary_password()
                user_id = self._create_user(work_email, employee, password, org_unit)
                send_email(
                    employee.personal_email,
                    f"Your {settings.app_name} work account",
                    f"<p>Hi {employee.full_name},</p>"
                    f"<p>Your work account <b>{work_email}</b> is ready. "
                    f"Temporary password: <code>{password}</code></p>"
                    "<p>You will be asked to change it on first sign-in.</p>",
                )

            added = []
            for group in groups:
                try:
                    self.directory.members().insert(
                        groupKey=group, body={"email": work_email, "role": "MEMBER"}
                    ).execute()
                    added.append(group)
                except HttpError as e:
                    logger.warning(f"Could not add {work_email} to group {group}: {e}")

            return ProvisionResult(
                True,
                external_user_id=user_id,
                external_email=work_email,
                provisioned_resources={"org_unit_path": org_unit, "groups": added},
            )
        except (HttpError, ValueError, TypeError) as e:
            logger.error(f"Google Workspace provisioning failed for employee {employee.id}: {e}")
            return ProvisionResult(False, f"Google Workspace provisioning failed: {e}")

    def deprovision(self, employee: Employee, app: App, account: AppAccount) -> DeprovisionResult:
        user_key = account.external_user_id or account.external_email or employee.work_email
        if not user_key:
            return DeprovisionResult(False, "No external user ID or email found")
        try:
            self.directory.users().update(userKey=user_key, body={"suspended": True}).execute()
            return DeprovisionResult(True)
        except (HttpError, ValueError, TypeError) as e:
            logger.error(f"Google Workspace deprovisioning failed for {user_key}: {e}")
            return DeprovisionResult(False, str(e))
