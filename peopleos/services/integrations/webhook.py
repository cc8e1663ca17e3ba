"""Generic webhook connector: provisioning handled by an HTTP endpoint you own."""
import logging
from typing import List, Optional

import httpx

from peopleos.models import App, AppAccount, AppProvisioningRule, Employee
from peopleos.services.integrations.base import (
    ConnectionResult,
    DeprovisionResult,
    ProvisionResult,
    employee_payload,
)

logger = logging.getLogger(__name__)

TIMEOUT = 15.0


def has_webhook_config(config: dict) -> bool:
    webhook = (config or {}).get("webhook") or {}
    return any(isinstance(webhook.get(k), str) for k in ("provision_url", "deprovision_url", "test_url"))


def build_headers(api_key: Optional[str]) -> dict:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = api_key if api_key.startswith("Bearer ") else f"Bearer {api_key}"
    return headers


def _safe_json(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None


def _error_from(response: httpx.Response, body) -> str:
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


class WebhookConnector:
    """POSTs provision/deprovision requests to the URLs in app.config["webhook"]."""

    def __init__(self, config: dict):
        webhook = (config or {}).get("webhook") or {}
        self.provision_url = webhook.get("provision_url")
        self.deprovision_url = webhook.get("deprovision_url")
        self.test_url = webhook.get("test_url")
        self.api_key = webhook.get("api_key")

    def test_connection(self) -> ConnectionResult:
        url = self.test_url or self.provision_url or self.deprovision_url
        if not url:
            return ConnectionResult(False, "No webhook URL configured")
        try:
            response = httpx.get(url, headers=build_headers(self.api_key), timeout=TIMEOUT)
        except httpx.HTTPError as e:
            return ConnectionResult(False, str(e))
        if not response.is_success:
            return ConnectionResult(False, _error_from(response, _safe_json(response)))
        return ConnectionResult(True)

    def _post(self, url: str, payload: dict):
        try:
            response = httpx.post(url, json=payload, headers=build_headers(self.api_key), timeout=TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning(f"Webhook {url} failed: {e}")
            return None, str(e)
        body = _safe_json(response)
        if not response.is_success:
            return None, _error_from(response, body)
        return body, None

    def provision(
        self,
        employee: Employee,
        app: App,
        rules: List[AppProvisioningRule],
        account: Optional[AppAccount] = None,
    ) -> ProvisionResult:
        if not self.provision_url:
            return ProvisionResult(False, "No provision URL configured")

        body, error = self._post(self.provision_url, {
            "action": "provision",
            "app": {"id": app.id, "type": app.type.value, "name": app.name},
            "employee": employee_payload(employee),
            "rules": [
                {"id": r.id, "name": r.name, "condition": r.condition, "provision_data": r.provision_data}
                for r in rules
            ],
        })
        if error:
            return ProvisionResult(False, error)

        if isinstance(body, dict) and isinstance(body.get("success"), bool):
            if not body["success"]:
                return ProvisionResult(False, body.get("error") or "Provision failed")
            return ProvisionResult(
                True,
                external_user_id=body.get("external_user_id"),
                external_email=body.get("external_email"),
                provisioned_resources=body.get("provisioned_resources") or {},
            )
        return ProvisionResult(True)

    def deprovision(self, employee: Employee, app: App, account: AppAccount) -> DeprovisionResult:
        if not self.deprovision_url:
            return DeprovisionResult(False, "No deprovision URL configured")

        body, error = self._post(self.deprovision_url, {
            "action": "deprovision",
            "app": {"id": app.id, "type": app.type.value, "name": app.name},
            "employee": employee_payload(employee),
            "account": {
                "id": account.id,
                "external_user_id": account.external_user_id,
                "external_email": account.external_email,
            },
        })
        if error:
            return DeprovisionResult(False, error)

        if isinstance(body, dict) and body.get("success") is False:
            return DeprovisionResult(False, body.get("error") or "Deprovision failed")
        return DeprovisionResult(True)
