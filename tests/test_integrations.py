"""Tests for apps, provisioning rules, connectors and outbound events."""

from unittest.mock import MagicMock, patch

import httpx
import pytest
from sqlalchemy import select

from peopleos.db.postgres import get_db_session
from peopleos.models import App, AppAccount, AppProvisioningRule, Employee
from peopleos.models.enums import AppAccountStatus, AppType, EmployeeStatus
from peopleos.services.integrations import outbound, provisioning, rules
from peopleos.services.integrations.slack import SlackConnector
from peopleos.services.integrations.webhook import WebhookConnector, build_headers
from tests.conftest import create_employee

WEBHOOK_CONFIG = {
    "webhook": {
        "provision_url": "https://hooks.example.com/provision",
        "deprovision_url": "https://hooks.example.com/deprovision",
        "api_key": "secret",
    }
}


def ok_response(body=None, status_code=200):
    response = MagicMock()
    response.is_success = 200 <= status_code < 300
    response.status_code = status_code
    response.json.return_value = body
    response.text = ""
    return response


def add_app(**fields) -> int:
    values = {"name": "Ops Hook", "type": AppType.WEBHOOK, "is_connected": True, "config": WEBHOOK_CONFIG}
    values.update(fields)
    with get_db_session() as db:
        app = App(**values)
        db.add(app)
        db.flush()
        return app.id


class TestRuleMatching:

    def make_employee(self, **fields):
        values = {"full_name": "Ada", "personal_email": "ada@example.com", "department": "Engineering",
                  "status": EmployeeStatus.ACTIVE, "meta": {"team": "Platform"}}
        values.update(fields)
        return Employee(**values)

    def make_rule(self, condition, priority=0, is_active=True, provision_data=None):
        return AppProvisioningRule(
            name="rule", condition=condition, priority=priority, is_active=is_active,
            provision_data=provision_data or {},
        )

    def test_case_insensitive_attribute(self):
        assert rules.matches_condition(self.make_employee(), {"department": "engineering"})

    def test_meta_fallback(self):
        employee = self.make_employee()
        assert rules.matches_condition(employee, {"team": "platform"})
        assert not rules.matches_condition(employee, {"team": "Data"})

    def test_enum_and_null_values(self):
        employee = self.make_employee()
        assert rules.matches_condition(employee, {"status": "ACTIVE", "location": None})

    def test_matching_rules_sorted_by_priority(self):
        low = self.make_rule({}, priority=1)
        high = self.make_rule({"department": "Engineering"}, priority=5)
        inactive = self.make_rule({}, priority=9, is_active=False)
        other = self.make_rule({"department": "Sales"}, priority=7)

        assert rules.matching_rules(self.make_employee(), [low, high, inactive, other]) == [high, low]

    def test_merge_list_field(self):
        merged = rules.merge_list_field([
            self.make_rule({}, provision_data={"channels": ["general", "eng"]}),
            self.make_rule({}, provision_data={"channels": ["eng", "random"]}),
        ], "channels")
        assert merged == ["general", "eng", "random"]


class TestConnectors:

    def test_build_headers(self):
        assert build_headers(None) == {"Content-Type": "application/json"}
        assert build_headers("abc")["Authorization"] == "Bearer abc"
        assert build_headers("Bearer abc")["Authorization"] == "Bearer abc"

    def test_connector_selection(self):
        assert provisioning.get_connector(App(name="x", type=AppType.SLACK, is_connected=False, config={})) is None
        assert provisioning.get_connector(App(name="x", type=AppType.SLACK, is_connected=True, config={})) is None

        slack = App(name="x", type=AppType.SLACK, is_connected=True, config={"bot_token": "xoxb-1"})
        assert isinstance(provisioning.get_connector(slack), SlackConnector)

        hooked = App(name="x", type=AppType.SLACK, is_connected=True, config=WEBHOOK_CONFIG)
        assert isinstance(provisioning.get_connector(hooked), WebhookConnector)

        assert provisioning.get_connector(App(name="x", type=AppType.CUSTOM, is_connected=True, config={})) is None

    def test_webhook_network_error(self):
        connector = WebhookConnector(WEBHOOK_CONFIG)
        with patch("httpx.post", side_effect=httpx.ConnectError("refused")):
            result = connector.provision(
                Employee(id=1, full_name="Ada", personal_email="ada@example.com"),
                App(id=1, name="Hook", type=AppType.WEBHOOK),
                [],
            )
        assert result.success is False
        assert "refused" in result.error


class TestProvisioning:

    def test_provision_through_webhook(self, client, it_headers, employee_id):
        app_id = add_app()
        body = {"success": True, "external_user_id": "u-1", "external_email": "ada@acme.com"}

        with patch("httpx.post", return_value=ok_response(body)) as post:
            resp = client.post(f"/api/integrations/apps/{app_id}/provision/{employee_id}", headers=it_headers)

        data = resp.json()
        assert data["success"] is True
        assert data["external_user_id"] == "u-1"
        sent = post.call_args.kwargs
        assert sent["json"]["action"] == "provision"
        assert sent["headers"]["Authorization"] == "Bearer secret"

        accounts = client.get(f"/api/integrations/employees/{employee_id}/accounts", headers=it_headers).json()
        assert accounts[0]["status"] == AppAccountStatus.ACTIVE.value
        assert accounts[0]["app_name"] == "Ops Hook"

    def test_failed_provision_is_not_http_error(self, client, it_headers, employee_id):
        app_id = add_app()
        with patch("httpx.post", return_value=ok_response({"error": "quota"}, status_code=500)):
            resp = client.post(f"/api/integrations/apps/{app_id}/provision/{employee_id}", headers=it_headers)

        assert resp.status_code == 200
        assert resp.json() == {
            "success": False, "error": "quota", "external_user_id": None,
            "external_email": None, "account_id": resp.json()["account_id"],
        }
        with get_db_session() as db:
            account = db.scalar(select(AppAccount))
            assert account.status == AppAccountStatus.FAILED

    def test_deprovision_without_connection_disables(self, employee_id):
        app_id = add_app(is_connected=False)
        with get_db_session() as db:
            db.add(AppAccount(employee_id=employee_id, app_id=app_id, status=AppAccountStatus.ACTIVE))

        with get_db_session() as db:
            result = provisioning.deprovision_employee(db, db.get(Employee, employee_id), db.get(App, app_id))
            assert result.success is True
            assert db.scalar(select(AppAccount)).status == AppAccountStatus.DISABLED

    def test_deprovision_without_account(self, employee_id):
        app_id = add_app()
        with get_db_session() as db:
            result = provisioning.deprovision_employee(db, db.get(Employee, employee_id), db.get(App, app_id))
        assert result.success is True
        assert result.account_id is None


class TestAppRoutes:

    def test_create_duplicate_name(self, client, it_headers):
        payload = {"name": "Slack", "type": "SLACK"}
        assert client.post("/api/integrations/apps", json=payload, headers=it_headers).status_code == 201
        payload["name"] = "slack "
        assert client.post("/api/integrations/apps", json=payload, headers=it_headers).status_code == 409

    def test_employee_cannot_manage_apps(self, client, employee_headers):
        assert client.get("/api/integrations/apps", headers=employee_headers).status_code == 403

    def test_rules_crud(self, client, it_headers):
        app_id = add_app()
        rule = client.post(
            f"/api/integrations/apps/{app_id}/rules",
            json={"name": "Engineers", "condition": {"department": "Engineering"}, "priority": 2},
            headers=it_headers,
        ).json()
        assert rule["priority"] == 2

        updated = client.put(f"/api/integrations/rules/{rule['id']}", json={"priority": 4}, headers=it_headers)
        assert updated.json()["priority"] == 4

        client.delete(f"/api/integrations/rules/{rule['id']}", headers=it_headers)
        assert client.get(f"/api/integrations/apps/{app_id}/rules", headers=it_headers).json() == []

    def test_connection_check_without_connection(self, client, it_headers):
        app_id = add_app(is_connected=False)
        data = client.post(f"/api/integrations/apps/{app_id}/test", headers=it_headers).json()
        assert data["success"] is False
        assert "No active connection" in data["error"]

    def test_event_catalog(self, client, it_headers):
        ids = [e["id"] for e in client.get("/api/integrations/outbound/events", headers=it_headers).json()]
        assert "offer.signed" in ids
        assert "offboarding.completed" in ids


class TestOutboundEvents:

    def test_extract_config(self):
        assert outbound.extract_outbound_config({}) is None
        assert outbound.extract_outbound_config({"outbound": {"url": "  "}}) is None
        config = outbound.extract_outbound_config({"outbound": {"url": " https://n8n/x ", "events": ["offer.sent", 3]}})
        assert config == {"url": "https://n8n/x", "api_key": None, "events": ["offer.sent"]}

    def test_build_event(self):
        event = outbound.build_event("offer.sent", {"id": 1}, {"user_id": 7, "email": "hr@example.com", "role": "HR_ADMIN"})
        assert event["source"] == "acme"
        assert event["actor"] == {"id": 7, "email": "hr@example.com", "role": "HR_ADMIN"}

    def test_only_subscribed_apps_receive_event(self):
        add_app(name="All", config={"outbound": {"url": "https://all.example.com"}})
        add_app(name="Offers", config={"outbound": {"url": "https://offers.example.com", "events": ["offer.sent"]}})
        add_app(name="Off", is_enabled=False, config={"outbound": {"url": "https://off.example.com"}})

        with patch("httpx.post", return_value=ok_response()) as post, \
                patch("peopleos.services.integrations.outbound.DeliveryLogService") as log:
            delivered = outbound.send_outbound_event("employee.created", {"id": 1})

        assert delivered == 1
        assert post.call_args.args[0] == "https://all.example.com"
        log.return_value.record.assert_called_once()

    def test_unknown_event_not_sent(self):
        with patch("httpx.post") as post:
            assert outbound.send_outbound_event("nope.event", {}) == 0
        post.assert_not_called()

    def test_send_test_event_route(self, client, it_headers):
        with patch("httpx.post", return_value=ok_response(status_code=204)) as post:
            resp = client.post(
                "/api/integrations/outbound/test", json={"url": "https://n8n.example.com/hook"}, headers=it_headers
            )
        assert resp.json()["success"] is True
        assert post.call_args.kwargs["json"]["event"] == "acme.test"

    def test_deliveries_unavailable(self, client, it_headers):
        with patch("peopleos.api.routes.integration_routes.DeliveryLogService", side_effect=RuntimeError("down")):
            resp = client.get("/api/integrations/outbound/deliveries", headers=it_headers)
        assert resp.status_code == 503
