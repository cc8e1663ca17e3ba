"""Slack connector.

Talks to the Slack Web API directly with httpx (no Slack SDK).
App config keys: bot_token, admin_token (Enterprise Grid, optional),
team_id and default_channels.
"""
import logging
from typing import List, Optional

import httpx

from peopleos.models import App, AppAccount, AppProvisioningRule, Employee
from peopleos.services.integrations.base import ConnectionResult, DeprovisionResult, ProvisionResult
from peopleos.services.integrations.rules import matching_rules, merge_list_field

logger = logging.getLogger(__name__)

SLACK_API = "https://slack.com/api"
TIMEOUT = 15.0


class SlackError(Exception):
    """A Slack API call answered ok=false."""


class SlackConnector:

    def __init__(self, config: dict):
        config = config or {}
        self.bot_token: str = config.get("bot_token", "")
        self.admin_token: Optional[str] = config.get("admin_token")
        self.team_id: Optional[str] = config.get("team_id")
        self.default_channels: List[str] = config.get("default_channels") or []

    def _call(self, method: str, token: str, **params) -> dict:
        response = httpx.post(
            f"{SLACK_API}/{method}",
            data=params,
            headers={"Authorization": f"Bearer {token}"},
            timeout=TIMEOUT,
        )
        response.raise_for_status()
        body = response.json()
        if not body.get("ok"):
            raise SlackError(body.get("error", "unknown_error"))
        return body

    def test_connection(self) -> ConnectionResult:
        if not self.bot_token:
            return ConnectionResult(False, "Slack bot token is not configured")
        try:
            self._call("auth.test", self.bot_token)
            return ConnectionResult(True)
        except (SlackError, httpx.HTTPError) as e:
            return ConnectionResult(False, str(e))

    def _lookup_user_id(self, email: str) -> Optional[str]:
        try:
            body = self._call("users.lookupByEmail", self.bot_token, email=email)
        except SlackError as e:
            if str(e) == "users_not_found":
                return None
            raise
        return body["user"]["id"]

    def _channel_ids(self, names: List[str]) -> List[str]:
        body = self._call(
            "conversations.list", self.bot_token,
            types="public_channel,private_channel", limit=1000,
        )
        by_name = {c["name"]: c["id"] for c in body.get("channels", []) if c.get("id") and c.get("name")}
        ids = []
        for name in names:
            cleaned = name.strip().lstrip("#")
            channel_id = by_name.get(cleaned) or (cleaned if cleaned[:1] in ("C", "G") else None)
            if channel_id:
                ids.append(channel_id)
        return ids

    def provision(
        self,
        employee: Employee,
        app: App,
        rules: List[AppProvisioningRule],
        account: Optional[AppAccount] = None,
    ) -> ProvisionResult:
        matched = matching_rules(employee, rules)
        channels = merge_list_field(matched, "channels") or list(self.default_channels)
        user_groups = merge_list_field(matched, "user_groups")

        email = employee.work_email or employee.personal_email
        if not email:
            return ProvisionResult(False, "An email address is required for Slack provisioning.")

        try:
            user_id = account.external_user_id if account and account.external_user_id else None
            if user_id is None:
                user_id = self._lookup_user_id(email)

            if user_id is None:
                if not channels:
                    return ProvisionResult(
                        False, "Slack provisioning requires default channels (or provisioning rule channels)."
                    )
                if not self.admin_token:
                    return ProvisionResult(
                        False,
                        "Slack user not found in the workspace. Add an Admin token to auto-invite, "
                        "or invite the user manually, then retry.",
                    )
                params = {"email": email, "channel_ids": ",".join(channels)}
                if self.team_id:
                    params["team_id"] = self.team_id
                self._call("admin.users.invite", self.admin_token, **params)
                # No user id until the invite is accepted
                return ProvisionResult(
                    True,
                    external_email=email,
                    provisioned_resources={"invited": True, "channels": channels},
                )

            added = []
            for channel_id in self._channel_ids(channels):
                try:
                    self._call("conversations.invite", self.bot_token, channel=channel_id, users=user_id)
                    added.append(channel_id)
                except SlackError as e:
                    logger.warning(f"Could not add {user_id} to {channel_id}: {e}")

            return ProvisionResult(
                True,
                external_user_id=user_id,
                external_email=email,
                provisioned_resources={"channels": added, "user_groups": user_groups},
            )
        except (SlackError, httpx.HTTPError) as e:
            logger.error(f"Slack provisioning failed for {email}: {e}")
            return ProvisionResult(False, f"Slack provisioning failed: {e}")

    def deprovision(self, employee: Employee, app: App, account: AppAccount) -> DeprovisionResult:
        user_id = account.external_user_id
        if not user_id:
            return DeprovisionResult(False, "No Slack user ID found")

        try:
            if self.admin_token:
                params = {"user_id": user_id}
                if self.team_id:
                    params["team_id"] = self.team_id
                self._call("admin.users.remove", self.admin_token, **params)
                return DeprovisionResult(True)

            # Without admin rights the best we can do is leave every channel
            body = self._call(
                "users.conversations", self.bot_token,
                user=user_id, types="public_channel,private_channel",
            )
            for channel in body.get("channels", []):
                try:
                    self._call("conversations.kick", self.bot_token, channel=channel["id"], user=user_id)
                except SlackError as e:
                    logger.warning(f"Could not remove {user_id} from {channel['id']}: {e}")
            return DeprovisionResult(True)
        except (SlackError, httpx.HTTPError) as e:
            logger.error(f"Slack deprovisioning failed for {user_id}: {e}")
            return DeprovisionResult(False, str(e))
