"""
Google Sheets Service - reads the onboarding roster spreadsheet.

The sheet is maintained outside PeopleOS (reminder bots write to it);
we only read the overview tab.
"""
import json
import logging
import re
from typing import List

from google.oauth2 import service_account
from googleapiclient.discovery import build

from peopleos.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


class SheetsNotConfigured(Exception):
    """Service account or sheet id missing."""


def _int(value, default: int = 0) -> int:
    match = re.match(r"\s*(-?\d+)", str(value or ""))
    return int(match.group(1)) if match else default


def _status(raw: str) -> str:
    raw = (raw or "").lower()
    if "completed" in raw:
        return "Completed"
    if "progress" in raw:
        return "In Progress"
    return "Not Started"


def parse_roster_rows(rows: List[list]) -> List[dict]:
    """Turn raw sheet values (columns A..J) into roster dicts, dropping empty rows."""
    parsed = []
    for row in rows:
        cells = list(row) + [""] * (10 - len(row))
        entry = {
            "user_id": str(cells[0]).strip(),
            "name": str(cells[1]).strip(),
            "location": cells[2],
            "team": cells[3],
            "start_date": cells[4],
            "completion_percent": _int(cells[5]),
            "last_reminder": cells[6],
            "reminder_count": _int(cells[7]),
            "last_updated": cells[8],
            "status": _status(cells[9]),
        }
        if entry["user_id"] and entry["name"]:
            parsed.append(entry)
    return parsed


class GoogleSheetsService:

    def __init__(self, spreadsheet_id: str = None, roster_range: str = None):
        self.spreadsheet_id = spreadsheet_id or settings.onboarding_sheet_id
        self.roster_range = roster_range or settings.onboarding_roster_range
        self._sheets = None

    def _client(self):
        if self._sheets is None:
            if not settings.google_service_account_key or not self.spreadsheet_id:
                raise SheetsNotConfigured(
                    "Google service account key and onboarding sheet id must be configured"
                )
            credentials = service_account.Credentials.from_service_account_info(
                json.loads(settings.google_service_account_key),
                scopes=SCOPES,
                subject=settings.google_workspace_admin_email or None,
            )
            self._sheets = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        return self._sheets

    def fetch_onboarding_roster(self) -> List[dict]:
        response = self._client().spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id, range=self.roster_range
        ).execute()
        rows = parse_roster_rows(response.get("values", []))
        logger.info(f"Loaded {len(rows)} onboarding roster rows")
        return rows
