# sendback/services/sheets.py
import logging
from typing import Any, List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sendback.config import Settings
from sendback.models import Lead, as_utc

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
HEADER = ["ID", "Name", "Phone Number", "Source", "Notes", "Created At"]
SHEET = "Leads"


class ExportError(Exception):
    """The spreadsheet export failed."""


def lead_row(lead: Lead) -> List[Any]:
    created = as_utc(lead.created_at)
    return [
        lead.id,
        lead.name or "",
        lead.phone_number,
        lead.source,
        lead.notes or "",
        created.isoformat() if created else "",
    ]


class LeadSheetExporter:
    """
    Appends leads to a Google Sheet through the Sheets v4 API.
    With no credentials or spreadsheet configured it is disabled and
    add_lead() does nothing.
    """

    def __init__(self, spreadsheet_id: Optional[str] = None, service: Any = None):
        self.spreadsheet_id = spreadsheet_id
        self._service = service

    @classmethod
    def from_settings(cls, settings: Settings) -> "LeadSheetExporter":
        creds_file = settings.GOOGLE_SHEETS_CREDENTIALS_FILE
        sheet_id = settings.GOOGLE_SHEETS_SPREADSHEET_ID
        if not (creds_file and sheet_id):
            return cls()
        creds = service_account.Credentials.from_service_account_file(creds_file, scopes=SCOPES)
        svc = build("sheets", "v4", credentials=creds, cache_discovery=False)
        return cls(spreadsheet_id=sheet_id, service=svc)

    @property
    def enabled(self) -> bool:
        return bool(self.spreadsheet_id and self._service is not None)

    def write_header(self) -> None:
        if not self.enabled:
            return
        try:
            self._service.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=f"{SHEET}!A1:F1",
                valueInputOption="RAW",
                body={"values": [HEADER]},
            ).execute()
        except HttpError as e:
            raise ExportError(str(e)) from e

    def add_lead(self, lead: Lead) -> None:
        if not self.enabled:
            return
        try:
            self._service.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{SHEET}!A:F",
                valueInputOption="RAW",
                body={"values": [lead_row(lead)]},
            ).execute()
        except HttpError as e:
            raise ExportError(str(e)) from e

    def sync_leads(self, leads: List[Lead]) -> int:
        """
        Rewrite every data row (header kept) from the given leads.
        Repairs the sheet after failed fire-and-forget exports.
        """
        if not self.enabled:
            return 0
        values = self._service.spreadsheets().values()
        try:
            values.clear(
                spreadsheetId=self.spreadsheet_id,
                range=f"{SHEET}!A2:F",
                body={},
            ).execute()
            if leads:
                values.append(
                    spreadsheetId=self.spreadsheet_id,
                    range=f"{SHEET}!A2:F",
                    valueInputOption="RAW",
                    body={"values": [lead_row(lead) for lead in leads]},
                ).execute()
        except HttpError as e:
            raise ExportError(str(e)) from e
        logger.info("[sheets] synced %s leads to %s", len(leads), self.spreadsheet_id)
        return len(leads)


def export_lead(exporter: LeadSheetExporter, lead: Lead) -> bool:
    """Fire-and-forget wrapper: logs and swallows every failure."""
    try:
        exporter.add_lead(lead)
        return exporter.enabled
    except Exception as e:
        logger.error("[sheets] lead export failed lead=%s err=%r", lead.id, e)
        return False
