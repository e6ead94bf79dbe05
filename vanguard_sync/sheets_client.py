# vanguard_sync/sheets_client.py
"""
Thin adapter over the Google Sheets v4 API.

Usage:
    client = build_client("~/.config/vanguard/credentials.json")
    for sheet in client.list_sheets(sheet_id):
        grid = client.get_values(sheet_id, sheet.title, "A1:Z2")

Every call made here is a single remote request; throttling is the caller's job.
API failures are re-raised as RemoteCallError naming the operation.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account
from googleapiclient.discovery import build as gbuild
from googleapiclient.errors import HttpError
from pydantic import BaseModel

from .column_detector import col_to_alpha
from .errors import ConfigError, RemoteCallError
from .models import Cell

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

USER_ENTERED = "USER_ENTERED"

# Exceptions that mean the remote call itself failed
REMOTE_ERRORS = (HttpError, GoogleAuthError, OSError)


class SheetInfo(BaseModel):
    title: str
    sheet_id: int
    row_count: Optional[int] = None       # None when the sheet has no grid (e.g. a chart sheet)
    column_count: Optional[int] = None

    @property
    def has_grid(self) -> bool:
        return self.row_count is not None and self.column_count is not None


def quote_title(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def a1_range(title: str, rng: str) -> str:
    return f"{quote_title(title)}!{rng}"


def sheet_row_col(title: str, row: int, col: int) -> str:
    """A1 reference for a single cell: 1-based row, zero-based column."""
    return a1_range(title, f"{col_to_alpha(col)}{row}")


def load_credentials(credentials_file: Union[str, Path]):
    """
    Load Google credentials from a service account key or an authorized-user token file.
    """
    path = Path(credentials_file).expanduser()
    if not path.exists():
        raise ConfigError(f"credentials file not found: {path}")

    try:
        info = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"unreadable credentials file {path}: {e}") from e

    if info.get("type") == "service_account":
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    return user_credentials.Credentials.from_authorized_user_info(info, scopes=SCOPES)


class SheetsClient:
    def __init__(self, service: Any, num_retries: int = 0):
        self.service = service
        self.num_retries = num_retries

    def _execute(self, operation: str, request: Any) -> Dict[str, Any]:
        try:
            return request.execute(num_retries=self.num_retries)
        except REMOTE_ERRORS as e:
            raise RemoteCallError(operation, e) from e

    def list_sheets(self, spreadsheet_id: str) -> List[SheetInfo]:
        """Return the tabs of a spreadsheet in display order."""
        meta = self._execute(
            "get spreadsheet",
            self.service.spreadsheets().get(spreadsheetId=spreadsheet_id, fields="sheets.properties"),
        )
        sheets = []
        for sheet in meta.get("sheets", []):
            props = sheet.get("properties", {})
            grid = props.get("gridProperties") or {}
            sheets.append(SheetInfo(
                title=props.get("title", ""),
                sheet_id=props.get("sheetId", 0),
                row_count=grid.get("rowCount"),
                column_count=grid.get("columnCount"),
            ))
        return sheets

    def get_values(self, spreadsheet_id: str, title: str, rng: str) -> List[List[Cell]]:
        """
        Read a range. The grid returned may be smaller than requested: trailing
        empty rows and cells are left out, not padded.
        """
        resp = self._execute(
            f"get values {rng}",
            self.service.spreadsheets().values().get(
                spreadsheetId=spreadsheet_id, range=a1_range(title, rng)),
        )
        return [[Cell.of(v) for v in row] for row in resp.get("values", [])]

    def batch_update(self, spreadsheet_id: str, data: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Write several ranges in one request; formulas are evaluated by the service."""
        return self._execute(
            "batch update",
            self.service.spreadsheets().values().batchUpdate(
                spreadsheetId=spreadsheet_id,
                body={"valueInputOption": USER_ENTERED, "data": data},
            ),
        )


def build_client(credentials_file: Union[str, Path], num_retries: int = 0) -> SheetsClient:
    creds = load_credentials(credentials_file)
    svc = gbuild("sheets", "v4", credentials=creds, cache_discovery=False)
    logger.debug("Sheets service ready")
    return SheetsClient(svc, num_retries=num_retries)
