"""Google Sheets backed queue of payment events."""
import json
import socket
from contextlib import contextmanager
from typing import Any, List, Optional

import httplib2
from google.auth.exceptions import TransportError
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from paysync import settings
from paysync.errors import TransientError
from paysync.logging_conf import logger
from paysync.queue.models import COLUMNS, FIRST_DATA_ROW, QueueRecord, column_letter

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def build_sheets_service(timeout: int = 30) -> Any:
    """Build a Sheets API v4 service from the configured service account."""
    if settings.GOOGLE_SERVICE_ACCOUNT_JSON:
        info = json.loads(settings.GOOGLE_SERVICE_ACCOUNT_JSON)
        credentials = service_account.Credentials.from_service_account_info(info, scopes=SHEETS_SCOPES)
    else:
        credentials = service_account.Credentials.from_service_account_file(
            settings.GOOGLE_SERVICE_ACCOUNT_FILE, scopes=SHEETS_SCOPES
        )
    http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
    return build("sheets", "v4", http=http, cache_discovery=False)


class SheetQueue:
    """Read/append/update operations over the payments worksheet."""

    def __init__(self, spreadsheet_id: str, sheet_name: str, service: Any = None, num_retries: int = 3):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.num_retries = num_retries
        self._service = service

    @property
    def values(self):
        """Sheets `spreadsheets().values()` resource, built on first use."""
        if self._service is None:
            self._service = build_sheets_service()
        return self._service.spreadsheets().values()

    @contextmanager
    def _api_call(self, action: str):
        """Translate Sheets/transport failures into TransientError."""
        try:
            yield
        except HttpError as e:
            status = getattr(e.resp, "status", None)
            raise TransientError(f"Sheets {action} failed with HTTP {status}: {e}") from e
        except (TransportError, socket.timeout, OSError, httplib2.HttpLib2Error) as e:
            raise TransientError(f"Sheets {action} failed: {e}") from e

    def _range(self, a1: str) -> str:
        return f"{self.sheet_name}!{a1}"

    def read_all(self) -> List[QueueRecord]:
        """Snapshot of every data row, in sheet order."""
        last = column_letter(COLUMNS[-1])
        with self._api_call("read"):
            result = self.values.get(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(f"A{FIRST_DATA_ROW}:{last}"),
            ).execute(num_retries=self.num_retries)

        rows = result.get("values", [])
        records = []
        for offset, values in enumerate(rows):
            # Skip fully empty rows left behind by manual edits
            if not any(str(v).strip() for v in values):
                continue
            records.append(QueueRecord.from_row(values, FIRST_DATA_ROW + offset))
        logger.debug(f"Read {len(records)} rows from {self.sheet_name}")
        return records

    def find_row(self, event_id: str) -> Optional[int]:
        """Row number holding `event_id`, or None."""
        with self._api_call("lookup"):
            result = self.values.get(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(f"A{FIRST_DATA_ROW}:A"),
            ).execute(num_retries=self.num_retries)

        for offset, values in enumerate(result.get("values", [])):
            if values and str(values[0]).strip() == event_id:
                return FIRST_DATA_ROW + offset
        return None

    def append_row(self, values: List[str]) -> None:
        """Write one row into the first empty row after the table; nothing below moves."""
        last = column_letter(COLUMNS[-1])
        with self._api_call("append"):
            self.values.append(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(f"A1:{last}"),
                valueInputOption="RAW",
                insertDataOption="OVERWRITE",
                body={"values": [values]},
            ).execute(num_retries=self.num_retries)
        logger.info(f"Appended row for event {values[0]}")

    def append(self, record: QueueRecord) -> None:
        self.append_row(record.to_row())

    def event_id_at(self, row: int) -> str:
        """event_id currently stored in column A of `row`."""
        with self._api_call("lookup"):
            result = self.values.get(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(f"A{row}"),
            ).execute(num_retries=self.num_retries)
        values = result.get("values", [])
        return str(values[0][0]).strip() if values and values[0] else ""

    def update_cell(self, row: int, column: str, value: str) -> None:
        """Overwrite a single cell addressed by row number and column name."""
        if row < FIRST_DATA_ROW:
            raise ValueError(f"Row {row} is not a data row")
        with self._api_call("update"):
            self.values.update(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(f"{column_letter(column)}{row}"),
                valueInputOption="RAW",
                body={"values": [[value]]},
            ).execute(num_retries=self.num_retries)
