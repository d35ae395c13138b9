"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a record store because:
1. Users can look at their own data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Every record is stored in a single worksheet as one or more rows:

    namespace | key | part | value (JSON slice) | updated_at

TRADEOFFS:
- A cell holds at most 50,000 characters, so long records (a user's
  transactions) are split across numbered parts
- Lookups scan the sheet (fine for personal use)
"""

import json
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from treasury.config import GoogleSheetsSettings, get_settings
from treasury.models.finance import utc_now
from treasury.services.storage.interface import (
    ConnectionError,
    NotFoundError,
    RecordStore,
    StorageError,
)


RECORD_COLUMNS = [
    "namespace",
    "key",
    "part",
    "value",
    "updated_at",
]

# Sheets rejects cells longer than 50,000 characters
CELL_LIMIT = 50_000
CHUNK_SIZE = 40_000


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise NotFoundError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_records_sheet(self) -> gspread.Worksheet:
        """Get or create the Records worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.records_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.records_sheet_name,
                rows=1000,
                cols=len(RECORD_COLUMNS),
            )
            sheet.append_row(RECORD_COLUMNS)
        return sheet


class GoogleSheetsRecordStore(RecordStore):
    """
    Google Sheets implementation of the record store.

    A record's JSON is split into parts of at most CHUNK_SIZE characters,
    one row per part. A write appends the new rows first and then removes
    the old ones; readers take the rows with the newest updated_at, so an
    interrupted write still leaves a complete record.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _find_rows(rows: list[list[str]], namespace: str, key: str) -> list[int]:
        """1-based sheet row indexes of a record's parts, skipping the header."""
        return [
            idx for idx, row in enumerate(rows[1:], start=2)
            if len(row) >= 2 and row[0] == namespace and row[1] == key
        ]

    @staticmethod
    def _split(payload: str) -> list[str]:
        return [
            payload[start:start + CHUNK_SIZE]
            for start in range(0, len(payload), CHUNK_SIZE)
        ]

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        try:
            sheet = self._client.get_records_sheet()
            rows = sheet.get_all_values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read record {namespace}/{key}: {e}")

        found = [rows[idx - 1] for idx in self._find_rows(rows, namespace, key)]
        if not found:
            return None

        # Column order: namespace | key | part | value | updated_at
        latest = max(row[4] if len(row) > 4 else "" for row in found)
        try:
            parts = sorted(
                (int(row[2]), row[3] if len(row) > 3 else "")
                for row in found
                if (row[4] if len(row) > 4 else "") == latest
            )
        except ValueError as e:
            raise StorageError(f"Corrupt record {namespace}/{key}: {e}")

        if [number for number, _ in parts] != list(range(len(parts))):
            raise StorageError(f"Corrupt record {namespace}/{key}: missing parts")

        raw = "".join(chunk for _, chunk in parts)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt record {namespace}/{key}: {e}")

    async def put(self, namespace: str, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Record {namespace}/{key} is not serializable: {e}")

        await self._write(namespace, key, self._split(payload))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _write(self, namespace: str, key: str, chunks: list[str]) -> None:
        updated_at = utc_now().isoformat()
        new_rows = [
            [namespace, key, str(part), chunk, updated_at]
            for part, chunk in enumerate(chunks)
        ]

        try:
            sheet = self._client.get_records_sheet()
            old_rows = self._find_rows(sheet.get_all_values(), namespace, key)

            sheet.append_rows(new_rows, value_input_option="RAW")
            # Bottom-up so earlier indexes stay valid
            for idx in reversed(old_rows):
                sheet.delete_rows(idx)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write record {namespace}/{key}: {e}")

    async def delete(self, namespace: str, key: str) -> bool:
        try:
            sheet = self._client.get_records_sheet()
            found = self._find_rows(sheet.get_all_values(), namespace, key)
            if not found:
                return False

            for idx in reversed(found):
                sheet.delete_rows(idx)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete record {namespace}/{key}: {e}")
