"""
Google Sheets Remote Replica

DESIGN DECISION: Google Sheets is used as the remote replica because:
1. Users can inspect and back up their data directly in Sheets
2. No server to run
3. Every device with the credentials sees the same values

TRADEOFFS:
- Not suitable for high-volume data (a few dozen keys is fine)
- No transactions: each key is an independent row, last write wins
- Reads fetch the whole sheet (we filter in Python)
- A cell holds at most 50,000 characters. Larger envelopes (a list with
  many hundreds of coupons) are refused up front with PayloadTooLargeError
  instead of being retried; the local tier still has them

The replica is a flat key-value table:

    key | value | updated_at

`value` holds the same schema-versioned JSON envelope the local tier
stores, so the two tiers can be compared byte for byte after decoding.
"""

from datetime import datetime, timezone
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from coupon_tracker.config import GoogleSheetsSettings, get_settings
from coupon_tracker.services.storage.interface import (
    ConnectionError,
    KeyValueStoreInterface,
    PayloadTooLargeError,
    StorageError,
)


# Column mappings for the replica sheet
REPLICA_COLUMNS = [
    "key",
    "value",
    "updated_at",
]

# Google Sheets per-cell character limit
MAX_CELL_CHARS = 50_000


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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_replica_sheet(self) -> gspread.Worksheet:
        """Get or create the replica worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.replica_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.replica_sheet_name,
                rows=200,
                cols=len(REPLICA_COLUMNS),
            )
            sheet.append_row(REPLICA_COLUMNS)
        return sheet


class GoogleSheetsKeyValueStore(KeyValueStoreInterface):
    """
    Google Sheets implementation of the key-value store.

    One key per row. Row 1 is the header.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(self, all_rows: list[list[str]], key: str) -> Optional[int]:
        """1-based sheet row index of a key, or None."""
        for idx, row in enumerate(all_rows[1:], start=2):  # Start from 2 (row 1 is header)
            if row and row[0] == key:
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def get(self, key: str) -> Optional[str]:
        """Read a key from the replica."""
        try:
            sheet = self._client.get_replica_sheet()
            all_rows = sheet.get_all_values()
            row_idx = self._find_row(all_rows, key)
            if row_idx is None:
                return None
            row = all_rows[row_idx - 1]
            return row[1] if len(row) > 1 and row[1] else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {key} from replica: {e}")

    def set(self, key: str, value: str) -> None:
        """
        Write a key to the replica, updating its row in place if present.

        Raises:
            PayloadTooLargeError: If the value does not fit in one cell
        """
        if len(value) > MAX_CELL_CHARS:
            raise PayloadTooLargeError(
                f"{key} is {len(value)} characters; a replica cell holds {MAX_CELL_CHARS}"
            )
        self._write_row(key, value)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_row(self, key: str, value: str) -> None:
        try:
            sheet = self._client.get_replica_sheet()
            all_rows = sheet.get_all_values()
            row = [key, value, datetime.now(timezone.utc).isoformat()]
            row_idx = self._find_row(all_rows, key)
            if row_idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(
                    range_name=f"A{row_idx}:C{row_idx}",
                    values=[row],
                    value_input_option="RAW",
                )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write {key} to replica: {e}")

    def delete(self, key: str) -> bool:
        """Delete a key's row."""
        try:
            sheet = self._client.get_replica_sheet()
            row_idx = self._find_row(sheet.get_all_values(), key)
            if row_idx is None:
                return False
            sheet.delete_rows(row_idx)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {key} from replica: {e}")

    def keys(self) -> list[str]:
        """List every key in the replica."""
        try:
            sheet = self._client.get_replica_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
            return [row[0] for row in all_rows if row and row[0]]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list replica keys: {e}")
