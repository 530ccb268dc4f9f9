"""
src/workspace/sheets.py
========================
Audit Ledger (Google Sheets) — Audit Agent

Responsibility:
    - pending_rows():  every data row whose status column is not "Successful"
    - mark_success():  write status + the six audit columns of one row
    - upsert_row():    update a row by call id, or append a new one

Ledger row layout (0-based columns):
    0 callDate | 1 leadEmail | 2 callId | 3 callDuration | 4 bookingStatus
    5 promptFile | 6 status | 7..12 audit output (JSON-encoded)

Row 1 is the header row; data rows start at sheet row 2.

This module does NOT:
    - Interpret audit results (cells arrive already JSON-encoded)
    - Retry failed writes
"""

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("auditagent.workspace.sheets")

STATUS_SUCCESSFUL = "Successful"

CALL_ID_COL_INDEX = 2        # Column C
PROMPT_FILE_COL_INDEX = 5    # Column F
STATUS_COL_INDEX = 6         # Column G


def column_letter(index: int) -> str:
    """Convert a 0-based column index to spreadsheet letters (0 → A, 26 → AA)."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    letters = ""
    n = index
    while n >= 0:
        letters = chr(n % 26 + 65) + letters
        n = n // 26 - 1
    return letters


@dataclass(frozen=True)
class LedgerRow:
    """One data row: 1-based sheet row number plus raw cell values."""

    index: int
    data: list[str]

    def cell(self, column: int) -> str:
        return self.data[column] if column < len(self.data) else ""

    @property
    def call_id(self) -> str:
        return self.cell(CALL_ID_COL_INDEX).strip()

    @property
    def prompt_file(self) -> str:
        return self.cell(PROMPT_FILE_COL_INDEX).strip()


class Ledger:
    """Row store over one tab of a spreadsheet."""

    def __init__(self, service: Any, spreadsheet_id: str, tab: str) -> None:
        self._service = service
        self._spreadsheet_id = spreadsheet_id
        self._tab = tab

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _values(self):
        return self._service.spreadsheets().values()

    def _read_all(self) -> list[list[str]]:
        response = (
            self._values()
            .get(spreadsheetId=self._spreadsheet_id, range=f"{self._tab}!A1:Z")
            .execute()
        )
        return response.get("values", [])

    def _status_range(self, row_number: int, width: int) -> str:
        start = column_letter(STATUS_COL_INDEX)
        end = column_letter(STATUS_COL_INDEX + width)
        return f"{self._tab}!{start}{row_number}:{end}{row_number}"

    def _write_status(self, row_number: int, audit_columns: list[str]) -> str:
        target = self._status_range(row_number, len(audit_columns))
        self._values().update(
            spreadsheetId=self._spreadsheet_id,
            range=target,
            valueInputOption="RAW",
            body={"values": [[STATUS_SUCCESSFUL, *audit_columns]]},
        ).execute()
        return target

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def pending_rows(self) -> list[LedgerRow]:
        """Return every data row not yet marked successful, in sheet order."""
        rows = self._read_all()
        pending: list[LedgerRow] = []
        for offset, row in enumerate(rows[1:], start=2):
            status = row[STATUS_COL_INDEX] if len(row) > STATUS_COL_INDEX else ""
            if status != STATUS_SUCCESSFUL:
                pending.append(LedgerRow(index=offset, data=list(row)))
        return pending

    def mark_success(self, row_index: int, audit_columns: list[str]) -> None:
        """Set the status of ``row_index`` and write its audit columns."""
        target = self._write_status(row_index, audit_columns)
        logger.debug("Sheet row %d updated (%s)", row_index, target)

    def upsert_row(
        self,
        call_id: str,
        meta: dict[str, Any],
        prompt_file: str,
        audit_columns: list[str],
    ) -> None:
        """
        Update the row holding ``call_id`` or append a new one.

        Args:
            call_id:       Value matched against column C.
            meta:          callDate, leadEmail, callDuration, bookingStatus.
            prompt_file:   Prompt file name recorded in column F on append.
            audit_columns: Six JSON-encoded audit cells.
        """
        rows = self._read_all()
        for offset, row in enumerate(rows[1:], start=2):
            if len(row) > CALL_ID_COL_INDEX and row[CALL_ID_COL_INDEX] == call_id:
                target = self._write_status(offset, audit_columns)
                logger.debug("Updated sheet row %d for call %s (%s)", offset, call_id, target)
                return

        new_row = [
            meta.get("callDate") or "",
            meta.get("leadEmail") or "",
            call_id,
            meta.get("callDuration") or "",
            meta.get("bookingStatus") or "",
            prompt_file,
            STATUS_SUCCESSFUL,
            *audit_columns,
        ]
        self._values().append(
            spreadsheetId=self._spreadsheet_id,
            range=f"{self._tab}!A:Z",
            valueInputOption="RAW",
            body={"values": [new_row]},
        ).execute()
        logger.debug("Appended new sheet row for call %s", call_id)
