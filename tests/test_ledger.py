"""
tests/test_ledger.py
=====================
Ledger (Google Sheets) + Drive Client Tests

Test categories:
    1. column_letter — 0-based index conversion
    2. pending_rows — status filtering, header skipped, short rows
    3. mark_success — target range and written values
    4. upsert_row — update existing vs append new
    5. DriveClient — pagination and text decoding

All tests are offline — googleapiclient resources are MagicMocks.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.workspace.drive import DriveClient
from src.workspace.sheets import Ledger, STATUS_SUCCESSFUL, column_letter

HEADER = ["Date", "Email", "Call ID", "Duration", "Booking", "Prompt", "Status"]
AUDIT_COLUMNS = ["[1]", "[2]", "[3]", "[4]", "[5]", "{}"]


def _sheets_service(rows: list[list[str]]) -> tuple[MagicMock, MagicMock]:
    service = MagicMock()
    values = service.spreadsheets.return_value.values.return_value
    values.get.return_value.execute.return_value = {"values": rows}
    return service, values


# ===================================================================
# 1. COLUMN LETTERS
# ===================================================================


class TestColumnLetter(unittest.TestCase):

    def test_single_letters(self):
        self.assertEqual(column_letter(0), "A")
        self.assertEqual(column_letter(6), "G")
        self.assertEqual(column_letter(25), "Z")

    def test_double_letters(self):
        self.assertEqual(column_letter(26), "AA")
        self.assertEqual(column_letter(27), "AB")
        self.assertEqual(column_letter(701), "ZZ")
        self.assertEqual(column_letter(702), "AAA")

    def test_negative_rejected(self):
        with self.assertRaises(ValueError):
            column_letter(-1)


# ===================================================================
# 2. PENDING ROWS
# ===================================================================


class TestPendingRows(unittest.TestCase):

    def test_only_unsuccessful_rows_returned(self):
        rows = [
            HEADER,
            ["d", "e", "C1", "60", "b", "sales.txt", STATUS_SUCCESSFUL],
            ["d", "e", "C2", "60", "b", "sales.txt", "Failed"],
            ["d", "e", "C3", "60", "b", "sales.txt"],
        ]
        service, _ = _sheets_service(rows)
        pending = Ledger(service, "sheet-1", "Log").pending_rows()

        self.assertEqual([r.index for r in pending], [3, 4])
        self.assertEqual([r.call_id for r in pending], ["C2", "C3"])
        self.assertEqual(pending[0].prompt_file, "sales.txt")

    def test_header_only_sheet(self):
        service, _ = _sheets_service([HEADER])
        self.assertEqual(Ledger(service, "sheet-1", "Log").pending_rows(), [])

    def test_empty_response(self):
        service = MagicMock()
        values = service.spreadsheets.return_value.values.return_value
        values.get.return_value.execute.return_value = {}
        self.assertEqual(Ledger(service, "sheet-1", "Log").pending_rows(), [])

    def test_reads_whole_tab(self):
        service, values = _sheets_service([HEADER])
        Ledger(service, "sheet-1", "Log").pending_rows()
        values.get.assert_called_once_with(spreadsheetId="sheet-1", range="Log!A1:Z")


# ===================================================================
# 3. MARK SUCCESS
# ===================================================================


class TestMarkSuccess(unittest.TestCase):

    def test_writes_status_and_audit_columns(self):
        service, values = _sheets_service([HEADER])
        Ledger(service, "sheet-1", "Log").mark_success(7, AUDIT_COLUMNS)

        kwargs = values.update.call_args.kwargs
        self.assertEqual(kwargs["range"], "Log!G7:M7")
        self.assertEqual(kwargs["valueInputOption"], "RAW")
        self.assertEqual(kwargs["body"], {"values": [[STATUS_SUCCESSFUL, *AUDIT_COLUMNS]]})


# ===================================================================
# 4. UPSERT
# ===================================================================


class TestUpsertRow(unittest.TestCase):

    def test_existing_call_is_updated(self):
        rows = [HEADER, ["d", "e", "C0"], ["d", "e", "C1", "60", "b", "sales.txt", "Failed"]]
        service, values = _sheets_service(rows)
        Ledger(service, "sheet-1", "Log").upsert_row("C1", {}, "sales.txt", AUDIT_COLUMNS)

        self.assertEqual(values.update.call_args.kwargs["range"], "Log!G3:M3")
        values.append.assert_not_called()

    def test_header_is_never_matched(self):
        rows = [["x", "y", "C1"]]
        service, values = _sheets_service(rows)
        Ledger(service, "sheet-1", "Log").upsert_row("C1", {}, "sales.txt", AUDIT_COLUMNS)
        values.append.assert_called_once()

    def test_new_call_is_appended_with_full_layout(self):
        service, values = _sheets_service([HEADER])
        meta = {
            "callDate": "2025-01-01",
            "leadEmail": "lead@example.com",
            "callDuration": 90,
            "bookingStatus": None,
        }
        Ledger(service, "sheet-1", "Log").upsert_row("C9", meta, "sales.txt", AUDIT_COLUMNS)

        kwargs = values.append.call_args.kwargs
        self.assertEqual(kwargs["range"], "Log!A:Z")
        row = kwargs["body"]["values"][0]
        self.assertEqual(
            row,
            ["2025-01-01", "lead@example.com", "C9", 90, "", "sales.txt",
             STATUS_SUCCESSFUL, *AUDIT_COLUMNS],
        )
        self.assertEqual(row.index(STATUS_SUCCESSFUL), 6)


# ===================================================================
# 5. DRIVE CLIENT
# ===================================================================


class TestDriveClient(unittest.TestCase):

    def test_list_children_follows_pages(self):
        service = MagicMock()
        service.files.return_value.list.return_value.execute.side_effect = [
            {"files": [{"id": "1", "name": "a.txt"}], "nextPageToken": "tok"},
            {"files": [{"id": "2", "name": "b.txt"}]},
        ]
        children = DriveClient(service).list_children("root")

        self.assertEqual([c["id"] for c in children], ["1", "2"])
        calls = service.files.return_value.list.call_args_list
        self.assertIsNone(calls[0].kwargs["pageToken"])
        self.assertEqual(calls[1].kwargs["pageToken"], "tok")
        self.assertEqual(calls[0].kwargs["q"], "'root' in parents and trashed = false")

    def test_download_text_decodes_bytes(self):
        service = MagicMock()
        service.files.return_value.get_media.return_value.execute.return_value = "héllo".encode()
        self.assertEqual(DriveClient(service).download_text("f1"), "héllo")
        service.files.return_value.get_media.assert_called_once_with(fileId="f1")


if __name__ == "__main__":
    unittest.main()
