"""
ANWAR CRM - Workbook store tests
Tests: row allocation, column insert/delete alignment, lookups, healing.
Run: pytest tests/test_workbook.py -v
"""

import pytest

from anwar_crm.services import workbook
from anwar_crm.services.workbook import SheetNotFoundError, RecordNotFoundError
from tests.helpers import _db_op


SHEET = "Test Sheet"
HEADERS = ["Timestamp", "ID", "Name", "Status"]


async def _sheet_with_rows():
    await workbook.ensure_sheet(SHEET, HEADERS)
    await workbook.append_row(SHEET, ["t1", "A-1", "Alpha", "Pending"])
    await workbook.append_row(SHEET, ["t2", "A-2", "Beta", "Approved"])


class TestRows:
    """Row numbering starts at 2 (row 1 is the header row)"""

    def test_append_returns_row_numbers(self):
        async def run():
            await workbook.ensure_sheet(SHEET, HEADERS)
            first = await workbook.append_row(SHEET, ["t1", "A-1", "Alpha", "Pending"])
            second = await workbook.append_row(SHEET, ["t2", "A-2"])
            return first, second, await workbook.get_row(SHEET, second)

        first, second, row = _db_op(run())
        assert (first, second) == (2, 3)
        assert row.values == ["t2", "A-2", "", ""]
        print("✅ Rows allocated from 2, short rows padded")

    def test_append_to_missing_sheet_raises(self):
        with pytest.raises(SheetNotFoundError):
            _db_op(workbook.append_row("Nope", ["x"]))

    def test_find_rows_is_case_insensitive(self):
        async def run():
            await _sheet_with_rows()
            return await workbook.find_rows(SHEET, Status="approved")

        rows = _db_op(run())
        assert [r.get("ID") for r in rows] == ["A-2"]

    def test_find_row_ignores_blank_value(self):
        async def run():
            await _sheet_with_rows()
            return await workbook.find_row(SHEET, "ID", "")

        assert _db_op(run()) is None

    def test_update_cell_returns_previous_value(self):
        async def run():
            await _sheet_with_rows()
            previous = await workbook.update_cell(SHEET, 2, 3, "Alpha Prime")
            return previous, await workbook.get_row(SHEET, 2)

        previous, row = _db_op(run())
        assert previous == "Alpha"
        assert row.get("Name") == "Alpha Prime"

    def test_update_cell_out_of_range(self):
        async def run():
            await _sheet_with_rows()
            await workbook.update_cell(SHEET, 2, 9, "x")

        with pytest.raises(ValueError):
            _db_op(run())

    def test_update_cells_missing_row(self):
        async def run():
            await _sheet_with_rows()
            await workbook.update_cells(SHEET, 40, {"Name": "x"})

        with pytest.raises(RecordNotFoundError):
            _db_op(run())


class TestColumns:
    """Structural edits keep every untouched column aligned"""

    def test_insert_columns_shifts_values(self):
        async def run():
            await _sheet_with_rows()
            headers = await workbook.insert_columns(SHEET, 2, ["Start", "End"])
            return headers, await workbook.get_rows(SHEET)

        headers, rows = _db_op(run())
        assert headers == ["Timestamp", "ID", "Start", "End", "Name", "Status"]
        assert rows[0].record == {
            "Timestamp": "t1", "ID": "A-1", "Start": "", "End": "", "Name": "Alpha", "Status": "Pending",
        }
        assert rows[1].get("Status") == "Approved"
        print("✅ Insert keeps alignment")

    def test_delete_columns_removes_values(self):
        async def run():
            await _sheet_with_rows()
            removed = await workbook.delete_columns(SHEET, ["Name", "Timestamp", "Unknown"])
            return removed, await workbook.get_headers(SHEET), await workbook.get_rows(SHEET)

        removed, headers, rows = _db_op(run())
        assert removed == ["Timestamp", "Name"]
        assert headers == ["ID", "Status"]
        assert [r.values for r in rows] == [["A-1", "Pending"], ["A-2", "Approved"]]

    def test_delete_nothing(self):
        async def run():
            await _sheet_with_rows()
            return await workbook.delete_columns(SHEET, ["Unknown"])

        assert _db_op(run()) == []


class TestSheets:

    def test_copy_and_rename(self):
        async def run():
            await _sheet_with_rows()
            await workbook.copy_sheet(SHEET, "Copy")
            await workbook.update_cell(SHEET, 2, 3, "Changed")
            await workbook.rename_sheet("Copy", "Renamed")
            return (
                await workbook.sheet_exists("Copy"),
                await workbook.get_row("Renamed", 2),
            )

        copy_exists, row = _db_op(run())
        assert copy_exists is False
        assert row.get("Name") == "Alpha"

    def test_copy_onto_existing_sheet_raises(self):
        async def run():
            await _sheet_with_rows()
            await workbook.ensure_sheet("Other", HEADERS)
            await workbook.copy_sheet(SHEET, "Other")

        with pytest.raises(ValueError):
            _db_op(run())

    def test_heal_creates_missing_sheet(self):
        report = _db_op(workbook.verify_and_heal_sheet(SHEET, HEADERS))
        assert report["created"] is True

    def test_heal_appends_missing_headers(self):
        async def run():
            await workbook.ensure_sheet(SHEET, ["ID", "Name"])
            report = await workbook.verify_and_heal_sheet(SHEET, HEADERS)
            return report, await workbook.get_headers(SHEET)

        report, headers = _db_op(run())
        assert report["headers_added"] == ["Timestamp", "Status"]
        assert headers == ["ID", "Name", "Timestamp", "Status"]

    def test_heal_writes_empty_header_row(self):
        async def run():
            await workbook.ensure_sheet(SHEET, [])
            report = await workbook.verify_and_heal_sheet(SHEET, HEADERS)
            return report, await workbook.get_headers(SHEET)

        report, headers = _db_op(run())
        assert report["headers_written"] is True
        assert headers == HEADERS
