"""
ANWAR CRM - Sheet routes (read rows, cell edits, per-submitter sheets)
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Query

from anwar_crm.models import CellEdit
from anwar_crm.services import workbook
from anwar_crm.services.triggers import on_sheet_edit
from anwar_crm.services.user_sheets import USER_SHEET_TYPES, get_submitter_rows, list_sheets_for_user
from anwar_crm.routes.errors import HANDLED, to_http_error

router = APIRouter(prefix="/sheets", tags=["Sheets"])


@router.get("")
async def list_sheets():
    sheets = await workbook.list_sheets()
    return {
        "sheets": [
            {"name": s["name"], "headers": s.get("headers", []), "row_count": s.get("row_count", 0)}
            for s in sheets
        ],
        "count": len(sheets),
    }


@router.get("/user/{email}")
async def user_sheets(email: str):
    """Data sheets holding rows submitted by `email`"""
    sheets = await list_sheets_for_user(email)
    return {"email": email, "sheets": sheets, "count": len(sheets)}


@router.get("/{sheet}/rows")
async def sheet_rows(
    sheet: str,
    submitter: Optional[str] = Query(None, description="Only rows submitted by this email"),
    limit: int = 500,
):
    if not await workbook.sheet_exists(sheet):
        raise HTTPException(status_code=404, detail=f"Sheet '{sheet}' not found")

    if submitter:
        if sheet not in USER_SHEET_TYPES:
            raise HTTPException(status_code=422, detail=f"Sheet '{sheet}' has no submitter column")
        rows = await get_submitter_rows(sheet, submitter)
    else:
        rows = await workbook.get_rows(sheet)

    headers = await workbook.get_headers(sheet)
    return {
        "sheet": sheet,
        "headers": headers,
        "rows": [{"row": r.row, **r.record} for r in rows[:limit]],
        "count": len(rows),
    }


@router.post("/{sheet}/edit")
async def edit_cell(sheet: str, edit: CellEdit):
    try:
        result = await on_sheet_edit(sheet, edit.row, edit.column, edit.value, edited_by=edit.edited_by)
    except HANDLED as e:
        raise to_http_error(e)
    return {"success": True, **result}
