"""
ANWAR CRM - Per-submitter data sheets

Every data sheet filtered on the submitter's email is one "user sheet".
The registry is computed from the shared sheets; nothing is copied.
"""

import logging
from typing import List, Dict, Any
from urllib.parse import quote

from anwar_crm import config
from anwar_crm.config import db
from anwar_crm.schema import (
    ORDERS, DISPUTES, VISITS, VISIT_UPDATES, IHB_APPROVALS, POTENTIAL_SITE_APPROVALS,
    DEMAND_GENERATION_REQUESTS, RETAILER_POINT_REQUESTS, PROJECT_UPDATE, CRM_APPROVALS,
)
from anwar_crm.services import workbook

logger = logging.getLogger("user_sheets")

# sheet -> (label shown to the user, submitter email column)
USER_SHEET_TYPES = {
    ORDERS: ("Orders", "Submitter Email"),
    DISPUTES: ("Disputes", "Submitter Email"),
    VISITS: ("Visits", "Email Address"),
    VISIT_UPDATES: ("Visit Updates", "Email Address"),
    IHB_APPROVALS: ("IHB Registrations", "Email Address"),
    POTENTIAL_SITE_APPROVALS: ("Potential Sites", "Email Address"),
    DEMAND_GENERATION_REQUESTS: ("Demand Generation", "Email Address"),
    RETAILER_POINT_REQUESTS: ("Retailer Points", "Email Address"),
    PROJECT_UPDATE: ("Partner Updates", "Email Address"),
    CRM_APPROVALS: ("Partner Registrations", "Email Address"),
}


def sheet_access_url(sheet: str, email: str) -> str:
    return (
        f"{config.PUBLIC_BASE_URL.rstrip('/')}/api/sheets/{quote(sheet)}/rows"
        f"?submitter={quote(email)}"
    )


async def get_submitter_rows(sheet: str, email: str) -> List[workbook.SheetRow]:
    if sheet not in USER_SHEET_TYPES or not email:
        return []
    if not await workbook.sheet_exists(sheet):
        return []
    _, column = USER_SHEET_TYPES[sheet]
    return await workbook.find_rows(sheet, **{column: email})


async def list_sheets_for_user(email: str) -> List[Dict[str, Any]]:
    """Sheets holding at least one row submitted by `email`, in a stable order"""
    sheets = []
    for sheet, (label, _) in USER_SHEET_TYPES.items():
        rows = await get_submitter_rows(sheet, email)
        if not rows:
            continue

        docs = await db.sheet_rows.find(
            {"sheet": sheet, "row": {"$in": [r.row for r in rows]}},
            {"_id": 0, "updated_at": 1},
        ).to_list(None)
        updated = [d["updated_at"] for d in docs if d.get("updated_at")]

        sheets.append({
            "sheet_type": label,
            "sheet_name": sheet,
            "record_count": len(rows),
            "last_updated": max(updated) if updated else None,
            "link": sheet_access_url(sheet, email),
        })

    logger.info(f"[BOT] {email} has {len(sheets)} data sheets")
    return sheets
