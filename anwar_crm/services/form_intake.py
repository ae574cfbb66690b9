"""
ANWAR CRM - Shared form intake helpers

Every intake handler follows the same shape:
    submitter email → positional fields → generated ID → row append
    → event log → notification → result dict
"""

import logging
from typing import Dict, Any, List

from anwar_crm.config import display_time
from anwar_crm.schema import SCHEMAS
from anwar_crm.models import FormSubmission
from anwar_crm.services import workbook

logger = logging.getLogger("form_intake")


class FormPayloadError(Exception):
    """Raised when a form submission is missing required data or references an invalid record"""
    pass


def resolve_submitter_email(submission: FormSubmission, required: bool = True) -> str:
    """
    values[1] first, then named_values["Email Address"][0], then the respondent email.
    """
    email = submission.value(1)
    if not email:
        named = submission.named_values.get("Email Address") or []
        if named and named[0]:
            email = str(named[0]).strip()
    if not email and submission.respondent_email:
        email = submission.respondent_email.strip()

    if not email:
        if required:
            raise FormPayloadError("Submitter email not found in form submission")
        logger.warning("[INTAKE] Submission without submitter email")
    return email


def require_fields(form_name: str, fields: Dict[str, Any]):
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise FormPayloadError(f"{form_name}: missing required field(s): {', '.join(missing)}")


def build_row(headers: List[str], record: Dict[str, Any]) -> List[Any]:
    """Lay a record out in header order"""
    return [record.get(h, "") for h in headers]


async def append_record(sheet: str, record: Dict[str, Any]) -> int:
    """
    Ensure the sheet exists, then append `record` laid out against the live
    header row. Returns the row number.
    """
    await workbook.ensure_sheet(sheet, SCHEMAS[sheet])
    headers = await workbook.get_headers(sheet)

    dropped = [k for k in record if k not in headers]
    if dropped:
        logger.warning(f"[INTAKE] '{sheet}' has no column for {dropped}, values dropped")
    if not record.get("Timestamp"):
        record["Timestamp"] = display_time()

    row = await workbook.append_row(sheet, build_row(headers, record))
    logger.info(f"[INTAKE] Appended row {row} to '{sheet}'")
    return row
