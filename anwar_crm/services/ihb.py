"""
ANWAR CRM - IHB (Individual House Builder) registration

Submit (Pending Approval) → CRM team approves, which assigns the permanent IHBNNN ID.

Positional form fields:
    0 timestamp, 1 email, 2 IHB name, 3 IHB email, 4 mobile, 5 NID, 6 address,
    7 WhatsApp, 8 NID upload link, 9 additional notes
"""

import logging
from typing import Optional, Dict, Any, List

from anwar_crm.config import normalize_phone_bd
from anwar_crm.schema import IHB_APPROVALS, STATUS_APPROVED
from anwar_crm.models import FormSubmission
from anwar_crm.services import workbook
from anwar_crm.services.form_intake import resolve_submitter_email, require_fields, append_record
from anwar_crm.services.id_generator import generate_daily_id, generate_ihb_id
from anwar_crm.services.employees import find_employees_by_role
from anwar_crm.services.notifications import send_form_notification, notify_submitter
from anwar_crm.services.approval_state_machine import (
    initial_status, mark_record_approved, mark_record_rejected,
    get_approval_record, validate_status_transition,
)
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("ihb")

FORM_TYPE = "IHB_REGISTRATION"


async def handle_ihb_submission(submission: FormSubmission) -> Dict[str, Any]:
    email = resolve_submitter_email(submission)
    ihb_name = submission.value(2)
    mobile = submission.value(4)
    require_fields("IHB registration", {"IHB name": ihb_name, "mobile number": mobile})

    submission_id = await generate_daily_id("IHB")
    status = initial_status(IHB_APPROVALS)
    record = {
        "Timestamp": submission.value(0),
        "Submission ID": submission_id,
        "Email Address": email,
        "IHB Name": ihb_name,
        "IHB Email": submission.value(3),
        "Mobile Number": mobile,
        "NID Number": submission.value(5),
        "Address": submission.value(6),
        "WhatsApp Number": normalize_phone_bd(submission.value(7)) if submission.value(7) else "",
        "NID Upload Link": submission.value(8),
        "Additional Notes": submission.value(9),
        "Status": status,
    }
    row = await append_record(IHB_APPROVALS, record)

    await log_event(
        action="form_submit",
        entity_type="ihb",
        entity_id=submission_id,
        user=email,
        details={"ihb_name": ihb_name, "mobile": mobile},
    )

    details = (
        f"*Submission ID:* {submission_id}\n"
        f"*IHB Name:* {ihb_name}\n"
        f"*Email:* {record['IHB Email']}\n"
        f"*Mobile:* {mobile}\n"
        f"*NID:* {record['NID Number']}\n"
        f"*Address:* {record['Address']}\n"
    )
    submitter_message = (
        f"🏠 *IHB Registration Submitted*\n\n{details}\n"
        f"*Status:* Pending CRM Review\n\n"
        f"Your IHB registration has been submitted successfully and is now pending approval from the CRM team."
    )
    cro_message = (
        f"🏠 *New IHB Registration - ACTION REQUIRED*\n\n{details}"
        f"*Submitted by:* {email}\n\n"
        f"Please verify the NID and approve or reject this registration."
    )

    cro_team = await find_employees_by_role(["CRO"])
    notified = await send_form_notification(
        FORM_TYPE, email, submitter_message, cro_team, recipient_message=cro_message
    )
    return {"submission_id": submission_id, "row": row, "status": status, "notified": notified}


async def approve_ihb(submission_id: str, notes: str = "", actor: str = "system") -> Dict[str, Any]:
    """Approve a registration and assign its permanent IHB ID"""
    # validate before allocating the IHB ID
    pending = await get_approval_record(IHB_APPROVALS, submission_id)
    validate_status_transition(
        IHB_APPROVALS, submission_id, str(pending.get("Status")).strip(), STATUS_APPROVED
    )
    ihb_id = await generate_ihb_id()
    result = await mark_record_approved(
        IHB_APPROVALS, submission_id, notes, extra={"IHB ID": ihb_id}, actor=actor
    )
    record = result["record"]
    result["ihb_id"] = ihb_id

    message = (
        f"✅ *IHB Registration Approved*\n\n"
        f"*IHB Name:* {record['IHB Name']}\n"
        f"*IHB ID:* {ihb_id}\n"
        f"*Submission ID:* {submission_id}\n\n"
        f"Your IHB registration has been approved. You can now be tagged in potential site forms.\n\n"
        f"Welcome to the Anwar Sales Ecosystem!"
    )
    result["notified"] = await notify_submitter(record["Email Address"], message)
    return result


async def reject_ihb(submission_id: str, reason: str, actor: str = "system") -> Dict[str, Any]:
    result = await mark_record_rejected(IHB_APPROVALS, submission_id, reason, actor=actor)
    record = result["record"]
    message = (
        f"❌ *IHB Registration Rejected*\n\n"
        f"*IHB Name:* {record['IHB Name']}\n"
        f"*Submission ID:* {submission_id}\n"
        f"*Reason:* {reason}\n\n"
        f"Please contact the CRM team for more information or to resubmit with corrections."
    )
    result["notified"] = await notify_submitter(record["Email Address"], message)
    return result


# ==================== LOOKUPS ====================

async def get_approved_ihbs() -> List[Dict[str, Any]]:
    if not await workbook.sheet_exists(IHB_APPROVALS):
        return []
    return [row.record for row in await workbook.find_rows(IHB_APPROVALS, Status=STATUS_APPROVED)]


async def find_ihb_by_id(ihb_id: str) -> Optional[Dict[str, Any]]:
    if not ihb_id or not await workbook.sheet_exists(IHB_APPROVALS):
        return None
    row = await workbook.find_row(IHB_APPROVALS, "IHB ID", ihb_id)
    return row.record if row else None


async def find_ihb_by_email(email: str) -> Optional[Dict[str, Any]]:
    if not email or not await workbook.sheet_exists(IHB_APPROVALS):
        return None
    for row in await workbook.get_rows(IHB_APPROVALS):
        if str(row.get("IHB Email")).strip().lower() == email.strip().lower():
            return row.record
    return None
