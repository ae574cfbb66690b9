"""
ANWAR CRM - Retailer Point Requests

BDOs/CROs request a new retailer point; the territory's ASM approves or rejects.

Positional form fields:
    0 timestamp, 1 email, 2 territory name, 3 location, 4 company (business unit)
"""

import logging
from typing import Dict, Any

from anwar_crm.config import display_time
from anwar_crm.schema import RETAILER_POINT_REQUESTS
from anwar_crm.models import FormSubmission
from anwar_crm.services.form_intake import resolve_submitter_email, require_fields, append_record
from anwar_crm.services.id_generator import generate_daily_id
from anwar_crm.services.employees import find_employee_by_email
from anwar_crm.services.notification_policy import resolve_recipients
from anwar_crm.services.notifications import send_form_notification, notify_submitter
from anwar_crm.services.approval_state_machine import (
    initial_status, mark_record_approved, mark_record_rejected,
)
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("retailer_point")

FORM_TYPE = "RETAILER_POINT"
EXPECTED_SUBMITTER_ROLES = ("BDO", "CRO")


def _request_block(request_id: str, record: Dict[str, Any]) -> str:
    return (
        f"*Request ID:* {request_id}\n"
        f"*Territory:* {record['Territory Name']}\n"
        f"*Location:* {record['Location']}\n"
        f"*Company:* {record['Select Company']}\n"
    )


async def handle_retailer_point_submission(submission: FormSubmission) -> Dict[str, Any]:
    email = resolve_submitter_email(submission)
    territory = submission.value(2)
    location = submission.value(3)
    company = submission.value(4)
    require_fields("Retailer point", {"territory": territory, "company": company})

    submitter = await find_employee_by_email(email)
    if submitter and submitter.role.upper() not in EXPECTED_SUBMITTER_ROLES:
        logger.warning(f"[INTAKE] Retailer point submitted by {submitter.role}, expected BDO or CRO")

    request_id = await generate_daily_id("RPR")
    status = initial_status(RETAILER_POINT_REQUESTS)
    record = {
        "Timestamp": submission.value(0),
        "Request ID": request_id,
        "Email Address": email,
        "Territory Name": territory,
        "Location": location,
        "Select Company": company,
        "Status": status,
    }
    row = await append_record(RETAILER_POINT_REQUESTS, record)

    await log_event(
        action="form_submit",
        entity_type="retailer_point",
        entity_id=request_id,
        user=email,
        details={"territory": territory, "location": location, "company": company},
    )

    who = f"{submitter.name} ({submitter.role})" if submitter else email
    submitter_message = (
        f"🏪 *Retailer Point Request Submitted*\n\n"
        f"{_request_block(request_id, record)}\n"
        f"*Status:* Pending ASM Review\n\n"
        f"Your retailer point request has been submitted successfully and is now pending "
        f"review from the Area Sales Manager.\n\n"
        f"*Submitted by:* {who}\n"
        f"*Submission Time:* {display_time()}"
    )
    asm_message = (
        f"🏪 *New Retailer Point Request - ACTION REQUIRED*\n\n"
        f"{_request_block(request_id, record)}"
        f"*Submitted by:* {who}\n"
        f"*Submitter Email:* {email}\n\n"
        f"*Status:* Pending Your Review\n\n"
        f"📝 *Action Required:*\n"
        f"Please review this retailer point request and approve or reject it through the CRM system.\n\n"
        f"*Review Guidelines:*\n"
        f"- Verify location feasibility\n"
        f"- Check territory coverage\n"
        f"- Assess market potential\n"
        f"- Ensure compliance with company policies\n\n"
        f"*Submission Time:* {display_time()}"
    )

    resolution = await resolve_recipients("retailer_point", territory, company)
    notified = await send_form_notification(
        FORM_TYPE, email, submitter_message, resolution.recipients,
        recipient_message=resolution.format_message(asm_message),
    )

    return {
        "request_id": request_id,
        "row": row,
        "status": status,
        "routing": resolution.to_dict(),
        "notified": notified,
    }


async def approve_retailer_point(request_id: str, notes: str = "", actor: str = "system") -> Dict[str, Any]:
    result = await mark_record_approved(RETAILER_POINT_REQUESTS, request_id, notes, actor=actor)
    record = result["record"]
    message = (
        f"✅ *Retailer Point Request Approved*\n\n"
        f"{_request_block(request_id, record)}\n"
        f"Your retailer point request has been approved by the ASM.\n\n"
        f"*Approval Date:* {record['Approval Date']}\n\n"
        f"📋 *Next Steps:*\n"
        f"Proceed with setting up the retailer point according to company guidelines."
    )
    result["notified"] = await notify_submitter(record["Email Address"], message)
    return result


async def reject_retailer_point(request_id: str, reason: str, actor: str = "system") -> Dict[str, Any]:
    result = await mark_record_rejected(RETAILER_POINT_REQUESTS, request_id, reason, actor=actor)
    record = result["record"]
    message = (
        f"❌ *Retailer Point Request Rejected*\n\n"
        f"{_request_block(request_id, record)}"
        f"*Rejection Reason:* {reason}\n\n"
        f"📋 *Next Steps:*\n"
        f"Please contact your ASM for more information or resubmit with corrections."
    )
    result["notified"] = await notify_submitter(record["Email Address"], message)
    return result
