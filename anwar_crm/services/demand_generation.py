"""
ANWAR CRM - Demand Generation Requests

ASMs request demand generation activity for a territory/bazaar.
Flow: submit (Pending Review) → BD Incharge approves or rejects.

Positional form fields:
    0 timestamp, 1 email, 2 territory, 3 bazaar, 4 area, 5 reason, 6 business unit
"""

import logging
from typing import Dict, Any

from anwar_crm.config import display_time
from anwar_crm.schema import DEMAND_GENERATION_REQUESTS
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

logger = logging.getLogger("demand_generation")

FORM_TYPE = "DEMAND_GENERATION"


def _submitted_by(employee, email: str) -> str:
    return f"{employee.name} ({employee.role})" if employee else email


async def handle_demand_generation_submission(submission: FormSubmission) -> Dict[str, Any]:
    email = resolve_submitter_email(submission)
    request = {
        "territory": submission.value(2),
        "bazaar": submission.value(3),
        "area": submission.value(4),
        "reason": submission.value(5),
        "business_unit": submission.value(6),
    }
    require_fields("Demand generation", {
        "territory": request["territory"],
        "business unit": request["business_unit"],
    })

    submitter = await find_employee_by_email(email)
    if submitter and submitter.role.upper() != "ASM":
        logger.warning(f"[INTAKE] Demand generation submitted by {submitter.role}, expected ASM")

    request_id = await generate_daily_id("DGR")
    status = initial_status(DEMAND_GENERATION_REQUESTS)

    row = await append_record(DEMAND_GENERATION_REQUESTS, {
        "Timestamp": submission.value(0),
        "Request ID": request_id,
        "Email Address": email,
        "Territory": request["territory"],
        "Bazaar": request["bazaar"],
        "Area": request["area"],
        "Reason": request["reason"],
        "Business Unit": request["business_unit"],
        "Status": status,
    })
    logger.info(f"[INTAKE] Demand generation {request_id} for {request['territory']}/{request['business_unit']}")

    await log_event(
        action="form_submit",
        entity_type="demand_generation",
        entity_id=request_id,
        user=email,
        details=request,
    )

    who = _submitted_by(submitter, email)
    submitter_message = (
        f"📈 *Demand Generation Request Submitted*\n\n"
        f"*Request ID:* {request_id}\n"
        f"*Territory:* {request['territory']}\n"
        f"*Bazaar:* {request['bazaar']}\n"
        f"*Area:* {request['area']}\n"
        f"*Business Unit:* {request['business_unit']}\n\n"
        f"*Status:* Pending BD Incharge Review\n\n"
        f"Your demand generation request has been submitted and is pending review from the BD Incharge.\n\n"
        f"*Submitted by:* {who}\n"
        f"*Submission Time:* {display_time()}"
    )
    incharge_message = (
        f"📈 *New Demand Generation Request - ACTION REQUIRED*\n\n"
        f"*Request ID:* {request_id}\n"
        f"*Submitted by:* {who}\n"
        f"*Submitter Email:* {email}\n"
        f"*Territory:* {request['territory']}\n"
        f"*Bazaar:* {request['bazaar']}\n"
        f"*Area:* {request['area']}\n"
        f"*Business Unit:* {request['business_unit']}\n"
        f"*Reason:* {request['reason']}\n\n"
        f"*Status:* Pending Your Review\n\n"
        f"📝 *Action Required:*\n"
        f"Please review this request and approve or reject it through the CRM system.\n\n"
        f"*Submission Time:* {display_time()}"
    )

    resolution = await resolve_recipients("demand_generation", request["territory"], request["business_unit"])
    notified = await send_form_notification(
        FORM_TYPE,
        email,
        submitter_message,
        resolution.recipients,
        recipient_message=resolution.format_message(incharge_message),
    )

    return {
        "request_id": request_id,
        "row": row,
        "status": status,
        "routing": resolution.to_dict(),
        "notified": notified,
    }


async def approve_demand_generation(request_id: str, notes: str = "", actor: str = "system") -> Dict[str, Any]:
    result = await mark_record_approved(DEMAND_GENERATION_REQUESTS, request_id, notes, actor=actor)
    record = result["record"]
    submitter = await find_employee_by_email(record["Email Address"])

    message = (
        f"✅ *Demand Generation Request Approved*\n\n"
        f"*Request ID:* {request_id}\n"
        f"*Territory:* {record['Territory']}\n"
        f"*Bazaar:* {record['Bazaar']}\n"
        f"*Area:* {record['Area']}\n"
        f"*Business Unit:* {record['Business Unit']}\n\n"
        f"Your demand generation request has been approved by the BD Incharge.\n\n"
        f"*Approval Details:*\n"
        f"- Status: Approved\n"
        f"- Submitted by: {_submitted_by(submitter, record['Email Address'])}\n"
        f"- Approval Date: {record['Approval Date']}"
        + (f"\n- Notes: {notes}" if notes else "")
    )
    result["notified"] = await notify_submitter(record["Email Address"], message)
    return result


async def reject_demand_generation(request_id: str, reason: str, actor: str = "system") -> Dict[str, Any]:
    result = await mark_record_rejected(DEMAND_GENERATION_REQUESTS, request_id, reason, actor=actor)
    record = result["record"]
    submitter = await find_employee_by_email(record["Email Address"])

    message = (
        f"❌ *Demand Generation Request Rejected*\n\n"
        f"*Request ID:* {request_id}\n"
        f"*Territory:* {record['Territory']}\n"
        f"*Bazaar:* {record['Bazaar']}\n"
        f"*Area:* {record['Area']}\n"
        f"*Business Unit:* {record['Business Unit']}\n"
        f"*Rejection Reason:* {reason}\n\n"
        f"*Rejection Details:*\n"
        f"- Status: Rejected by BD Incharge\n"
        f"- Submitted by: {_submitted_by(submitter, record['Email Address'])}\n"
        f"- Rejection Date: {display_time()}\n\n"
        f"📋 *Next Steps:*\n"
        f"Please contact your BD Incharge for more information or resubmit with corrections."
    )
    result["notified"] = await notify_submitter(record["Email Address"], message)
    return result
