"""
ANWAR CRM - Field visits

Visit form (positional):
    0 timestamp, 1 email, 2 visit type, 3 territory, 4 client type, 5 client name,
    6 client phone, 7 client address, 8 purpose/notes, 9 image link

Visit update form (positional):
    0 timestamp, 1 email, 2 visit type ("General Visit" | "Order Confirmation"),
    3 client type, 4 client ID, 5 user order ID, 6 territory, 7 image link,
    8 client name, 9 client phone

Visit updates are appended to their own sheet; update_visit_status edits a
Visits row in place.
"""

import logging
from typing import Optional, Dict, Any, List

from anwar_crm.config import display_time, normalize_phone_bd
from anwar_crm.schema import (
    VISITS, VISIT_UPDATES, ORDERS, IHB_APPROVALS, CRM_APPROVALS, RETAILER_POINT_REQUESTS,
    STATUS_APPROVED,
)
from anwar_crm.models import FormSubmission, Employee
from anwar_crm.services import workbook
from anwar_crm.services.workbook import RecordNotFoundError
from anwar_crm.services.form_intake import (
    FormPayloadError, resolve_submitter_email, require_fields, append_record,
)
from anwar_crm.services.id_generator import generate_daily_id
from anwar_crm.services.employees import (
    find_employee_by_email, find_employees_by_role, find_employees_by_territory,
)
from anwar_crm.services.notifications import notify_employees
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("visits")

GENERAL_VISIT = "General Visit"
ORDER_CONFIRMATION = "Order Confirmation"

# client type -> (sheet, ID column) holding approved clients
CLIENT_SOURCES = {
    "ihb": (IHB_APPROVALS, "IHB ID"),
    "partner": (CRM_APPROVALS, "Partner ID"),
    "retailer": (RETAILER_POINT_REQUESTS, "Request ID"),
}

CONFIRMABLE_ORDER_STATUSES = ("Submitted", "Approved", "In Progress", "Completed")


# ==================== CLIENT LOOKUPS ====================

async def lookup_client_by_phone(client_type: str, phone: str) -> Optional[Dict[str, Any]]:
    """IHB (Mobile Number) or partner (Contact / WhatsApp Number) record for a phone"""
    target = normalize_phone_bd(phone)
    if not target:
        return None
    kind = (client_type or "").strip().lower()
    if kind == "ihb":
        sheet, columns = IHB_APPROVALS, ("Mobile Number", "WhatsApp Number")
    elif kind == "partner":
        sheet, columns = CRM_APPROVALS, ("Contact Number", "WhatsApp Number")
    else:
        return None
    if not await workbook.sheet_exists(sheet):
        return None
    for row in await workbook.get_rows(sheet):
        if any(row.get(c) and normalize_phone_bd(row.get(c)) == target for c in columns):
            return row.record
    return None


async def validate_client_id(client_id: str, client_type: str) -> bool:
    """True when the client exists in its source sheet with status Approved"""
    source = CLIENT_SOURCES.get((client_type or "").strip().lower())
    if not source:
        logger.info(f"[INTAKE] Unknown client type: {client_type}")
        return False
    sheet, column = source
    if not await workbook.sheet_exists(sheet):
        return False
    row = await workbook.find_row(sheet, column, client_id)
    return bool(row) and row.get("Status") == STATUS_APPROVED


async def validate_order_for_confirmation(order_id: str) -> Dict[str, Any]:
    if not await workbook.sheet_exists(ORDERS):
        return {"valid": False, "reason": "not found (orders sheet missing)"}
    row = await workbook.find_row(ORDERS, "Order ID", order_id)
    if not row:
        return {"valid": False, "reason": "not found"}
    status = row.get("Status")
    if status not in CONFIRMABLE_ORDER_STATUSES:
        return {"valid": False, "reason": f"invalid status: {status}"}
    return {"valid": True, "reason": "valid"}


# ==================== VISITS ====================

async def handle_visit_submission(submission: FormSubmission) -> Dict[str, Any]:
    email = resolve_submitter_email(submission)
    visit = {
        "Timestamp": submission.value(0),
        "Email Address": email,
        "Type of Visit": submission.value(2),
        "Territory": submission.value(3),
        "Type of Client": submission.value(4),
        "Client Name": submission.value(5),
        "Client Phone Number": submission.value(6),
        "Client Address": submission.value(7),
        "Visit Purpose/Notes": submission.value(8),
        "Upload Image Link": submission.value(9),
        "Status": "Submitted",
        "Follow-up Required": "No",
    }
    require_fields("Visit", {"visit type": visit["Type of Visit"], "client name": visit["Client Name"]})

    visit_id = await generate_daily_id("V")
    visit["Visit ID"] = visit_id
    row = await append_record(VISITS, visit)

    await log_event(
        action="form_submit",
        entity_type="visit",
        entity_id=visit_id,
        user=email,
        details={"territory": visit["Territory"], "client_type": visit["Type of Client"]},
    )

    client = await lookup_client_by_phone(visit["Type of Client"], visit["Client Phone Number"])
    if client:
        client_info = "\n*Client Details:*\n" + "\n".join(
            f"*{k}:* {v}" for k, v in client.items()
            if v and k in ("IHB Name", "IHB ID", "Contractor Name", "Partner ID", "Partner Type", "Status")
        )
    elif visit["Type of Client"].lower() in ("ihb", "partner"):
        client_info = (
            f"\n⚠️ *Client Not Found:* No {visit['Type of Client']} record found "
            f"with phone number {visit['Client Phone Number']}"
        )
    else:
        client_info = ""

    details = (
        f"*Visit ID:* {visit_id}\n"
        f"*Visit Type:* {visit['Type of Visit']}\n"
        f"*Territory:* {visit['Territory']}\n"
        f"*Client:* {visit['Client Name']} ({visit['Type of Client']})\n"
        f"*Phone:* {visit['Client Phone Number']}\n"
        f"*Purpose:* {visit['Visit Purpose/Notes']}"
    )
    submitter = await find_employee_by_email(email)
    recipients: List[Employee] = [submitter] if submitter else []
    team = [e for e in await find_employees_by_territory(visit["Territory"]) if e.email.lower() != email.lower()]

    notified = await notify_employees(
        recipients,
        f"🏠 *Visit Submitted Successfully*\n\n{details}{client_info}\n\n"
        f"Your visit has been recorded successfully and is now in the system for tracking.",
    )
    notified += await notify_employees(
        team,
        f"🏠 *New Visit in Your Territory*\n\n{details}\n"
        f"*Submitted by:* {submitter.name if submitter else email}",
    )
    return {"visit_id": visit_id, "row": row, "status": "Submitted", "notified": notified}


async def update_visit_status(visit_id: str, status: str, notes: str = "", actor: str = "system") -> Dict[str, Any]:
    row = await workbook.find_row(VISITS, "Visit ID", visit_id) if await workbook.sheet_exists(VISITS) else None
    if not row:
        raise RecordNotFoundError(f"Visit ID {visit_id} not found")

    previous = row.get("Status")
    updates = {"Status": status}
    if notes:
        updates["Notes"] = notes
    updated = await workbook.update_cells(VISITS, row.row, updates)

    logger.info(f"[STATE_MACHINE] Visit {visit_id}: '{previous}' -> '{status}'")
    await log_event(
        action="status_update",
        entity_type="visit",
        entity_id=visit_id,
        user=actor,
        details={"from_status": previous, "to_status": status, "notes": notes},
    )
    return {"visit_id": visit_id, "row": row.row, "from_status": previous, "to_status": status,
            "record": updated.record}


async def mark_visit_for_followup(visit_id: str, reason: str, actor: str = "system") -> Dict[str, Any]:
    row = await workbook.find_row(VISITS, "Visit ID", visit_id) if await workbook.sheet_exists(VISITS) else None
    if not row:
        raise RecordNotFoundError(f"Visit ID {visit_id} not found")
    updated = await workbook.update_cells(VISITS, row.row, {
        "Follow-up Required": "Yes",
        "Notes": f"Follow-up required: {reason}",
    })
    await log_event(action="followup", entity_type="visit", entity_id=visit_id, user=actor,
                    details={"reason": reason})
    return {"visit_id": visit_id, "row": row.row, "record": updated.record}


# ==================== VISIT UPDATES ====================

async def validate_visit_update(update: Dict[str, str]) -> List[str]:
    errors = []
    visit_type = update["Type of Visit"]

    if visit_type == GENERAL_VISIT:
        if not update["Type of Client"]:
            errors.append("Type of Client is required for General Visit")
        if not update["Client ID"]:
            errors.append("Client ID is required for General Visit")
        elif not await validate_client_id(update["Client ID"], update["Type of Client"]):
            errors.append(f"{update['Type of Client']} with ID {update['Client ID']} not found or not approved")
    elif visit_type == ORDER_CONFIRMATION:
        if not update["User Order ID"]:
            errors.append("User Order ID is required for Order Confirmation")
        else:
            check = await validate_order_for_confirmation(update["User Order ID"])
            if not check["valid"]:
                errors.append(f"Order ID {update['User Order ID']} is {check['reason']}")
    else:
        errors.append(f'Invalid visit type. Must be "{GENERAL_VISIT}" or "{ORDER_CONFIRMATION}"')

    if not update["Territory"]:
        errors.append("Territory is required")
    if not update["Client Name"]:
        errors.append("Client Name is required")
    if not update["Client Phone Number"]:
        errors.append("Client Phone Number is required")
    return errors


async def visit_update_recipients(submitter: Optional[Employee]) -> List[Employee]:
    """
    SR / CRO            -> BDO + BD Team Incharge
    BDO / BD Team Inch. -> BD Incharge
    anyone else         -> ASM + CRO
    """
    if not submitter:
        return []
    role = submitter.role
    if role in ("SR", "CRO"):
        return await find_employees_by_role(["BDO", "BD Team Incharge"])
    if role in ("BDO", "BD Team Incharge"):
        return await find_employees_by_role(["BD Incharge"])
    return await find_employees_by_role(["ASM", "CRO"])


async def handle_visit_update_submission(submission: FormSubmission) -> Dict[str, Any]:
    email = resolve_submitter_email(submission)
    update = {
        "Timestamp": submission.value(0),
        "Email Address": email,
        "Type of Visit": submission.value(2),
        "Type of Client": submission.value(3),
        "Client ID": submission.value(4),
        "User Order ID": submission.value(5),
        "Territory": submission.value(6),
        "Upload Image Link": submission.value(7),
        "Client Name": submission.value(8),
        "Client Phone Number": submission.value(9),
        "Status": "Submitted",
    }
    errors = await validate_visit_update(update)
    if errors:
        raise FormPayloadError(f"Validation failed: {', '.join(errors)}")

    update_id = await generate_daily_id("VU")
    update["Visit Update ID"] = update_id
    row = await append_record(VISIT_UPDATES, update)

    submitter = await find_employee_by_email(email)
    if not submitter:
        logger.error(f"[NOTIFY] Visit update submitter not found in employee system: {email}")

    is_general = update["Type of Visit"] == GENERAL_VISIT
    reference = update["Client ID"] if is_general else update["User Order ID"]
    message = (
        f"📍 *New Visit Update Submitted*\n\n"
        f"*Type:* {update['Type of Visit']}\n"
        f"*Client/Order ID:* {reference}\n"
        f"*Territory:* {update['Territory']}\n"
        f"*Client Name:* {update['Client Name']}\n"
        f"*Client Phone:* {update['Client Phone Number']}\n"
        f"*Submitted by:* {submitter.name + ' (' + submitter.role + ')' if submitter else email}\n\n"
        + (f"*Client Type:* {update['Type of Client']}" if is_general
           else f"*Order Confirmation:* {update['User Order ID']}")
        + (f"\n\n*Images:* {update['Upload Image Link']}" if update["Upload Image Link"] else "")
        + f"\n\nPlease review and take necessary action.\n\n*Submission Time:* {display_time()}"
    )
    notified = await notify_employees(await visit_update_recipients(submitter), message, exclude_email=email)

    sent_to = ", ".join(f"{r['name']} ({r['role']})" for r in notified)
    await workbook.update_cells(VISIT_UPDATES, row, {"Notification Sent To": sent_to})

    await log_event(
        action="form_submit",
        entity_type="visit_update",
        entity_id=update_id,
        user=email,
        details={"type": update["Type of Visit"], "reference": reference, "notified": len(notified)},
    )
    return {"visit_update_id": update_id, "row": row, "notified": notified, "notification_sent_to": sent_to}
