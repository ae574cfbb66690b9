"""
ANWAR CRM - Partners (site engineers and contractors)

Registration:
    0 timestamp, 1 email, 2 partner type, 3 name, 4 contact, 5 bKash, 6 NID,
    7 NID upload, 8 WhatsApp
    → CRM Approvals row (Pending) with a pre-assigned partner ID (S10122 / C1022 series)

Assignment (partner update form):
    0 timestamp, 1 email, 2 potential site ID, 3 partner type, 4 partner ID,
    5 partner name, 6 WhatsApp
    → engineer/partner written onto an approved potential site + Project Update row
"""

import uuid
import logging
from typing import Optional, Dict, Any

from anwar_crm.config import display_time, normalize_phone_bd
from anwar_crm.schema import CRM_APPROVALS, POTENTIAL_SITE_APPROVALS, PROJECT_UPDATE, STATUS_APPROVED
from anwar_crm.models import FormSubmission
from anwar_crm.services import workbook
from anwar_crm.services.form_intake import (
    FormPayloadError, resolve_submitter_email, require_fields, append_record,
)
from anwar_crm.services.id_generator import generate_partner_id, validate_partner_id, PARTNER_TYPES
from anwar_crm.services.employees import find_employee_by_email, find_employees_by_role
from anwar_crm.services.potential_site import find_potential_site, territory_recipients
from anwar_crm.services.notifications import notify_employees, notify_submitter
from anwar_crm.services.approval_state_machine import (
    initial_status, mark_record_approved, mark_record_rejected,
)
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("partners")

SITE_ENGINEER = "Site Engineer"


async def find_partner(partner_id: str) -> Optional[Dict[str, Any]]:
    """CRM Approvals record for a partner ID"""
    if not partner_id or not await workbook.sheet_exists(CRM_APPROVALS):
        return None
    row = await workbook.find_row(CRM_APPROVALS, "Partner ID", partner_id)
    return row.record if row else None


def partner_phone(record: Optional[Dict[str, Any]]) -> str:
    if not record:
        return ""
    return normalize_phone_bd(record.get("WhatsApp Number") or record.get("Contact Number"))


# ==================== REGISTRATION ====================

async def handle_partner_registration_submission(submission: FormSubmission) -> Dict[str, Any]:
    # email is optional on partner registrations
    email = resolve_submitter_email(submission, required=False)
    partner_type = submission.value(2)
    partner_name = submission.value(3)
    contact = submission.value(4)

    if partner_type not in PARTNER_TYPES:
        raise FormPayloadError(f"Unknown partner type: '{partner_type}'")
    require_fields("Partner registration", {"partner name": partner_name})

    partner_id = await generate_partner_id(partner_type)
    submission_id = str(uuid.uuid4())
    status = initial_status(CRM_APPROVALS)
    whatsapp = submission.value(8)

    row = await append_record(CRM_APPROVALS, {
        "Timestamp": submission.value(0),
        "Email Address": email,
        "Contractor Name": partner_name,
        "Bkash Number": submission.value(5),
        "Contact Number": contact,
        "NID No": submission.value(6),
        "NID Upload": submission.value(7),
        "Submission ID": submission_id,
        "Status": status,
        "Partner ID": partner_id,
        "Partner Type": partner_type,
        "WhatsApp Number": normalize_phone_bd(whatsapp) if whatsapp else "",
    })

    await log_event(
        action="form_submit",
        entity_type="partner",
        entity_id=partner_id,
        user=email or "unknown",
        details={"partner_type": partner_type, "name": partner_name, "submission_id": submission_id},
    )

    message = (
        f"✅ Partner Registration Submitted Successfully!\n\n"
        f"Partner Details:\n"
        f"📋 Submission ID: {submission_id}\n"
        f"👤 Partner Type: {partner_type}\n"
        f"📝 Partner Name: {partner_name}\n"
        f"🆔 Partner ID: {partner_id}\n"
        f"📞 Contact: {contact}\n"
        f"📊 Status: {status}\n\n"
        f"Your partner registration has been submitted and is currently under review. "
        f"You will be notified once the registration is approved."
    )
    notified = await notify_submitter(email, message) if email else None

    return {
        "partner_id": partner_id,
        "submission_id": submission_id,
        "row": row,
        "status": status,
        "notified": notified,
    }


def _enlistment_message(partner_id: str, record: Dict[str, Any], status: str, notes: str) -> str:
    return (
        f"Contractor Enlistment Update\n"
        f"Partner ID: {partner_id}\n"
        f"Partner Type: {record['Partner Type']}\n"
        f"Contractor Name: {record['Contractor Name']}\n"
        f"Mobile: {record['Contact Number']}\n"
        f"NID: {record['NID No']}\n"
        f"Payment Number: {record['Bkash Number']}\n"
        f"Status: {status}\n"
        f"Update Date: {display_time()}"
        + (f"\nNotes: {notes}" if notes else "")
    )


async def approve_partner(partner_id: str, notes: str = "", actor: str = "system") -> Dict[str, Any]:
    result = await mark_record_approved(CRM_APPROVALS, partner_id, notes, actor=actor)
    record = result["record"]
    result["notified"] = await notify_submitter(
        record["Email Address"], _enlistment_message(partner_id, record, STATUS_APPROVED, notes)
    )
    return result


async def reject_partner(partner_id: str, reason: str, actor: str = "system") -> Dict[str, Any]:
    result = await mark_record_rejected(CRM_APPROVALS, partner_id, reason, actor=actor)
    record = result["record"]
    result["notified"] = await notify_submitter(
        record["Email Address"], _enlistment_message(partner_id, record, "Rejected", reason)
    )
    return result


# ==================== ASSIGNMENT ====================

async def handle_partner_assignment_submission(submission: FormSubmission) -> Dict[str, Any]:
    email = resolve_submitter_email(submission)
    site_id = submission.value(2)
    partner_type = submission.value(3)
    partner_id = submission.value(4)
    partner_name = submission.value(5)
    whatsapp = submission.value(6)
    require_fields("Partner assignment", {"potential site ID": site_id, "partner name": partner_name})

    if not validate_partner_id(partner_id, partner_type):
        raise FormPayloadError(f"Invalid Partner ID format for type {partner_type}: {partner_id}")

    site = await find_potential_site(site_id)
    if not site:
        raise FormPayloadError(f"Potential site {site_id} not found")
    if site.get("Status") != STATUS_APPROVED:
        raise FormPayloadError(
            f"Cannot assign {partner_type.lower()} to {site_id}: site status is '{site.get('Status')}'"
        )

    assigned_at = display_time()
    note = f"{partner_type} Assignment: {partner_name} ({partner_id}) assigned on {assigned_at}"
    current_notes = site.get("Notes")
    updates = {
        "Assignment Date": assigned_at,
        "Notes": f"{current_notes}\n{note}" if current_notes else note,
    }
    if partner_type == SITE_ENGINEER:
        updates.update({"Engineer ID": partner_id, "Engineer Name": partner_name})
    else:
        updates.update({"Partner ID": partner_id, "Partner Name": partner_name})
    await workbook.update_cells(POTENTIAL_SITE_APPROVALS, site.row, updates)

    is_engineer = partner_type == SITE_ENGINEER
    tracking_row = await append_record(PROJECT_UPDATE, {
        "Timestamp": submission.value(0),
        "Email Address": email,
        "Project ID": site_id,
        "Site Engineer ID": partner_id if is_engineer else "",
        "Partner ID": "" if is_engineer else partner_id,
        "Delivery Method": "Partner Update",
        "Reward Eligible": "N/A",
        "Status": "Assigned",
        "Notes": f"{partner_type} {partner_name} assigned to project",
        "Submission ID": uuid.uuid4().hex[:8].upper(),
        "Project Name": site.get("Site Name"),
        "Project Address": site.get("Address"),
        "Project Status": "Active",
        "Engineer Name": partner_name if is_engineer else "",
        "Engineer ID": partner_id if is_engineer else "",
        "Partner Name": "" if is_engineer else partner_name,
        "Assigned Partner ID": "" if is_engineer else partner_id,
    })

    await log_event(
        action="partner_assigned",
        entity_type="potential_site",
        entity_id=site_id,
        user=email,
        details={"partner_type": partner_type, "partner_name": partner_name},
        related={"partner_id": partner_id},
    )

    submitter = await find_employee_by_email(email)
    message = (
        f"🔔 Partner/Engineer Assignment Update\n\n"
        f"📋 Project ID: {site_id}\n"
        f"🏗️ Project Name: {site.get('Site Name') or 'N/A'}\n"
        f"📍 Project Address: {site.get('Address') or 'N/A'}\n"
        f"👤 {partner_type}: {partner_name} ({partner_id})\n"
        + (f"📞 Contact: {whatsapp}\n" if whatsapp else "")
        + f"👨‍💼 Assigned by: {submitter.name if submitter else email}\n"
        f"📅 Assignment Date: {assigned_at}"
    )
    recipients = await find_employees_by_role(["ASM", "CRO"])
    recipients.extend(await territory_recipients(submitter))
    notified = await notify_employees(recipients, message)

    return {
        "potential_site_id": site_id,
        "partner_id": partner_id,
        "partner_type": partner_type,
        "tracking_row": tracking_row,
        "notified": notified,
    }
