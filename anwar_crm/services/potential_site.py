"""
ANWAR CRM - Potential Sites

A potential site is a construction site that may generate orders.
Flow: submit (Pending) → approve/reject. Approval opens a Project Update record.

Positional form fields (registration):
    0 timestamp, 1 email, 2 site name, 3 address, 4 lat, 5 long, 6 IHB ID, 7 IHB name

Positional form fields (site update):
    0 timestamp, 1 email, 2 site ID, 3 update type, 4 new status, 5 updated info,
    6 reason, 7 supporting docs, 8 priority
"""

import logging
from typing import Optional, Dict, Any, List

from anwar_crm.config import display_time
from anwar_crm.schema import (
    POTENTIAL_SITE_APPROVALS, PROJECT_UPDATE, SCHEMAS, STATUS_APPROVED, STATUS_REJECTED,
)
from anwar_crm.models import FormSubmission, Employee
from anwar_crm.services import workbook
from anwar_crm.services.form_intake import (
    FormPayloadError, resolve_submitter_email, require_fields, append_record,
)
from anwar_crm.services.id_generator import generate_potential_site_id
from anwar_crm.services.employees import find_employee_by_email, find_employees_by_territory
from anwar_crm.services.ihb import find_ihb_by_id, find_ihb_by_email
from anwar_crm.services.notifications import notify_employees
from anwar_crm.services.approval_state_machine import (
    initial_status, mark_record_approved, mark_record_rejected,
)
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("potential_site")


async def find_potential_site(site_id: str) -> Optional[workbook.SheetRow]:
    if not site_id or not await workbook.sheet_exists(POTENTIAL_SITE_APPROVALS):
        return None
    return await workbook.find_row(POTENTIAL_SITE_APPROVALS, "Potential Site ID", site_id)


async def territory_recipients(submitter: Optional[Employee]) -> List[Employee]:
    """The submitter first, then their active territory teammates"""
    if not submitter:
        return []
    recipients = [submitter]
    if submitter.territory:
        recipients.extend(
            e for e in await find_employees_by_territory(submitter.territory)
            if e.email.lower() != submitter.email.lower()
        )
    return recipients


def _site_lines(record: Dict[str, Any], ihb: Optional[Dict[str, Any]]) -> str:
    lines = [
        f"Potential Site ID: {record['Potential Site ID']}",
        f"Site Name: {record['Site Name']}",
        f"Address: {record['Address']}",
    ]
    optional = [
        ("Latitude", record.get("Lat")),
        ("Longitude", record.get("Long")),
        ("IHB ID", record.get("IHB ID")),
        ("IHB Name", record.get("IHB Name")),
        ("IHB Contact", ihb.get("Mobile Number") if ihb else ""),
    ]
    lines.extend(f"{label}: {value}" for label, value in optional if value)
    return "\n".join(lines)


async def _lookup_ihb(ihb_id: str, submitter_email: str) -> Optional[Dict[str, Any]]:
    ihb = await find_ihb_by_id(ihb_id) if ihb_id else None
    if not ihb:
        ihb = await find_ihb_by_email(submitter_email)
    return ihb


# ==================== REGISTRATION ====================

async def handle_potential_site_submission(submission: FormSubmission) -> Dict[str, Any]:
    email = resolve_submitter_email(submission)
    site_name = submission.value(2)
    address = submission.value(3)
    require_fields("Potential site", {"site name": site_name, "address": address})

    site_id = await generate_potential_site_id()
    status = initial_status(POTENTIAL_SITE_APPROVALS)
    record = {
        "Timestamp": submission.value(0),
        "Email Address": email,
        "Site Name": site_name,
        "Address": address,
        "Lat": submission.value(4),
        "Long": submission.value(5),
        "IHB ID": submission.value(6),
        "IHB Name": submission.value(7),
        "Potential Site ID": site_id,
        "Status": status,
    }
    row = await append_record(POTENTIAL_SITE_APPROVALS, record)

    await log_event(
        action="form_submit",
        entity_type="potential_site",
        entity_id=site_id,
        user=email,
        details={"site_name": site_name, "ihb_id": record["IHB ID"]},
    )

    submitter = await find_employee_by_email(email)
    ihb = await _lookup_ihb(record["IHB ID"], email)
    message = (
        f"New Potential Site Registration Submission\n"
        f"{_site_lines(record, ihb)}\n"
        f"Submitter: {submitter.name if submitter else email}\n"
        + (f"Territory: {submitter.territory}\n" if submitter and submitter.territory else "")
        + f"Submission Date: {display_time()}"
    )
    notified = await notify_employees(await territory_recipients(submitter), message)
    logger.info(f"[INTAKE] Potential site {site_id} registered, {len(notified)} notified")

    return {"potential_site_id": site_id, "row": row, "status": status, "notified": notified}


# ==================== APPROVAL ====================

async def _send_status_update(record: Dict[str, Any], status: str, notes: str) -> List[Dict[str, str]]:
    submitter = await find_employee_by_email(record["Email Address"])
    ihb = await _lookup_ihb(record.get("IHB ID"), record["Email Address"])

    extra = []
    if record.get("Engineer ID"):
        extra.append(f"Engineer: {record['Engineer Name']} ({record['Engineer ID']})")
    if record.get("Partner ID"):
        extra.append(f"Partner: {record['Partner Name']} ({record['Partner ID']})")
    if record.get("Assignment Date"):
        extra.append(f"Assignment Date: {record['Assignment Date']}")

    message = "\n".join([
        "Potential Site Registration Update",
        _site_lines(record, ihb),
        *extra,
        f"Status: {status}",
        f"Update Date: {display_time()}",
        *([f"Notes: {notes}"] if notes else []),
    ])
    return await notify_employees(await territory_recipients(submitter), message)


async def create_project_from_approved_site(record: Dict[str, Any]) -> Optional[int]:
    """Open a Project Update record for an approved site. One project per site."""
    site_id = record["Potential Site ID"]
    await workbook.ensure_sheet(PROJECT_UPDATE, SCHEMAS[PROJECT_UPDATE])
    if await workbook.find_row(PROJECT_UPDATE, "Project ID", site_id):
        logger.info(f"[INTAKE] Project already exists for potential site {site_id}")
        return None

    row = await append_record(PROJECT_UPDATE, {
        "Email Address": record["Email Address"],
        "Project ID": site_id,
        "Status": "Active",
        "Notes": "Created from approved potential site",
        "Submission ID": site_id,
        "Project Name": record["Site Name"],
        "Project Address": record["Address"],
        "Project Lat": record.get("Lat", ""),
        "Project Long": record.get("Long", ""),
        "Project Status": "Planning",
    })
    await log_event(
        action="project_created",
        entity_type="project",
        entity_id=site_id,
        related={"potential_site_id": site_id},
    )
    return row


async def approve_potential_site(site_id: str, notes: str = "", actor: str = "system") -> Dict[str, Any]:
    result = await mark_record_approved(POTENTIAL_SITE_APPROVALS, site_id, notes, actor=actor)
    result["notified"] = await _send_status_update(result["record"], STATUS_APPROVED, notes)
    result["project_row"] = await create_project_from_approved_site(result["record"])
    return result


async def reject_potential_site(site_id: str, reason: str, actor: str = "system") -> Dict[str, Any]:
    result = await mark_record_rejected(POTENTIAL_SITE_APPROVALS, site_id, reason, actor=actor)
    result["notified"] = await _send_status_update(result["record"], STATUS_REJECTED, reason)
    return result


# ==================== SITE UPDATE FORM ====================

async def handle_potential_site_update_submission(submission: FormSubmission) -> Dict[str, Any]:
    """
    Free-form update on an existing site. The update is prepended to the site
    notes; an Approved/Rejected new status goes through the approval workflow.
    """
    email = resolve_submitter_email(submission)
    site_id = submission.value(2)
    update_type = submission.value(3)
    new_status = submission.value(4)
    updated_info = submission.value(5)
    reason = submission.value(6)
    docs = submission.value(7)
    priority = submission.value(8)
    require_fields("Potential site update", {
        "site ID": site_id, "update type": update_type,
        "updated information": updated_info, "reason": reason,
    })

    site = await find_potential_site(site_id)
    if not site:
        raise FormPayloadError(f"Potential site {site_id} not found")

    changes = []
    if new_status == STATUS_APPROVED:
        await approve_potential_site(site_id, notes=reason, actor=email)
        changes.append(f"Status: {site.get('Status')} → {new_status}")
    elif new_status == STATUS_REJECTED:
        await reject_potential_site(site_id, reason, actor=email)
        changes.append(f"Status: {site.get('Status')} → {new_status}")

    entry = f"[{display_time()}] {update_type} by {email}:\n{updated_info}\nReason: {reason}"
    if priority:
        entry += f"\nPriority: {priority}"
    if docs:
        entry += f"\nDocs: {docs}"
    site = await find_potential_site(site_id)
    existing = site.get("Notes")
    await workbook.update_cells(POTENTIAL_SITE_APPROVALS, site.row, {
        "Notes": f"{entry}\n---\n{existing}" if existing else entry,
    })
    changes.append(f"Added update: {update_type}")

    await log_event(
        action="site_update",
        entity_type="potential_site",
        entity_id=site_id,
        user=email,
        details={"update_type": update_type, "new_status": new_status, "priority": priority},
    )

    message = (
        f"🏗️ *Potential Site Update*\n\n"
        f"📍 *Site:* {site.get('Site Name') or 'N/A'} ({site_id})\n"
        f"🔄 *Update Type:* {update_type}\n"
        + (f"📊 *New Status:* {new_status}\n" if new_status else "")
        + (f"⚡ *Priority:* {priority}\n" if priority else "")
        + f"\n📝 *Updated Information:*\n{updated_info}\n"
        f"\n💭 *Reason:* {reason}\n"
        f"\n👤 *Updated by:* {email}\n"
        f"🕐 *Time:* {display_time()}\n\n"
        f"✅ *Changes Applied:*\n• " + "\n• ".join(changes)
    )
    submitter = await find_employee_by_email(site.get("Email Address"))
    notified = await notify_employees(await territory_recipients(submitter), message)

    return {"potential_site_id": site_id, "changes": changes, "notified": notified}
