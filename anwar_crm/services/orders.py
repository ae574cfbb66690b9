"""
ANWAR CRM - Orders and disputes

Order form (positional):
    0 timestamp, 1 email, 2 potential site ID, 3 order type,
    4 start building, 5 end building, 6 project address, 7 estimated quantity,
    8 delivery timeline, 9 custom timeline,
    10 special instructions, 11 engineer required, 12 partner required,
    13 delivery note link, 14 site images link, 15 additional docs link

The construction details (4-9) belong to the potential site: they are written
into the site row when its cells are still empty and are not stored on the order.

Dispute form (positional):
    0 timestamp, 1 email, 2 order ID, 3 reason
"""

import logging
from typing import Optional, Dict, Any, List

from anwar_crm.config import display_time
from anwar_crm.schema import (
    ORDERS, DISPUTES, POTENTIAL_SITE_APPROVALS, MOVED_ORDER_FIELDS, STATUS_APPROVED,
)
from anwar_crm.models import FormSubmission, Employee
from anwar_crm.services import workbook, whatsapp_gateway
from anwar_crm.services.form_intake import (
    FormPayloadError, resolve_submitter_email, require_fields, append_record,
)
from anwar_crm.services.id_generator import generate_order_id, generate_dispute_id
from anwar_crm.services.employees import (
    find_employee_by_email, find_employees_by_role, find_employees_by_territory,
)
from anwar_crm.services.potential_site import find_potential_site
from anwar_crm.services.partners import find_partner, partner_phone
from anwar_crm.services.notifications import notify_employee, notify_employees, notify_submitter
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("orders")

ORDER_STATUS_SUBMITTED = "Submitted"
ORDER_STATUS_DISPUTED = "Disputed"
DISPUTE_STATUS_OPEN = "Open"


async def find_order(order_id: str) -> Optional[workbook.SheetRow]:
    if not order_id or not await workbook.sheet_exists(ORDERS):
        return None
    return await workbook.find_row(ORDERS, "Order ID", order_id)


def _flag(value: str) -> str:
    return value or "No"


async def _fill_site_construction_details(site: workbook.SheetRow, details: Dict[str, str]) -> List[str]:
    """Write construction details onto the site where its cells are empty"""
    updates = {
        header: value for header, value in details.items()
        if value and header in site.headers and not site.get(header)
    }
    if updates:
        await workbook.update_cells(POTENTIAL_SITE_APPROVALS, site.row, updates)
    return list(updates)


def _order_message(order: Dict[str, Any], site: workbook.SheetRow, details: Dict[str, str],
                   submitter_label: str, territory: str) -> str:
    custom = details.get("Custom Timeline")
    instructions = order["Special Instructions"]
    return (
        f"🏗️ New Order Submission\n\n"
        f"Order ID: {order['Order ID']}\n"
        f"Order Type: {order['Order Type']}\n"
        f"Potential Site: {order['Potential Site ID']}\n"
        f"Site Name: {site.get('Site Name')}\n\n"
        f"📍 Project Details:\n"
        f"Address: {details.get('Project Address') or site.get('Address')}\n"
        f"Building: {details.get('Start Building')} to {details.get('End Building')}\n"
        f"Quantity: {details.get('Estimated Quantity')}\n"
        f"Delivery: {details.get('Delivery Timeline')}"
        + (f"\nCustom Timeline: {custom}" if custom else "")
        + f"\n\n👤 Submitter: {submitter_label}\n"
        f"🌍 Territory: {territory or 'Not assigned'}\n\n"
        f"🔧 Requirements:\n"
        f"Engineer: {order['Engineer Required']}\n"
        f"Partner/Contractor: {order['Partner Required']}\n"
        + (f"\n📋 Special Instructions: {instructions}\n" if instructions else "")
        + f"\n⏰ Submitted: {display_time()}"
    )


def _requirement_alert(order: Dict[str, Any], site: workbook.SheetRow, details: Dict[str, str],
                       role: str, submitter_label: str) -> str:
    emoji = "👷‍♂️" if role == "Engineer" else "🤝"
    return (
        f"🚨 DISPUTE NOTIFICATION REQUIRED\n\n"
        f"{emoji} {role} Requirement Alert\n\n"
        f"📋 Order Details:\n"
        f"Order ID: {order['Order ID']}\n"
        f"Order Type: {order['Order Type']}\n"
        f"Potential Site: {order['Potential Site ID']}\n"
        f"Site Name: {site.get('Site Name')}\n\n"
        f"📍 Project Information:\n"
        f"Address: {details.get('Project Address') or site.get('Address')}\n"
        f"Quantity: {details.get('Estimated Quantity')}\n\n"
        f"⚠️ Dispute Reason: No {role} Required\n"
        f"The customer has indicated that {role.lower()} services are NOT required for this order.\n\n"
        f"👤 Order Submitted by: {submitter_label}\n"
        f"📧 Contact: {order['Submitter Email']}\n\n"
        f"📝 ACTION REQUIRED:\n"
        f"Please review this order and submit a dispute if {role.lower()} services are actually needed."
    )


# ==================== ORDERS ====================

async def handle_order_submission(submission: FormSubmission) -> Dict[str, Any]:
    email = resolve_submitter_email(submission)
    site_id = submission.value(2)
    order_type = submission.value(3)
    require_fields("Order", {"potential site ID": site_id, "order type": order_type})

    site = await find_potential_site(site_id)
    if not site:
        raise FormPayloadError(f"Potential site {site_id} not found")
    if site.get("Status") != STATUS_APPROVED:
        raise FormPayloadError(
            f"Potential site {site_id} is not approved. Current status: {site.get('Status') or 'Pending'}"
        )

    details = {header: submission.value(4 + i) for i, header in enumerate(MOVED_ORDER_FIELDS)}

    submitter = await find_employee_by_email(email)
    site_submitter = await find_employee_by_email(site.get("Email Address"))
    territory = (
        (site_submitter.territory if site_submitter else "")
        or (submitter.territory if submitter else "")
    )

    order_id = await generate_order_id()
    order = {
        "Timestamp": submission.value(0),
        "Order ID": order_id,
        "Potential Site ID": site_id,
        "Order Type": order_type,
        "Submitter Email": email,
        "Special Instructions": submission.value(10),
        "Engineer Required": _flag(submission.value(11)),
        "Partner Required": _flag(submission.value(12)),
        "Delivery Note Link": submission.value(13),
        "Site Images Link": submission.value(14),
        "Additional Docs Link": submission.value(15),
        "Status": ORDER_STATUS_SUBMITTED,
        "Territory": territory,
    }
    row = await append_record(ORDERS, order)
    filled = await _fill_site_construction_details(site, details)

    await log_event(
        action="form_submit",
        entity_type="order",
        entity_id=order_id,
        user=email,
        details={"order_type": order_type, "territory": territory, "site_fields_filled": filled},
        related={"potential_site_id": site_id},
    )

    submitter_label = submitter.name if submitter else email
    message = _order_message(order, site, details, submitter_label, territory)
    notified = {"submitter": None, "territory_team": [], "order_desk": [], "requirement_alerts": []}

    notified["submitter"] = await notify_submitter(
        email,
        f"✅ Order Confirmation\n\n{message}\n\nYour order has been submitted successfully and will be processed by our team."
    )

    team: List[Employee] = []
    if territory:
        team = [e for e in await find_employees_by_territory(territory) if e.email.lower() != email.lower()]
    notified["territory_team"] = await notify_employees(
        team, f"🔔 New Order in Your Territory\n\n{message}\n\nPlease review and coordinate as needed."
    )

    desk = [e for e in await find_employees_by_role(["ASM", "CRO"]) if e not in team]
    notified["order_desk"] = await notify_employees(
        desk,
        f"📋 Order Management Alert\n\n{message}\n\nNew order requires processing and assignment.",
        exclude_email=email,
    )

    for flag_header, role, alert_roles in (
        ("Engineer Required", "Engineer", ["BDO"]),
        ("Partner Required", "Partner/Contractor", ["CRO"]),
    ):
        if order[flag_header].strip().lower() == "no":
            alert = _requirement_alert(order, site, details, role, submitter_label)
            notified["requirement_alerts"] += await notify_employees(
                await find_employees_by_role(alert_roles), alert
            )

    if not team:
        logger.warning(f"[NOTIFY] No territory team for order {order_id} (territory '{territory}')")

    return {
        "order_id": order_id,
        "row": row,
        "status": ORDER_STATUS_SUBMITTED,
        "territory": territory,
        "site_fields_filled": filled,
        "notified": notified,
    }


# ==================== DISPUTES ====================

async def handle_dispute_submission(submission: FormSubmission) -> Dict[str, Any]:
    email = resolve_submitter_email(submission)
    order_id = submission.value(2)
    reason = submission.value(3)
    require_fields("Dispute", {"order ID": order_id, "reason": reason})

    dispute_id = generate_dispute_id()
    row = await append_record(DISPUTES, {
        "Timestamp": submission.value(0),
        "Dispute ID": dispute_id,
        "Order ID": order_id,
        "Submitter Email": email,
        "Reason": reason,
        "Status": DISPUTE_STATUS_OPEN,
    })

    order = await find_order(order_id)
    if order:
        await workbook.update_cells(ORDERS, order.row, {"Status": ORDER_STATUS_DISPUTED})
        logger.info(f"[STATE_MACHINE] Order {order_id} -> {ORDER_STATUS_DISPUTED} ({dispute_id})")
    else:
        logger.warning(f"[INTAKE] Order {order_id} not found for dispute {dispute_id}")

    await log_event(
        action="dispute_opened",
        entity_type="dispute",
        entity_id=dispute_id,
        user=email,
        details={"reason": reason},
        related={"order_id": order_id},
    )

    message = (
        f"New Dispute Raised: {dispute_id}\n"
        f"Order ID: {order_id}\n"
        f"Reason: {reason}\n"
        f"Raised by: {email}"
    )
    notified = {"submitter": await notify_submitter(email, message), "order_parties": []}

    if order:
        order_submitter = await find_employee_by_email(order.get("Submitter Email"))
        if order_submitter and order_submitter.email.lower() != email.lower():
            if await notify_employee(order_submitter, message):
                notified["order_parties"].append(order_submitter.summary())

        for header in ("Assigned Engineer ID", "Assigned Partner ID"):
            phone = partner_phone(await find_partner(order.get(header)))
            if phone:
                result = await whatsapp_gateway.send_whatsapp_message(phone, message)
                if result.get("success"):
                    notified["order_parties"].append({"id": order.get(header), "whatsapp_number": phone})

    return {
        "dispute_id": dispute_id,
        "row": row,
        "status": DISPUTE_STATUS_OPEN,
        "order_found": order is not None,
        "notified": notified,
    }
