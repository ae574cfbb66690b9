"""
ANWAR CRM - Notification dispatch

Helpers used by every intake/approval flow. Nothing here raises: failures are
logged and the caller gets back the list of employees actually notified.
"""

import logging
from typing import List, Optional, Dict, Any, Iterable

from anwar_crm.config import normalize_phone_bd
from anwar_crm.models import Employee
from anwar_crm.services import whatsapp_gateway
from anwar_crm.services.employees import find_employee_by_email

logger = logging.getLogger("notifications")

# form types that never get a submitter confirmation
NO_CONFIRMATION_MARKERS = ("_STATUS_UPDATE", "_APPROVAL", "_REJECTION")


async def notify_employee(employee: Optional[Employee], message: str) -> bool:
    if not employee:
        return False
    if not employee.whatsapp_number:
        logger.warning(f"[NOTIFY] {employee.name} ({employee.role}) has no WhatsApp number")
        return False
    result = await whatsapp_gateway.send_whatsapp_message(employee.whatsapp_number, message)
    if result.get("success"):
        logger.info(f"[NOTIFY] Sent to {employee.name} ({employee.role})")
        return True
    logger.error(f"[NOTIFY] Failed for {employee.name}: {result.get('error')}")
    return False


async def notify_employees(
    employees: Iterable[Employee],
    message: str,
    exclude_email: Optional[str] = None
) -> List[Dict[str, str]]:
    """Send one message per distinct WhatsApp number. Returns the delivered recipients."""
    delivered = []
    seen = set()
    for employee in employees:
        if exclude_email and employee.email.lower() == exclude_email.lower():
            continue
        number = normalize_phone_bd(employee.whatsapp_number)
        if not number or number in seen:
            continue
        seen.add(number)
        if await notify_employee(employee, message):
            delivered.append(employee.summary())
    return delivered


async def notify_submitter(submitter_email: str, message: str) -> Optional[Dict[str, str]]:
    """Message the employee behind a submitter email, if any"""
    employee = await find_employee_by_email(submitter_email)
    if not employee:
        logger.error(f"[NOTIFY] Could not find employee record for submitter {submitter_email}")
        return None
    if await notify_employee(employee, message):
        return employee.summary()
    return None


def needs_submitter_confirmation(form_type: str) -> bool:
    return not any(marker in form_type.upper() for marker in NO_CONFIRMATION_MARKERS)


async def send_form_notification(
    form_type: str,
    submitter_email: str,
    submitter_message: str,
    recipients: Iterable[Employee],
    recipient_message: Optional[str] = None
) -> Dict[str, Any]:
    """
    Standard two-part notification:
    1. confirmation to the submitter (skipped for status updates/approvals/rejections)
    2. the recipient message to everyone else, submitter excluded
    """
    result = {"form_type": form_type, "submitter": None, "recipients": []}

    if needs_submitter_confirmation(form_type):
        result["submitter"] = await notify_submitter(submitter_email, submitter_message)

    result["recipients"] = await notify_employees(
        recipients, recipient_message or submitter_message, exclude_email=submitter_email
    )
    return result
