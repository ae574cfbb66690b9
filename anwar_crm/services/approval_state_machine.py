"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ANWAR CRM - Approval State Machine                                          ║
║                                                                              ║
║  STATUS TRANSITION RULES FOR APPROVAL SHEETS                                 ║
║                                                                              ║
║  ONLY THIS MODULE writes Approved / Rejected into a status column.           ║
║  Entity modules (demand_generation, ihb, ...) wrap mark_record_approved /    ║
║  mark_record_rejected and send the notification.                             ║
║                                                                              ║
║  INVARIANTS:                                                                 ║
║  - Approved and Rejected are terminal                                        ║
║  - status=Approved IMPLIES approval date set (when the sheet has one)        ║
║  - status=Rejected IMPLIES a non-empty reason in the notes column            ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional, Dict, Any

from anwar_crm.config import display_time
from anwar_crm.schema import (
    DEMAND_GENERATION_REQUESTS, RETAILER_POINT_REQUESTS, IHB_APPROVALS,
    POTENTIAL_SITE_APPROVALS, CRM_APPROVALS, STATUS_APPROVED, STATUS_REJECTED,
)
from anwar_crm.services import workbook
from anwar_crm.services.workbook import RecordNotFoundError
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("approval_state_machine")


# ════════════════════════════════════════════════════════════════════════════
# VALID STATE TRANSITIONS
# ════════════════════════════════════════════════════════════════════════════

def _pending_flow(pending: str) -> Dict[str, list]:
    return {
        pending: [STATUS_APPROVED, STATUS_REJECTED],
        STATUS_APPROVED: [],  # TERMINAL
        STATUS_REJECTED: [],  # TERMINAL
    }


VALID_STATUS_TRANSITIONS = {
    DEMAND_GENERATION_REQUESTS: _pending_flow("Pending Review"),
    RETAILER_POINT_REQUESTS: _pending_flow("Pending Review"),
    IHB_APPROVALS: _pending_flow("Pending Approval"),
    POTENTIAL_SITE_APPROVALS: _pending_flow("Pending"),
    CRM_APPROVALS: _pending_flow("Pending"),
}

# sheet -> columns the state machine writes
APPROVAL_SHEETS = {
    DEMAND_GENERATION_REQUESTS: {
        "entity": "demand_generation",
        "id_column": "Request ID",
        "status_column": "Status",
        "notes_column": "BD Incharge Notes",
        "date_column": "Approval Date",
    },
    RETAILER_POINT_REQUESTS: {
        "entity": "retailer_point",
        "id_column": "Request ID",
        "status_column": "Status",
        "notes_column": "ASM Notes",
        "date_column": "Approval Date",
    },
    IHB_APPROVALS: {
        "entity": "ihb",
        "id_column": "Submission ID",
        "status_column": "Status",
        "notes_column": "CRM Notes",
        "date_column": "Approval Date",
    },
    POTENTIAL_SITE_APPROVALS: {
        "entity": "potential_site",
        "id_column": "Potential Site ID",
        "status_column": "Status",
        "notes_column": "Notes",
        "date_column": None,
    },
    CRM_APPROVALS: {
        "entity": "partner",
        "id_column": "Partner ID",
        "status_column": "Status",
        "notes_column": "Notes",
        "date_column": "Approval Date",
    },
}


def initial_status(sheet: str) -> str:
    """Pending status new rows of an approval sheet start in"""
    for status, allowed in VALID_STATUS_TRANSITIONS[sheet].items():
        if allowed:
            return status
    raise KeyError(sheet)


# ════════════════════════════════════════════════════════════════════════════
# INVARIANT CHECKS
# ════════════════════════════════════════════════════════════════════════════

class InvalidTransitionError(Exception):
    """Raised when a status change is not allowed from the current status"""
    pass


def validate_status_transition(sheet: str, record_id: str, from_status: str, to_status: str) -> bool:
    transitions = VALID_STATUS_TRANSITIONS.get(sheet)
    if transitions is None:
        raise InvalidTransitionError(f"Sheet '{sheet}' has no approval workflow")

    # blank status on legacy rows counts as pending
    from_status = from_status or initial_status(sheet)
    valid_next = transitions.get(from_status, [])

    if to_status not in valid_next:
        raise InvalidTransitionError(
            f"INVALID TRANSITION: {sheet} record {record_id} cannot go from '{from_status}' "
            f"to '{to_status}'. Valid transitions from '{from_status}': {valid_next}"
        )
    return True


async def get_approval_record(sheet: str, record_id: str) -> workbook.SheetRow:
    cfg = APPROVAL_SHEETS[sheet]
    row = await workbook.find_row(sheet, cfg["id_column"], record_id)
    if not row:
        raise RecordNotFoundError(f"{sheet} record {record_id} not found")
    return row


# ════════════════════════════════════════════════════════════════════════════
# SAFE STATE TRANSITIONS
# ════════════════════════════════════════════════════════════════════════════

async def _transition(
    sheet: str,
    record_id: str,
    to_status: str,
    notes: str,
    extra: Optional[Dict[str, Any]],
    actor: str
) -> Dict[str, Any]:
    cfg = APPROVAL_SHEETS[sheet]
    row = await get_approval_record(sheet, record_id)
    from_status = str(row.get(cfg["status_column"])).strip()

    validate_status_transition(sheet, record_id, from_status, to_status)

    updates = {cfg["status_column"]: to_status}
    if notes:
        updates[cfg["notes_column"]] = notes
    if cfg["date_column"] and cfg["date_column"] in row.headers:
        updates[cfg["date_column"]] = display_time()
    updates.update(extra or {})

    updated = await workbook.update_cells(sheet, row.row, updates)

    logger.info(
        f"[STATE_MACHINE] {sheet} {record_id} (row {row.row}): "
        f"'{from_status or '-'}' -> '{to_status}' by {actor}"
    )
    await log_event(
        action="approve" if to_status == STATUS_APPROVED else "reject",
        entity_type=cfg["entity"],
        entity_id=record_id,
        user=actor,
        details={"from_status": from_status, "to_status": to_status, "notes": notes},
        related={"sheet": sheet, "row": row.row},
    )

    return {
        "sheet": sheet,
        "row": row.row,
        "record_id": record_id,
        "from_status": from_status,
        "to_status": to_status,
        "record": updated.record,
    }


async def mark_record_approved(
    sheet: str,
    record_id: str,
    notes: str = "",
    extra: Optional[Dict[str, Any]] = None,
    actor: str = "system"
) -> Dict[str, Any]:
    """
    The only way to set an approval sheet row to Approved.

    Raises:
        RecordNotFoundError if no row carries record_id
        InvalidTransitionError if the row is not pending
    """
    return await _transition(sheet, record_id, STATUS_APPROVED, notes, extra, actor)


async def mark_record_rejected(
    sheet: str,
    record_id: str,
    reason: str,
    actor: str = "system"
) -> Dict[str, Any]:
    """
    The only way to set an approval sheet row to Rejected. A reason is mandatory.
    """
    if not reason or not reason.strip():
        raise InvalidTransitionError(f"{sheet} record {record_id}: rejection requires a reason")
    return await _transition(sheet, record_id, STATUS_REJECTED, reason.strip(), None, actor)
