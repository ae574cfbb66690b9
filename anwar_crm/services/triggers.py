"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ANWAR CRM - Trigger dispatch                                                ║
║                                                                              ║
║  Inbound events → handlers:                                                  ║
║    form submit   on_form_submit(form_key, submission)                        ║
║    cell edit     on_sheet_edit(sheet, row, column, value, edited_by)         ║
║                                                                              ║
║  Status edits on approval sheets never write the cell directly: they go      ║
║  through the entity approve/reject so the transition check and the           ║
║  notification always run.                                                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Dict, Any, Callable, Awaitable

from anwar_crm.schema import VISITS, STATUS_APPROVED, STATUS_REJECTED
from anwar_crm.models import FormSubmission
from anwar_crm.services import workbook
from anwar_crm.services import (
    demand_generation, retailer_point, ihb, potential_site, orders, partners, visits,
)
from anwar_crm.services.form_intake import FormPayloadError
from anwar_crm.services.approval_state_machine import (
    APPROVAL_SHEETS, validate_status_transition,
)
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("triggers")

DEFAULT_APPROVAL_NOTES = "Approved via status change"
DEFAULT_REJECTION_REASON = "Rejected via status change"


# ════════════════════════════════════════════════════════════════════════════
# REGISTRIES
# ════════════════════════════════════════════════════════════════════════════

FORM_HANDLERS: Dict[str, Callable[[FormSubmission], Awaitable[Dict[str, Any]]]] = {
    "demand_generation": demand_generation.handle_demand_generation_submission,
    "retailer_point": retailer_point.handle_retailer_point_submission,
    "ihb_registration": ihb.handle_ihb_submission,
    "potential_site": potential_site.handle_potential_site_submission,
    "potential_site_update": potential_site.handle_potential_site_update_submission,
    "order": orders.handle_order_submission,
    "dispute": orders.handle_dispute_submission,
    "partner_registration": partners.handle_partner_registration_submission,
    "partner_update": partners.handle_partner_assignment_submission,
    "visit": visits.handle_visit_submission,
    "visit_update": visits.handle_visit_update_submission,
}

# entity -> (approve, reject)
APPROVAL_HANDLERS = {
    "demand_generation": (demand_generation.approve_demand_generation, demand_generation.reject_demand_generation),
    "retailer_point": (retailer_point.approve_retailer_point, retailer_point.reject_retailer_point),
    "ihb": (ihb.approve_ihb, ihb.reject_ihb),
    "potential_site": (potential_site.approve_potential_site, potential_site.reject_potential_site),
    "partner": (partners.approve_partner, partners.reject_partner),
}


# ════════════════════════════════════════════════════════════════════════════
# FORM SUBMIT
# ════════════════════════════════════════════════════════════════════════════

async def on_form_submit(form_key: str, submission: FormSubmission) -> Dict[str, Any]:
    handler = FORM_HANDLERS.get(form_key)
    if not handler:
        raise FormPayloadError(f"Unknown form: '{form_key}'. Known forms: {sorted(FORM_HANDLERS)}")
    logger.info(f"[INTAKE] Form submit: {form_key}")
    return await handler(submission)


# ════════════════════════════════════════════════════════════════════════════
# APPROVE / REJECT
# ════════════════════════════════════════════════════════════════════════════

async def approve(entity: str, record_id: str, notes: str = "", actor: str = "system") -> Dict[str, Any]:
    if entity not in APPROVAL_HANDLERS:
        raise FormPayloadError(f"Unknown approval entity: '{entity}'")
    return await APPROVAL_HANDLERS[entity][0](record_id, notes=notes, actor=actor)


async def reject(entity: str, record_id: str, reason: str, actor: str = "system") -> Dict[str, Any]:
    if entity not in APPROVAL_HANDLERS:
        raise FormPayloadError(f"Unknown approval entity: '{entity}'")
    return await APPROVAL_HANDLERS[entity][1](record_id, reason=reason, actor=actor)


# ════════════════════════════════════════════════════════════════════════════
# CELL EDIT
# ════════════════════════════════════════════════════════════════════════════

async def _status_edit(sheet: str, row: workbook.SheetRow, value: str, edited_by: str) -> Dict[str, Any]:
    cfg = APPROVAL_SHEETS[sheet]
    record_id = row.get(cfg["id_column"])
    current = str(row.get(cfg["status_column"])).strip()

    if value == current:
        return {"sheet": sheet, "row": row.row, "action": "noop", "status": current}
    if not record_id:
        raise FormPayloadError(f"Row {row.row} of '{sheet}' has no {cfg['id_column']}")

    existing = str(row.get(cfg["notes_column"])).strip()
    if value == STATUS_APPROVED:
        result = await approve(cfg["entity"], record_id, notes=existing or DEFAULT_APPROVAL_NOTES, actor=edited_by)
    elif value == STATUS_REJECTED:
        result = await reject(cfg["entity"], record_id, reason=existing or DEFAULT_REJECTION_REASON, actor=edited_by)
    else:
        # raises for anything that is not a valid transition
        validate_status_transition(sheet, record_id, current, value)
        result = {}
    return {"sheet": sheet, "row": row.row, "action": "status_change", "status": value, "result": result}


async def on_sheet_edit(sheet: str, row: int, column: int, value: Any, edited_by: str = "system") -> Dict[str, Any]:
    """
    Apply a cell edit (1-based row and column).

    Raises:
        FormPayloadError for header-row edits
        ValueError for a column outside the header row
        RecordNotFoundError for a missing row
        InvalidTransitionError for a refused status change
    """
    if row <= 1:
        raise FormPayloadError("The header row cannot be edited")

    headers = await workbook.get_headers(sheet)
    if column < 1 or column > len(headers):
        raise ValueError(f"Column {column} out of range for sheet '{sheet}'")

    current = await workbook.get_row(sheet, row)
    if not current:
        raise workbook.RecordNotFoundError(f"Row {row} not found in sheet '{sheet}'")

    header = headers[column - 1]
    text = str(value).strip() if value is not None else ""

    if sheet in APPROVAL_SHEETS and header == APPROVAL_SHEETS[sheet]["status_column"]:
        result = await _status_edit(sheet, current, text, edited_by)
    elif sheet == VISITS and header == "Status":
        result = await visits.update_visit_status(current.get("Visit ID"), text, actor=edited_by)
    else:
        previous = await workbook.update_cell(sheet, row, column, value)
        result = {"sheet": sheet, "row": row, "action": "cell_write", "column": header, "previous": previous}
        await log_event(
            action="cell_edit",
            entity_type="sheet",
            entity_id=sheet,
            user=edited_by,
            details={"row": row, "column": header, "old_value": previous, "new_value": value},
        )

    logger.info(f"[INTAKE] Edit on '{sheet}' R{row}C{column} by {edited_by}: {result.get('action', 'status_update')}")
    return result
