"""
ANWAR CRM - Approval routes

POST /api/approvals/{entity}/{record_id}/approve   {notes, actor}
POST /api/approvals/{entity}/{record_id}/reject    {reason, actor}

entity: demand_generation | retailer_point | ihb | potential_site | partner
"""

from fastapi import APIRouter, HTTPException

from anwar_crm.models import ApprovalAction, RejectionAction
from anwar_crm.services.triggers import APPROVAL_HANDLERS, approve, reject
from anwar_crm.routes.errors import HANDLED, to_http_error

router = APIRouter(prefix="/approvals", tags=["Approvals"])


def _check_entity(entity: str):
    if entity not in APPROVAL_HANDLERS:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown approval entity '{entity}'. Valid: {sorted(APPROVAL_HANDLERS)}"
        )


@router.get("")
async def list_approval_entities():
    return {"entities": sorted(APPROVAL_HANDLERS)}


@router.post("/{entity}/{record_id}/approve")
async def approve_record(entity: str, record_id: str, action: ApprovalAction):
    _check_entity(entity)
    try:
        result = await approve(entity, record_id, notes=action.notes or "", actor=action.actor)
    except HANDLED as e:
        raise to_http_error(e)
    return {"success": True, **result}


@router.post("/{entity}/{record_id}/reject")
async def reject_record(entity: str, record_id: str, action: RejectionAction):
    _check_entity(entity)
    try:
        result = await reject(entity, record_id, reason=action.reason, actor=action.actor)
    except HANDLED as e:
        raise to_http_error(e)
    return {"success": True, **result}
