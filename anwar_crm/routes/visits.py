"""
ANWAR CRM - Visit follow-up routes
"""

from fastapi import APIRouter

from anwar_crm.models import FollowupRequest
from anwar_crm.services.visits import mark_visit_for_followup
from anwar_crm.routes.errors import HANDLED, to_http_error

router = APIRouter(prefix="/visits", tags=["Visits"])


@router.post("/{visit_id}/followup")
async def flag_followup(visit_id: str, request: FollowupRequest):
    try:
        result = await mark_visit_for_followup(visit_id, request.reason, actor=request.actor)
    except HANDLED as e:
        raise to_http_error(e)
    return {"success": True, **result}
