"""
ANWAR CRM - Form intake routes
"""

import logging
from fastapi import APIRouter

from anwar_crm.models import FormSubmission
from anwar_crm.services.triggers import FORM_HANDLERS, on_form_submit
from anwar_crm.routes.errors import HANDLED, to_http_error

router = APIRouter(prefix="/forms", tags=["Forms"])
logger = logging.getLogger("routes.forms")


@router.get("")
async def list_forms():
    """Form keys accepted by the submit endpoint"""
    forms = sorted(FORM_HANDLERS)
    return {"forms": forms, "count": len(forms)}


@router.post("/{form_key}/submit")
async def submit_form(form_key: str, submission: FormSubmission):
    try:
        result = await on_form_submit(form_key, submission)
    except HANDLED as e:
        logger.warning(f"[INTAKE] {form_key} rejected: {e}")
        raise to_http_error(e)
    return {"success": True, "form": form_key, **result}
