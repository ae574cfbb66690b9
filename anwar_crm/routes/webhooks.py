"""
ANWAR CRM - Inbound WhatsApp webhook (Maytapi)

Always answers 200 with a result code; UNAUTHORIZED payloads are dropped.
"""

import logging
from typing import Dict, Any
from fastapi import APIRouter, Body

from anwar_crm.services.whatsapp_bot import process_webhook

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger("routes.webhooks")


@router.post("/maytapi")
async def maytapi_webhook(payload: Dict[str, Any] = Body(...)):
    result = await process_webhook(payload)
    logger.info(f"[WEBHOOK] {payload.get('type')} -> {result}")
    return {"result": result}
