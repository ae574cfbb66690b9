"""
WhatsApp gateway client (Maytapi)

Format API Maytapi:
- Endpoint: POST {MAYTAPI_API_URL}  (.../<product_id>/<phone_id>/sendMessage)
- Auth: Header x-maytapi-key: {key}
- Body: {"to_number": "8801XXXXXXXXX", "type": "text", "message": "..."}
- Response: {"success": true, ...} | {"success": false, "message": "..."}

No retry: a failed send is logged and reported as success=False.
"""

import httpx
import logging
from typing import Optional, Dict, Any

from anwar_crm import config
from anwar_crm.config import normalize_phone_bd

logger = logging.getLogger("whatsapp_gateway")

TRUNCATION_NOTICE = "\n\n[Message truncated due to length]"


def truncate_message(message: str, max_length: Optional[int] = None) -> str:
    """Cut to max_length - 50 characters and append a notice when too long"""
    max_length = max_length or config.MAYTAPI_MAX_MESSAGE_LENGTH
    if len(message) <= max_length:
        return message
    return message[:max_length - 50] + TRUNCATION_NOTICE


async def send_whatsapp_message(
    phone: str,
    message: str,
    api_url: Optional[str] = None,
    api_key: Optional[str] = None
) -> Dict[str, Any]:
    """
    Send a text message through the gateway.

    Returns:
        {"success": True, "response": {...}} or {"success": False, "error": "..."}
    """
    to_number = normalize_phone_bd(phone)
    if not to_number:
        logger.warning("[NOTIFY] No phone number given, message not sent")
        return {"success": False, "error": "missing phone number"}

    api_url = api_url or config.MAYTAPI_API_URL
    api_key = api_key or config.MAYTAPI_API_KEY
    if not api_url or not api_key:
        logger.error("[NOTIFY] MAYTAPI_API_URL / MAYTAPI_API_KEY not configured")
        return {"success": False, "error": "gateway not configured"}

    payload = {
        "to_number": to_number,
        "type": "text",
        "message": truncate_message(message),
    }

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            resp = await client.post(
                api_url,
                json=payload,
                headers={
                    "x-maytapi-key": api_key,
                    "Content-Type": "application/json"
                }
            )

            try:
                data = resp.json()
            except ValueError:
                data = {"success": False, "message": resp.text}

            if resp.status_code == 200 and data.get("success"):
                logger.info(f"[NOTIFY] WhatsApp message sent to {to_number}")
                return {"success": True, "response": data}

            error = data.get("message") or f"HTTP {resp.status_code}"
            logger.error(f"[NOTIFY] WhatsApp API error for {to_number}: {error}")
            return {"success": False, "error": error}

    except httpx.TimeoutException:
        logger.error(f"[NOTIFY] WhatsApp timeout for {to_number}")
        return {"success": False, "error": "timeout"}
    except httpx.ConnectError as e:
        logger.error(f"[NOTIFY] WhatsApp connection error for {to_number}: {e}")
        return {"success": False, "error": f"connection error: {e}"}
    except httpx.HTTPError as e:
        logger.error(f"[NOTIFY] WhatsApp HTTP error for {to_number}: {e}")
        return {"success": False, "error": str(e)}
