"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ANWAR CRM - WhatsApp bot (Maytapi inbound webhook)                          ║
║                                                                              ║
║  Webhook types:                                                              ║
║    message  → employee self-service (data sheet links, help)                 ║
║    status   → logged; disconnected/unauthorized alerts the admin             ║
║    ack      → delivery acks logged                                           ║
║    error    → logged + admin alert                                           ║
║                                                                              ║
║  Conversation: "need to see data" → numbered sheet list → reply with a       ║
║  number or name → link. State lives 10 minutes; 10 messages / 5 minutes.     ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import re
from typing import Optional, Dict, Any, List

from anwar_crm import config
from anwar_crm.config import normalize_phone_bd, is_valid_phone_bd
from anwar_crm.services import whatsapp_gateway
from anwar_crm.services.employees import find_employee_by_whatsapp
from anwar_crm.services.conversation_state import (
    store_conversation_state, get_conversation_state, clear_conversation_state,
    is_rate_limited, update_rate_limit,
)
from anwar_crm.services.user_sheets import list_sheets_for_user
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("whatsapp_bot")

# Webhook result codes
MESSAGE_PROCESSED = "MESSAGE_PROCESSED"
STATUS_PROCESSED = "STATUS_PROCESSED"
ACK_PROCESSED = "ACK_PROCESSED"
ERROR_PROCESSED = "ERROR_PROCESSED"
UNHANDLED_TYPE = "UNHANDLED_TYPE"
UNAUTHORIZED = "UNAUTHORIZED"

DATA_REQUEST_KEYWORDS = [
    "need to see data",
    "show me data",
    "my data",
    "data sheets",
    "sheets",
    "show sheets",
    "view data",
    "access data",
    "see my sheets",
    "get data",
    "data access",
    "personal data",
    "my sheets",
]

HELP_WORDS = ["help", "assist", "commands", "what can you do"]

SHEET_ALIASES = {
    "order": "orders",
    "visit": "visits",
    "site": "potential sites",
    "ihb": "ihb registrations",
    "partner": "partner updates",
    "demand": "demand generation",
    "retailer": "retailer points",
    "dispute": "disputes",
}

ALERT_STATUSES = ("disconnected", "unauthorized")

SUPPORT_LINE = f"📞 Support: {config.SUPPORT_EMAIL}"


# ════════════════════════════════════════════════════════════════════════════
# WEBHOOK
# ════════════════════════════════════════════════════════════════════════════

def is_valid_webhook_source(data: Dict[str, Any]) -> bool:
    for field in ("product_id", "phone_id"):
        if not data.get(field):
            logger.warning(f"[WEBHOOK] Missing required field: {field}")
            return False
    if str(data["product_id"]) != str(config.MAYTAPI_PRODUCT_ID):
        logger.warning(f"[WEBHOOK] Invalid product ID: {data['product_id']}")
        return False
    return True


async def process_webhook(data: Dict[str, Any]) -> str:
    if not is_valid_webhook_source(data):
        return UNAUTHORIZED

    webhook_type = data.get("type")
    if webhook_type == "message":
        await handle_message_webhook(data)
        return MESSAGE_PROCESSED
    if webhook_type == "status":
        handle_status_webhook(data)
        return STATUS_PROCESSED
    if webhook_type == "ack":
        handle_ack_webhook(data)
        return ACK_PROCESSED
    if webhook_type == "error":
        handle_error_webhook(data)
        return ERROR_PROCESSED

    logger.info(f"[WEBHOOK] Unhandled webhook type: {webhook_type}")
    return UNHANDLED_TYPE


def extract_phone_number(user: Optional[Dict[str, Any]], conversation: Optional[str]) -> Optional[str]:
    if user and user.get("phone"):
        return str(user["phone"])
    if conversation:
        return re.sub(r"@(c\.us|s\.whatsapp\.net)$", "", conversation)
    return None


def extract_message_text(message: Dict[str, Any]) -> Optional[str]:
    if message.get("type") == "text" and message.get("text"):
        return str(message["text"]).strip()
    if message.get("caption"):
        return str(message["caption"]).strip()
    return None


async def handle_message_webhook(data: Dict[str, Any]) -> Optional[str]:
    message = data.get("message") or {}
    conversation = data.get("conversation")
    if not message or not conversation:
        logger.warning("[WEBHOOK] Message webhook without message or conversation")
        return None
    if message.get("fromMe"):
        return None

    phone = extract_phone_number(data.get("user"), conversation)
    text = extract_message_text(message)
    if not phone or not text:
        logger.info(f"[WEBHOOK] Nothing to process (type={message.get('type')})")
        return None

    metadata = {
        "message_id": message.get("id"),
        "message_type": message.get("type"),
        "timestamp": data.get("timestamp"),
        "phone_id": data.get("phone_id"),
        "user_name": (data.get("user") or {}).get("name"),
    }
    return await handle_incoming_message(phone, text, metadata)


def handle_status_webhook(data: Dict[str, Any]):
    phone_id, status = data.get("phone_id"), data.get("status")
    logger.info(f"[WEBHOOK] Status update for {phone_id}: {status}")
    if status in ALERT_STATUSES:
        from anwar_crm.email_service import email_service
        email_service.send_gateway_alert(
            f"GATEWAY_{str(status).upper()}",
            f"WhatsApp instance status change detected: {status}",
            {"Phone ID": phone_id, "Status": status},
        )


def handle_ack_webhook(data: Dict[str, Any]):
    for ack in data.get("data") or []:
        logger.info(f"[WEBHOOK] Message {ack.get('msgId')} status: {ack.get('ackType')}")


def handle_error_webhook(data: Dict[str, Any]):
    from anwar_crm.email_service import email_service

    logger.error(f"[WEBHOOK] WhatsApp API error: {data}")
    email_service.send_gateway_alert(
        "GATEWAY_ERROR",
        "WhatsApp API error detected",
        {k: v for k, v in data.items() if k not in ("product_id",)},
    )


# ════════════════════════════════════════════════════════════════════════════
# MESSAGE CLASSIFICATION
# ════════════════════════════════════════════════════════════════════════════

def is_data_request_message(message: str) -> bool:
    lower = message.lower().strip()
    return lower == "data" or any(keyword in lower for keyword in DATA_REQUEST_KEYWORDS)


def is_help_message(message: str) -> bool:
    return message.lower().strip() in HELP_WORDS


def match_sheet_from_reply(reply: str, sheets: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Match order:
      1. number in range (1-based)
      2. exact sheet type (case-insensitive)
      3. partial match, 3+ characters either way
      4. alias
    """
    clean = reply.strip().lower()
    if not clean:
        return None

    number = re.match(r"^\d+", clean)
    if number and 1 <= int(number.group()) <= len(sheets):
        return sheets[int(number.group()) - 1]

    for sheet in sheets:
        if sheet["sheet_type"].lower() == clean:
            return sheet

    for sheet in sheets:
        label = sheet["sheet_type"].lower()
        if len(clean) >= 3 and clean in label:
            return sheet
        if len(label) >= 3 and label in clean:
            return sheet

    alias = SHEET_ALIASES.get(clean)
    if alias:
        for sheet in sheets:
            if alias in sheet["sheet_type"].lower():
                return sheet
    return None


# ════════════════════════════════════════════════════════════════════════════
# CONVERSATION
# ════════════════════════════════════════════════════════════════════════════

async def _reply(phone: str, message: str):
    await whatsapp_gateway.send_whatsapp_message(phone, message)


def _day(value: Optional[str]) -> str:
    return value[:10] if value else "Unknown"


def _options(sheets: List[Dict[str, Any]]) -> str:
    return "\n".join(f"{i}. {s['sheet_type']}" for i, s in enumerate(sheets, start=1))


async def handle_incoming_message(phone: str, message: str, metadata: Optional[Dict[str, Any]] = None) -> str:
    """
    Run one inbound message through the bot and return the action taken:
    invalid_phone, rate_limited, unregistered, data_request, selection,
    cancelled, help, unrecognized, error
    """
    normalized = normalize_phone_bd(phone)
    if not is_valid_phone_bd(normalized):
        logger.warning(f"[BOT] Invalid phone number: {phone}")
        return "invalid_phone"

    try:
        if await is_rate_limited(normalized):
            await _reply(normalized, "⚠️ You're sending messages too quickly. Please wait a moment before trying again.")
            return "rate_limited"
        await update_rate_limit(normalized)

        employee = await find_employee_by_whatsapp(normalized)
        if not employee:
            await _reply(
                normalized,
                "❌ Your WhatsApp number is not registered in our system.\n\n"
                "Please contact your supervisor to register your WhatsApp number.\n\n"
                f"{SUPPORT_LINE}"
            )
            return "unregistered"

        logger.info(f"[BOT] Message from {employee.name} ({employee.email})")
        await log_event(
            action="whatsapp_message",
            entity_type="bot",
            entity_id=normalized,
            user=employee.email,
            details={"message": message[:500], **(metadata or {})},
        )

        state = await get_conversation_state(normalized)
        if is_data_request_message(message):
            return await handle_data_request(normalized, employee)
        if state and state.get("awaiting_selection"):
            return await handle_sheet_selection_reply(normalized, employee, message, state)
        if is_help_message(message):
            await _reply(normalized, help_text(employee.name))
            return "help"
        await _reply(normalized, unrecognized_text(employee.name, message))
        return "unrecognized"

    except Exception as e:
        logger.error(f"[BOT] Error handling message from {normalized}: {e}")
        await _reply(normalized, "❌ Sorry, there was an error processing your request. Please try again later.")
        return "error"


async def handle_data_request(phone: str, employee) -> str:
    sheets = await list_sheets_for_user(employee.email)

    if not sheets:
        await _reply(
            phone,
            f"📭 Hi {employee.name}!\n\n"
            "You don't have any data submissions yet. Once you submit forms through our system, "
            "your personal data sheets will appear here automatically.\n\n"
            "📝 Available form types:\n"
            "• Orders\n• Visit reports\n• Potential sites\n• IHB registrations\n"
            "• Partner updates\n• Demand generation"
        )
        return "data_request"

    lines = [f"📄 Hi {employee.name}!\n\nHere are your available data sheets:\n"]
    for i, sheet in enumerate(sheets, start=1):
        lines.append(
            f"{i}. {sheet['sheet_type']}\n"
            f"   📅 Last updated: {_day(sheet['last_updated'])}\n"
            f"   📊 Records: {sheet['record_count']}\n"
        )
    lines.append(
        "📝 Reply with the number or name of the sheet you want to access.\n"
        "💡 Example: Reply '1' or 'Orders'\n"
        "🚫 Send 'cancel' to stop"
    )

    await store_conversation_state(phone, {"awaiting_selection": True, "available_sheets": sheets})
    await _reply(phone, "\n".join(lines))
    return "data_request"


async def handle_sheet_selection_reply(phone: str, employee, message: str, state: Dict[str, Any]) -> str:
    sheets = state.get("available_sheets") or []
    if not sheets:
        await clear_conversation_state(phone)
        await _reply(phone, "❌ Session expired. Please send 'need to see data' again to get your sheet list.")
        return "cancelled"

    if message.lower().strip() == "cancel":
        await clear_conversation_state(phone)
        await _reply(phone, "✅ Cancelled. Send 'need to see data' anytime to access your sheets.")
        return "cancelled"

    selected = match_sheet_from_reply(message, sheets)
    if not selected:
        await _reply(
            phone,
            f"❌ I couldn't understand your selection: \"{message}\"\n\n"
            f"Please reply with the number or exact name from this list:\n\n"
            f"{_options(sheets)}\n\n"
            f"💡 Or send \"cancel\" to start over."
        )
        return "selection"

    await clear_conversation_state(phone)
    await _reply(
        phone,
        f"✅ Here is your requested {selected['sheet_type']} sheet:\n\n"
        f"🔗 {selected['link']}\n\n"
        f"📊 Sheet: {selected['sheet_name']}\n"
        f"📅 Last updated: {_day(selected['last_updated'])}\n"
        f"📈 Records: {selected['record_count']}\n\n"
        f"💡 Tips:\n"
        f"• Bookmark this link for easy access\n"
        f"• Send \"need to see data\" anytime for sheet list\n"
        f"• Send \"help\" for available commands"
    )
    await log_event(
        action="sheet_access",
        entity_type="bot",
        entity_id=selected["sheet_name"],
        user=employee.email,
    )
    return "selection"


def help_text(name: str) -> str:
    return (
        f"👋 Hi {name}!\n\n"
        f"🤖 I'm your personal data assistant. Here's what I can help you with:\n\n"
        f"📊 Send \"need to see data\" - Get your personal data sheets\n"
        f"📋 Send \"help\" - See this help message\n"
        f"🚫 Send \"cancel\" - Cancel current operation\n\n"
        f"📝 Available sheet types:\n"
        f"• Orders & Disputes\n• Visit Reports\n• Potential Sites\n"
        f"• IHB Registrations\n• Partner Updates\n• Demand Generation\n\n"
        f"💡 Your sheets fill up automatically when you submit forms.\n\n"
        f"{SUPPORT_LINE}"
    )


def unrecognized_text(name: str, message: str) -> str:
    lower = message.lower()
    suggestion = ""
    if "sheet" in lower or "data" in lower or "report" in lower:
        suggestion = "\n💡 Did you mean to say 'need to see data'?"
    elif "help" in lower or "command" in lower:
        suggestion = "\n💡 Send 'help' to see available commands."
    return (
        f"👋 Hi {name}!\n\n"
        f"I didn't understand: \"{message}\"{suggestion}\n\n"
        f"🔤 Try these commands:\n"
        f"📊 \"need to see data\" - Access your sheets\n"
        f"📋 \"help\" - Get help\n\n"
        f"💬 I can help you access your personal data sheets and reports."
    )
