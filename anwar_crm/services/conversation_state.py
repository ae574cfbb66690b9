"""
ANWAR CRM - Bot conversation state and rate limiting

conversation_state: {phone, state, expires_at, updated_at}   (TTL, default 600 s)
bot_rate_limits:    {phone, first_message, message_count}    (10 messages / 300 s)

Times are stored as UTC ISO strings and compared lexically.
"""

import logging
from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any

from anwar_crm import config
from anwar_crm.config import db, now_iso

logger = logging.getLogger("conversation_state")


def _iso_in(seconds: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(seconds=seconds)).isoformat()


# ==================== CONVERSATION STATE ====================

async def store_conversation_state(phone: str, state: Dict[str, Any], ttl_seconds: Optional[int] = None):
    ttl = ttl_seconds or config.CONVERSATION_TTL_SECONDS
    await db.conversation_state.update_one(
        {"phone": phone},
        {"$set": {"state": state, "expires_at": _iso_in(ttl), "updated_at": now_iso()}},
        upsert=True,
    )
    logger.debug(f"[BOT] Stored conversation state for {phone}")


async def get_conversation_state(phone: str) -> Optional[Dict[str, Any]]:
    doc = await db.conversation_state.find_one({"phone": phone}, {"_id": 0})
    if not doc:
        return None
    if doc.get("expires_at", "") <= now_iso():
        await clear_conversation_state(phone)
        return None
    return doc.get("state")


async def clear_conversation_state(phone: str):
    await db.conversation_state.delete_one({"phone": phone})


# ==================== RATE LIMIT ====================

async def is_rate_limited(phone: str) -> bool:
    doc = await db.bot_rate_limits.find_one({"phone": phone}, {"_id": 0})
    if not doc:
        return False
    window_start = _iso_in(-config.BOT_RATE_LIMIT_WINDOW_SECONDS)
    if doc.get("first_message", "") < window_start:
        return False
    return doc.get("message_count", 0) >= config.BOT_RATE_LIMIT_MAX


async def update_rate_limit(phone: str):
    """Count one message; a window older than the limit starts over"""
    window_start = _iso_in(-config.BOT_RATE_LIMIT_WINDOW_SECONDS)
    doc = await db.bot_rate_limits.find_one({"phone": phone}, {"_id": 0})

    if not doc or doc.get("first_message", "") < window_start:
        await db.bot_rate_limits.update_one(
            {"phone": phone},
            {"$set": {"first_message": now_iso(), "message_count": 1}},
            upsert=True,
        )
    else:
        await db.bot_rate_limits.update_one({"phone": phone}, {"$inc": {"message_count": 1}})


# ==================== PURGE ====================

async def purge_expired_state() -> Dict[str, int]:
    """Hourly job: drop expired conversations and stale rate-limit windows"""
    conversations = await db.conversation_state.delete_many({"expires_at": {"$lte": now_iso()}})
    limits = await db.bot_rate_limits.delete_many(
        {"first_message": {"$lt": _iso_in(-config.BOT_RATE_LIMIT_WINDOW_SECONDS)}}
    )
    result = {
        "conversations_deleted": conversations.deleted_count,
        "rate_limits_deleted": limits.deleted_count,
    }
    logger.info(f"[BOT] Purged expired state: {result}")
    return result
