"""
ANWAR CRM - Event Logger

Audit trail of form intakes, approval decisions, cell edits, bot access
and schema migrations, newest first when listed.
"""

import uuid
from typing import List, Optional, Dict

from anwar_crm.config import db, now_iso


async def log_event(
    action: str,
    entity_type: str,
    entity_id: str,
    user: str = "system",
    details: dict = None,
    related: dict = None
):
    """
    Append one audit entry.

    Args:
        action: e.g. form_submit, approve, reject, cell_edit, schema_deploy
        entity_type: demand_generation | retailer_point | ihb | potential_site | order | ...
        entity_id: ID of the primary record (request ID, order ID, sheet name)
        user: email of whoever triggered the action
        details: free-form dict (notes, old_value, new_value, ...)
        related: linked IDs (potential_site_id, order_id, ...)
    """
    await db.event_log.insert_one({
        "id": str(uuid.uuid4()),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "user": user,
        "details": details or {},
        "related": related or {},
        "created_at": now_iso()
    })


async def list_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 100
) -> List[Dict]:
    query = {}
    if entity_type:
        query["entity_type"] = entity_type
    if entity_id:
        query["entity_id"] = entity_id
    return await db.event_log.find(query, {"_id": 0}).sort("created_at", -1).to_list(limit)
