"""
ANWAR CRM - ID generation

Formats:
  - daily:       PREFIX-YYYYMMDD-NNN   (DGR, RPR, IHB, V, VU)
  - sequential:  ORD-NNN, P.S-NNN, IHBNNN, BDO001, ...
  - partner:     S10122 (Site Engineer), C1022 (Partner)
  - dispute:     DIS-<uuid4>

Allocation goes through an atomic counter per key in `counters`
(find_one_and_update + $inc). A counter that does not exist yet is seeded
from the highest suffix already present in the sheet, so existing data keeps
its numbering. The seed is conditional ($lt), concurrent seeders never lower it.
"""

import re
import uuid
import logging
from typing import Optional
from pymongo import ReturnDocument

from anwar_crm.config import db, now_iso, today_stamp
from anwar_crm.schema import (
    DEMAND_GENERATION_REQUESTS, RETAILER_POINT_REQUESTS, IHB_APPROVALS,
    POTENTIAL_SITE_APPROVALS, ORDERS, CRM_APPROVALS, VISITS, VISIT_UPDATES, EMPLOYEES,
)
from anwar_crm.services import workbook

logger = logging.getLogger("id_generator")


# prefix -> (sheet, id column)
DAILY_ID_SOURCES = {
    "DGR": (DEMAND_GENERATION_REQUESTS, "Request ID"),
    "RPR": (RETAILER_POINT_REQUESTS, "Request ID"),
    "IHB": (IHB_APPROVALS, "Submission ID"),
    "V": (VISITS, "Visit ID"),
    "VU": (VISIT_UPDATES, "Visit Update ID"),
}

EMPLOYEE_ROLES = {
    "BDO": {"prefix": "BDO", "start_number": 1},
    "CRO": {"prefix": "CRO", "start_number": 1},
    "SR": {"prefix": "SR", "start_number": 1},
    "ASM": {"prefix": "ASM", "start_number": 1},
    "ZSM": {"prefix": "ZSM", "start_number": 1},
    "BD Incharge": {"prefix": "BDI", "start_number": 1},
}

PARTNER_TYPES = {
    "Site Engineer": {"prefix": "S", "digits": 5, "start_number": 10122},
    "Partner": {"prefix": "C", "digits": 4, "start_number": 1022},
}


def fallback_id(prefix: str) -> str:
    """Non-sequential ID used when counter allocation fails"""
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


# ════════════════════════════════════════════════════════════════════════════
# COUNTERS
# ════════════════════════════════════════════════════════════════════════════

async def scan_max_suffix(sheet: str, column: str, pattern: str) -> int:
    """Highest numeric group captured by `pattern` in a sheet column (0 if none)"""
    if not await workbook.sheet_exists(sheet):
        return 0
    regex = re.compile(pattern)
    highest = 0
    for row in await workbook.get_rows(sheet):
        match = regex.fullmatch(str(row.get(column)).strip())
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


async def next_sequence(key: str, seed: int = 0) -> int:
    """Atomically allocate the next value of a named counter"""
    existing = await db.counters.find_one({"key": key}, {"_id": 0, "seq": 1})
    if existing is None:
        await db.counters.update_one(
            {"key": key},
            {"$setOnInsert": {"key": key, "seq": 0, "created_at": now_iso()}},
            upsert=True,
        )
    if seed:
        await db.counters.update_one(
            {"key": key, "seq": {"$lt": seed}},
            {"$set": {"seq": seed}},
        )

    doc = await db.counters.find_one_and_update(
        {"key": key},
        {"$inc": {"seq": 1}, "$set": {"updated_at": now_iso()}},
        projection={"_id": 0, "seq": 1},
        return_document=ReturnDocument.AFTER,
    )
    return int(doc["seq"])


async def _allocate(key: str, sheet: str, column: str, pattern: str, floor: int = 0) -> int:
    seed = floor
    if await db.counters.count_documents({"key": key}) == 0:
        seed = max(floor, await scan_max_suffix(sheet, column, pattern))
    return await next_sequence(key, seed)


# ════════════════════════════════════════════════════════════════════════════
# PUBLIC GENERATORS
# ════════════════════════════════════════════════════════════════════════════

async def generate_daily_id(prefix: str) -> str:
    """PREFIX-YYYYMMDD-NNN, unique per prefix and day"""
    date_str = today_stamp()
    sheet, column = DAILY_ID_SOURCES[prefix]
    try:
        seq = await _allocate(
            f"{prefix}-{date_str}", sheet, column,
            rf"{re.escape(prefix)}-{date_str}-(\d+)",
        )
        return f"{prefix}-{date_str}-{seq:03d}"
    except Exception as e:
        logger.error(f"[ID] Daily ID allocation failed for {prefix}: {e}")
        return fallback_id(prefix)


async def generate_order_id() -> str:
    try:
        seq = await _allocate("ORD", ORDERS, "Order ID", r"ORD-(\d+)")
        return f"ORD-{seq:03d}"
    except Exception as e:
        logger.error(f"[ID] Order ID allocation failed: {e}")
        return fallback_id("ORD")


async def generate_potential_site_id() -> str:
    try:
        seq = await _allocate(
            "P.S", POTENTIAL_SITE_APPROVALS, "Potential Site ID", r"P\.S-(\d+)"
        )
        return f"P.S-{seq:03d}"
    except Exception as e:
        logger.error(f"[ID] Potential site ID allocation failed: {e}")
        return fallback_id("P.S")


async def generate_ihb_id() -> str:
    """IHB ID assigned on approval: IHB001, IHB002, ..."""
    try:
        seq = await _allocate("IHB_ID", IHB_APPROVALS, "IHB ID", r"IHB(\d+)")
        return f"IHB{seq:03d}"
    except Exception as e:
        logger.error(f"[ID] IHB ID allocation failed: {e}")
        return fallback_id("IHB")


async def generate_employee_id(role: str) -> Optional[str]:
    cfg = EMPLOYEE_ROLES.get(role)
    if not cfg:
        return None
    prefix = cfg["prefix"]
    try:
        seq = await _allocate(
            f"EMP-{prefix}", EMPLOYEES, "Employee ID",
            rf"{re.escape(prefix)}(\d+)", floor=cfg["start_number"] - 1,
        )
        return f"{prefix}{seq:03d}"
    except Exception as e:
        logger.error(f"[ID] Employee ID allocation failed for {role}: {e}")
        return fallback_id(prefix)


async def generate_partner_id(partner_type: str) -> Optional[str]:
    """S + 5 digits from 10122 for Site Engineers, C + 4 digits from 1022 for Partners"""
    cfg = PARTNER_TYPES.get(partner_type)
    if not cfg:
        return None
    prefix, digits = cfg["prefix"], cfg["digits"]
    try:
        seq = await _allocate(
            f"PARTNER-{prefix}", CRM_APPROVALS, "Partner ID",
            rf"{prefix}(\d{{{digits}}})", floor=cfg["start_number"] - 1,
        )
        return f"{prefix}{seq:0{digits}d}"
    except Exception as e:
        logger.error(f"[ID] Partner ID allocation failed for {partner_type}: {e}")
        return fallback_id(prefix)


def generate_dispute_id() -> str:
    return f"DIS-{uuid.uuid4()}"


def validate_partner_id(partner_id: str, partner_type: str) -> bool:
    cfg = PARTNER_TYPES.get(partner_type)
    if not cfg or not partner_id:
        return False
    return bool(re.fullmatch(rf"{cfg['prefix']}\d{{{cfg['digits']}}}", partner_id.strip()))
