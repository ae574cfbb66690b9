"""
ANWAR CRM - Location hierarchy

Location Map rows tie territory names together across levels:
zone → district → area → territory → bazaar/upazilla → BD territory / CRO territory → business unit
"""

import logging
from typing import List, Optional, Dict, Any

from anwar_crm.schema import LOCATION_MAP
from anwar_crm.models import LocationEntry, BUSINESS_UNITS
from anwar_crm.services import workbook

logger = logging.getLogger("location_hierarchy")


class LocationValidationError(Exception):
    """Raised when an employee's location does not satisfy their role"""
    pass


# role -> location fields that role is scoped by
ROLE_LOCATION_REQUIREMENTS = {
    "SR": ["territory"],
    "ASM": ["area"],
    "ZSM": ["district"],
    "BDO": ["bd_territory"],
    "CRO": ["cro_territory"],
    "BD Incharge": ["bd_territory"],
    "BD Team Incharge": ["bd_territory"],
}


def validate_location_for_role(role: str, location: Dict[str, Any]) -> Dict[str, Any]:
    """Returns {"success": bool, "messages": [...]}"""
    validation = {"success": True, "messages": []}

    requirements = ROLE_LOCATION_REQUIREMENTS.get(role)
    if requirements is None:
        validation["success"] = False
        validation["messages"].append(f"Unknown role: {role}")
        return validation

    for field in requirements:
        if not location.get(field):
            validation["success"] = False
            validation["messages"].append(f"{role} requires {field} to be specified")

    if not location.get("zone"):
        validation["success"] = False
        validation["messages"].append("All employees require zone to be specified")

    unit = str(location.get("business_unit") or "").strip()
    if not unit:
        validation["success"] = False
        validation["messages"].append(f"All employees require business unit ({'/'.join(BUSINESS_UNITS)}) to be specified")
    elif unit.upper() not in BUSINESS_UNITS:
        validation["success"] = False
        validation["messages"].append(f"Unknown business unit: {unit}")

    return validation


async def load_location_map(active_only: bool = True) -> List[LocationEntry]:
    if not await workbook.sheet_exists(LOCATION_MAP):
        return []
    entries = [LocationEntry.from_record(row.record) for row in await workbook.get_rows(LOCATION_MAP)]
    if active_only:
        entries = [e for e in entries if not e.status or e.status.lower() == "active"]
    return entries


def matches_location_criteria(entry: LocationEntry, criteria: Dict[str, str]) -> bool:
    for field, expected in criteria.items():
        if not expected:
            continue
        if str(getattr(entry, field, "")).strip().lower() != str(expected).strip().lower():
            return False
    return True


async def get_location_hierarchy(criteria: Dict[str, str]) -> Optional[LocationEntry]:
    """First active location row matching every given field (case-insensitive)"""
    if not any(criteria.values()):
        return None
    for entry in await load_location_map():
        if matches_location_criteria(entry, criteria):
            return entry
    logger.info(f"[LOCATION] No hierarchy found for {criteria}")
    return None


async def get_notification_chain(territory: str, business_unit: str) -> List[Dict[str, str]]:
    """
    Escalation chain for a territory, bottom-up:
    SR (territory) → ASM (area) → ZSM (district) → BDO (BD territory) → CRO (CRO territory)
    """
    from anwar_crm.services.employees import find_employees_by_role

    hierarchy = await get_location_hierarchy({"territory": territory})
    if not hierarchy:
        return []

    levels = [
        (["SR"], {"territory": territory, "business_unit": business_unit}),
        (["ASM"], {"area": hierarchy.area}),
        (["ZSM"], {"district": hierarchy.district}),
        (["BDO"], {"bd_territory": hierarchy.bd_territory}),
        (["CRO"], {"cro_territory": hierarchy.cro_territory}),
    ]

    chain = []
    seen = set()
    for roles, scope in levels:
        if not any(scope.values()):
            continue
        for employee in await find_employees_by_role(roles, scope):
            if employee.id in seen:
                continue
            seen.add(employee.id)
            chain.append({**employee.summary(), "level": roles[0]})

    logger.info(f"[LOCATION] Chain for {territory}/{business_unit}: {len(chain)} employees")
    return chain
