"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ANWAR CRM - Notification resolution policy                                  ║
║                                                                              ║
║  One resolver for every "who must act on this request" lookup:               ║
║                                                                              ║
║  1. EXACT     active employees with a policy role, same business unit        ║
║               AND same territory                                             ║
║  2. FALLBACK  no exact match → every active employee of the business unit    ║
║               with a fallback role; message prefixed with a disclaimer       ║
║  3. NONE      nobody found, logged                                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import List, Dict, Any

from anwar_crm.models import Employee
from anwar_crm.services.employees import load_employees

logger = logging.getLogger("notification_policy")

FALLBACK_PREFIX = "⚠️ *FALLBACK NOTIFICATION*\n\n"

NOTIFICATION_POLICIES = {
    "demand_generation": {
        "label": "BD Incharge",
        "roles": ["BD Incharge"],
        "fallback_roles": ["BD Incharge", "BDO"],
        "team": "BD team",
    },
    "retailer_point": {
        "label": "ASM",
        "roles": ["ASM"],
        "fallback_roles": ["ASM"],
        "team": "ASM team",
    },
}


class RecipientResolution:
    """Result of resolving the recipients of a request"""

    def __init__(
        self,
        policy: str,
        territory: str,
        business_unit: str,
        recipients: List[Employee] = None,
        routing_mode: str = "none",
        reason: str = ""
    ):
        self.policy = policy
        self.territory = territory
        self.business_unit = business_unit
        self.recipients = recipients or []
        self.routing_mode = routing_mode  # "exact" | "fallback" | "none"
        self.reason = reason

    @property
    def is_fallback(self) -> bool:
        return self.routing_mode == "fallback"

    def format_message(self, message: str) -> str:
        """Message to send: unchanged for exact matches, disclaimer-wrapped for fallback"""
        if not self.is_fallback:
            return message
        cfg = NOTIFICATION_POLICIES[self.policy]
        return (
            f"{FALLBACK_PREFIX}{message}\n\n"
            f"⚠️ *Note:* No specific {cfg['label']} found for territory \"{self.territory}\" "
            f"and business unit \"{self.business_unit}\". "
            f"Please coordinate among the {cfg['team']} to assign responsibility for this request."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy,
            "territory": self.territory,
            "business_unit": self.business_unit,
            "recipients": [e.summary() for e in self.recipients],
            "routing_mode": self.routing_mode,
            "reason": self.reason,
        }


def _same(a: str, b: str) -> bool:
    return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()


def in_business_unit(employee: Employee, business_unit: str) -> bool:
    return _same(employee.business_unit, business_unit) or _same(employee.company, business_unit)


def in_territory(employee: Employee, territory: str) -> bool:
    return any(
        _same(value, territory)
        for value in (employee.territory, employee.new_territory, employee.bd_territory)
    )


async def resolve_recipients(policy: str, territory: str, business_unit: str) -> RecipientResolution:
    """
    Resolve who must act on a request for (territory, business_unit).
    Never raises: lookup problems resolve to routing_mode="none".
    """
    cfg = NOTIFICATION_POLICIES[policy]
    result = RecipientResolution(policy, territory, business_unit)

    try:
        employees = await load_employees(active_only=True)
    except Exception as e:
        logger.error(f"[NOTIFY] Could not load employees for {policy}: {e}")
        result.reason = f"employee lookup failed: {e}"
        return result

    roles = {r.lower() for r in cfg["roles"]}
    exact = [
        e for e in employees
        if e.role.lower() in roles and in_business_unit(e, business_unit) and in_territory(e, territory)
    ]
    if exact:
        result.recipients = exact
        result.routing_mode = "exact"
        result.reason = f"{len(exact)} {cfg['label']} matched territory and business unit"
        return result

    logger.info(
        f"[NOTIFY] No exact {cfg['label']} for {territory}/{business_unit}, using fallback broadcast"
    )
    fallback_roles = {r.lower() for r in cfg["fallback_roles"]}
    fallback = [
        e for e in employees
        if e.role.lower() in fallback_roles and in_business_unit(e, business_unit)
    ]
    if fallback:
        result.recipients = fallback
        result.routing_mode = "fallback"
        result.reason = f"broadcast to {len(fallback)} employees of business unit {business_unit}"
        return result

    logger.error(f"[NOTIFY] No {cfg['label']} found for business unit {business_unit}")
    result.reason = f"no {cfg['label']} in business unit {business_unit}"
    return result
