"""
ANWAR CRM - System health check

Read-only report over configuration and store state.

Components: configuration, spreadsheets, apis, functions, data.
Each component is Healthy / Warning / Critical; the overall status is the worst one.
"""

import uuid
import inspect
import logging
from typing import Dict, Any, List

from anwar_crm import config
from anwar_crm.config import db, now_iso
from anwar_crm.schema import SCHEMAS, EMPLOYEES, LOCATION_MAP
from anwar_crm.services import workbook

logger = logging.getLogger("health_check")

HEALTHY = "Healthy"
WARNING = "Warning"
CRITICAL = "Critical"

_SEVERITY = {HEALTHY: 0, WARNING: 1, CRITICAL: 2}


def _rate_status(rate: float) -> str:
    return HEALTHY if rate == 100 else WARNING if rate >= 80 else CRITICAL


def _component(status: str, issues: List[str], details: Dict[str, Any]) -> Dict[str, Any]:
    return {"status": status, "issues": issues, "details": details}


# ════════════════════════════════════════════════════════════════════════════
# COMPONENT CHECKS
# ════════════════════════════════════════════════════════════════════════════

def check_configuration_health() -> Dict[str, Any]:
    issues = [f"{name} is not configured" for name, value in config.REQUIRED_SETTINGS.items() if not value]
    if config.ADMIN_EMAIL and "@" not in config.ADMIN_EMAIL:
        issues.append("ADMIN_EMAIL is not a valid email address")

    count = len(issues)
    status = HEALTHY if count == 0 else WARNING if count <= 2 else CRITICAL
    return _component(status, issues, {"checked": len(config.REQUIRED_SETTINGS)})


async def check_spreadsheet_health() -> Dict[str, Any]:
    issues = []
    sound = 0
    for name, expected in SCHEMAS.items():
        if not await workbook.sheet_exists(name):
            issues.append(f"Sheet '{name}' not found")
            continue
        headers = await workbook.get_headers(name)
        missing = [h for h in expected if h not in headers]
        if missing:
            issues.append(f"Sheet '{name}' is missing columns: {missing}")
            continue
        if headers != expected:
            issues.append(f"Sheet '{name}' column order differs from the declared schema")
            continue
        sound += 1

    total = len(SCHEMAS)
    rate = round(sound / total * 100) if total else 0
    return _component(_rate_status(rate), issues, {"total": total, "sound": sound, "accessibility_rate": rate})


async def check_api_integrations() -> Dict[str, Any]:
    integrations = {}

    if config.MAYTAPI_API_URL and config.MAYTAPI_API_KEY and config.MAYTAPI_PRODUCT_ID:
        integrations["whatsapp"] = {"status": HEALTHY, "details": "Configuration present"}
    else:
        integrations["whatsapp"] = {"status": WARNING, "issue": "API key not configured"}

    if config.SENDGRID_API_KEY:
        integrations["email"] = {"status": HEALTHY, "details": "Configuration present"}
    else:
        integrations["email"] = {"status": WARNING, "issue": "SENDGRID_API_KEY not configured"}

    try:
        await db.sheets.count_documents({})
        integrations["database"] = {"status": HEALTHY, "details": "MongoDB reachable"}
    except Exception as e:
        integrations["database"] = {"status": CRITICAL, "issue": str(e)}

    healthy = sum(1 for i in integrations.values() if i["status"] == HEALTHY)
    status = HEALTHY if healthy == len(integrations) else WARNING if healthy else CRITICAL
    issues = [f"{name}: {i['issue']}" for name, i in integrations.items() if i.get("issue")]
    return _component(status, issues, integrations)


def check_function_integrity() -> Dict[str, Any]:
    from anwar_crm.services.triggers import FORM_HANDLERS, APPROVAL_HANDLERS

    expected = {f"form:{key}": handler for key, handler in FORM_HANDLERS.items()}
    for entity, (approve, reject) in APPROVAL_HANDLERS.items():
        expected[f"approve:{entity}"] = approve
        expected[f"reject:{entity}"] = reject

    missing = [name for name, fn in expected.items() if not callable(fn)]
    total = len(expected)
    rate = round((total - len(missing)) / total * 100) if total else 0
    return _component(
        _rate_status(rate),
        [f"Handler not available: {name}" for name in missing],
        {"total": total, "available": total - len(missing), "availability_rate": rate},
    )


async def check_data_health() -> Dict[str, Any]:
    issues = []
    details = {"employees": 0, "active_employees": 0, "locations": 0}

    if await workbook.sheet_exists(EMPLOYEES):
        rows = await workbook.get_rows(EMPLOYEES)
        details["employees"] = len(rows)
        details["active_employees"] = sum(
            1 for r in rows if str(r.get("Status")).strip().lower() == "active"
        )
    if await workbook.sheet_exists(LOCATION_MAP):
        details["locations"] = len(await workbook.get_rows(LOCATION_MAP))

    if details["employees"] == 0:
        issues.append("No employees registered")
    elif details["active_employees"] == 0:
        issues.append("No active employees")
    if details["locations"] == 0:
        issues.append("Location map is empty")

    status = HEALTHY if not issues else CRITICAL if details["employees"] == 0 else WARNING
    return _component(status, issues, details)


# ════════════════════════════════════════════════════════════════════════════
# REPORT
# ════════════════════════════════════════════════════════════════════════════

def calculate_overall_health(components: Dict[str, Dict[str, Any]]) -> str:
    worst = max((_SEVERITY.get(c["status"], 2) for c in components.values()), default=0)
    return {0: HEALTHY, 1: WARNING, 2: CRITICAL}[worst]


def generate_recommendations(components: Dict[str, Dict[str, Any]]) -> List[str]:
    recommendations = []
    if components["configuration"]["status"] != HEALTHY:
        recommendations.append("Set the missing environment variables (see configuration issues)")
    if components["spreadsheets"]["details"].get("accessibility_rate", 0) < 100:
        recommendations.append("Restart the service to heal sheets, or run the schema migration")
    if components["functions"]["details"].get("availability_rate", 0) < 100:
        recommendations.append("Register the missing form and approval handlers")
    if components["apis"]["status"] != HEALTHY:
        recommendations.append("Configure and test the WhatsApp and email integrations")
    if components["data"]["status"] != HEALTHY:
        recommendations.append("Load the Employees sheet and the Location Map")
    if not recommendations:
        recommendations.append("System appears healthy - ready for production use")
    return recommendations


async def _guarded(name: str, check) -> Dict[str, Any]:
    try:
        result = check()
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        logger.error(f"[HEALTH] {name} check failed: {e}")
        return _component(CRITICAL, [f"Check failed: {e}"], {})


async def perform_system_health_check(send_email: bool = False, store: bool = True) -> Dict[str, Any]:
    logger.info("[HEALTH] Running system health check")
    components = {
        "configuration": await _guarded("configuration", check_configuration_health),
        "spreadsheets": await _guarded("spreadsheets", check_spreadsheet_health),
        "apis": await _guarded("apis", check_api_integrations),
        "functions": await _guarded("functions", check_function_integrity),
        "data": await _guarded("data", check_data_health),
    }

    report = {
        "id": str(uuid.uuid4()),
        "timestamp": now_iso(),
        "overall_status": calculate_overall_health(components),
        "components": components,
        "recommendations": generate_recommendations(components),
        "emailed": False,
    }

    if send_email:
        from anwar_crm.email_service import email_service
        report["emailed"] = email_service.send_health_report(report)

    if store:
        await db.health_reports.insert_one(dict(report))

    logger.info(f"[HEALTH] Overall status: {report['overall_status']}")
    return report


async def latest_health_report() -> Dict[str, Any]:
    return await db.health_reports.find_one({}, {"_id": 0}, sort=[("timestamp", -1)])
