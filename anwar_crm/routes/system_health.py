"""
ANWAR CRM - System health, version and audit trail endpoints
"""

import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Query

from anwar_crm import __version__
from anwar_crm.config import now_iso
from anwar_crm.services.health_check import perform_system_health_check, latest_health_report
from anwar_crm.services.event_logger import list_events

router = APIRouter(prefix="/system", tags=["System"])
logger = logging.getLogger("system_health")

CORE_TAG = "anwar-crm-workflow"


@router.get("/version")
async def system_version():
    return {
        "version": __version__,
        "tag": CORE_TAG,
        "timestamp": now_iso(),
    }


@router.get("/health")
async def system_health(send_email: bool = False):
    """
    Aggregated health report:
    - configuration (required settings)
    - spreadsheets (declared sheets and headers)
    - apis (WhatsApp, email, database)
    - functions (form and approval handlers)
    - data (employees, location map)
    """
    report = await perform_system_health_check(send_email=send_email)
    report.pop("_id", None)
    return {
        "status": report["overall_status"],
        "timestamp": report["timestamp"],
        "modules": report["components"],
        "recommendations": report["recommendations"],
        "emailed": report["emailed"],
    }


@router.get("/health/latest")
async def latest_health():
    """Last stored report (daily job or on-demand run)"""
    report = await latest_health_report()
    if not report:
        raise HTTPException(status_code=404, detail="No health report stored yet")
    return report


@router.get("/events")
async def system_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = Query(100, le=1000),
):
    events = await list_events(entity_type=entity_type, entity_id=entity_id, limit=limit)
    return {"events": events, "count": len(events)}
