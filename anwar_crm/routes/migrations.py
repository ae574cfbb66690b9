"""
ANWAR CRM - Schema migration routes
"""

from fastapi import APIRouter

from anwar_crm.models import DeployRequest, RollbackRequest
from anwar_crm.schema import ORDERS, SCHEMAS
from anwar_crm.services import workbook
from anwar_crm.services.schema_migration import (
    is_migration_needed, deploy_schema_changes, rollback_migration, list_migration_runs,
)
from anwar_crm.routes.errors import HANDLED, to_http_error

router = APIRouter(prefix="/migrations", tags=["Migrations"])


@router.get("/status")
async def migration_status():
    live = await workbook.get_headers(ORDERS) if await workbook.sheet_exists(ORDERS) else []
    return {
        "migration_needed": await is_migration_needed(),
        "orders_headers": live,
        "expected_orders_headers": SCHEMAS[ORDERS],
        "recent_runs": await list_migration_runs(limit=5),
    }


@router.post("/deploy")
async def deploy(request: DeployRequest):
    return await deploy_schema_changes(
        force=request.force,
        auto_rollback=request.auto_rollback,
        send_report=request.send_report,
        actor="api",
    )


@router.post("/rollback")
async def rollback(request: RollbackRequest):
    try:
        return await rollback_migration(request.timestamp)
    except HANDLED as e:
        raise to_http_error(e)
