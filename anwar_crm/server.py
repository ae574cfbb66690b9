"""
Anwar Sales CRM - API backend

Start with:
    uvicorn anwar_crm.server:app --host 0.0.0.0 --port 8001 --reload
"""

import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from anwar_crm import __version__, config

# Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("anwar_crm")

app = FastAPI(
    title="Anwar Sales CRM",
    description="Form intake, approvals and WhatsApp notifications for the Anwar sales ecosystem",
    version=__version__
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== ROUTES ====================

from anwar_crm.routes import forms, sheets, approvals, employees, visits, webhooks, migrations, system_health

app.include_router(forms.router, prefix="/api")
app.include_router(sheets.router, prefix="/api")
app.include_router(approvals.router, prefix="/api")
app.include_router(employees.router, prefix="/api")
app.include_router(employees.locations_router, prefix="/api")
app.include_router(visits.router, prefix="/api")
app.include_router(webhooks.router, prefix="/api")
app.include_router(migrations.router, prefix="/api")
app.include_router(system_health.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": "Anwar Sales CRM API",
        "version": __version__,
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP ====================

async def create_indexes():
    db = config.db
    await db.sheets.create_index("name", unique=True)
    await db.sheet_rows.create_index([("sheet", 1), ("row", 1)], unique=True)
    await db.counters.create_index("key", unique=True)
    await db.conversation_state.create_index("phone", unique=True)
    await db.conversation_state.create_index("expires_at")
    await db.bot_rate_limits.create_index("phone", unique=True)
    await db.event_log.create_index("created_at")
    await db.event_log.create_index([("entity_type", 1), ("entity_id", 1)])
    await db.health_reports.create_index("timestamp")
    await db.migration_runs.create_index("created_at")


async def heal_declared_sheets():
    from anwar_crm.schema import SCHEMAS
    from anwar_crm.services.workbook import verify_and_heal_sheet

    for name, headers in SCHEMAS.items():
        report = await verify_and_heal_sheet(name, headers)
        if report["created"] or report["headers_written"] or report["headers_added"]:
            logger.info(f"[WORKBOOK] {report}")


@app.on_event("startup")
async def startup():
    logger.info(f"🚀 Anwar Sales CRM v{__version__} starting")

    await create_indexes()
    logger.info("✅ MongoDB indexes created")

    await heal_declared_sheets()
    logger.info("✅ Declared sheets verified")

    if config.ENABLE_SCHEDULER:
        from anwar_crm.scheduler_service import task_scheduler
        task_scheduler.start()


@app.on_event("shutdown")
async def shutdown():
    if config.ENABLE_SCHEDULER:
        from anwar_crm.scheduler_service import task_scheduler
        task_scheduler.stop()
    config.client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
