"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ANWAR CRM - Schema migration pipeline                                       ║
║                                                                              ║
║  Moves the construction details from Orders to Potential Site Approvals.     ║
║                                                                              ║
║  STEPS (stop at the first failure):                                          ║
║    1. backup        Orders + Potential Site Approvals -> <Name>_Backup_<ts>  ║
║    2. orders        remove moved fields (reverse index order)                ║
║    3. sites         insert moved fields before "Potential Site ID"           ║
║    4. transfer      backup order values -> empty site cells                  ║
║    5. validate      live headers vs declared schema (mismatch = warning)     ║
║                                                                              ║
║  A failure after the backup restores the backed-up sheets (auto_rollback).   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from anwar_crm.config import db, now_iso
from anwar_crm.schema import ORDERS, POTENTIAL_SITE_APPROVALS, SCHEMAS, MOVED_ORDER_FIELDS
from anwar_crm.services import workbook
from anwar_crm.services.event_logger import log_event

logger = logging.getLogger("schema_migration")

MIGRATED_SHEETS = (ORDERS, POTENTIAL_SITE_APPROVALS)
SITE_ID_HEADER = "Potential Site ID"


class SchemaMigrationError(Exception):
    """Raised when a migration step cannot complete"""
    pass


def migration_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


def backup_name(sheet: str, timestamp: str) -> str:
    return f"{sheet}_Backup_{timestamp}"


# ════════════════════════════════════════════════════════════════════════════
# STEPS
# ════════════════════════════════════════════════════════════════════════════

async def create_backup(timestamp: str) -> Dict[str, Any]:
    """Copy both migrated sheets. Orders must exist; a missing site sheet is skipped."""
    if not await workbook.sheet_exists(ORDERS):
        raise SchemaMigrationError(f"Cannot back up: sheet '{ORDERS}' not found")

    backups = {}
    for sheet in MIGRATED_SHEETS:
        if not await workbook.sheet_exists(sheet):
            logger.warning(f"[MIGRATION] Sheet '{sheet}' not found, no backup taken")
            continue
        copied = await workbook.copy_sheet(sheet, backup_name(sheet, timestamp))
        backups[sheet] = copied["target"]

    logger.info(f"[MIGRATION] Backup {timestamp}: {list(backups.values())}")
    return {"timestamp": timestamp, "backups": backups}


async def migrate_orders_schema() -> Dict[str, Any]:
    removed = await workbook.delete_columns(ORDERS, MOVED_ORDER_FIELDS)
    headers = await workbook.get_headers(ORDERS)
    if removed:
        logger.info(f"[MIGRATION] Orders: removed {removed}")
    else:
        logger.info("[MIGRATION] Orders: no moved fields left to remove")
    return {"removed": removed, "headers": headers}


async def migrate_potential_sites_schema() -> Dict[str, Any]:
    """Insert the moved fields before Potential Site ID, skipping any already present"""
    await workbook.ensure_sheet(POTENTIAL_SITE_APPROVALS, SCHEMAS[POTENTIAL_SITE_APPROVALS])
    headers = await workbook.get_headers(POTENTIAL_SITE_APPROVALS)

    missing = [field for field in MOVED_ORDER_FIELDS if field not in headers]
    if not missing:
        return {"added": [], "headers": headers}

    index = headers.index(SITE_ID_HEADER) if SITE_ID_HEADER in headers else len(headers)
    updated = await workbook.insert_columns(POTENTIAL_SITE_APPROVALS, index, missing)
    logger.info(f"[MIGRATION] Potential sites: added {missing} at column {index + 1}")
    return {"added": missing, "headers": updated}


async def transfer_moved_fields_data(timestamp: str) -> Dict[str, Any]:
    """
    Copy construction details from the Orders backup onto the matching site rows.
    Only empty site cells are written, so the first order per site wins.
    """
    source = backup_name(ORDERS, timestamp)
    if not await workbook.sheet_exists(source):
        raise SchemaMigrationError(f"Backup sheet '{source}' not found")

    sites: Dict[str, Optional[workbook.SheetRow]] = {}
    transferred = 0
    updated_sites = set()
    missing_sites = set()

    for order in await workbook.get_rows(source):
        site_id = str(order.get(SITE_ID_HEADER)).strip()
        if not site_id:
            continue

        if site_id not in sites:
            sites[site_id] = await workbook.find_row(POTENTIAL_SITE_APPROVALS, SITE_ID_HEADER, site_id)
        site = sites[site_id]
        if not site:
            missing_sites.add(site_id)
            continue

        updates = {
            field: order.get(field) for field in MOVED_ORDER_FIELDS
            if order.get(field) not in ("", None) and field in site.headers and not site.get(field)
        }
        if not updates:
            continue

        sites[site_id] = await workbook.update_cells(POTENTIAL_SITE_APPROVALS, site.row, updates)
        transferred += len(updates)
        updated_sites.add(site_id)

    if missing_sites:
        logger.warning(f"[MIGRATION] Orders reference unknown sites: {sorted(missing_sites)}")
    logger.info(f"[MIGRATION] Transferred {transferred} values into {len(updated_sites)} sites")
    return {
        "values_transferred": transferred,
        "sites_updated": sorted(updated_sites),
        "missing_sites": sorted(missing_sites),
    }


async def validate_migration() -> Dict[str, Any]:
    warnings = []
    for sheet in MIGRATED_SHEETS:
        if not await workbook.sheet_exists(sheet):
            warnings.append(f"{sheet} sheet not found")
            continue
        actual = await workbook.get_headers(sheet)
        if actual != SCHEMAS[sheet]:
            warnings.append(f"{sheet} sheet headers do not exactly match expected schema")
            logger.warning(f"[MIGRATION] {sheet} expected {SCHEMAS[sheet]}, found {actual}")
    return {"warnings": warnings, "validated": not warnings}


async def is_migration_needed() -> bool:
    if not await workbook.sheet_exists(ORDERS):
        return False
    return await workbook.get_headers(ORDERS) != SCHEMAS[ORDERS]


# ════════════════════════════════════════════════════════════════════════════
# ROLLBACK
# ════════════════════════════════════════════════════════════════════════════

async def rollback_migration(timestamp: str) -> Dict[str, Any]:
    """
    Replace every sheet that has a backup from `timestamp` with that backup.
    The Orders backup is required; a site sheet that was never backed up is left as is.
    """
    backups = {}
    for sheet in MIGRATED_SHEETS:
        if await workbook.sheet_exists(backup_name(sheet, timestamp)):
            backups[sheet] = backup_name(sheet, timestamp)
    if ORDERS not in backups:
        raise SchemaMigrationError(f"Backup sheets not found: {[backup_name(ORDERS, timestamp)]}")

    for sheet, backup in backups.items():
        await workbook.delete_sheet(sheet)
        await workbook.rename_sheet(backup, sheet)

    logger.warning(f"[MIGRATION] Rolled back to backup {timestamp}")
    await log_event(
        action="schema_rollback",
        entity_type="schema",
        entity_id=timestamp,
        details={"restored": list(backups)},
    )
    return {"success": True, "restored_from": timestamp, "sheets": list(backups)}


# ════════════════════════════════════════════════════════════════════════════
# DEPLOY
# ════════════════════════════════════════════════════════════════════════════

async def _notify(result: Dict[str, Any]):
    from anwar_crm.email_service import email_service

    if not email_service.send_migration_report(result):
        result["warnings"].append("Migration report email not sent")


async def deploy_schema_changes(
    force: bool = False,
    auto_rollback: bool = True,
    send_report: bool = True,
    actor: str = "system",
) -> Dict[str, Any]:
    """
    Run the migration steps in order and return:
        {success, timestamp, steps: [{step, success, result}], errors, warnings, rolled_back}
    """
    timestamp = migration_timestamp()
    result: Dict[str, Any] = {
        "success": True,
        "timestamp": timestamp,
        "skipped": False,
        "steps": [],
        "errors": [],
        "warnings": [],
        "rolled_back": False,
    }

    if not force and not await is_migration_needed():
        logger.info("[MIGRATION] Orders headers already match, nothing to deploy")
        result["skipped"] = True
        return result

    steps = [
        ("System backup", lambda: create_backup(timestamp)),
        ("Orders schema migration", migrate_orders_schema),
        ("Potential sites schema migration", migrate_potential_sites_schema),
        ("Moved fields data transfer", lambda: transfer_moved_fields_data(timestamp)),
        ("Migration validation", validate_migration),
    ]

    backup_taken = False
    for name, step in steps:
        logger.info(f"[MIGRATION] Step: {name}")
        try:
            step_result = await step()
        except Exception as e:
            logger.error(f"[MIGRATION] Step '{name}' failed: {e}")
            result["steps"].append({"step": name, "success": False, "result": {"error": str(e)}})
            result["errors"].append(f"{name} failed: {e}")
            result["success"] = False
            break

        result["steps"].append({"step": name, "success": True, "result": step_result})
        if name == "System backup":
            backup_taken = True
        result["warnings"].extend(step_result.get("warnings", []))

    if not result["success"] and backup_taken and auto_rollback:
        try:
            await rollback_migration(timestamp)
            result["rolled_back"] = True
        except Exception as e:
            logger.error(f"[MIGRATION] Rollback failed: {e}")
            result["errors"].append(f"Rollback failed: {e}")

    passed = sum(1 for s in result["steps"] if s["success"])
    logger.info(f"[MIGRATION] {passed}/{len(result['steps'])} steps completed (success={result['success']})")

    if send_report:
        await _notify(result)

    await db.migration_runs.insert_one({
        "id": str(uuid.uuid4()),
        **result,
        "forced": force,
        "triggered_by": actor,
        "created_at": now_iso(),
    })
    await log_event(
        action="schema_deploy",
        entity_type="schema",
        entity_id=timestamp,
        user=actor,
        details={"success": result["success"], "rolled_back": result["rolled_back"], "errors": result["errors"]},
    )
    return result


async def list_migration_runs(limit: int = 20) -> List[Dict[str, Any]]:
    return await db.migration_runs.find({}, {"_id": 0}).sort("created_at", -1).to_list(limit)
