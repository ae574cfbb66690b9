"""
ANWAR CRM - Deploy the Orders / Potential Site schema migration.

Run:
    python3 scripts/deploy_schema_migration.py              # only if needed
    python3 scripts/deploy_schema_migration.py --force      # run anyway
    python3 scripts/deploy_schema_migration.py --rollback 20250101_120000
"""

import asyncio
import argparse

from anwar_crm.config import client
from anwar_crm.services.schema_migration import (
    is_migration_needed, deploy_schema_changes, rollback_migration, SchemaMigrationError,
)


async def deploy(force: bool, auto_rollback: bool, send_report: bool):
    needed = await is_migration_needed()
    print(f"Migration needed: {needed}")

    result = await deploy_schema_changes(
        force=force, auto_rollback=auto_rollback, send_report=send_report, actor="script"
    )

    print("\n════════════════════════════════════")
    print("  SCHEMA MIGRATION REPORT")
    print("════════════════════════════════════")
    print(f"  Timestamp:   {result['timestamp']}")
    print(f"  Success:     {result['success']}")
    print(f"  Skipped:     {result['skipped']}")
    print(f"  Rolled back: {result['rolled_back']}")
    for step in result["steps"]:
        print(f"  {'✅' if step['success'] else '❌'} {step['step']}")
    for warning in result["warnings"]:
        print(f"  ⚠️  {warning}")
    for error in result["errors"]:
        print(f"  ❌ {error}")
    print("════════════════════════════════════")
    return result["success"]


async def rollback(timestamp: str):
    try:
        result = await rollback_migration(timestamp)
    except SchemaMigrationError as e:
        print(f"❌ Rollback failed: {e}")
        return False
    print(f"✅ Restored {result['sheets']} from backup {timestamp}")
    return True


async def main():
    parser = argparse.ArgumentParser(description="Deploy or roll back the Orders schema migration")
    parser.add_argument("--force", action="store_true", help="run even when headers already match")
    parser.add_argument("--no-rollback", action="store_true", help="keep partial changes on failure")
    parser.add_argument("--no-report", action="store_true", help="do not email the report")
    parser.add_argument("--rollback", metavar="TIMESTAMP", help="restore the backup taken at TIMESTAMP")
    args = parser.parse_args()

    try:
        if args.rollback:
            ok = await rollback(args.rollback)
        else:
            ok = await deploy(args.force, not args.no_rollback, not args.no_report)
    finally:
        client.close()
    raise SystemExit(0 if ok else 1)


if __name__ == "__main__":
    asyncio.run(main())
