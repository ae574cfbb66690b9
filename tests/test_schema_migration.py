"""
ANWAR CRM - Orders → potential sites schema migration
Tests: backup, column moves, data transfer, validation, rollback, deploy pipeline.
Run: pytest tests/test_schema_migration.py -v
"""

import pytest

from anwar_crm.schema import (
    ORDERS, POTENTIAL_SITE_APPROVALS, SCHEMAS, LEGACY_ORDERS, MOVED_ORDER_FIELDS,
)
from anwar_crm.services import workbook, schema_migration
from anwar_crm.services.schema_migration import SchemaMigrationError, backup_name
from tests.helpers import _db_op, seed_rows

TS = "20250115_093000"
LEGACY_SITES = [h for h in SCHEMAS[POTENTIAL_SITE_APPROVALS] if h not in MOVED_ORDER_FIELDS]


async def seed_legacy_workbook():
    await seed_rows(POTENTIAL_SITE_APPROVALS, {
        "Site Name": "Rahman Villa", "Potential Site ID": "P.S-001", "Status": "Approved", "Notes": "ok",
    }, {
        "Site Name": "Karim Tower", "Potential Site ID": "P.S-002", "Status": "Approved",
    }, headers=LEGACY_SITES)
    await seed_rows(ORDERS, {
        "Order ID": "ORD-001", "Potential Site ID": "P.S-001", "Start Building": "G+1",
        "End Building": "G+5", "Estimated Quantity": "500 bags", "Status": "Submitted",
    }, {
        "Order ID": "ORD-002", "Potential Site ID": "P.S-001", "Start Building": "G+9",
        "Delivery Timeline": "Within 1 month", "Status": "Submitted",
    }, {
        "Order ID": "ORD-003", "Potential Site ID": "P.S-404", "Start Building": "G+2", "Status": "Submitted",
    }, headers=LEGACY_ORDERS)


class TestSteps:

    def test_backup_requires_orders(self):
        with pytest.raises(SchemaMigrationError):
            _db_op(schema_migration.create_backup(TS))

    def test_backup_copies_both_sheets(self):
        async def run():
            await seed_legacy_workbook()
            return await schema_migration.create_backup(TS)

        result = _db_op(run())
        assert result["backups"] == {
            ORDERS: f"Orders_Backup_{TS}",
            POTENTIAL_SITE_APPROVALS: f"Potential Site Approvals_Backup_{TS}",
        }

    def test_orders_columns_removed_without_shifting(self):
        async def run():
            await seed_legacy_workbook()
            result = await schema_migration.migrate_orders_schema()
            return result, await workbook.get_rows(ORDERS)

        result, rows = _db_op(run())
        assert result["removed"] == MOVED_ORDER_FIELDS
        assert result["headers"] == SCHEMAS[ORDERS]
        assert rows[0].get("Order ID") == "ORD-001"
        assert rows[0].get("Status") == "Submitted"

    def test_site_columns_inserted_before_site_id(self):
        async def run():
            await seed_legacy_workbook()
            result = await schema_migration.migrate_potential_sites_schema()
            again = await schema_migration.migrate_potential_sites_schema()
            return result, again, await workbook.get_rows(POTENTIAL_SITE_APPROVALS)

        result, again, rows = _db_op(run())
        assert result["added"] == MOVED_ORDER_FIELDS
        assert result["headers"] == SCHEMAS[POTENTIAL_SITE_APPROVALS]
        assert len(result["headers"]) == len(LEGACY_SITES) + len(MOVED_ORDER_FIELDS)
        assert again["added"] == []
        assert rows[0].get("Potential Site ID") == "P.S-001"
        assert rows[0].get("Notes") == "ok"
        assert rows[0].get("Start Building") == ""

    def test_transfer_first_order_wins(self):
        async def run():
            await seed_legacy_workbook()
            await schema_migration.create_backup(TS)
            await schema_migration.migrate_potential_sites_schema()
            result = await schema_migration.transfer_moved_fields_data(TS)
            return result, await workbook.find_row(POTENTIAL_SITE_APPROVALS, "Potential Site ID", "P.S-001")

        result, site = _db_op(run())
        assert site.get("Start Building") == "G+1"
        assert site.get("End Building") == "G+5"
        assert site.get("Delivery Timeline") == "Within 1 month"
        assert result["sites_updated"] == ["P.S-001"]
        assert result["missing_sites"] == ["P.S-404"]
        assert result["values_transferred"] == 4

    def test_transfer_without_backup(self):
        with pytest.raises(SchemaMigrationError, match="not found"):
            _db_op(schema_migration.transfer_moved_fields_data(TS))


class TestRollback:

    def test_rollback_restores_legacy_layout(self):
        async def run():
            await seed_legacy_workbook()
            await schema_migration.create_backup(TS)
            await schema_migration.migrate_orders_schema()
            result = await schema_migration.rollback_migration(TS)
            return (
                result,
                await workbook.get_headers(ORDERS),
                await workbook.sheet_exists(backup_name(ORDERS, TS)),
                await workbook.get_rows(ORDERS),
            )

        result, headers, backup_left, rows = _db_op(run())
        assert result["success"] is True
        assert headers == LEGACY_ORDERS
        assert backup_left is False
        assert rows[0].get("Start Building") == "G+1"

    def test_rollback_restores_orders_when_sites_had_no_backup(self):
        async def run():
            await seed_rows(ORDERS, {"Order ID": "ORD-001", "Start Building": "G+1"}, headers=LEGACY_ORDERS)
            deployed = await schema_migration.deploy_schema_changes(force=True, send_report=False)
            result = await schema_migration.rollback_migration(deployed["timestamp"])
            return deployed, result, await workbook.get_headers(ORDERS), await workbook.get_rows(ORDERS)

        deployed, result, headers, rows = _db_op(run())
        assert deployed["success"] is True
        assert result["sheets"] == [ORDERS]
        assert headers == LEGACY_ORDERS
        assert rows[0].get("Start Building") == "G+1"

    def test_rollback_without_backup(self):
        with pytest.raises(SchemaMigrationError, match="Backup sheets not found"):
            _db_op(schema_migration.rollback_migration(TS))


class TestDeploy:

    def test_full_deploy(self):
        async def run():
            await seed_legacy_workbook()
            result = await schema_migration.deploy_schema_changes(send_report=False)
            return (
                result,
                await workbook.get_headers(ORDERS),
                await workbook.find_row(POTENTIAL_SITE_APPROVALS, "Potential Site ID", "P.S-001"),
                await schema_migration.list_migration_runs(),
                await schema_migration.is_migration_needed(),
            )

        result, headers, site, runs, still_needed = _db_op(run())
        assert result["success"] is True
        assert [s["step"] for s in result["steps"]] == [
            "System backup", "Orders schema migration", "Potential sites schema migration",
            "Moved fields data transfer", "Migration validation",
        ]
        assert all(s["success"] for s in result["steps"])
        assert headers == SCHEMAS[ORDERS]
        assert site.get("Estimated Quantity") == "500 bags"
        assert runs[0]["timestamp"] == result["timestamp"]
        assert still_needed is False
        print(f"✅ Deploy {result['timestamp']} finished with warnings={result['warnings']}")

    def test_deploy_skips_current_schema(self):
        async def run():
            await seed_rows(ORDERS, {"Order ID": "ORD-001"})
            return await schema_migration.deploy_schema_changes(send_report=False)

        result = _db_op(run())
        assert result["skipped"] is True
        assert result["steps"] == []

    def test_failed_deploy_reports_error(self):
        result = _db_op(schema_migration.deploy_schema_changes(force=True, send_report=False))
        assert result["success"] is False
        assert result["rolled_back"] is False
        assert result["steps"][0]["step"] == "System backup"
        assert result["errors"]

    def test_unexpected_step_error_rolls_back_and_is_recorded(self, monkeypatch):
        async def broken_transfer(timestamp):
            raise workbook.RecordNotFoundError("Row 7 not found in sheet 'Potential Site Approvals'")

        monkeypatch.setattr(schema_migration, "transfer_moved_fields_data", broken_transfer)

        async def run():
            await seed_legacy_workbook()
            result = await schema_migration.deploy_schema_changes(send_report=False)
            return (
                result,
                await workbook.get_headers(ORDERS),
                await workbook.get_headers(POTENTIAL_SITE_APPROVALS),
                await schema_migration.list_migration_runs(),
            )

        result, orders_headers, site_headers, runs = _db_op(run())
        assert result["success"] is False
        assert result["rolled_back"] is True
        assert result["steps"][-1] == {
            "step": "Moved fields data transfer", "success": False,
            "result": {"error": "Row 7 not found in sheet 'Potential Site Approvals'"},
        }
        assert orders_headers == LEGACY_ORDERS
        assert site_headers == LEGACY_SITES
        assert runs[0]["timestamp"] == result["timestamp"]

    def test_report_email_failure_is_a_warning(self):
        async def run():
            await seed_legacy_workbook()
            return await schema_migration.deploy_schema_changes()

        # no SendGrid key in tests
        result = _db_op(run())
        assert "Migration report email not sent" in result["warnings"]
