"""
ANWAR CRM - ID generation tests
Tests: daily IDs, sequential IDs seeded from sheet data, partner and employee IDs.
Run: pytest tests/test_id_generator.py -v
"""

import re
import asyncio

from anwar_crm.config import today_stamp
from anwar_crm.schema import ORDERS, CRM_APPROVALS
from anwar_crm.services import id_generator
from tests.helpers import _db_op, seed_rows


class TestDailyIds:

    def test_format_and_sequence(self):
        async def run():
            return [await id_generator.generate_daily_id("DGR") for _ in range(3)]

        ids = _db_op(run())
        stamp = today_stamp()
        assert ids == [f"DGR-{stamp}-001", f"DGR-{stamp}-002", f"DGR-{stamp}-003"]
        print(f"✅ Daily IDs: {ids}")

    def test_prefixes_are_independent(self):
        async def run():
            await id_generator.generate_daily_id("DGR")
            return await id_generator.generate_daily_id("RPR")

        assert _db_op(run()).endswith("-001")

    def test_seeded_from_existing_rows(self):
        stamp = today_stamp()

        async def run():
            await seed_rows(
                "Demand Generation Requests",
                {"Request ID": f"DGR-{stamp}-041"},
                {"Request ID": "DGR-20200101-099"},
            )
            return await id_generator.generate_daily_id("DGR")

        assert _db_op(run()) == f"DGR-{stamp}-042"

    def test_concurrent_submissions_get_distinct_ids(self):
        stamp = today_stamp()

        async def run():
            await seed_rows("Demand Generation Requests", {"Request ID": f"DGR-{stamp}-005"})
            return await asyncio.gather(*(id_generator.generate_daily_id("DGR") for _ in range(20)))

        ids = _db_op(run())
        assert len(set(ids)) == 20
        assert all(re.fullmatch(rf"DGR-{stamp}-\d{{3}}", i) for i in ids)
        assert sorted(int(i[-3:]) for i in ids) == list(range(6, 26))
        print(f"✅ 20 concurrent daily IDs: {min(ids)} .. {max(ids)}")


class TestSequentialIds:

    def test_order_ids_continue_after_sheet_maximum(self):
        async def run():
            await seed_rows(ORDERS, {"Order ID": "ORD-007"}, {"Order ID": "ORD-003"})
            return await id_generator.generate_order_id(), await id_generator.generate_order_id()

        assert _db_op(run()) == ("ORD-008", "ORD-009")

    def test_first_potential_site_id(self):
        assert _db_op(id_generator.generate_potential_site_id()) == "P.S-001"

    def test_ihb_id(self):
        assert _db_op(id_generator.generate_ihb_id()) == "IHB001"

    def test_employee_ids(self):
        async def run():
            return (
                await id_generator.generate_employee_id("BD Incharge"),
                await id_generator.generate_employee_id("BDO"),
                await id_generator.generate_employee_id("Janitor"),
            )

        assert _db_op(run()) == ("BDI001", "BDO001", None)


class TestPartnerIds:

    def test_series_start_numbers(self):
        async def run():
            return (
                await id_generator.generate_partner_id("Site Engineer"),
                await id_generator.generate_partner_id("Partner"),
                await id_generator.generate_partner_id("Site Engineer"),
            )

        assert _db_op(run()) == ("S10122", "C1022", "S10123")

    def test_series_continues_after_existing_partner(self):
        async def run():
            await seed_rows(CRM_APPROVALS, {"Partner ID": "C1050"})
            return await id_generator.generate_partner_id("Partner")

        assert _db_op(run()) == "C1051"

    def test_unknown_type(self):
        assert _db_op(id_generator.generate_partner_id("Plumber")) is None

    def test_validate_partner_id(self):
        assert id_generator.validate_partner_id("S10122", "Site Engineer")
        assert id_generator.validate_partner_id("C1022", "Partner")
        assert not id_generator.validate_partner_id("C10122", "Partner")
        assert not id_generator.validate_partner_id("S10122", "Partner")
        assert not id_generator.validate_partner_id("", "Partner")


def test_dispute_id_is_unique():
    first, second = id_generator.generate_dispute_id(), id_generator.generate_dispute_id()
    assert re.fullmatch(r"DIS-[0-9a-f\-]{36}", first)
    assert first != second
