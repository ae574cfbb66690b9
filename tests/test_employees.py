"""
ANWAR CRM - Employee directory and location hierarchy tests
Run: pytest tests/test_employees.py -v
"""

import pytest

from anwar_crm.models import EmployeeCreate
from anwar_crm.services import employees, location_hierarchy
from anwar_crm.services.location_hierarchy import LocationValidationError
from tests.helpers import _db_op, seed_employees, seed_location, make_employee, SR, ASM, BDO, CRO


class TestDirectory:

    def test_find_by_whatsapp_any_format(self):
        async def run():
            await seed_employees(SR, ASM)
            return (
                await employees.find_employee_by_whatsapp("+880 1711-000005"),
                await employees.find_employee_by_whatsapp("1711000001"),
                await employees.find_employee_by_whatsapp("01999999999"),
            )

        sr, asm, nobody = _db_op(run())
        assert sr.id == "SR001"
        assert asm.id == "ASM001"
        assert nobody is None

    def test_find_by_email_is_case_insensitive(self):
        async def run():
            await seed_employees(ASM)
            return await employees.find_employee_by_email("RAHIM@AnwarGroup.com")

        assert _db_op(run()).id == "ASM001"

    def test_territory_lookup_uses_new_territory(self):
        moved = make_employee("SR002", "Tarek Aziz", "SR", "01711000020", territory="Old-01", new_territory="Kushtia-01")
        left = make_employee("SR003", "Babul Mia", "SR", "01711000021", status="Inactive")

        async def run():
            await seed_employees(SR, moved, left)
            return await employees.find_employees_by_territory("kushtia-01")

        assert sorted(e.id for e in _db_op(run())) == ["SR001", "SR002"]

    def test_no_sheet(self):
        assert _db_op(employees.load_employees()) == []


class TestAddEmployee:

    def test_add_assigns_id_and_normalises_number(self):
        data = EmployeeCreate(
            name="Mizanur Rahman", role="BDO", email="mizan@anwargroup.com",
            whatsapp_number="01712345678", zone="Khulna", bd_territory="Kushtia BD", business_unit="ACL",
        )

        async def run():
            added = await employees.add_employee(data)
            return added, await employees.find_employee_by_email("mizan@anwargroup.com")

        added, found = _db_op(run())
        assert added.id == "BDO001"
        assert found.whatsapp_number == "8801712345678"
        assert found.company == "ACL"
        assert found.is_active

    def test_role_location_is_validated(self):
        data = EmployeeCreate(name="No Area", role="ASM", email="x@anwargroup.com", zone="Khulna", business_unit="ACL")
        with pytest.raises(LocationValidationError, match="ASM requires area"):
            _db_op(employees.add_employee(data))

    def test_duplicate_email(self):
        data = EmployeeCreate(
            name="Sohel Rana", role="SR", email=SR.email, territory="Kushtia-01", zone="Khulna", business_unit="ACL",
        )

        async def run():
            await seed_employees(SR)
            await employees.add_employee(data)

        with pytest.raises(ValueError, match="already exists"):
            _db_op(run())


class TestLocationHierarchy:

    def test_validate_location_for_role(self):
        ok = location_hierarchy.validate_location_for_role(
            "CRO", {"cro_territory": "Kushtia CRO", "zone": "Khulna", "business_unit": "AIL"}
        )
        assert ok == {"success": True, "messages": []}

        bad = location_hierarchy.validate_location_for_role("Driver", {})
        assert bad["success"] is False

    def test_business_unit_must_be_known(self):
        result = location_hierarchy.validate_location_for_role(
            "CRO", {"cro_territory": "Kushtia CRO", "zone": "Khulna", "business_unit": "XYZ"}
        )
        assert result == {"success": False, "messages": ["Unknown business unit: XYZ"]}

        missing = location_hierarchy.validate_location_for_role("CRO", {"cro_territory": "Kushtia CRO", "zone": "Khulna"})
        assert "All employees require business unit (ACL/AIL) to be specified" in missing["messages"]

    def test_hierarchy_lookup(self):
        async def run():
            await seed_location(Zone="Khulna", District="Kushtia", Area="Sadar", Territory="Kushtia-01",
                                **{"BD Territory": "Kushtia BD", "Business Unit": "ACL"})
            return (
                await location_hierarchy.get_location_hierarchy({"territory": "KUSHTIA-01"}),
                await location_hierarchy.get_location_hierarchy({"territory": "Dhaka-09"}),
            )

        found, missing = _db_op(run())
        assert found.area == "Sadar"
        assert found.model_dump()["bd_territory"] == "Kushtia BD"
        assert missing is None

    def test_notification_chain(self):
        bdo = BDO.model_copy(update={"bd_territory": "Kushtia BD"})
        cro = CRO.model_copy(update={"cro_territory": "Kushtia CRO"})
        asm = ASM.model_copy(update={"area": "Sadar"})

        async def run():
            await seed_employees(SR, asm, bdo, cro)
            await seed_location(Zone="Khulna", District="Kushtia", Area="Sadar", Territory="Kushtia-01",
                                **{"BD Territory": "Kushtia BD", "CRO Territory": "Kushtia CRO",
                                   "Business Unit": "ACL"})
            return await location_hierarchy.get_notification_chain("Kushtia-01", "ACL")

        chain = _db_op(run())
        assert [c["level"] for c in chain] == ["SR", "ASM", "BDO", "CRO"]
