"""
Test helpers shared by the test modules
"""

import asyncio

from anwar_crm.config import normalize_phone_bd
from anwar_crm.schema import SCHEMAS, EMPLOYEES, LOCATION_MAP
from anwar_crm.models import Employee
from anwar_crm.services import workbook
from anwar_crm.services.form_intake import build_row


def _db_op(coro):
    """Run async DB operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def make_employee(emp_id, name, role, whatsapp, territory="Kushtia-01", business_unit="ACL", **extra):
    return Employee(
        id=emp_id,
        name=name,
        role=role,
        email=f"{name.split()[0].lower()}@anwargroup.com",
        whatsapp_number=whatsapp,
        territory=territory,
        business_unit=business_unit,
        **extra,
    )


async def seed_employees(*employees):
    await workbook.ensure_sheet(EMPLOYEES, SCHEMAS[EMPLOYEES])
    for employee in employees:
        await workbook.append_row(EMPLOYEES, employee.to_row())


async def seed_rows(sheet, *records, headers=None):
    """Create `sheet` (declared headers unless given) and append records laid out by header"""
    headers = headers or SCHEMAS[sheet]
    await workbook.ensure_sheet(sheet, headers)
    rows = []
    for record in records:
        rows.append(await workbook.append_row(sheet, build_row(headers, record)))
    return rows


async def seed_location(**fields):
    record = {"Status": "Active", **fields}
    return await seed_rows(LOCATION_MAP, record)


# Reference team used across tests (Kushtia-01 / ACL)
ASM = make_employee("ASM001", "Rahim Uddin", "ASM", "01711000001")
BD_INCHARGE = make_employee("BDI001", "Karim Ahmed", "BD Incharge", "01711000002")
BDO = make_employee("BDO001", "Jamal Hossain", "BDO", "01711000003")
CRO = make_employee("CRO001", "Nasir Khan", "CRO", "01711000004")
SR = make_employee("SR001", "Sohel Rana", "SR", "01711000005")


def phone(employee):
    return normalize_phone_bd(employee.whatsapp_number)


def recipients(sent):
    """Normalised numbers of every message sent"""
    return [normalize_phone_bd(number) for number, _ in sent]
