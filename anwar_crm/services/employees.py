"""
ANWAR CRM - Employee directory

Linear scans over the Employees sheet. Helpers return None / [] when nothing
matches; only add_employee raises (it is called from a user-facing route).
"""

import logging
from typing import List, Optional, Dict

from anwar_crm.config import normalize_phone_bd, display_time
from anwar_crm.schema import EMPLOYEES, SCHEMAS
from anwar_crm.models import Employee, EmployeeCreate
from anwar_crm.services import workbook
from anwar_crm.services.id_generator import generate_employee_id
from anwar_crm.services.location_hierarchy import validate_location_for_role, LocationValidationError

logger = logging.getLogger("employees")


def _same(a: str, b: str) -> bool:
    return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()


async def load_employees(active_only: bool = False) -> List[Employee]:
    if not await workbook.sheet_exists(EMPLOYEES):
        logger.warning("[EMPLOYEES] Employees sheet not found")
        return []
    employees = [Employee.from_record(row.record) for row in await workbook.get_rows(EMPLOYEES)]
    if active_only:
        employees = [e for e in employees if e.is_active]
    return employees


async def find_employee_by_email(email: str) -> Optional[Employee]:
    if not email:
        return None
    for employee in await load_employees():
        if _same(employee.email, email):
            return employee
    logger.info(f"[EMPLOYEES] No employee found for email {email}")
    return None


async def find_employee_by_id(employee_id: str) -> Optional[Employee]:
    if not employee_id:
        return None
    for employee in await load_employees():
        if _same(employee.id, employee_id):
            return employee
    return None


async def find_employee_by_whatsapp(phone: str) -> Optional[Employee]:
    """Match on the normalised WhatsApp number, then on the contact number"""
    target = normalize_phone_bd(phone)
    if not target:
        return None
    employees = await load_employees()
    for employee in employees:
        if employee.whatsapp_number and normalize_phone_bd(employee.whatsapp_number) == target:
            return employee
    for employee in employees:
        if employee.contact_number and normalize_phone_bd(employee.contact_number) == target:
            return employee
    return None


def is_employee_in_scope(employee: Employee, scope: Dict[str, str]) -> bool:
    """Every scope field must match (case-insensitive). business_unit also checks Company."""
    for field, expected in (scope or {}).items():
        if not expected:
            continue
        if field == "business_unit":
            if not (_same(employee.business_unit, expected) or _same(employee.company, expected)):
                return False
        elif not _same(getattr(employee, field, ""), expected):
            return False
    return True


async def find_employees_by_role(roles: List[str], scope: Optional[Dict[str, str]] = None) -> List[Employee]:
    """Active employees whose role is in `roles`, optionally restricted to a location scope"""
    wanted = {r.lower() for r in roles}
    return [
        e for e in await load_employees(active_only=True)
        if e.role.lower() in wanted and is_employee_in_scope(e, scope or {})
    ]


async def find_employees_by_territory(territory: str) -> List[Employee]:
    """Active employees assigned to a territory (Territory or New Territory column)"""
    if not territory:
        return []
    return [
        e for e in await load_employees(active_only=True)
        if _same(e.territory, territory) or _same(e.new_territory, territory)
    ]


async def add_employee(data: EmployeeCreate) -> Employee:
    """
    Register an employee.
    Raises LocationValidationError when the location does not satisfy the role.
    """
    role = data.role.value
    location = data.model_dump()
    validation = validate_location_for_role(role, location)
    if not validation["success"]:
        raise LocationValidationError("; ".join(validation["messages"]))

    if await find_employee_by_email(data.email):
        raise ValueError(f"Employee with email {data.email} already exists")

    await workbook.ensure_sheet(EMPLOYEES, SCHEMAS[EMPLOYEES])
    employee_id = await generate_employee_id(role)

    employee = Employee(
        id=employee_id,
        name=data.name,
        role=role,
        email=data.email,
        contact_number=data.contact_number or "",
        whatsapp_number=normalize_phone_bd(data.whatsapp_number) if data.whatsapp_number else "",
        bkash_number=data.bkash_number or "",
        nid_no=data.nid_no or "",
        status="Active",
        hire_date=data.hire_date or display_time(),
        company=data.company or data.business_unit or "",
        territory=data.territory or "",
        area=data.area or "",
        zone=data.zone or "",
        district=data.district or "",
        bazaar=data.bazaar or "",
        upazilla=data.upazilla or "",
        bd_territory=data.bd_territory or "",
        cro_territory=data.cro_territory or "",
        business_unit=data.business_unit or "",
        notes=data.notes or "",
    )
    await workbook.append_row(EMPLOYEES, employee.to_row())
    logger.info(f"[EMPLOYEES] Added {employee.id} {employee.name} ({role})")
    return employee
