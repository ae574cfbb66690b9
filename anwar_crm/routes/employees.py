"""
ANWAR CRM - Employee and location routes
"""

from typing import Optional
from fastapi import APIRouter, HTTPException

from anwar_crm.models import EmployeeCreate
from anwar_crm.services.employees import load_employees, add_employee
from anwar_crm.services.location_hierarchy import get_location_hierarchy, get_notification_chain
from anwar_crm.routes.errors import HANDLED, to_http_error

router = APIRouter(prefix="/employees", tags=["Employees"])
locations_router = APIRouter(prefix="/locations", tags=["Locations"])


@router.get("")
async def list_employees(role: Optional[str] = None, territory: Optional[str] = None, active_only: bool = False):
    employees = await load_employees(active_only=active_only)
    if role:
        employees = [e for e in employees if e.role.lower() == role.lower()]
    if territory:
        t = territory.lower()
        employees = [e for e in employees if t in (e.territory.lower(), e.new_territory.lower())]
    return {"employees": [e.model_dump() for e in employees], "count": len(employees)}


@router.post("")
async def create_employee(data: EmployeeCreate):
    try:
        employee = await add_employee(data)
    except HANDLED as e:
        raise to_http_error(e)
    return {"success": True, "employee": employee.model_dump()}


@router.get("/chain")
async def notification_chain(territory: str, business_unit: str):
    chain = await get_notification_chain(territory, business_unit)
    return {"territory": territory, "business_unit": business_unit, "chain": chain, "count": len(chain)}


@locations_router.get("/hierarchy")
async def location_hierarchy(
    territory: Optional[str] = None,
    bazaar: Optional[str] = None,
    upazilla: Optional[str] = None,
    area: Optional[str] = None,
    district: Optional[str] = None,
):
    criteria = {
        "territory": territory, "bazaar": bazaar, "upazilla": upazilla,
        "area": area, "district": district,
    }
    entry = await get_location_hierarchy({k: v for k, v in criteria.items() if v})
    if not entry:
        raise HTTPException(status_code=404, detail="No location matches the given criteria")
    return {"hierarchy": entry.model_dump()}
