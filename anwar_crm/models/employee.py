"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ANWAR CRM - Employee & Location models                                      ║
║                                                                              ║
║  Employees sheet: 24 columns, one row per employee.                          ║
║  Location Map sheet: zone → district → area → territory → bazaar/upazilla    ║
║                      → BD territory / CRO territory → business unit          ║
║                                                                              ║
║  RULE: only Active employees receive notifications                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel
from enum import Enum


class EmployeeRole(str, Enum):
    SR = "SR"
    ASM = "ASM"
    ZSM = "ZSM"
    BDO = "BDO"
    CRO = "CRO"
    BD_INCHARGE = "BD Incharge"
    BD_TEAM_INCHARGE = "BD Team Incharge"


BUSINESS_UNITS = ["ACL", "AIL"]

# field -> sheet header
EMPLOYEE_COLUMNS = {
    "id": "Employee ID",
    "name": "Employee Name",
    "role": "Role",
    "email": "Email",
    "contact_number": "Contact Number",
    "whatsapp_number": "WhatsApp Number",
    "bkash_number": "bKash Number",
    "nid_no": "NID No",
    "status": "Status",
    "hire_date": "Hire Date",
    "company": "Company",
    "territory": "Territory",
    "area": "Area",
    "zone": "Zone",
    "district": "District",
    "new_area": "New Area",
    "new_territory": "New Territory",
    "bazaar": "Bazaar",
    "upazilla": "Upazilla",
    "bd_territory": "BD Territory",
    "cro_territory": "CRO Territory",
    "business_unit": "Business Unit",
    "legacy_id": "Legacy ID",
    "notes": "Notes",
}

LOCATION_COLUMNS = {
    "zone": "Zone",
    "district": "District",
    "area": "Area",
    "territory": "Territory",
    "bazaar": "Bazaar",
    "upazilla": "Upazilla",
    "bd_territory": "BD Territory",
    "cro_territory": "CRO Territory",
    "business_unit": "Business Unit",
    "status": "Status",
}

def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


class Employee(BaseModel):
    """One row of the Employees sheet"""
    id: str = ""
    name: str = ""
    role: str = ""
    email: str = ""
    contact_number: str = ""
    whatsapp_number: str = ""
    bkash_number: str = ""
    nid_no: str = ""
    status: str = "Active"
    hire_date: str = ""
    company: str = ""
    territory: str = ""
    area: str = ""
    zone: str = ""
    district: str = ""
    new_area: str = ""
    new_territory: str = ""
    bazaar: str = ""
    upazilla: str = ""
    bd_territory: str = ""
    cro_territory: str = ""
    business_unit: str = ""
    legacy_id: str = ""
    notes: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Employee":
        return cls(**{field: _text(record.get(header)) for field, header in EMPLOYEE_COLUMNS.items()})

    def to_row(self) -> List[str]:
        return [getattr(self, field) for field in EMPLOYEE_COLUMNS]

    @property
    def is_active(self) -> bool:
        return self.status.lower() == "active"

    def summary(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "email": self.email,
            "whatsapp_number": self.whatsapp_number,
        }


class EmployeeCreate(BaseModel):
    """
    Employee registration

    Example:
    {
        "name": "Rahim Uddin",
        "role": "SR",
        "email": "rahim@anwargroup.com",
        "whatsapp_number": "01712345678",
        "zone": "Khulna",
        "territory": "Kushtia-01",
        "business_unit": "ACL"
    }
    """
    name: str
    role: EmployeeRole
    email: str
    contact_number: Optional[str] = ""
    whatsapp_number: Optional[str] = ""
    bkash_number: Optional[str] = ""
    nid_no: Optional[str] = ""
    hire_date: Optional[str] = ""
    company: Optional[str] = ""
    territory: Optional[str] = ""
    area: Optional[str] = ""
    zone: Optional[str] = ""
    district: Optional[str] = ""
    bazaar: Optional[str] = ""
    upazilla: Optional[str] = ""
    bd_territory: Optional[str] = ""
    cro_territory: Optional[str] = ""
    business_unit: Optional[str] = ""
    notes: Optional[str] = ""


class LocationEntry(BaseModel):
    """One row of the Location Map sheet"""
    zone: str = ""
    district: str = ""
    area: str = ""
    territory: str = ""
    bazaar: str = ""
    upazilla: str = ""
    bd_territory: str = ""
    cro_territory: str = ""
    business_unit: str = ""
    status: str = "Active"

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "LocationEntry":
        return cls(**{field: _text(record.get(header)) for field, header in LOCATION_COLUMNS.items()})
