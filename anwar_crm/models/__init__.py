"""
ANWAR CRM - Models Package

from anwar_crm.models import Employee, FormSubmission, CellEdit, ...
"""

from .employee import (
    EmployeeRole,
    BUSINESS_UNITS,
    EMPLOYEE_COLUMNS,
    LOCATION_COLUMNS,
    Employee,
    EmployeeCreate,
    LocationEntry,
)

from .forms import (
    FormSubmission,
    CellEdit,
    ApprovalAction,
    RejectionAction,
    DeployRequest,
    RollbackRequest,
    FollowupRequest,
)
