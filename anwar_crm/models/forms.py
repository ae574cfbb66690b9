"""
ANWAR CRM - Inbound event payloads (form submits, cell edits, approvals, migrations)
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict


class FormSubmission(BaseModel):
    """
    A form submission event.

    values is positional: values[0] is the timestamp, values[1] the submitter
    email (may be blank), the rest follow the form's question order.
    """
    model_config = ConfigDict(extra="ignore")

    values: List[Any] = Field(default_factory=list)
    named_values: Dict[str, List[Any]] = Field(default_factory=dict)
    respondent_email: Optional[str] = None

    def value(self, index: int, default: str = "") -> str:
        if index < len(self.values) and self.values[index] is not None:
            return str(self.values[index]).strip()
        return default


class CellEdit(BaseModel):
    """A direct cell edit on a sheet (1-based row and column)"""
    row: int
    column: int
    value: Any = ""
    edited_by: str = "system"


class ApprovalAction(BaseModel):
    notes: Optional[str] = ""
    actor: str = "system"


class RejectionAction(BaseModel):
    reason: str
    actor: str = "system"


class FollowupRequest(BaseModel):
    reason: str
    actor: str = "system"


class DeployRequest(BaseModel):
    force: bool = False
    auto_rollback: bool = True
    send_report: bool = True


class RollbackRequest(BaseModel):
    timestamp: str
