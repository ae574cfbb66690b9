"""
Exception -> HTTPException mapping shared by the routers
"""

from fastapi import HTTPException

from anwar_crm.services.workbook import SheetNotFoundError, RecordNotFoundError
from anwar_crm.services.form_intake import FormPayloadError
from anwar_crm.services.approval_state_machine import InvalidTransitionError
from anwar_crm.services.location_hierarchy import LocationValidationError
from anwar_crm.services.schema_migration import SchemaMigrationError

NOT_FOUND = (SheetNotFoundError, RecordNotFoundError)
UNPROCESSABLE = (FormPayloadError, LocationValidationError, ValueError)
HANDLED = NOT_FOUND + (InvalidTransitionError, SchemaMigrationError) + UNPROCESSABLE


def to_http_error(error: Exception) -> HTTPException:
    if isinstance(error, NOT_FOUND):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (InvalidTransitionError, SchemaMigrationError)):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=422, detail=str(error))
