"""
Domain errors raised by the ledger services.

Each carries the HTTP status the API layer renders it with. Idempotent
duplicate creates are not errors and never raise.
"""


class LedgerError(Exception):
    """Base class for business-rule and lookup failures."""
    status_code = 400

    def __init__(self, message):
        self.message = message
        super().__init__(message)


class ValidationError(LedgerError):
    """Malformed or missing input."""
    status_code = 400


class NotFoundError(LedgerError):
    """Referenced entity id does not exist."""
    status_code = 404

    def __init__(self, entity, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f'{entity} with ID "{entity_id}" not found')


class ConflictError(LedgerError):
    """Business-rule violation: CRD mismatch, outside window, duplicate name."""
    status_code = 409


class InvalidStateError(LedgerError):
    """Operation not allowed in the entity's current status."""
    status_code = 409
