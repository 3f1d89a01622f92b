"""Errors raised by the Qiyas services"""


class QiyasError(Exception):
    """Base class for service errors"""


class ValidationError(QiyasError, ValueError):
    """Input rejected before reaching the store"""


class DuplicateEntityError(ValidationError):
    """An entity with the requested id already exists"""

    def __init__(self, kind, entity_id, message=None):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(message or f'{kind} with ID "{entity_id}" already exists')


class NotFoundError(QiyasError, LookupError):
    """Requested entity does not exist"""

    def __init__(self, kind, entity_id):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")
