"""Custom exception hierarchy for estate-deals."""


class EstateDealsError(Exception):
    """Base exception for all estate-deals errors."""


class ValidationError(EstateDealsError):
    """Raised when input is rejected before any write happens."""


class InvalidEntityStateError(ValidationError):
    """Raised when an entity is not in a state that allows the operation."""


class NotFoundError(EstateDealsError):
    """Raised when a referenced entity does not exist."""


class ConflictError(EstateDealsError):
    """Raised when a precondition on stored state no longer holds."""


class ConsistencyError(EstateDealsError):
    """Raised when a multi-entity operation cannot be applied consistently."""

    def __init__(self, message: str, failures: list[Exception] | None = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])


class ReconciliationError(ValidationError, ConsistencyError):
    """Raised when amounts do not reconcile with their total."""

    def __init__(self, message: str) -> None:
        ConsistencyError.__init__(self, message)


class PermissionDeniedError(EstateDealsError):
    """Raised when the acting user may not perform the operation."""


class ConfigurationError(EstateDealsError):
    """Raised for invalid configuration."""


class SinkError(EstateDealsError):
    """Raised when an event sink operation fails."""
