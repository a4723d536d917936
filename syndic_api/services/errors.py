"""Domain errors raised by the reconciliation services.

Routers translate them into HTTP responses via ``syndic_api.utils.exceptions``.
"""


class ReconciliationError(Exception):
    """Base exception for reconciliation service errors."""


class ReconciliationNotFoundError(ReconciliationError):
    """A transaction, target or reconciliation record does not exist for the tenant."""

    def __init__(self, resource: str) -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource


class ReconciliationConflictError(ReconciliationError):
    """The operation violates a business rule (already reconciled, terminal state, ...)."""
