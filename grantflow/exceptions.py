"""Exception hierarchy for the verification subsystem.

Only failures the caller has to act on are raised. Network and model
failures inside a verification phase are recorded as failed checks instead.
"""

from typing import Optional


class GrantFlowError(Exception):
    """Base class for GrantFlow errors."""
    pass


class ConfigurationError(GrantFlowError):
    """Raised when required credentials or endpoints are not configured."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"Missing required configuration: {', '.join(missing)}"
        )


class StoreError(GrantFlowError):
    """Raised when a single grant store read or write fails."""

    def __init__(self, operation: str, message: str, original_error: Optional[Exception] = None):
        self.operation = operation
        self.message = message
        self.original_error = original_error
        super().__init__(f"{operation}: {message}")


class StoreUnavailableError(StoreError):
    """Raised when the grant store cannot be reached at all."""
    pass


class GrantNotFoundError(GrantFlowError):
    """Raised when a grant id does not exist in the store."""

    def __init__(self, grant_id: str):
        self.grant_id = grant_id
        super().__init__(f"Grant not found: {grant_id}")
