"""Custom exception classes for Agent Runtime."""

from typing import Optional


class AgentRuntimeError(Exception):
    """Base class for all custom exceptions in Agent Runtime."""

    pass


class ConfigurationError(AgentRuntimeError):
    """Raised when loading or validating configuration fails."""

    pass


class BackendServerError(AgentRuntimeError):
    """
    Raised when interacting with a tool server fails,
    or when a tool server reports an error.
    """

    def __init__(
        self,
        message: str,
        svr_name: Optional[str] = None,
        orig_exc: Optional[Exception] = None,
    ):
        self.svr_name = svr_name
        self.orig_exc = orig_exc

        full_msg = "Tool server error"
        if svr_name:
            full_msg += f" (server: {svr_name})"
        full_msg += f": {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)


class FeatureDisabledError(AgentRuntimeError):
    """
    Raised when an entry point needs an optional dependency that was
    not provided or whose feature flag is switched off.
    """

    def __init__(self, feature: str, detail: Optional[str] = None):
        self.feature = feature
        message = f"Feature '{feature}' is disabled"
        if detail:
            message += f": {detail}"
        super().__init__(message)
