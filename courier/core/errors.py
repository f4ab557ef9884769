"""
Courier exception hierarchy.

Every error raised by the pipeline inherits from CourierError, and each
collaborator boundary has its own subclass so callers can catch narrowly.

Usage:
    try:
        await backend.upsert_push_subscription(user_id, subscription)
    except BackendError as e:
        # Remote persistence failed
    except CourierError as e:
        # Anything else from Courier
"""


class CourierError(Exception):
    """Base exception for all Courier errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigError(CourierError):
    """Configuration is invalid, missing, or malformed."""

    pass


# ━━━ Collaborator boundaries ━━━


class PlatformError(CourierError):
    """The host platform refused or failed a request."""

    pass


class PushRegistrationError(PlatformError):
    """The platform push API could not register or drop a subscription."""

    pass


class BackendError(CourierError):
    """Managed backend call failed (REST table or edge function)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
        details: dict | None = None,
    ):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message, details)


class StorageError(CourierError):
    """Local counter storage failure."""

    pass

