"""Error taxonomy shared by services and routes.

Services raise these; ``snapmatch.core.middleware`` renders them as ``{"error": message}``
with the status code carried by the class.
"""


class SnapmatchError(Exception):
    """Base error with a user-safe message and an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotConfigured(SnapmatchError):
    """A provider integration has no credentials."""

    status_code = 503


class NotFound(SnapmatchError):
    """Entity is absent or not owned by the caller."""

    status_code = 404


class Unauthorized(SnapmatchError):
    """Missing or invalid credential."""

    status_code = 401


class Forbidden(SnapmatchError):
    """Credential is valid but does not cover the resource."""

    status_code = 403


class PaymentRequired(Forbidden):
    """Purchase exists but is not paid."""

    status_code = 402

    def __init__(self, message: str, status: str = None):
        super().__init__(message)
        self.status = status


class Conflict(SnapmatchError):
    """Uniqueness violation."""

    status_code = 409


class UpstreamFailure(SnapmatchError):
    """A provider call failed unexpectedly."""

    status_code = 502


class ValidationFailure(SnapmatchError):
    """Malformed input."""

    status_code = 400
