"""Error taxonomy shared by the workflow engine, the API and the client.

Every violated precondition maps to exactly one error kind. The ``code`` is
the wire name carried in the API error envelope; ``status_code`` is the HTTP
status the API answers with.
"""


class ClaimWorkflowError(Exception):
    """Base exception for all claim workflow errors."""

    code = "ClaimWorkflowError"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class InvalidTransition(ClaimWorkflowError):
    """Action not allowed from the claim's current status."""

    code = "InvalidTransition"
    status_code = 409


class ReviewerUnavailable(ClaimWorkflowError):
    """Candidate reviewer does not exist, is inactive, or is not a reviewer."""

    code = "ReviewerUnavailable"
    status_code = 422


class ClaimNotAssignable(ClaimWorkflowError):
    """Claim is not Pending or already has a reviewer."""

    code = "ClaimNotAssignable"
    status_code = 409


class ValidationError(ClaimWorkflowError):
    """Missing required field or malformed value."""

    code = "ValidationError"
    status_code = 422


class FileValidationError(ValidationError):
    """An attachment batch failed count, size or type checks."""

    code = "FileValidationError"
    status_code = 422

    def __init__(self, message: str, filename: str | None = None, reason: str | None = None):
        super().__init__(message)
        self.filename = filename
        self.reason = reason


class NotFound(ClaimWorkflowError):
    code = "NotFound"
    status_code = 404


class Forbidden(ClaimWorkflowError):
    """Actor is not entitled to the claim or the action."""

    code = "Forbidden"
    status_code = 403


class Conflict(ClaimWorkflowError):
    """A concurrent mutation of the same claim won the race."""

    code = "Conflict"
    status_code = 409


class NetworkError(ClaimWorkflowError):
    """Transport-level failure: no response from the server."""

    code = "NetworkError"
    status_code = 503


ERRORS_BY_CODE: dict[str, type[ClaimWorkflowError]] = {
    cls.code: cls
    for cls in (
        InvalidTransition,
        ReviewerUnavailable,
        ClaimNotAssignable,
        ValidationError,
        FileValidationError,
        NotFound,
        Forbidden,
        Conflict,
        NetworkError,
    )
}
