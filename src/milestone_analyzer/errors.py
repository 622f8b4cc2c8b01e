"""Error taxonomy for the analysis API.

Every error carries the HTTP status it maps to and a stable ``error_code``
that is written to the response-stats audit trail.
"""

from __future__ import annotations

INTERNAL_ERROR_MESSAGE = "Internal server error"


class AnalyzerError(Exception):
    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    public_message: str | None = None

    def __init__(self, message: str = "", *, error_code: str | None = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message
        if error_code is not None:
            self.error_code = error_code

    @property
    def response_message(self) -> str:
        """Message safe to return to the caller."""
        if self.status_code >= 500:
            return INTERNAL_ERROR_MESSAGE
        return self.public_message or self.message


class InvalidVideoInput(AnalyzerError):
    status_code = 400
    error_code = "INVALID_VIDEO"
    public_message = "Invalid or missing video"


class VideoFetchFailed(InvalidVideoInput):
    error_code = "VIDEO_FETCH_FAILED"


class InvalidMilestoneId(AnalyzerError):
    status_code = 400
    error_code = "INVALID_MILESTONE_ID"
    public_message = "Invalid or missing milestone ID"


class MilestoneNotFound(AnalyzerError):
    status_code = 404
    error_code = "MILESTONE_NOT_FOUND"
    public_message = "Invalid milestone ID"


class ConfigurationMissing(AnalyzerError):
    """Validators, system prompt, active model or policy could not be resolved."""

    error_code = "CONFIGURATION_MISSING"


class ModelResponseParseError(AnalyzerError):
    error_code = "MODEL_RESPONSE_PARSE_ERROR"


class ModelInvocationError(AnalyzerError):
    error_code = "MODEL_INVOCATION_ERROR"


class Unauthorized(AnalyzerError):
    status_code = 401
    error_code = "UNAUTHORIZED"
