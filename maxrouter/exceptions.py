"""
Error taxonomy and conversion to both wire formats
"""

from typing import Any, Dict, Optional

from .models import ErrorDetail, ErrorResponse, NativeErrorDetail, NativeErrorResponse


class RouterError(Exception):
    """Base error carrying everything needed to render a wire-format error body"""

    status_code = 500
    error_type = "api_error"

    def __init__(self, message: str, param: Optional[str] = None):
        self.message = message
        self.param = param
        super().__init__(message)

    @property
    def code(self) -> Optional[str]:
        return self.error_type

    def to_openai(self) -> Dict[str, Any]:
        """OpenAI error body: {error: {message, type, param, code}}"""
        detail = ErrorDetail(message=self.message, type=self.error_type, param=self.param, code=self.code)
        return ErrorResponse(error=detail).model_dump()

    def to_native(self) -> Dict[str, Any]:
        """Native error body: {type: error, error: {type, message}}"""
        detail = NativeErrorDetail(type=self.error_type, message=self.message)
        return NativeErrorResponse(error=detail).model_dump()


class TranslationError(RouterError):
    """Inbound request cannot be translated (e.g. empty message list)"""

    status_code = 400
    error_type = "invalid_request_error"


class UnsupportedFeatureError(RouterError):
    """A requested feature cannot be honored without silently losing data"""

    status_code = 400
    error_type = "invalid_request_error"

    def __init__(self, field: str, detail: str):
        self.field = field
        super().__init__(f"Unsupported parameter '{field}': {detail}", param=field)


class UpstreamError(RouterError):
    """The provider rejected or failed the native request"""

    def __init__(self, status_code: int, error_type: str, message: str):
        self.status_code = status_code
        self.error_type = error_type
        super().__init__(message)

    @classmethod
    def from_body(cls, status_code: int, body: Any) -> "UpstreamError":
        """Build from a native error body (parsed JSON or raw text)"""
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return cls(
                    status_code,
                    error.get("type") or "api_error",
                    error.get("message") or "Upstream request failed",
                )
            if isinstance(error, str):
                return cls(status_code, "api_error", error)
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else str(body or "")
        return cls(status_code, "api_error", text.strip() or f"Upstream returned HTTP {status_code}")


class StreamProtocolError(RouterError):
    """Unparseable or out-of-sequence upstream SSE event"""

    status_code = 502
    error_type = "stream_protocol_error"


class AuthenticationError(RouterError):
    """OAuth token is missing, expired beyond refresh, or rejected"""

    status_code = 401
    error_type = "authentication_error"


class InternalError(RouterError):
    """Unexpected failure inside the router"""

    status_code = 500
    error_type = "internal_error"
