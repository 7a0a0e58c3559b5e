from typing import Any, Optional


class MetaAPIError(Exception):
    """Exception raised when Meta Graph API returns an error."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_data: Optional[dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_data = error_data or {}
        super().__init__(message)

    @property
    def code(self) -> Optional[int]:
        error = self.error_data.get("error")
        return error.get("code") if isinstance(error, dict) else None

    @classmethod
    def from_body(cls, body: dict[str, Any], status_code: int) -> "MetaAPIError":
        """Build from the Graph error envelope ``{"error": {"message": ...}}``."""
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("error_user_msg") or error.get("message") or "Unknown error"
        elif isinstance(error, str):
            message = error
        else:
            message = "Unknown error"
        return cls(message, status_code, body)
