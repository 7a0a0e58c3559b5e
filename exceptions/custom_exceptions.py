from typing import Iterable, Optional

from fastapi import status


class BaseAppException(Exception):
    """Base class for all app-specific exceptions."""
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BusinessValidationException(BaseAppException):
    """Invalid input or business rule violation."""
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class UnauthorizedException(BaseAppException):
    """Missing or invalid caller credential."""
    def __init__(self, message: str = "Invalid or expired authentication token"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class NotConnectedException(BaseAppException):
    """No platform connection stored for the user."""
    def __init__(
        self,
        message: str = "Facebook account not connected. Please connect your Facebook account first.",
    ):
        super().__init__(message, status.HTTP_409_CONFLICT)


class TokenExpiredException(BaseAppException):
    """Stored platform token is past its expiry."""
    def __init__(
        self,
        message: str = "Facebook token expired. Please reconnect your account.",
    ):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class OAuthCallbackError(BaseAppException):
    """OAuth provider redirected back with an error or an unusable payload."""
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class RemoteStageError(BaseAppException):
    """The ads API rejected a call; ``stage`` names the step that failed."""
    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)


class RemoteCreateFailed(RemoteStageError):
    """Campaign or ad set creation was rejected by the ads API."""


class RemoteUpdateFailed(RemoteStageError):
    """A status update on an existing remote object was rejected."""


class PerCreativeFailure(Exception):
    """One creative failed somewhere between image upload and ad creation."""
    def __init__(self, creative_id: str, stage: str, reason: str):
        self.creative_id = creative_id
        self.stage = stage
        self.reason = reason
        super().__init__(f"{creative_id} failed at {stage}: {reason}")


class ConfigurationError(BaseAppException):
    """Required environment configuration is missing."""
    PUBLIC_MESSAGE = "Service temporarily unavailable, please try again later"

    def __init__(self, missing_keys: Iterable[str], message: Optional[str] = None):
        self.missing_keys = sorted(missing_keys)
        detail = message or (
            "Missing required configuration: " + ", ".join(self.missing_keys)
        )
        super().__init__(detail, status.HTTP_500_INTERNAL_SERVER_ERROR)


class NotFoundException(BaseAppException):
    """Requested record does not exist for the caller."""
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class DatabaseException(BaseAppException):
    """Database operation failed."""
    def __init__(self, message: str = "A database error occurred"):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
