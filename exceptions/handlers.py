import structlog
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from core.context import auth_context
from exceptions.custom_exceptions import (
    BaseAppException,
    ConfigurationError,
    RemoteStageError,
)
from utils.response_helpers import error_response

logger = structlog.get_logger(__name__)


def setup_exception_handlers(app):

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.warning("http_exception", path=request.url.path, detail=exc.detail)
        return error_response(exc.detail, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("validation_error", path=request.url.path, errors=exc.errors())
        return JSONResponse(
            content={
                "success": False,
                "data": None,
                "error": "Invalid or missing request fields",
                "details": jsonable_encoder(exc.errors()),
            },
            status_code=422
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("unhandled_exception", path=request.url.path, error=str(exc))
        return error_response("Something went wrong on the server", status_code=500)

    @app.exception_handler(ConfigurationError)
    async def configuration_exception_handler(request: Request, exc: ConfigurationError):
        logger.error(
            "configuration_error",
            path=request.url.path,
            missing_keys=exc.missing_keys,
        )
        if auth_context.is_admin:
            return error_response(
                exc.message,
                status_code=exc.status_code,
                extra={"missingKeys": exc.missing_keys},
            )
        return error_response(ConfigurationError.PUBLIC_MESSAGE, status_code=exc.status_code)

    @app.exception_handler(RemoteStageError)
    async def remote_stage_exception_handler(request: Request, exc: RemoteStageError):
        return error_response(
            exc.message, status_code=exc.status_code, extra={"stage": exc.stage}
        )

    @app.exception_handler(BaseAppException)
    async def app_exception_handler(request: Request, exc: BaseAppException):
        return error_response(exc.message, status_code=exc.status_code)
