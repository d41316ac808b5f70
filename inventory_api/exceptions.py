from typing import Any, Dict
import logging
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)


class AppException(Exception):
    """统一应用异常基类，message 会原样返回给客户端，不得包含上游细节。"""

    status_code: int = 400
    code: str = "APP_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(AppException):
    status_code = 401
    code = "UNAUTHENTICATED"


class MissingCredential(AuthenticationError):
    """No Authorization header on the request."""


class MalformedCredential(AuthenticationError):
    """Authorization header is not of the form ``Bearer <token>``."""


class InvalidCredential(AuthenticationError):
    """The identity provider rejected the token or could not be reached."""


class PermissionDenied(AppException):
    # 401 instead of 403 so that callers cannot probe which clusters exist
    status_code = 401
    code = "PERMISSION_DENIED"


class InvalidQueryParameter(AppException):
    status_code = 400
    code = "INVALID_QUERY"


class InvalidRange(InvalidQueryParameter):
    """limit or skip is negative."""


class UpstreamUnavailable(AppException):
    """An identity, permission or inventory collaborator failed at the transport level.

    The status depends on the pipeline stage: 401 while authenticating or
    authorizing, 400 while fetching data.
    """

    code = "UPSTREAM_UNAVAILABLE"


class RequestAbandoned(Exception):
    """The client went away; the pipeline stops without writing a body."""


def _build_error_payload(message: str) -> Dict[str, Any]:
    """构建标准化错误响应载荷。"""
    return {"error": message}


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def register_exception_handlers(app: FastAPI) -> None:
    """注册全局异常处理器，统一错误响应格式。"""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):  # type: ignore[override]
        req_id = _request_id(request)
        logger.warning(
            "AppException: status=%s code=%s path=%s request_id=%s message=%s",
            exc.status_code,
            exc.code,
            request.url.path,
            req_id,
            exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_build_error_payload(exc.message),
            headers={"X-Request-ID": req_id},
        )

    @app.exception_handler(RequestAbandoned)
    async def abandoned_handler(request: Request, exc: RequestAbandoned):  # type: ignore[override]
        logger.info("RequestAbandoned: path=%s request_id=%s", request.url.path, _request_id(request))
        # 499: nginx convention for "client closed request"; nobody is listening
        return Response(status_code=499)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        req_id = _request_id(request)
        message = exc.detail if isinstance(exc.detail, str) else "request failed"
        logger.warning(
            "HTTPException: status=%s path=%s request_id=%s",
            exc.status_code,
            request.url.path,
            req_id,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_build_error_payload(message),
            headers={"X-Request-ID": req_id},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        req_id = _request_id(request)
        errors = exc.errors()
        logger.info(
            "ValidationError: path=%s errors=%d request_id=%s",
            request.url.path,
            len(errors),
            req_id,
        )
        return JSONResponse(
            status_code=400,
            content=_build_error_payload("invalid request"),
            headers={"X-Request-ID": req_id},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[override]
        req_id = _request_id(request)
        logger.exception("UnhandledException: path=%s request_id=%s", request.url.path, req_id)
        return JSONResponse(
            status_code=500,
            content=_build_error_payload("internal server error"),
            headers={"X-Request-ID": req_id},
        )
