# exception_handler.py
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import traceback
import logging
from typing import Optional

from clinic_scheduler.schemas.response import ErrorResponse, FieldError
from clinic_scheduler.core.config import settings


logger = logging.getLogger(__name__)


class BusinessHTTPException(Exception):
    """Business rule violations: bad input, conflicts, blocked deletes"""
    def __init__(self, code: int, msg: str, status_code: int = 400, errors: Optional[list] = None):
        self.status_code = status_code
        self.detail = {"code": code, "msg": msg}
        self.errors = errors
        super().__init__(msg)


class ResourceHTTPException(Exception):
    """Resource problems, e.g. the entity does not exist"""
    def __init__(self, code: int, msg: str, status_code: int = 404):
        self.status_code = status_code
        self.detail = {"code": code, "msg": msg}
        super().__init__(msg)


class AuthHTTPException(Exception):
    """Authentication (401) and authorization (403) failures"""
    def __init__(self, code: int, msg: str, status_code: int = 401):
        self.status_code = status_code
        self.detail = {"code": code, "msg": msg}
        super().__init__(msg)


def _error_body(code: int, error: str, message: str, errors=None, detail=None) -> dict:
    return ErrorResponse(
        code=code, error=error, message=message, errors=errors, detail=detail
    ).model_dump(exclude_none=True)


def _field_errors(errors) -> list:
    """Flatten pydantic error dicts into JSON-safe {field, message, type} items."""
    items = []
    for e in errors:
        loc = [str(part) for part in e.get("loc", ()) if part not in ("body", "query", "path")]
        msg = str(e.get("msg", ""))
        if e.get("type") == "json_invalid":
            msg = "El cuerpo de la solicitud no es JSON válido"
        items.append(FieldError(field=".".join(loc) or "request", message=msg, type=str(e.get("type", "unknown"))))
    return items


def register_exception_handlers(app):
    """Install the global handlers that turn exceptions into error envelopes."""

    # Unhandled
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled Exception: {traceback.format_exc()}")
        detail = None if settings.is_production else traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(
            status_code=500,
            content=_error_body(settings.UNKNOWN_ERROR_CODE, "Error interno", "Error interno del servidor", detail=detail),
        )

    # HTTP errors raised by the framework (unknown route, wrong method...)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTPException: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(settings.HTTP_ERROR_CODE, "Error HTTP", str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    # Request validation
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc.errors())
        logger.info(f"Validation Error: {[e.model_dump() for e in errors]}")
        return JSONResponse(
            status_code=400,
            content=_error_body(settings.REQ_ERROR_CODE, "Error de validación", "Datos de entrada inválidos", errors=errors),
        )

    @app.exception_handler(AuthHTTPException)
    async def auth_http_exception_handler(request: Request, exc: AuthHTTPException):
        logger.warning(f"AuthHTTPException: {exc.detail}")
        error = "No autorizado" if exc.status_code == 401 else "Acceso denegado"
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail["code"], error, exc.detail["msg"]),
        )

    @app.exception_handler(BusinessHTTPException)
    async def business_http_exception_handler(request: Request, exc: BusinessHTTPException):
        logger.warning(f"BusinessHTTPException: {exc.detail}")
        error = "Conflicto" if exc.status_code == 409 else "Regla de negocio"
        if exc.status_code >= 500:
            error = "Error interno"
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail["code"], error, exc.detail["msg"], errors=exc.errors),
        )

    @app.exception_handler(ResourceHTTPException)
    async def resource_http_exception_handler(request: Request, exc: ResourceHTTPException):
        logger.warning(f"ResourceHTTPException: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail["code"], "Recurso no encontrado", exc.detail["msg"]),
        )
