import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


# Cada error lleva su status HTTP; la app los devuelve como {"detail": ...}, igual que HTTPException
class TiendaError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str = None, headers: dict = None):
        self.detail = detail or self.default_detail
        self.headers = headers
        super().__init__(self.detail)


class Unauthenticated(TiendaError):
    status_code = 401
    default_detail = "Not authenticated"

    def __init__(self, detail: str = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(TiendaError):
    status_code = 403
    default_detail = "Forbidden"


class NotFound(TiendaError):
    status_code = 404
    default_detail = "Not found"


class InvalidInput(TiendaError):
    status_code = 400
    default_detail = "Invalid input"


class InvalidTransition(TiendaError):
    status_code = 400
    default_detail = "Invalid status transition"


class Conflict(TiendaError):
    status_code = 409
    default_detail = "Conflict"


class Internal(TiendaError):
    status_code = 500


def tienda_error_handler(request: Request, exc: TiendaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers,
    )


def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # El detalle del store queda en el log, nunca en la respuesta
    logger.error(
        "Store failure on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"detail": Internal.default_detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TiendaError, tienda_error_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
