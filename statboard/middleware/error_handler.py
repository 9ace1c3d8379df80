"""Standard error handler — consistent error envelopes across all routes.

Domain exceptions from the widget engine are mapped to HTTP statuses here so
routes can let them propagate.
"""

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..utils.logging import get_logger
from ..widgets.reconcile import ReorderError
from ..widgets.record_store import WidgetQueryError
from ..widgets.service import BuiltinModuleError
from ..widgets.store import ModuleStoreError, UnknownModuleError

logger = get_logger("middleware.error_handler")


def _envelope(request: Request, status_code: int, detail, **extra) -> JSONResponse:
    content = {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        **extra,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": getattr(request.state, "request_id", None),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def register_error_handlers(app: FastAPI) -> None:
    """Register standard and domain error handlers on the app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        response = _envelope(request, exc.status_code, exc.detail)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _envelope(request, 422, "Validation error", errors=exc.errors())

    @app.exception_handler(WidgetQueryError)
    async def widget_query_handler(request: Request, exc: WidgetQueryError):
        logger.warning("widget_descriptor_rejected", error=str(exc), path=str(request.url.path))
        return _envelope(request, 422, str(exc))

    @app.exception_handler(UnknownModuleError)
    async def unknown_module_handler(request: Request, exc: UnknownModuleError):
        return _envelope(request, 404, str(exc))

    @app.exception_handler(BuiltinModuleError)
    async def builtin_module_handler(request: Request, exc: BuiltinModuleError):
        return _envelope(request, 400, str(exc))

    @app.exception_handler(ReorderError)
    async def reorder_handler(request: Request, exc: ReorderError):
        return _envelope(request, 400, str(exc))

    @app.exception_handler(ModuleStoreError)
    async def store_error_handler(request: Request, exc: ModuleStoreError):
        # Clients roll their optimistic state back to ``modules`` when present
        extra = {}
        if exc.fallback_modules:
            extra["modules"] = [m.model_dump(mode="json") for m in exc.fallback_modules]
        logger.error("module_store_unavailable", error=str(exc), path=str(request.url.path))
        return _envelope(request, 503, str(exc), **extra)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None)
        logger.error(
            "unhandled_exception",
            error=str(exc),
            request_id=request_id,
            path=str(request.url.path),
            exc_info=True,
        )
        return _envelope(request, 500, "Internal server error")
