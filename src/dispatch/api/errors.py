"""Exception handlers rendering every failure as ``{"error", "message"}``.

Protean's own handlers are registered first; the handlers below take over the
exception types the dispatch engine reports with its own error kinds.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from dispatch.errors import Conflict, DispatchError, InvalidInput, NotFound

logger = structlog.get_logger(__name__)


def _render(error: DispatchError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def _describe(messages) -> str:
    """Flatten Protean's ``{field: [messages]}`` into one line."""
    if isinstance(messages, dict):
        parts = []
        for field, errors in messages.items():
            errors = errors if isinstance(errors, list) else [errors]
            parts.append(f"{field}: {', '.join(str(e) for e in errors)}")
        return "; ".join(parts)
    return str(messages)


async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, kind=exc.kind, message=exc.message)
    return _render(exc)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _render(InvalidInput(_describe(exc.messages)))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err["loc"][1:]) or "body" for err in exc.errors()]
    return _render(InvalidInput(f"Invalid request fields: {', '.join(fields)}"))


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return _render(NotFound("Resource not found"))


async def version_conflict_handler(request: Request, exc: ExpectedVersionError) -> JSONResponse:
    logger.warning("Concurrent modification rejected", path=request.url.path)
    return _render(Conflict("The resource was modified concurrently, retry the request"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "InternalError", "message": "Internal server error"})


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(DispatchError, dispatch_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(ExpectedVersionError, version_conflict_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
