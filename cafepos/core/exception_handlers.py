import logging
import traceback
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder

from cafepos.core.exceptions import CafePosError, StorageError, ValidationError
from cafepos.schemas.response import new_request_id

log = logging.getLogger(__name__)


def _error_body(code: str, message, **extra):
    error = {"code": code, "message": message}
    error.update(extra)
    return {"success": False, "error": error, "request_id": new_request_id()}


# ----------- Exception Handlers (called by FastAPI) -----------

def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    return JSONResponse(status_code=exc.status_code, content=_error_body("http_error", exc.detail))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (422 Unprocessable Entity)."""
    body = _error_body("validation_error", "Invalid input data", details=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=422, content=body)


def cafepos_exception_handler(request: Request, exc: CafePosError):
    """Engine errors: rejected input is the caller's fault, storage failures are ours."""
    if isinstance(exc, ValidationError):
        return JSONResponse(status_code=400, content=_error_body("rejected", str(exc)))
    if isinstance(exc, StorageError):
        log.error(f"Storage failure on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content=_error_body("storage_error", "Storage operation failed."))
    return JSONResponse(status_code=500, content=_error_body("server_error", str(exc)))


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    # Log the full traceback for debugging purposes
    print(f"Unhandled exception on path: {request.url.path}")
    print("Traceback:", traceback.format_exc())
    return JSONResponse(status_code=500, content=_error_body("server_error", "Internal Server Error"))


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(CafePosError, cafepos_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
