# backend/labstore/main.py
import logging
import os
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .errors import ErrorKind, ServiceError

from .apps.accounts.router import router as accounts_router
from .apps.inventory.router import router as inventory_router
from .apps.audit.router import router as audit_router

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:3000",
        "http://localhost:3000",
        "http://localhost:5173",
    ]


def _failure(kind: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"kind": kind, "message": message}},
    )


app = FastAPI(title="Lab Store API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.kind == ErrorKind.STORAGE_ERROR:
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc.message)
    return _failure(exc.kind.value, exc.message, exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Reads, the admin gate and post-commit refreshes reach here unwrapped.
    logger.error(
        "Storage failure on %s %s",
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return _failure(
        ErrorKind.STORAGE_ERROR.value,
        "Storage failure; please retry.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    )
    return _failure(
        ErrorKind.INVALID_INPUT.value,
        details or "Invalid request",
        422,
    )


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(accounts_router)
app.include_router(inventory_router)
app.include_router(audit_router)
