"""FastAPI application entrypoint for the Stock API."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .bootstrap import ensure_admin
from .deps import SessionLocal, engine
from .errors import LedgerError
from .logging_config import setup_logging
from .models import Base
from .routers import assignments, audit, auth, employees, entries, requests, scrap

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger("stock-api")

app = FastAPI(title="APA Stock API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins() or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def _create_tables() -> None:
    """Ensure the database schema exists before serving requests."""

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")

    async with SessionLocal() as session:
        await ensure_admin(
            session,
            email=config.BOOTSTRAP_ADMIN_EMAIL,
            password=config.BOOTSTRAP_ADMIN_PASSWORD,
            name=config.BOOTSTRAP_ADMIN_NAME,
        )


@app.exception_handler(HTTPException)
async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - integration glue
    detail = exc.detail
    if isinstance(detail, dict):
        payload: dict[str, Any] = {
            "detail": str(detail.get("detail", "Error interno")),
            "code": str(detail.get("code", f"http.{exc.status_code}")),
        }
    elif isinstance(detail, str):
        payload = {"detail": detail, "code": f"http.{exc.status_code}"}
    else:
        payload = {"detail": "Error inesperado", "code": "http.unexpected"}
    if exc.headers:
        return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:  # pragma: no cover - integration glue
    payload = {"detail": "Error de validación", "code": "validation_error", "errors": jsonable_errors(exc)}
    return JSONResponse(status_code=422, content=payload)


@app.exception_handler(LedgerError)
async def _ledger_exception_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.retryable:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(error.get("loc", ())), "msg": str(error.get("msg", "")), "type": str(error.get("type", ""))}
        for error in exc.errors()
    ]


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(entries.router, prefix="/entries", tags=["entries"])
app.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
app.include_router(scrap.router, prefix="/scrap", tags=["scrap"])
app.include_router(requests.router, prefix="/requests", tags=["requests"])
app.include_router(employees.router, prefix="/employees", tags=["employees"])
app.include_router(audit.router, prefix="/audit", tags=["audit"])


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
