from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from contextlib import asynccontextmanager
from typing import Any, Dict
import time
import logging

from delivery_recon.routes import router
from delivery_recon.logging_config import setup_logging, request_logger
from delivery_recon.core.config import config
from delivery_recon.core.database import db_manager
from delivery_recon.core.environment import get_environment

setup_logging(config.log_level)
logger = logging.getLogger("delivery_recon")

environment = get_environment()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 Delivery Recon API starting ({environment.value.upper()}, {config.database.dialect_label})")
    if not db_manager.test_connection():
        logger.error("❌ Database unreachable at startup; requests will fail until it recovers")
    db_manager.create_tables()
    if config.enable_docs:
        logger.info("📚 API documentation at /docs")

    yield

    logger.info("Delivery Recon API shutting down")
    db_manager.close()


app = FastAPI(
    title="Delivery Recon API",
    description="Consolidates Uber Eats, DoorDash and Grubhub transaction exports into per-location metrics",
    version="1.0.0",
    docs_url="/docs" if config.enable_docs else None,
    redoc_url="/redoc" if config.enable_docs else None,
    lifespan=lifespan,
    debug=config.debug
)

# Staging and production sit behind a proxy that owns CORS
cors_origins = [o.strip() for o in config.cors_allowed_origins.split(",") if o.strip()] or ["*"]
if environment.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=False,
    )
elif "*" in cors_origins and environment.is_production:
    logger.warning("⚠️ CORS_ALLOWED_ORIGINS is '*' in production; the proxy must restrict origins")


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started
    response.headers["X-Process-Time"] = f"{elapsed:.4f}"
    request_logger.log_response(
        endpoint=request.url.path,
        status_code=response.status_code,
        response_time=elapsed,
        method=request.method
    )
    return response


def _error_body(request: Request, status_code: int, **fields: Any) -> Dict[str, Any]:
    return {**fields, "status_code": status_code, "endpoint": request.url.path}


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    request_logger.log_error(endpoint=request.url.path, error=exc, status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, error=exc.detail),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    request_logger.log_error(endpoint=request.url.path, error=exc, status_code=422, validation_errors=errors)
    return JSONResponse(
        status_code=422,
        content=_error_body(request, 422, error="Validation error", details=errors),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    request_logger.log_error(endpoint=request.url.path, error=exc)
    return JSONResponse(
        status_code=500,
        content=_error_body(
            request, 500, error="Internal server error", message="An unexpected error occurred"
        ),
    )


app.include_router(router, prefix="/api")
