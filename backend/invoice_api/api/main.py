"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes all routers and
sets up startup and shutdown events. When run with uvicorn it
initialises the database and loads configuration from
``invoice_api.core.config``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from invoice_api.api.error_handlers import (
    generic_exception_handler,
    http_exception_handler,
    invoice_api_error_handler,
    validation_exception_handler,
)
from invoice_api.api.routes.categories import router as categories_router
from invoice_api.api.routes.health import router as health_router
from invoice_api.api.routes.invoice_types import router as types_router
from invoice_api.api.routes.invoices import router as invoices_router
from invoice_api.api.routes.plans import router as plans_router
from invoice_api.api.routes.subscriptions import router as subscriptions_router
from invoice_api.api.routes.users import router as users_router
from invoice_api.core.config import settings
from invoice_api.core.database import init_db
from invoice_api.core.errors import InvoiceAPIError
from invoice_api.core.observability import init_sentry

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan,
)

# In development allow all origins; otherwise only BACKEND_CORS_ORIGINS.
env_is_dev = (settings.ENVIRONMENT or "development").lower() == "development"
allow_origins = ["*"] if env_is_dev else list(dict.fromkeys(settings.BACKEND_CORS_ORIGINS or []))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=not env_is_dev,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register custom exception handlers
app.add_exception_handler(InvoiceAPIError, invoice_api_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include routers
app.include_router(health_router, prefix=settings.API_PREFIX)
app.include_router(invoices_router, prefix=settings.API_PREFIX)
app.include_router(categories_router, prefix=settings.API_PREFIX)
app.include_router(types_router, prefix=settings.API_PREFIX)
app.include_router(plans_router, prefix=settings.API_PREFIX)
app.include_router(subscriptions_router, prefix=settings.API_PREFIX)
app.include_router(users_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to the {settings.PROJECT_NAME}"}
