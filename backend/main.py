import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# ENV
from config.env import (
    CORS_ALLOWED_ORIGINS,
    ENABLE_WORKERS,
    ENV,
    LOG_LEVEL,
    validate_production_env,
)

from database import get_db
from utils.indexes import ensure_indexes

# ROUTES
from routes.auth import router as auth_router
from routes.addresses import router as addresses_router
from routes.cart import router as cart_router
from routes.orders import router as orders_router
from routes.vendor_orders import router as vendor_orders_router
from routes.admin_orders import router as admin_orders_router
from routes.admin_reports import router as admin_reports_router
from routes.vendor_ledger import router as vendor_ledger_router
from routes.vendors import router as vendors_router
from routes.notifications import router as notifications_router

# WORKERS
from workers.refund_worker import refund_worker

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

logger.info("ENV: %s", ENV)

app = FastAPI(
    title="Storefront API",
    version="1.0.0",
    docs_url=None if ENV == "production" else "/docs",
    redoc_url=None if ENV == "production" else "/redoc",
    openapi_url=None if ENV == "production" else "/openapi.json",
)

# -----------------------------
# CORS
# -----------------------------

allowed_origins = [origin.strip() for origin in CORS_ALLOWED_ORIGINS if origin.strip()]
if not allowed_origins:
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# ERROR ENVELOPE
# -----------------------------

@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "error": errors},
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("UNHANDLED_ERROR %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "error": str(exc)},
    )

# -----------------------------
# ROUTES
# -----------------------------

app.include_router(auth_router)
app.include_router(addresses_router)
app.include_router(cart_router)
app.include_router(orders_router)
app.include_router(vendor_orders_router)
app.include_router(admin_orders_router)
app.include_router(admin_reports_router)
app.include_router(vendor_ledger_router)
app.include_router(vendors_router)
app.include_router(notifications_router)

# -----------------------------
# HEALTH CHECKS
# -----------------------------

@app.get("/api/health")
async def health():
    return {"status": "ok"}

@app.get("/api/health/db")
async def health_db():
    db = get_db()
    await db.command("ping")
    return {"status": "mongodb connected"}

# -----------------------------
# STARTUP (ONE PLACE ONLY)
# -----------------------------

@app.on_event("startup")
async def startup():
    validate_production_env()
    await ensure_indexes(get_db())

    if ENABLE_WORKERS:
        asyncio.create_task(refund_worker())
        logger.info("Refund worker started")
