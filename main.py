# main.py
# Role: Application entry point for the wallet ledger service.
#       Initializes the FastAPI app, creates database tables, installs CORS
#       and error handlers, and registers all route modules.

"""
Main FastAPI app for the wallet ledger.

Here we only:
- create the FastAPI app
- create DB tables
- turn errors into the {"success": false, ...} envelope
- include route modules
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError

from config import APP_DEBUG, FRONTEND_ORIGIN
from db import Base, engine
from app.errors import FinanceError, InternalError
from app.log import get_logger
from app.responses import fail
from app.routes_daily_assets import router as daily_assets_router
from app.routes_root import router as root_router
from app.routes_savings_goals import router as savings_goals_router
from app.routes_transactions import router as transactions_router
from app.routes_transfers import router as transfers_router
from app.routes_updates import router as updates_router
from app.routes_wallets import router as wallets_router

logger = get_logger(__name__)

# -------------------------------------------------------------------
# App & DB setup
# -------------------------------------------------------------------

# Create database tables (only if they don't exist yet).
Base.metadata.create_all(bind=engine)

# FastAPI application instance
app = FastAPI(title="Wallet Ledger")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in FRONTEND_ORIGIN.split(",")],
    allow_credentials=FRONTEND_ORIGIN != "*",
    allow_methods=["*"],
    allow_headers=["*"],
)

# -------------------------------------------------------------------
# Error envelope
# -------------------------------------------------------------------

@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError):
    details = exc.details
    if isinstance(exc, InternalError):
        logger.error("internal_error", path=request.url.path, error=exc.message, details=details)
        if not APP_DEBUG:
            details = None
    else:
        logger.info("request_rejected", path=request.url.path, status=exc.status_code, error=exc.message)
    return fail(exc.message, exc.status_code, details=jsonable_encoder(details))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    fields = [".".join(str(p) for p in e.get("loc", ())[1:]) for e in errors]
    message = "Invalid request: " + ", ".join(f for f in fields if f) if fields else "Invalid request"
    return fail(message, 400, details=errors)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database_error", path=request.url.path, error=repr(exc))
    return fail("Internal server error", 500, details=str(exc) if APP_DEBUG else None)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path, error=repr(exc))
    return fail("Internal server error", 500, details=repr(exc) if APP_DEBUG else None)


# -------------------------------------------------------------------
# Include routers
# -------------------------------------------------------------------

# Health check
app.include_router(root_router)

# Ledger CRUD and trends
app.include_router(transactions_router)

# Wallets, transfers between them, savings goals
app.include_router(wallets_router)
app.include_router(transfers_router)
app.include_router(savings_goals_router)

# Net-worth history
app.include_router(daily_assets_router)

# Real-time update hints (push and pull)
app.include_router(updates_router)
