#!/usr/bin/env python
"""
bullionpos/main.py

Sets up the FastAPI application for BullionPOS, the pricing, ledger and
compliance engine behind a precious-metals dealer's counter.

Key Roles:
 - Loads environment variables & configures CORS for the counter frontend
 - Includes the settings, spot, pricing, transaction, compliance and
   calculation routers
 - Maps the engine's typed errors to JSON responses {"detail", "code"}
"""

import os
import logging
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bullionpos.database import create_tables
from bullionpos.errors import BullionPOSError, TransactionNotFoundError
from bullionpos.routers import calculation, compliance, pricing, settings, spot, transaction

load_dotenv()
logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# CORS origins (dev defaults if none specified)
# ---------------------------------------------------------
default_origins = (
    "http://127.0.0.1:3000,"
    "http://localhost:3000,"
    "http://127.0.0.1:5173,"
    "http://localhost:5173,"
    "http://127.0.0.1:8000,"
    "http://localhost:8000"
)
raw_origins = os.getenv("CORS_ALLOW_ORIGINS", default_origins)
ALLOWED_ORIGINS = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

# ---------------------------------------------------------
# Initialize the FastAPI application
# ---------------------------------------------------------
app = FastAPI(
    title="BullionPOS API",
    description=(
        "Pricing, transaction ledger, FIFO cost basis and 1099-B / Form 8300 "
        "compliance flags for a precious-metals dealer."
    ),
    version="1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------
# Domain errors -> HTTP
# ---------------------------------------------------------
@app.exception_handler(BullionPOSError)
async def bullion_error_handler(request: Request, exc: BullionPOSError):
    status_code = 404 if isinstance(exc, TransactionNotFoundError) else 400
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})

# ---------------------------------------------------------
# Database: Create Tables at Startup
# ---------------------------------------------------------
@app.on_event("startup")
def startup_event():
    """Ensures the key/value table exists. Idempotent."""
    create_tables()

# ---------------------------------------------------------
# Routers
# ---------------------------------------------------------
app.include_router(settings.router, prefix="/api/settings", tags=["settings"])
app.include_router(spot.router, prefix="/api/spot", tags=["spot"])
app.include_router(pricing.router, prefix="/api/pricing", tags=["pricing"])
app.include_router(transaction.router, prefix="/api/transactions", tags=["transactions"])
app.include_router(compliance.router, prefix="/api/compliance", tags=["compliance"])
app.include_router(calculation.router, prefix="/api/calculations", tags=["calculations"])

# ---------------------------------------------------------
# Root Route
# ---------------------------------------------------------
@app.get("/")
def read_root():
    """Basic root path to confirm the API is running."""
    return {"message": "Welcome to BullionPOS"}
