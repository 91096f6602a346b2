import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from billtrack.config import settings
from billtrack.middleware.exceptions import register_exception_handlers
from billtrack.routers import (
    auth,
    billings,
    client_branches,
    client_departments,
    clients,
    collections,
    departments,
    health,
    machines,
    payments,
)
from billtrack.utils.cache import close_redis

logger = logging.getLogger("billtrack")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the shared Redis connection pool on shutdown."""
    logger.info(f"BillTrack starting ({settings.environment})")
    try:
        yield
    finally:
        await close_redis()
        logger.info("BillTrack stopped")


app = FastAPI(
    title="BillTrack",
    description="Billing, collections and payment tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])

app.include_router(clients.router, prefix="/api/clients", tags=["clients"])
app.include_router(client_departments.router, prefix="/api/client-departments", tags=["client-departments"])
app.include_router(client_branches.router, prefix="/api/client-branches", tags=["client-branches"])
app.include_router(billings.router, prefix="/api/billings", tags=["billings"])
app.include_router(collections.router, prefix="/api/collections", tags=["collections"])
app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
app.include_router(machines.router, prefix="/api/machines", tags=["machines"])
app.include_router(departments.router, prefix="/api/departments", tags=["departments"])
