import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fretmarine.config import settings
from fretmarine.middleware.exceptions import register_exception_handlers
from fretmarine.routers import cargo_items, clients, containers, health, payments
from fretmarine.services.scheduler import lifespan

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="FretMarine",
    description="Maritime freight back office: container capacity, lifecycle and payment reconciliation",
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
app.include_router(clients.router, prefix="/api/clients", tags=["clients"])
app.include_router(cargo_items.router, prefix="/api/cargo-items", tags=["cargo-items"])
app.include_router(containers.router, prefix="/api/containers", tags=["containers"])
app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
