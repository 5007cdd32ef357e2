# api/creatorpay/main.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from .db import Base, engine
from .errors import register_error_handlers
from .logging_config import configure_logging
from .settings import settings

# --- Routers ---
from .routers import content as content_router
from .routers import notifications as notifications_router
from .routers import payments as payments_router
from .routers import subscriptions as subscriptions_router

configure_logging()

# --- App init ---
app = FastAPI(title="CreatorPay API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


# --- Health Check ---
@app.get("/health")
def health():
    return {"ok": True}


@app.get("/api/health")
def api_health():
    return {"ok": True}


# --- Startup ---
@app.on_event("startup")
def startup():
    # Only auto-create tables locally; use Alembic in production
    if settings.ENV != "production":
        Base.metadata.create_all(bind=engine)


# --- Include routers ---
# payments first: its fixed paths share the /api/subscriptions prefix
app.include_router(payments_router.router)
app.include_router(payments_router.price_router)
app.include_router(subscriptions_router.router)
app.include_router(content_router.router)
app.include_router(notifications_router.router)


@app.get("/debug/routes")
def list_routes():
    """List all registered API routes."""
    return [
        {"path": route.path, "name": route.name, "methods": sorted(route.methods)}
        for route in app.routes
        if isinstance(route, APIRoute)
    ]
