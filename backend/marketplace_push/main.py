"""
FastAPI app entrypoint.

Push dispatch for the marketplace: device registration, notification center, event-driven sends.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from marketplace_push.api.routes import devices, events, notifications
from marketplace_push.config import settings
from marketplace_push.core.errors import PersistenceError, dispatch_error_to_http
from marketplace_push.db.session import SessionLocal
from marketplace_push.services.device_registry import DeviceRegistry
from marketplace_push.services.dispatch import Dispatcher
from marketplace_push.services.notification_store import NotificationStore
from marketplace_push.services.push.credentials import CredentialResolver
from marketplace_push.services.push.registry import build_adapter_registry

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    resolver = CredentialResolver(settings)
    states = resolver.resolve_all()
    client = httpx.AsyncClient(timeout=settings.push_send_timeout_seconds)
    registry = DeviceRegistry(SessionLocal)
    store = NotificationStore(SessionLocal)
    adapters = build_adapter_registry(resolver, client, settings)
    app.state.credential_resolver = resolver
    app.state.device_registry = registry
    app.state.notification_store = store
    app.state.dispatcher = Dispatcher(
        registry, store, adapters, resolver, send_timeout=settings.push_send_timeout_seconds
    )
    configured = [p.value for p, s in states.items() if s.configured]
    logger.info("Backend ready; push providers configured: %s", ", ".join(configured) or "none")
    yield
    await client.aclose()


app = FastAPI(title=f"{settings.app_name} Push", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:4173",
    "http://127.0.0.1:4173",
]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    http_exc = dispatch_error_to_http(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


app.include_router(devices.router, tags=["push"])
app.include_router(notifications.router, tags=["notifications"])
app.include_router(events.router, tags=["events"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": f"{settings.app_name} push API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
