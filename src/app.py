"""Dispatch FastAPI application.

Web server that processes commands synchronously via HTTP and pushes order
updates over the /ws WebSocket. Every request runs inside the dispatch domain
context; the scheduled-task runner lives for as long as the app does.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dispatch.domain import dispatch
from dispatch.utils.logging import bind_request_context, clear_request_context, configure_logging

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - default      → event_processing = "sync"  (fan-out fires in the UoW)
#   - "production" → event_processing = "async" (fan-out fires via Engine)
configure_logging()
dispatch.init()

from dispatch.api import admin_router, order_router, partner_router, realtime_router  # noqa: E402
from dispatch.api.errors import register_error_handlers  # noqa: E402
from dispatch.realtime import configure_realtime, reset_realtime  # noqa: E402
from dispatch.realtime.hub import RealtimeHub  # noqa: E402
from dispatch.scheduling.runner import TaskRunner  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    hub = configure_realtime(RealtimeHub())
    runner = TaskRunner(dispatch)
    runner.start()
    try:
        yield
    finally:
        await runner.stop()
        hub.close()
        reset_realtime()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Dispatch API",
    description="Pharmacy order lifecycle and delivery dispatch engine",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the dispatch domain context and bind request log fields."""
    bind_request_context(
        path=request.url.path,
        method=request.method,
        user_id=request.headers.get("x-user-id"),
    )
    try:
        with dispatch.domain_context():
            return await call_next(request)
    finally:
        clear_request_context()


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(order_router)
app.include_router(partner_router)
app.include_router(admin_router)
app.include_router(realtime_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": dispatch.name}})
