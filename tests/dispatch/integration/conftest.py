import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from dispatch.api import admin_router, order_router, partner_router, realtime_router
from dispatch.api.errors import register_error_handlers
from dispatch.domain import dispatch



@pytest.fixture()
def client(hub):
    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with dispatch.domain_context():
            return await call_next(request)

    app.include_router(order_router)
    app.include_router(partner_router)
    app.include_router(admin_router)
    app.include_router(realtime_router)
    register_error_handlers(app)
    return TestClient(app, raise_server_exceptions=False)
