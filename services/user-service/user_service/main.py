"""FastAPI application wiring for the user service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as users_router
from .config import get_settings
from .domain.service import AccountService
from .repository import AccountRepository
from .security.passwords import CredentialHasher
from .store import InMemoryDocumentStore, StoreError
from .store.postgres import PostgresDocumentStore

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise the document store and account service for the app lifecycle."""
    pool: ConnectionPool | None = None
    if settings.store_backend == "memory":
        logger.info("document store using in-memory backend")
        store = InMemoryDocumentStore()
    else:
        pool = ConnectionPool(settings.database_url, open=False)
        pool.open()
        store = PostgresDocumentStore(pool)
        store.ensure_schema()
        logger.info("document store using postgres backend")
    app.state.account_service = AccountService(
        AccountRepository(store), CredentialHasher.from_settings(settings)
    )
    try:
        yield
    finally:
        if pool is not None:
            pool.close()
            pool.wait_close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.exception_handler(StoreError)
def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Surface document store failures as 500s without leaking driver details."""
    logger.error("store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "internal server error"},
    )


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(users_router)
