import asyncio
import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request

from .api.router import api_router, public_router
from .config import get_settings
from .core.logging import get_logger, setup_logging
from .core.request_context import request_id_var, username_var
from .dependencies import get_cluster_inventory, get_review_client
from .exceptions import register_exception_handlers
from .services.inventory_refresher import InventoryRefresher


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger = get_logger(__name__)
    settings = get_settings()

    refresher_stop = asyncio.Event()
    refresher_task = None
    if settings.inventory_refresh_enabled:
        refresher = InventoryRefresher(
            get_cluster_inventory(),
            get_review_client().service_api_client,
            interval_seconds=settings.inventory_refresh_seconds,
            request_timeout_seconds=settings.request_timeout_seconds,
        )
        refresher_task = asyncio.create_task(refresher.run(refresher_stop))
        logger.info("app.inventory_refresher_started")

    yield

    logger.info("app.shutting_down")
    if refresher_task is not None:
        refresher_stop.set()
        refresher_task.cancel()
        try:
            await refresher_task
        except asyncio.CancelledError:
            pass
        logger.info("app.inventory_refresher_stopped")
    get_review_client().close()


# 日志初始化需尽早执行
setup_logging()

app = FastAPI(
    title="Cluster Inventory API",
    description="Clusters, Helm releases, resources and profile status visible to the caller",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    start = time.perf_counter()
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    rid_token = request_id_var.set(request_id)
    user_token = username_var.set(None)
    structlog.contextvars.bind_contextvars(request_id=request_id)
    logger = get_logger("inventory_api.access")

    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "http.request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response
    finally:
        structlog.contextvars.clear_contextvars()
        request_id_var.reset(rid_token)
        username_var.reset(user_token)


register_exception_handlers(app)

app.include_router(public_router)
app.include_router(api_router)
