from contextlib import asynccontextmanager
from fastapi import FastAPI
from sellerbank.api import cur_version
from sellerbank.api.routers import public_routers, admin_routers
from sellerbank.cache._cache import close_redis_client
from sellerbank.common.custom_exceptions import register_all_exceptions
from sellerbank.common.logging_setup import get_logger, setup_logging, shutdown_logging
from sellerbank.config.admin_config import admin_config
from sellerbank.db.connection import async_engine, async_session
from sellerbank.middlewares.auth_middleware import AuthenticationMiddleware
from sellerbank.middlewares.constants import PUBLIC_PATHS
from sellerbank.middlewares.rate_limit_middleware import RateLimitMiddleware
from sellerbank.middlewares.request_id_middleware import RequestIdMiddleware
from metrics.custom_instrumentator import instrumentator

logger = get_logger("sellerbank.app")


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging()
    logger.info("app.startup", extra={"env": admin_config.ENV, "version": cur_version})
    try:
        yield
    finally:
        await close_redis_client()
        await async_engine.dispose()
        logger.info("app.shutdown")
        shutdown_logging()


def create_app():
    app = FastAPI(
        title="Sellerbank",
        version=cur_version,
        lifespan=app_lifespan)

    app.include_router(public_routers)

    if admin_config.ENABLE_ADMIN:
        app.include_router(admin_routers)      # mounts /api/v1/admin

    # last added runs first: request id -> auth -> rate limit
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(AuthenticationMiddleware, session_maker=async_session, paths=PUBLIC_PATHS)
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    if admin_config.ENABLE_METRICS:
        instrumentator.instrument(app).expose(app, endpoint="/metrics")

    return app

app = create_app()
