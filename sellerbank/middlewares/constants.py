from sellerbank.api import version_prefix
from sellerbank.common.logging_setup import get_logger

logger = get_logger("sellerbank.middlewares")

# paths served without a bearer token
PUBLIC_PATHS = [
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/metrics",
    f"{version_prefix}/health",
    f"{version_prefix}/taxes/quote",
]
