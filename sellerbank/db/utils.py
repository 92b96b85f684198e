from typing import Any, Dict
from sqlalchemy.pool import NullPool


def _normalize_db_url(url: str | None) -> str | None:
    # hosted postgres often hands out "postgres://..." and asyncpg needs "postgresql+asyncpg://..."
    if not url:
        return None
    if url.startswith("postgres://",):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def _engine_kwargs(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # one connection per session so concurrent sessions really contend on the file lock
        return {"poolclass": NullPool, "connect_args": {"timeout": 5}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 5}
