import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient
from sellerbank.common.custom_exceptions import register_all_exceptions
from sellerbank.rate_limiting.constants import TRANSFER, _in_memory_expiry, _in_memory_windows
from sellerbank.rate_limiting.dependencies import check_rate_limit, rate_limit_dependency
from sellerbank.rate_limiting.rate_limit_sliding_window import redis_allow_sliding
from sellerbank.rate_limiting.utils import _in_memory_allow, reset_in_memory_limiter
from tests.helpers import seed_seller, url_prefix


def test_in_memory_window_sequential():
    limit = 3
    results = [_in_memory_allow("rl:test:seq", limit, 60) for _ in range(limit + 1)]
    assert [r[0] for r in results] == [True, True, True, False]
    assert [r[1] for r in results] == [2, 1, 0, 0]

    reset_in_memory_limiter()
    assert _in_memory_allow("rl:test:seq", limit, 60)[0] is True


def test_in_memory_window_keys_are_independent():
    assert _in_memory_allow("rl:test:a", 1, 60)[0]
    assert not _in_memory_allow("rl:test:a", 1, 60)[0]
    assert _in_memory_allow("rl:test:b", 1, 60)[0]


def test_in_memory_window_slides(monkeypatch):
    clock = {"t": 1_000.0}
    monkeypatch.setattr("sellerbank.rate_limiting.utils.time.time", lambda: clock["t"])

    assert _in_memory_allow("rl:test:slide", 2, 10)[0]
    clock["t"] += 5
    assert _in_memory_allow("rl:test:slide", 2, 10)[0]
    assert not _in_memory_allow("rl:test:slide", 2, 10)[0]

    # first hit leaves the window
    clock["t"] += 5.5
    assert _in_memory_allow("rl:test:slide", 2, 10)[0]
    assert not _in_memory_allow("rl:test:slide", 2, 10)[0]


def test_in_memory_idle_keys_are_dropped(monkeypatch):
    clock = {"t": 1_000.0}
    monkeypatch.setattr("sellerbank.rate_limiting.utils.time.time", lambda: clock["t"])
    monkeypatch.setattr("sellerbank.rate_limiting.utils.IN_MEMORY_SWEEP_EVERY", 1)

    for user in range(3):
        assert _in_memory_allow(f"rl:test:user:{user}", 5, 10)[0]
    assert len(_in_memory_windows) == 3

    clock["t"] += 11
    assert _in_memory_allow("rl:test:user:new", 5, 10)[0]
    assert list(_in_memory_windows) == ["rl:test:user:new"]
    assert list(_in_memory_expiry) == ["rl:test:user:new"]


def test_zero_limit_keeps_no_state():
    assert not _in_memory_allow("rl:test:closed", 0, 60)[0]
    assert "rl:test:closed" not in _in_memory_windows


@pytest.mark.asyncio
async def test_sliding_without_redis_uses_local_window():
    allowed = [(await redis_allow_sliding("rl:test:noredis", 2, 60))[0] for _ in range(3)]
    assert allowed == [True, True, False]


@pytest.mark.asyncio
async def test_check_rate_limit_per_action():
    for _ in range(5):
        allowed, _, _, limit = await check_rate_limit(TRANSFER, "42")
        assert allowed and limit == 5
    allowed, remaining, _, _ = await check_rate_limit(TRANSFER, "42")
    assert not allowed and remaining == 0

    allowed, _, _, _ = await check_rate_limit(TRANSFER, "43")
    assert allowed


@pytest.mark.asyncio
async def test_rate_limit_dependency_returns_429():
    app = FastAPI()
    register_all_exceptions(app)

    @app.get("/limited", dependencies=[Depends(rate_limit_dependency(TRANSFER))])
    async def limited():
        return {"ok": True}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        codes = [(await ac.get("/limited")).status_code for _ in range(6)]
        assert codes == [200] * 5 + [429]
        r = await ac.get("/limited")
        assert r.json()["error"]["code"] == "RATE_LIMITED"
        assert int(r.headers["Retry-After"]) >= 1


@pytest.mark.asyncio
async def test_global_limit_headers(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test")
    r = await ac_client.get(f"{url_prefix}/seller/account", headers=seller.headers)
    assert r.status_code == 200
    assert r.headers["X-RateLimit-Limit"] == "120"
    assert int(r.headers["X-RateLimit-Remaining"]) == 119
    assert "X-Request-ID" in r.headers
