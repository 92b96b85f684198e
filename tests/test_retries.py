import pytest
from sqlalchemy.exc import OperationalError
from sellerbank.common.circuit_breaker import CircuitBreaker
from sellerbank.common.custom_exceptions import InsufficientBalanceError
from sellerbank.common.retries import ServiceUnavailableError, is_recoverable_exception, retry_with_db_circuit
from sellerbank.db.dependencies import get_session
from sellerbank.main import app
from tests.helpers import url_prefix


def _db_down():
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


@pytest.mark.asyncio
async def test_retries_transient_errors_then_succeeds():
    calls = {"n": 0}
    circuit = CircuitBreaker(name="test", failure_threshold=10)

    @retry_with_db_circuit(attempts=3, base_delay=0, circuit=circuit)
    async def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise _db_down()
        return "ok"

    assert await flaky() == "ok"
    assert calls["n"] == 3
    assert circuit.state == "CLOSED"


@pytest.mark.asyncio
async def test_business_errors_are_not_retried():
    calls = {"n": 0}
    circuit = CircuitBreaker(name="test", failure_threshold=1)

    @retry_with_db_circuit(attempts=3, base_delay=0, circuit=circuit)
    async def overdraw():
        calls["n"] += 1
        raise InsufficientBalanceError()

    with pytest.raises(InsufficientBalanceError):
        await overdraw()
    assert calls["n"] == 1
    assert circuit.state == "CLOSED"


@pytest.mark.asyncio
async def test_gives_up_after_attempts():
    calls = {"n": 0}

    @retry_with_db_circuit(attempts=2, base_delay=0, circuit=CircuitBreaker(name="test", failure_threshold=10))
    async def always_down():
        calls["n"] += 1
        raise _db_down()

    with pytest.raises(OperationalError):
        await always_down()
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_open_circuit_short_circuits_to_503():
    circuit = CircuitBreaker(name="test", failure_threshold=2, recovery_timeout=60)

    @retry_with_db_circuit(attempts=2, base_delay=0, circuit=circuit)
    async def always_down():
        raise _db_down()

    with pytest.raises(OperationalError):
        await always_down()
    assert circuit.state == "OPEN"

    with pytest.raises(ServiceUnavailableError) as exc:
        await always_down()
    assert exc.value.status_code == 503


@pytest.mark.asyncio
async def test_half_open_probe_closes_circuit():
    circuit = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=0)
    await circuit.record_failure()
    assert circuit.state == "OPEN"

    @retry_with_db_circuit(attempts=1, circuit=circuit)
    async def healthy():
        return 1

    assert await healthy() == 1
    assert circuit.state == "CLOSED"


def test_recoverable_classification():
    assert is_recoverable_exception(_db_down())
    assert is_recoverable_exception(TimeoutError())
    assert not is_recoverable_exception(ValueError("bad"))
    assert not is_recoverable_exception(InsufficientBalanceError())


@pytest.mark.asyncio
async def test_health_reports_db(ac_client):
    r = await ac_client.get(f"{url_prefix}/health")
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_health_db_down(ac_client):
    class BrokenSession:
        async def execute(self, *args, **kwargs):
            raise _db_down()

    async def broken_session():
        yield BrokenSession()

    app.dependency_overrides[get_session] = broken_session
    try:
        r = await ac_client.get(f"{url_prefix}/health")
    finally:
        app.dependency_overrides.pop(get_session, None)
    assert r.status_code == 503
    assert r.json()["error"]["code"] == "DB_UNAVAILABLE"
