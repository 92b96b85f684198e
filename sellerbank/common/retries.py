import asyncio
import functools
import random
from typing import Callable, Optional
from sqlalchemy.exc import DBAPIError,OperationalError
from sellerbank.common.circuit_breaker import CircuitBreaker, CircuitOpenError, db_circuit
from sellerbank.common.custom_exceptions import LedgerError
from sellerbank.common.logging_setup import get_logger

logger = get_logger("sellerbank.common.retries")


class ServiceUnavailableError(LedgerError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"


def is_recoverable_exception(exc: BaseException) -> bool:
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, LedgerError):
        return False
    # transient-ish: timeouts, dropped connections, lock contention
    if isinstance(exc, (TimeoutError, ConnectionError, OperationalError)):
        return True
    if isinstance(exc, DBAPIError):
        if getattr(exc, "connection_invalidated", False):
            return True
        orig = getattr(exc, "orig", None)
        if orig is not None:
            name = type(orig).__name__.lower()
            if any(k in name for k in ("timeout", "connection", "brokenpipe", "deadlock", "serialization")):
                return True
    return False


async def _sleep_with_jitter(delay: float, jitter: float) -> None:
    jitter_val = random.uniform(-jitter * delay, jitter * delay)
    await asyncio.sleep(max(0.0, delay + jitter_val))


def retry_with_db_circuit(
    *,
    attempts: int = 3,
    base_delay: float = 0.05,
    factor: float = 2.0,
    max_delay: float = 1.0,
    jitter: float = 0.15,
    if_retryable: Optional[Callable[[BaseException], bool]] = None,
    per_attempt_timeout: Optional[float] = None,
    circuit: CircuitBreaker = db_circuit,
):
    """Retry a transactional coroutine on transient database errors.

    The wrapped function must open its own session/transaction on every call so that a
    retry starts from a fresh read. Business errors (LedgerError) propagate immediately
    and do not count as circuit failures.
    """

    if if_retryable is None:
        if_retryable = is_recoverable_exception

    def deco(fn: Callable):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            last_exc = None
            for attempt in range(1, attempts + 1):

                try:
                    holds_probe = await circuit.before_call()
                except CircuitOpenError:
                    raise ServiceUnavailableError("service unavailable (db)")

                try:
                    if per_attempt_timeout:
                        result = await asyncio.wait_for(fn(*args,**kwargs), timeout=per_attempt_timeout)
                    else:
                        result = await fn(*args,**kwargs)
                    await circuit.record_success()
                    return result

                except asyncio.CancelledError:
                    raise
                except LedgerError:
                    await circuit.record_success()
                    raise
                except Exception as exc:
                    last_exc = exc
                    retryable = if_retryable(exc)
                    if retryable:
                        await circuit.record_failure()
                    if not retryable or attempt == attempts:
                        raise

                    delay = min(max_delay, base_delay * (factor ** (attempt - 1)))
                    logger.debug("db.retry", extra={"attempt": attempt, "delay": delay, "error": str(exc)})
                    await _sleep_with_jitter(delay, jitter)
                finally:
                    if holds_probe:
                        await circuit.release_probe()

            raise last_exc
        return wrapper
    return deco
