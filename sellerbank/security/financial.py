from datetime import datetime, time as dt_time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sellerbank.common.utils import as_utc, now
from sellerbank.config.limits_config import limits_config
from sellerbank.schema.full_schema import (AuditLog, AuditStatus, KycStatus, SellerAccount,
                                           SellerAccountTransaction, TransactionStatus, TransactionType)
from sellerbank.security.constants import (AUDIT_ACTION_PREFIX, AUDIT_RESOURCE, DANGEROUS_CHARS,
                                           HIGH_FREQUENCY_TRANSACTIONS, MAX_INPUT_LENGTH,
                                           MULTIPLE_FAILED_ATTEMPTS, NEW_ACCOUNT, UNVERIFIED_KYC, logger)


async def log_financial_audit(session_factory: async_sessionmaker, *, user_id: Optional[int], action: str,
                              status: AuditStatus, account_id: Optional[int] = None,
                              amount: Optional[int] = None, details: Optional[Dict[str, Any]] = None,
                              error_message: Optional[str] = None, client: Optional[Dict[str, str]] = None):
    """Write an audit row in its own session.

    Runs outside the business transaction so rejected and rolled back operations are
    still recorded. A failed write is logged and swallowed.
    """
    client = client or {}
    payload: Dict[str, Any] = {"amount": amount, **(details or {})}
    if error_message:
        payload["error"] = error_message

    row = AuditLog(
        user_id=user_id,
        action=f"{AUDIT_ACTION_PREFIX}{action}",
        resource=AUDIT_RESOURCE,
        resource_id=str(account_id) if account_id is not None else None,
        ip_address=client.get("ip"),
        user_agent=(client.get("user_agent") or "")[:512] or None,
        status=status.value,
        details=payload,
    )
    try:
        async with session_factory() as session:
            session.add(row)
            await session.commit()
    except SQLAlchemyError as e:
        logger.error("audit.write_failed", extra={"action": row.action, "audit_status": row.status,
                                                  "user_id": user_id, "error": str(e)})


def start_of_day_utc(ref: Optional[datetime] = None) -> datetime:
    ref = ref or now()
    return datetime.combine(ref.astimezone(timezone.utc).date(), dt_time.min, tzinfo=timezone.utc)


async def check_daily_limit(session: AsyncSession, account_id: int, amount: int,
                            tx_type: TransactionType = TransactionType.TRANSFER_OUT,
                            limit: Optional[int] = None) -> Tuple[bool, int, int]:
    """Returns (allowed, used_today, limit). Amounts in cents."""
    limit = limits_config.TRANSFER_DAILY_LIMIT if limit is None else limit
    stmt = select(func.coalesce(func.sum(SellerAccountTransaction.amount), 0)).where(
        SellerAccountTransaction.account_id == account_id,
        SellerAccountTransaction.type == tx_type.value,
        SellerAccountTransaction.status.in_([
            TransactionStatus.COMPLETED.value,
            TransactionStatus.PROCESSING.value,
            TransactionStatus.PENDING.value,
        ]),
        SellerAccountTransaction.created_at >= start_of_day_utc(),
    )
    res = await session.execute(stmt)
    used = abs(int(res.scalar_one() or 0))
    return used + amount <= limit, used, limit


async def detect_suspicious_activity(session: AsyncSession, account: SellerAccount,
                                     user_id: int) -> Tuple[bool, List[str]]:
    reasons: List[str] = []
    one_hour_ago = now() - timedelta(hours=1)

    recent_stmt = select(func.count(SellerAccountTransaction.id)).where(
        SellerAccountTransaction.account_id == account.id,
        SellerAccountTransaction.type.in_([TransactionType.TRANSFER_OUT.value, TransactionType.WITHDRAWAL.value]),
        SellerAccountTransaction.created_at >= one_hour_ago,
    )
    recent = (await session.execute(recent_stmt)).scalar_one()
    if recent > limits_config.SUSPICIOUS_MAX_HOURLY_TRANSACTIONS:
        reasons.append(HIGH_FREQUENCY_TRANSACTIONS)

    created_at = as_utc(account.created_at)
    if created_at and now() - created_at < timedelta(hours=limits_config.NEW_ACCOUNT_AGE_HOURS):
        reasons.append(NEW_ACCOUNT)

    if account.kyc_status != KycStatus.APPROVED.value:
        reasons.append(UNVERIFIED_KYC)

    failed_stmt = select(func.count(AuditLog.id)).where(
        AuditLog.user_id == user_id,
        AuditLog.action.like(f"{AUDIT_ACTION_PREFIX}%"),
        AuditLog.status == AuditStatus.FAILED.value,
        AuditLog.created_at >= one_hour_ago,
    )
    failed = (await session.execute(failed_stmt)).scalar_one()
    if failed > limits_config.SUSPICIOUS_MAX_FAILED_ATTEMPTS:
        reasons.append(MULTIPLE_FAILED_ATTEMPTS)

    return len(reasons) > 0, reasons


async def temporary_account_lock(session_factory: async_sessionmaker, account_id: int, reason: str,
                                 duration_minutes: Optional[int] = None) -> datetime:
    """Sets locked_until on the account in its own transaction and returns it."""
    duration_minutes = duration_minutes or limits_config.TEMPORARY_LOCK_MINUTES
    locked_until = now() + timedelta(minutes=duration_minutes)
    async with session_factory() as session:
        async with session.begin():
            await session.execute(
                update(SellerAccount).where(SellerAccount.id == account_id).values(locked_until=locked_until)
            )
    logger.warning("account.temporary_lock", extra={"account_id": account_id, "reason": reason,
                                                    "locked_until": locked_until.isoformat()})
    return locked_until


def validate_request_integrity(body: Dict[str, Any], required_fields: Iterable[str]) -> Tuple[bool, List[str]]:
    missing = [f for f in required_fields if body.get(f) is None or body.get(f) == ""]
    return len(missing) == 0, missing


def sanitize_input(value: Optional[str]) -> str:
    if value is None:
        return ""
    cleaned = "".join(ch for ch in str(value) if ch not in DANGEROUS_CHARS)
    return cleaned.strip()[:MAX_INPUT_LENGTH]
