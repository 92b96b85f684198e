import time
from typing import Any, Dict, Optional
from pydantic import ValidationError
from sellerbank.accounts.repository import (build_ledger_entry, credit_account, debit_account,
                                            get_account_by_number, get_account_owner_info, insert_ledger_entries,
                                            lock_account)
from sellerbank.accounts.services import account_is_locked, require_seller_account
from sellerbank.accounts.utils import signed_meta
from sellerbank.common.custom_exceptions import (AccountLockedError, AccountUnavailableError, InsufficientBalanceError,
                                                 LimitExceededError, NotFoundError, PayloadValidationError,
                                                 SuspiciousActivityError)
from sellerbank.common.retries import retry_with_db_circuit
from sellerbank.common.utils import as_utc, to_cents, to_reais
from sellerbank.config.limits_config import limits_config
from sellerbank.schema.full_schema import (AccountStatus, AuditStatus, ReferenceType, SellerAccount,
                                           TransactionType)
from sellerbank.security.constants import BLOCKING_REASONS
from sellerbank.security.crypto import mask_account_number
from sellerbank.security.financial import (check_daily_limit, detect_suspicious_activity, log_financial_audit,
                                           sanitize_input, temporary_account_lock, validate_request_integrity)
from sellerbank.transfers.constants import REQUIRED_FIELDS, logger
from sellerbank.transfers.models import TransferIn


def parse_transfer_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Shape and amount checks. Returns destination, amount in cents and description."""
    if not isinstance(payload, dict):
        raise PayloadValidationError("Incomplete data", missing_fields=list(REQUIRED_FIELDS))
    valid, missing = validate_request_integrity(payload, REQUIRED_FIELDS)
    if not valid:
        raise PayloadValidationError("Incomplete data", missing_fields=missing)
    try:
        data = TransferIn.model_validate(payload)
    except ValidationError as e:
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in e.errors()]
        raise PayloadValidationError("Invalid data", extra={"fields": fields})

    try:
        amount = to_cents(data.amount)
    except ValueError:
        raise PayloadValidationError("Invalid amount")
    if amount <= 0:
        raise PayloadValidationError("Invalid amount")
    if amount < limits_config.TRANSFER_MIN_AMOUNT:
        raise LimitExceededError(f"Minimum amount: R$ {to_reais(limits_config.TRANSFER_MIN_AMOUNT):.2f}")
    if amount > limits_config.TRANSFER_MAX_AMOUNT:
        raise LimitExceededError(f"Maximum amount per transfer: R$ {to_reais(limits_config.TRANSFER_MAX_AMOUNT):.2f}")

    destination = sanitize_input(data.destination_account_number).upper()
    if not destination:
        raise PayloadValidationError("Incomplete data", missing_fields=["destination_account_number"])
    description = sanitize_input(data.description) if data.description else None
    return {"destination": destination, "amount": amount, "description": description}


async def validate_transfer(session, session_factory, *, user_id: int, destination: str, amount: int,
                            client: Dict[str, str]) -> Dict[str, Any]:
    """Source, balance, daily cap, suspicion and destination checks, in that order.

    Returns the source and destination accounts. Every rejection that matters for
    fraud review is audit-logged before raising.
    """
    seller, source = await require_seller_account(session, user_id)

    if source.status != AccountStatus.ACTIVE.value:
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_BLOCKED_ACCOUNT",
                                  status=AuditStatus.BLOCKED, account_id=source.id, amount=amount,
                                  details={"account_status": source.status}, client=client)
        raise AccountUnavailableError("Your account is not active for transfers",
                                      extra={"account_status": source.status})

    if account_is_locked(source):
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_ACCOUNT_LOCKED",
                                  status=AuditStatus.FAILED, account_id=source.id, amount=amount,
                                  details={"locked_until": as_utc(source.locked_until).isoformat()}, client=client)
        raise AccountLockedError("Account temporarily locked. Try again later.",
                                 extra={"locked_until": as_utc(source.locked_until).isoformat()})

    if source.balance < amount:
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_INSUFFICIENT_BALANCE",
                                  status=AuditStatus.FAILED, account_id=source.id, amount=amount,
                                  details={"balance": source.balance}, client=client)
        raise InsufficientBalanceError(extra={"balance": to_reais(source.balance)})

    allowed, used, limit = await check_daily_limit(session, source.id, amount)
    if not allowed:
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_DAILY_LIMIT",
                                  status=AuditStatus.BLOCKED, account_id=source.id, amount=amount,
                                  details={"used": used, "limit": limit}, client=client)
        raise LimitExceededError("Daily transfer limit reached", extra={
            "used": to_reais(used), "limit": to_reais(limit), "remaining": to_reais(max(0, limit - used))})

    suspicious, reasons = await detect_suspicious_activity(session, source, user_id)
    if suspicious:
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_SUSPICIOUS",
                                  status=AuditStatus.SUSPICIOUS, account_id=source.id, amount=amount,
                                  details={"reasons": reasons}, client=client)
        blocking = [r for r in reasons if r in BLOCKING_REASONS]
        if blocking:
            await temporary_account_lock(session_factory, source.id, ",".join(blocking))
            raise SuspiciousActivityError("Suspicious activity detected. Account temporarily locked for security.",
                                          extra={"reasons": blocking})

    dest = await get_account_by_number(session, destination)
    rejection = None
    if not dest:
        rejection = NotFoundError("Destination account not found")
    elif dest.id == source.id:
        rejection = PayloadValidationError("You cannot transfer to your own account", code="SELF_TRANSFER")
    elif dest.status != AccountStatus.ACTIVE.value:
        rejection = AccountUnavailableError("Destination account is not active")
    if rejection is not None:
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_INVALID_DESTINATION",
                                  status=AuditStatus.FAILED, account_id=source.id, amount=amount,
                                  details={"code": rejection.code, "destination": mask_account_number(destination)},
                                  error_message=rejection.message, client=client)
        raise rejection

    return {"seller": seller, "source": source, "destination": dest}


@retry_with_db_circuit()
async def execute_transfer(session_factory, *, source: SellerAccount, destination: SellerAccount, amount: int,
                           txn_id: str, description: Optional[str], user_id: int) -> Dict[str, Any]:
    """Moves amount between the two accounts in one database transaction.

    Both rows are locked in id order, the source balance is re-read, the debit is
    guarded by balance >= amount and two ledger entries sharing txn_id are written.
    """
    timestamp_ms = int(time.time() * 1000)
    out_meta = signed_meta(txn_id, source.account_number, destination.account_number, -amount, timestamp_ms)
    in_meta = signed_meta(txn_id, destination.account_number, source.account_number, amount, timestamp_ms)

    async with session_factory() as session:
        async with session.begin():
            for account_id in sorted((source.id, destination.id)):
                locked = await lock_account(session, account_id)
                if locked.id == source.id and locked.balance < amount:
                    raise InsufficientBalanceError()

            src_before, src_after = await debit_account(session, source.id, amount)
            dst_before, dst_after = await credit_account(session, destination.id, amount, count_as_received=True)

            out_entry = build_ledger_entry(
                account_id=source.id,
                tx_type=TransactionType.TRANSFER_OUT.value,
                amount=-amount,
                balance_before=src_before,
                description=description or f"Transfer to {mask_account_number(destination.account_number)}",
                reference=txn_id,
                reference_type=ReferenceType.TRANSFER.value,
                meta=out_meta,
            )
            in_entry = build_ledger_entry(
                account_id=destination.id,
                tx_type=TransactionType.TRANSFER_IN.value,
                amount=amount,
                balance_before=dst_before,
                description=description or f"Transfer from {mask_account_number(source.account_number)}",
                reference=txn_id,
                reference_type=ReferenceType.TRANSFER.value,
                meta=in_meta,
            )
            await insert_ledger_entries(session, out_entry, in_entry)

    logger.info("transfer.committed", extra={"transaction_id": txn_id, "user_id": user_id, "source_account_id": source.id,
                                             "destination_account_id": destination.id, "amount": amount})
    return {
        "transaction_id": txn_id,
        "source_balance_before": src_before,
        "source_balance_after": src_after,
        "destination_balance_before": dst_before,
        "destination_balance_after": dst_after,
        "timestamp_ms": timestamp_ms,
    }


async def destination_store_name(session, account_id: int) -> Optional[str]:
    info = await get_account_owner_info(session, account_id)
    return info["store_name"] if info else None
