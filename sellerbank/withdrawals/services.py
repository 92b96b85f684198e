from typing import Any, Dict, Optional
from sqlalchemy.exc import IntegrityError
from sellerbank.accounts.repository import (build_ledger_entry, credit_account, debit_account, get_account_by_seller_id,
                                            insert_ledger_entries, lock_account)
from sellerbank.accounts.services import require_seller
from sellerbank.accounts.utils import signed_meta
from sellerbank.common.custom_exceptions import (AccountUnavailableError, ForbiddenError, InsufficientBalanceError,
                                                 LedgerError, LimitExceededError, NotFoundError,
                                                 PayloadValidationError, WithdrawalInProgressError)
from sellerbank.common.retries import retry_with_db_circuit
from sellerbank.common.utils import now, to_cents, to_reais
from sellerbank.config.limits_config import limits_config
from sellerbank.schema.full_schema import (AccountStatus, PaymentMethod, PixKeyType, ReferenceType, SellerAccount,
                                           SellerStatus, TransactionType, Withdrawal, WithdrawalStatus)
from sellerbank.security.crypto import generate_secure_transaction_id
from sellerbank.security.financial import sanitize_input
from sellerbank.withdrawals.constants import BANK_DETAIL_FIELDS, logger
from sellerbank.withdrawals.models import WithdrawalIn
from sellerbank.withdrawals.repository import (get_inflight_withdrawal, get_withdrawal_by_public_id,
                                               pending_supplier_payments)
from sellerbank.withdrawals.utils import ensure_transition


def available_balance(balance: int, pending: int) -> int:
    return max(0, balance - pending)


async def balance_summary(session, account: Optional[SellerAccount], seller_id: int) -> Dict[str, Any]:
    pending = await pending_supplier_payments(session, seller_id)
    balance = account.balance if account else 0
    return {
        "balance": to_reais(balance),
        "total_received": to_reais(account.total_received if account else 0),
        "total_withdrawn": to_reais(account.total_withdrawn if account else 0),
        "pending_payments": to_reais(pending),
        "available_balance": to_reais(available_balance(balance, pending)),
    }


def _payout_details(data: WithdrawalIn) -> Dict[str, Any]:
    method = (data.payment_method or "").upper()
    if method not in PaymentMethod.__members__:
        raise PayloadValidationError("Invalid payment method",
                                     extra={"allowed": [m.value for m in PaymentMethod]})

    if method == PaymentMethod.PIX.value:
        if not data.pix_key:
            raise PayloadValidationError("PIX key is required", missing_fields=["pix_key"])
        pix_type = (data.pix_key_type or "").upper()
        if pix_type not in PixKeyType.__members__:
            raise PayloadValidationError("Invalid PIX key type",
                                         extra={"allowed": [t.value for t in PixKeyType]})
        return {"payment_method": method, "pix_key": sanitize_input(data.pix_key), "pix_key_type": pix_type}

    missing = [f for f in BANK_DETAIL_FIELDS if not getattr(data, f)]
    if missing:
        raise PayloadValidationError("Incomplete bank details", missing_fields=missing)
    details = {f: sanitize_input(getattr(data, f)) for f in BANK_DETAIL_FIELDS}
    if data.bank_code:
        details["bank_code"] = sanitize_input(data.bank_code)
    return {"payment_method": method, **details}


async def request_withdrawal(session, *, user_id: int, data: WithdrawalIn) -> Withdrawal:
    """Creates a PENDING withdrawal. The ledger is untouched until an admin approves it."""
    seller = await require_seller(session, user_id)
    if seller.status != SellerStatus.ACTIVE.value:
        raise ForbiddenError("Seller is not active", code="SELLER_INACTIVE")

    account = await get_account_by_seller_id(session, seller.id)
    if not account:
        raise LedgerError("You don't have a digital account yet", code="ACCOUNT_NOT_FOUND")
    if account.status != AccountStatus.ACTIVE.value:
        raise AccountUnavailableError("Your account is not active for withdrawals",
                                      extra={"account_status": account.status})

    try:
        amount = to_cents(data.amount)
    except ValueError:
        raise PayloadValidationError("Invalid amount")
    if amount <= 0:
        raise PayloadValidationError("Invalid amount")
    # the account floor can only raise the global minimum
    minimum = max(limits_config.WITHDRAWAL_MIN_AMOUNT, account.min_withdrawal_amount or 0)
    if amount < minimum:
        raise LimitExceededError(f"Minimum withdrawal amount is R$ {to_reais(minimum):.2f}",
                                 extra={"min_withdrawal_amount": to_reais(minimum)})
    if amount > limits_config.WITHDRAWAL_MAX_AMOUNT:
        raise LimitExceededError(f"Maximum withdrawal amount is R$ {to_reais(limits_config.WITHDRAWAL_MAX_AMOUNT):.2f}")

    inflight = await get_inflight_withdrawal(session, seller.id)
    if inflight:
        raise WithdrawalInProgressError(extra={"withdrawal_id": str(inflight.public_id), "status": inflight.status})

    payout = _payout_details(data)

    pending = await pending_supplier_payments(session, seller.id)
    available = available_balance(account.balance, pending)
    if amount > available:
        raise InsufficientBalanceError(extra={
            "balance": to_reais(account.balance),
            "pending_payments": to_reais(pending),
            "available_balance": to_reais(available),
        })

    withdrawal = Withdrawal(
        seller_id=seller.id,
        amount=amount,
        status=WithdrawalStatus.PENDING.value,
        seller_note=sanitize_input(data.seller_note) if data.seller_note else None,
        **payout,
    )
    session.add(withdrawal)
    try:
        await session.commit()
    except IntegrityError:
        # partial unique index on in-flight withdrawals lost a race
        await session.rollback()
        raise WithdrawalInProgressError()

    logger.info("withdrawal.requested", extra={"seller_id": seller.id, "withdrawal_id": str(withdrawal.public_id),
                                               "amount": amount, "payment_method": payout["payment_method"]})
    return withdrawal


async def cancel_withdrawal(session, *, user_id: int, withdrawal_id: str) -> Withdrawal:
    seller = await require_seller(session, user_id)
    withdrawal = await get_withdrawal_by_public_id(session, withdrawal_id, seller_id=seller.id)
    if not withdrawal:
        raise NotFoundError("Withdrawal not found")
    ensure_transition(withdrawal.status, WithdrawalStatus.CANCELLED)
    withdrawal.status = WithdrawalStatus.CANCELLED.value
    withdrawal.updated_at = now()
    session.add(withdrawal)
    await session.commit()
    logger.info("withdrawal.cancelled", extra={"seller_id": seller.id, "withdrawal_id": withdrawal_id})
    return withdrawal


#--------------------------------------------------------------------------------------------------------
# admin lifecycle

def _payout_counterparty(withdrawal: Withdrawal) -> str:
    return f"WITHDRAWAL:{withdrawal.public_id}"


@retry_with_db_circuit()
async def approve_withdrawal(session_factory, *, admin_id: int, withdrawal_id: str,
                             admin_note: Optional[str] = None) -> Dict[str, Any]:
    """PENDING -> APPROVED, debiting the ledger in the same transaction.

    The available balance is recomputed under the account row lock; when it no longer
    covers the amount nothing is written and the withdrawal stays PENDING.
    """
    async with session_factory() as session:
        async with session.begin():
            withdrawal = await get_withdrawal_by_public_id(session, withdrawal_id, for_update=True)
            if not withdrawal:
                raise NotFoundError("Withdrawal not found")
            ensure_transition(withdrawal.status, WithdrawalStatus.APPROVED)

            account = await get_account_by_seller_id(session, withdrawal.seller_id)
            if not account:
                raise NotFoundError("Seller account not found")
            account = await lock_account(session, account.id)

            pending = await pending_supplier_payments(session, withdrawal.seller_id)
            available = available_balance(account.balance, pending)
            if withdrawal.amount > available:
                raise InsufficientBalanceError(
                    "Insufficient available balance to approve this withdrawal",
                    extra={"balance": to_reais(account.balance), "pending_payments": to_reais(pending),
                           "available_balance": to_reais(available), "amount": to_reais(withdrawal.amount)})

            before, after = await debit_account(session, account.id, withdrawal.amount, count_as_withdrawn=True)

            txn_id = generate_secure_transaction_id()
            entry = build_ledger_entry(
                account_id=account.id,
                tx_type=TransactionType.WITHDRAWAL.value,
                amount=-withdrawal.amount,
                balance_before=before,
                description=f"Withdrawal via {withdrawal.payment_method}",
                reference=txn_id,
                reference_type=ReferenceType.WITHDRAWAL.value,
                withdrawal_id=withdrawal.id,
                processed_by=admin_id,
                meta=signed_meta(txn_id, account.account_number, _payout_counterparty(withdrawal), -withdrawal.amount),
            )
            await insert_ledger_entries(session, entry)

            withdrawal.status = WithdrawalStatus.APPROVED.value
            withdrawal.processed_by = admin_id
            withdrawal.processed_at = now()
            withdrawal.updated_at = now()
            if admin_note:
                withdrawal.admin_note = admin_note
            session.add(withdrawal)

    logger.info("withdrawal.approved", extra={"withdrawal_id": withdrawal_id, "admin_id": admin_id,
                                              "amount": withdrawal.amount, "balance_after": after})
    return {"withdrawal": withdrawal, "balance_before": before, "balance_after": after, "transaction_id": txn_id}


async def mark_processing(session, *, admin_id: int, withdrawal_id: str, admin_note: Optional[str] = None) -> Withdrawal:
    withdrawal = await get_withdrawal_by_public_id(session, withdrawal_id, for_update=True)
    if not withdrawal:
        raise NotFoundError("Withdrawal not found")
    ensure_transition(withdrawal.status, WithdrawalStatus.PROCESSING)
    withdrawal.status = WithdrawalStatus.PROCESSING.value
    withdrawal.processed_by = admin_id
    withdrawal.updated_at = now()
    if admin_note:
        withdrawal.admin_note = admin_note
    session.add(withdrawal)
    await session.commit()
    logger.info("withdrawal.processing", extra={"withdrawal_id": withdrawal_id, "admin_id": admin_id})
    return withdrawal


async def complete_withdrawal(session, *, admin_id: int, withdrawal_id: str, transaction_id: str,
                              admin_note: Optional[str] = None) -> Withdrawal:
    withdrawal = await get_withdrawal_by_public_id(session, withdrawal_id, for_update=True)
    if not withdrawal:
        raise NotFoundError("Withdrawal not found")
    ensure_transition(withdrawal.status, WithdrawalStatus.COMPLETED)
    withdrawal.status = WithdrawalStatus.COMPLETED.value
    withdrawal.transaction_id = sanitize_input(transaction_id)
    withdrawal.processed_by = admin_id
    withdrawal.processed_at = now()
    withdrawal.updated_at = now()
    if admin_note:
        withdrawal.admin_note = admin_note
    session.add(withdrawal)
    await session.commit()
    logger.info("withdrawal.completed", extra={"withdrawal_id": withdrawal_id, "admin_id": admin_id})
    return withdrawal


@retry_with_db_circuit()
async def reject_withdrawal(session_factory, *, admin_id: int, withdrawal_id: str, rejection_reason: str,
                            admin_note: Optional[str] = None) -> Dict[str, Any]:
    """Rejects a withdrawal. When it was already debited the amount is credited back."""
    reversal = None
    async with session_factory() as session:
        async with session.begin():
            withdrawal = await get_withdrawal_by_public_id(session, withdrawal_id, for_update=True)
            if not withdrawal:
                raise NotFoundError("Withdrawal not found")
            ensure_transition(withdrawal.status, WithdrawalStatus.REJECTED)

            if withdrawal.status in (WithdrawalStatus.APPROVED.value, WithdrawalStatus.PROCESSING.value):
                account = await get_account_by_seller_id(session, withdrawal.seller_id)
                if not account:
                    raise NotFoundError("Seller account not found")
                account = await lock_account(session, account.id)
                before, after = await credit_account(session, account.id, withdrawal.amount, reverse_withdrawn=True)

                txn_id = generate_secure_transaction_id()
                entry = build_ledger_entry(
                    account_id=account.id,
                    tx_type=TransactionType.WITHDRAWAL_REVERSAL.value,
                    amount=withdrawal.amount,
                    balance_before=before,
                    description="Withdrawal rejected, amount returned",
                    reference=txn_id,
                    reference_type=ReferenceType.WITHDRAWAL.value,
                    withdrawal_id=withdrawal.id,
                    processed_by=admin_id,
                    meta=signed_meta(txn_id, account.account_number, _payout_counterparty(withdrawal),
                                     withdrawal.amount, reason=rejection_reason),
                )
                await insert_ledger_entries(session, entry)
                reversal = {"transaction_id": txn_id, "balance_before": before, "balance_after": after}

            withdrawal.status = WithdrawalStatus.REJECTED.value
            withdrawal.rejection_reason = rejection_reason
            withdrawal.processed_by = admin_id
            withdrawal.processed_at = now()
            withdrawal.updated_at = now()
            if admin_note:
                withdrawal.admin_note = admin_note
            session.add(withdrawal)

    logger.info("withdrawal.rejected", extra={"withdrawal_id": withdrawal_id, "admin_id": admin_id,
                                              "reversed": reversal is not None})
    return {"withdrawal": withdrawal, "reversal": reversal}
