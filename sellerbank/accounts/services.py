from typing import Any, Dict, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sellerbank.accounts.constants import ACCOUNT_NUMBER_ATTEMPTS, RECENT_TRANSACTIONS_LIMIT, UNAVAILABLE, logger
from sellerbank.accounts.models import CREDIT_ADJUSTMENT_TYPES
from sellerbank.accounts.repository import (account_number_exists, build_ledger_entry, credit_account, debit_account,
                                            get_account_by_id, get_account_by_number, get_account_by_seller_id,
                                            get_account_owner_info, insert_ledger_entries, list_ledger_entries,
                                            lock_account)
from sellerbank.accounts.utils import serialize_account, serialize_entry, signed_meta
from sellerbank.common.custom_exceptions import InsufficientBalanceError, LedgerError, NotFoundError
from sellerbank.common.retries import retry_with_db_circuit
from sellerbank.common.utils import as_utc, now, to_reais
from sellerbank.config.limits_config import limits_config
from sellerbank.schema.full_schema import (AccountStatus, KycStatus, ReferenceType, Seller, SellerAccount,
                                           TransactionType)
from sellerbank.security.crypto import generate_account_number, generate_secure_transaction_id
from sellerbank.user.repository import get_seller_by_user_id


async def require_seller(session, user_id: int) -> Seller:
    seller = await get_seller_by_user_id(session, user_id)
    if not seller:
        raise NotFoundError("Seller not found")
    return seller


async def require_seller_account(session, user_id: int) -> Tuple[Seller, SellerAccount]:
    seller = await require_seller(session, user_id)
    account = await get_account_by_seller_id(session, seller.id)
    if not account:
        raise LedgerError("You don't have a digital account yet", code="ACCOUNT_NOT_FOUND")
    return seller, account


async def account_overview(session, user_id: int) -> Dict[str, Any]:
    seller = await require_seller(session, user_id)
    account = await get_account_by_seller_id(session, seller.id)
    if not account:
        return {"has_account": False, "account": None, "transactions": []}
    entries = await list_ledger_entries(session, account.id, limit=RECENT_TRANSACTIONS_LIMIT)
    return {
        "has_account": True,
        "account": serialize_account(account),
        "transactions": [serialize_entry(e) for e in entries],
    }


async def _unique_account_number(session) -> str:
    for _ in range(ACCOUNT_NUMBER_ATTEMPTS):
        candidate = generate_account_number()
        if not await account_number_exists(session, candidate):
            return candidate
    raise LedgerError("Could not allocate an account number, try again", status_code=503, code="ACCOUNT_NUMBER_EXHAUSTED")


async def open_account(session, user_id: int, payout: Dict[str, Any]) -> SellerAccount:
    """Creates a PENDING account with a zero BONUS opening entry. One account per seller."""
    seller = await require_seller(session, user_id)
    if await get_account_by_seller_id(session, seller.id):
        raise LedgerError("You already have a digital account", code="ACCOUNT_EXISTS")

    account = SellerAccount(
        seller_id=seller.id,
        account_number=await _unique_account_number(session),
        status=AccountStatus.PENDING.value,
        kyc_status=KycStatus.PENDING.value,
        min_withdrawal_amount=limits_config.ACCOUNT_MIN_WITHDRAWAL_AMOUNT,
        **payout,
    )
    session.add(account)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise LedgerError("You already have a digital account", code="ACCOUNT_EXISTS")

    opening = build_ledger_entry(
        account_id=account.id,
        tx_type=TransactionType.BONUS.value,
        amount=0,
        balance_before=0,
        description="Digital account opened",
        reference=account.account_number,
        reference_type=ReferenceType.ACCOUNT_OPENING.value,
    )
    await insert_ledger_entries(session, opening)
    await session.commit()

    logger.info("account.opened", extra={"seller_id": seller.id, "account_number": account.account_number})
    return account


async def update_payout_details(session, user_id: int, payout: Dict[str, Any]) -> SellerAccount:
    _, account = await require_seller_account(session, user_id)
    for k, v in payout.items():
        setattr(account, k, v)
    account.updated_at = now()
    session.add(account)
    await session.commit()
    logger.info("account.payout_details.updated", extra={"account_id": account.id, "fields": sorted(payout.keys())})
    return account


async def lookup_account(session, account_number: str) -> Dict[str, Any]:
    """Public view of a destination account."""
    account = await get_account_by_number(session, account_number)
    if not account:
        raise NotFoundError("Account not found")
    info = await get_account_owner_info(session, account.id)
    owner_name = (info or {}).get("owner_name") or ""
    return {
        "account_number": account.account_number,
        "store_name": (info or {}).get("store_name"),
        "owner_first_name": owner_name.split(" ")[0] if owner_name else None,
        "status": AccountStatus.ACTIVE.value if account.status == AccountStatus.ACTIVE.value else UNAVAILABLE,
    }


async def admin_update_account(session, admin_id: int, account_id: int, *, status: Optional[AccountStatus],
                               kyc_status: Optional[KycStatus], reason: Optional[str]) -> SellerAccount:
    """Status / KYC change with a zero amount ACCOUNT_STATUS entry keeping the previous values."""
    account = await get_account_by_id(session, account_id)
    if not account:
        raise NotFoundError("Account not found")

    previous = {"status": account.status, "kyc_status": account.kyc_status}

    if kyc_status is not None:
        account.kyc_status = kyc_status.value
        if kyc_status == KycStatus.APPROVED and account.status == AccountStatus.PENDING.value and status is None:
            account.status = AccountStatus.ACTIVE.value

    if status is not None:
        if previous["status"] == AccountStatus.BLOCKED.value and status != AccountStatus.BLOCKED:
            account.locked_until = None
        account.status = status.value

    if account.status == previous["status"] and account.kyc_status == previous["kyc_status"]:
        raise LedgerError("Nothing to update", code="NO_CHANGES")

    account.updated_at = now()
    session.add(account)

    entry = build_ledger_entry(
        account_id=account.id,
        tx_type=TransactionType.ADJUSTMENT_CREDIT.value,
        amount=0,
        balance_before=account.balance,
        description=reason or "Account status updated",
        reference=generate_secure_transaction_id(),
        reference_type=ReferenceType.ACCOUNT_STATUS.value,
        processed_by=admin_id,
        meta={"previous": previous, "current": {"status": account.status, "kyc_status": account.kyc_status}},
    )
    await insert_ledger_entries(session, entry)
    await session.commit()

    logger.info("account.status.updated", extra={"account_id": account.id, "admin_id": admin_id,
                                                  "previous_status": previous["status"], "new_status": account.status,
                                                  "kyc_status": account.kyc_status})
    return account


@retry_with_db_circuit()
async def apply_adjustment(session_factory, *, admin_id: int, account_id: int, tx_type: TransactionType,
                           amount: int, description: str, extra_meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Admin credit/debit under a row lock. Debits can't take the balance below zero."""
    is_credit = tx_type in CREDIT_ADJUSTMENT_TYPES
    txn_id = generate_secure_transaction_id()
    counterparty = f"ADMIN:{admin_id}"

    async with session_factory() as session:
        async with session.begin():
            account = await lock_account(session, account_id)
            if is_credit:
                before, after = await credit_account(session, account.id, amount)
            else:
                if account.balance < amount:
                    raise InsufficientBalanceError(
                        "Adjustment would leave the balance negative",
                        extra={"balance": to_reais(account.balance), "amount": to_reais(amount)})
                before, after = await debit_account(session, account.id, amount)

            signed_amount = amount if is_credit else -amount
            entry = build_ledger_entry(
                account_id=account.id,
                tx_type=tx_type.value,
                amount=signed_amount,
                balance_before=before,
                description=description,
                reference=txn_id,
                reference_type=ReferenceType.ADMIN_ADJUSTMENT.value,
                processed_by=admin_id,
                meta=signed_meta(txn_id, account.account_number, counterparty, signed_amount,
                                 **({"admin_meta": extra_meta} if extra_meta else {})),
            )
            await insert_ledger_entries(session, entry)

    logger.info("account.adjustment.applied", extra={"account_id": account_id, "admin_id": admin_id,
                                                     "type": tx_type.value, "amount": amount, "balance_after": after})
    return {
        "transaction_id": txn_id,
        "entry_id": entry.id,
        "type": tx_type.value,
        "amount": to_reais(signed_amount),
        "balance_before": to_reais(before),
        "balance_after": to_reais(after),
    }


def account_is_locked(account: SellerAccount) -> bool:
    locked_until = as_utc(account.locked_until)
    return bool(locked_until and locked_until > now())
