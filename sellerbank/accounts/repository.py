from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, select, update
from sellerbank.common.custom_exceptions import InsufficientBalanceError, NotFoundError
from sellerbank.common.utils import now
from sellerbank.schema.full_schema import (Seller, SellerAccount, SellerAccountTransaction,
                                           TransactionStatus, Users)


async def get_account_by_seller_id(session, seller_id: int) -> Optional[SellerAccount]:
    res = await session.execute(select(SellerAccount).where(SellerAccount.seller_id == seller_id))
    return res.scalar_one_or_none()


async def get_account_by_id(session, account_id: int) -> Optional[SellerAccount]:
    res = await session.execute(select(SellerAccount).where(SellerAccount.id == account_id))
    return res.scalar_one_or_none()


async def get_account_by_number(session, account_number: str) -> Optional[SellerAccount]:
    res = await session.execute(select(SellerAccount).where(SellerAccount.account_number == account_number))
    return res.scalar_one_or_none()


async def account_number_exists(session, account_number: str) -> bool:
    res = await session.execute(select(SellerAccount.id).where(SellerAccount.account_number == account_number))
    return res.first() is not None


async def get_account_owner_info(session, account_id: int) -> Optional[Dict[str, Any]]:
    """store name and owner name behind an account, for public display"""
    stmt = (
        select(SellerAccount.account_number, SellerAccount.status, Seller.store_name, Users.name)
        .join(Seller, Seller.id == SellerAccount.seller_id)
        .join(Users, Users.id == Seller.user_id)
        .where(SellerAccount.id == account_id)
    )
    row = (await session.execute(stmt)).one_or_none()
    if not row:
        return None
    return {"account_number": row[0], "status": row[1], "store_name": row[2], "owner_name": row[3]}


async def lock_account(session, account_id: int) -> SellerAccount:
    """Fresh read of the account row under FOR UPDATE (no-op on sqlite)."""
    stmt = (
        select(SellerAccount)
        .where(SellerAccount.id == account_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    account = (await session.execute(stmt)).scalar_one_or_none()
    if account is None:
        raise NotFoundError("Account not found")
    return account


async def debit_account(session, account_id: int, amount: int, *, count_as_withdrawn: bool = False) -> Tuple[int, int]:
    """Guarded decrement. Returns (balance_before, balance_after).

    The WHERE balance >= amount guard makes the debit safe even when a concurrent
    writer changed the balance after the last read.
    """
    values: Dict[str, Any] = {"balance": SellerAccount.balance - amount, "updated_at": now()}
    if count_as_withdrawn:
        values["total_withdrawn"] = SellerAccount.total_withdrawn + amount
    stmt = (
        update(SellerAccount)
        .where(SellerAccount.id == account_id, SellerAccount.balance >= amount)
        .values(**values)
        .returning(SellerAccount.balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = (await session.execute(stmt)).scalar_one_or_none()
    if new_balance is None:
        raise InsufficientBalanceError()
    return new_balance + amount, new_balance


async def credit_account(session, account_id: int, amount: int, *, count_as_received: bool = False,
                         reverse_withdrawn: bool = False) -> Tuple[int, int]:
    values: Dict[str, Any] = {"balance": SellerAccount.balance + amount, "updated_at": now()}
    if count_as_received:
        values["total_received"] = SellerAccount.total_received + amount
    if reverse_withdrawn:
        values["total_withdrawn"] = SellerAccount.total_withdrawn - amount
    stmt = (
        update(SellerAccount)
        .where(SellerAccount.id == account_id)
        .values(**values)
        .returning(SellerAccount.balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = (await session.execute(stmt)).scalar_one_or_none()
    if new_balance is None:
        raise NotFoundError("Account not found")
    return new_balance - amount, new_balance


def build_ledger_entry(*, account_id: int, tx_type: str, amount: int, balance_before: int,
                       description: Optional[str] = None, reference: Optional[str] = None,
                       reference_type: Optional[str] = None, withdrawal_id: Optional[int] = None,
                       processed_by: Optional[int] = None, meta: Optional[Dict[str, Any]] = None,
                       status: str = TransactionStatus.COMPLETED.value) -> SellerAccountTransaction:
    """balance_after is always derived, never passed in."""
    return SellerAccountTransaction(
        account_id=account_id,
        type=tx_type,
        amount=amount,
        balance_before=balance_before,
        balance_after=balance_before + amount,
        description=description,
        status=status,
        reference=reference,
        reference_type=reference_type,
        withdrawal_id=withdrawal_id,
        processed_by=processed_by,
        processed_at=now() if processed_by is not None else None,
        meta=meta,
    )


async def insert_ledger_entries(session, *entries: SellerAccountTransaction):
    session.add_all(entries)
    await session.flush()
    return entries


async def list_ledger_entries(session, account_id: int, *, limit: int = 20, offset: int = 0) -> List[SellerAccountTransaction]:
    stmt = (
        select(SellerAccountTransaction)
        .where(SellerAccountTransaction.account_id == account_id)
        .order_by(SellerAccountTransaction.created_at.desc(), SellerAccountTransaction.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list((await session.execute(stmt)).scalars().all())


async def count_ledger_entries(session, account_id: int) -> int:
    stmt = select(func.count(SellerAccountTransaction.id)).where(SellerAccountTransaction.account_id == account_id)
    return (await session.execute(stmt)).scalar_one()


async def get_ledger_entry(session, account_id: int, entry_id: int) -> Optional[SellerAccountTransaction]:
    stmt = select(SellerAccountTransaction).where(
        SellerAccountTransaction.id == entry_id,
        SellerAccountTransaction.account_id == account_id,
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def get_account_number_by_id(session, account_id: int) -> Optional[str]:
    res = await session.execute(select(SellerAccount.account_number).where(SellerAccount.id == account_id))
    return res.scalar_one_or_none()
