from datetime import timedelta
from types import SimpleNamespace
from typing import Iterable, List, Optional, Tuple
from sqlalchemy import select
from sellerbank.auth.utils import create_access_token
from sellerbank.common.utils import now
from sellerbank.config.admin_config import admin_config
from sellerbank.db.connection import async_session
from sellerbank.schema.full_schema import (AccountStatus, AuditLog, AuditStatus, KycStatus, OrderItem, OrderItemType,
                                           Orders, OrderStatus, Seller, SellerAccount, SellerAccountTransaction,
                                           SellerStatus, Users, Withdrawal)

url_prefix = "/api/v1"
account_url = f"{url_prefix}/seller/account"
withdrawals_url = f"{url_prefix}/seller/withdrawals"
admin_url = f"{url_prefix}/admin"


def auth_headers(user: Users, roles: Optional[List[str]] = None):
    return {"Authorization": f"Bearer {create_access_token(user.public_id, roles)}"}


async def seed_seller(session, *, email: str, name: str = "Ana Souza", store_name: str = "Loja da Ana",
                      balance: int = 0, account_number: Optional[str] = None,
                      account_status: AccountStatus = AccountStatus.ACTIVE,
                      kyc_status: KycStatus = KycStatus.APPROVED,
                      seller_status: SellerStatus = SellerStatus.ACTIVE,
                      with_account: bool = True, account_age: timedelta = timedelta(days=3),
                      locked_until=None, **payout):
    """User + seller + (optionally) an account. balance is in centavos."""
    user = Users(email=email, name=name)
    session.add(user)
    await session.flush()

    seller = Seller(user_id=user.id, store_name=store_name, status=seller_status.value)
    session.add(seller)
    await session.flush()

    account = None
    if with_account:
        account = SellerAccount(
            seller_id=seller.id,
            account_number=account_number or f"MYD{user.id:010d}",
            status=account_status.value,
            kyc_status=kyc_status.value,
            balance=balance,
            total_received=balance,
            min_withdrawal_amount=5_000,
            locked_until=locked_until,
            created_at=now() - account_age,
            **payout,
        )
        session.add(account)
    await session.commit()
    return SimpleNamespace(user=user, seller=seller, account=account, headers=auth_headers(user))


async def seed_admin(session, email: str = "admin@sellerbank.test"):
    user = Users(email=email, name="Admin")
    session.add(user)
    await session.commit()
    return SimpleNamespace(user=user, headers=auth_headers(user, [admin_config.ADMIN_ROLE]))


async def seed_order(session, seller_id: int, items: Iterable[Tuple[OrderItemType, Optional[int]]],
                     status: OrderStatus = OrderStatus.PROCESSING) -> Orders:
    """items are (item_type, supplier_cost in centavos)"""
    order = Orders(status=status.value)
    session.add(order)
    await session.flush()
    for item_type, supplier_cost in items:
        session.add(OrderItem(order_id=order.id, seller_id=seller_id, product_name="Fone bluetooth",
                              item_type=item_type.value, unit_price=(supplier_cost or 0) * 2,
                              supplier_cost=supplier_cost))
    await session.commit()
    return order


async def seed_failed_audits(session, user_id: int, count: int, action: str = "FINANCIAL_TRANSFER_ERROR"):
    for _ in range(count):
        session.add(AuditLog(user_id=user_id, action=action, resource="SellerAccount",
                             status=AuditStatus.FAILED.value, details={"seeded": True}))
    await session.commit()


async def fetch_account(account_id: int) -> SellerAccount:
    async with async_session() as session:
        return await session.get(SellerAccount, account_id)


async def fetch_entries(account_id: int) -> List[SellerAccountTransaction]:
    async with async_session() as session:
        res = await session.execute(
            select(SellerAccountTransaction)
            .where(SellerAccountTransaction.account_id == account_id)
            .order_by(SellerAccountTransaction.id))
        return list(res.scalars().all())


async def fetch_audits(user_id: int, action: Optional[str] = None) -> List[AuditLog]:
    async with async_session() as session:
        stmt = select(AuditLog).where(AuditLog.user_id == user_id)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        return list((await session.execute(stmt.order_by(AuditLog.id))).scalars().all())


async def fetch_withdrawals(seller_id: int) -> List[Withdrawal]:
    async with async_session() as session:
        res = await session.execute(select(Withdrawal).where(Withdrawal.seller_id == seller_id).order_by(Withdrawal.id))
        return list(res.scalars().all())
