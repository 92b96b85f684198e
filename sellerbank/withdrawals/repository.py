import uuid
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, select
from sellerbank.schema.full_schema import (IN_FLIGHT_WITHDRAWAL_STATUSES, OPEN_DROPSHIPPING_ORDER_STATUSES,
                                           OrderItem, OrderItemType, Orders, Withdrawal)


def parse_public_id(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


async def get_inflight_withdrawal(session, seller_id: int) -> Optional[Withdrawal]:
    stmt = select(Withdrawal).where(
        Withdrawal.seller_id == seller_id,
        Withdrawal.status.in_(IN_FLIGHT_WITHDRAWAL_STATUSES),
    ).limit(1)
    return (await session.execute(stmt)).scalar_one_or_none()


async def pending_supplier_payments(session, seller_id: int) -> int:
    """Sum of supplier_cost still owed on open dropshipping order lines, in cents."""
    stmt = (
        select(func.coalesce(func.sum(OrderItem.supplier_cost), 0))
        .join(Orders, Orders.id == OrderItem.order_id)
        .where(
            OrderItem.seller_id == seller_id,
            OrderItem.item_type == OrderItemType.DROPSHIPPING.value,
            Orders.status.in_(OPEN_DROPSHIPPING_ORDER_STATUSES),
        )
    )
    return int((await session.execute(stmt)).scalar_one() or 0)


async def get_withdrawal_by_public_id(session, public_id: str, *, seller_id: Optional[int] = None,
                                      for_update: bool = False) -> Optional[Withdrawal]:
    pid = parse_public_id(public_id)
    if pid is None:
        return None
    stmt = select(Withdrawal).where(Withdrawal.public_id == pid)
    if seller_id is not None:
        stmt = stmt.where(Withdrawal.seller_id == seller_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalar_one_or_none()


async def list_withdrawals(session, *, seller_id: Optional[int] = None, status: Optional[str] = None,
                           limit: int = 10, offset: int = 0) -> Tuple[List[Withdrawal], int]:
    conditions = []
    if seller_id is not None:
        conditions.append(Withdrawal.seller_id == seller_id)
    if status:
        conditions.append(Withdrawal.status == status)

    stmt = (
        select(Withdrawal)
        .where(*conditions)
        .order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = list((await session.execute(stmt)).scalars().all())
    total = (await session.execute(select(func.count(Withdrawal.id)).where(*conditions))).scalar_one()
    return rows, total


async def withdrawal_stats(session) -> Dict[str, Dict[str, Any]]:
    """count and amount per status"""
    stmt = select(Withdrawal.status, func.count(Withdrawal.id), func.coalesce(func.sum(Withdrawal.amount), 0)).group_by(Withdrawal.status)
    res = await session.execute(stmt)
    return {row[0]: {"count": int(row[1]), "amount": int(row[2])} for row in res.all()}
