import uuid
from typing import Optional
from sqlalchemy import select
from sellerbank.schema.full_schema import Seller, Users


async def identify_user_by_pid(session, user_pid) -> Optional[int]:
    try:
        pid = uuid.UUID(str(user_pid))
    except (TypeError, ValueError):
        return None
    stmt = select(Users.id).where(Users.public_id == pid, Users.deleted_at == None)  # noqa: E711
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def get_user(session, user_id: int) -> Optional[Users]:
    res = await session.execute(select(Users).where(Users.id == user_id))
    return res.scalar_one_or_none()


async def get_seller_by_user_id(session, user_id: int) -> Optional[Seller]:
    res = await session.execute(select(Seller).where(Seller.user_id == user_id))
    return res.scalar_one_or_none()
