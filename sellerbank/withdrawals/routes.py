from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sellerbank.accounts.repository import get_account_by_seller_id
from sellerbank.accounts.services import require_seller
from sellerbank.common.custom_exceptions import LedgerError, PayloadValidationError
from sellerbank.common.utils import client_info, success_response, to_cents, to_reais
from sellerbank.db.dependencies import get_session, get_session_factory
from sellerbank.rate_limiting.constants import WITHDRAWAL
from sellerbank.rate_limiting.dependencies import enforce_rate_limit
from sellerbank.schema.full_schema import AuditStatus, WithdrawalStatus
from sellerbank.security.financial import log_financial_audit
from sellerbank.user.dependencies import get_current_user_id, require_admin
from sellerbank.withdrawals.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from sellerbank.withdrawals.models import AdminNoteIn, CompleteWithdrawalIn, RejectWithdrawalIn, WithdrawalIn
from sellerbank.withdrawals.repository import list_withdrawals, withdrawal_stats
from sellerbank.withdrawals.services import (approve_withdrawal, balance_summary, cancel_withdrawal, complete_withdrawal,
                                             mark_processing, reject_withdrawal, request_withdrawal)
from sellerbank.withdrawals.utils import serialize_withdrawal


withdrawals_router = APIRouter()
withdrawals_admin_router = APIRouter()


def _status_filter(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = value.upper()
    if value not in WithdrawalStatus.__members__:
        raise PayloadValidationError("Invalid status filter", extra={"allowed": [s.value for s in WithdrawalStatus]})
    return value


def _pagination(page: int, limit: int, total: int):
    return {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit}


@withdrawals_router.post("")
async def create_withdrawal(request: Request, payload: WithdrawalIn,
                            user_id: int = Depends(get_current_user_id),
                            session: AsyncSession = Depends(get_session),
                            session_factory=Depends(get_session_factory)):
    client = client_info(request)
    try:
        amount = to_cents(payload.amount)
    except ValueError:
        amount = None

    try:
        await enforce_rate_limit(request, WITHDRAWAL, str(user_id))
        withdrawal = await request_withdrawal(session, user_id=user_id, data=payload)
    except LedgerError as e:
        await log_financial_audit(session_factory, user_id=user_id, action="WITHDRAWAL_REQUEST_REJECTED",
                                  status=AuditStatus.BLOCKED if e.status_code == 429 else AuditStatus.FAILED,
                                  amount=amount, details={"code": e.code, "payment_method": payload.payment_method},
                                  error_message=e.message, client=client)
        raise

    await log_financial_audit(session_factory, user_id=user_id, action="WITHDRAWAL_REQUESTED",
                              status=AuditStatus.SUCCESS, amount=withdrawal.amount,
                              details={"withdrawal_id": str(withdrawal.public_id),
                                       "payment_method": withdrawal.payment_method},
                              client=client)
    return success_response({
        "message": "Withdrawal requested successfully",
        "withdrawal": serialize_withdrawal(withdrawal),
    }, status_code=status.HTTP_201_CREATED)


@withdrawals_router.get("")
async def my_withdrawals(page: int = Query(1, ge=1), limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
                         status_filter: Optional[str] = Query(None, alias="status"),
                         user_id: int = Depends(get_current_user_id),
                         session: AsyncSession = Depends(get_session)):
    seller = await require_seller(session, user_id)
    rows, total = await list_withdrawals(session, seller_id=seller.id, status=_status_filter(status_filter),
                                         limit=limit, offset=(page - 1) * limit)
    account = await get_account_by_seller_id(session, seller.id)
    return success_response({
        "withdrawals": [serialize_withdrawal(w) for w in rows],
        "pagination": _pagination(page, limit, total),
        "summary": await balance_summary(session, account, seller.id),
    })


@withdrawals_router.post("/{withdrawal_id}/cancel")
async def cancel_my_withdrawal(request: Request, withdrawal_id: str,
                               user_id: int = Depends(get_current_user_id),
                               session: AsyncSession = Depends(get_session),
                               session_factory=Depends(get_session_factory)):
    withdrawal = await cancel_withdrawal(session, user_id=user_id, withdrawal_id=withdrawal_id)
    await log_financial_audit(session_factory, user_id=user_id, action="WITHDRAWAL_CANCELLED",
                              status=AuditStatus.SUCCESS, amount=withdrawal.amount,
                              details={"withdrawal_id": withdrawal_id}, client=client_info(request))
    return success_response({"withdrawal": serialize_withdrawal(withdrawal)})


#--------------------------------------------------------------------------------------------------------
# admin

@withdrawals_admin_router.get("")
async def admin_list_withdrawals(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
                                 status_filter: Optional[str] = Query(None, alias="status"),
                                 admin_id: int = Depends(require_admin),
                                 session: AsyncSession = Depends(get_session)):
    rows, total = await list_withdrawals(session, status=_status_filter(status_filter),
                                         limit=limit, offset=(page - 1) * limit)
    stats = await withdrawal_stats(session)
    return success_response({
        "withdrawals": [{**serialize_withdrawal(w, mask=False), "seller_id": w.seller_id} for w in rows],
        "pagination": _pagination(page, limit, total),
        "stats": {s: {"count": v["count"], "amount": to_reais(v["amount"])} for s, v in stats.items()},
    })


@withdrawals_admin_router.post("/{withdrawal_id}/approve")
async def admin_approve(request: Request, withdrawal_id: str, payload: Optional[AdminNoteIn] = None,
                        admin_id: int = Depends(require_admin),
                        session_factory=Depends(get_session_factory)):
    note = payload.admin_note if payload else None
    try:
        result = await approve_withdrawal(session_factory, admin_id=admin_id, withdrawal_id=withdrawal_id,
                                          admin_note=note)
    except LedgerError as e:
        await log_financial_audit(session_factory, user_id=admin_id, action="WITHDRAWAL_APPROVAL_FAILED",
                                  status=AuditStatus.FAILED, details={"withdrawal_id": withdrawal_id, "code": e.code},
                                  error_message=e.message, client=client_info(request))
        raise

    withdrawal = result["withdrawal"]
    await log_financial_audit(session_factory, user_id=admin_id, action="WITHDRAWAL_APPROVED",
                              status=AuditStatus.SUCCESS, amount=withdrawal.amount,
                              details={"withdrawal_id": withdrawal_id, "transaction_id": result["transaction_id"]},
                              client=client_info(request))
    return success_response({
        "withdrawal": serialize_withdrawal(withdrawal, mask=False),
        "balance_after": to_reais(result["balance_after"]),
        "transaction_id": result["transaction_id"],
    })


@withdrawals_admin_router.post("/{withdrawal_id}/process")
async def admin_process(withdrawal_id: str, payload: Optional[AdminNoteIn] = None,
                        admin_id: int = Depends(require_admin),
                        session: AsyncSession = Depends(get_session)):
    withdrawal = await mark_processing(session, admin_id=admin_id, withdrawal_id=withdrawal_id,
                                       admin_note=payload.admin_note if payload else None)
    return success_response({"withdrawal": serialize_withdrawal(withdrawal, mask=False)})


@withdrawals_admin_router.post("/{withdrawal_id}/complete")
async def admin_complete(request: Request, withdrawal_id: str, payload: CompleteWithdrawalIn,
                         admin_id: int = Depends(require_admin),
                         session: AsyncSession = Depends(get_session),
                         session_factory=Depends(get_session_factory)):
    withdrawal = await complete_withdrawal(session, admin_id=admin_id, withdrawal_id=withdrawal_id,
                                           transaction_id=payload.transaction_id, admin_note=payload.admin_note)
    await log_financial_audit(session_factory, user_id=admin_id, action="WITHDRAWAL_COMPLETED",
                              status=AuditStatus.SUCCESS, amount=withdrawal.amount,
                              details={"withdrawal_id": withdrawal_id, "payout_id": withdrawal.transaction_id},
                              client=client_info(request))
    return success_response({"withdrawal": serialize_withdrawal(withdrawal, mask=False)})


@withdrawals_admin_router.post("/{withdrawal_id}/reject")
async def admin_reject(request: Request, withdrawal_id: str, payload: RejectWithdrawalIn,
                       admin_id: int = Depends(require_admin),
                       session_factory=Depends(get_session_factory)):
    result = await reject_withdrawal(session_factory, admin_id=admin_id, withdrawal_id=withdrawal_id,
                                     rejection_reason=payload.rejection_reason, admin_note=payload.admin_note)
    withdrawal = result["withdrawal"]
    await log_financial_audit(session_factory, user_id=admin_id, action="WITHDRAWAL_REJECTED",
                              status=AuditStatus.SUCCESS, amount=withdrawal.amount,
                              details={"withdrawal_id": withdrawal_id, "reversed": result["reversal"] is not None},
                              client=client_info(request))
    reversal = result["reversal"]
    return success_response({
        "withdrawal": serialize_withdrawal(withdrawal, mask=False),
        "reversal": {**reversal, "balance_after": to_reais(reversal["balance_after"]),
                     "balance_before": to_reais(reversal["balance_before"])} if reversal else None,
    })
