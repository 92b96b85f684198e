from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sellerbank.accounts.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MIN_LOOKUP_ACCOUNT_LENGTH, logger
from sellerbank.accounts.models import ADJUSTMENT_TYPES, AdjustmentIn, AdminAccountUpdateIn, PayoutDetailsIn
from sellerbank.accounts.repository import count_ledger_entries, get_account_by_id, get_ledger_entry, list_ledger_entries
from sellerbank.accounts.services import (account_overview, admin_update_account, apply_adjustment, lookup_account,
                                          open_account, require_seller_account, update_payout_details)
from sellerbank.accounts.utils import entry_signature_valid, serialize_account, serialize_entry
from sellerbank.common.custom_exceptions import LedgerError, NotFoundError, PayloadValidationError
from sellerbank.common.utils import client_info, success_response, to_cents
from sellerbank.db.dependencies import get_session, get_session_factory
from sellerbank.rate_limiting.constants import ACCOUNT_LOOKUP, ADJUSTMENT
from sellerbank.rate_limiting.dependencies import enforce_rate_limit, rate_limit_dependency
from sellerbank.schema.full_schema import AuditStatus
from sellerbank.security.financial import log_financial_audit, sanitize_input
from sellerbank.user.dependencies import get_current_user_id, require_admin


accounts_router = APIRouter()
accounts_admin_router = APIRouter()


@accounts_router.get("")
async def get_my_account(user_id: int = Depends(get_current_user_id),
                         session: AsyncSession = Depends(get_session)):
    data = await account_overview(session, user_id)
    return success_response(data)


@accounts_router.post("")
async def create_my_account(payload: PayoutDetailsIn, user_id: int = Depends(get_current_user_id),
                            session: AsyncSession = Depends(get_session)):
    account = await open_account(session, user_id, payload.model_dump(mode="json", exclude_none=True))
    return success_response({"account": serialize_account(account), "message": "Digital account created"},
                            status_code=status.HTTP_201_CREATED)


@accounts_router.put("")
async def update_my_account(payload: PayoutDetailsIn, user_id: int = Depends(get_current_user_id),
                            session: AsyncSession = Depends(get_session)):
    changes = payload.model_dump(mode="json", exclude_unset=True)
    if not changes:
        raise PayloadValidationError("No fields to update")
    account = await update_payout_details(session, user_id, changes)
    return success_response({"account": serialize_account(account)})


@accounts_router.get("/lookup", dependencies=[Depends(rate_limit_dependency(ACCOUNT_LOOKUP))])
async def lookup_destination(account: str = Query("", max_length=64),
                             session: AsyncSession = Depends(get_session)):
    account_number = sanitize_input(account).upper()
    if len(account_number) < MIN_LOOKUP_ACCOUNT_LENGTH:
        raise PayloadValidationError("Invalid account number")
    data = await lookup_account(session, account_number)
    return success_response(data)


@accounts_router.get("/transactions")
async def my_statement(page: int = Query(1, ge=1), limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
                       user_id: int = Depends(get_current_user_id),
                       session: AsyncSession = Depends(get_session)):
    _, account = await require_seller_account(session, user_id)
    entries = await list_ledger_entries(session, account.id, limit=limit, offset=(page - 1) * limit)
    total = await count_ledger_entries(session, account.id)
    return success_response({
        "transactions": [serialize_entry(e) for e in entries],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    })


#--------------------------------------------------------------------------------------------------------
# admin

@accounts_admin_router.put("/{account_id}")
async def admin_update_account_status(account_id: int, payload: AdminAccountUpdateIn,
                                      admin_id: int = Depends(require_admin),
                                      session: AsyncSession = Depends(get_session)):
    if payload.status is None and payload.kyc_status is None:
        raise PayloadValidationError("status or kyc_status is required", missing_fields=["status", "kyc_status"])
    account = await admin_update_account(session, admin_id, account_id, status=payload.status,
                                         kyc_status=payload.kyc_status, reason=payload.reason)
    return success_response({"account": serialize_account(account)})


@accounts_admin_router.post("/{account_id}/adjustments")
async def admin_adjust_balance(request: Request, account_id: int, payload: AdjustmentIn,
                               admin_id: int = Depends(require_admin),
                               session_factory=Depends(get_session_factory)):
    client = client_info(request)
    await enforce_rate_limit(request, ADJUSTMENT, str(admin_id))

    if payload.type not in ADJUSTMENT_TYPES:
        raise PayloadValidationError("Invalid adjustment type", extra={"allowed": [t.value for t in ADJUSTMENT_TYPES]})
    try:
        amount = to_cents(payload.amount)
    except ValueError:
        raise PayloadValidationError("Invalid amount")
    if amount <= 0:
        raise PayloadValidationError("Invalid amount")

    try:
        result = await apply_adjustment(session_factory, admin_id=admin_id, account_id=account_id,
                                        tx_type=payload.type, amount=amount,
                                        description=sanitize_input(payload.description), extra_meta=payload.meta)
    except LedgerError as e:
        await log_financial_audit(session_factory, user_id=admin_id, action="ADJUSTMENT_FAILED",
                                  status=AuditStatus.FAILED, account_id=account_id, amount=amount,
                                  details={"type": payload.type.value}, error_message=e.message, client=client)
        raise

    await log_financial_audit(session_factory, user_id=admin_id, action="ADJUSTMENT_SUCCESS",
                              status=AuditStatus.SUCCESS, account_id=account_id, amount=amount,
                              details={"type": payload.type.value, "transaction_id": result["transaction_id"]},
                              client=client)
    return success_response(result, status_code=status.HTTP_201_CREATED)


@accounts_admin_router.get("/{account_id}/transactions/{transaction_id}/verify")
async def admin_verify_signature(account_id: int, transaction_id: int,
                                 admin_id: int = Depends(require_admin),
                                 session: AsyncSession = Depends(get_session)):
    account = await get_account_by_id(session, account_id)
    if not account:
        raise NotFoundError("Account not found")
    entry = await get_ledger_entry(session, account.id, transaction_id)
    if not entry:
        raise NotFoundError("Transaction not found")

    valid = entry_signature_valid(entry, account.account_number)
    if not valid:
        logger.warning("ledger.signature.mismatch", extra={"account_id": account.id, "entry_id": entry.id,
                                                           "admin_id": admin_id})
    return success_response({
        "transaction_id": entry.id,
        "reference": entry.reference,
        "signed": bool((entry.meta or {}).get("signature")),
        "valid": valid,
    })
