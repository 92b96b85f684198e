import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sellerbank.common.custom_exceptions import InsufficientBalanceError, LedgerError, RateLimitedError, TransferFailedError
from sellerbank.common.utils import client_info, success_response, to_reais
from sellerbank.db.dependencies import get_session, get_session_factory
from sellerbank.rate_limiting.constants import TRANSFER
from sellerbank.rate_limiting.dependencies import enforce_rate_limit
from sellerbank.schema.full_schema import AuditStatus
from sellerbank.security.crypto import generate_secure_transaction_id, mask_account_number
from sellerbank.security.financial import log_financial_audit
from sellerbank.transfers.constants import logger
from sellerbank.transfers.services import destination_store_name, execute_transfer, parse_transfer_payload, validate_transfer
from sellerbank.user.dependencies import get_current_user_id


transfers_router = APIRouter()


@transfers_router.post("/transfer")
async def transfer_balance(request: Request, payload: Optional[Dict[str, Any]] = Body(None),
                           user_id: int = Depends(get_current_user_id),
                           session: AsyncSession = Depends(get_session),
                           session_factory=Depends(get_session_factory)):
    started = time.perf_counter()
    client = client_info(request)

    try:
        await enforce_rate_limit(request, TRANSFER, str(user_id))
    except RateLimitedError as e:
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_RATE_LIMITED",
                                  status=AuditStatus.BLOCKED, details={"retry_after": e.extra.get("retry_after")},
                                  client=client)
        raise

    parsed = parse_transfer_payload(payload)
    amount = parsed["amount"]

    checked = await validate_transfer(session, session_factory, user_id=user_id, destination=parsed["destination"],
                                      amount=amount, client=client)
    source, destination = checked["source"], checked["destination"]

    txn_id = generate_secure_transaction_id()
    try:
        result = await execute_transfer(session_factory, source=source, destination=destination, amount=amount,
                                        txn_id=txn_id, description=parsed["description"], user_id=user_id)
    except InsufficientBalanceError as e:
        # balance changed between validation and commit
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_ERROR",
                                  status=AuditStatus.FAILED, account_id=source.id, amount=amount,
                                  details={"transaction_id": txn_id, "race": True}, error_message=e.message,
                                  client=client)
        raise
    except LedgerError as e:
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_ERROR",
                                  status=AuditStatus.FAILED, account_id=source.id, amount=amount,
                                  details={"transaction_id": txn_id}, error_message=e.message, client=client)
        raise
    except Exception as e:
        logger.exception("transfer.failed", extra={"transaction_id": txn_id, "source_account_id": source.id})
        await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_ERROR",
                                  status=AuditStatus.FAILED, account_id=source.id, amount=amount,
                                  details={"transaction_id": txn_id}, error_message=type(e).__name__,
                                  client=client)
        raise TransferFailedError("Transfer could not be completed. Please try again.")

    processing_ms = int((time.perf_counter() - started) * 1000)
    await log_financial_audit(session_factory, user_id=user_id, action="TRANSFER_SUCCESS",
                              status=AuditStatus.SUCCESS, account_id=source.id, amount=amount,
                              details={"transaction_id": txn_id, "destination_account_id": destination.id,
                                       "processing_time_ms": processing_ms},
                              client=client)
    logger.info("transfer.success", extra={"transaction_id": txn_id, "amount": amount,
                                           "destination": destination.account_number,
                                           "processing_time_ms": processing_ms})

    return success_response({
        "message": "Transfer completed successfully",
        "transfer": {
            "id": txn_id,
            "amount": to_reais(amount),
            "to": mask_account_number(destination.account_number),
            "to_store": await destination_store_name(session, destination.id),
            "new_balance": to_reais(result["source_balance_after"]),
            "timestamp": datetime.fromtimestamp(result["timestamp_ms"] / 1000, tz=timezone.utc).isoformat(),
        },
    })
