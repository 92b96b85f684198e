from typing import Any, Dict
from sellerbank.common.custom_exceptions import InvalidStateTransitionError
from sellerbank.common.utils import as_utc, to_reais
from sellerbank.schema.full_schema import Withdrawal, WithdrawalStatus
from sellerbank.security.crypto import mask_pix_key

S = WithdrawalStatus

# terminal states have no entry
ALLOWED_TRANSITIONS = {
    S.PENDING.value: {S.APPROVED.value, S.REJECTED.value, S.CANCELLED.value},
    S.APPROVED.value: {S.PROCESSING.value, S.COMPLETED.value, S.REJECTED.value},
    S.PROCESSING.value: {S.COMPLETED.value, S.REJECTED.value},
}


def can_transition(current: str, target: WithdrawalStatus) -> bool:
    return target.value in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(current: str, target: WithdrawalStatus):
    if not can_transition(current, target):
        raise InvalidStateTransitionError(
            f"Cannot move a {current} withdrawal to {target.value}",
            extra={"current_status": current, "requested_status": target.value})


def _iso(value):
    value = as_utc(value)
    return value.isoformat() if value else None


def serialize_withdrawal(w: Withdrawal, *, mask: bool = True) -> Dict[str, Any]:
    return {
        "id": str(w.public_id),
        "amount": to_reais(w.amount),
        "status": w.status,
        "payment_method": w.payment_method,
        "pix_key": mask_pix_key(w.pix_key) if mask else w.pix_key,
        "pix_key_type": w.pix_key_type,
        "bank_name": w.bank_name,
        "bank_code": w.bank_code,
        "agencia": w.agencia,
        "conta": w.conta,
        "conta_tipo": w.conta_tipo,
        "seller_note": w.seller_note,
        "admin_note": w.admin_note,
        "rejection_reason": w.rejection_reason,
        "transaction_id": w.transaction_id,
        "processed_at": _iso(w.processed_at),
        "created_at": _iso(w.created_at),
    }
