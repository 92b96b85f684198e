import time
from typing import Any, Dict, Optional
from sellerbank.common.utils import as_utc, to_reais
from sellerbank.schema.full_schema import SellerAccount, SellerAccountTransaction
from sellerbank.security.crypto import mask_pix_key, sign_data, transaction_payload, verify_signature


def signed_meta(txn_id: str, own_account: str, counterparty: str, amount: int,
                timestamp_ms: Optional[int] = None, **extra: Any) -> Dict[str, Any]:
    """Ledger metadata with an HMAC over the movement.

    amount is signed from the point of view of own_account: negative moves money
    out (own -> counterparty), positive moves it in (counterparty -> own).
    """
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    source, destination = (own_account, counterparty) if amount < 0 else (counterparty, own_account)
    signature = sign_data(transaction_payload(txn_id, source, destination, abs(amount), ts))
    return {"signature": signature, "signed_at": ts, "counterparty": counterparty, **extra}


def entry_signature_valid(entry: SellerAccountTransaction, own_account: str) -> bool:
    meta = entry.meta or {}
    signature = meta.get("signature")
    if not signature or entry.reference is None or meta.get("signed_at") is None:
        return False
    counterparty = meta.get("counterparty", "")
    source, destination = (own_account, counterparty) if entry.amount < 0 else (counterparty, own_account)
    payload = transaction_payload(entry.reference, source, destination, abs(entry.amount), meta["signed_at"])
    return verify_signature(payload, signature)


def serialize_entry(entry: SellerAccountTransaction) -> Dict[str, Any]:
    meta = dict(entry.meta or {})
    meta.pop("signature", None)
    created_at = as_utc(entry.created_at)
    return {
        "id": entry.id,
        "type": entry.type,
        "amount": to_reais(entry.amount),
        "balance_before": to_reais(entry.balance_before),
        "balance_after": to_reais(entry.balance_after),
        "description": entry.description,
        "status": entry.status,
        "reference": entry.reference,
        "reference_type": entry.reference_type,
        "withdrawal_id": entry.withdrawal_id,
        "meta": meta or None,
        "created_at": created_at.isoformat() if created_at else None,
    }


def serialize_account(account: SellerAccount) -> Dict[str, Any]:
    locked_until = as_utc(account.locked_until)
    created_at = as_utc(account.created_at)
    return {
        "id": account.id,
        "public_id": str(account.public_id),
        "account_number": account.account_number,
        "status": account.status,
        "kyc_status": account.kyc_status,
        "balance": to_reais(account.balance),
        "total_received": to_reais(account.total_received),
        "total_withdrawn": to_reais(account.total_withdrawn),
        "min_withdrawal_amount": to_reais(account.min_withdrawal_amount),
        "locked_until": locked_until.isoformat() if locked_until else None,
        "pix_key_type": account.pix_key_type,
        "pix_key": mask_pix_key(account.pix_key),
        "bank_code": account.bank_code,
        "bank_name": account.bank_name,
        "agencia": account.agencia,
        "conta": account.conta,
        "conta_tipo": account.conta_tipo,
        "created_at": created_at.isoformat() if created_at else None,
    }
