import hashlib
import hmac
import json
import secrets
import time
from typing import Any, Dict, Optional
from sellerbank.config.settings import config_settings


def generate_secure_transaction_id() -> str:
    return f"TXN-{int(time.time() * 1000)}-{secrets.token_hex(8)}"


def generate_account_number() -> str:
    """MYD + last 6 digits of the ms clock + 4 random digits."""
    ts = str(int(time.time() * 1000))[-6:]
    rnd = str(secrets.randbelow(10_000)).zfill(4)
    return f"MYD{ts}{rnd}"


def canonical_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def sign_data(data: Dict[str, Any], secret: Optional[str] = None) -> str:
    """HMAC-SHA256 hex digest over the canonical JSON form of data."""
    key = (secret or config_settings.TRANSACTION_SIGNING_SECRET).encode()
    return hmac.new(key, canonical_json(data).encode(), hashlib.sha256).hexdigest()


def verify_signature(data: Dict[str, Any], signature: Optional[str], secret: Optional[str] = None) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_data(data, secret), signature)


def transaction_payload(txn_id: str, source: str, destination: str, amount: int, timestamp_ms: int) -> Dict[str, Any]:
    return {
        "id": txn_id,
        "from": source,
        "to": destination,
        "amount": int(amount),
        "timestamp": int(timestamp_ms),
    }


def mask_account_number(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


def mask_pix_key(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    return "****" + value[-4:]


def mask_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    masked = {}
    for k, v in data.items():
        lk = k.lower()
        if isinstance(v, str) and ("account" in lk or "pix" in lk or lk in ("cpf", "cnpj", "conta", "agencia")):
            masked[k] = mask_account_number(v)
        else:
            masked[k] = v
    return masked
