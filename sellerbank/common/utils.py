from datetime import datetime,timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

from fastapi import Request
from fastapi.responses import JSONResponse
from sellerbank.common.constants import CENTS

def now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite hands back naive datetimes, postgres aware ones
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_cents(amount: Any) -> int:
    """Convert a reais amount (number or numeric string) to integer centavos.
    Raises ValueError for anything that isn't a finite number."""
    if isinstance(amount, bool):
        raise ValueError(f"invalid amount: {amount!r}")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"invalid amount: {amount!r}")
    return int((value * CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_reais(cents: Optional[int]) -> float:
    return float(Decimal(int(cents or 0)) / CENTS)


def build_success(data: Dict[str, Any],
                  trace_id: Optional[str] = None,request_id: Optional[str] = None,) -> Dict[str, Any]:
    return {
        "status": "ok",
        "data": data,
        "error": None,
        "trace_id": trace_id,
        "request_id": request_id,
    }

def build_error(code: Union[str, int] = "UNKNOWN_ERROR",
                details: Optional[Any] = None,
                request_id: Optional[str] = None,
                trace_id: Optional[str] = None) -> Dict[str, Any]:
   
    return {
        "status": "error",
        "data": None,
        "error": {"code": code, "details": details},
        "trace_id": trace_id,
        "request_id": request_id,
    }

def json_ok(content: Dict[str, Any], status_code: int = 200,headers = None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code,headers=headers)

def json_error(content: Dict[str, Any], status_code: int = 500, headers=None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)

def success_response(data: Dict[str, Any], status_code: int = 200,headers: Optional[Dict[str, Any]] = None , 
                     trace_id: Optional[str] = None , request_id: Optional[str] = None) -> JSONResponse:
    content = build_success(data, request_id=request_id, trace_id=trace_id)
    return json_ok(content, status_code=status_code,headers=headers)

def get_trace_id_from_request(request: Request) -> Optional[str]:
    return getattr(request.state, "trace_id", None)


def client_info(request: Request) -> Dict[str, str]:
    xff = request.headers.get("X-Forwarded-For")
    if xff:
        ip = xff.split(",")[0].strip()
    else:
        ip = request.headers.get("X-Real-IP") or (request.client.host if request.client else None)
    return {
        "ip": ip or "unknown",
        "user_agent": request.headers.get("User-Agent") or "unknown",
    }
