import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from jose import jwt, JWTError
from sellerbank.config.settings import config_settings

ACCESS_TOKEN_EXPIRE_MINUTES = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def create_access_token(user_pid, user_roles: Optional[List[str]] = None, expires_dur=ACCESS_TOKEN_EXPIRE_MINUTES):
    now = datetime.now(timezone.utc)
    expiry = now + (timedelta(minutes=expires_dur))

    payload = {
        "sub": str(user_pid),
        "iat": int(now.timestamp()),
        "exp": int(expiry.timestamp()),
        "jti": secrets.token_hex(16),
        "roles": user_roles or [],
    }
    token = jwt.encode(claims=payload, key=config_settings.JWT_SECRET, algorithm=config_settings.JWT_ALGO)
    return token


def decode_token(token: str):
    """To verify the signature , expiration and user claims of token"""
    try:
        token_data = jwt.decode(
            token,
            key=config_settings.JWT_SECRET,
            algorithms=[config_settings.JWT_ALGO],
        )
        return token_data
    except JWTError:
        return None
