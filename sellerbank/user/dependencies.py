from typing import List
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, http
from sellerbank.auth.utils import decode_token
from sellerbank.common.custom_exceptions import ForbiddenError
from sellerbank.config.admin_config import admin_config


class Authentication(HTTPBearer):
    def __init__(self, auto_error=True):
        super().__init__(auto_error=auto_error)

    async def __call__(self, request: Request) -> dict:
        auth_creds: http.HTTPAuthorizationCredentials = await super().__call__(request)
        token = auth_creds.credentials

        decoded_token = decode_token(token)

        if not decoded_token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token provided.")

        return decoded_token


def get_current_user_id(request: Request) -> int:
    user_id = getattr(request.state, "user_identifier", None)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user_id


def require_roles(*required: str):
    async def _dep(request: Request, user_id: int = Depends(get_current_user_id)) -> int:
        roles: List[str] = getattr(request.state, "user_roles", None) or []
        if not set(required).issubset(set(roles)):
            raise ForbiddenError("Access denied", extra={"required_roles": list(required)})
        return user_id
    return _dep


require_admin = require_roles(admin_config.ADMIN_ROLE)
