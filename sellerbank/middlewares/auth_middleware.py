from typing import Iterable
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from sellerbank.common.utils import build_error, json_error
from sellerbank.user.dependencies import Authentication
from sellerbank.user.repository import identify_user_by_pid
from sellerbank.middlewares.constants import logger


class AuthenticationMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, session_maker, paths: Iterable[str]):
        super().__init__(app)
        self.session_maker = session_maker
        self.paths = list(paths)

    async def dispatch(self, request: Request, call_next):

        if any(request.url.path.startswith(p) for p in self.paths):
            return await call_next(request)

        logger.info("auth.middleware.attempt", extra={
            "path": request.url.path,
            "method": request.method
        })

        try:
            auth_token = await Authentication()(request)
        except Exception as e:
            reason = getattr(e, "detail", "Missing or Invalid Auth Headers")
            logger.warning("auth.middleware.failed", extra={
                "reason": reason,
                "path": request.url.path,
                "method": request.method
            })
            payload = build_error(code="INVALID_AUTH", details={"message": "Missing or Invalid Auth Headers"})
            return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)

        user_pid = auth_token.get("sub")
        user_roles = auth_token.get("roles") or []

        async with self.session_maker() as session:
            user_identifier = await identify_user_by_pid(session, user_pid)

        if not user_identifier:
            logger.warning("auth.middleware.user_not_found", extra={
                "user_public_id": user_pid,
                "path": request.url.path
            })
            payload = build_error(code="INVALID_AUTH", details={"message": "User unidentified and not authorized"})
            return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)

        request.state.user_identifier = user_identifier
        request.state.user_public_id = user_pid
        request.state.user_roles = user_roles

        logger.info("auth.middleware.success", extra={
            "user_public_id": user_pid,
            "path": request.url.path
        })

        return await call_next(request)
