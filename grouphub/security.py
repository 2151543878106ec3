"""Access token resolution for the group management API."""

from typing import Optional

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .database import Database
from .models import User


class AccessTokenAuth:
    """Resolve the acting user from a bearer token or ``access_token`` query parameter.

    Unknown or missing tokens resolve to ``None`` instead of raising, so the
    services decide how an anonymous request is answered.
    """

    def __init__(self, database: Database) -> None:
        self._database = database
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> Optional[User]:
        token = await self._extract_token(request)
        if not token:
            return None
        return self._database.get_user_by_access_token(token)

    async def _extract_token(self, request: Request) -> Optional[str]:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is not None and credentials.scheme.lower() == "bearer":
            provided = credentials.credentials.strip()
            if provided:
                return provided

        query_token = request.query_params.get("access_token")
        if query_token and query_token.strip():
            return query_token.strip()
        return None


__all__ = ["AccessTokenAuth"]
