from typing import Any

import jwt
from fastapi import HTTPException, Request, status
from fastapi.security import HTTPBearer
from pydantic import BaseModel

from default_registry.i18n import _
from default_registry.settings import app_settings


class JWTAuthorizationCredentials(BaseModel):
    jwt_token: str
    claims: dict[str, Any]


class JWTAuthorization(HTTPBearer):
    """
    An extension of HTTPBearer authentication to verify JWT (JSON Web Tokens) signed with a shared secret.

    Tokens are issued by the identity service. This service only verifies the signature and reads the ``username``
    and ``role`` claims.
    """

    def __init__(self) -> None:
        # Missing credentials are reported as 401, not as HTTPBearer's default.
        super().__init__(auto_error=False)

    def decode(self, jwt_token: str) -> dict[str, Any]:
        """
        Verify the token's signature and expiry, and return its claims.

        :param jwt_token: The encoded token.
        :return: The token's claims.
        :raise HTTPException: If the token is invalid.
        """
        try:
            return jwt.decode(jwt_token, app_settings.jwt_secret, algorithms=[app_settings.jwt_algorithm])
        except jwt.InvalidTokenError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=_("Invalid token"),
            )

    async def __call__(self, request: Request) -> JWTAuthorizationCredentials:  # type: ignore[override]
        """
        Authenticate and verify the provided JWT token in the request.

        :param request: Incoming request instance.
        :return: JWT credentials if the token is verified.
        """
        if credentials := await super().__call__(request):
            jwt_token = credentials.credentials
            return JWTAuthorizationCredentials(jwt_token=jwt_token, claims=self.decode(jwt_token))
        else:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=_("Not authenticated"),
                headers={"WWW-Authenticate": "Bearer"},
            )


jwt_authorization = JWTAuthorization()
