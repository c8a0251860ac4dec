from typing import Awaitable, Callable

from fastapi import Depends, HTTPException, Query, Request, status

from default_registry import auth, models, parsers
from default_registry.access import RequestContext, build_context
from default_registry.i18n import _
from default_registry.settings import app_settings


async def get_auth_credentials(request: Request) -> auth.JWTAuthorizationCredentials:
    return await auth.jwt_authorization(request)


async def get_request_context(
    credentials: auth.JWTAuthorizationCredentials = Depends(get_auth_credentials),
) -> RequestContext:
    """
    Build the request context from the ``username`` and ``role`` claims of the provided JWT credentials.

    :param credentials: JWT credentials provided by the user. Defaults to Depends(get_auth_credentials).
    :raises HTTPException: If a claim is missing, or if the role is unknown.
    :return: The caller's username, role and data access scope.
    """
    try:
        username = credentials.claims["username"]
        role = credentials.claims["role"]
    except KeyError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=_("Username or role missing"))

    try:
        return build_context(username, models.Role(role))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=_("Unknown role"))


def require_roles(*roles: models.Role) -> Callable[[RequestContext], Awaitable[RequestContext]]:
    async def inner(context: RequestContext = Depends(get_request_context)) -> RequestContext:
        if context.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=_("User is not authorized"))
        return context

    return inner


async def get_pagination(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=app_settings.max_page_size),
) -> parsers.Pagination:
    return parsers.Pagination(page=page, size=size)
