from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from default_registry import dependencies, parsers, serializers, util
from default_registry.access import RequestContext
from default_registry.db import get_db
from default_registry.i18n import _
from default_registry.models import Role
from default_registry.workflows import reasons

router = APIRouter()


@router.get(
    "/default-reasons",
    tags=[util.Tags.default_reasons],
)
async def get_default_reasons(
    enabled: bool | None = None,
    pagination: parsers.Pagination = Depends(dependencies.get_pagination),
    context: RequestContext = Depends(dependencies.get_request_context),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.Page[serializers.DefaultReasonRead]]:
    """
    Get a page of default reasons, ordered by sort order.

    :param enabled: If set, only the enabled (or disabled) reasons.
    :return: The page of default reasons.
    """
    return util.ok(reasons.get_default_reasons(session, pagination, enabled))


@router.get(
    "/default-reasons/enabled",
    tags=[util.Tags.default_reasons],
)
async def get_enabled_reasons(
    context: RequestContext = Depends(dependencies.get_request_context),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[list[serializers.ReasonOption]]:
    return util.ok(reasons.get_enabled_reasons(session))


@router.post(
    "/default-reasons/batch-status",
    tags=[util.Tags.default_reasons],
)
async def batch_update_status(
    payload: parsers.ReasonStatusUpdate,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.UpdatedCount]:
    """
    Enable or disable many default reasons at once.

    :return: The number of updated reasons.
    """
    count = reasons.batch_update_status(session, payload.ids, payload.enabled)
    return util.ok(serializers.UpdatedCount(count=count), _("Updated %(count)d default reasons", count=count))


@router.get(
    "/default-reasons/{id}",
    tags=[util.Tags.default_reasons],
)
async def get_default_reason(
    id: int,
    context: RequestContext = Depends(dependencies.get_request_context),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.DefaultReasonRead]:
    if reason := reasons.get_default_reason(session, id):
        return util.ok(reason)
    raise util.not_found("DefaultReason")


@router.post(
    "/default-reasons",
    tags=[util.Tags.default_reasons],
    status_code=status.HTTP_201_CREATED,
)
async def create_default_reason(
    payload: parsers.DefaultReasonCreate,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN, Role.OPERATOR)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.DefaultReasonRead]:
    reason = reasons.create_default_reason(session, payload, context.username)
    return util.ok(reason, _("Default reason created"), code=status.HTTP_201_CREATED)


@router.put(
    "/default-reasons/{id}",
    tags=[util.Tags.default_reasons],
)
async def update_default_reason(
    id: int,
    payload: parsers.DefaultReasonUpdate,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN, Role.OPERATOR)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.DefaultReasonRead]:
    if reason := reasons.update_default_reason(session, id, payload, context.username):
        return util.ok(reason, _("Default reason updated"))
    raise util.not_found("DefaultReason")


@router.delete(
    "/default-reasons/{id}",
    tags=[util.Tags.default_reasons],
)
async def delete_default_reason(
    id: int,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[None]:
    """
    Delete a default reason. A reason that an application references can't be deleted.
    """
    if reasons.delete_default_reason(session, id, context.username):
        return util.ok(message=_("Default reason deleted"))
    raise util.not_found("DefaultReason")
