from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from default_registry import dependencies, parsers, serializers, util
from default_registry.access import RequestContext
from default_registry.db import get_db
from default_registry.i18n import _
from default_registry.models import Role
from default_registry.workflows import default_applications

router = APIRouter()


@router.post(
    "/default-applications",
    tags=[util.Tags.default_applications],
    status_code=status.HTTP_201_CREATED,
)
async def create_default_application(
    payload: parsers.DefaultApplicationCreate,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN, Role.OPERATOR)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.DefaultApplicationRead]:
    """
    Submit a default application. The customer is created if no customer has this name.

    :param payload: The application.
    :return: The PENDING application.
    """
    application = default_applications.create_application(session, payload, context.username)
    return util.ok(application, _("Default application submitted"), code=status.HTTP_201_CREATED)


@router.get(
    "/default-applications",
    tags=[util.Tags.default_applications],
)
async def get_default_applications(
    filters: parsers.ApplicationFilters = Depends(),
    pagination: parsers.Pagination = Depends(dependencies.get_pagination),
    context: RequestContext = Depends(dependencies.get_request_context),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.Page[serializers.DefaultApplicationRead]]:
    """
    Get a page of default applications, most recent first. Operators get only their own applications.
    """
    return util.ok(default_applications.get_applications(session, context, filters, pagination))


@router.post(
    "/default-applications/batch-approve",
    tags=[util.Tags.default_applications],
)
async def batch_approve_default_applications(
    payload: parsers.BatchApplicationApproval,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN, Role.AUDITOR)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.BatchResult[serializers.ApplicationBatchItemResult]]:
    """
    Approve or reject many applications. Each is decided in its own transaction, and a failure doesn't stop the others.
    """
    result = default_applications.batch_approve(session, payload.applications, context.username)
    return util.ok(
        result,
        _(
            "Batch approval finished: %(success_count)d succeeded, %(fail_count)d failed",
            success_count=result.success_count,
            fail_count=result.fail_count,
        ),
    )


@router.get(
    "/default-applications/{application_id}",
    tags=[util.Tags.default_applications],
)
async def get_default_application(
    application_id: str,
    context: RequestContext = Depends(dependencies.get_request_context),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.DefaultApplicationDetail]:
    if application := default_applications.get_application_detail(session, context, application_id):
        return util.ok(application)
    raise util.not_found("DefaultApplication")


@router.post(
    "/default-applications/{application_id}/approve",
    tags=[util.Tags.default_applications],
)
async def approve_default_application(
    application_id: str,
    payload: parsers.ApprovalDecision,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN, Role.AUDITOR)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[None]:
    """
    Approve or reject a PENDING application. If approved, the customer enters default.
    """
    if default_applications.approve_application(session, application_id, payload, context.username):
        if payload.approved:
            return util.ok(message=_("Default application approved"))
        return util.ok(message=_("Default application rejected"))
    raise util.not_found("DefaultApplication")
