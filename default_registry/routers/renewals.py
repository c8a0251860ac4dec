from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from default_registry import dependencies, parsers, serializers, util
from default_registry.access import RequestContext
from default_registry.db import get_db
from default_registry.i18n import _
from default_registry.models import Role
from default_registry.workflows import reasons, renewals

router = APIRouter()


@router.get(
    "/renewal-reasons",
    tags=[util.Tags.renewals],
)
async def get_renewal_reasons(
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[list[serializers.RenewalReasonRead]]:
    return util.ok(reasons.get_renewal_reasons(session))


@router.post(
    "/renewals",
    tags=[util.Tags.renewals],
    status_code=status.HTTP_201_CREATED,
)
async def create_renewal(
    payload: parsers.RenewalCreate,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN, Role.OPERATOR)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.RenewalRead]:
    """
    Submit a renewal application for a customer in default.

    :param payload: The renewal.
    :return: The PENDING renewal.
    """
    renewal = renewals.create_renewal(session, payload, context.username)
    return util.ok(renewal, _("Renewal application submitted"), code=status.HTTP_201_CREATED)


@router.get(
    "/renewals",
    tags=[util.Tags.renewals],
)
async def get_renewals(
    filters: parsers.RenewalFilters = Depends(),
    pagination: parsers.Pagination = Depends(dependencies.get_pagination),
    context: RequestContext = Depends(dependencies.get_request_context),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.Page[serializers.RenewalRead]]:
    return util.ok(renewals.get_renewals(session, context, filters, pagination))


@router.post(
    "/renewals/batch-approve",
    tags=[util.Tags.renewals],
)
async def batch_approve_renewals(
    payload: parsers.BatchRenewalApproval,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN, Role.AUDITOR)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.BatchResult[serializers.RenewalBatchItemResult]]:
    result = renewals.batch_approve_renewals(session, payload.renewals, context.username)
    return util.ok(
        result,
        _(
            "Batch approval finished: %(success_count)d succeeded, %(fail_count)d failed",
            success_count=result.success_count,
            fail_count=result.fail_count,
        ),
    )


@router.get(
    "/renewals/{renewal_id}",
    tags=[util.Tags.renewals],
)
async def get_renewal(
    renewal_id: str,
    context: RequestContext = Depends(dependencies.get_request_context),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.RenewalDetail]:
    """
    Get a renewal, with the customer's details and the reasons for which the customer is in default.

    Operators can't view the renewals of other operators.
    """
    if renewal := renewals.get_renewal_detail(session, context, renewal_id):
        return util.ok(renewal)
    raise util.not_found("Renewal")


@router.post(
    "/renewals/{renewal_id}/approve",
    tags=[util.Tags.renewals],
)
async def approve_renewal(
    renewal_id: str,
    payload: parsers.ApprovalDecision,
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN, Role.AUDITOR)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[None]:
    """
    Approve or reject a PENDING renewal. If approved, the customer leaves default.
    """
    if renewals.approve_renewal(session, renewal_id, payload, context.username):
        if payload.approved:
            return util.ok(message=_("Renewal application approved"))
        return util.ok(message=_("Renewal application rejected"))
    raise util.not_found("Renewal")
