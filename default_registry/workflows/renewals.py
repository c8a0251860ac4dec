import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from default_registry import models, parsers, serializers, util
from default_registry.access import RequestContext, ScopeKind
from default_registry.db import retry_on_integrity_error
from default_registry.exceptions import BusinessRuleError, ConflictError, PermissionDeniedError, RegistryError
from default_registry.i18n import _, i
from default_registry.settings import app_settings

logger = logging.getLogger(__name__)

PENDING_RENEWAL_MESSAGE = i("Customer already has a pending renewal application")


def _renewal_fields(renewal: models.Renewal) -> dict:
    return {
        "renewal_id": renewal.renewal_id,
        "customer_id": renewal.customer_id,
        "customer_name": renewal.customer_name,
        "renewal_reason": serializers.ReasonOption.model_validate(renewal.renewal_reason),
        "status": renewal.status,
        "remark": renewal.remark,
        "applicant": renewal.applicant,
        "create_time": renewal.create_time,
        "approver": renewal.approver,
        "approve_time": renewal.approve_time,
        "approve_remark": renewal.approve_remark,
    }


def serialize_renewal(renewal: models.Renewal) -> serializers.RenewalRead:
    return serializers.RenewalRead(
        **_renewal_fields(renewal),
        customer=serializers.CustomerInfo.model_validate(renewal.customer) if renewal.customer else None,
    )


def create_renewal(session: Session, payload: parsers.RenewalCreate, applicant: str) -> serializers.RenewalRead:
    """
    Submit a renewal application for a customer in default.

    :param session: The database session.
    :param payload: The renewal.
    :param applicant: The username of the operator.
    :return: The PENDING renewal.
    :raise BusinessRuleError: If the customer has no active default episode, if the customer already has a PENDING
        renewal, or if the renewal reason doesn't exist.
    """

    def transaction() -> serializers.RenewalRead:
        default_customer = models.DefaultCustomer.active_for_customer(session, payload.customer_id)
        if not default_customer:
            raise BusinessRuleError(_("Customer does not exist or is not in default status"))

        if models.Renewal.pending_for_customer(session, payload.customer_id):
            raise BusinessRuleError(_(PENDING_RENEWAL_MESSAGE))

        reason = models.RenewalReason.first_by(session, "id", payload.renewal_reason)
        if not reason:
            raise BusinessRuleError(_("Renewal reason not found"))
        if app_settings.reject_disabled_reasons and not reason.enabled:
            raise BusinessRuleError(_("Renewal reason is disabled"))

        renewal = models.Renewal.create(
            session,
            renewal_id=util.generate_renewal_id(),
            customer_id=payload.customer_id,
            customer_name=default_customer.customer_name,
            renewal_reason_id=reason.id,
            status=models.ApplicationStatus.PENDING,
            applicant=applicant,
            remark=payload.remark,
        )
        models.OperationLog.create(
            session,
            type=models.OperationType.RENEWAL_CREATED,
            object_id=renewal.renewal_id,
            username=applicant,
            data={"customer_id": payload.customer_id, "renewal_reason": reason.id},
        )
        return serialize_renewal(renewal)

    try:
        result = retry_on_integrity_error(session, transaction)
    except IntegrityError:
        # The partial unique index on PENDING renewals rejected a concurrent duplicate.
        raise BusinessRuleError(_(PENDING_RENEWAL_MESSAGE))

    logger.info("Created renewal %s for customer %s by %s", result.renewal_id, payload.customer_id, applicant)
    return result


def get_renewals(
    session: Session,
    context: RequestContext,
    filters: parsers.RenewalFilters,
    pagination: parsers.Pagination,
) -> serializers.Page[serializers.RenewalRead]:
    """
    Return a page of the renewals visible to the caller. An operator's own username overrides the applicant filter.
    """
    query = models.Renewal.search(
        session,
        status=filters.status,
        customer_name=filters.customer_name,
        applicant=context.scope.applicant_filter(filters.applicant),
        start_time=filters.start_time,
        end_time=filters.end_time,
    )
    query = context.scope.apply(query, models.Renewal.applicant)
    return util.paginate(query, pagination, serialize_renewal)


def get_renewal_detail(
    session: Session, context: RequestContext, renewal_id: str
) -> serializers.RenewalDetail | None:
    """
    Return the renewal, with the customer's details and the reasons of its active default episode.

    :return: The renewal, or None if it doesn't exist.
    :raise PermissionDeniedError: If the caller is an operator who didn't submit the renewal.
    """
    renewal = models.Renewal.first_by(session, "renewal_id", renewal_id)
    if not renewal or context.scope.kind == ScopeKind.BASIC:
        return None
    if not context.scope.can_see(renewal.applicant):
        raise PermissionDeniedError(_("No permission to view this renewal application"))

    default_customer = models.DefaultCustomer.active_for_customer(session, renewal.customer_id)
    original_reasons = default_customer.reasons if default_customer else []

    return serializers.RenewalDetail(
        **_renewal_fields(renewal),
        customer_info=serializers.CustomerDetailInfo.model_validate(renewal.customer),
        original_default_reasons=[
            serializers.ReasonOption.model_validate(reason)
            for reason in sorted(original_reasons, key=lambda reason: reason.id or 0)
        ],
    )


def approve_renewal(session: Session, renewal_id: str, decision: parsers.ApprovalDecision, approver: str) -> bool:
    """
    Approve or reject a PENDING renewal.

    If approved, the customer leaves default: all its default episodes are deactivated, and its status is set to
    NORMAL.

    :param session: The database session.
    :param renewal_id: The renewal's identifier.
    :param decision: Whether to approve, and the approver's remark.
    :param approver: The username of the auditor.
    :return: Whether the renewal exists.
    :raise ConflictError: If the renewal isn't PENDING.
    """

    def transaction() -> bool:
        renewal = models.Renewal.filter_by(session, "renewal_id", renewal_id).with_for_update().first()
        if not renewal:
            return False

        if renewal.status != models.ApplicationStatus.PENDING:
            raise ConflictError(
                _(
                    "Renewal %(renewal_id)s has already been decided (%(status)s)",
                    renewal_id=renewal_id,
                    status=renewal.status,
                )
            )

        if decision.approved:
            renewal.stage_as_approved(approver, decision.remark)
            session.query(models.DefaultCustomer).filter(
                models.DefaultCustomer.customer_id == renewal.customer_id
            ).update({models.DefaultCustomer.is_active: False}, synchronize_session="fetch")
            models.Customer.get(session, renewal.customer_id).update(session, status=models.CustomerStatus.NORMAL)
            operation_type = models.OperationType.RENEWAL_APPROVED
        else:
            renewal.stage_as_rejected(approver, decision.remark)
            operation_type = models.OperationType.RENEWAL_REJECTED

        session.add(renewal)
        models.OperationLog.create(
            session,
            type=operation_type,
            object_id=renewal_id,
            username=approver,
            data={"approved": decision.approved, "remark": decision.remark},
        )
        return True

    found = retry_on_integrity_error(session, transaction)
    if found:
        logger.info("%s renewal %s by %s", "Approved" if decision.approved else "Rejected", renewal_id, approver)
    return found


def batch_approve_renewals(
    session: Session, items: list[parsers.RenewalDecision], approver: str
) -> serializers.BatchResult[serializers.RenewalBatchItemResult]:
    """
    Approve or reject each renewal in its own transaction, in order. A failure doesn't stop the others.
    """
    result = serializers.BatchResult[serializers.RenewalBatchItemResult]()

    for item in items:
        try:
            if approve_renewal(session, item.renewal_id, item, approver):
                success, message = True, _("Approved") if item.approved else _("Rejected")
            else:
                success, message = False, _("Renewal not found")
        except RegistryError as e:
            logger.warning("Failed to decide renewal %s: %s", item.renewal_id, e.message)
            success, message = False, e.message
        except Exception:
            logger.exception("Unexpected error deciding renewal %s", item.renewal_id)
            success, message = False, _("An unexpected error occurred")

        if success:
            result.success_count += 1
        else:
            result.fail_count += 1
        result.details.append(
            serializers.RenewalBatchItemResult(renewal_id=item.renewal_id, success=success, message=message)
        )

    logger.info(
        "Batch decision on %d renewals by %s: %d succeeded, %d failed",
        len(items),
        approver,
        result.success_count,
        result.fail_count,
    )
    return result
