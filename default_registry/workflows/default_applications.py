import logging
import uuid

from sqlalchemy.orm import Session

from default_registry import models, parsers, serializers, util
from default_registry.access import RequestContext
from default_registry.db import retry_on_integrity_error
from default_registry.exceptions import ConflictError, RegistryError
from default_registry.i18n import _
from default_registry.workflows import customers, reasons

logger = logging.getLogger(__name__)


def serialize_application(
    application: models.DefaultApplication, attachments: list[models.Attachment]
) -> serializers.DefaultApplicationRead:
    assert application.id is not None

    return serializers.DefaultApplicationRead(
        application_id=application.application_id,
        customer_id=application.customer_id,
        customer_name=application.customer_name,
        latest_external_rating=application.latest_external_rating,
        default_reasons=sorted(reason.id for reason in application.reasons if reason.id is not None),
        severity=application.severity,
        remark=application.remark,
        attachments=[serializers.AttachmentRead.model_validate(attachment) for attachment in attachments],
        applicant=application.applicant,
        status=application.status,
        create_time=application.create_time,
        approve_time=application.approve_time,
        approver=application.approver,
        approve_remark=application.approve_remark,
    )


def _get_attachments(session: Session, application: models.DefaultApplication) -> list[models.Attachment]:
    assert application.id is not None
    return models.Attachment.for_business(session, models.AttachmentBusinessType.DEFAULT_APPLICATION, application.id)


def create_application(
    session: Session, payload: parsers.DefaultApplicationCreate, applicant: str
) -> serializers.DefaultApplicationRead:
    """
    Submit a default application. Create the customer if no customer has this name.

    The customer, the application, its reasons, its attachments and the operation log entry are committed together.
    If a concurrent transaction creates the same customer (or the same identifier), the transaction is retried.

    :param session: The database session.
    :param payload: The application.
    :param applicant: The username of the operator.
    :return: The PENDING application.
    :raise BusinessRuleError: If a default reason doesn't exist.
    """

    def transaction() -> serializers.DefaultApplicationRead:
        default_reasons = reasons.get_default_reasons_for_application(session, payload.default_reasons)
        customer = customers.find_or_create_customer(
            session, payload.customer_name, payload.latest_external_rating
        )
        assert customer.id is not None

        application = models.DefaultApplication.create(
            session,
            application_id=util.generate_application_id(),
            customer_id=customer.id,
            customer_name=payload.customer_name,
            latest_external_rating=payload.latest_external_rating,
            severity=payload.severity,
            status=models.ApplicationStatus.PENDING,
            applicant=applicant,
            remark=payload.remark,
            reasons=default_reasons,
        )
        assert application.id is not None

        attachments = [
            models.Attachment.create(
                session,
                file_id=str(uuid.uuid4()),
                file_name=attachment.file_name,
                file_url=attachment.file_url,
                file_size=attachment.file_size,
                business_type=models.AttachmentBusinessType.DEFAULT_APPLICATION,
                business_id=application.id,
                uploaded_by=applicant,
            )
            for attachment in payload.attachments
        ]

        models.OperationLog.create(
            session,
            type=models.OperationType.DEFAULT_APPLICATION_CREATED,
            object_id=application.application_id,
            username=applicant,
            data={
                "customer_id": customer.id,
                "customer_name": application.customer_name,
                "severity": application.severity,
                "default_reasons": [reason.id for reason in default_reasons],
            },
        )

        return serialize_application(application, attachments)

    result = retry_on_integrity_error(session, transaction)
    logger.info("Created default application %s for %s by %s", result.application_id, result.customer_name, applicant)
    return result


def get_applications(
    session: Session,
    context: RequestContext,
    filters: parsers.ApplicationFilters,
    pagination: parsers.Pagination,
) -> serializers.Page[serializers.DefaultApplicationRead]:
    """
    Return a page of the applications visible to the caller. An operator's own username overrides the applicant
    filter.
    """
    query = models.DefaultApplication.search(
        session,
        status=filters.status,
        customer_name=filters.customer_name,
        applicant=context.scope.applicant_filter(filters.applicant),
        severity=filters.severity,
        start_time=filters.start_time,
        end_time=filters.end_time,
    )
    query = context.scope.apply(query, models.DefaultApplication.applicant)

    total, applications = util.get_page(query, pagination)
    attachments = models.Attachment.for_businesses(
        session,
        models.AttachmentBusinessType.DEFAULT_APPLICATION,
        [application.id for application in applications if application.id is not None],
    )
    return serializers.Page(
        total=total,
        page=pagination.page,
        size=pagination.size,
        items=[
            serialize_application(application, attachments.get(application.id, []))  # type: ignore[arg-type]
            for application in applications
        ],
    )


def get_application_detail(
    session: Session, context: RequestContext, application_id: str
) -> serializers.DefaultApplicationDetail | None:
    """
    Return the application, or None if it doesn't exist or isn't visible to the caller.
    """
    query = models.DefaultApplication.filter_by(session, "application_id", application_id)
    application = context.scope.apply(query, models.DefaultApplication.applicant).first()
    if not application:
        return None

    return serializers.DefaultApplicationDetail(
        **serialize_application(application, _get_attachments(session, application)).model_dump(),
        reason_details=[
            serializers.ReasonOption.model_validate(reason)
            for reason in sorted(application.reasons, key=lambda reason: reason.id or 0)
        ],
    )


def approve_application(
    session: Session, application_id: str, decision: parsers.ApprovalDecision, approver: str
) -> bool:
    """
    Approve or reject a PENDING application.

    If approved, the customer enters default: an active default episode is created with the application's reasons,
    and the customer's status is set to DEFAULT.

    :param session: The database session.
    :param application_id: The application's identifier.
    :param decision: Whether to approve, and the approver's remark.
    :param approver: The username of the auditor.
    :return: Whether the application exists.
    :raise ConflictError: If the application isn't PENDING, or if the customer already has an active default episode.
    """

    def transaction() -> bool:
        application = (
            models.DefaultApplication.filter_by(session, "application_id", application_id).with_for_update().first()
        )
        if not application:
            return False

        if application.status != models.ApplicationStatus.PENDING:
            raise ConflictError(
                _(
                    "Application %(application_id)s has already been decided (%(status)s)",
                    application_id=application_id,
                    status=application.status,
                )
            )

        if decision.approved:
            if models.DefaultCustomer.active_for_customer(session, application.customer_id):
                raise ConflictError(
                    _("Customer %(customer_name)s is already in default", customer_name=application.customer_name)
                )

            application.stage_as_approved(approver, decision.remark)
            assert application.approve_time is not None

            models.DefaultCustomer.create(
                session,
                customer_id=application.customer_id,
                application_id=application.id,
                customer_name=application.customer_name,
                severity=application.severity,
                applicant=application.applicant,
                application_time=application.create_time,
                approver=approver,
                approve_time=application.approve_time,
                latest_external_rating=application.latest_external_rating,
                is_active=True,
                reasons=list(application.reasons),
            )
            models.Customer.get(session, application.customer_id).update(
                session, status=models.CustomerStatus.DEFAULT
            )
            operation_type = models.OperationType.DEFAULT_APPLICATION_APPROVED
        else:
            application.stage_as_rejected(approver, decision.remark)
            operation_type = models.OperationType.DEFAULT_APPLICATION_REJECTED

        session.add(application)
        models.OperationLog.create(
            session,
            type=operation_type,
            object_id=application_id,
            username=approver,
            data={"approved": decision.approved, "remark": decision.remark},
        )
        return True

    found = retry_on_integrity_error(session, transaction)
    if found:
        logger.info(
            "%s default application %s by %s",
            "Approved" if decision.approved else "Rejected",
            application_id,
            approver,
        )
    return found


def batch_approve(
    session: Session, items: list[parsers.ApplicationDecision], approver: str
) -> serializers.BatchResult[serializers.ApplicationBatchItemResult]:
    """
    Approve or reject each application in its own transaction, in order. A failure doesn't stop the others.
    """
    result = serializers.BatchResult[serializers.ApplicationBatchItemResult]()

    for item in items:
        try:
            if approve_application(session, item.application_id, item, approver):
                success, message = True, _("Approved") if item.approved else _("Rejected")
            else:
                success, message = False, _("Application not found")
        except RegistryError as e:
            logger.warning("Failed to decide default application %s: %s", item.application_id, e.message)
            success, message = False, e.message
        except Exception:
            logger.exception("Unexpected error deciding default application %s", item.application_id)
            success, message = False, _("An unexpected error occurred")

        if success:
            result.success_count += 1
        else:
            result.fail_count += 1
        result.details.append(
            serializers.ApplicationBatchItemResult(
                application_id=item.application_id, success=success, message=message
            )
        )

    logger.info(
        "Batch decision on %d default applications by %s: %d succeeded, %d failed",
        len(items),
        approver,
        result.success_count,
        result.fail_count,
    )
    return result
