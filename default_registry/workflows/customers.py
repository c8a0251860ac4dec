import logging

from sqlalchemy import Integer, and_, cast, exists, func, not_
from sqlalchemy.orm import Session, selectinload
from sqlmodel import col

from default_registry import models, parsers, serializers, util
from default_registry.access import RequestContext

logger = logging.getLogger(__name__)

CUSTOMER_CODE_PREFIX = "CUST"


def next_customer_code(session: Session) -> str:
    """
    Return the next customer code, like "CUST001", "CUST002", etc.

    The number is one more than the largest number among existing codes. It is zero-padded to at least 3 digits.
    Two transactions can compute the same code. The unique constraint rejects one of them, which is then retried.
    """
    number = cast(func.substr(models.Customer.customer_code, len(CUSTOMER_CODE_PREFIX) + 1), Integer)
    largest = (
        session.query(func.max(number))
        .filter(col(models.Customer.customer_code).like(f"{CUSTOMER_CODE_PREFIX}%"))
        .scalar()
    )
    return f"{CUSTOMER_CODE_PREFIX}{(largest or 0) + 1:03d}"


def find_or_create_customer(
    session: Session, customer_name: str, latest_external_rating: str | None = None
) -> models.Customer:
    """
    Find the customer with exactly this name, or create it with the next customer code and the NORMAL status.

    :param session: The database session.
    :param customer_name: The customer's name.
    :param latest_external_rating: The rating to set, if the customer is created.
    :return: The existing or created customer.
    """
    customer = models.Customer.first_by(session, "customer_name", customer_name)
    if customer:
        return customer

    customer = models.Customer.create(
        session,
        customer_code=next_customer_code(session),
        customer_name=customer_name,
        latest_external_rating=latest_external_rating,
        status=models.CustomerStatus.NORMAL,
    )
    logger.info("Created customer %s (%s)", customer.customer_code, customer_name)
    return customer


def serialize_default_customer(default_customer: models.DefaultCustomer) -> serializers.DefaultCustomerRead:
    return serializers.DefaultCustomerRead(
        customer_id=default_customer.customer_id,
        customer_name=default_customer.customer_name,
        default_reasons=sorted(reason.id for reason in default_customer.reasons if reason.id is not None),
        severity=default_customer.severity,
        applicant=default_customer.applicant,
        application_time=default_customer.application_time,
        approve_time=default_customer.approve_time,
        latest_external_rating=default_customer.latest_external_rating,
    )


def get_default_customers(
    session: Session,
    filters: parsers.DefaultCustomerFilters,
    pagination: parsers.Pagination,
) -> serializers.Page[serializers.DefaultCustomerRead]:
    """
    Return a page of the customers currently in default. Every role sees every customer. Only the detail is scoped.
    """
    query = models.DefaultCustomer.search(session, **filters.model_dump())
    return util.paginate(query, pagination, serialize_default_customer)


def get_default_customer(
    session: Session, context: RequestContext, customer_id: int
) -> serializers.DefaultCustomerRead | None:
    """
    Return the active default episode of the customer, or None if the customer isn't in default or isn't visible to
    the caller.
    """
    query = (
        models.DefaultCustomer.active(session)
        .options(selectinload(models.DefaultCustomer.reasons))  # type: ignore[arg-type]
        .filter(models.DefaultCustomer.customer_id == customer_id)
    )
    default_customer = context.scope.apply(query, models.DefaultCustomer.applicant).first()
    if not default_customer:
        return None
    return serialize_default_customer(default_customer)


def find_integrity_problems(session: Session) -> list[tuple[str, str]]:
    """
    Find customers whose rows break the workflows' invariants.

    :return: Pairs of customer code and problem description.
    """
    problems: list[tuple[str, str]] = []

    active = (
        session.query(models.DefaultCustomer.customer_id, func.count())
        .filter(models.DefaultCustomer.is_active == True)  # noqa: E712
        .group_by(models.DefaultCustomer.customer_id)
    )
    active_counts: dict[int, int] = {customer_id: count for customer_id, count in active}

    pending = (
        session.query(models.Renewal.customer_id, func.count())
        .filter(models.Renewal.status == models.ApplicationStatus.PENDING)
        .group_by(models.Renewal.customer_id)
        .having(func.count() > 1)
    )
    pending_counts: dict[int, int] = {customer_id: count for customer_id, count in pending}

    for customer in session.query(models.Customer).order_by(col(models.Customer.id).asc()):
        active_count = active_counts.get(customer.id, 0)  # type: ignore[arg-type]
        if active_count > 1:
            problems.append((customer.customer_code, f"{active_count} active default episodes"))
        if count := pending_counts.get(customer.id):  # type: ignore[arg-type]
            problems.append((customer.customer_code, f"{count} pending renewals"))
        if customer.status == models.CustomerStatus.DEFAULT and not active_count:
            problems.append((customer.customer_code, "status is DEFAULT without an active default episode"))
        if customer.status == models.CustomerStatus.NORMAL and active_count:
            problems.append((customer.customer_code, "status is NORMAL with an active default episode"))

    return problems


def get_renewable_customers(
    session: Session, pagination: parsers.Pagination, customer_name: str | None = None
) -> serializers.Page[serializers.DefaultCustomerRead]:
    """
    Return the active default episodes whose customer has no PENDING renewal, that is, those that can be renewed.
    """
    pending_renewal = exists().where(
        and_(
            models.Renewal.customer_id == models.DefaultCustomer.customer_id,
            models.Renewal.status == models.ApplicationStatus.PENDING,
        )
    )
    query = models.DefaultCustomer.search(session, customer_name=customer_name).filter(not_(pending_renewal))
    return util.paginate(query, pagination, serialize_default_customer)
