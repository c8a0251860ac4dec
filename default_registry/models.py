from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self

from sqlalchemy import JSON, Column, DateTime, Index, text
from sqlalchemy.orm import Query, Session, joinedload, selectinload
from sqlalchemy.sql import func
from sqlmodel import Field, Relationship, SQLModel, col

from default_registry.i18n import i


def utcnow() -> datetime:
    return datetime.now(UTC)


def _timestamp(*, nullable: bool = False, onupdate: bool = False) -> Column:
    kwargs: dict[str, Any] = {"nullable": nullable}
    if not nullable:
        kwargs["server_default"] = func.now()
    if onupdate:
        kwargs["onupdate"] = func.now()
    return Column(DateTime(timezone=True), **kwargs)


# https://github.com/tiangolo/sqlmodel/issues/254
#
# The session.flush() calls are not strictly necessary. However, they can avoid errors like:
#
# >>> instance.related_id = related.id
# (related_id is set to None)
class ActiveRecordMixin:
    @classmethod
    def filter_by(cls, session: Session, field: str, value: Any) -> "Query[Self]":
        """
        Filter a model based on a field's value.

        :param session: The database session.
        :param field: The field.
        :param value: The field's value.
        :return: The query.
        """
        return session.query(cls).filter(getattr(cls, field) == value)

    @classmethod
    def first_by(cls, session: Session, field: str, value: Any) -> Self | None:
        """
        Get an existing instance based on a field's value.

        :param session: The database session.
        :param field: The field.
        :param value: The field's value.
        :return: The existing instance if found, otherwise None.
        """
        return cls.filter_by(session, field, value).first()

    @classmethod
    def get(cls, session: Session, id: int) -> Self:
        """
        Get an existing instance by its ID. Raise an exception if not found.

        :param session: The database session.
        :param id: The ID.
        :return: The existing instance if found.
        """
        return cls.filter_by(session, "id", id).one()

    @classmethod
    def create(cls, session: Session, **data: Any) -> Self:
        """
        Insert a new instance into the database.

        :param session: The database session.
        :param data: The initial instance data.
        :return: The inserted instance.
        """
        obj = cls(**data)
        session.add(obj)
        session.flush()
        return obj

    def update(self, session: Session, **data: Any) -> Self:
        """
        Update an existing instance in the database.

        :param session: The database session.
        :param data: The updated instance data.
        :return: The updated instance.
        """
        for key, value in data.items():
            setattr(self, key, value)

        session.add(self)  # not strictly necessary
        session.flush()
        return self


class Role(StrEnum):
    #: Administrators have full access, including the reason catalog.
    ADMIN = "ADMIN"
    #: Operators submit default and renewal applications, and see only their own.
    OPERATOR = "OPERATOR"
    #: Auditors decide applications, and see all of them.
    AUDITOR = "AUDITOR"
    #: Other users see only the basic (reporting) views.
    USER = "USER"


class CustomerStatus(StrEnum):
    #: The customer has no active default episode.
    #:
    #: (``/renewals/{renewal_id}/approve``)
    NORMAL = i("NORMAL")
    #: The customer has an active default episode.
    #:
    #: (``/default-applications/{application_id}/approve``)
    DEFAULT = i("DEFAULT")


class Severity(StrEnum):
    HIGH = i("HIGH")
    MEDIUM = i("MEDIUM")
    LOW = i("LOW")


class ApplicationStatus(StrEnum):
    """
    The status of a default application or of a renewal application.

    The workflows are:

    -  PENDING → APPROVED
    -  PENDING → REJECTED

    APPROVED and REJECTED are final.
    """

    #: An operator submits the application.
    #:
    #: (``POST /default-applications``, ``POST /renewals``)
    PENDING = i("PENDING")
    #: An auditor approves the application.
    APPROVED = i("APPROVED")
    #: An auditor rejects the application.
    REJECTED = i("REJECTED")


class OperationType(StrEnum):
    DEFAULT_APPLICATION_CREATED = "DEFAULT_APPLICATION_CREATED"
    DEFAULT_APPLICATION_APPROVED = "DEFAULT_APPLICATION_APPROVED"
    DEFAULT_APPLICATION_REJECTED = "DEFAULT_APPLICATION_REJECTED"
    RENEWAL_CREATED = "RENEWAL_CREATED"
    RENEWAL_APPROVED = "RENEWAL_APPROVED"
    RENEWAL_REJECTED = "RENEWAL_REJECTED"
    DEFAULT_REASON_CREATED = "DEFAULT_REASON_CREATED"
    DEFAULT_REASON_UPDATED = "DEFAULT_REASON_UPDATED"
    DEFAULT_REASON_DELETED = "DEFAULT_REASON_DELETED"


class AttachmentBusinessType(StrEnum):
    DEFAULT_APPLICATION = "DEFAULT_APPLICATION"


class Customer(SQLModel, ActiveRecordMixin, table=True):
    id: int | None = Field(default=None, primary_key=True)
    #: The human-readable code of the customer, like "CUST001".
    #:
    #: .. seealso:: :func:`default_registry.workflows.customers.next_customer_code`
    customer_code: str = Field(unique=True)
    #: The name by which the customer is found when a default application is submitted.
    customer_name: str = Field(unique=True)
    industry: str | None = None
    region: str | None = None
    latest_external_rating: str | None = None
    #: Whether the customer is in default. Only the approval of an application or a renewal changes it.
    status: CustomerStatus = Field(default=CustomerStatus.NORMAL)

    # Relationships
    default_customers: list["DefaultCustomer"] = Relationship(back_populates="customer")

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp(onupdate=True))


class DefaultReason(SQLModel, ActiveRecordMixin, table=True):
    __tablename__ = "default_reason"

    id: int | None = Field(default=None, primary_key=True)
    reason: str
    detail: str = Field(default="")
    #: Whether the reason is offered to operators.
    #:
    #: .. seealso:: :attr:`~default_registry.settings.Settings.reject_disabled_reasons`
    enabled: bool = Field(default=True)
    sort_order: int = Field(default=0)
    created_by: str = Field(default="")
    updated_by: str | None = None

    # Timestamps
    create_time: datetime = Field(default_factory=utcnow, sa_column=_timestamp())
    update_time: datetime = Field(default_factory=utcnow, sa_column=_timestamp(onupdate=True))

    @classmethod
    def ordered(cls, session: Session) -> "Query[Self]":
        return session.query(cls).order_by(col(cls.sort_order).asc(), col(cls.id).asc())


class RenewalReason(SQLModel, ActiveRecordMixin, table=True):
    __tablename__ = "renewal_reason"

    id: int | None = Field(default=None, primary_key=True)
    reason: str
    enabled: bool = Field(default=True)
    sort_order: int = Field(default=0)

    # Timestamps
    create_time: datetime = Field(default_factory=utcnow, sa_column=_timestamp())

    @classmethod
    def ordered(cls, session: Session) -> "Query[Self]":
        return session.query(cls).order_by(col(cls.sort_order).asc(), col(cls.id).asc())


class ApplicationDefaultReason(SQLModel, table=True):
    __tablename__ = "application_default_reason"

    application_id: int = Field(foreign_key="default_application.id", primary_key=True)
    default_reason_id: int = Field(foreign_key="default_reason.id", primary_key=True)


class DefaultCustomerReason(SQLModel, table=True):
    __tablename__ = "default_customer_reason"

    default_customer_id: int = Field(foreign_key="default_customer.id", primary_key=True)
    default_reason_id: int = Field(foreign_key="default_reason.id", primary_key=True)


class DecisionMixin:
    """Assign the fields shared by the decision on a default application and on a renewal application."""

    def stage_as_approved(self, approver: str, approve_remark: str | None) -> None:
        """Assign fields related to marking the application as APPROVED."""
        self.status = ApplicationStatus.APPROVED
        self._stage_decision(approver, approve_remark)

    def stage_as_rejected(self, approver: str, approve_remark: str | None) -> None:
        """Assign fields related to marking the application as REJECTED."""
        self.status = ApplicationStatus.REJECTED
        self._stage_decision(approver, approve_remark)

    def _stage_decision(self, approver: str, approve_remark: str | None) -> None:
        self.approver = approver
        self.approve_time = utcnow()
        self.approve_remark = approve_remark


class DefaultApplication(SQLModel, ActiveRecordMixin, DecisionMixin, table=True):
    __tablename__ = "default_application"

    id: int | None = Field(default=None, primary_key=True)
    #: The externally visible identifier, like "APP1718000000000X7Q2".
    #:
    #: .. seealso:: :func:`default_registry.util.generate_application_id`
    application_id: str = Field(unique=True)
    #: A snapshot of the customer's name when the application was submitted.
    customer_name: str
    #: A snapshot of the rating provided when the application was submitted.
    latest_external_rating: str | None = None
    severity: Severity
    #: The status of the application. Once APPROVED or REJECTED, it is never changed.
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING, index=True)
    #: The username of the operator who submitted the application.
    applicant: str = Field(index=True)
    remark: str | None = None
    approver: str | None = None
    approve_time: datetime | None = Field(default=None, sa_column=_timestamp(nullable=True))
    approve_remark: str | None = None

    # Relationships
    customer_id: int = Field(foreign_key="customer.id", index=True)
    customer: Customer = Relationship()
    reasons: list[DefaultReason] = Relationship(link_model=ApplicationDefaultReason)

    # Timestamps
    create_time: datetime = Field(default_factory=utcnow, sa_column=_timestamp())
    update_time: datetime = Field(default_factory=utcnow, sa_column=_timestamp(onupdate=True))

    @classmethod
    def search(
        cls,
        session: Session,
        *,
        status: ApplicationStatus | None = None,
        customer_name: str | None = None,
        applicant: str | None = None,
        severity: Severity | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> "Query[Self]":
        """Return a query for applications matching the filters, most recent first."""
        query = (
            session.query(cls)
            .options(selectinload(cls.reasons))  # type: ignore[arg-type]
            .order_by(col(cls.create_time).desc(), col(cls.id).desc())
        )

        if status:
            query = query.filter(cls.status == status)
        if customer_name:
            query = query.filter(col(cls.customer_name).icontains(customer_name, autoescape=True))
        if applicant:
            query = query.filter(cls.applicant == applicant)
        if severity:
            query = query.filter(cls.severity == severity)
        if start_time:
            query = query.filter(col(cls.create_time) >= start_time)
        if end_time:
            query = query.filter(col(cls.create_time) <= end_time)

        return query


class Attachment(SQLModel, ActiveRecordMixin, table=True):
    id: int | None = Field(default=None, primary_key=True)
    file_id: str = Field(unique=True)
    file_name: str
    file_url: str
    #: The size of the file, in bytes.
    file_size: int
    business_type: AttachmentBusinessType
    #: The row ID of the record to which the file is attached.
    business_id: int = Field(index=True)
    uploaded_by: str

    # Timestamps
    upload_time: datetime = Field(default_factory=utcnow, sa_column=_timestamp())

    @classmethod
    def for_business(cls, session: Session, business_type: AttachmentBusinessType, business_id: int) -> list[Self]:
        return (
            session.query(cls)
            .filter(cls.business_type == business_type, cls.business_id == business_id)
            .order_by(col(cls.id).asc())
            .all()
        )

    @classmethod
    def for_businesses(
        cls, session: Session, business_type: AttachmentBusinessType, business_ids: list[int]
    ) -> dict[int, list[Self]]:
        """Return the attachments of each of the records, in a single query."""
        attachments: dict[int, list[Self]] = {}
        if not business_ids:
            return attachments

        query = session.query(cls).filter(cls.business_type == business_type, col(cls.business_id).in_(business_ids))
        for attachment in query.order_by(col(cls.id).asc()):
            attachments.setdefault(attachment.business_id, []).append(attachment)
        return attachments


class DefaultCustomer(SQLModel, ActiveRecordMixin, table=True):
    """
    A default episode, created when a default application is approved.

    At most one default episode per customer is active. It is deactivated (never deleted) when a renewal application
    for the customer is approved.
    """

    __tablename__ = "default_customer"
    __table_args__ = (
        Index(
            "uq_default_customer_active_customer_id",
            "customer_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    customer_name: str
    severity: Severity
    applicant: str = Field(index=True)
    #: The time at which the originating application was submitted.
    application_time: datetime = Field(sa_column=_timestamp())
    approver: str
    approve_time: datetime = Field(sa_column=_timestamp())
    latest_external_rating: str | None = None
    is_active: bool = Field(default=True)

    # Relationships
    customer_id: int = Field(foreign_key="customer.id", index=True)
    customer: Customer = Relationship(back_populates="default_customers")
    #: The row ID of the originating application.
    application_id: int = Field(foreign_key="default_application.id")
    application: DefaultApplication = Relationship()
    reasons: list[DefaultReason] = Relationship(link_model=DefaultCustomerReason)

    @classmethod
    def active(cls, session: Session) -> "Query[Self]":
        return session.query(cls).filter(cls.is_active == True)  # noqa: E712

    @classmethod
    def active_for_customer(cls, session: Session, customer_id: int) -> Self | None:
        return cls.active(session).filter(cls.customer_id == customer_id).first()

    @classmethod
    def search(
        cls,
        session: Session,
        *,
        customer_name: str | None = None,
        severity: Severity | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> "Query[Self]":
        """Return a query for active default episodes matching the filters, most recently approved first."""
        query = (
            cls.active(session)
            .options(selectinload(cls.reasons))  # type: ignore[arg-type]
            .order_by(col(cls.approve_time).desc(), col(cls.id).desc())
        )

        if customer_name:
            query = query.filter(col(cls.customer_name).icontains(customer_name, autoescape=True))
        if severity:
            query = query.filter(cls.severity == severity)
        if start_time:
            query = query.filter(col(cls.application_time) >= start_time)
        if end_time:
            query = query.filter(col(cls.application_time) <= end_time)

        return query


class Renewal(SQLModel, ActiveRecordMixin, DecisionMixin, table=True):
    """A renewal application, to end a customer's active default episode."""

    __table_args__ = (
        Index(
            "uq_renewal_pending_customer_id",
            "customer_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    #: The externally visible identifier, like "REN1718000000000K3ZD".
    #:
    #: .. seealso:: :func:`default_registry.util.generate_renewal_id`
    renewal_id: str = Field(unique=True)
    #: A snapshot of the customer's name from the active default episode.
    customer_name: str
    #: The status of the renewal. At most one renewal per customer is PENDING.
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING, index=True)
    applicant: str = Field(index=True)
    remark: str | None = None
    approver: str | None = None
    approve_time: datetime | None = Field(default=None, sa_column=_timestamp(nullable=True))
    approve_remark: str | None = None

    # Relationships
    customer_id: int = Field(foreign_key="customer.id", index=True)
    customer: Customer = Relationship()
    renewal_reason_id: int = Field(foreign_key="renewal_reason.id")
    renewal_reason: RenewalReason = Relationship()

    # Timestamps
    create_time: datetime = Field(default_factory=utcnow, sa_column=_timestamp())
    update_time: datetime = Field(default_factory=utcnow, sa_column=_timestamp(onupdate=True))

    @classmethod
    def pending_for_customer(cls, session: Session, customer_id: int) -> Self | None:
        return (
            session.query(cls).filter(cls.customer_id == customer_id, cls.status == ApplicationStatus.PENDING).first()
        )

    @classmethod
    def search(
        cls,
        session: Session,
        *,
        status: ApplicationStatus | None = None,
        customer_name: str | None = None,
        applicant: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> "Query[Self]":
        """Return a query for renewals matching the filters, most recent first."""
        query = (
            session.query(cls)
            .options(joinedload(cls.renewal_reason), joinedload(cls.customer))  # type: ignore[arg-type]
            .order_by(col(cls.create_time).desc(), col(cls.id).desc())
        )

        if status:
            query = query.filter(cls.status == status)
        if customer_name:
            query = query.filter(col(cls.customer_name).icontains(customer_name, autoescape=True))
        if applicant:
            query = query.filter(cls.applicant == applicant)
        if start_time:
            query = query.filter(col(cls.create_time) >= start_time)
        if end_time:
            query = query.filter(col(cls.create_time) <= end_time)

        return query


class OperationLog(SQLModel, ActiveRecordMixin, table=True):
    __tablename__ = "operation_log"

    id: int | None = Field(default=None, primary_key=True)
    type: OperationType
    #: The identifier of the record on which the operation was performed, like an application ID.
    object_id: str = Field(index=True)
    username: str
    data: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp())
