# Field names mirror the frontend's API types, in snake_case.

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from default_registry.models import ApplicationStatus, CustomerStatus, Severity, utcnow

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """The envelope of every response body, including error responses."""

    code: int = 200
    message: str = "success"
    data: T | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class Page(BaseModel, Generic[T]):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    size: int
    items: list[T] = Field(alias="list")


# Reasons


class DefaultReasonRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reason: str
    detail: str
    enabled: bool
    sort_order: int
    create_time: datetime
    update_time: datetime


class ReasonOption(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reason: str


class RenewalReasonRead(ReasonOption):
    enabled: bool


class UpdatedCount(BaseModel):
    count: int


# Applications


class AttachmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_id: str
    file_name: str
    file_url: str
    file_size: int


class DefaultApplicationRead(BaseModel):
    application_id: str
    customer_id: int
    customer_name: str
    latest_external_rating: str | None = None
    default_reasons: list[int]
    severity: Severity
    remark: str | None = None
    attachments: list[AttachmentRead] = Field(default_factory=list)
    applicant: str
    status: ApplicationStatus
    create_time: datetime
    approve_time: datetime | None = None
    approver: str | None = None
    approve_remark: str | None = None


class DefaultApplicationDetail(DefaultApplicationRead):
    #: The text of each default reason, in the order of ``default_reasons``.
    reason_details: list[ReasonOption] = Field(default_factory=list)


class ApplicationBatchItemResult(BaseModel):
    application_id: str
    success: bool
    message: str


class RenewalBatchItemResult(BaseModel):
    renewal_id: str
    success: bool
    message: str


class BatchResult(BaseModel, Generic[T]):
    success_count: int = 0
    fail_count: int = 0
    details: list[T] = Field(default_factory=list)


# Default customers


class DefaultCustomerRead(BaseModel):
    customer_id: int
    customer_name: str
    status: CustomerStatus = CustomerStatus.DEFAULT
    default_reasons: list[int]
    severity: Severity
    applicant: str
    application_time: datetime
    approve_time: datetime
    latest_external_rating: str | None = None


# Renewals


class CustomerInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    industry: str | None = None
    region: str | None = None


class CustomerDetailInfo(CustomerInfo):
    latest_external_rating: str | None = None


class RenewalBase(BaseModel):
    renewal_id: str
    customer_id: int
    customer_name: str
    renewal_reason: ReasonOption
    status: ApplicationStatus
    remark: str | None = None
    applicant: str
    create_time: datetime
    approver: str | None = None
    approve_time: datetime | None = None
    approve_remark: str | None = None


class RenewalRead(RenewalBase):
    customer: CustomerInfo | None = None


class RenewalDetail(RenewalBase):
    customer_info: CustomerDetailInfo
    #: The default reasons of the customer's active default episode, if any.
    original_default_reasons: list[ReasonOption] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: datetime = Field(default_factory=utcnow)
