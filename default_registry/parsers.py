from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints

from default_registry.models import ApplicationStatus, Severity

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class Pagination(BaseModel):
    page: int = Field(default=1, ge=1)
    size: int = Field(default=10, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


# Default reasons


class DefaultReasonCreate(BaseModel):
    reason: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    detail: NonEmptyStr
    enabled: bool = True
    sort_order: int = 0


class DefaultReasonUpdate(BaseModel):
    reason: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    detail: NonEmptyStr
    enabled: bool
    sort_order: int


class ReasonStatusUpdate(BaseModel):
    ids: list[int] = Field(min_length=1)
    enabled: bool


# Applications


class AttachmentInput(BaseModel):
    file_name: NonEmptyStr
    file_url: NonEmptyStr
    file_size: int = Field(gt=0)


class DefaultApplicationCreate(BaseModel):
    customer_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    latest_external_rating: Annotated[str, StringConstraints(max_length=10)] | None = None
    severity: Severity
    default_reasons: list[Annotated[int, Field(gt=0)]] = Field(min_length=1)
    remark: str | None = None
    attachments: list[AttachmentInput] = Field(default_factory=list)


class ApprovalDecision(BaseModel):
    approved: bool
    remark: str | None = None


class ApplicationDecision(ApprovalDecision):
    application_id: NonEmptyStr


class BatchApplicationApproval(BaseModel):
    applications: list[ApplicationDecision] = Field(min_length=1)


class ApplicationFilters(BaseModel):
    status: ApplicationStatus | None = None
    customer_name: str | None = None
    applicant: str | None = None
    severity: Severity | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


# Renewals


class RenewalCreate(BaseModel):
    customer_id: int = Field(gt=0)
    #: The ID of the renewal reason.
    renewal_reason: int = Field(gt=0)
    remark: str | None = None


class RenewalDecision(ApprovalDecision):
    renewal_id: NonEmptyStr


class BatchRenewalApproval(BaseModel):
    renewals: list[RenewalDecision] = Field(min_length=1)


class RenewalFilters(BaseModel):
    status: ApplicationStatus | None = None
    customer_name: str | None = None
    applicant: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


# Default customers


class DefaultCustomerFilters(BaseModel):
    customer_name: str | None = None
    severity: Severity | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
