from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from default_registry import dependencies, parsers, serializers, util
from default_registry.access import RequestContext
from default_registry.db import get_db
from default_registry.models import Role
from default_registry.workflows import customers

router = APIRouter()


@router.get(
    "/default-customers",
    tags=[util.Tags.default_customers],
)
async def get_default_customers(
    filters: parsers.DefaultCustomerFilters = Depends(),
    pagination: parsers.Pagination = Depends(dependencies.get_pagination),
    context: RequestContext = Depends(dependencies.get_request_context),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.Page[serializers.DefaultCustomerRead]]:
    """
    Get a page of the customers currently in default, most recently approved first. Every authenticated role sees the
    whole registry.
    """
    return util.ok(customers.get_default_customers(session, filters, pagination))


@router.get(
    "/default-customers/renewable",
    tags=[util.Tags.default_customers],
)
async def get_renewable_customers(
    customer_name: str | None = None,
    pagination: parsers.Pagination = Depends(dependencies.get_pagination),
    context: RequestContext = Depends(dependencies.require_roles(Role.ADMIN, Role.OPERATOR)),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.Page[serializers.DefaultCustomerRead]]:
    """
    Get a page of the customers in default that have no pending renewal application.
    """
    return util.ok(customers.get_renewable_customers(session, pagination, customer_name))


@router.get(
    "/default-customers/{customer_id}",
    tags=[util.Tags.default_customers],
)
async def get_default_customer(
    customer_id: int,
    context: RequestContext = Depends(dependencies.get_request_context),
    session: Session = Depends(get_db),
) -> serializers.ApiResponse[serializers.DefaultCustomerRead]:
    if default_customer := customers.get_default_customer(session, context, customer_id):
        return util.ok(default_customer)
    raise util.not_found("DefaultCustomer")
