import secrets
import string
import time
from enum import Enum
from typing import Any, Callable, TypeVar

from fastapi import HTTPException, status
from sqlalchemy.orm import Query

from default_registry import parsers, serializers
from default_registry.i18n import _

T = TypeVar("T")
M = TypeVar("M")

ID_ALPHABET = string.ascii_uppercase + string.digits


# https://fastapi.tiangolo.com/tutorial/path-operation-configuration/#tags-with-enums
class Tags(Enum):
    default_applications = "default applications"
    default_customers = "default customers"
    default_reasons = "default reasons"
    meta = "meta"
    renewals = "renewals"


def _generate_id(prefix: str) -> str:
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(ID_ALPHABET) for _ in range(4))
    return f"{prefix}{millis}{suffix}"


def generate_application_id() -> str:
    """
    Generate the externally visible identifier of a default application.

    :return: "APP", followed by the current epoch time in milliseconds and 4 random uppercase alphanumerics.
    """
    return _generate_id("APP")


def generate_renewal_id() -> str:
    """
    Generate the externally visible identifier of a renewal application.

    :return: "REN", followed by the current epoch time in milliseconds and 4 random uppercase alphanumerics.
    """
    return _generate_id("REN")


def get_page(query: "Query[M]", pagination: parsers.Pagination) -> tuple[int, list[M]]:
    """
    Count the query's rows, and return the count and the rows of the requested page.
    """
    total = query.order_by(None).count()
    return total, query.offset(pagination.offset).limit(pagination.size).all()


def paginate(
    query: "Query[M]", pagination: parsers.Pagination, serialize: Callable[[M], T]
) -> serializers.Page[T]:
    """
    Count the query's rows, and serialize the rows of the requested page.

    :param query: The ordered query.
    :param pagination: The page number and page size.
    :param serialize: The function that serializes a row.
    :return: The page.
    """
    total, rows = get_page(query, pagination)
    return serializers.Page(
        total=total,
        page=pagination.page,
        size=pagination.size,
        items=[serialize(row) for row in rows],
    )


def ok(data: Any = None, message: str | None = None, code: int = status.HTTP_200_OK) -> serializers.ApiResponse[Any]:
    return serializers.ApiResponse(code=code, message=message or _("success"), data=data)


def not_found(model_name: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=_("%(model_name)s not found", model_name=model_name),
    )
