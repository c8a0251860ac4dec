from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel
from sqlalchemy import false
from sqlalchemy.orm import Query

from default_registry.models import Role

Q = TypeVar("Q", bound=Query[Any])


class ScopeKind(StrEnum):
    #: No filter.
    ALL = "all"
    #: Only records whose applicant is the caller.
    OWN = "own"
    #: No workflow records. The basic (reporting) view is served elsewhere.
    BASIC = "basic"


class DataAccessScope(BaseModel):
    kind: ScopeKind
    username: str | None = None

    def apply(self, query: Q, applicant_column: Any) -> Q:
        """
        Restrict a query to the records visible to the caller.

        :param query: The query.
        :param applicant_column: The column holding the username of the record's applicant.
        :return: The restricted query.
        """
        match self.kind:
            case ScopeKind.ALL:
                return query
            case ScopeKind.OWN:
                return query.filter(applicant_column == self.username)
            case ScopeKind.BASIC:
                return query.filter(false())
            case _:
                raise NotImplementedError

    def applicant_filter(self, applicant: str | None) -> str | None:
        """Return the applicant by which to filter a list, given the requested applicant."""
        if self.kind == ScopeKind.OWN:
            return self.username
        return applicant

    def can_see(self, applicant: str) -> bool:
        match self.kind:
            case ScopeKind.ALL:
                return True
            case ScopeKind.OWN:
                return applicant == self.username
            case _:
                return False


class RequestContext(BaseModel):
    """The caller of a request, as passed to every workflow function that reads scoped records."""

    username: str
    role: Role
    scope: DataAccessScope


def resolve_scope(role: Role | str, username: str) -> DataAccessScope:
    if role in (Role.ADMIN, Role.AUDITOR):
        return DataAccessScope(kind=ScopeKind.ALL)
    if role == Role.OPERATOR:
        return DataAccessScope(kind=ScopeKind.OWN, username=username)
    return DataAccessScope(kind=ScopeKind.BASIC)


def build_context(username: str, role: Role) -> RequestContext:
    return RequestContext(username=username, role=role, scope=resolve_scope(role, username))
