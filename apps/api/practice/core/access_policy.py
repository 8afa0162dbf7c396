"""Office access policy - the single tenant authorization decision point.

Two entry points:
- authorize(): write paths. Returns a Decision, never raises.
- resolve_effective_office_filter(): read paths. Returns the OfficeScope that
  every list/read query must apply. OfficeScope cannot be built any other way,
  so there is no route to an unscoped query that skips this function.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol, TypeVar
from uuid import UUID

from practice.core.errors import AuthorizationError, InvariantViolationError
from practice.core.structured_logging import build_log_context

logger = logging.getLogger(__name__)

Q = TypeVar("Q")


class OfficeUser(Protocol):
    """Authenticated user as supplied by the session layer."""

    id: UUID
    office_id: UUID | None
    can_view_all_offices: bool


class OfficeOperation(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    ASSIGN = "assign"
    COMPLETE = "complete"
    ANNOTATE = "annotate"
    ADMINISTER = "administer"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


def authorize(
    user: OfficeUser,
    target_office_id: UUID | None,
    operation: OfficeOperation,
) -> Decision:
    """
    Decide whether user may perform operation on a record in target_office_id.

    Allow when the user can view all offices, or the user's office equals the
    target office. A record without an office is only reachable by
    cross-office users.
    """
    if user.can_view_all_offices:
        return Decision.ALLOW
    if user.office_id is not None and user.office_id == target_office_id:
        return Decision.ALLOW

    logger.warning(
        "Office access denied",
        extra={
            **build_log_context(user_id=user.id, office_id=user.office_id),
            "target_office_id": str(target_office_id) if target_office_id else None,
            "operation": operation.value,
        },
    )
    return Decision.DENY


def ensure_authorized(
    user: OfficeUser,
    target_office_id: UUID | None,
    operation: OfficeOperation,
) -> None:
    """Raise AuthorizationError unless authorize() allows the operation."""
    if not authorize(user, target_office_id, operation).allowed:
        raise AuthorizationError(
            f"You do not have access to records of this office ({operation.value})"
        )


_SCOPE_TOKEN = object()


class OfficeScope:
    """
    Effective office filter for a read.

    office_id=None means "all offices" and only exists for users with
    cross-office visibility who did not ask for a specific office.
    """

    __slots__ = ("_office_id",)

    def __init__(self, office_id: UUID | None, *, _token: object = None):
        if _token is not _SCOPE_TOKEN:
            raise TypeError(
                "OfficeScope is created by resolve_effective_office_filter() only"
            )
        self._office_id = office_id

    @property
    def office_id(self) -> UUID | None:
        return self._office_id

    @property
    def is_all_offices(self) -> bool:
        return self._office_id is None

    def allows(self, office_id: UUID | None) -> bool:
        """True when a record in office_id is visible within this scope."""
        return self.is_all_offices or (office_id is not None and office_id == self._office_id)

    def apply(self, query: Q, column) -> Q:
        """Restrict a select()/Query to this scope via its office_id column."""
        if self.is_all_offices:
            return query
        return query.where(column == self._office_id)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, OfficeScope) and other._office_id == self._office_id

    def __hash__(self) -> int:
        return hash(self._office_id)

    def __repr__(self) -> str:
        return "OfficeScope(all)" if self.is_all_offices else f"OfficeScope({self._office_id})"


def resolve_effective_office_filter(
    user: OfficeUser,
    requested_office_id: UUID | None = None,
) -> OfficeScope:
    """
    Compute the office filter a read must use.

    - Restricted users are pinned to their own office, whatever they asked for.
    - Cross-office users get the requested office, or all offices.

    Raises:
        InvariantViolationError: restricted user without an office affiliation
    """
    if not user.can_view_all_offices:
        if user.office_id is None:
            logger.error(
                "Restricted user has no office affiliation",
                extra={
                    **build_log_context(user_id=user.id),
                    "event": "tenancy_invariant_violation",
                },
            )
            raise InvariantViolationError(
                f"User {user.id} has no office and cannot view all offices"
            )
        if requested_office_id is not None and requested_office_id != user.office_id:
            logger.info(
                "Requested office overridden by user scope",
                extra=build_log_context(user_id=user.id, office_id=user.office_id),
            )
        return OfficeScope(user.office_id, _token=_SCOPE_TOKEN)

    return OfficeScope(requested_office_id, _token=_SCOPE_TOKEN)
