"""Tests for the office access policy."""

import logging
import uuid
from types import SimpleNamespace

import pytest

from practice.core.access_policy import (
    Decision,
    OfficeOperation,
    OfficeScope,
    authorize,
    ensure_authorized,
    resolve_effective_office_filter,
)
from practice.core.errors import AuthorizationError, InvariantViolationError


def _user(office_id=None, can_view_all_offices=False):
    return SimpleNamespace(
        id=uuid.uuid4(), office_id=office_id, can_view_all_offices=can_view_all_offices
    )


OFFICE_A = uuid.uuid4()
OFFICE_B = uuid.uuid4()


def test_same_office_is_allowed():
    user = _user(OFFICE_A)
    assert authorize(user, OFFICE_A, OfficeOperation.UPDATE) is Decision.ALLOW


def test_other_office_is_denied_for_every_operation():
    user = _user(OFFICE_A)
    for operation in OfficeOperation:
        assert authorize(user, OFFICE_B, operation) is Decision.DENY


def test_cross_office_user_is_allowed_anywhere():
    user = _user(OFFICE_A, can_view_all_offices=True)
    assert authorize(user, OFFICE_B, OfficeOperation.COMPLETE).allowed
    assert authorize(user, None, OfficeOperation.READ).allowed


def test_record_without_office_is_denied_to_restricted_user():
    assert authorize(_user(OFFICE_A), None, OfficeOperation.READ) is Decision.DENY


def test_user_without_office_is_denied():
    assert authorize(_user(None), OFFICE_A, OfficeOperation.READ) is Decision.DENY
    assert authorize(_user(None), None, OfficeOperation.READ) is Decision.DENY


def test_denial_is_logged_without_raising(caplog):
    with caplog.at_level(logging.WARNING, logger="practice.core.access_policy"):
        decision = authorize(_user(OFFICE_A), OFFICE_B, OfficeOperation.ASSIGN)

    assert decision is Decision.DENY
    record = caplog.records[-1]
    assert record.operation == "assign"
    assert record.target_office_id == str(OFFICE_B)


def test_ensure_authorized_raises_on_deny():
    with pytest.raises(AuthorizationError):
        ensure_authorized(_user(OFFICE_A), OFFICE_B, OfficeOperation.CREATE)
    ensure_authorized(_user(OFFICE_A), OFFICE_A, OfficeOperation.CREATE)


class TestEffectiveOfficeFilter:
    def test_restricted_user_is_pinned_to_own_office(self):
        user = _user(OFFICE_A)
        assert resolve_effective_office_filter(user).office_id == OFFICE_A
        # Asking for another office is ignored
        assert resolve_effective_office_filter(user, OFFICE_B).office_id == OFFICE_A

    def test_restricted_user_without_office_fails_closed(self):
        with pytest.raises(InvariantViolationError):
            resolve_effective_office_filter(_user(None))

    def test_cross_office_user_defaults_to_all_offices(self):
        scope = resolve_effective_office_filter(_user(OFFICE_A, can_view_all_offices=True))
        assert scope.is_all_offices
        assert scope.allows(OFFICE_B)
        assert scope.allows(None)

    def test_cross_office_user_can_narrow_to_one_office(self):
        user = _user(None, can_view_all_offices=True)
        scope = resolve_effective_office_filter(user, OFFICE_B)
        assert scope.office_id == OFFICE_B
        assert scope.allows(OFFICE_B)
        assert not scope.allows(OFFICE_A)

    def test_scope_cannot_be_built_directly(self):
        with pytest.raises(TypeError):
            OfficeScope(OFFICE_A)

    def test_scopes_compare_by_office(self):
        a1 = resolve_effective_office_filter(_user(OFFICE_A))
        a2 = resolve_effective_office_filter(_user(OFFICE_A))
        assert a1 == a2
        assert hash(a1) == hash(a2)
        assert a1 != resolve_effective_office_filter(_user(OFFICE_B))
