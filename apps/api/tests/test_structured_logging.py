"""Tests for structured logging helpers."""

import uuid

from practice.core.structured_logging import build_log_context


def test_build_log_context_includes_only_provided_fields():
    context = build_log_context(
        user_id="user-1",
        office_id="office-1",
        request_id="req-1",
        route="/patients",
        method="GET",
    )

    assert context == {
        "user_id": "user-1",
        "office_id": "office-1",
        "request_id": "req-1",
        "route": "/patients",
        "method": "GET",
    }


def test_build_log_context_ignores_empty_fields():
    context = build_log_context(
        user_id="",
        office_id=None,
        request_id="req-1",
    )

    assert context == {"request_id": "req-1"}


def test_build_log_context_stringifies_uuids():
    office_id = uuid.uuid4()
    assert build_log_context(office_id=office_id) == {"office_id": str(office_id)}
