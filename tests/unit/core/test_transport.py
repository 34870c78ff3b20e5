"""Unit tests for the transport helpers."""

from __future__ import annotations

import pytest

from oidc_gate.core.transport import (
    SC_FOUND,
    SC_SEE_OTHER,
    DeferredResponse,
    add_paths,
    is_form_encoded,
    parse_http_version,
    redirect_status,
)


@pytest.mark.parametrize(
    ("raw", "parsed"),
    [
        ("1.1", (1, 1)),
        ("HTTP/1.0", (1, 0)),
        ("http/1.1", (1, 1)),
        ("2", (2, 0)),
        ("", (1, 0)),
        (None, (1, 0)),
        ("garbage", (1, 0)),
    ],
)
def test_parse_http_version(raw, parsed) -> None:
    assert parse_http_version(raw) == parsed


@pytest.mark.parametrize(
    ("version", "status"),
    [("1.0", SC_FOUND), ("0.9", SC_FOUND), ("1.1", SC_SEE_OTHER), ("2", SC_SEE_OTHER), ("3", SC_SEE_OTHER)],
)
def test_redirect_status(version, status) -> None:
    assert redirect_status(version) == status


def test_is_form_encoded() -> None:
    assert is_form_encoded("application/x-www-form-urlencoded")
    assert is_form_encoded("Application/X-WWW-Form-Urlencoded; charset=UTF-8")
    assert not is_form_encoded("multipart/form-data; boundary=x")
    assert not is_form_encoded(None)


@pytest.mark.parametrize(
    ("base", "path", "joined"),
    [
        ("", "/error", "/error"),
        ("", "", "/"),
        ("/app", "/error", "/app/error"),
        ("/app/", "/error", "/app/error"),
        ("/app", "error", "/app/error"),
        ("/app", "", "/app"),
    ],
)
def test_add_paths(base, path, joined) -> None:
    assert add_paths(base, path) == joined


def test_deferred_response_records_without_sending() -> None:
    resp = DeferredResponse()
    assert resp.deferred is True
    assert resp.committed is False
    resp.send_redirect(303, "/x")
    assert resp.committed is True
    assert resp.location == "/x"
