"""Tests for perch.middleware.csrf — session-backed token checks."""

from perch.http.request import Request
from perch.middleware.csrf import (
    CSRFConfig,
    csrf_field,
    ensure_csrf_token,
    is_csrf_valid,
    requires_csrf,
)
from perch.session import Session

_FORM = {"content-type": "application/x-www-form-urlencoded"}


def _post(body: str, method: str = "POST") -> Request:
    return Request.build(method, "/submit", body=body, headers=_FORM)


class TestToken:
    def test_token_is_hex_of_configured_length(self) -> None:
        session = Session()
        token = ensure_csrf_token(session)
        assert len(token) == 100
        int(token, 16)

    def test_token_created_once(self) -> None:
        session = Session()
        assert ensure_csrf_token(session) == ensure_csrf_token(session)

    def test_custom_config(self) -> None:
        session = Session()
        cfg = CSRFConfig(session_key="_tok", token_bytes=8)
        token = ensure_csrf_token(session, cfg)
        assert len(token) == 16
        assert session.get("_tok") == token

    def test_field_escapes_name(self) -> None:
        session = Session()
        field = csrf_field(session, CSRFConfig(field_name='a"b'))
        assert 'name="a&quot;b"' in field


class TestValidation:
    def test_matching_token(self) -> None:
        session = Session()
        token = ensure_csrf_token(session)
        assert is_csrf_valid(_post(f"csrf={token}"), session)

    def test_mismatch(self) -> None:
        session = Session()
        ensure_csrf_token(session)
        assert not is_csrf_valid(_post("csrf=wrong"), session)

    def test_missing_form_field(self) -> None:
        session = Session()
        ensure_csrf_token(session)
        assert not is_csrf_valid(_post("other=1"), session)

    def test_missing_session_token(self) -> None:
        assert not is_csrf_valid(_post("csrf=abc"), Session())

    def test_empty_submitted_token_never_matches_empty_session(self) -> None:
        session = Session({"csrf": ""})
        assert not is_csrf_valid(_post("csrf="), session)

    def test_non_ascii_submission_is_rejected_not_raised(self) -> None:
        session = Session()
        ensure_csrf_token(session)
        assert not is_csrf_valid(_post("csrf=%C3%BC"), session)


class TestRequiresCsrf:
    def test_only_post_by_default(self) -> None:
        assert requires_csrf(_post("", "POST"))
        for method in ("GET", "PUT", "PATCH", "DELETE"):
            assert not requires_csrf(_post("", method))

    def test_widened_methods(self) -> None:
        cfg = CSRFConfig(protected_methods=frozenset({"POST", "DELETE"}))
        assert requires_csrf(_post("", "DELETE"), cfg)
