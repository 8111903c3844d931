"""Tests for perch.context — request ContextVar and the g namespace."""

import pytest

from perch.app import App
from perch.context import g, get_request
from perch.http.request import Request


class TestContext:
    def test_no_request_outside_dispatch(self) -> None:
        with pytest.raises(LookupError):
            get_request()

    def test_request_visible_to_handler(self) -> None:
        app = App()
        app.get("/who", lambda: get_request().path)
        assert app(Request.build("GET", "/who")).text == "/who"
        with pytest.raises(LookupError):
            get_request()

    def test_g_shared_between_middleware_and_handler(self) -> None:
        app = App()

        def tag(params, next):
            g.user = "ada"
            return next()

        app.get("/me", lambda: g.user, middleware=[tag])
        assert app(Request.build("GET", "/me")).text == "ada"

    def test_g_reset_after_request(self) -> None:
        app = App()

        def handler() -> str:
            g.seen = True
            return "ok"

        app.get("/", handler)
        app(Request.build("GET", "/"))
        assert g.get("seen") is None
        with pytest.raises(AttributeError):
            _ = g.seen
