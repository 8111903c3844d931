"""Tests for perch.app and the dispatcher pipeline, end to end via TestClient."""

from collections.abc import Mapping
from typing import Any

import pytest

from perch import App, AppConfig, Redirect, Response, View, g, get_request
from perch.errors import HTTPError, MethodNotAllowed, NotFound
from perch.templating import ViewNotFound
from perch.testing import TestClient


class _EchoRenderer:
    """Renders ``<view>|k=v,...`` so tests can see what was rendered."""

    def __init__(self, missing: frozenset[str] = frozenset()) -> None:
        self.missing = missing

    def render(self, view: str, context: Mapping[str, Any]) -> str:
        if view in self.missing:
            raise ViewNotFound(view)
        pairs = ",".join(f"{k}={context[k]}" for k in sorted(context))
        return f"{view}|{pairs}"


@pytest.fixture
def app() -> App:
    return App()


class TestRouting:
    def test_positional_params(self, app: App) -> None:
        @app.get("/users/{id}/posts/{slug}")
        def show(user_id, slug):
            return f"{user_id}:{slug}"

        with TestClient(app) as client:
            response = client.get("/users/42/posts/hello")
        assert response.status == 200
        assert response.text == "42:hello"

    def test_repeated_param_name_passes_every_value(self, app: App) -> None:
        app.get("/a/{x}/b/{x}", lambda first, second: f"{first}+{second}")

        with TestClient(app) as client:
            response = client.get("/a/1/b/2")
        assert response.status == 200
        assert response.text == "1+2"

    def test_first_registered_wins(self, app: App) -> None:
        app.get("/users/{id}", lambda user_id: f"param {user_id}")
        app.get("/users/me", lambda: "literal")

        with TestClient(app) as client:
            assert client.get("/users/me").text == "param me"

    def test_direct_registration_for_each_method(self, app: App) -> None:
        app.post("/items", lambda: "post")
        app.put("/items", lambda: "put")
        app.patch("/items", lambda: "patch")
        app.delete("/items", lambda: "delete")

        with TestClient(app) as client:
            token = client.csrf_token()
            assert client.post("/items", data={"csrf": token}).text == "post"
            assert client.put("/items").text == "put"
            assert client.patch("/items").text == "patch"
            assert client.delete("/items").text == "delete"

    def test_route_decorator_multiple_methods(self, app: App) -> None:
        @app.route("/both", methods=["GET", "PUT"])
        def both():
            return get_request().method

        with TestClient(app) as client:
            assert client.get("/both").text == "GET"
            assert client.put("/both").text == "PUT"

    def test_string_handler_redirects(self, app: App) -> None:
        app.get("/", "login")

        with TestClient(app) as client:
            response = client.get("/")
        assert response.status == 302
        assert response.header("Location") == "/login"

    def test_group_prefix_nests(self, app: App) -> None:
        with app.group("/admin"):
            app.get("/dashboard", lambda: "dash")
            with app.group("/users"):
                app.get("/{id}", lambda user_id: f"user {user_id}")
        app.get("/dashboard", lambda: "public")

        with TestClient(app) as client:
            assert client.get("/admin/dashboard").text == "dash"
            assert client.get("/admin/users/3").text == "user 3"
            assert client.get("/dashboard").text == "public"

    def test_registration_after_first_request_raises(self, app: App) -> None:
        app.get("/", lambda: "ok")
        with TestClient(app) as client:
            client.get("/")
        with pytest.raises(RuntimeError, match="Cannot modify"):
            app.get("/late", lambda: "late")


class TestDispatchStages:
    def test_unknown_method_is_405(self, app: App) -> None:
        app.get("/", lambda: "ok")

        with TestClient(app) as client:
            response = client.request("OPTIONS", "/")
        assert response.status == 405
        assert response.text == "405 Method Not Allowed"
        assert response.header("Allow") == "DELETE, GET, PATCH, POST, PUT"

    def test_405_precedes_routing(self, app: App) -> None:
        with TestClient(app) as client:
            assert client.request("HEAD", "/nothing-here").status == 405

    def test_unmatched_path_is_404(self, app: App) -> None:
        app.get("/", lambda: "ok")

        with TestClient(app) as client:
            response = client.get("/missing")
        assert response.status == 404
        assert response.text == "404 Not Found"

    def test_404_renders_not_found_view(self) -> None:
        app = App(AppConfig(not_found_view="partials/404.html"), renderer=_EchoRenderer())

        with TestClient(app) as client:
            response = client.get("/missing")
        assert response.status == 404
        assert response.text == "partials/404.html|path=/missing"

    def test_404_falls_back_when_view_missing(self) -> None:
        renderer = _EchoRenderer(missing=frozenset({"partials/404.html"}))
        app = App(renderer=renderer)

        with TestClient(app) as client:
            response = client.get("/missing")
        assert response.status == 404
        assert response.text == "404 Not Found"

    def test_404_custom_handler(self, app: App) -> None:
        @app.error(404)
        def not_found(request):
            return f"nothing at {request.path}"

        with TestClient(app) as client:
            response = client.get("/gone")
        assert response.status == 404
        assert response.text == "nothing at /gone"

    def test_unknown_method_skips_middleware(self, app: App) -> None:
        calls: list[str] = []

        def mw(params, next):
            calls.append("mw")
            return next()

        app.add_middleware(mw)
        with TestClient(app) as client:
            client.request("CONNECT", "/")
        assert calls == []


class TestCsrf:
    def test_post_without_token_is_403(self, app: App) -> None:
        called: list[bool] = []

        @app.post("/items")
        def create():
            called.append(True)
            return "created"

        with TestClient(app) as client:
            client.csrf_token()
            response = client.post("/items", data={"name": "x"})
        assert response.status == 403
        assert response.text == "Invalid CSRF token"
        assert called == []

    def test_post_with_wrong_token_is_403(self, app: App) -> None:
        app.post("/items", lambda: "created")

        with TestClient(app) as client:
            client.csrf_token()
            response = client.post("/items", data={"csrf": "nope"})
        assert response.status == 403

    def test_post_without_session_token_is_403(self, app: App) -> None:
        app.post("/items", lambda: "created")

        with TestClient(app) as client:
            response = client.post("/items", data={"csrf": "anything"})
        assert response.status == 403

    def test_post_with_matching_token_reaches_handler(self, app: App) -> None:
        app.post("/items", lambda: "created")

        with TestClient(app) as client:
            token = client.csrf_token()
            response = client.post("/items", data={"csrf": token})
        assert response.status == 200
        assert response.text == "created"

    def test_other_mutating_methods_not_checked(self, app: App) -> None:
        app.put("/items", lambda: "updated")
        app.delete("/items", lambda: "deleted")

        with TestClient(app) as client:
            assert client.put("/items", data={"x": "1"}).status == 200
            assert client.delete("/items").status == 200

    def test_csrf_checked_before_routing(self, app: App) -> None:
        with TestClient(app) as client:
            assert client.post("/no-such-route").status == 403

    def test_csrf_field_markup(self, app: App) -> None:
        field = app.csrf_field()
        token = app.session.get("csrf")
        assert len(token) == 100
        assert field == f'<input type="hidden" name="csrf" value="{token}">'
        # Token is created once and reused.
        assert app.csrf_field() == field


class TestStaticFiles:
    def test_static_precedes_routing(self, tmp_path) -> None:
        (tmp_path / "style.css").write_text("body {}")
        app = App(AppConfig(static_dir=tmp_path))
        app.get("/style.css", lambda: "route")

        with TestClient(app) as client:
            response = client.get("/style.css")
        assert response.status == 200
        assert response.body_bytes == b"body {}"
        assert response.content_type == "text/css"

    def test_static_serves_any_method(self, tmp_path) -> None:
        (tmp_path / "a.txt").write_text("hi")
        app = App(AppConfig(static_dir=tmp_path))

        with TestClient(app) as client:
            assert client.request("OPTIONS", "/a.txt").status == 200
            assert client.post("/a.txt").status == 200

    def test_traversal_falls_through_to_routing(self, tmp_path) -> None:
        root = tmp_path / "public"
        root.mkdir()
        (tmp_path / "secret.txt").write_text("secret")
        app = App(AppConfig(static_dir=root))

        with TestClient(app) as client:
            response = client.get("/../secret.txt")
        assert response.status == 404
        assert b"secret" not in response.body_bytes

    def test_directory_falls_through(self, tmp_path) -> None:
        (tmp_path / "sub").mkdir()
        app = App(AppConfig(static_dir=tmp_path))
        app.get("/sub", lambda: "route")

        with TestClient(app) as client:
            assert client.get("/sub").text == "route"


class TestMiddleware:
    def test_global_then_route_middleware(self, app: App) -> None:
        log: list[str] = []

        def outer(params, next):
            log.append("global")
            return next()

        def inner(params, next):
            log.append(f"route {params['id']}")
            return next()

        app.add_middleware(outer)

        @app.get("/items/{id}", middleware=[inner])
        def show(item_id):
            log.append("handler")
            return item_id

        with TestClient(app) as client:
            assert client.get("/items/5").text == "5"
        assert log == ["global", "route 5", "handler"]

    def test_short_circuit(self, app: App) -> None:
        def guard(params, next):
            return Redirect("/login").to_response()

        app.add_middleware(guard)
        app.get("/secret", lambda: "secret")

        with TestClient(app) as client:
            response = client.get("/secret")
        assert response.status == 302
        assert response.header("Location") == "/login"

    def test_path_scoped_middleware(self, app: App) -> None:
        log: list[str] = []

        def audit(params, next):
            log.append(get_request().method)
            return next()

        app.add_middleware(audit, routes=["/admin"])
        app.get("/admin", lambda: "admin")
        app.put("/admin", lambda: "admin-put")
        app.get("/public", lambda: "public")

        with TestClient(app) as client:
            client.get("/admin")
            client.put("/admin")
            client.get("/public")
        assert log == ["GET", "PUT"]

    def test_g_is_request_scoped(self, app: App) -> None:
        def set_user(params, next):
            g.user = "ada"
            return next()

        app.add_middleware(set_user, routes=["/me"])
        app.get("/me", lambda: g.user)
        app.get("/anon", lambda: g.get("user", "nobody"))

        with TestClient(app) as client:
            assert client.get("/me").text == "ada"
            assert client.get("/anon").text == "nobody"


class TestNegotiation:
    def test_dict_becomes_json(self, app: App) -> None:
        app.get("/data", lambda: {"name": "Zoë", "n": 1})

        with TestClient(app) as client:
            response = client.get("/data")
        assert response.content_type == "application/json; charset=utf-8"
        assert "Zoë" in response.text
        assert response.json() == {"name": "Zoë", "n": 1}

    def test_tuple_sets_status(self, app: App) -> None:
        app.get("/made", lambda: ("made", 201))

        with TestClient(app) as client:
            response = client.get("/made")
        assert response.status == 201
        assert response.text == "made"

    def test_none_is_empty_200(self, app: App) -> None:
        app.get("/nothing", lambda: None)

        with TestClient(app) as client:
            response = client.get("/nothing")
        assert response.status == 200
        assert response.text == ""

    def test_bytes_octet_stream(self, app: App) -> None:
        app.get("/raw", lambda: b"\x00\x01")

        with TestClient(app) as client:
            assert client.get("/raw").content_type == "application/octet-stream"

    def test_view_rendered(self) -> None:
        app = App(renderer=_EchoRenderer())
        app.get("/hello/{name}", lambda name: View("hello.html", name=name))

        with TestClient(app) as client:
            assert client.get("/hello/ada").text == "hello.html|name=ada"

    def test_send_html_partial_for_htmx(self) -> None:
        app = App(renderer=_EchoRenderer())
        app.get("/list", lambda: app.send_html("partials/list.html", items=3))

        with TestClient(app) as client:
            assert client.fragment("/list").text == "partials/list.html|items=3"
            full = client.get("/list").text
        assert full == "index.html|items=3,view=partials/list.html"

    def test_send_json(self, app: App) -> None:
        app.get("/j", lambda: app.send_json(["ü"], 202))

        with TestClient(app) as client:
            response = client.get("/j")
        assert response.status == 202
        assert response.text == '["ü"]'

    def test_redirect_with_message(self, app: App) -> None:
        app.get("/save", lambda: app.redirect_with_message("/done", "Saved"))

        with TestClient(app) as client:
            response = client.get("/save")
        assert response.status == 302
        assert response.header("Location") == "/done"
        assert app.session.get("msg") == "Saved"


class TestErrors:
    def test_http_error_becomes_response(self, app: App) -> None:
        def handler():
            raise HTTPError(status=418, detail="teapot")

        app.get("/tea", handler)
        with TestClient(app) as client:
            response = client.get("/tea")
        assert response.status == 418
        assert response.text == "teapot"

    def test_not_found_raised_by_handler(self, app: App) -> None:
        def handler(item_id):
            raise NotFound(f"no item {item_id}")

        app.get("/items/{id}", handler)
        with TestClient(app) as client:
            response = client.get("/items/9")
        assert response.status == 404
        assert response.text == "no item 9"

    def test_unhandled_exception_is_500_without_detail(self, app: App) -> None:
        def boom():
            raise RuntimeError("database password is hunter2")

        app.get("/boom", boom)
        with TestClient(app) as client:
            response = client.get("/boom")
        assert response.status == 500
        assert response.text == "Internal Server Error"
        assert "hunter2" not in response.text

    def test_debug_500_includes_detail(self) -> None:
        app = App(AppConfig(debug=True))

        def boom():
            raise RuntimeError("kaboom")

        app.get("/boom", boom)
        with TestClient(app) as client:
            response = client.get("/boom")
        assert response.status == 500
        assert "RuntimeError: kaboom" in response.text

    def test_custom_500_handler(self, app: App) -> None:
        @app.error(500)
        def oops(request, exc):
            return f"sorry: {type(exc).__name__}"

        app.get("/boom", lambda: 1 / 0)
        with TestClient(app) as client:
            response = client.get("/boom")
        assert response.status == 500
        assert response.text == "sorry: ZeroDivisionError"

    def test_custom_handler_keeps_exception_headers(self, app: App) -> None:
        @app.error(405)
        def not_allowed():
            return "nope"

        def handler():
            raise MethodNotAllowed(frozenset({"GET", "POST"}))

        app.get("/m", handler)
        with TestClient(app) as client:
            response = client.get("/m")
        assert response.status == 405
        assert response.text == "nope"
        assert response.header("Allow") == "GET, POST"

    def test_custom_handler_header_wins(self, app: App) -> None:
        @app.error(MethodNotAllowed)
        def not_allowed():
            return Response("custom", status=405).with_header("Allow", "GET")

        def handler():
            raise MethodNotAllowed(frozenset({"GET", "POST"}))

        app.get("/m", handler)
        with TestClient(app) as client:
            response = client.get("/m")
        assert response.header("Allow") == "GET"
        assert len([h for h in response.headers if h[0] == "Allow"]) == 1

    def test_handler_response_passthrough(self, app: App) -> None:
        app.get("/r", lambda: Response("custom", status=202).with_header("X-A", "b"))
        with TestClient(app) as client:
            response = client.get("/r")
        assert response.status == 202
        assert response.header("x-a") == "b"


class TestDatabaseWiring:
    def test_db_from_url(self, tmp_path) -> None:
        app = App(db=f"sqlite:///{tmp_path / 'app.db'}")
        app.db.run_script("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")
        app.db.write_record("notes", {"body": "hello"})

        @app.get("/notes/{id}")
        def show(note_id):
            rows = app.db.read_table("notes", where="id = ?", params=[int(note_id)])
            return rows[0] if rows else ("missing", 404)

        with TestClient(app) as client:
            assert client.get("/notes/1").json() == {"id": 1, "body": "hello"}
            assert client.get("/notes/2").status == 404

    def test_db_from_config(self, tmp_path) -> None:
        app = App(AppConfig(database_url=f"sqlite:///{tmp_path / 'c.db'}"))
        assert app.db.config.url.endswith("c.db")

    def test_no_db_raises(self, app: App) -> None:
        with pytest.raises(RuntimeError, match="No database configured"):
            _ = app.db
