import asyncio
import json
import re

import pytest
from starlette.testclient import TestClient

from palmwire.compiler.exceptions import ExpressionCompileError
from palmwire.core.hooks import action, global_state, script, state
from palmwire.runtime.app import PalmWire, humanize_slug


def counter(out):
    count = state(0)
    global_state("user", "ada")

    def increment(step):
        count.increment(step)

    action("increment", increment)
    out.write(f'<button onclick="increment(1)">{count}</button>')
    with script(target="body", attrs={"defer": True}):
        out.write("echo $booted;")


def about(out):
    global_state("user", "grace")
    with script(target="head"):
        out.write("echo $about;")
    out.write("<p>About</p>")


@pytest.fixture
def app(compiler) -> PalmWire:
    palm = PalmWire(compiler=compiler, title="Test")
    palm.view("/", "home", counter)
    palm.view("/about", "about", about, title="About us", meta={"description": "About page"})
    return palm


def test_full_page_contains_scripts_and_state(app):
    client = TestClient(app.app)
    response = client.get("/")

    assert response.status_code == 200
    html = response.text
    assert '<main id="palm-root" data-palm-current="home">' in html
    assert 'data-palm-component="cmp_1"' in html
    assert '<script defer="defer" data-palm-once="1" data-palm-script=' in html
    assert "console.log(booted);" in html

    state_blob = re.search(
        r"<script type=\"application/json\" data-palm-state>(.*?)</script>", html, re.S
    ).group(1)
    boot = json.loads(state_blob)
    assert boot[0]["id"] == "cmp_1"
    assert "increment" in boot[0]["actions"]

    global_blob = re.search(
        r"<script type=\"application/json\" data-palm-global>(.*?)</script>", html, re.S
    ).group(1)
    assert json.loads(global_blob) == {"user": "ada"}


def test_head_scripts_render_in_head(app):
    html = TestClient(app.app).get("/about").text
    head, body = html.split("</head>", 1)
    assert "console.log(about);" in head
    assert "console.log(about);" not in body
    assert "<title>About us</title>" in head
    assert '<meta name="description" content="About page">' in head


def test_each_request_starts_fresh(app):
    client = TestClient(app.app)
    first = client.get("/").text
    second = client.get("/").text
    assert 'data-palm-component="cmp_1"' in first
    assert 'data-palm-component="cmp_1"' in second
    assert second.count("console.log(booted);") == 1


def test_fragment_request_returns_json(app):
    response = TestClient(app.app).get("/", headers={"X-Palm-Request": "1"})

    data = response.json()
    assert data["slug"] == "home"
    assert data["routeMap"] == {"/": "home", "/about": "about"}
    assert data["payload"]["component"]["id"] == "cmp_1"
    assert [s["code"] for s in data["payload"]["scripts"]] == ["console.log(booted);"]


def test_preloaded_views_merge_global_state(compiler):
    palm = PalmWire(compiler=compiler, preload_views=True)
    palm.view("/", "home", counter)
    palm.view("/about", "about", about)

    page = palm.assemble("home")

    assert list(page.views) == ["home", "about"]
    assert page.context["globalState"] == {"user": "ada"}
    assert len(page.context["bootComponents"]) == 1
    assert page.context["bootComponents"][0]["id"] == "cmp_1"
    codes = [s.code for s in page.context["headScripts"] + page.context["bodyScripts"]]
    assert sorted(codes) == ["console.log(about);", "console.log(booted);"]


def test_preload_failure_becomes_placeholder(compiler, caplog):
    def broken(out):
        raise RuntimeError("db down")

    palm = PalmWire(compiler=compiler, preload_views=True)
    palm.view("/", "home", counter)
    palm.view("/broken", "broken", broken)

    page = palm.assemble("home")
    assert page.views["broken"]["_lazy"] is True
    assert "Failed to preload view broken" in caplog.text


def test_path_params_reach_renderer(compiler):
    palm = PalmWire(compiler=compiler)

    @palm.page("/users/{name}", "users.show")
    def show(out, name):
        out.write(f"<h1>{name}</h1>")

    response = TestClient(palm.app).get("/users/ada")
    assert "<h1>ada</h1>" in response.text
    assert "<title>Users · Show</title>" in response.text


def test_duplicate_slug_is_rejected(app):
    with pytest.raises(ValueError):
        app.view("/again", "home", counter)


def test_render_page_unknown_slug(app):
    with pytest.raises(KeyError):
        app.render_page("missing")


def test_compile_errors_propagate_without_debug(compiler):
    def bad(out):
        with script():
            out.write("syntax error")

    palm = PalmWire(compiler=compiler)
    palm.view("/", "home", bad)
    with pytest.raises(ExpressionCompileError):
        TestClient(palm.app).get("/")


def test_debug_mode_renders_compile_error_page(compiler):
    def bad(out):
        with script():
            out.write("syntax error")

    palm = PalmWire(compiler=compiler, debug=True)
    palm.view("/", "home", bad)

    response = TestClient(palm.app).get("/")
    assert response.status_code == 500
    assert "Inline Script Compile Error" in response.text
    assert "syntax error" in response.text


def test_debug_mode_renders_traceback_page(compiler):
    def bad(out):
        raise LookupError("no such thing")

    palm = PalmWire(compiler=compiler, debug=True)
    palm.view("/", "home", bad)

    response = TestClient(palm.app).get("/")
    assert response.status_code == 500
    assert "LookupError" in response.text
    assert "no such thing" in response.text


def test_custom_layout_from_templates_dir(tmp_path, compiler):
    (tmp_path / "layout.html").write_text(
        "<title>{{ title }}</title>{{ head_scripts_html | safe }}{{ content | safe }}"
    )
    palm = PalmWire(compiler=compiler, templates_dir=str(tmp_path))
    palm.view("/", "about", about)

    html = palm.render_page("about")
    assert html.startswith("<title>About</title><script")
    assert html.endswith("About</p></div>")


def test_humanize_slug():
    assert humanize_slug("blog.post") == "Blog · Post"


def test_renderers_run_off_the_event_loop(compiler):
    loops = []

    def view(out):
        try:
            loops.append(asyncio.get_running_loop())
        except RuntimeError:
            loops.append(None)
        out.write("<p>ok</p>")

    palm = PalmWire(compiler=compiler)
    palm.view("/", "home", view)

    response = TestClient(palm.app).get("/")
    assert response.status_code == 200
    assert loops == [None]
