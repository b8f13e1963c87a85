"""Starlette application that serves registered views as hydrated pages."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import Route

from palmwire.compiler.cache import CompileCache
from palmwire.compiler.expression import ExpressionCompiler
from palmwire.runtime.error_renderer import create_environment
from palmwire.runtime.layout import (
    build_context,
    json_for_script,
    merge_scripts,
    render_scripts,
)
from palmwire.runtime.manager import ComponentManager, RenderResult

log = logging.getLogger(__name__)

PALM_REQUEST_HEADER = "x-palm-request"


@dataclass
class ViewRoute:
    path: str
    slug: str
    renderer: Callable[..., Any]
    title: Optional[str] = None
    meta: Dict[str, str] = field(default_factory=dict)


@dataclass
class AssembledPage:
    slug: str
    title: str
    meta: Dict[str, str]
    views: Dict[str, Any]
    context: Dict[str, Any]
    html: str = ""


def humanize_slug(slug: str) -> str:
    return " · ".join(part[:1].upper() + part[1:] for part in slug.split("."))


class PalmWire:
    """Serves views whose components hydrate on the client.

    Every request gets its own ``ComponentManager`` (script registry, id
    counter, output buffer). Only the compile cache is shared between
    requests.
    """

    def __init__(
        self,
        debug: bool = False,
        compiler: Optional[ExpressionCompiler] = None,
        title: str = "Palm",
        layout: str = "layout.html",
        templates_dir: Optional[str] = None,
        preload_views: bool = False,
        client_script_url: Optional[str] = None,
        compile_cache_size: int = 512,
    ) -> None:
        self.debug = debug
        self.compiler = compiler
        self.title = title
        self.layout = layout
        self.templates_dir = templates_dir
        self.preload_views = preload_views
        self.client_script_url = client_script_url
        self.compile_cache = CompileCache(compile_cache_size)
        self.templates = create_environment(templates_dir)
        self.views: Dict[str, ViewRoute] = {}

        middleware = []
        if debug:
            from palmwire.runtime.debug import DevErrorMiddleware

            middleware.append(Middleware(DevErrorMiddleware))

        self.app = Starlette(debug=debug, middleware=middleware)
        self.app.state.palmwire = self
        self.app.state.debug = debug
        self.app.state.preload_views = preload_views

    def view(
        self,
        path: str,
        slug: str,
        renderer: Callable[..., Any],
        title: Optional[str] = None,
        meta: Optional[Dict[str, str]] = None,
    ) -> ViewRoute:
        """Register ``renderer`` as the view ``slug`` served at ``path``."""
        if slug in self.views:
            raise ValueError(f"View '{slug}' is already registered")

        route = ViewRoute(path, slug, renderer, title, dict(meta or {}))
        self.views[slug] = route

        async def endpoint(request: Request) -> Response:
            return await self._handle(request, route)

        self.app.router.routes.append(Route(path, endpoint, methods=["GET"], name=slug))
        return route

    def page(
        self, path: str, slug: str, title: Optional[str] = None
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of ``view``."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.view(path, slug, fn, title=title)
            return fn

        return decorator

    @property
    def route_map(self) -> Dict[str, str]:
        return {route.path: route.slug for route in self.views.values()}

    def create_manager(self) -> ComponentManager:
        return ComponentManager(self.compiler, self.compile_cache)

    def assemble(self, slug: str, **params: Any) -> AssembledPage:
        """Render ``slug`` (and preloaded views) and merge them into one page."""
        if slug not in self.views:
            raise KeyError(f"View '{slug}' not found")

        route = self.views[slug]
        manager = self.create_manager()
        views: Dict[str, Any] = {}
        collected: List[List[Any]] = []

        result = manager.render(route.renderer, **params)
        views[slug] = result
        collected.append(result.scripts)

        if self.preload_views:
            for other_slug, other in self.views.items():
                if other_slug == slug:
                    continue
                views[other_slug] = self._preload(manager, other)
                if isinstance(views[other_slug], RenderResult):
                    collected.append(views[other_slug].scripts)

        # Scripts registered outside any component (e.g. by the layout)
        collected.append(manager.flush())

        scripts = merge_scripts(*collected)
        context = build_context(views, slug, scripts)
        return AssembledPage(
            slug=slug,
            title=route.title or humanize_slug(slug),
            meta=route.meta,
            views=views,
            context=context,
            html=result.html,
        )

    def _preload(self, manager: ComponentManager, route: ViewRoute) -> Any:
        try:
            return manager.render(route.renderer)
        except Exception as e:
            log.warning(f"Failed to preload view {route.slug}: {e}")
            return {
                "html": "<p>Loading...</p>",
                "component": None,
                "scripts": [],
                "_lazy": True,
            }

    def render_page(self, slug: str, **params: Any) -> str:
        page = self.assemble(slug, **params)
        return self.render_document(page)

    def render_document(self, page: AssembledPage) -> str:
        context = page.context
        template = self.templates.get_template(self.layout)
        return template.render(
            title=page.title,
            meta=page.meta,
            slug=page.slug,
            content=page.html,
            head_scripts_html=render_scripts(context["headScripts"]),
            body_scripts_html=render_scripts(context["bodyScripts"]),
            boot_components=context["bootComponents"],
            boot_json=json_for_script(context["bootComponents"]),
            global_state=context["globalState"],
            global_json=json_for_script(context["globalState"]),
            client_script_url=self.client_script_url,
        )

    def fragment_payload(self, page: AssembledPage) -> Dict[str, Any]:
        context = page.context
        return {
            "slug": page.slug,
            "payload": {
                "title": page.title,
                "meta": page.meta,
                "html": page.html,
                "component": context["bootComponents"][0]
                if context["bootComponents"]
                else None,
                "scripts": [
                    script.to_dict()
                    for script in context["headScripts"] + context["bodyScripts"]
                ],
                "globalState": context["globalState"],
            },
            "routeMap": self.route_map,
        }

    async def _handle(self, request: Request, route: ViewRoute) -> Response:
        # Renderers are synchronous; keep them off the event loop
        page = await run_in_threadpool(self.assemble, route.slug, **request.path_params)
        if request.headers.get(PALM_REQUEST_HEADER) == "1":
            return JSONResponse(self.fragment_payload(page))
        return HTMLResponse(self.render_document(page))

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        await self.app(scope, receive, send)
