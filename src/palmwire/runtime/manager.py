"""Component render manager: isolates one render pass and packages its output."""

import inspect
import itertools
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from palmwire.compiler.cache import CompileCache
from palmwire.compiler.expression import ExpressionCompiler
from palmwire.runtime.context import (
    ComponentContext,
    reset_current_context,
    set_current_context,
)
from palmwire.runtime.output import OutputBuffer
from palmwire.runtime.scripts import (
    ScriptBlock,
    ScriptEntry,
    ScriptProtocolError,
    ScriptRegistry,
)

log = logging.getLogger(__name__)

_active_manager: ContextVar[Optional["ComponentManager"]] = ContextVar(
    "palmwire_component_manager", default=None
)


def active_manager() -> Optional["ComponentManager"]:
    return _active_manager.get()


@dataclass
class RenderResult:
    html: str
    component: Optional[Dict[str, Any]] = None
    scripts: List[ScriptEntry] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "html": self.html,
            "component": self.component,
            "scripts": [script.to_dict() for script in self.scripts],
        }


def _call_renderer(renderer: Callable[..., Any], out: OutputBuffer, kwargs: Dict[str, Any]) -> Any:
    """Call ``renderer`` with whatever of (out, **kwargs) it accepts."""
    try:
        sig = inspect.signature(renderer)
    except (TypeError, ValueError):
        return renderer(out, **kwargs)

    params = list(sig.parameters.values())
    has_var_kw = any(p.kind == inspect.Parameter.VAR_KEYWORD for p in params)
    positional = [
        p
        for p in params
        if p.kind
        in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]

    if has_var_kw:
        bound_kwargs = dict(kwargs)
    else:
        names = {p.name for p in params}
        bound_kwargs = {k: v for k, v in kwargs.items() if k in names}

    args: List[Any] = []
    if positional and positional[0].name not in bound_kwargs:
        args.append(out)
    return renderer(*args, **bound_kwargs)


class ComponentManager:
    """Renders components for one page.

    A manager owns the page's script registry, output buffer and id counter,
    so a fresh one must be created for every request.
    """

    def __init__(
        self,
        compiler: Optional[ExpressionCompiler] = None,
        cache: Optional[CompileCache] = None,
        id_prefix: str = "cmp_",
    ) -> None:
        self.registry = ScriptRegistry(compiler, cache)
        self.output = OutputBuffer()
        self.blocks = ScriptBlock(self.output, self.registry)
        self.id_prefix = id_prefix
        self._ids = itertools.count(1)
        self._render_depth = 0

    def next_id(self) -> str:
        return f"{self.id_prefix}{next(self._ids)}"

    @contextmanager
    def activate(self) -> Iterator["ComponentManager"]:
        """Make this manager the target of ``script()`` blocks outside a render."""
        token = _active_manager.set(self)
        try:
            yield self
        finally:
            _active_manager.reset(token)

    def script(self, **options: Any) -> Any:
        return self.blocks.block(**options)

    def render(self, renderer: Callable[..., Any], **kwargs: Any) -> RenderResult:
        """Render one component.

        ``renderer`` receives the output buffer (if it takes a positional
        parameter) plus any ``kwargs`` it names. Text it writes, and a string
        it returns, become the component's HTML.
        """
        context = ComponentContext(self.next_id(), self.registry.compile)
        outermost = self._render_depth == 0
        block_depth = self.blocks.depth
        capture_depth = self.output.push()
        context_token = set_current_context(context)
        manager_token = _active_manager.set(self)
        self._render_depth += 1

        scripts: List[ScriptEntry] = []
        try:
            returned = _call_renderer(renderer, self.output, kwargs)
            if self.blocks.depth > block_depth:
                raise ScriptProtocolError(
                    f"Script block opened in {context.id} but never closed"
                )
            if isinstance(returned, str):
                self.output.write(returned)
            html = self.output.unwind(capture_depth)

            component = context.build_payload()
            if component is not None:
                html = context.finalize_html(html)
        finally:
            # Close anything the renderer left open, even when it failed
            self.blocks.unwind(block_depth)
            self.output.unwind(capture_depth)
            self._render_depth -= 1
            # Nested renders leave scripts for the outermost one to drain
            if outermost:
                scripts = self.registry.flush()
            _active_manager.reset(manager_token)
            reset_current_context(context_token)

        log.debug(
            f"Rendered {context.id}: {len(html)} chars, "
            f"interactive={component is not None}, scripts={len(scripts)}"
        )
        return RenderResult(html=html, component=component, scripts=scripts)

    def flush(self) -> List[ScriptEntry]:
        """Drain scripts registered outside any component render."""
        return self.registry.flush()
