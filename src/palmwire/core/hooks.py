"""Authoring API used inside component renderers.

Usage:
    def counter(out):
        count = state(0)

        def increment(step):
            count.increment(step)

        action("increment", increment)
        out.write(f'<button onclick="increment(1)">{count}</button>')

    result = ComponentManager().render(counter)
"""

from typing import Any, Callable, ContextManager, Optional, Sequence

from palmwire.core.state import Effect, StateSlot
from palmwire.runtime.context import current_context
from palmwire.runtime.manager import active_manager
from palmwire.runtime.scripts import ScriptProtocolError


def state(initial: Any = None, name: Optional[str] = None) -> Any:
    """Declare component state. Outside a render this is just ``initial``."""
    context = current_context()
    if context is None:
        return initial
    return context.create_state(initial, var_name=name)


def global_state(key: str, initial: Any = None) -> Any:
    """Declare state shared by every component on the page under ``key``."""
    context = current_context()
    if context is None:
        return initial
    return context.create_global_state(key, initial)


def computed(
    name: str,
    compute: Callable[[], Any],
    dependencies: Sequence[StateSlot] = (),
    expression: Optional[str] = None,
) -> Any:
    context = current_context()
    if context is None:
        return compute()
    return context.create_computed(name, compute, dependencies, expression)


def action(name: str, callback: Callable[..., Any]) -> None:
    context = current_context()
    if context is None:
        return
    context.register_action(name, callback)


def effect(callback: Callable[..., Any], dependencies: Sequence[Any] = ()) -> Optional[Effect]:
    context = current_context()
    if context is None:
        return None
    return context.register_effect(callback, dependencies)


def on_mount(callback: Callable[..., Any]) -> None:
    context = current_context()
    if context is not None:
        context.on_mount(callback)


def on_unmount(callback: Callable[..., Any]) -> None:
    context = current_context()
    if context is not None:
        context.on_unmount(callback)


def script(**options: Any) -> ContextManager[None]:
    """Capture inline script written inside the ``with`` block.

    Options: ``target`` ("head" or "body"), ``once``, ``attrs``, ``hash``.
    """
    manager = active_manager()
    if manager is None:
        raise ScriptProtocolError("script() used outside of a component render")
    return manager.script(**options)
