"""Per-render component context and the task-local "current context" slot."""

import inspect
import json
import re
from contextvars import ContextVar
from typing import Any, Callable, Dict, List, Optional, Sequence

from palmwire.core.recording import ActionArgument
from palmwire.core.state import Effect, StateSlot
from palmwire.runtime.escape import escape_html

# The context of the component currently rendering. A ContextVar keeps
# concurrent requests (threads or tasks) from seeing each other's context.
_current_context: ContextVar[Optional["ComponentContext"]] = ContextVar(
    "palmwire_component_context", default=None
)


def current_context() -> Optional["ComponentContext"]:
    return _current_context.get()


def set_current_context(context: Optional["ComponentContext"]) -> Any:
    return _current_context.set(context)


def reset_current_context(token: Any) -> None:
    _current_context.reset(token)


# Elements that get a stable hydration id
_HYDRATION_TAGS = {
    "button", "input", "select", "textarea", "a", "div", "span", "p",
    "h1", "h2", "h3", "h4", "h5", "h6",
}

_RE_OPEN_TAG = re.compile(r"<([a-zA-Z][a-zA-Z0-9]*)(\s[^<>]*?)?(/?)>")
_RE_ONCLICK = re.compile(r"""onclick=(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)
_RE_CALL = re.compile(r"^([a-zA-Z0-9_]+)\s*\((.*)\)\s*$", re.DOTALL)
_RE_ARG_TOKEN = re.compile(r"""["']([^"']+)["']|(\d+\.?\d*)|(\w+)""")


def _positional_arity(fn: Callable[..., Any]) -> int:
    sig = inspect.signature(fn)
    return sum(
        1
        for param in sig.parameters.values()
        if param.kind
        in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    )


def _parse_call_args(args: str) -> List[Any]:
    values: List[Any] = []
    for match in _RE_ARG_TOKEN.finditer(args):
        text, number, ident = match.groups()
        if text:
            values.append(text)
        elif number:
            values.append(float(number))
        elif ident:
            values.append(ident)
    return values


class ComponentContext:
    """Everything one component declares while it renders.

    Holds state slots, recorded actions, effects and lifecycle hooks, and
    turns them into the payload the client runtime hydrates from.
    """

    def __init__(
        self,
        context_id: str,
        compile_expression: Optional[Callable[[str], str]] = None,
    ) -> None:
        self.id = context_id
        self._compile_expression = compile_expression
        self.states: Dict[str, StateSlot] = {}
        self.actions: Dict[str, List[Dict[str, Any]]] = {}
        self.effects: Dict[str, Effect] = {}
        self.lifecycle_hooks: Dict[str, List[List[Dict[str, Any]]]] = {}
        # Maps variable names to slot ids for expression compilation
        self.var_to_slot: Dict[str, str] = {}

        self._recording: Optional[str] = None
        self._operations: List[Dict[str, Any]] = []

    # State

    def create_state(
        self,
        initial: Any = None,
        global_: bool = False,
        global_key: Optional[str] = None,
        var_name: Optional[str] = None,
    ) -> StateSlot:
        slot_id = f"s{len(self.states)}"
        slot = StateSlot(self, slot_id, initial, global_, global_key)
        self.states[slot_id] = slot
        if var_name is not None:
            self._bind_var(slot, var_name)
        return slot

    def create_global_state(self, key: str, initial: Any = None) -> StateSlot:
        normalized = key.strip()
        if not normalized:
            raise ValueError("Global state key cannot be empty")
        return self.create_state(initial, global_=True, global_key=normalized)

    def create_computed(
        self,
        name: str,
        compute: Callable[[], Any],
        dependencies: Sequence[StateSlot] = (),
        expression: Optional[str] = None,
    ) -> StateSlot:
        slot_id = f"c{len(self.states)}"
        slot = StateSlot(self, slot_id, compute())
        slot.computed = True
        slot.compute_fn = compute
        slot.dependencies = [dep for dep in dependencies if isinstance(dep, StateSlot)]
        if expression:
            slot.expression = self.compile_expression(expression)
        self.states[slot_id] = slot
        self._bind_var(slot, name)
        return slot

    def _bind_var(self, slot: StateSlot, var_name: str) -> None:
        name = var_name.lstrip("$")
        self.var_to_slot[name] = slot.slot_id
        slot.var_name = name

    @property
    def has_interactive_state(self) -> bool:
        return bool(self.states) or bool(self.actions)

    # Recording

    @property
    def is_recording(self) -> bool:
        return self._recording is not None

    def record_operation(self, operation: Dict[str, Any]) -> None:
        if self._recording is None:
            return
        self._operations.append(operation)

    def compile_expression(self, expression: str) -> str:
        if self._compile_expression is None:
            return expression
        return self._compile_expression(expression).strip()

    def _record(self, label: str, callback: Callable[..., Any]) -> List[Dict[str, Any]]:
        """Run ``callback`` with argument placeholders, returning its operations."""
        if self._recording is not None:
            raise RuntimeError(
                f"Cannot record '{label}' while '{self._recording}' is being recorded"
            )

        args = [ActionArgument(i) for i in range(_positional_arity(callback))]
        self._recording = label
        self._operations = []
        try:
            callback(*args)
            return self._operations
        finally:
            self._recording = None
            self._operations = []

    def register_action(self, name: str, callback: Callable[..., Any]) -> None:
        if name in self.actions:
            return

        # Remember which closure variables hold state, for expression compilation
        closure = inspect.getclosurevars(callback) if inspect.isfunction(callback) else None
        if closure is not None:
            for var_name, value in closure.nonlocals.items():
                if isinstance(value, StateSlot):
                    self._bind_var(value, var_name)

        self.actions[name] = self._record(name, callback)

    def register_effect(
        self, callback: Callable[..., Any], dependencies: Sequence[Any] = ()
    ) -> Effect:
        effect = Effect(f"e{len(self.effects)}", callback, dependencies)
        effect.operations = self._record(effect.effect_id, callback)
        self.effects[effect.effect_id] = effect
        return effect

    def on_mount(self, callback: Callable[..., Any]) -> None:
        self._add_lifecycle_hook("mount", callback)

    def on_unmount(self, callback: Callable[..., Any]) -> None:
        self._add_lifecycle_hook("unmount", callback)

    def _add_lifecycle_hook(self, event: str, callback: Callable[..., Any]) -> None:
        ops = self._record(f"{event} hook", callback)
        self.lifecycle_hooks.setdefault(event, []).append(ops)

    # Output

    def finalize_html(self, html: str) -> str:
        """Attach hydration hooks to the rendered HTML."""
        if not self.has_interactive_state:
            return html

        counter = 0

        def add_node_id(match: "re.Match[str]") -> str:
            nonlocal counter
            tag, attrs, self_closing = match.group(1), match.group(2) or "", match.group(3)
            if tag.lower() not in _HYDRATION_TAGS or "data-palm-id=" in attrs:
                return match.group(0)
            counter += 1
            node_id = f' data-palm-id="{escape_html(self.id)}_{counter}"'
            if self_closing:
                return f"<{tag}{attrs.rstrip()}{node_id} />"
            return f"<{tag}{attrs}{node_id}>"

        html = _RE_OPEN_TAG.sub(add_node_id, html)
        html = _RE_ONCLICK.sub(self._rewrite_onclick, html)

        safe_id = escape_html(self.id)
        return f'<div data-palm-component="{safe_id}">{html}</div>'

    def _rewrite_onclick(self, match: "re.Match[str]") -> str:
        quoted = match.group(1) if match.group(1) is not None else match.group(2)
        expression = quoted.strip()
        action = expression
        args = ""

        call = _RE_CALL.match(expression)
        if call:
            action, args = call.group(1), call.group(2).strip()
        elif expression.endswith("()"):
            action = expression[:-2]

        # Handlers that are not recorded actions may belong to page JS
        if action not in self.actions:
            return match.group(0)

        attrs = (
            f'data-palm-action="{escape_html(action)}" '
            f'data-palm-component="{escape_html(self.id)}"'
        )
        if args:
            encoded = json.dumps(_parse_call_args(args), ensure_ascii=False)
            attrs += f' data-palm-args="{escape_html(encoded)}"'
        return attrs

    def build_payload(self) -> Optional[Dict[str, Any]]:
        if not self.has_interactive_state:
            return None

        return {
            "id": self.id,
            "states": [slot.describe() for slot in self.states.values()],
            "actions": {name: list(ops) for name, ops in self.actions.items()},
            "effects": [effect.describe() for effect in self.effects.values()],
            "lifecycleHooks": {
                event: [list(ops) for ops in hooks]
                for event, hooks in self.lifecycle_hooks.items()
            },
        }
