"""Recording-aware state primitives owned by a component context."""

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from palmwire.core.recording import (
    ActionArgument,
    ExpressionReference,
    recorded,
    serialize_recorded,
)
from palmwire.runtime.escape import escape_html

if TYPE_CHECKING:
    from palmwire.runtime.context import ComponentContext


def _plain(value: Any) -> Any:
    """Unwrap slots and expression references to the value they hold."""
    if isinstance(value, StateSlot):
        return value.get()
    if isinstance(value, ExpressionReference):
        return value.value
    return value


class StateSlot:
    """A piece of component state that is shipped to the client.

    Outside of action recording every operation mutates the slot directly.
    While its context records an action, operations are captured as
    structured instructions for the client runtime instead.
    """

    def __init__(
        self,
        context: "ComponentContext",
        slot_id: str,
        initial: Any = None,
        global_: bool = False,
        global_key: Optional[str] = None,
    ) -> None:
        self.context = context
        self.slot_id = slot_id
        self._value = initial
        self.is_global = global_
        self.global_key: Optional[str] = (global_key or slot_id) if global_ else None
        self.var_name: Optional[str] = None

        # Computed slots
        self.computed = False
        self.compute_fn: Optional[Callable[[], Any]] = None
        self.dependencies: List["StateSlot"] = []
        self.expression: Optional[str] = None

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, new_val: Any) -> None:
        self.set(new_val)

    def get(self) -> Any:
        return self._value

    def peek(self) -> Any:
        return self._value

    def __call__(self, *args: Any) -> Any:
        if not args:
            return self.get()
        self.set(args[0])
        return self._value

    def _record(self, op_type: str, **fields: Any) -> None:
        op: Dict[str, Any] = {"type": op_type, "slot": self.slot_id}
        op.update(fields)
        self.context.record_operation(op)

    def _record_expression(self, ref: ExpressionReference, operation: str) -> None:
        self._record(
            "expr",
            expr=self.context.compile_expression(ref.expression),
            operation=operation,
        )

    def set(self, value: Any) -> None:
        if self.context.is_recording:
            if isinstance(value, ExpressionReference) and value.expression:
                self._record_expression(value, "set")
            else:
                self._record("set", value=serialize_recorded(recorded(value)))
            return

        self._value = _plain(value)

    def increment(self, step: Any = 1) -> None:
        if self.context.is_recording:
            self._record("increment", value=serialize_recorded(recorded(step)))
            return
        self._value = (self._value or 0) + _plain(step)

    def decrement(self, step: Any = 1) -> None:
        # A placeholder cannot be negated, so it keeps its own operation
        if self.context.is_recording and isinstance(step, ActionArgument):
            self._record("decrement", value=serialize_recorded(recorded(step)))
            return
        self.increment(-_plain(step))

    def toggle(self) -> None:
        if self.context.is_recording:
            self._record("toggle")
            return
        self._value = not self._value

    def push(self, item: Any) -> None:
        if self.context.is_recording:
            if isinstance(item, ExpressionReference) and item.expression:
                self._record_expression(item, "push")
            else:
                self._record("push", value=serialize_recorded(recorded(item)))
            return
        self._value = list(self._value or []) + [_plain(item)]

    def pop(self) -> Any:
        if self.context.is_recording:
            self._record("pop")
            return None
        items = list(self._value or [])
        last = items.pop() if items else None
        self._value = items
        return last

    def token(self) -> str:
        return f"{self.context.id}::{self.slot_id}"

    def describe(self) -> Dict[str, Any]:
        """Payload entry for this slot."""
        data: Dict[str, Any] = {
            "id": self.slot_id,
            "value": self._value,
            "global": self.is_global,
            "key": self.global_key,
        }
        if self.computed:
            data["computed"] = True
            deps = [dep.slot_id for dep in self.dependencies]
            if deps:
                data["dependencies"] = deps
            if self.expression:
                data["expression"] = self.expression
        return data

    def __str__(self) -> str:
        value = "" if self._value is None else self._value
        attrs = f'data-palm-bind="{escape_html(self.token())}"'
        if self.is_global and self.global_key:
            attrs += f' data-palm-scope="global" data-palm-key="{escape_html(self.global_key)}"'
        return f"<span {attrs}>{escape_html(value)}</span>"

    def __format__(self, format_spec: str) -> str:
        if not format_spec:
            return str(self)
        return format(self._value, format_spec)

    def __bool__(self) -> bool:
        return bool(self._value)

    def __repr__(self) -> str:
        return f"StateSlot({self.token()}, {self._value!r})"


class Effect:
    """Side effect replayed by the client when its dependencies change."""

    def __init__(
        self,
        effect_id: str,
        callback: Callable[..., Any],
        dependencies: Sequence[Any] = (),
    ) -> None:
        self.effect_id = effect_id
        self.callback = callback
        self.dependencies: List[str] = [
            dep.slot_id if isinstance(dep, StateSlot) else str(dep)
            for dep in dependencies
        ]
        self.operations: List[Dict[str, Any]] = []

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.effect_id,
            "dependencies": list(self.dependencies),
            "operations": list(self.operations),
        }
