"""Value objects used while recording actions for client-side replay."""

import base64
import binascii
from typing import Any, Dict, Union


class ActionArgument:
    """Placeholder for "argument N" of an action handler being recorded.

    Handlers are invoked once at render time with one placeholder per
    positional parameter. Anything the handler does with the placeholder is
    captured as an argument reference instead of a concrete value.
    """

    __slots__ = ("_index",)

    def __init__(self, index: int) -> None:
        object.__setattr__(self, "_index", int(index))

    @property
    def index(self) -> int:
        return self._index

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ActionArgument is immutable")

    def __str__(self) -> str:
        return f"{{{{arg:{self._index}}}}}"

    def __repr__(self) -> str:
        return f"ActionArgument({self._index})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, ActionArgument):
            return self._index == other._index
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("arg", self._index))

    # Numeric coercion is always neutral so arithmetic in a handler body
    # cannot fail while recording.
    def __int__(self) -> int:
        return 0

    def __float__(self) -> float:
        return 0.0

    def __index__(self) -> int:
        return 0

    def __add__(self, other: Any) -> Any:
        return 0 + other

    def __radd__(self, other: Any) -> Any:
        return other + 0

    def __sub__(self, other: Any) -> Any:
        return 0 - other

    def __rsub__(self, other: Any) -> Any:
        return other - 0

    def __mul__(self, other: Any) -> Any:
        return 0 * other

    def __rmul__(self, other: Any) -> Any:
        return other * 0

    def __truediv__(self, other: Any) -> Any:
        return 0 / other

    def __floordiv__(self, other: Any) -> Any:
        return 0 // other

    def __mod__(self, other: Any) -> Any:
        return 0 % other

    def __pow__(self, other: Any) -> Any:
        return 0**other

    # Dividing by a placeholder would divide by zero, so the result is 0
    def __rtruediv__(self, other: Any) -> Any:
        return 0

    def __rfloordiv__(self, other: Any) -> Any:
        return 0

    def __rmod__(self, other: Any) -> Any:
        return 0

    def __rpow__(self, other: Any) -> Any:
        return other**0

    def __neg__(self) -> int:
        return 0

    def __pos__(self) -> int:
        return 0

    def __abs__(self) -> int:
        return 0

    def __lt__(self, other: Any) -> bool:
        return 0 < other

    def __le__(self, other: Any) -> bool:
        return 0 <= other

    def __gt__(self, other: Any) -> bool:
        return 0 > other

    def __ge__(self, other: Any) -> bool:
        return 0 >= other

    def __bool__(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "arg", "index": self._index}


class ExpressionReference:
    """Carries both an evaluated value and the source text it came from.

    The value is what server-side code sees; the expression is what gets
    compiled for the client. ``expression`` may arrive base64 encoded, in
    which case it is decoded here. Text that does not decode is kept as is.
    """

    __slots__ = ("_value", "_expression")

    def __init__(self, value: Any, expression: str, is_encoded: bool = False) -> None:
        if is_encoded:
            expression = decode_expression(expression)
        object.__setattr__(self, "_value", value)
        object.__setattr__(self, "_expression", expression)

    @property
    def value(self) -> Any:
        return self._value

    @property
    def expression(self) -> str:
        return self._expression

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ExpressionReference is immutable")

    def __repr__(self) -> str:
        return f"ExpressionReference({self._value!r}, {self._expression!r})"


def encode_expression(expression: str) -> str:
    """Transport-encode expression text (inverse of ``decode_expression``)."""
    return base64.b64encode(expression.encode("utf-8")).decode("ascii")


def decode_expression(encoded: str) -> str:
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return encoded
    return decoded or encoded


class Literal:
    """A concrete recorded value."""

    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Literal) and self.value == other.value

    def __repr__(self) -> str:
        return f"Literal({self.value!r})"


class ArgumentRef:
    """A reference to the Nth argument of the action being replayed."""

    __slots__ = ("index",)

    def __init__(self, index: int) -> None:
        self.index = index

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, ArgumentRef) and self.index == other.index

    def __repr__(self) -> str:
        return f"ArgumentRef({self.index})"


RecordedValue = Union[Literal, ArgumentRef]


def recorded(value: Any) -> RecordedValue:
    """Normalize a value seen during recording into a ``RecordedValue``."""
    if isinstance(value, (Literal, ArgumentRef)):
        return value
    if isinstance(value, ActionArgument):
        return ArgumentRef(value.index)

    from palmwire.core.state import StateSlot

    # State slots and expression references record their current value
    if isinstance(value, StateSlot):
        return Literal(value.peek())
    if isinstance(value, ExpressionReference):
        return Literal(value.value)
    return Literal(value)


def serialize_recorded(value: RecordedValue) -> Any:
    """Wire form of a recorded value, as consumed by the client runtime."""
    if isinstance(value, ArgumentRef):
        return {"type": "arg", "index": value.index}
    if isinstance(value, Literal):
        return value.value
    raise TypeError(f"Not a recorded value: {value!r}")
