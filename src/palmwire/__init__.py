try:
    from ._version import __version__
except ImportError:
    from importlib.metadata import version, PackageNotFoundError

    try:
        __version__ = version("palmwire")
    except PackageNotFoundError:
        __version__ = "unknown"

from palmwire.compiler.exceptions import ExpressionCompileError
from palmwire.compiler.expression import ExpressionCompiler, PassthroughCompiler
from palmwire.core.hooks import (
    action,
    computed,
    effect,
    global_state,
    on_mount,
    on_unmount,
    script,
    state,
)
from palmwire.core.recording import ActionArgument, ExpressionReference
from palmwire.runtime.app import PalmWire
from palmwire.runtime.layout import build_context, render_scripts
from palmwire.runtime.manager import ComponentManager, RenderResult
from palmwire.runtime.scripts import ScriptProtocolError

__all__ = [
    "PalmWire",
    "ComponentManager",
    "RenderResult",
    "ActionArgument",
    "ExpressionReference",
    "ExpressionCompiler",
    "PassthroughCompiler",
    "ExpressionCompileError",
    "ScriptProtocolError",
    "state",
    "global_state",
    "computed",
    "action",
    "effect",
    "on_mount",
    "on_unmount",
    "script",
    "build_context",
    "render_scripts",
]
