from typing import List

import pytest

from palmwire.compiler.exceptions import ExpressionCompileError
from palmwire.runtime.manager import ComponentManager


class RecordingCompiler:
    """Toy compiler: '$name' -> 'name', 'echo x;' -> 'console.log(x);'."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    def compile(self, source: str) -> str:
        self.calls.append(source)
        if "syntax error" in source:
            raise ExpressionCompileError("Unexpected token", source=source)
        if source.strip() == "// nothing":
            return "   "
        js = source.replace("$", "")
        if js.startswith("echo "):
            js = "console.log(" + js[len("echo "):].rstrip(";") + ");"
        return js


@pytest.fixture
def compiler() -> RecordingCompiler:
    return RecordingCompiler()


@pytest.fixture
def manager(compiler: RecordingCompiler) -> ComponentManager:
    return ComponentManager(compiler)
