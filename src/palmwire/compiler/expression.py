"""Interface to the source-to-JavaScript expression compiler."""

from typing import Protocol, runtime_checkable

from palmwire.compiler.exceptions import ExpressionCompileError


@runtime_checkable
class ExpressionCompiler(Protocol):
    """Pure, deterministic translation of inline source to JavaScript.

    An empty result means "nothing to emit". Failures must raise.
    """

    def compile(self, source: str) -> str: ...


class PassthroughCompiler:
    """Compiler for sources that are already JavaScript."""

    def compile(self, source: str) -> str:
        return source


def compile_source(compiler: ExpressionCompiler, source: str) -> str:
    """Run ``compiler`` over ``source``, normalizing failures.

    Errors raised by third-party compilers are wrapped in
    ``ExpressionCompileError`` so callers can tell bad inline script apart
    from framework bugs.
    """
    try:
        result = compiler.compile(source)
    except ExpressionCompileError:
        raise
    except Exception as e:
        raise ExpressionCompileError(
            f"{type(compiler).__name__} failed: {e}", source=source
        ) from e
    if result is None:
        return ""
    return str(result)
