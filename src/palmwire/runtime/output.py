"""Explicit output sink used by renderers instead of an ambient print buffer."""

from contextlib import contextmanager
from typing import Any, Iterator, List


class Captured:
    """Text collected by ``OutputBuffer.capture`` once its block exits."""

    text: str = ""


class OutputBuffer:
    """A stack of text buffers.

    Renderers write into the top buffer. Opening a capture pushes a fresh
    buffer; closing it pops that buffer and hands back its text, restoring
    the previous one. Every push must be matched by exactly one pop.
    """

    def __init__(self) -> None:
        self._stack: List[List[str]] = [[]]

    @property
    def depth(self) -> int:
        """Number of open captures above the root buffer."""
        return len(self._stack) - 1

    def write(self, text: Any) -> None:
        if text is None:
            return
        self._stack[-1].append(str(text))

    def push(self) -> int:
        self._stack.append([])
        return self.depth

    def pop(self) -> str:
        if len(self._stack) == 1:
            raise RuntimeError("OutputBuffer.pop() called without an open capture")
        return "".join(self._stack.pop())

    def unwind(self, depth: int) -> str:
        """Close captures until only ``depth - 1`` remain open.

        Returns the text of the capture opened at ``depth``; anything left in
        captures nested above it is discarded.
        """
        text = ""
        while self.depth >= depth and self.depth > 0:
            text = self.pop()
        return text

    @contextmanager
    def capture(self) -> Iterator[Captured]:
        result = Captured()
        depth = self.push()
        try:
            yield result
        finally:
            result.text = self.unwind(depth)

    def getvalue(self) -> str:
        """Text written to the root buffer."""
        return "".join(self._stack[0])
