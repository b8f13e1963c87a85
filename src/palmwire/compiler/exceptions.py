from typing import Optional


class ExpressionCompileError(Exception):
    """Raised when inline source cannot be translated to JavaScript."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        self.message = message
        self.source = source
        super().__init__(message)

    def __str__(self) -> str:
        if self.source is None:
            return self.message
        snippet = self.source if len(self.source) <= 80 else self.source[:77] + "..."
        return f"{self.message} (source: {snippet!r})"
