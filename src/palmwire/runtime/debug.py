import linecache
import logging
import os
import traceback
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from types import TracebackType

from starlette.responses import HTMLResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from palmwire.compiler.exceptions import ExpressionCompileError

log = logging.getLogger(__name__)


class DevErrorMiddleware:
    """
    Middleware to catch exceptions and render a helpful debug page.
    Active only in debug mode.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            log.exception("Unhandled error while rendering %s", scope.get("path"))
            response = self.render_error_page(exc)
            await response(scope, receive, send)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.app, name)

    def render_error_page(self, exc: Exception) -> HTMLResponse:
        # Bad inline script gets a page showing the source that failed
        if isinstance(exc, ExpressionCompileError):
            return self._render_compile_error(exc)

        frames = self._get_frames(exc.__traceback__)
        is_framework_error = (
            self._is_framework_error(frames[-1]["filename"]) if frames else False
        )

        from palmwire.runtime.error_renderer import render_template

        html_content = render_template(
            "error/500.html",
            {
                "exc_type": type(exc).__name__,
                "exc_msg": str(exc),
                "frames": frames,
                "is_framework_error": is_framework_error,
                "title": type(exc).__name__,
            },
        )
        return HTMLResponse(html_content, status_code=500)

    def _render_compile_error(self, exc: ExpressionCompileError) -> HTMLResponse:
        from palmwire.runtime.error_renderer import render_template

        html_content = render_template(
            "error/compile_error.html",
            {
                "error_message": exc.message,
                "source": exc.source,
                "title": "Inline Script Compile Error",
            },
        )
        return HTMLResponse(html_content, status_code=500)

    def _get_frames(self, tb: Optional["TracebackType"]) -> List[Dict[str, Any]]:
        frames = []
        for frame, lineno in traceback.walk_tb(tb):
            filename = frame.f_code.co_filename
            context = []

            if os.path.exists(filename):
                lines = linecache.getlines(filename)
                start = max(1, lineno - 5)
                for i in range(start, min(len(lines), lineno + 5) + 1):
                    context.append(
                        {
                            "num": i,
                            "content": lines[i - 1].rstrip(),
                            "is_current": i == lineno,
                        }
                    )

            frames.append(
                {
                    "filename": filename,
                    "short_filename": self._shorten_path(filename),
                    "func_name": frame.f_code.co_name,
                    "lineno": lineno,
                    "context": context,
                    "is_user_code": self._is_user_code(filename),
                }
            )
        return frames

    def _is_framework_error(self, filename: str) -> bool:
        normalized = filename.replace(os.sep, "/")
        return "src/palmwire" in normalized or "site-packages/palmwire" in normalized

    def _is_user_code(self, filename: str) -> bool:
        return not self._is_framework_error(filename) and "<frozen" not in filename

    def _shorten_path(self, path: str) -> str:
        cwd = os.getcwd()
        if path.startswith(cwd):
            return os.path.relpath(path, cwd)
        return path
