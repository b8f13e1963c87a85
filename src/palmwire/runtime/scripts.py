"""Capture, compilation and content-hash deduplication of inline scripts."""

import hashlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional

from palmwire.compiler.cache import CompileCache
from palmwire.compiler.expression import (
    ExpressionCompiler,
    PassthroughCompiler,
    compile_source,
)
from palmwire.runtime.output import OutputBuffer

log = logging.getLogger(__name__)

TARGETS = ("head", "body")

BLOCK_DEFAULTS: Dict[str, Any] = {
    "target": "head",
    "once": True,
}


class ScriptProtocolError(RuntimeError):
    """Raised when script blocks are opened and closed out of order."""

    pass


@dataclass
class ScriptEntry:
    hash: str
    code: str
    target: str = "body"
    attrs: Dict[str, Any] = field(default_factory=dict)
    once: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "code": self.code,
            "target": self.target,
            "attrs": dict(self.attrs),
            "once": self.once,
        }


def content_hash(code: str) -> str:
    return hashlib.sha1(code.encode("utf-8")).hexdigest()[:16]


def normalize_target(target: Any) -> str:
    # Unknown targets fall back to body rather than failing
    return target if target in TARGETS else "body"


class ScriptRegistry:
    """Compiled scripts for one page, keyed by content hash.

    Identical compiled code registered by any number of components collapses
    into one entry. Entries live until ``flush`` drains them.
    """

    def __init__(
        self,
        compiler: Optional[ExpressionCompiler] = None,
        cache: Optional[CompileCache] = None,
    ) -> None:
        self.compiler: ExpressionCompiler = compiler or PassthroughCompiler()
        self.cache = cache
        self._scripts: Dict[str, ScriptEntry] = {}

    def compile(self, source: str) -> str:
        if self.cache is not None:
            return self.cache.compile(self.compiler, source)
        return compile_source(self.compiler, source)

    def add_source(self, code: str, options: Optional[Mapping[str, Any]] = None) -> None:
        """Compile inline source and register the resulting JavaScript."""
        code = code.strip()
        if not code:
            return

        js = self.compile(code).strip()
        if not js:
            log.debug("Compiled script is empty, skipping")
            return

        self.add_js(js, options)

    def add_js(self, code: str, options: Optional[Mapping[str, Any]] = None) -> None:
        code = code.strip()
        if not code:
            return

        options = options or {}
        script_hash = options.get("hash")
        script_hash = content_hash(code) if script_hash is None else str(script_hash)
        attrs = {
            key: value
            for key, value in dict(options.get("attrs") or {}).items()
            if isinstance(key, str)
        }
        once = bool(options["once"]) if "once" in options else True

        if script_hash in self._scripts:
            log.debug(f"Script {script_hash} already registered, overwriting")

        self._scripts[script_hash] = ScriptEntry(
            hash=script_hash,
            code=code,
            target=normalize_target(options.get("target", "body")),
            attrs=attrs,
            once=once,
        )

    def flush(self) -> List[ScriptEntry]:
        """Return every entry in registration order and empty the registry."""
        scripts = list(self._scripts.values())
        self._scripts = {}
        if scripts:
            log.debug(f"Flushed {len(scripts)} script(s)")
        return scripts

    def __len__(self) -> int:
        return len(self._scripts)

    def __contains__(self, script_hash: str) -> bool:
        return script_hash in self._scripts


class ScriptBlock:
    """Captures inline script written by a renderer.

    ``start`` opens a capture on the output buffer, ``end`` closes it and
    hands the trimmed text to the registry. Blocks nest; each ``start`` must
    be paired with exactly one ``end``.
    """

    def __init__(self, output: OutputBuffer, registry: ScriptRegistry) -> None:
        self.output = output
        self.registry = registry
        self._stack: List[Dict[str, Any]] = []

    @property
    def depth(self) -> int:
        return len(self._stack)

    def start(self, **options: Any) -> None:
        merged = dict(BLOCK_DEFAULTS)
        merged.update(options)
        self._stack.append({"options": merged, "depth": self.output.push()})

    def end(self) -> None:
        if not self._stack:
            raise ScriptProtocolError(
                "ScriptBlock.end() called without a matching ScriptBlock.start()"
            )

        frame = self._stack.pop()
        code = self.output.unwind(frame["depth"]).strip()
        if not code:
            return

        self.registry.add_source(code, frame["options"])

    def discard(self) -> None:
        """Close the innermost block without registering its content."""
        if not self._stack:
            raise ScriptProtocolError("No script block is open")
        frame = self._stack.pop()
        self.output.unwind(frame["depth"])

    def unwind(self, depth: int) -> None:
        """Discard open blocks until only ``depth`` remain."""
        while len(self._stack) > depth:
            self.discard()

    @contextmanager
    def block(self, **options: Any) -> Iterator[None]:
        self.start(**options)
        try:
            yield
        except BaseException:
            self.discard()
            raise
        self.end()
