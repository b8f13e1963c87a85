"""Content-addressed cache of compiled script artifacts."""

import hashlib
import logging
import threading
from collections import OrderedDict
from typing import Optional

from palmwire.compiler.expression import ExpressionCompiler, compile_source

log = logging.getLogger(__name__)


class CompileCache:
    """Maps a source digest to the JavaScript compiled from it.

    One instance may be shared by every request an application serves, so
    access is serialized with a lock. A miss is not an error: the caller
    simply compiles.
    """

    def __init__(self, max_entries: int = 512) -> None:
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(source: str) -> str:
        return hashlib.sha1(source.encode("utf-8")).hexdigest()

    def get(self, source: str) -> Optional[str]:
        key = self.key_for(source)
        with self._lock:
            compiled = self._entries.get(key)
            if compiled is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return compiled

    def put(self, source: str, compiled: str) -> None:
        if self.max_entries <= 0:
            return
        key = self.key_for(source)
        with self._lock:
            self._entries[key] = compiled
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log.debug(f"Compile cache evicted {evicted[:12]}")

    def compile(self, compiler: ExpressionCompiler, source: str) -> str:
        cached = self.get(source)
        if cached is not None:
            return cached
        compiled = compile_source(compiler, source)
        self.put(source, compiled)
        return compiled

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)
