import hashlib

import pytest

from palmwire.compiler.cache import CompileCache
from palmwire.compiler.exceptions import ExpressionCompileError
from palmwire.runtime.scripts import ScriptRegistry, content_hash


def test_add_js_derives_hash_from_content():
    registry = ScriptRegistry()
    registry.add_js("  console.log(1);  ")

    [entry] = registry.flush()
    assert entry.code == "console.log(1);"
    assert entry.hash == hashlib.sha1(b"console.log(1);").hexdigest()[:16]
    assert entry.hash == content_hash("console.log(1);")
    assert entry.target == "body"
    assert entry.once is True
    assert entry.attrs == {}


def test_identical_code_is_deduplicated():
    registry = ScriptRegistry()
    registry.add_js("init();", {"target": "head"})
    registry.add_js("init();", {"target": "head"})

    assert len(registry.flush()) == 1


def test_same_hash_overwrites_but_keeps_position():
    registry = ScriptRegistry()
    registry.add_js("a();", {"hash": "shared"})
    registry.add_js("b();")
    registry.add_js("c();", {"hash": "shared"})

    entries = registry.flush()
    assert [e.code for e in entries] == ["c();", "b();"]
    assert entries[0].hash == "shared"


def test_explicit_falsy_hash_is_kept():
    registry = ScriptRegistry()
    registry.add_js("a();", {"hash": ""})
    registry.add_js("b();", {"hash": 0})
    registry.add_js("c();", {"hash": None})

    entries = registry.flush()
    assert [e.hash for e in entries] == ["", "0", content_hash("c();")]


def test_flush_is_idempotent():
    registry = ScriptRegistry()
    registry.add_js("x();")
    registry.flush()

    assert registry.flush() == []
    assert registry.flush() == []


def test_empty_code_is_ignored():
    registry = ScriptRegistry()
    registry.add_js("   ")
    registry.add_source("\n\t")
    assert len(registry) == 0


@pytest.mark.parametrize(
    "target,expected",
    [("head", "head"), ("body", "body"), ("sidebar", "body"), (None, "body"), (3, "body")],
)
def test_target_normalization(target, expected):
    registry = ScriptRegistry()
    registry.add_js("t();", {"target": target})
    [entry] = registry.flush()
    assert entry.target == expected


def test_non_string_attribute_keys_are_dropped():
    registry = ScriptRegistry()
    registry.add_js("t();", {"attrs": {"defer": True, 1: "x", "type": "module"}})
    [entry] = registry.flush()
    assert entry.attrs == {"defer": True, "type": "module"}


def test_once_flag():
    registry = ScriptRegistry()
    registry.add_js("a();", {"once": False})
    registry.add_js("b();", {"once": 0})
    registry.add_js("c();")
    assert [e.once for e in registry.flush()] == [False, False, True]


def test_add_source_compiles(compiler):
    registry = ScriptRegistry(compiler)
    registry.add_source("echo $message;", {"target": "head"})

    [entry] = registry.flush()
    assert entry.code == "console.log(message);"
    assert entry.target == "head"
    assert compiler.calls == ["echo $message;"]


def test_add_source_drops_blank_compiled_output(compiler):
    registry = ScriptRegistry(compiler)
    registry.add_source("// nothing")
    assert registry.flush() == []


def test_add_source_propagates_compile_failures(compiler):
    registry = ScriptRegistry(compiler)
    with pytest.raises(ExpressionCompileError):
        registry.add_source("syntax error here")
    assert len(registry) == 0


def test_foreign_compiler_errors_are_wrapped():
    class Broken:
        def compile(self, source):
            raise SyntaxError("bad")

    registry = ScriptRegistry(Broken())
    with pytest.raises(ExpressionCompileError) as excinfo:
        registry.add_source("$x = ;")
    assert excinfo.value.source == "$x = ;"
    assert isinstance(excinfo.value.__cause__, SyntaxError)


def test_compiled_sources_from_different_components_collapse(compiler):
    registry = ScriptRegistry(compiler)
    registry.add_source("echo $a;")
    registry.add_source("echo a;")
    assert len(registry.flush()) == 1


def test_registry_uses_compile_cache(compiler):
    cache = CompileCache()
    first = ScriptRegistry(compiler, cache)
    second = ScriptRegistry(compiler, cache)

    first.add_source("echo $x;")
    second.add_source("echo $x;")

    assert compiler.calls == ["echo $x;"]
    assert first.flush()[0].code == second.flush()[0].code
    assert cache.hits == 1
