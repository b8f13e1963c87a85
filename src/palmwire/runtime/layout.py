"""Page assembly: merges per-component results into one page context."""

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from palmwire.runtime.escape import escape_html
from palmwire.runtime.manager import RenderResult
from palmwire.runtime.scripts import ScriptEntry

Script = Union[ScriptEntry, Mapping[str, Any]]
View = Union[RenderResult, Mapping[str, Any]]


def _field(script: Script, name: str, default: Any = None) -> Any:
    if isinstance(script, ScriptEntry):
        return getattr(script, name)
    return script.get(name, default)


def _component_of(view: Optional[View]) -> Optional[Dict[str, Any]]:
    if view is None:
        return None
    if isinstance(view, RenderResult):
        return view.component
    return view.get("component")


def build_context(
    views: Mapping[str, View],
    current_slug: Optional[str],
    scripts: Iterable[Script],
) -> Dict[str, Any]:
    """Build the template context for a page.

    Args:
        views: Render results keyed by view slug, in render order.
        current_slug: Slug of the view that owns the page.
        scripts: Script entries collected while rendering.

    Returns:
        ``headScripts``, ``bodyScripts``, ``bootComponents`` and ``globalState``.
    """
    scripts = list(scripts)
    return {
        "headScripts": [s for s in scripts if _field(s, "target", "body") == "head"],
        # Anything not explicitly head-targeted lands in body
        "bodyScripts": [s for s in scripts if _field(s, "target", "body") != "head"],
        "bootComponents": _resolve_boot_components(views, current_slug),
        "globalState": _collect_global_state(views),
    }


def _resolve_boot_components(
    views: Mapping[str, View], current_slug: Optional[str]
) -> List[Dict[str, Any]]:
    if not current_slug:
        return []
    component = _component_of(views.get(current_slug))
    if not component:
        return []
    return [component]


def _collect_global_state(views: Mapping[str, View]) -> Dict[str, Any]:
    global_state: Dict[str, Any] = {}
    for view in views.values():
        component = _component_of(view)
        if not component or not component.get("states"):
            continue

        for state in component["states"]:
            if not state.get("global") or not state.get("key"):
                continue
            key = str(state["key"])
            # First declaration wins; later components cannot overwrite it
            if key in global_state:
                continue
            global_state[key] = state.get("value")

    return global_state


def merge_scripts(*script_lists: Iterable[ScriptEntry]) -> List[ScriptEntry]:
    """Combine script lists, keeping one entry per hash.

    An entry keeps the position of the first occurrence of its hash; a later
    entry with the same hash replaces its content.
    """
    merged: Dict[str, ScriptEntry] = {}
    for scripts in script_lists:
        for script in scripts:
            merged[script.hash] = script
    return list(merged.values())


def render_scripts(scripts: Iterable[Script]) -> str:
    output = []
    for script in scripts:
        code = _field(script, "code", "") or ""
        if code == "":
            continue
        output.append(f"<script{_attribute_string(script)}>{code}</script>\n")
    return "".join(output)


def _attribute_string(script: Script) -> str:
    parts = []
    attrs = _field(script, "attrs", None) or {}

    for name, value in attrs.items():
        if not isinstance(name, str) or name == "":
            continue
        attr_name = escape_html(name)
        if isinstance(value, bool) or value is None:
            if value:
                parts.append(f' {attr_name}="{attr_name}"')
            continue
        parts.append(f' {attr_name}="{escape_html(value)}"')

    once = _field(script, "once", True)
    once = True if once is None else bool(once)
    parts.append(f' data-palm-once="{"1" if once else "0"}"')

    script_hash = _field(script, "hash", "") or ""
    if script_hash:
        parts.append(f' data-palm-script="{escape_html(script_hash)}"')

    return "".join(parts)


def json_for_script(value: Any) -> str:
    """Serialize ``value`` for a ``<script type="application/json">`` body."""
    return json.dumps(value, ensure_ascii=False, default=str).replace("</", "<\\/")
