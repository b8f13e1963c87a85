from typing import Any, Dict, Optional

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    select_autoescape,
)


def create_environment(templates_dir: Optional[str] = None) -> Environment:
    """Templating environment for framework templates.

    A user ``templates_dir`` takes precedence, so an application can ship its
    own ``layout.html`` while falling back to the bundled one.
    """
    loaders = [PackageLoader("palmwire", "templates")]
    if templates_dir:
        loaders.insert(0, FileSystemLoader(templates_dir))
    return Environment(
        loader=ChoiceLoader(loaders),
        autoescape=select_autoescape(["html", "xml"]),
    )


# Shared environment for internal pages
_env = create_environment()


def render_template(template_name: str, context: Dict[str, Any]) -> str:
    """Render a Jinja2 template with the given context.

    Args:
        template_name: Name of the template relative to src/palmwire/templates/
        context: Dictionary of variables to pass to the template

    Returns:
        Rendered HTML string
    """
    template = _env.get_template(template_name)
    return template.render(**context)
