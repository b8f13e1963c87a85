import logging
import re
from pathlib import Path

from setuptools import find_packages, setup

log = logging.getLogger(__name__)

root = Path(__file__).parent
version_file = root / "src" / "palmwire" / "_version.py"


def read_version() -> str:
    # Release builds write _version.py; fall back to the development version
    if version_file.exists():
        match = re.search(
            r"""^__version__\s*=\s*["']([^"']+)["']""",
            version_file.read_text("utf-8"),
            re.MULTILINE,
        )
        if match:
            return match.group(1)
    log.info("No version in _version.py, using development version")
    return "0.1.0.dev0"


setup(
    name="palmwire",
    version=read_version(),
    description="Server-rendered components with captured client-side hydration scripts",
    long_description=(root / "README.md").read_text("utf-8")
    if (root / "README.md").exists()
    else "",
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_packages("src"),
    package_data={"palmwire": ["templates/*.html", "templates/error/*.html"]},
    include_package_data=True,
    install_requires=[
        "starlette>=0.37",
        "jinja2>=3.1",
        "rich>=13.0",
        "rich-click>=1.7",
        "uvicorn>=0.29",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.27",
        ],
    },
    entry_points={
        "console_scripts": [
            "palmwire=palmwire.cli.main:cli",
        ],
    },
    zip_safe=False,
)
