import shutil
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def _setup_version(project: Path) -> str:
    result = subprocess.run(
        [sys.executable, "setup.py", "--version"],
        cwd=project,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip().splitlines()[-1]


def test_version_is_read_from_version_file(tmp_path):
    shutil.copy(ROOT / "setup.py", tmp_path / "setup.py")
    package = tmp_path / "src" / "palmwire"
    package.mkdir(parents=True)
    (package / "__init__.py").write_text("")
    (package / "_version.py").write_text(
        "# generated\n__version__ = '9.9.9'\nraise SystemExit('not executed')\n"
    )

    assert _setup_version(tmp_path) == "9.9.9"


def test_version_falls_back_without_version_file(tmp_path):
    shutil.copy(ROOT / "setup.py", tmp_path / "setup.py")
    package = tmp_path / "src" / "palmwire"
    package.mkdir(parents=True)
    (package / "__init__.py").write_text("")

    assert _setup_version(tmp_path) == "0.1.0.dev0"
