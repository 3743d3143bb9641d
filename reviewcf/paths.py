from __future__ import annotations

from pathlib import Path
from typing import Optional


ROOT_MARKERS = ("config.yaml", "pyproject.toml", ".git")


def resolve_path(repo_root: Path, path: Path | str) -> Path:
    """Resolve `path` against `repo_root` unless it is already absolute."""
    p = Path(path) if isinstance(path, str) else path
    if not p.is_absolute():
        p = repo_root / p
    return p.resolve()


def _find_root(start: Path) -> Optional[Path]:
    if start.is_file():
        start = start.parent
    for candidate in (start, *start.parents):
        if any((candidate / marker).exists() for marker in ROOT_MARKERS):
            return candidate
    return None


def get_repo_root(start: Path | None = None) -> Path:
    """Return the project root: the nearest directory upwards holding config.yaml, pyproject.toml or .git.

    Searches from `start` (default: the working directory), then from this file.
    """
    root = _find_root(Path(start or Path.cwd()).resolve())
    if root is None:
        root = _find_root(Path(__file__).resolve().parent)
    if root is None:
        raise FileNotFoundError(f"Could not locate repo root (expected one of {ROOT_MARKERS}).")
    return root
