"""
Path Utils
==========
Path normalisation and project-relative conversion helpers.

Responsibilities:
    - Walk a generated project for source files (respecting ignore rules)
    - Convert absolute paths to project-relative paths with forward slashes
    - Validate that LLM-proposed file paths stay inside the project
"""
import os
from typing import Iterator, Optional, Tuple

from cloneforge.utils.ignore_rules import is_ignored_dir, is_ignored_file

SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")


def to_relative(path: str, root: str) -> str:
    return os.path.relpath(path, root).replace(os.sep, "/")


def iter_source_files(root: str, extensions: Tuple[str, ...] = SOURCE_EXTENSIONS) -> Iterator[str]:
    """Yield absolute paths of source files under ``root``, sorted per directory."""
    if not os.path.isdir(root):
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not is_ignored_dir(d))
        for name in sorted(filenames):
            full = os.path.join(dirpath, name)
            if name.endswith(extensions) and not is_ignored_file(full):
                yield full


def resolve_inside(root: str, relative: str) -> Optional[str]:
    """Absolute path for ``relative`` under ``root``, or None if it escapes the root."""
    root_abs = os.path.realpath(root)
    candidate = os.path.realpath(os.path.join(root_abs, relative.lstrip("/\\")))
    if candidate != root_abs and not candidate.startswith(root_abs + os.sep):
        return None
    return candidate
