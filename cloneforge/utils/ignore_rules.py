"""
Ignore Rules
============
Directories and files skipped when walking a generated project.

Ignored patterns:
    - node_modules/
    - .git/ / .next/ / .turbo/
    - dist/ / build/ / coverage/
    - lock files (pnpm-lock.yaml, package-lock.json, yarn.lock)

The anti-gating scan and the parity verifier only ever look at code the
Generator wrote, never at installed dependencies or build output.
"""
import os

IGNORED_DIRS = frozenset({
    "node_modules",
    ".git",
    ".next",
    ".turbo",
    "dist",
    "build",
    "coverage",
})

IGNORED_FILES = frozenset({
    "pnpm-lock.yaml",
    "package-lock.json",
    "yarn.lock",
})

# Test files may legitimately mention "trial" or "locked"
TEST_FILE_MARKERS = (".spec.", ".test.")


def is_ignored_dir(name: str) -> bool:
    return name in IGNORED_DIRS


def is_ignored_file(path: str) -> bool:
    return os.path.basename(path) in IGNORED_FILES


def is_test_file(path: str) -> bool:
    base = os.path.basename(path)
    return any(marker in base for marker in TEST_FILE_MARKERS)
