# -*- coding: utf-8 -*-
"""Filesystem ops: discovery, ignore globs, atomic writes, backups and diffs."""
from __future__ import annotations

import difflib
import fnmatch
import hashlib
import os
import pathlib
import re
import tempfile
from typing import Iterable, List, Optional, Sequence

from .logging import get_logger

logger = get_logger(__name__)

NEWLINE = "\n"

DEFAULT_INCLUDE = ("src/**/*.{tsx,jsx,ts,js}",)

# Build output and dependencies are never scanned.
BUILD_IGNORE = (
    "**/node_modules/**",
    "**/.next/**",
    "**/dist/**",
    "**/build/**",
)

# Wrapping also leaves tests and stories alone.
DEFAULT_IGNORE = BUILD_IGNORE + (
    "**/*.test.*",
    "**/*.spec.*",
    "**/*.stories.*",
    "**/__tests__/**",
)

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> List[str]:
    """Expand ``*.{tsx,jsx}`` style alternatives, which pathlib globbing does not support."""
    m = _BRACE_RE.search(pattern)
    if not m:
        return [pattern]
    head, tail = pattern[: m.start()], pattern[m.end():]
    out: List[str] = []
    for alt in m.group(1).split(","):
        for expanded in expand_braces(head + alt + tail):
            if expanded not in out:
                out.append(expanded)
    return out


def is_ignored(base: pathlib.Path, path: pathlib.Path, ignore_globs: Sequence[str]) -> bool:
    try:
        rel = str(path.relative_to(base)).replace("\\", "/")
    except ValueError:
        return True
    # "**/dir/**" must also match "dir/..." at the top of the tree.
    candidates = (rel, "/" + rel)
    return any(fnmatch.fnmatch(c, pat) for pat in ignore_globs for c in candidates)


def discover_files(
    base: pathlib.Path,
    include: Optional[Iterable[str]] = None,
    exclude: Optional[Iterable[str]] = None,
    default_ignore: Sequence[str] = DEFAULT_IGNORE,
) -> List[pathlib.Path]:
    """Resolve include globs under ``base`` minus default and user exclusions.

    Files matched by several patterns are returned once, in first-seen order.
    """
    base = pathlib.Path(base).resolve()
    ignore_globs = list(default_ignore) + [p for p in (exclude or []) if p]
    seen = set()
    files: List[pathlib.Path] = []
    for raw in include or DEFAULT_INCLUDE:
        for pattern in expand_braces(raw):
            if os.path.isabs(pattern):
                try:
                    pattern = str(pathlib.Path(pattern).relative_to(base))
                except ValueError:
                    logger.warning("Include pattern outside of %s ignored: %s", base, pattern)
                    continue
            for p in sorted(base.glob(pattern)):
                if not p.is_file() or p in seen:
                    continue
                seen.add(p)
                if is_ignored(base, p, ignore_globs):
                    continue
                files.append(p)
    return files


def read_source(path: pathlib.Path) -> str:
    """Read ``path`` as UTF-8 without newline translation, so CRLF files round-trip."""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def atomic_write(path: pathlib.Path, data: str) -> None:
    """Atomically write ``data`` to ``path``.

    This function writes to a temporary file in the same directory, fsyncs,
    then replaces the target. If the target exists, its permissions are
    preserved when possible.
    """
    tmp_dir = path.parent
    tmp_dir.mkdir(parents=True, exist_ok=True)
    orig_mode = None
    try:
        orig_mode = path.stat().st_mode & 0o777
    except OSError:
        orig_mode = None

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile("w", delete=False, dir=tmp_dir, encoding="utf-8", newline="") as tf:
            tmp_name = tf.name
            tf.write(data)
            tf.flush()
            os.fsync(tf.fileno())
        os.replace(tmp_name, str(path))
        tmp_name = None
        if orig_mode is not None:
            try:
                os.chmod(str(path), orig_mode)
            except OSError:
                logger.debug("Failed to chmod %s", path)
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)


def write_backup(path: pathlib.Path, original: str) -> pathlib.Path:
    """Write ``<name>.<sha1[:8]>.bak`` beside ``path`` holding its original text."""
    backup_name = f"{path.name}.{hashlib.sha1(original.encode('utf-8')).hexdigest()[:8]}.bak"
    backup_path = path.with_name(backup_name)
    atomic_write(backup_path, original)
    return backup_path


def unified_diff(a: str, b: str, path: pathlib.Path) -> str:
    return "".join(
        difflib.unified_diff(
            a.splitlines(keepends=True),
            b.splitlines(keepends=True),
            fromfile=f"a/{path}",
            tofile=f"b/{path}",
        )
    )
