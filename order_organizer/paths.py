"""Filesystem-safe names, collision-free destinations and tree helpers."""

import gc
import os
import re
import shutil
import sys
import time
from pathlib import Path
from typing import Iterable, Iterator

IS_WINDOWS = sys.platform == "win32"

MAX_NAME_LENGTH = 120

_RETRY_ATTEMPTS = 5
_RETRY_BASE_DELAY = 0.1  # seconds, doubles each attempt

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')
_FORBIDDEN_CHARS = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE = re.compile(r'\s+')

RESERVED_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)


# ── Windows path helpers ─────────────────────────────────────────────────────

def _long(p) -> str:
    s = str(p)
    if IS_WINDOWS and not s.startswith("\\\\?\\"):
        s = os.path.abspath(s)
        s = "\\\\?\\" + s
    return s


def _exists(p) -> bool:
    return os.path.exists(_long(p))


# ── Names ────────────────────────────────────────────────────────────────────

def sanitize(name: str) -> str:
    """Turn arbitrary text into a single safe path segment."""
    n = _CONTROL_CHARS.sub(" ", name)
    n = _FORBIDDEN_CHARS.sub("_", n)
    n = _WHITESPACE.sub(" ", n).strip()
    if n.upper() in RESERVED_NAMES:
        n = f"_{n}_"
    if len(n) > MAX_NAME_LENGTH:
        n = n[:MAX_NAME_LENGTH].rstrip()
    return n


def leading_token(name: str) -> str:
    return name.split(" ", 1)[0]


def unique_path(dest: Path, taken: Iterable = ()) -> Path:
    """
    First free variant of `dest`: itself, then `<name>-1`, `<name>-2`, ...

    `taken` holds paths already promised to someone else (dry-run plans),
    they count as occupied even though nothing exists on disk yet.
    """
    taken = {str(t) for t in taken}

    def _free(p: Path) -> bool:
        return not _exists(p) and str(p) not in taken

    if _free(dest):
        return dest
    base, parent = dest.name, dest.parent
    i = 1
    while True:
        candidate = parent / f"{base}-{i}"
        if _free(candidate):
            return candidate
        i += 1


# ── Tree helpers ─────────────────────────────────────────────────────────────

def list_dirs(root: Path) -> list:
    return sorted(p for p in root.iterdir() if p.is_dir())


def iter_leaf_dirs(root: Path) -> Iterator[Path]:
    """Directories below `root` without subdirectories, sorted walk order."""
    for dirpath, dirnames, _ in os.walk(root):
        dirnames.sort()
        if not dirnames and Path(dirpath) != Path(root):
            yield Path(dirpath)


def _copy_file(src: Path, dst: Path):
    # Retry with exponential backoff for WinError 32 (file locked)
    for attempt in range(_RETRY_ATTEMPTS):
        try:
            shutil.copy2(_long(src), _long(dst))
            return
        except OSError as e:
            locked = getattr(e, 'winerror', 0) == 32 or 'being used' in str(e)
            if not locked or attempt == _RETRY_ATTEMPTS - 1:
                raise
            time.sleep(_RETRY_BASE_DELAY * (2 ** attempt))
            gc.collect()


def copy_tree(src: Path, dst: Path):
    """Recursive copy; existing files in `dst` are overwritten."""
    for dirpath, dirnames, filenames in os.walk(src):
        dirnames.sort()
        rel = Path(dirpath).relative_to(src)
        target = dst / rel
        os.makedirs(_long(target), exist_ok=True)
        for fn in sorted(filenames):
            _copy_file(Path(dirpath) / fn, target / fn)


def move_tree(src: Path, dst: Path):
    os.makedirs(_long(dst.parent), exist_ok=True)
    shutil.move(_long(src), _long(dst))


def remove_tree(path: Path):
    shutil.rmtree(_long(path))
