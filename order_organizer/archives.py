"""
Archive pipeline
================
Safe zip extraction (every entry must stay under the target folder),
flattening of archives that repeat their own name as the single top-level
folder, and discovery/extraction of every archive in a folder.
"""

import logging
import os
import shutil
import zipfile
from pathlib import Path

from tqdm import tqdm

from .exceptions import ArchiveNotFound, ConfigurationError, PathTraversal
from .paths import _long

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES = {".zip"}
_CHUNK = 65536


def is_archive(path: Path) -> bool:
    return path.suffix.lower() in ARCHIVE_SUFFIXES


def archive_base_name(path: Path) -> str:
    """'0828-Geovane.ZIP' -> '0828-Geovane'."""
    name = Path(path).name
    if is_archive(Path(name)):
        return name[:-len(Path(name).suffix)]
    return name


def is_safe_path(base_path: str, target_path: str) -> bool:
    """True when target_path is base_path or lies below it."""
    base = os.path.abspath(base_path)
    target = os.path.abspath(target_path)
    try:
        return os.path.commonpath([base, target]) == base
    except ValueError:
        return False


def extract_archive(archive, target_dir) -> Path:
    """
    Extract `archive` (path or binary stream) into `target_dir`.

    All entries are checked before the first write: an entry such as
    `../../evil` raises PathTraversal and nothing is extracted. Existing
    files are overwritten.
    """
    if isinstance(archive, (str, os.PathLike)):
        archive = Path(archive)
        if not archive.is_file():
            raise ArchiveNotFound(f"Archive not found: {archive}")

    target = Path(target_dir)
    root = os.path.abspath(target)

    with zipfile.ZipFile(archive) as zf:
        plan = []
        for member in zf.infolist():
            dest = os.path.normpath(os.path.join(root, member.filename))
            if not is_safe_path(root, dest):
                raise PathTraversal(member.filename, target)
            plan.append((member, dest))

        os.makedirs(_long(root), exist_ok=True)
        for member, dest in plan:
            if member.is_dir():
                os.makedirs(_long(dest), exist_ok=True)
                continue
            os.makedirs(_long(os.path.dirname(dest)), exist_ok=True)
            with zf.open(member) as src, open(_long(dest), 'wb') as out:
                shutil.copyfileobj(src, out, _CHUNK)

    logger.debug(f"Extracted {getattr(archive, 'name', archive)} -> {target}")
    return target


def _merge_move(src: Path, dst: Path):
    if not dst.exists():
        shutil.move(_long(src), _long(dst))
    elif src.is_dir() and dst.is_dir():
        for child in sorted(src.iterdir()):
            _merge_move(child, dst / child.name)
        src.rmdir()
    else:
        if dst.is_dir():
            shutil.rmtree(_long(dst))
        else:
            dst.unlink()
        shutil.move(_long(src), _long(dst))


def flatten_self_nested(folder, expected_base_name: str) -> bool:
    """
    `x/x/...` -> `x/...`: lift the children of `folder/expected_base_name`
    into `folder` and drop the emptied directory. Returns True if it did.
    """
    folder = Path(folder)
    nested = folder / expected_base_name
    if not expected_base_name or not nested.is_dir():
        return False

    # step aside first, the nested folder may contain its own name again
    holding = folder / f".{expected_base_name}.flatten"
    nested.rename(holding)
    for child in sorted(holding.iterdir()):
        _merge_move(child, folder / child.name)
    holding.rmdir()
    logger.debug(f"Flattened {nested}")
    return True


def discover_archives(folder, recursive: bool = False) -> list:
    folder = Path(folder)
    candidates = folder.rglob("*") if recursive else folder.iterdir()
    return sorted(p for p in candidates if p.is_file() and is_archive(p))


def extract_all_in_folder(folder, recursive: bool = False, output_dir=None,
                          report=None) -> list:
    """
    Extract every archive directly in `folder` into a directory named after
    it (extension stripped), next to the archive unless `output_dir` is
    given. recursive=True repeats the process inside each produced
    directory, for archives that bundle per-order archives.
    """
    folder = Path(folder)
    if not folder.is_dir():
        raise ConfigurationError(f"Invalid archive folder: {folder}")
    out = Path(output_dir) if output_dir is not None else folder

    produced = []
    archives = discover_archives(folder)
    bar = tqdm(archives, desc=f"Extracting {folder.name}", unit="zip", leave=False,
               disable=not archives)
    for archive in bar:
        base = archive_base_name(archive)
        target = out / base
        extract_archive(archive, target)
        flatten_self_nested(target, base)
        if report is not None:
            report.add("extract_archive", archive, target, status="done")
        produced.append(target)
        if recursive:
            extract_all_in_folder(target, recursive=True, report=report)
    bar.close()
    return produced
