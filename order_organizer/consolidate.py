"""
Nested-archive consolidator
===========================
A parent archive holds one archive per inspector (`0828-Geovane.zip`),
which holds order folders or per-order archives. Each inspector archive is
unpacked into

    <dest_root>/<Inspector>/<archive name>/

and its orders are routed (copied) into the flat all-orders tree. Finally
the leaf folders of the per-inspector tree are renamed to the
`<id> <type> <URGENCY>` names chosen in the all-orders tree.
"""

import datetime
import logging
import shutil
import tempfile
from pathlib import Path

from tqdm import tqdm

from .archives import (archive_base_name, discover_archives, extract_all_in_folder,
                       extract_archive, flatten_self_nested)
from .exceptions import ArchiveNotFound
from .paths import iter_leaf_dirs, leading_token, remove_tree, sanitize, unique_path
from .report import RunReport
from .router import route

logger = logging.getLogger(__name__)


def inspector_name(base_name: str) -> str:
    """'0828-geovane' -> 'Geovane'; names without '-' are kept whole."""
    if "-" not in base_name:
        return base_name
    return base_name.split("-", 1)[1].capitalize()


def final_leaf_names(all_orders_root) -> dict:
    """Leading token -> leaf name for every leaf of the all-orders tree."""
    all_orders_root = Path(all_orders_root)
    if not all_orders_root.is_dir():
        return {}
    return {leading_token(leaf.name): leaf.name for leaf in iter_leaf_dirs(all_orders_root)}


def rename_leaf_directories(all_orders_root, dest_root, dry_run: bool = True,
                            report: RunReport = None) -> list:
    """
    Give per-inspector leaf folders the names their orders got in the
    all-orders tree, matched on the leading token (`350394452`).
    Returns [(old, new), ...].
    """
    all_orders_root, dest_root = Path(all_orders_root), Path(dest_root)
    if not all_orders_root.is_dir() or not dest_root.is_dir():
        return []
    return _rename_leaves(dest_root, final_leaf_names(all_orders_root), dry_run, report)


def _rename_leaves(tree_root: Path, final_names: dict, dry_run: bool, report=None,
                   shown_root: Path = None) -> list:
    """shown_root: report paths under it instead of tree_root (dry-run preview)."""
    renamed = []
    planned = set()
    for leaf in list(iter_leaf_dirs(tree_root)):
        target_name = final_names.get(leading_token(leaf.name))
        if target_name is None or leaf.name == target_name:
            continue
        new = unique_path(leaf.parent / target_name, taken=planned)
        old_shown, new_shown = leaf, new
        if shown_root is not None:
            old_shown = shown_root / leaf.relative_to(tree_root)
            new_shown = shown_root / new.relative_to(tree_root)
        if dry_run:
            planned.add(str(new))
            logger.info(f"[DRY-RUN] rename_leaf: {old_shown} -> {new_shown.name}")
        else:
            leaf.rename(new)
            logger.info(f"rename_leaf: {leaf.name} -> {new.name}")
        if report is not None:
            report.add("rename_leaf", old_shown, new_shown, order_id=leading_token(leaf.name))
        renamed.append((old_shown, new_shown))
    return renamed


def consolidate_parent_archive(parent_archive, dest_root, all_orders_root, orders,
                               today: datetime.date, overwrite_existing: bool = True,
                               dry_run: bool = True, work_dir=None) -> RunReport:
    """
    Unpack a parent archive of inspector archives and route every order.

    The temporary extraction folder is listed in `report.temp_dirs`;
    removing it is up to the caller. When extraction fails the folder is
    removed here and the error propagates.
    """
    parent_archive = Path(parent_archive)
    dest_root, all_orders_root = Path(dest_root), Path(all_orders_root)
    if not parent_archive.is_file():
        raise ArchiveNotFound(f"Parent archive not found: {parent_archive}")

    report = RunReport(dry_run=dry_run)
    temp_dir = Path(tempfile.mkdtemp(prefix="parent-archive-", dir=work_dir))
    report.temp_dirs.append(str(temp_dir))
    try:
        _consolidate(parent_archive, dest_root, all_orders_root, orders, today,
                     overwrite_existing, dry_run, temp_dir, report)
    except Exception:
        logger.debug(f"Removing {temp_dir} after failure")
        shutil.rmtree(temp_dir, ignore_errors=True)
        raise
    return report


def _consolidate(parent_archive: Path, dest_root: Path, all_orders_root: Path, orders, today,
                 overwrite_existing: bool, dry_run: bool, temp_dir: Path, report: RunReport):
    unpacked = temp_dir / "unpacked"
    preview = temp_dir / "preview"
    extract_archive(parent_archive, unpacked)
    logger.info(f"Parent archive {parent_archive.name} extracted to {unpacked}")

    inner_archives = discover_archives(unpacked, recursive=True)
    if not inner_archives:
        report.warn(f"No inspector archives inside {parent_archive.name}")

    for inner in tqdm(inner_archives, desc="Inspector archives", unit="zip", leave=False):
        base = archive_base_name(inner)
        inspector = inspector_name(base)
        target = dest_root / sanitize(inspector) / sanitize(base)

        if target.exists():
            if not overwrite_existing:
                logger.info(f"Skipping {inner.name}: {target} already exists")
                report.add("extract_archive", inner, target,
                           reason="destination exists", status="skipped")
                continue
            if dry_run:
                logger.info(f"[DRY-RUN] delete_existing: {target}")
            else:
                remove_tree(target)
                logger.info(f"delete_existing: {target}")
            report.add("delete_existing", target, target, reason="overwrite")

        # dry-run unpacks next to the parent extraction so dest_root stays untouched
        workspace = preview / sanitize(inspector) / sanitize(base) if dry_run else target
        extract_archive(inner, workspace)
        flatten_self_nested(workspace, base)
        extract_all_in_folder(workspace, recursive=True)
        report.add("extract_archive", inner, target, reason=f"inspector={inspector}")

        report.extend(route(orders, workspace, all_orders_root, today,
                            dry_run=dry_run, keep_source=True))

    if not dry_run:
        rename_leaf_directories(all_orders_root, dest_root, dry_run=False, report=report)
    elif preview.is_dir():
        # planned copies are not on disk yet, their names come from the plan
        final_names = final_leaf_names(all_orders_root)
        for planned in report.destinations("copy_order"):
            name = Path(planned).name
            final_names[leading_token(name)] = name
        _rename_leaves(preview, final_names, dry_run=True, report=report, shown_root=dest_root)
