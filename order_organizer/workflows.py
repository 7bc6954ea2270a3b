"""
Operations wired to Settings. Each one checks its inputs before touching
the disk, passes every root explicitly and returns the RunReport.
"""

import logging
import shutil
import tempfile
from pathlib import Path

from .archives import (archive_base_name, extract_all_in_folder, extract_archive,
                       flatten_self_nested)
from .config import Settings
from .consolidate import consolidate_parent_archive
from .exceptions import ArchiveNotFound, SourceRootNotFound
from .ledger import load_work_orders, open_ledger
from .merge import inspector_lookup_roots, merge_ledgers
from .report import RunReport
from .router import route
from .urgency import resolve_zone, today_in

logger = logging.getLogger(__name__)


def _load_orders(settings: Settings):
    settings.require("ledger_path")
    zone = resolve_zone(settings.timezone)
    orders = load_work_orders(settings.ledger_path, settings.sheet_index,
                              settings.columns, zone)
    logger.info(f"{len(orders)} ledger row(s) read from {settings.ledger_path.name}")
    return orders, today_in(zone)


def _prepare_dest(settings: Settings):
    if not settings.dry_run:
        settings.dest_root.mkdir(parents=True, exist_ok=True)


def _finish(settings: Settings, report: RunReport) -> RunReport:
    if settings.report_path is not None:
        report.write_json(settings.report_path)
    return report


def organize(settings: Settings) -> RunReport:
    """Route the folders under source_root according to the ledger."""
    settings.require("ledger_path", "source_root", "dest_root")
    open_ledger(settings.ledger_path).close()
    if not settings.source_root.is_dir():
        raise SourceRootNotFound(f"Invalid source folder: {settings.source_root}")

    orders, today = _load_orders(settings)
    _prepare_dest(settings)
    report = route(orders, settings.source_root, settings.dest_root, today,
                   dry_run=settings.dry_run)
    return _finish(settings, report)


def organize_archive(settings: Settings, archive) -> RunReport:
    """Extract one archive next to itself and route its order folders."""
    settings.require("ledger_path", "dest_root")
    archive = Path(archive)
    if not archive.is_file():
        raise ArchiveNotFound(f"Archive not found: {archive}")
    orders, today = _load_orders(settings)

    report = RunReport(dry_run=settings.dry_run)
    base = archive_base_name(archive)
    try:
        if settings.dry_run:
            preview = Path(tempfile.mkdtemp(prefix="archive-preview-"))
            report.temp_dirs.append(str(preview))
            target = preview / base
        else:
            target = archive.parent / base
        extract_archive(archive, target)
        flatten_self_nested(target, base)
        report.add("extract_archive", archive, target, status="done")

        _prepare_dest(settings)
        report.extend(route(orders, target, settings.dest_root, today,
                            dry_run=settings.dry_run))
    finally:
        _cleanup(settings, report)
    return _finish(settings, report)


def organize_archive_folder(settings: Settings) -> RunReport:
    """Extract every archive in archive_folder and route each extracted folder."""
    settings.require("ledger_path", "archive_folder", "dest_root")
    if not settings.archive_folder.is_dir():
        raise SourceRootNotFound(f"Invalid archive folder: {settings.archive_folder}")
    orders, today = _load_orders(settings)

    report = RunReport(dry_run=settings.dry_run)
    try:
        output_dir = None
        if settings.dry_run:
            output_dir = Path(tempfile.mkdtemp(prefix="archive-preview-"))
            report.temp_dirs.append(str(output_dir))
        extracted = extract_all_in_folder(settings.archive_folder, output_dir=output_dir,
                                          report=report)
        if not extracted:
            report.warn(f"No archives found in {settings.archive_folder}")

        _prepare_dest(settings)
        for folder in extracted:
            report.extend(route(orders, folder, settings.dest_root, today,
                                dry_run=settings.dry_run))
    finally:
        _cleanup(settings, report)
    return _finish(settings, report)


def organize_parent_archive(settings: Settings) -> RunReport:
    """
    Per-inspector tree under dest_root plus the flat all_orders_root tree.
    The consolidator removes its own temporary folder when it fails.
    """
    settings.require("ledger_path", "parent_archive", "dest_root", "all_orders_root")
    if not settings.parent_archive.is_file():
        raise ArchiveNotFound(f"Parent archive not found: {settings.parent_archive}")
    orders, today = _load_orders(settings)

    _prepare_dest(settings)
    if not settings.dry_run:
        settings.all_orders_root.mkdir(parents=True, exist_ok=True)
    report = consolidate_parent_archive(
        settings.parent_archive, settings.dest_root, settings.all_orders_root, orders, today,
        overwrite_existing=settings.overwrite_existing, dry_run=settings.dry_run)
    _cleanup(settings, report)
    return _finish(settings, report)


def merge_secondary_ledger(settings: Settings) -> RunReport:
    """Append ledger rows missing from the normalized secondary ledger."""
    settings.require("ledger_path")
    roots = inspector_lookup_roots(settings.dest_root, settings.source_root)
    report = merge_ledgers(settings.ledger_path, settings.normalized_ledger_path,
                           settings.sheet_index, dry_run=settings.dry_run,
                           lookup_roots=roots)
    return _finish(settings, report)


def _cleanup(settings: Settings, report: RunReport):
    if settings.keep_temp:
        for d in report.temp_dirs:
            logger.info(f"Temporary folder kept: {d}")
        return
    for d in report.temp_dirs:
        shutil.rmtree(d, ignore_errors=True)
