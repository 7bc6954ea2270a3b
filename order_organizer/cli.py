#!/usr/bin/env python3
r"""
Work Order Organizer
====================
Routes work-order folders into <dest>/<type>/<id> <type> <URGENCY> from an
Excel ledger. Dry run by default, --execute to apply.

Usage:
  organize-orders organize --ledger ledger.xlsx --source D:\in --dest D:\out
  organize-orders organize --config settings.json --execute
  organize-orders archive D:\zips\0828-Geovane.zip --ledger ledger.xlsx --dest D:\out
  organize-orders archive-folder --archive-folder D:\zips --ledger ledger.xlsx --dest D:\out
  organize-orders parent-archive --parent-archive D:\pai.zip --dest D:\inspectors \
                                 --all-orders D:\all --ledger ledger.xlsx --execute
  organize-orders merge-ledger --ledger ledger.xlsx --secondary-ledger D:\normalized.xlsx
"""

import argparse
import logging
import sys

from . import workflows
from .config import load_settings
from .exceptions import OrganizerError

COMMANDS = {
    "organize": workflows.organize,
    "archive": workflows.organize_archive,
    "archive-folder": workflows.organize_archive_folder,
    "parent-archive": workflows.organize_parent_archive,
    "merge-ledger": workflows.merge_secondary_ledger,
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    log_level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=str, default=None,
                        help="JSON settings file (CLI options override it)")
    common.add_argument("--ledger", dest="ledger_path", default=None,
                        help="Work-order ledger (.xlsx)")
    common.add_argument("--secondary-ledger", dest="secondary_ledger_path", default=None,
                        help="Normalized ledger to merge into "
                             "(default: <ledger>-normalized.xlsx)")
    common.add_argument("--sheet", dest="sheet_index", type=int, default=None,
                        help="Sheet index, 0-based (default: 0)")
    common.add_argument("--source", dest="source_root", default=None,
                        help="Folder holding one sub-folder per order id")
    common.add_argument("--dest", dest="dest_root", default=None,
                        help="Destination root (per type, or per inspector for parent-archive)")
    common.add_argument("--all-orders", dest="all_orders_root", default=None,
                        help="Consolidated all-orders root (parent-archive)")
    common.add_argument("--archive-folder", dest="archive_folder", default=None,
                        help="Folder of order archives (archive-folder)")
    common.add_argument("--parent-archive", dest="parent_archive", default=None,
                        help="Archive of per-inspector archives (parent-archive)")
    common.add_argument("--order-id-column", default=None, help="Header of the order id column")
    common.add_argument("--order-type-column", default=None, help="Header of the order type column")
    common.add_argument("--due-date-column", default=None, help="Header of the due date column")
    common.add_argument("--timezone", default=None,
                        help="Time zone used for 'today' (default: America/Sao_Paulo)")
    common.add_argument("--execute", action="store_true",
                        help="Apply changes (default: dry run)")
    common.add_argument("--no-overwrite", action="store_true",
                        help="Skip inspector archives whose destination already exists")
    common.add_argument("--report", dest="report_path", default=None,
                        help="Write a JSON report of the run")
    common.add_argument("--keep-temp", action="store_true",
                        help="Keep temporary extraction folders")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    parser = argparse.ArgumentParser(
        prog="organize-orders",
        description="Organize work-order folders from an Excel ledger")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("organize", parents=[common],
                   help="Route order folders under --source into --dest")
    p = sub.add_parser("archive", parents=[common],
                       help="Extract one archive and route its order folders")
    p.add_argument("archive", help="Archive (.zip) of order folders")
    sub.add_parser("archive-folder", parents=[common],
                   help="Extract every archive in --archive-folder and route them")
    sub.add_parser("parent-archive", parents=[common],
                   help="Unpack a parent archive of inspector archives")
    sub.add_parser("merge-ledger", parents=[common],
                   help="Append missing ledger rows to the normalized ledger")
    return parser


def _banner(command, settings):
    mode = "DRY RUN" if settings.dry_run else "EXECUTE"
    print(f"{'='*70}", file=sys.stderr)
    print(f"Work Order Organizer - {command}", file=sys.stderr)
    print(f"  Mode:       {mode}", file=sys.stderr)
    for label, value in (("Ledger", settings.ledger_path),
                         ("Source", settings.source_root),
                         ("Dest", settings.dest_root),
                         ("All orders", settings.all_orders_root),
                         ("Archives", settings.archive_folder),
                         ("Parent zip", settings.parent_archive)):
        if value is not None:
            print(f"  {label + ':':<12}{value}", file=sys.stderr)
    print(f"  Time zone:  {settings.timezone}", file=sys.stderr)
    print(f"{'='*70}\n", file=sys.stderr)


def _summary(report):
    print(f"\n{'='*70}")
    print("SUMMARY")
    print(f"{'='*70}")
    for action, n in sorted(report.summary().items()):
        print(f"  {action + ':':<20} {n}")
    if report.warnings:
        print("\nWARNINGS (first 20):")
        for w in report.warnings[:20]:
            print(f"  - {w}")
        if len(report.warnings) > 20:
            print(f"  ... and {len(report.warnings) - 20} more")
    if report.dry_run:
        print("\nDRY RUN complete. Use --execute to apply.")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(
            args.config,
            ledger_path=args.ledger_path,
            secondary_ledger_path=args.secondary_ledger_path,
            sheet_index=args.sheet_index,
            source_root=args.source_root,
            dest_root=args.dest_root,
            all_orders_root=args.all_orders_root,
            archive_folder=args.archive_folder,
            parent_archive=args.parent_archive,
            order_id_column=args.order_id_column,
            order_type_column=args.order_type_column,
            due_date_column=args.due_date_column,
            timezone=args.timezone,
            dry_run=False if args.execute else None,
            overwrite_existing=False if args.no_overwrite else None,
            report_path=args.report_path,
            keep_temp=True if args.keep_temp else None,
        )
        _banner(args.command, settings)
        run = COMMANDS[args.command]
        if args.command == "archive":
            report = run(settings, args.archive)
        else:
            report = run(settings)
    except OrganizerError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    _summary(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
