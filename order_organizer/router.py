"""
Order router
============
Walks the ledger rows and moves (or copies) each order folder found under
the source root into:

    <dest_root>/<type>/<id> <type> <URGENCY>[-N]

Folders under the source root that no ledger row claims are moved into
`<source_root>/unlisted/<name>[-N]` at the end of the pass. Dry-run only
logs and records the plan.
"""

import datetime
import logging
import os
from pathlib import Path

from tqdm import tqdm

from .exceptions import SourceRootNotFound
from .paths import _long, copy_tree, list_dirs, move_tree, sanitize, unique_path
from .report import RunReport
from .urgency import classify

logger = logging.getLogger(__name__)

UNLISTED_DIR = "unlisted"


def destination_for(dest_root: Path, order_id: str, order_type: str, urgency) -> Path:
    type_dir = dest_root / sanitize(order_type)
    return type_dir / sanitize(f"{order_id} {order_type} {urgency}".strip())


def route(orders, source_root, dest_root, today: datetime.date,
          dry_run: bool = True, keep_source: bool = False) -> RunReport:
    """
    Route every order folder named in `orders` (WorkOrder list).

    keep_source=False moves the folder, True copies it and leaves the
    source tree as it was. Returns the RunReport of the pass.
    """
    source_root, dest_root = Path(source_root), Path(dest_root)
    if not source_root.is_dir():
        raise SourceRootNotFound(f"Invalid source folder: {source_root}")

    report = RunReport(dry_run=dry_run)
    excluded = {sanitize(UNLISTED_DIR)}
    try:
        # destination tree living inside the source root is never "unlisted"
        excluded.add(dest_root.resolve().relative_to(source_root.resolve()).parts[0])
    except (ValueError, IndexError):
        pass
    listed = frozenset(p.name for p in list_dirs(source_root)) - excluded
    claimed = set()
    planned = set()
    action = "copy_order" if keep_source else "move_order"

    bar = tqdm(orders, desc=f"Routing {source_root.name}", unit="order", leave=False,
               bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]")
    for order in bar:
        where = f"row {order.row}"
        if not order.order_id:
            report.warn(f"{where}: empty order id, skipping")
            continue
        if not order.order_type:
            report.warn(f"{where}: empty order type (order {order.order_id}), skipping")
            continue
        if order.due_date is None and order.due_text:
            report.warn(f"{where}: unreadable due date '{order.due_text}' "
                        f"(order {order.order_id}), using NO_DATE")

        urgency = classify(today, order.due_date)

        src = source_root / order.order_id
        # a moved folder is gone for later rows naming the same id
        moved = not keep_source and order.order_id in claimed
        if (order.order_id in excluded or order.order_id == ".." or moved
                or src.name != order.order_id or not src.is_dir()):
            report.warn(f"{where}: order folder not found: {src}")
            continue
        claimed.add(order.order_id)

        dest = unique_path(destination_for(dest_root, order.order_id, order.order_type, urgency),
                           taken=planned)
        reason = f"due={order.due_date or '-'} urgency={urgency}"

        if dry_run:
            planned.add(str(dest))
            logger.info(f"[DRY-RUN] {action}: {src} -> {dest} ({reason})")
            report.add(action, src, dest, reason=reason, order_id=order.order_id)
            continue

        os.makedirs(_long(dest.parent), exist_ok=True)
        if keep_source:
            copy_tree(src, dest)
        else:
            move_tree(src, dest)
        logger.info(f"{action}: {src.name} -> {dest.parent.name}/{dest.name} (urgency={urgency})")
        report.add(action, src, dest, reason=reason, order_id=order.order_id)
    bar.close()

    relocate_unlisted(source_root, listed - claimed, report, dry_run)
    return report


def relocate_unlisted(source_root: Path, names, report: RunReport, dry_run: bool):
    """Move folders no ledger row claimed into the `unlisted` sentinel folder."""
    unlisted_dir = source_root / sanitize(UNLISTED_DIR)
    planned = set()
    for name in sorted(names):
        src = source_root / name
        if not src.is_dir():
            continue
        dest = unique_path(unlisted_dir / name, taken=planned)
        if dry_run:
            planned.add(str(dest))
            logger.info(f"[DRY-RUN] move_unlisted: {src} -> {dest}")
        else:
            move_tree(src, dest)
            logger.info(f"move_unlisted: {name} -> {unlisted_dir.name}/{dest.name}")
        report.add("move_unlisted", src, dest, reason="not in ledger", order_id=name)
