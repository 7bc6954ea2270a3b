"""
Ledger merge
============
Appends the work orders of the main ledger that are missing from the
normalized secondary ledger (keyed by Worder). Existing rows are never
rewritten. The inspector column is taken from the organized folder trees
when the order is found there, from the ledger otherwise.
"""

import logging
import re
from pathlib import Path

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill

from .ledger import cell_text, iter_data_rows, open_ledger, read_header
from .paths import iter_leaf_dirs, leading_token
from .report import RunReport

logger = logging.getLogger(__name__)

NORMALIZED_HEADER = ["Date", "Inspector", "Address", "City", "zipcode", "OTYPE", "Worder"]

# source column -> normalized column, in output order
SOURCE_COLUMNS = ["DUEDATE", "INSPECTOR", "ADDRESS1", "CITY", "ZIP", "OTYPE", "WORDER"]

_NUMERIC = re.compile(r'[0-9]+')


def inspector_lookup_roots(dest_root, source_root=None) -> list:
    """
    Trees to search for inspector folders: the destination root, plus the
    folder two levels above the source root (parent-archive layout) when
    the source path is deep enough.
    """
    roots = []
    if dest_root:
        roots.append(Path(dest_root))
    if source_root:
        source_root = Path(source_root)
        segments = [p for p in source_root.parts if p != source_root.anchor]
        grandparent = source_root.parent.parent
        if len(segments) >= 2 and str(grandparent) not in (source_root.anchor, "."):
            roots.append(grandparent)
    return roots


def build_inspector_map(roots) -> dict:
    """Order id -> inspector (top-level folder name) for numeric leaf folders."""
    mapping = {}
    for root in roots:
        root = Path(root)
        if not root.is_dir():
            continue
        for leaf in iter_leaf_dirs(root):
            order_id = leading_token(leaf.name)
            if not _NUMERIC.fullmatch(order_id):
                continue
            parts = leaf.relative_to(root).parts
            if len(parts) < 2:
                continue
            mapping.setdefault(order_id, parts[0])
    return mapping


def _write_header(ws):
    hdr_font = Font(name="Arial", bold=True, color="FFFFFF", size=11)
    hdr_fill = PatternFill("solid", fgColor="2F5496")
    hdr_align = Alignment(horizontal="center", vertical="center")
    for i, h in enumerate(NORMALIZED_HEADER, 1):
        c = ws.cell(row=1, column=i, value=h)
        c.font = hdr_font
        c.fill = hdr_fill
        c.alignment = hdr_align
        ws.column_dimensions[c.column_letter].width = 16
    ws.freeze_panes = "A2"


def _open_target(target_path: Path):
    """(workbook, sheet, Worder column index, header of an existing file or None)."""
    if not target_path.exists():
        wb = Workbook()
        ws = wb.active
        ws.title = "Orders"
        _write_header(ws)
        logger.info(f"Creating normalized ledger {target_path.name}")
        return wb, ws, NORMALIZED_HEADER.index("Worder"), None

    wb = load_workbook(str(target_path))
    ws = wb.worksheets[0]
    header = read_header(ws)
    return wb, ws, header.column("Worder"), header


def merge_ledgers(source_path, target_path, sheet_index: int = 0, dry_run: bool = True,
                  lookup_roots=()) -> RunReport:
    """Append rows of `source_path` whose WORDER is not yet in `target_path`."""
    source_path, target_path = Path(source_path), Path(target_path)
    report = RunReport(dry_run=dry_run)

    source = open_ledger(source_path)
    try:
        sheet = source.sheet(sheet_index)
        header = read_header(sheet)
        indexes = [header.column(name) for name in SOURCE_COLUMNS]
        source_rows = [(row, [cell_text(values[i]) if i < len(values) else "" for i in indexes])
                       for row, values in iter_data_rows(sheet, header)]
    finally:
        source.close()

    wb, ws, worder_idx, target_header = _open_target(target_path)
    present = set()
    if target_header is not None:
        for _row, values in iter_data_rows(ws, target_header):
            worder = cell_text(values[worder_idx]) if worder_idx < len(values) else ""
            if worder:
                present.add(worder)

    inspectors = build_inspector_map(lookup_roots)
    logger.debug(f"Inspector lookup: {len(inspectors)} orders found in folder trees")

    for row, (due, inspector, address, city, zipcode, otype, worder) in source_rows:
        if not worder or worder in present:
            continue
        inspector = inspectors.get(worder, inspector)
        new_row = [due, inspector, address, city, zipcode, otype, worder]
        if dry_run:
            logger.info(f"[DRY-RUN] append_row: {worder} ({inspector}) -> {target_path.name}")
        else:
            ws.append(new_row)
        report.add("append_row", source_path, target_path,
                   reason=f"row {row}, inspector={inspector}", order_id=worder)
        present.add(worder)

    if not dry_run:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(str(target_path))
        logger.info(f"Saved {target_path} ({report.count('append_row')} row(s) added)")
    return report
