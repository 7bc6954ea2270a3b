import datetime
import zipfile
from pathlib import Path

import pytest
from openpyxl import Workbook

from order_organizer.config import ColumnNames
from order_organizer.ledger import WorkOrder

LEDGER_HEADER = ["WORDER", "OTYPE", "DUEDATE", "INSPECTOR", "ADDRESS1", "CITY", "ZIP"]

TODAY = datetime.date(2025, 6, 8)


def write_ledger(path: Path, rows, header=LEDGER_HEADER) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    ws = wb.active
    if header is not None:
        ws.append(header)
    for row in rows:
        ws.append(row)
    wb.save(str(path))
    return path


def write_zip(path: Path, entries: dict) -> Path:
    """entries: name -> text or bytes (None for a directory entry)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as z:
        for name, content in entries.items():
            if content is None:
                z.writestr(zipfile.ZipInfo(name if name.endswith("/") else name + "/"), b"")
            else:
                z.writestr(name, content)
    return path


def write_file(path: Path, content: str = "dummy") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def order(order_id, order_type="A", due=None, row=2, due_text=None):
    if due_text is None:
        due_text = due.isoformat() if due else ""
    return WorkOrder(row=row, order_id=order_id, order_type=order_type,
                     due_date=due, due_text=due_text)


@pytest.fixture
def columns():
    return ColumnNames()


@pytest.fixture
def inspector_zip(tmp_path):
    """0828-Geovane.zip holding 350394452/data.txt."""
    return write_zip(tmp_path / "build" / "0828-Geovane.zip", {
        "350394452/": None,
        "350394452/data.txt": "dados",
    })


@pytest.fixture
def parent_zip(tmp_path, inspector_zip):
    path = tmp_path / "pai.zip"
    with zipfile.ZipFile(path, "w") as z:
        z.write(inspector_zip, inspector_zip.name)
    return path
