"""
Settings for a run: module defaults, an optional JSON file, then CLI
overrides on top (None means "not given").

Example settings.json:

    {
      "ledger_path": "D:/orders/ledger.xlsx",
      "source_root": "D:/orders/incoming",
      "dest_root": "D:/orders/by_type",
      "all_orders_root": "D:/orders/all",
      "columns": {"order_id": "WORDER", "order_type": "OTYPE", "due_date": "DUEDATE"},
      "timezone": "America/Sao_Paulo"
    }
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError
from .urgency import DEFAULT_TIMEZONE

_PATH_FIELDS = ("ledger_path", "secondary_ledger_path", "source_root", "dest_root",
                "archive_folder", "parent_archive", "all_orders_root", "report_path")


@dataclass
class ColumnNames:
    order_id: str = "WORDER"
    order_type: str = "OTYPE"
    due_date: str = "DUEDATE"


@dataclass
class Settings:
    ledger_path: Optional[Path] = None
    secondary_ledger_path: Optional[Path] = None
    sheet_index: int = 0
    source_root: Optional[Path] = None
    dest_root: Optional[Path] = None
    archive_folder: Optional[Path] = None
    parent_archive: Optional[Path] = None
    all_orders_root: Optional[Path] = None
    columns: ColumnNames = field(default_factory=ColumnNames)
    timezone: str = DEFAULT_TIMEZONE
    dry_run: bool = True
    overwrite_existing: bool = True
    report_path: Optional[Path] = None
    keep_temp: bool = False

    def __post_init__(self):
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value))
        if isinstance(self.columns, dict):
            self.columns = _columns_from(self.columns)

    @property
    def normalized_ledger_path(self) -> Optional[Path]:
        """Secondary ledger, defaulting to `<ledger>-normalized.xlsx` beside the ledger."""
        if self.secondary_ledger_path is not None:
            return self.secondary_ledger_path
        if self.ledger_path is None:
            return None
        return self.ledger_path.with_name(f"{self.ledger_path.stem}-normalized.xlsx")

    def require(self, *names):
        missing = [n for n in names if getattr(self, n) is None]
        if missing:
            raise ConfigurationError(f"Missing setting(s): {', '.join(missing)}")


def _columns_from(data: dict) -> ColumnNames:
    known = {f.name for f in fields(ColumnNames)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"Unknown column setting(s): {', '.join(sorted(unknown))}")
    return ColumnNames(**{k: v for k, v in data.items() if v})


def load_settings(path=None, **overrides) -> Settings:
    """Defaults <- JSON file <- overrides (None values are ignored)."""
    data = {}
    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Config file not found: {path}")
        try:
            data = json.loads(path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must hold a JSON object")

    columns = dict(data.pop("columns", None) or {})
    for key in ("order_id", "order_type", "due_date"):
        value = overrides.pop(f"{key}_column", None)
        if value:
            columns[key] = value

    known = {f.name for f in fields(Settings)} - {"columns"}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
    unknown = set(overrides) - known
    if unknown:
        raise ConfigurationError(f"Unknown override(s): {', '.join(sorted(unknown))}")

    data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(columns=_columns_from(columns), **data)
