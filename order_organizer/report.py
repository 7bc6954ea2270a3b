"""Run report: every planned or applied change plus the warnings of a run."""

import datetime
import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Change:
    action: str       # copy_order, move_order, move_unlisted, delete_existing, ...
    source: str
    destination: str
    reason: str = ""
    order_id: str = ""
    status: str = "planned"


@dataclass
class RunReport:
    dry_run: bool = True
    changes: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    temp_dirs: list = field(default_factory=list)

    def add(self, action, source, destination, reason="", order_id="", status=None) -> Change:
        if status is None:
            status = "planned" if self.dry_run else "done"
        change = Change(action=action, source=str(source), destination=str(destination),
                        reason=reason, order_id=order_id, status=status)
        self.changes.append(change)
        return change

    def warn(self, msg: str):
        logger.warning(msg)
        self.warnings.append(msg)

    def extend(self, other: "RunReport"):
        self.changes.extend(other.changes)
        self.warnings.extend(other.warnings)
        self.temp_dirs.extend(other.temp_dirs)

    def count(self, action: str, status: str = None) -> int:
        return sum(1 for c in self.changes
                   if c.action == action and (status is None or c.status == status))

    def destinations(self, action: str = None) -> list:
        return [c.destination for c in self.changes if action is None or c.action == action]

    def summary(self) -> dict:
        counts = Counter(c.action for c in self.changes)
        counts["warnings"] = len(self.warnings)
        return dict(counts)

    def write_json(self, path: Path):
        data = {
            "generated": datetime.datetime.now().isoformat(),
            "dry_run": self.dry_run,
            "changes": [asdict(c) for c in self.changes],
            "warnings": self.warnings,
        }
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding='utf-8')
        logger.info(f"Run report written to {path}")
