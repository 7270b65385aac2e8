"""
History persistence for per-cycle summary rows.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from ..core.exceptions import PersistenceError
from ..services.models import HistoryRow

logger = logging.getLogger(__name__)

CSV_HEADER = "timestamp,instances,running,invpc,reserved,matched,loadBalancers,databases,domains,volumes,cost"


class HistoryStore(ABC):
    """Stores one summary row per successful cycle."""

    @abstractmethod
    def persist(self, row: HistoryRow) -> None:
        pass

    @abstractmethod
    def get_history(self) -> List[HistoryRow]:
        """Previously persisted rows, oldest first."""
        pass


class NoOpHistoryStore(HistoryStore):
    """Discards rows; used when no history file is configured."""

    def persist(self, row: HistoryRow) -> None:
        pass

    def get_history(self) -> List[HistoryRow]:
        return []


class JsonHistoryStore(HistoryStore):
    """Keeps the history as a JSON list, rewritten atomically on each persist."""

    def __init__(self, history_file: Path, max_rows: Optional[int] = None):
        """Initialize the history store.

        Args:
            history_file: JSON file holding the rows
            max_rows: Keep only the most recent rows when set
        """
        self.history_file = Path(history_file)
        self.history_file.parent.mkdir(parents=True, exist_ok=True)
        self.max_rows = max_rows
        self._lock = threading.Lock()

    def persist(self, row: HistoryRow) -> None:
        """Append a row.

        Raises:
            PersistenceError: If the file cannot be read or written
        """
        with self._lock:
            rows = self._read()
            rows.append(row.to_dict())
            if self.max_rows is not None and len(rows) > self.max_rows:
                rows = rows[-self.max_rows:]

            temp_file = self.history_file.with_suffix('.tmp')
            try:
                with open(temp_file, 'w') as f:
                    json.dump(rows, f, indent=2)
                temp_file.replace(self.history_file)
            except OSError as e:
                if temp_file.exists():
                    temp_file.unlink()
                raise PersistenceError(f"Failed to save history: {e}", details=str(e))

        logger.info(f"Persisted history row for {row.timestamp.isoformat()} to {self.history_file}")

    def get_history(self) -> List[HistoryRow]:
        """Load all rows, oldest first.

        Raises:
            PersistenceError: If the history file is corrupted
        """
        with self._lock:
            rows = self._read()
        try:
            history = [HistoryRow.from_dict(r) for r in rows]
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"History file has an invalid row: {e!r}", details=str(e))
        history.sort(key=lambda r: r.timestamp)
        return history

    def _read(self) -> List[dict]:
        if not self.history_file.exists():
            return []
        try:
            with open(self.history_file, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"History file corrupted: {e}", details=str(e))
        except OSError as e:
            raise PersistenceError(f"Failed to load history: {e}", details=str(e))
        if not isinstance(data, list):
            raise PersistenceError(f"History file {self.history_file} does not contain a list")
        return data


def history_csv(rows: List[HistoryRow]) -> str:
    """Render rows as CSV for charting."""
    lines = [CSV_HEADER]
    for row in rows:
        lines.append(
            f"{row.timestamp.isoformat()},{row.instance_count},{row.running_count},{row.vpc_count},"
            f"{row.reserved_total:g},{row.reserved_used:g},{row.load_balancer_count},"
            f"{row.database_count},{row.domain_record_count},{row.volume_count},{row.total_cost:.2f}"
        )
    return "\n".join(lines) + "\n"
