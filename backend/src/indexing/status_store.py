"""In-memory run status tracker for catalog indexing.

Process-wide table from catalog id to the state of its current indexing
run. Nothing is persisted: after a restart every catalog reads as idle and
pollers are expected to re-trigger.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from domain.errors import InvalidArgumentError


class IndexingStatus(str, Enum):
    """Indexing run status

    State flow within one run:
    idle → in-progress → completed or failed
    """
    IDLE = "idle"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class IndexingRun:
    """Status snapshot returned to pollers"""
    status: IndexingStatus
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


IDLE_RUN = IndexingRun(status=IndexingStatus.IDLE, updated_at=None)


class RunStatusTracker:
    """Concurrency-safe catalog id → IndexingRun table.

    Each write replaces the entry for its id (last write wins). There is no
    compare-and-swap; the indexing supervisor keeps one run per catalog.
    """

    def __init__(self):
        self._runs: Dict[str, IndexingRun] = {}
        self._lock = threading.Lock()

    def set_status(self, catalog_id: str, status: Union[IndexingStatus, str]) -> IndexingRun:
        """Overwrite the status for catalog_id, stamped with the current time.

        Raises:
            InvalidArgumentError: Empty id or unknown status
        """
        if not catalog_id or not isinstance(catalog_id, str):
            raise InvalidArgumentError("catalog id is required for set_status")
        try:
            status = IndexingStatus(status)
        except ValueError:
            raise InvalidArgumentError(
                f"Invalid indexing status: {status!r}. "
                f"Must be one of: {', '.join(s.value for s in IndexingStatus)}"
            )

        run = IndexingRun(status=status, updated_at=datetime.now(timezone.utc))
        with self._lock:
            self._runs[catalog_id] = run
        return run

    def get_status(self, catalog_id: str) -> IndexingRun:
        """Current run state; idle with no timestamp if never set.

        Raises:
            InvalidArgumentError: Empty id
        """
        if not catalog_id or not isinstance(catalog_id, str):
            raise InvalidArgumentError("catalog id is required for get_status")
        with self._lock:
            return self._runs.get(catalog_id, IDLE_RUN)

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()


# Module-level tracker shared by the whole process
status_tracker = RunStatusTracker()
