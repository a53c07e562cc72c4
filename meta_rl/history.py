"""Append-only per-task log of adaptation results."""
import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional

import numpy as np

from core.types import MetaRLResult


class AdaptationHistoryStore:
    """Results keyed by task id, oldest first.

    Consulted by the prioritized task sampler and exposed to callers for
    diagnostics.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._results: Dict[str, List[MetaRLResult]] = defaultdict(list)

    def record(self, result: MetaRLResult) -> None:
        with self._lock:
            self._results[result.task_id].append(result)

    def get(self, task_id: str) -> List[MetaRLResult]:
        """All results for ``task_id`` (empty list if unknown)."""
        with self._lock:
            return list(self._results.get(task_id, ()))

    def latest(self, task_id: str) -> Optional[MetaRLResult]:
        with self._lock:
            results = self._results.get(task_id)
            return results[-1] if results else None

    def task_ids(self) -> List[str]:
        with self._lock:
            return list(self._results)

    def summary(self, task_id: str) -> Dict[str, Any]:
        """Count, mean and last adaptation score of a task."""
        results = self.get(task_id)
        scores = [r.adaptation_score for r in results]
        return {
            'task_id': task_id,
            'count': len(results),
            'mean_score': float(np.mean(scores)) if scores else None,
            'last_score': scores[-1] if scores else None,
        }

    def __contains__(self, task_id: str) -> bool:
        with self._lock:
            return bool(self._results.get(task_id))

    def __len__(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._results.values())
