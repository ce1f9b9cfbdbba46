"""Switch history -- in-memory log of switch outcomes and rollbacks.

Keeps every terminal ``SwitchOutcome`` (successes and failures) plus the
rollbacks operators triggered by hand, for the lifetime of the process.
Nothing is persisted; export with ``to_json`` if a durable record is needed.
"""

from __future__ import annotations

import json
import threading
from typing import Any

from traffic_switch.domain.enums import Environment
from traffic_switch.domain.values import RollbackResult, SwitchOutcome
from traffic_switch.infrastructure.serialization import outcome_to_dict, rollback_to_dict


class SwitchHistory:
    """Bounded, append-only record of switch attempts.

    Parameters
    ----------
    max_size:
        Outcomes to keep; the oldest are evicted first.  ``0`` = unlimited.
    """

    def __init__(self, max_size: int = 100) -> None:
        self._outcomes: list[SwitchOutcome] = []
        self._rollbacks: list[RollbackResult] = []
        self._max_size = max_size
        self._lock = threading.Lock()

    def record(self, outcome: SwitchOutcome) -> SwitchOutcome:
        with self._lock:
            self._outcomes.append(outcome)
            if self._max_size > 0 and len(self._outcomes) > self._max_size:
                self._outcomes = self._outcomes[-self._max_size:]
        return outcome

    def record_rollback(self, result: RollbackResult) -> RollbackResult:
        with self._lock:
            self._rollbacks.append(result)
            if self._max_size > 0 and len(self._rollbacks) > self._max_size:
                self._rollbacks = self._rollbacks[-self._max_size:]
        return result

    def query(
        self,
        environment: Environment | None = None,
        success: bool | None = None,
        limit: int = 0,
    ) -> list[SwitchOutcome]:
        """Outcomes filtered by requested environment and/or success.

        ``limit`` keeps the most recent matches (0 = all).
        """
        with self._lock:
            results = list(self._outcomes)
        if environment is not None:
            results = [o for o in results if o.requested_environment is environment]
        if success is not None:
            results = [o for o in results if o.success is success]
        if limit > 0:
            results = results[-limit:]
        return results

    @property
    def outcomes(self) -> list[SwitchOutcome]:
        with self._lock:
            return list(self._outcomes)

    @property
    def rollbacks(self) -> list[RollbackResult]:
        with self._lock:
            return list(self._rollbacks)

    @property
    def last(self) -> SwitchOutcome | None:
        with self._lock:
            return self._outcomes[-1] if self._outcomes else None

    def success_rate(self) -> float:
        """Share of recorded switches that succeeded (0.0 when empty)."""
        with self._lock:
            if not self._outcomes:
                return 0.0
            return sum(1 for o in self._outcomes if o.success) / len(self._outcomes)

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "switches": [outcome_to_dict(o) for o in self.outcomes],
            "rollbacks": [rollback_to_dict(r) for r in self.rollbacks],
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def clear(self) -> None:
        with self._lock:
            self._outcomes.clear()
            self._rollbacks.clear()
