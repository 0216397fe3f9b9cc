"""
Operation logging service.

Records database operations, text-generation calls, template fallbacks
and matching outcomes through the standard ``logging`` module and keeps
per-process counters.  One instance is created in the application
lifespan, handed to the services that need it, and closed at shutdown
(which logs the counter summary).
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Optional


class OperationLogger:
    """Structured operation log with simple counters."""

    def __init__(self, name: str = "app.operations", logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(name)
        self._counts: Counter = Counter()
        self.closed = False

    def database_operation(
        self, operation: str, table: str, success: bool, duration_ms: float
    ) -> None:
        outcome = "ok" if success else "failed"
        self._counts[f"db.{operation}.{outcome}"] += 1
        level = logging.DEBUG if success else logging.WARNING
        self._logger.log(
            level,
            "DB %s %s %s (%.2f ms)",
            operation,
            table,
            outcome,
            duration_ms,
        )

    def match_run(
        self, user_id: int, candidates: int, retained: int, returned: int, duration_ms: float
    ) -> None:
        self._counts["match.runs"] += 1
        self._logger.info(
            "Buddy matching for user=%s: %d candidates, %d retained, %d returned (%.2f ms)",
            user_id,
            candidates,
            retained,
            returned,
            duration_ms,
        )

    def ai_call(self, operation: str, success: bool, duration_ms: float) -> None:
        outcome = "ok" if success else "failed"
        self._counts[f"ai.{operation}.{outcome}"] += 1
        level = logging.INFO if success else logging.WARNING
        self._logger.log(level, "AI %s %s (%.2f ms)", operation, outcome, duration_ms)

    def fallback_used(self, kind: str) -> None:
        self._counts[f"fallback.{kind}"] += 1
        self._logger.info("Using template fallback for %s", kind)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._counts:
            summary = ", ".join(f"{k}={v}" for k, v in sorted(self._counts.items()))
            self._logger.info("Operation summary: %s", summary)
