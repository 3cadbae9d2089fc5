"""Bookkeeping of transaction begins and rollbacks across a test session."""

from __future__ import annotations

from collections import Counter
from typing import Dict, List


class RollbackLedger:
    """Counts begins and rollback attempts per test id.

    A healthy session has exactly one rollback for every begin.
    """

    def __init__(self) -> None:
        self._opened: Counter = Counter()
        self._rollbacks: Counter = Counter()
        self._failed: Dict[str, str] = {}

    def record_begin(self, test_id: str) -> None:
        self._opened[test_id] += 1

    def record_rollback(self, test_id: str) -> None:
        self._rollbacks[test_id] += 1

    def record_failure(self, test_id: str, error: BaseException) -> None:
        self._failed[test_id] = repr(error)

    @property
    def opened(self) -> int:
        return sum(self._opened.values())

    @property
    def rolled_back(self) -> int:
        return sum(self._rollbacks.values())

    def rollbacks_for(self, test_id: str) -> int:
        return self._rollbacks[test_id]

    def leaks(self) -> List[str]:
        """Test ids with more begins than rollback attempts."""
        return sorted(
            test_id
            for test_id, count in self._opened.items()
            if self._rollbacks[test_id] < count
        )

    def double_reverts(self) -> List[str]:
        """Test ids with more rollback attempts than begins."""
        return sorted(
            test_id
            for test_id, count in self._rollbacks.items()
            if count > self._opened[test_id]
        )

    def failures(self) -> Dict[str, str]:
        return dict(self._failed)

    def summary(self) -> str:
        """One line for the terminal report."""
        line = f"{self.rolled_back} of {self.opened} transactions rolled back"
        problems = []
        if self.leaks():
            problems.append(f"{len(self.leaks())} leaked")
        if self.double_reverts():
            problems.append(f"{len(self.double_reverts())} double reverts")
        if self._failed:
            problems.append(f"{len(self._failed)} rollback failures")
        if problems:
            line += " (" + ", ".join(problems) + ")"
        return line
