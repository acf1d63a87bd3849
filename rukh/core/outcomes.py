"""
Outcome types for best-effort operations.

Persistence writes and the mint side effect never abort a request. Instead
of swallowing their errors, they return an Outcome that says whether the
failure is cosmetic (safe to ignore) or a degradation that operators should
count and alert on.
"""
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from rukh.core.logging_config import get_logger

logger = get_logger(__name__)


class Severity(str, Enum):
    COSMETIC = "cosmetic"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class Outcome:
    """Result of a best-effort operation."""
    ok: bool
    operation: str
    severity: Severity = Severity.DEGRADED
    detail: Optional[str] = None

    @classmethod
    def success(cls, operation: str) -> "Outcome":
        return cls(ok=True, operation=operation)

    @classmethod
    def failure(
        cls,
        operation: str,
        detail: str,
        severity: Severity = Severity.DEGRADED
    ) -> "Outcome":
        return cls(ok=False, operation=operation, severity=severity, detail=detail)


class DegradationCounter:
    """
    Process-wide tally of degraded outcomes, keyed by operation name.

    Cosmetic failures are logged at debug level and not counted.
    """

    def __init__(self):
        self._counts: Counter = Counter()

    def observe(self, outcome: Outcome) -> None:
        if outcome.ok:
            return
        if outcome.severity is Severity.COSMETIC:
            logger.debug(f"Ignored {outcome.operation} failure: {outcome.detail}")
            return
        self._counts[outcome.operation] += 1
        logger.warning(
            f"Degraded operation {outcome.operation} "
            f"(total={self._counts[outcome.operation]}): {outcome.detail}"
        )

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)
