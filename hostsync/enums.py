"""Display-state and update-outcome enumerations."""
from __future__ import annotations

from enum import Enum


class HostHealth(str, Enum):
    """Overall host state derived from connectivity + authentication."""

    UNKNOWN = "unknown"
    PASSED = "passed"
    FAILED = "failed"


class IndicatorState(str, Enum):
    """Three-valued state of a single status flag."""

    OK = "ok"
    WARNING = "warning"
    QUESTION = "question"

    @property
    def icon(self) -> str:
        return _INDICATOR_ICONS[self]


_INDICATOR_ICONS = {
    IndicatorState.OK: "ok",
    IndicatorState.WARNING: "exclamation-sign",
    IndicatorState.QUESTION: "question-sign",
}


class UpdateOutcome(str, Enum):
    """What happened to one fetch of a store or poller."""

    APPLIED = "applied"  # fetched and swapped in
    FAILED = "failed"  # fetch raised; state untouched
    DISCARDED = "discarded"  # completed after deactivation; state untouched
