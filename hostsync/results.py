"""Explicit result of a store update or status poll."""
from __future__ import annotations

from dataclasses import dataclass

from hostsync.enums import UpdateOutcome


@dataclass(frozen=True)
class UpdateResult:
    outcome: UpdateOutcome
    error: BaseException | None = None
    count: int = 0  # entities applied

    @classmethod
    def success(cls, count: int) -> "UpdateResult":
        return cls(UpdateOutcome.APPLIED, count=count)

    @classmethod
    def failure(cls, error: BaseException) -> "UpdateResult":
        return cls(UpdateOutcome.FAILED, error=error)

    @classmethod
    def stale(cls) -> "UpdateResult":
        return cls(UpdateOutcome.DISCARDED)

    @property
    def ok(self) -> bool:
        return self.outcome is UpdateOutcome.APPLIED

    @property
    def failed(self) -> bool:
        return self.outcome is UpdateOutcome.FAILED

    @property
    def discarded(self) -> bool:
        return self.outcome is UpdateOutcome.DISCARDED

    def unwrap(self) -> int:
        """Return the applied count, re-raising the error of a failed update."""
        if self.error is not None:
            raise self.error
        return self.count
