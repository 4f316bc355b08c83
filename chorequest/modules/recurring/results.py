"""
Result objects returned by the recurring quest engine.

Every result derives ``success`` from its error list, so a run can never
report success while carrying errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class QuestTypeCounts:
    individual: int = 0
    family: int = 0

    @property
    def total(self) -> int:
        return self.individual + self.family

    def to_dict(self) -> Dict[str, int]:
        return {
            "individual": self.individual,
            "family": self.family,
            "total": self.total,
        }


@dataclass
class GenerationResult:
    generated: QuestTypeCounts = field(default_factory=QuestTypeCounts)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "generated": self.generated.to_dict(),
            "errors": list(self.errors),
        }


@dataclass
class ExpirationResult:
    expired: QuestTypeCounts = field(default_factory=QuestTypeCounts)
    streaks_broken: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "expired": self.expired.to_dict(),
            "streaks_broken": self.streaks_broken,
            "errors": list(self.errors),
        }


@dataclass
class CascadeResumeResult:
    """Outcome of re-running expiration side effects for MISSED instances."""

    resumed: int = 0
    pointers_cleared: int = 0
    streaks_broken: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "resumed": self.resumed,
            "pointers_cleared": self.pointers_cleared,
            "streaks_broken": self.streaks_broken,
            "errors": list(self.errors),
        }


@dataclass
class PointerRepairResult:
    checked: int = 0
    cleared: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "checked": self.checked,
            "cleared": self.cleared,
            "errors": list(self.errors),
        }
