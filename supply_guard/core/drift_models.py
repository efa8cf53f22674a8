"""Data models for drift detection output."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from functools import total_ordering
from typing import Any, List, Optional, Tuple

from supply_guard.core.models import (
    Classification,
    PackageSource,
    TcsClassification,
    UnknownClassification,
)


class ChangeType(Enum):
    ADDITION = "addition"
    REMOVAL = "removal"
    VERSION_CHANGE = "version_change"
    SOURCE_CHANGE = "source_change"
    MULTIPLE_CHANGES = "multiple_changes"


@total_ordering
class Priority(Enum):
    """Drift priority. Critical > High > Medium > Low."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())


_PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
    Priority.CRITICAL: 3,
}


@total_ordering
class ImpactLevel(Enum):
    MINIMAL = "minimal"
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, ImpactLevel):
            return NotImplemented
        order = list(ImpactLevel)
        return order.index(self) < order.index(other)


class PerformanceImpact(Enum):
    NONE = "none"
    MINOR = "minor"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"
    DEGRADATION = "degradation"


class RecommendedTimeline(Enum):
    IMMEDIATE = "immediate"
    WITHIN_24_HOURS = "within_24_hours"
    WITHIN_WEEK = "within_week"
    WITHIN_MONTH = "within_month"
    NEXT_PLANNING_CYCLE = "next_planning_cycle"


@dataclass(frozen=True)
class DriftItem:
    package_name: str
    change_type: ChangeType
    priority: Priority
    previous_version: Optional[str] = None
    current_version: Optional[str] = None
    previous_source: Optional[PackageSource] = None
    current_source: Optional[PackageSource] = None
    classification: Classification = field(default_factory=UnknownClassification)
    is_high_risk_source_change: bool = False
    details: Optional[str] = None

    def with_versions(self, previous: Optional[str], current: Optional[str]) -> "DriftItem":
        return replace(self, previous_version=previous, current_version=current)

    def with_sources(self, previous: Optional[PackageSource], current: Optional[PackageSource]) -> "DriftItem":
        return replace(self, previous_source=previous, current_source=current)

    def with_classification(self, classification: Classification) -> "DriftItem":
        return replace(self, classification=classification)

    def as_high_risk_source_change(self, high_risk: bool = True) -> "DriftItem":
        return replace(self, is_high_risk_source_change=high_risk)

    def with_details(self, details: str) -> "DriftItem":
        return replace(self, details=details)

    @property
    def is_tcs_drift(self) -> bool:
        return isinstance(self.classification, TcsClassification)

    @property
    def affects_security(self) -> bool:
        return self.is_tcs_drift or self.is_high_risk_source_change


@dataclass(frozen=True)
class DriftSummary:
    total_drifts: int = 0
    additions: int = 0
    removals: int = 0
    version_changes: int = 0
    source_changes: int = 0
    critical_priority: int = 0
    high_priority: int = 0
    medium_priority: int = 0
    low_priority: int = 0
    tcs_drifts: int = 0
    mechanical_drifts: int = 0  # Mechanical and Unknown
    unknown_drifts: int = 0


@dataclass(frozen=True)
class SecurityImpact:
    affected: bool = False
    tcs_components_affected: int = 0
    high_risk_source_changes: int = 0
    attack_vectors: Tuple[str, ...] = ()
    security_recommendations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OperationalImpact:
    build_affected: bool = False
    runtime_affected: bool = False
    compatibility_affected: bool = False
    performance_impact: PerformanceImpact = PerformanceImpact.NONE
    operational_recommendations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ComplianceImpact:
    compliance_affected: bool = False
    affected_frameworks: Tuple[str, ...] = ()
    license_issues: Tuple[str, ...] = ()
    audit_implications: Tuple[str, ...] = ()
    compliance_recommendations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DriftImpact:
    overall_impact: ImpactLevel = ImpactLevel.MINIMAL
    security_impact: SecurityImpact = field(default_factory=SecurityImpact)
    operational_impact: OperationalImpact = field(default_factory=OperationalImpact)
    compliance_impact: ComplianceImpact = field(default_factory=ComplianceImpact)
    recommendations: Tuple[str, ...] = ()
    recommended_timeline: RecommendedTimeline = RecommendedTimeline.NEXT_PLANNING_CYCLE


@dataclass(frozen=True)
class DriftReport:
    """Finalized result of one drift analysis run."""
    expected_epoch_id: str
    analysis_timestamp: str
    drifts: Tuple[DriftItem, ...] = ()
    summary: DriftSummary = field(default_factory=DriftSummary)
    impact: DriftImpact = field(default_factory=DriftImpact)

    def critical_drifts(self) -> List[DriftItem]:
        return [d for d in self.drifts if d.priority is Priority.CRITICAL]

    def tcs_drifts(self) -> List[DriftItem]:
        return [d for d in self.drifts if d.is_tcs_drift]

    def source_change_drifts(self) -> List[DriftItem]:
        return [
            d for d in self.drifts
            if d.change_type in (ChangeType.SOURCE_CHANGE, ChangeType.MULTIPLE_CHANGES)
        ]

    def has_critical_issues(self) -> bool:
        return bool(self.critical_drifts()) or self.impact.overall_impact is ImpactLevel.CRITICAL
