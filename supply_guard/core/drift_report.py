"""Drift report composition: summary counts, impact assessment and serialization."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from supply_guard.core.drift_config import (
    DEFAULT_MINOR_IMPACT_DRIFT_THRESHOLD,
    DEFAULT_PERFORMANCE_THRESHOLDS,
)
from supply_guard.core.drift_models import (
    ChangeType,
    ComplianceImpact,
    DriftImpact,
    DriftItem,
    DriftReport,
    DriftSummary,
    ImpactLevel,
    OperationalImpact,
    PerformanceImpact,
    RecommendedTimeline,
    SecurityImpact,
)
from supply_guard.core.models import (
    TcsClassification,
    UnknownClassification,
    classification_to_dict,
    source_to_dict,
)

VERSION_CHANGE_TYPES = (ChangeType.VERSION_CHANGE, ChangeType.MULTIPLE_CHANGES)
SOURCE_CHANGE_TYPES = (ChangeType.SOURCE_CHANGE, ChangeType.MULTIPLE_CHANGES)


@dataclass(frozen=True)
class ImpactThresholds:
    minor_drift_count: int = DEFAULT_MINOR_IMPACT_DRIFT_THRESHOLD
    # (minor, moderate, significant)
    performance: Tuple[int, int, int] = DEFAULT_PERFORMANCE_THRESHOLDS


@dataclass
class DriftReportBuilder:
    thresholds: ImpactThresholds = field(default_factory=ImpactThresholds)

    def build_report(
        self,
        expected_epoch_id: str,
        drifts: Sequence[DriftItem],
        analysis_timestamp: Optional[str] = None,
    ) -> DriftReport:
        drifts = tuple(drifts)
        summary = self.calculate_summary(drifts)
        return DriftReport(
            expected_epoch_id=expected_epoch_id,
            analysis_timestamp=analysis_timestamp or datetime.now(timezone.utc).isoformat(),
            drifts=drifts,
            summary=summary,
            impact=self.assess_impact(drifts, summary),
        )

    @staticmethod
    def calculate_summary(drifts: Iterable[DriftItem]) -> DriftSummary:
        counts: Dict[str, int] = {
            "total_drifts": 0,
            "additions": 0,
            "removals": 0,
            "version_changes": 0,
            "source_changes": 0,
            "critical_priority": 0,
            "high_priority": 0,
            "medium_priority": 0,
            "low_priority": 0,
            "tcs_drifts": 0,
            "mechanical_drifts": 0,
            "unknown_drifts": 0,
        }
        for drift in drifts:
            counts["total_drifts"] += 1

            if drift.change_type is ChangeType.ADDITION:
                counts["additions"] += 1
            elif drift.change_type is ChangeType.REMOVAL:
                counts["removals"] += 1
            if drift.change_type in VERSION_CHANGE_TYPES:
                counts["version_changes"] += 1
            if drift.change_type in SOURCE_CHANGE_TYPES:
                counts["source_changes"] += 1

            counts[f"{drift.priority.value}_priority"] += 1

            if isinstance(drift.classification, TcsClassification):
                counts["tcs_drifts"] += 1
            else:
                counts["mechanical_drifts"] += 1
                if isinstance(drift.classification, UnknownClassification):
                    counts["unknown_drifts"] += 1
        return DriftSummary(**counts)

    def assess_impact(self, drifts: Sequence[DriftItem], summary: DriftSummary) -> DriftImpact:
        overall = self.assess_overall_impact(summary)
        security = self.assess_security_impact(drifts)
        operational = self.assess_operational_impact(drifts)
        compliance = self.assess_compliance_impact(drifts)
        return DriftImpact(
            overall_impact=overall,
            security_impact=security,
            operational_impact=operational,
            compliance_impact=compliance,
            recommendations=self.generate_recommendations(overall, security, operational),
            recommended_timeline=self.recommend_timeline(overall, security),
        )

    def assess_overall_impact(self, summary: DriftSummary) -> ImpactLevel:
        if summary.critical_priority > 0:
            return ImpactLevel.CRITICAL
        if summary.high_priority > 0 or summary.source_changes > 0:
            return ImpactLevel.MAJOR
        if summary.tcs_drifts > 0:
            return ImpactLevel.MODERATE
        if summary.total_drifts > self.thresholds.minor_drift_count:
            return ImpactLevel.MINOR
        return ImpactLevel.MINIMAL

    @staticmethod
    def assess_security_impact(drifts: Sequence[DriftItem]) -> SecurityImpact:
        tcs_affected = sum(1 for d in drifts if d.is_tcs_drift)
        high_risk = sum(1 for d in drifts if d.is_high_risk_source_change)

        attack_vectors: List[str] = []
        recommendations: List[str] = []
        if high_risk:
            attack_vectors.append("Supply chain compromise")
        if tcs_affected:
            attack_vectors.append("TCS component integrity")
            recommendations.append("Audit all TCS component changes")
            recommendations.append("Verify TCS component integrity")
        if high_risk:
            recommendations.append("Investigate source changes for potential compromise")
            recommendations.append("Consider rollback to previous version")

        return SecurityImpact(
            affected=tcs_affected > 0 or high_risk > 0,
            tcs_components_affected=tcs_affected,
            high_risk_source_changes=high_risk,
            attack_vectors=tuple(attack_vectors),
            security_recommendations=tuple(recommendations),
        )

    def assess_operational_impact(self, drifts: Sequence[DriftItem]) -> OperationalImpact:
        version_changes = any(d.change_type in VERSION_CHANGE_TYPES for d in drifts)
        source_changes = any(d.change_type in SOURCE_CHANGE_TYPES for d in drifts)

        recommendations: List[str] = []
        if version_changes or source_changes:
            recommendations.append("Update build configurations if needed")
        if version_changes:
            recommendations.append("Test compatibility with existing systems")
            recommendations.append("Perform integration testing")

        return OperationalImpact(
            build_affected=version_changes or source_changes,
            runtime_affected=version_changes,
            compatibility_affected=version_changes,
            performance_impact=self.performance_bucket(len(drifts)),
            operational_recommendations=tuple(recommendations),
        )

    def performance_bucket(self, total: int) -> PerformanceImpact:
        minor, moderate, significant = self.thresholds.performance
        if total > significant:
            return PerformanceImpact.SIGNIFICANT
        if total > moderate:
            return PerformanceImpact.MODERATE
        if total > minor:
            return PerformanceImpact.MINOR
        return PerformanceImpact.NONE

    @staticmethod
    def assess_compliance_impact(drifts: Sequence[DriftItem]) -> ComplianceImpact:
        reaudit = sorted({d.package_name for d in drifts if d.affects_security})
        if not reaudit:
            return ComplianceImpact()
        return ComplianceImpact(
            compliance_affected=True,
            audit_implications=tuple(f"Re-audit required for {name}" for name in reaudit),
            compliance_recommendations=("Record approval of the new dependency state in a fresh epoch",),
        )

    @staticmethod
    def recommend_timeline(overall: ImpactLevel, security: SecurityImpact) -> RecommendedTimeline:
        if overall is ImpactLevel.CRITICAL:
            return RecommendedTimeline.IMMEDIATE
        if overall is ImpactLevel.MAJOR:
            if security.affected:
                return RecommendedTimeline.WITHIN_24_HOURS
            return RecommendedTimeline.WITHIN_WEEK
        if overall is ImpactLevel.MODERATE:
            return RecommendedTimeline.WITHIN_WEEK
        if overall is ImpactLevel.MINOR:
            return RecommendedTimeline.WITHIN_MONTH
        return RecommendedTimeline.NEXT_PLANNING_CYCLE

    @staticmethod
    def generate_recommendations(
        overall: ImpactLevel,
        security: SecurityImpact,
        operational: OperationalImpact,
    ) -> Tuple[str, ...]:
        recommendations: List[str] = []
        if overall in (ImpactLevel.CRITICAL, ImpactLevel.MAJOR):
            recommendations.append("Immediate review and approval required")
        if security.affected:
            recommendations.extend(security.security_recommendations)
        if operational.build_affected:
            recommendations.append("Test build process thoroughly")
        if operational.runtime_affected:
            recommendations.append("Perform comprehensive runtime testing")
        return tuple(recommendations)

    def serialize_report(self, report: DriftReport) -> Dict[str, Any]:
        impact = report.impact
        return {
            "expected_epoch_id": report.expected_epoch_id,
            "analysis_timestamp": report.analysis_timestamp,
            "summary": asdict(report.summary),
            "drifts": [self._serialize_item(d) for d in report.drifts],
            "impact": {
                "overall_impact": impact.overall_impact.value,
                "recommended_timeline": impact.recommended_timeline.value,
                "recommendations": list(impact.recommendations),
                "security": {
                    "affected": impact.security_impact.affected,
                    "tcs_components_affected": impact.security_impact.tcs_components_affected,
                    "high_risk_source_changes": impact.security_impact.high_risk_source_changes,
                    "attack_vectors": list(impact.security_impact.attack_vectors),
                    "recommendations": list(impact.security_impact.security_recommendations),
                },
                "operational": {
                    "build_affected": impact.operational_impact.build_affected,
                    "runtime_affected": impact.operational_impact.runtime_affected,
                    "compatibility_affected": impact.operational_impact.compatibility_affected,
                    "performance_impact": impact.operational_impact.performance_impact.value,
                    "recommendations": list(impact.operational_impact.operational_recommendations),
                },
                "compliance": {
                    "affected": impact.compliance_impact.compliance_affected,
                    "audit_implications": list(impact.compliance_impact.audit_implications),
                    "recommendations": list(impact.compliance_impact.compliance_recommendations),
                },
            },
        }

    @staticmethod
    def _serialize_item(item: DriftItem) -> Dict[str, Any]:
        return {
            "package_name": item.package_name,
            "change_type": item.change_type.value,
            "priority": item.priority.value,
            "previous_version": item.previous_version,
            "current_version": item.current_version,
            "previous_source": source_to_dict(item.previous_source) if item.previous_source else None,
            "current_source": source_to_dict(item.current_source) if item.current_source else None,
            "classification": classification_to_dict(item.classification),
            "is_high_risk_source_change": item.is_high_risk_source_change,
            "details": item.details,
        }
