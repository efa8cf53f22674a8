"""
Drift detection between an approved epoch and the current dependency graph.

Four independent scans (additions, removals, version changes, source
changes) each build their own list of drift items. The lists are merged
in that fixed order and handed to ``DriftReportBuilder`` for the summary
and impact assessment.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple
import logging

from supply_guard.core.dependency_graph import DependencyGraph
from supply_guard.core.drift_config import (
    DEFAULT_CLASSIFICATION_PRIORITIES,
    DEFAULT_DRIFT_CONCURRENT_SCANS,
    DEFAULT_DRIFT_FLAG_SOURCE_CHANGES_HIGH_RISK,
    DEFAULT_DRIFT_IGNORE_MECHANICAL_VERSION_UPDATES,
    DEFAULT_DRIFT_INCLUDE_BUILD_DEPENDENCIES,
    DEFAULT_DRIFT_INCLUDE_DEV_DEPENDENCIES,
    DEFAULT_DRIFT_MERGE_MULTIPLE_CHANGES,
    DEFAULT_SOURCE_CHANGE_RISK,
    DEFAULT_SOURCE_RISK_MATRIX,
)
from supply_guard.core.drift_models import ChangeType, DriftItem, DriftReport, Priority
from supply_guard.core.drift_report import DriftReportBuilder
from supply_guard.core.epoch import EpochView
from supply_guard.core.errors import ConfigurationInvalidError, EpochInvalidError
from supply_guard.core.models import (
    Classification,
    DependencyKind,
    MechanicalClassification,
    Package,
    PackageSource,
    TcsClassification,
    UnknownClassification,
)

SCAN_ORDER = ("additions", "removals", "version_changes", "source_changes")
CLASSIFICATION_PRIORITY_KEYS = ("tcs", "mechanical", "unknown")


@dataclass(frozen=True)
class DriftDetectorSettings:
    ignore_mechanical_version_updates: bool = DEFAULT_DRIFT_IGNORE_MECHANICAL_VERSION_UPDATES
    flag_source_changes_high_risk: bool = DEFAULT_DRIFT_FLAG_SOURCE_CHANGES_HIGH_RISK
    priority_overrides: Mapping[str, Priority] = field(default_factory=dict)
    include_dev_dependencies: bool = DEFAULT_DRIFT_INCLUDE_DEV_DEPENDENCIES
    include_build_dependencies: bool = DEFAULT_DRIFT_INCLUDE_BUILD_DEPENDENCIES
    merge_multiple_changes: bool = DEFAULT_DRIFT_MERGE_MULTIPLE_CHANGES
    concurrent_scans: bool = DEFAULT_DRIFT_CONCURRENT_SCANS
    source_risk_matrix: Mapping[Tuple[str, str], Tuple[Priority, bool]] = field(
        default_factory=lambda: dict(DEFAULT_SOURCE_RISK_MATRIX)
    )
    classification_priorities: Mapping[str, Priority] = field(
        default_factory=lambda: dict(DEFAULT_CLASSIFICATION_PRIORITIES)
    )

    def __post_init__(self):
        for name in ("priority_overrides", "source_risk_matrix", "classification_priorities"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        missing = sorted(set(CLASSIFICATION_PRIORITY_KEYS) - set(self.classification_priorities))
        if missing:
            raise ConfigurationInvalidError(
                "classification_priorities",
                dict(self.classification_priorities),
                f"missing priorities for: {', '.join(missing)}",
            )


class DriftDetector:
    """Compares a classified graph against an approved epoch."""

    def __init__(
        self,
        settings: Optional[DriftDetectorSettings] = None,
        report_builder: Optional[DriftReportBuilder] = None,
    ):
        self.settings = settings or DriftDetectorSettings()
        self.report_builder = report_builder or DriftReportBuilder()

    def detect_drift(self, expected: EpochView, actual: DependencyGraph) -> DriftReport:
        """Run all scans and finalize a report.

        Raises:
            EpochInvalidError: the epoch could not answer a required lookup
        """
        epoch_id = getattr(expected, "id", None)
        logging.info(
            "Detecting drift for %s against epoch %s (%d packages)",
            actual.project_id,
            epoch_id,
            len(actual.packages),
        )

        scans: Dict[str, Callable[[EpochView, DependencyGraph], List[DriftItem]]] = {
            "additions": self.detect_additions,
            "removals": self.detect_removals,
            "version_changes": self.detect_version_changes,
            "source_changes": self.detect_source_changes,
        }
        results = self._run_scans(scans, expected, actual)
        for name in SCAN_ORDER:
            logging.info("Drift scan %s: %d items", name, len(results[name]))

        if self.settings.merge_multiple_changes:
            results["version_changes"], results["source_changes"] = self._merge_multiple_changes(
                results["version_changes"], results["source_changes"]
            )

        drifts: List[DriftItem] = []
        for name in SCAN_ORDER:
            drifts.extend(results[name])

        report = self.report_builder.build_report(str(epoch_id), drifts)
        logging.info(
            "Drift detection complete: total=%d critical=%d impact=%s",
            report.summary.total_drifts,
            report.summary.critical_priority,
            report.impact.overall_impact.value,
        )
        return report

    def _run_scans(self, scans, expected: EpochView, actual: DependencyGraph) -> Dict[str, List[DriftItem]]:
        if not self.settings.concurrent_scans:
            return {name: scan(expected, actual) for name, scan in scans.items()}

        with ThreadPoolExecutor(max_workers=len(scans)) as pool:
            futures = {name: pool.submit(scan, expected, actual) for name, scan in scans.items()}
            return {name: future.result() for name, future in futures.items()}

    @staticmethod
    def _ask(expected: EpochView, accessor: str, *args):
        """Call an epoch accessor; store failures abort the run as ``EpochInvalidError``."""
        try:
            return getattr(expected, accessor)(*args)
        except EpochInvalidError:
            raise
        except (LookupError, ValueError, TypeError, OSError) as e:
            raise EpochInvalidError(getattr(expected, "id", None), f"{accessor} failed: {e}") from e

    # --- scans ---

    def detect_additions(self, expected: EpochView, actual: DependencyGraph) -> List[DriftItem]:
        approved = set(self._ask(expected, "approved_packages"))
        items: List[DriftItem] = []
        for package in actual.packages:
            if not self.should_include(package, actual):
                continue
            if (package.name, package.version) in approved:
                continue
            items.append(
                DriftItem(
                    package_name=package.name,
                    change_type=ChangeType.ADDITION,
                    priority=self.package_priority(package),
                )
                .with_versions(None, package.version)
                .with_classification(package.classification)
            )
        return items

    def detect_removals(self, expected: EpochView, actual: DependencyGraph) -> List[DriftItem]:
        items: List[DriftItem] = []
        for name, version in self._ask(expected, "approved_packages"):
            if actual.find_by_name_version(name, version) is not None:
                continue
            classification = self._ask(expected, "approved_classification", name, version) or UnknownClassification()
            items.append(
                DriftItem(
                    package_name=name,
                    change_type=ChangeType.REMOVAL,
                    priority=self._override_or(name, classification),
                )
                .with_versions(version, None)
                .with_classification(classification)
            )
        return items

    def detect_version_changes(self, expected: EpochView, actual: DependencyGraph) -> List[DriftItem]:
        items: List[DriftItem] = []
        for package in actual.packages:
            if not self.should_include(package, actual):
                continue
            approved_versions = self._ask(expected, "approved_versions", package.name)
            if not approved_versions or package.version in approved_versions:
                continue
            if self.settings.ignore_mechanical_version_updates and isinstance(
                package.classification, MechanicalClassification
            ):
                logging.debug("Ignoring mechanical version update for %s", package.name)
                continue
            items.append(
                DriftItem(
                    package_name=package.name,
                    change_type=ChangeType.VERSION_CHANGE,
                    priority=self.package_priority(package),
                )
                .with_versions(approved_versions[0], package.version)
                .with_classification(package.classification)
            )
        return items

    def detect_source_changes(self, expected: EpochView, actual: DependencyGraph) -> List[DriftItem]:
        items: List[DriftItem] = []
        for package in actual.packages:
            if not self.should_include(package, actual):
                continue
            expected_source = self._ask(expected, "approved_source", package.name, package.version)
            if expected_source is None or expected_source == package.source:
                continue
            high_risk = self.is_high_risk_source_change(expected_source, package.source)
            item = (
                DriftItem(
                    package_name=package.name,
                    change_type=ChangeType.SOURCE_CHANGE,
                    priority=self.source_change_priority(expected_source, package.source),
                )
                .with_sources(expected_source, package.source)
                .with_classification(package.classification)
                .as_high_risk_source_change(high_risk)
            )
            if high_risk:
                item = item.with_details(
                    f"Source moved from {expected_source.kind} to {package.source.kind}"
                )
            items.append(item)
        return items

    def _merge_multiple_changes(
        self,
        version_items: List[DriftItem],
        source_items: List[DriftItem],
    ) -> Tuple[List[DriftItem], List[DriftItem]]:
        """Fold a version change and a source change of the same package into one item."""
        by_name = {}
        for item in source_items:
            by_name.setdefault(item.package_name, item)

        merged: List[DriftItem] = []
        consumed = set()
        for item in version_items:
            source_item = by_name.get(item.package_name)
            if source_item is None or item.package_name in consumed:
                merged.append(item)
                continue
            consumed.add(item.package_name)
            merged.append(
                DriftItem(
                    package_name=item.package_name,
                    change_type=ChangeType.MULTIPLE_CHANGES,
                    priority=max(item.priority, source_item.priority),
                )
                .with_versions(item.previous_version, item.current_version)
                .with_sources(source_item.previous_source, source_item.current_source)
                .with_classification(item.classification)
                .as_high_risk_source_change(source_item.is_high_risk_source_change)
                .with_details("Version and source changed")
            )

        remaining = [i for i in source_items if i.package_name not in consumed]
        return merged, remaining

    # --- policy helpers ---

    def should_include(self, package: Package, graph: DependencyGraph) -> bool:
        kind = graph.effective_kind(package)
        if kind is DependencyKind.DEV:
            return self.settings.include_dev_dependencies
        if kind is DependencyKind.BUILD:
            return self.settings.include_build_dependencies
        return True

    def classification_priority(self, classification: Classification) -> Priority:
        priorities = self.settings.classification_priorities
        if isinstance(classification, TcsClassification):
            return priorities["tcs"]
        if isinstance(classification, MechanicalClassification):
            return priorities["mechanical"]
        return priorities["unknown"]

    def package_priority(self, package: Package) -> Priority:
        return self._override_or(package.name, package.classification)

    def _override_or(self, name: str, classification: Classification) -> Priority:
        override = self.settings.priority_overrides.get(name)
        if override is not None:
            return override
        return self.classification_priority(classification)

    def _source_risk(self, expected: PackageSource, actual: PackageSource) -> Tuple[Priority, bool]:
        return self.settings.source_risk_matrix.get((expected.kind, actual.kind), DEFAULT_SOURCE_CHANGE_RISK)

    def source_change_priority(self, expected: PackageSource, actual: PackageSource) -> Priority:
        return self._source_risk(expected, actual)[0]

    def is_high_risk_source_change(self, expected: PackageSource, actual: PackageSource) -> bool:
        if not self.settings.flag_source_changes_high_risk:
            return False
        return self._source_risk(expected, actual)[1]
