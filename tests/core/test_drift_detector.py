from __future__ import annotations

from typing import List, Optional

import pytest

from supply_guard.core.dependency_graph import DependencyGraph
from supply_guard.core.drift_detector import DriftDetector, DriftDetectorSettings
from supply_guard.core.drift_models import ChangeType, ImpactLevel, Priority
from supply_guard.core.epoch import Epoch, EpochEntry
from supply_guard.core.errors import ConfigurationInvalidError, EpochInvalidError
from supply_guard.core.models import (
    Annotation,
    AnnotationKeys,
    DependencyKind,
    Edge,
    GitSource,
    LocalSource,
    MechanicalClassification,
    Package,
    PackageSource,
    RegistrySource,
    TcsCategory,
    TcsClassification,
    UnknownClassification,
)

CRATES_IO = "https://crates.io"


def _make_package(
    name: str,
    version: str = "1.0.0",
    source: Optional[PackageSource] = None,
    kind: Optional[DependencyKind] = None,
) -> Package:
    package = Package(name=name, version=version, source=source or RegistrySource(url=CRATES_IO))
    if kind is not None:
        package.annotations.append(Annotation("cargo", AnnotationKeys.DEPENDENCY_KIND, kind.value))
    return package


def _make_graph(*packages: Package, edges: Optional[List[Edge]] = None) -> DependencyGraph:
    return DependencyGraph(project_id="demo", ecosystem="rust", packages=list(packages), edges=list(edges or []))


def _make_epoch(epoch_id: str = "epoch-1", entries: Optional[List[tuple]] = None) -> Epoch:
    """Build an epoch from (name, version[, source[, classification]]) tuples."""
    built = {}
    for entry in entries or []:
        name, version = entry[0], entry[1]
        source = entry[2] if len(entry) > 2 else RegistrySource(url=CRATES_IO)
        classification = entry[3] if len(entry) > 3 else UnknownClassification()
        built[(name, version)] = EpochEntry(name=name, version=version, source=source, classification=classification)
    return Epoch(id=epoch_id, project_id="demo", entries=built)


def _mechanical(name: str, version: str = "1.0.0", **kwargs):
    package = _make_package(name, version, **kwargs)
    package.classification = MechanicalClassification()
    return package


def _tcs(name: str, version: str = "1.0.0", **kwargs):
    package = _make_package(name, version, **kwargs)
    package.classification = TcsClassification(TcsCategory.CRYPTOGRAPHY)
    return package


class _BrokenEpoch:
    id = "broken"

    def approved_packages(self):
        raise OSError("store offline")

    def approved_versions(self, name):
        return []

    def approved_source(self, name, version=None):
        return None

    def approved_classification(self, name, version=None):
        return None


class _MissingVersionsEpoch(_BrokenEpoch):
    def approved_packages(self):
        return []

    def approved_versions(self, name):
        raise KeyError(name)


def test_no_drift_for_identical_state() -> None:
    graph = _make_graph(_mechanical("log", "0.4.20"))
    epoch = _make_epoch(entries=[("log", "0.4.20")])

    report = DriftDetector().detect_drift(epoch, graph)

    assert report.drifts == ()
    assert report.summary.total_drifts == 0
    assert report.impact.overall_impact is ImpactLevel.MINIMAL


def test_new_mechanical_package_against_empty_epoch(empty_epoch) -> None:
    graph = _make_graph(_mechanical("new-pkg", "1.0.0"))

    report = DriftDetector().detect_drift(empty_epoch, graph)

    assert len(report.drifts) == 1
    item = report.drifts[0]
    assert item.change_type is ChangeType.ADDITION
    assert item.priority is Priority.MEDIUM
    assert item.previous_version is None
    assert item.current_version == "1.0.0"
    assert report.summary.additions == 1
    assert report.expected_epoch_id == "empty"


def test_removed_package_uses_epoch_classification() -> None:
    epoch = _make_epoch(entries=[
        ("sha2", "0.10.8", RegistrySource(url=CRATES_IO), TcsClassification(TcsCategory.CRYPTOGRAPHY)),
        ("log", "0.4.20"),
    ])
    graph = _make_graph(_mechanical("log", "0.4.20"))

    report = DriftDetector().detect_drift(epoch, graph)

    assert [(d.package_name, d.change_type) for d in report.drifts] == [("sha2", ChangeType.REMOVAL)]
    assert report.drifts[0].priority is Priority.CRITICAL
    assert report.drifts[0].previous_version == "0.10.8"


def test_removal_without_recorded_classification_is_low() -> None:
    report = DriftDetector().detect_drift(_make_epoch(entries=[("gone", "1.0.0")]), _make_graph())

    assert report.drifts[0].priority is Priority.LOW
    assert isinstance(report.drifts[0].classification, UnknownClassification)


def test_version_bump_yields_addition_removal_and_version_change() -> None:
    graph = _make_graph(_tcs("sha2", "0.10.9"))
    epoch = _make_epoch(entries=[("sha2", "0.10.8")])

    report = DriftDetector().detect_drift(epoch, graph)

    assert [d.change_type for d in report.drifts] == [
        ChangeType.ADDITION,
        ChangeType.REMOVAL,
        ChangeType.VERSION_CHANGE,
    ]
    version_change = report.drifts[2]
    assert (version_change.previous_version, version_change.current_version) == ("0.10.8", "0.10.9")
    assert version_change.priority is Priority.CRITICAL
    assert version_change.is_tcs_drift


def test_ignore_mechanical_version_updates() -> None:
    graph = _make_graph(_mechanical("log", "0.4.21"))
    epoch = _make_epoch(entries=[("log", "0.4.20")])
    detector = DriftDetector(DriftDetectorSettings(ignore_mechanical_version_updates=True))

    report = detector.detect_drift(epoch, graph)

    assert ChangeType.VERSION_CHANGE not in [d.change_type for d in report.drifts]


def test_registry_to_git_is_critical_high_risk(git_source) -> None:
    graph = _make_graph(_mechanical("log", "0.4.20", source=git_source))
    epoch = _make_epoch(entries=[("log", "0.4.20")])

    report = DriftDetector().detect_drift(epoch, graph)

    assert len(report.drifts) == 1
    item = report.drifts[0]
    assert item.change_type is ChangeType.SOURCE_CHANGE
    assert item.priority is Priority.CRITICAL
    assert item.is_high_risk_source_change
    assert item.current_source == git_source
    assert item.details == "Source moved from registry to git"
    assert report.impact.overall_impact >= ImpactLevel.MAJOR
    assert report.impact.security_impact.high_risk_source_changes == 1
    assert report.has_critical_issues()


def test_source_risk_matrix() -> None:
    detector = DriftDetector()
    registry = RegistrySource(url=CRATES_IO)
    git = GitSource(url="https://example.com/x", rev="1")
    local = LocalSource(path="../x")

    assert detector.source_change_priority(git, registry) is Priority.MEDIUM
    assert not detector.is_high_risk_source_change(git, registry)
    assert detector.source_change_priority(local, git) is Priority.LOW
    assert detector.is_high_risk_source_change(local, git)
    assert detector.source_change_priority(registry, local) is Priority.LOW
    assert not detector.is_high_risk_source_change(registry, local)


def test_high_risk_flag_can_be_disabled(git_source) -> None:
    detector = DriftDetector(DriftDetectorSettings(flag_source_changes_high_risk=False))
    report = detector.detect_drift(
        _make_epoch(entries=[("log", "0.4.20")]),
        _make_graph(_mechanical("log", "0.4.20", source=git_source)),
    )

    assert report.drifts[0].priority is Priority.CRITICAL
    assert not report.drifts[0].is_high_risk_source_change
    assert report.drifts[0].details is None


def test_priority_override_applies_to_additions_and_removals(empty_epoch) -> None:
    detector = DriftDetector(DriftDetectorSettings(priority_overrides={"log": Priority.HIGH, "gone": Priority.HIGH}))

    added = detector.detect_drift(empty_epoch, _make_graph(_mechanical("log")))
    removed = detector.detect_drift(_make_epoch(entries=[("gone", "1.0.0")]), _make_graph())

    assert added.drifts[0].priority is Priority.HIGH
    assert removed.drifts[0].priority is Priority.HIGH


def test_dev_dependencies_excluded_by_default(empty_epoch) -> None:
    app = _mechanical("app")
    proptest = _mechanical("proptest")
    cc = _mechanical("cc", kind=DependencyKind.BUILD)
    graph = _make_graph(app, proptest, cc, edges=[Edge(app.id, proptest.id, kind=DependencyKind.DEV)])

    default_names = [d.package_name for d in DriftDetector().detect_drift(empty_epoch, graph).drifts]
    with_dev = DriftDetector(DriftDetectorSettings(include_dev_dependencies=True, include_build_dependencies=False))
    dev_names = [d.package_name for d in with_dev.detect_drift(empty_epoch, graph).drifts]

    assert default_names == ["app", "cc"]
    assert dev_names == ["app", "proptest"]


def test_merge_multiple_changes(git_source) -> None:
    graph = _make_graph(_mechanical("log", "0.4.21", source=git_source))
    epoch = _make_epoch(entries=[("log", "0.4.20")])
    detector = DriftDetector(DriftDetectorSettings(merge_multiple_changes=True))

    report = detector.detect_drift(epoch, graph)

    merged = [d for d in report.drifts if d.change_type is ChangeType.MULTIPLE_CHANGES]
    assert len(merged) == 1
    assert merged[0].priority is Priority.CRITICAL
    assert merged[0].is_high_risk_source_change
    assert (merged[0].previous_version, merged[0].current_version) == ("0.4.20", "0.4.21")
    assert ChangeType.SOURCE_CHANGE not in [d.change_type for d in report.drifts]
    assert report.summary.version_changes == 1
    assert report.summary.source_changes == 1


def test_concurrent_scans_match_sequential_order(git_source) -> None:
    packages = [_mechanical("log", "0.4.21", source=git_source), _tcs("sha2"), _mechanical("anyhow")]
    epoch = _make_epoch(entries=[("log", "0.4.20"), ("gone", "2.0.0")])

    sequential = DriftDetector().detect_drift(epoch, _make_graph(*packages))
    concurrent = DriftDetector(DriftDetectorSettings(concurrent_scans=True)).detect_drift(
        epoch, _make_graph(*packages)
    )

    assert sequential.drifts == concurrent.drifts
    assert sequential.summary == concurrent.summary


def test_drift_detection_is_deterministic(git_source) -> None:
    epoch = _make_epoch(entries=[("log", "0.4.20"), ("sha2", "0.10.8")])
    graph = _make_graph(_mechanical("log", "0.4.21", source=git_source), _tcs("sha2", "0.10.9"))
    detector = DriftDetector()

    first = detector.detect_drift(epoch, graph)
    second = detector.detect_drift(epoch, graph)

    assert first.drifts == second.drifts
    assert first.summary == second.summary
    assert first.impact == second.impact


def test_epoch_failure_aborts_run() -> None:
    with pytest.raises(EpochInvalidError) as excinfo:
        DriftDetector().detect_drift(_BrokenEpoch(), _make_graph(_mechanical("log")))

    assert excinfo.value.epoch_id == "broken"


def test_two_approved_versions_of_one_name_give_no_drift() -> None:
    graph = _make_graph(_mechanical("rand", "0.7.3"), _mechanical("rand", "0.8.5"), _mechanical("log", "0.4.20"))
    epoch = _make_epoch(entries=[("rand", "0.7.3"), ("rand", "0.8.5"), ("log", "0.4.20")])

    report = DriftDetector().detect_drift(epoch, graph)

    assert report.drifts == ()


def test_new_version_beside_approved_ones_is_only_an_addition() -> None:
    graph = _make_graph(_mechanical("rand", "0.7.3"), _mechanical("rand", "0.8.5"))
    epoch = _make_epoch(entries=[("rand", "0.7.3")])

    report = DriftDetector().detect_drift(epoch, graph)

    assert [(d.change_type, d.current_version) for d in report.drifts] == [(ChangeType.ADDITION, "0.8.5")]


def test_version_change_compares_against_first_approved_version() -> None:
    graph = _make_graph(_mechanical("rand", "0.9.0"))
    epoch = _make_epoch(entries=[("rand", "0.8.5"), ("rand", "0.7.3")])

    report = DriftDetector().detect_drift(epoch, graph)

    version_changes = [d for d in report.drifts if d.change_type is ChangeType.VERSION_CHANGE]
    assert [(d.previous_version, d.current_version) for d in version_changes] == [("0.8.5", "0.9.0")]
    assert [d.previous_version for d in report.drifts if d.change_type is ChangeType.REMOVAL] == ["0.8.5", "0.7.3"]


def test_source_change_is_checked_against_the_matching_version(git_source) -> None:
    epoch = _make_epoch(entries=[("rand", "0.7.3", git_source), ("rand", "0.8.5")])
    graph = _make_graph(_mechanical("rand", "0.7.3", source=git_source), _mechanical("rand", "0.8.5"))

    report = DriftDetector().detect_drift(epoch, graph)

    assert report.drifts == ()


def test_epoch_accessor_failure_names_the_accessor() -> None:
    with pytest.raises(EpochInvalidError) as excinfo:
        DriftDetector().detect_drift(_MissingVersionsEpoch(), _make_graph(_mechanical("log")))

    assert excinfo.value.epoch_id == "broken"
    assert "approved_versions" in str(excinfo.value)


def test_detector_errors_are_not_reported_as_epoch_errors(empty_epoch, monkeypatch) -> None:
    detector = DriftDetector()

    def fail(*args, **kwargs):
        raise ValueError("bad graph")

    monkeypatch.setattr(detector, "should_include", fail)

    with pytest.raises(ValueError):
        detector.detect_drift(empty_epoch, _make_graph(_mechanical("log")))


def test_settings_require_every_classification_priority() -> None:
    with pytest.raises(ConfigurationInvalidError) as excinfo:
        DriftDetectorSettings(classification_priorities={"tcs": Priority.CRITICAL, "mechanical": Priority.MEDIUM})

    assert excinfo.value.field == "classification_priorities"
    assert "unknown" in str(excinfo.value)


def test_settings_mappings_are_read_only() -> None:
    settings = DriftDetectorSettings(priority_overrides={"log": Priority.LOW})

    with pytest.raises(TypeError):
        settings.priority_overrides["log"] = Priority.HIGH


def test_change_type_counts_add_up_to_total(git_source) -> None:
    epoch = _make_epoch(entries=[("log", "0.4.20"), ("sha2", "0.10.8"), ("gone", "1.0.0")])
    graph = _make_graph(
        _mechanical("log", "0.4.21", source=git_source),
        _tcs("sha2", "0.10.9"),
        _mechanical("anyhow"),
    )

    summary = DriftDetector().detect_drift(epoch, graph).summary

    assert summary.total_drifts == (
        summary.additions + summary.removals + summary.version_changes + summary.source_changes
    )
    assert summary.total_drifts == (
        summary.critical_priority + summary.high_priority + summary.medium_priority + summary.low_priority
    )
