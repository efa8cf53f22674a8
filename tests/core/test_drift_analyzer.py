from __future__ import annotations

from typing import List, Optional

import pytest

from supply_guard.core import detect_drift
from supply_guard.core.config import SupplyGuardConfig
from supply_guard.core.dependency_graph import DependencyGraph
from supply_guard.core.drift_analyzer import DriftAnalyzer
from supply_guard.core.drift_models import ChangeType, ImpactLevel, Priority
from supply_guard.core.errors import EpochInvalidError, ReferentialIntegrityError
from supply_guard.core.models import (
    Edge,
    GitSource,
    Package,
    PackageSource,
    RegistrySource,
    TcsCategory,
    TcsClassification,
)


def _make_package(name: str, version: str = "1.0.0", source: Optional[PackageSource] = None) -> Package:
    return Package(name=name, version=version, source=source or RegistrySource(url="https://crates.io"))


def _make_graph(*packages: Package, edges: Optional[List[Edge]] = None) -> DependencyGraph:
    return DependencyGraph(project_id="demo", ecosystem="rust", packages=list(packages), edges=list(edges or []))


def test_approve_then_analyze_unchanged_graph() -> None:
    analyzer = DriftAnalyzer()
    graph = _make_graph(_make_package("sha2", "0.10.8"), _make_package("log", "0.4.20"))

    epoch = analyzer.approve(graph, "baseline")
    report = analyzer.analyze_epoch("baseline", graph)

    assert isinstance(epoch.approved_classification("sha2"), TcsClassification)
    assert report.summary.total_drifts == 0
    assert report.impact.overall_impact is ImpactLevel.MINIMAL


def test_approve_then_analyze_graph_with_two_versions_of_one_name() -> None:
    analyzer = DriftAnalyzer()
    graph = _make_graph(_make_package("rand", "0.7.3"), _make_package("rand", "0.8.5"), _make_package("log", "0.4.20"))

    epoch = analyzer.approve(graph, "baseline")
    report = analyzer.analyze_epoch("baseline", graph)

    assert epoch.approved_versions("rand") == ["0.7.3", "0.8.5"]
    assert report.summary.total_drifts == 0
    assert report.drifts == ()
    assert report.impact.overall_impact is ImpactLevel.MINIMAL


def test_analyze_classifies_before_detecting() -> None:
    analyzer = DriftAnalyzer()
    baseline = analyzer.approve(_make_graph(_make_package("log", "0.4.20")), "baseline")

    report = analyzer.analyze(baseline, _make_graph(_make_package("log", "0.4.20"), _make_package("ring", "0.17.8")))

    assert len(report.drifts) == 1
    added = report.drifts[0]
    assert added.change_type is ChangeType.ADDITION
    assert added.classification == TcsClassification(TcsCategory.CRYPTOGRAPHY, "Name pattern match: ^ring$")
    assert added.priority is Priority.CRITICAL


def test_prepare_rejects_invalid_graph() -> None:
    app = _make_package("app")
    graph = _make_graph(app, edges=[Edge(app.id, "missing")])

    with pytest.raises(ReferentialIntegrityError):
        DriftAnalyzer().prepare(graph)


def test_prepare_records_offline_mode() -> None:
    graph = DriftAnalyzer(SupplyGuardConfig(offline_mode=True)).prepare(_make_graph(_make_package("log")))

    assert graph.metadata.offline_mode is True


def test_analyze_epoch_unknown_id() -> None:
    with pytest.raises(EpochInvalidError):
        DriftAnalyzer().analyze_epoch("never-approved", _make_graph())


def test_config_overrides_flow_into_detection() -> None:
    config = SupplyGuardConfig(drift_priority_overrides={"log": "low"}, explicit_tcs_overrides={"log": "custom"})
    analyzer = DriftAnalyzer(config)
    baseline = analyzer.approve(_make_graph(), "empty")

    report = analyzer.analyze(baseline, _make_graph(_make_package("log")))

    assert report.drifts[0].priority is Priority.LOW
    assert report.drifts[0].is_tcs_drift


def test_analyze_to_dict_and_module_helper() -> None:
    analyzer = DriftAnalyzer()
    baseline = analyzer.approve(_make_graph(_make_package("log", "0.4.20")), "baseline")
    forked = _make_package("log", "0.4.20", source=GitSource(url="https://example.com/log", rev="abc"))

    payload = analyzer.analyze_to_dict(baseline, _make_graph(forked))
    report = detect_drift(baseline, _make_graph(forked))

    assert payload["drifts"][0]["change_type"] == "source_change"
    assert payload["impact"]["overall_impact"] == "critical"
    assert report.source_change_drifts()[0].is_high_risk_source_change
