"""High-level drift analyzer orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from supply_guard.core.config import SupplyGuardConfig
from supply_guard.core.dependency_graph import DependencyGraph
from supply_guard.core.drift_detector import DriftDetector
from supply_guard.core.drift_models import DriftReport
from supply_guard.core.drift_report import DriftReportBuilder
from supply_guard.core.epoch import Epoch, EpochView, InMemoryEpochStore
from supply_guard.core.tcs_classifier import TcsClassifier


@dataclass
class DriftAnalyzer:
    config: SupplyGuardConfig = field(default_factory=SupplyGuardConfig)
    store: InMemoryEpochStore = field(default_factory=InMemoryEpochStore)

    def __post_init__(self):
        self.classifier = TcsClassifier(self.config.classifier_settings())
        self.report_builder = DriftReportBuilder(self.config.impact_thresholds())
        self.detector = DriftDetector(self.config.drift_settings(), self.report_builder)

    def prepare(self, graph: DependencyGraph) -> DependencyGraph:
        """Validate the graph and stamp a classification on every package."""
        graph.validate()
        self.classifier.classify_graph(graph)
        graph.metadata.offline_mode = self.config.offline_mode
        return graph

    def analyze(self, expected: EpochView, graph: DependencyGraph) -> DriftReport:
        self.prepare(graph)
        report = self.detector.detect_drift(expected, graph)
        summary = report.summary
        logging.info(
            f"Drift for {graph.project_id}: {summary.total_drifts} drifts "
            f"({summary.tcs_drifts} TCS), impact={report.impact.overall_impact.value}, "
            f"timeline={report.impact.recommended_timeline.value}"
        )
        return report

    def analyze_epoch(self, epoch_id: str, graph: DependencyGraph) -> DriftReport:
        return self.analyze(self.store.load(epoch_id), graph)

    def approve(self, graph: DependencyGraph, epoch_id: str) -> Epoch:
        """Record the current graph as the approved baseline."""
        self.prepare(graph)
        epoch = Epoch.from_graph(graph, epoch_id)
        self.store.save(epoch)
        logging.info(f"Approved epoch {epoch_id} with {len(epoch.entries)} packages")
        return epoch

    def analyze_to_dict(self, expected: EpochView, graph: DependencyGraph) -> Dict[str, Any]:
        return self.report_builder.serialize_report(self.analyze(expected, graph))
