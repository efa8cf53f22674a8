"""
Unified interface for dependency classification and drift detection.

This module re-exports the public surface of the core package so callers
can build a graph, classify it, approve an epoch and detect drift without
reaching into individual modules.

Key Features:
- Language-agnostic graph model with validation
- Deterministic TCS / Mechanical classification with recorded signals
- Epoch snapshots and an in-memory epoch store
- Drift detection with prioritized items and impact assessment
"""

from typing import Optional

from .models import (
    Annotation,
    AnnotationKeys,
    Audited,
    DependencyKind,
    Edge,
    Exempted,
    GitSource,
    GraphMetadata,
    LocalSource,
    MechanicalCategory,
    MechanicalClassification,
    Package,
    RegistrySource,
    TcsCategory,
    TcsClassification,
    Unaudited,
    UnknownClassification,
)
from .dependency_graph import DependencyGraph, DependencyStats
from .errors import (
    ConfigurationInvalidError,
    DuplicateIdentityError,
    EpochInvalidError,
    GraphValidationError,
    ReferentialIntegrityError,
    SupplyGuardError,
)
from .tcs_classifier import (
    ClassificationResult,
    ClassificationSignal,
    ClassifierSettings,
    SignalKind,
    TcsClassifier,
    TcsPattern,
)
from .epoch import Epoch, EpochView, InMemoryEpochStore
from .drift_models import ChangeType, DriftItem, DriftReport, ImpactLevel, Priority, RecommendedTimeline
from .drift_report import DriftReportBuilder, ImpactThresholds
from .drift_detector import DriftDetector, DriftDetectorSettings
from .config import SupplyGuardConfig, configure_logging, load_config
from .drift_analyzer import DriftAnalyzer


def detect_drift(expected: EpochView, graph: DependencyGraph, config: Optional[SupplyGuardConfig] = None) -> DriftReport:
    """
    Classify ``graph`` and compare it against ``expected``.

    Args:
        expected: Approved epoch (any object exposing the epoch accessors)
        graph: Current dependency graph; classifications are written in place
        config: Optional configuration, defaults are used when omitted

    Returns:
        DriftReport for this run
    """
    return DriftAnalyzer(config or SupplyGuardConfig()).analyze(expected, graph)


__all__ = [
    # Models
    'Annotation', 'AnnotationKeys', 'Audited', 'DependencyKind', 'Edge', 'Exempted',
    'GitSource', 'GraphMetadata', 'LocalSource', 'MechanicalCategory', 'MechanicalClassification',
    'Package', 'RegistrySource', 'TcsCategory', 'TcsClassification', 'Unaudited',
    'UnknownClassification', 'DependencyGraph', 'DependencyStats',

    # Errors
    'SupplyGuardError', 'GraphValidationError', 'ReferentialIntegrityError',
    'DuplicateIdentityError', 'EpochInvalidError', 'ConfigurationInvalidError',

    # Classification
    'ClassificationResult', 'ClassificationSignal', 'ClassifierSettings', 'SignalKind',
    'TcsClassifier', 'TcsPattern',

    # Drift
    'Epoch', 'EpochView', 'InMemoryEpochStore', 'ChangeType', 'DriftItem', 'DriftReport',
    'ImpactLevel', 'Priority', 'RecommendedTimeline', 'DriftReportBuilder', 'ImpactThresholds',
    'DriftDetector', 'DriftDetectorSettings', 'DriftAnalyzer', 'detect_drift',

    # Configuration
    'SupplyGuardConfig', 'load_config', 'configure_logging',
]
