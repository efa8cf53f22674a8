"""
Deterministic, multi-signal TCS classification.

A package is classified from its static attributes only: its name, the
operator override table, its proc-macro / build-time role and an ordered
list of name patterns. The first matching rule wins and every result
records the signal that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Pattern, Sequence, Tuple, Union
import logging
import re

from supply_guard.core.classification_config import (
    DEFAULT_CLASSIFY_BUILD_DEPS,
    DEFAULT_CLASSIFY_PROC_MACROS,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_PATTERN_CONFIDENCE,
    DEFAULT_TCS_PATTERNS,
)
from supply_guard.core.dependency_graph import DependencyGraph
from supply_guard.core.models import (
    Classification,
    DependencyKind,
    MechanicalCategory,
    MechanicalClassification,
    Package,
    TcsCategory,
    TcsClassification,
    UnknownClassification,
)


class SignalKind(Enum):
    EXPLICIT_OVERRIDE = "explicit_override"
    PROC_MACRO_USAGE = "proc_macro_usage"
    BUILD_SCRIPT_USAGE = "build_script_usage"
    NAME_PATTERN = "name_pattern"
    DEPENDENCY_KIND = "dependency_kind"


@dataclass(frozen=True)
class ClassificationSignal:
    """Evidence explaining why a classification was assigned."""
    kind: SignalKind
    detail: Optional[str] = None

    def description(self) -> str:
        if self.kind is SignalKind.EXPLICIT_OVERRIDE:
            return f"Explicit override configuration for package: {self.detail}"
        if self.kind is SignalKind.PROC_MACRO_USAGE:
            return "Proc-macro usage detected"
        if self.kind is SignalKind.BUILD_SCRIPT_USAGE:
            return "Build script usage detected"
        if self.kind is SignalKind.NAME_PATTERN:
            return f"Name pattern match: {self.detail}"
        return f"Dependency kind: {self.detail}"


@dataclass(frozen=True)
class TcsRole:
    category: TcsCategory


@dataclass(frozen=True)
class MechanicalRole:
    category: MechanicalCategory


ToolchainRole = Union[TcsRole, MechanicalRole]


@dataclass(frozen=True)
class ClassificationResult:
    role: ToolchainRole
    signals: Tuple[ClassificationSignal, ...]

    @property
    def is_tcs(self) -> bool:
        return isinstance(self.role, TcsRole)

    @property
    def tcs_category(self) -> Optional[TcsCategory]:
        if isinstance(self.role, TcsRole):
            return self.role.category
        return None

    def to_classification(self) -> Classification:
        if isinstance(self.role, TcsRole):
            rationale = "; ".join(s.description() for s in self.signals)
            return TcsClassification(category=self.role.category, rationale=rationale)
        return MechanicalClassification(category=self.role.category)


@dataclass(frozen=True)
class TcsPattern:
    name: str
    regex: str
    category: TcsCategory
    description: str = ""
    confidence: float = DEFAULT_PATTERN_CONFIDENCE


def default_patterns() -> Tuple[TcsPattern, ...]:
    return tuple(
        TcsPattern(name=name, regex=regex, category=TcsCategory.parse(category), description=description)
        for name, regex, category, description in DEFAULT_TCS_PATTERNS
    )


@dataclass(frozen=True)
class ClassifierSettings:
    """Immutable classifier policy, injected at construction."""
    explicit_overrides: Mapping[str, TcsCategory] = field(default_factory=dict)
    patterns: Tuple[TcsPattern, ...] = field(default_factory=default_patterns)
    classify_proc_macros: bool = DEFAULT_CLASSIFY_PROC_MACROS
    classify_build_deps: bool = DEFAULT_CLASSIFY_BUILD_DEPS
    default_category: MechanicalCategory = MechanicalCategory.OTHER
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD

    def __post_init__(self):
        object.__setattr__(self, "explicit_overrides", MappingProxyType(dict(self.explicit_overrides)))
        object.__setattr__(self, "patterns", tuple(self.patterns))

    @classmethod
    def with_custom_patterns(cls, custom: Sequence[TcsPattern], **kwargs) -> "ClassifierSettings":
        """Operator patterns are evaluated before the built-in table."""
        return cls(patterns=tuple(custom) + default_patterns(), **kwargs)


@dataclass
class PackageClassificationRow:
    package_name: str
    package_version: str
    tcs_category: Optional[TcsCategory]
    signals: List[str] = field(default_factory=list)


@dataclass
class TcsClassificationSummary:
    packages: List[PackageClassificationRow] = field(default_factory=list)
    by_category: Dict[str, int] = field(default_factory=dict)
    tcs_count: int = 0
    mechanical_count: int = 0
    unknown_count: int = 0  # packages not yet classified on the graph


class TcsClassifier:
    """Classifies packages as TCS or Mechanical with explicit, ordered rules."""

    def __init__(self, settings: Optional[ClassifierSettings] = None):
        self.settings = settings or ClassifierSettings()
        self._compiled: List[Tuple[TcsPattern, Pattern[str]]] = []
        for pattern in self.settings.patterns:
            if pattern.confidence < self.settings.confidence_threshold:
                logging.info(
                    "Skipping TCS pattern %s: confidence %.2f below threshold %.2f",
                    pattern.name,
                    pattern.confidence,
                    self.settings.confidence_threshold,
                )
                continue
            try:
                self._compiled.append((pattern, re.compile(pattern.regex)))
            except re.error as e:
                logging.warning(f"Ignoring TCS pattern {pattern.name} with invalid regex {pattern.regex!r}: {e}")

    def classify(self, package: Package) -> ClassificationResult:
        settings = self.settings

        override = settings.explicit_overrides.get(package.name)
        if override is not None:
            return ClassificationResult(
                role=TcsRole(override),
                signals=(ClassificationSignal(SignalKind.EXPLICIT_OVERRIDE, package.name),),
            )

        if settings.classify_proc_macros and package.is_proc_macro:
            return ClassificationResult(
                role=TcsRole(TcsCategory.BUILD_TIME_EXECUTION),
                signals=(ClassificationSignal(SignalKind.PROC_MACRO_USAGE),),
            )

        kind = package.declared_kind or DependencyKind.NORMAL
        if settings.classify_build_deps and kind is DependencyKind.BUILD:
            return ClassificationResult(
                role=TcsRole(TcsCategory.BUILD_TIME_EXECUTION),
                signals=(ClassificationSignal(SignalKind.BUILD_SCRIPT_USAGE),),
            )

        for pattern, compiled in self._compiled:
            if compiled.search(package.name):
                return ClassificationResult(
                    role=TcsRole(pattern.category),
                    signals=(ClassificationSignal(SignalKind.NAME_PATTERN, pattern.regex),),
                )

        return ClassificationResult(
            role=MechanicalRole(settings.default_category),
            signals=(ClassificationSignal(SignalKind.DEPENDENCY_KIND, kind.value),),
        )

    def classify_graph(self, graph: DependencyGraph) -> Dict[str, ClassificationResult]:
        """Assign a classification to every package in ``graph``, keyed by package id."""
        results: Dict[str, ClassificationResult] = {}
        for package in graph.packages:
            result = self.classify(package)
            package.classification = result.to_classification()
            results[package.id] = result
            logging.debug(
                "Classified %s@%s as %s",
                package.name,
                package.version,
                result.tcs_category.value if result.is_tcs else "mechanical",
            )

        tcs_total = sum(1 for r in results.values() if r.is_tcs)
        logging.info(
            "Classified %d packages for %s: tcs=%d mechanical=%d",
            len(results),
            graph.project_id,
            tcs_total,
            len(results) - tcs_total,
        )
        return results

    def summarize(self, graph: DependencyGraph) -> TcsClassificationSummary:
        """Classify every package once and tally the verdicts.

        Each row's category and signals come from the same ``classify`` call,
        so the evidence always explains the category shown. The graph is not
        modified.
        """
        summary = TcsClassificationSummary()
        for package in graph.packages:
            result = self.classify(package)
            category = result.tcs_category
            if category is not None:
                summary.tcs_count += 1
                summary.by_category[category.value] = summary.by_category.get(category.value, 0) + 1
            else:
                summary.mechanical_count += 1
            if isinstance(package.classification, UnknownClassification):
                summary.unknown_count += 1

            summary.packages.append(
                PackageClassificationRow(
                    package_name=package.name,
                    package_version=package.version,
                    tcs_category=category,
                    signals=[s.description() for s in result.signals],
                )
            )
        return summary
