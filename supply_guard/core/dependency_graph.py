"""
Language-agnostic dependency graph.

Packages are kept in insertion order and edges reference packages by id.
The graph is owned by whichever pipeline stage currently holds it and is
never mutated concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional
import logging

from supply_guard.core.errors import DuplicateIdentityError, ReferentialIntegrityError
from supply_guard.core.models import (
    Audited,
    DependencyKind,
    Edge,
    GitSource,
    GraphMetadata,
    LocalSource,
    MechanicalClassification,
    Package,
    TcsClassification,
)


@dataclass
class DependencyStats:
    total: int = 0
    tcs: int = 0
    mechanical: int = 0
    git: int = 0
    local: int = 0

    def _percentage(self, count: int) -> float:
        if self.total == 0:
            return 0.0
        return (count / self.total) * 100.0

    def tcs_percentage(self) -> float:
        return self._percentage(self.tcs)

    def mechanical_percentage(self) -> float:
        return self._percentage(self.mechanical)

    def git_percentage(self) -> float:
        return self._percentage(self.git)


@dataclass
class DependencyGraph:
    """Packages plus dependency edges for a single project."""
    project_id: str
    ecosystem: str  # e.g. 'rust', 'go', 'nodejs'
    packages: List[Package] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    metadata: GraphMetadata = field(default_factory=GraphMetadata)

    def add_package(self, package: Package) -> Package:
        self.packages.append(package)
        return package

    def add_edge(self, edge: Edge) -> Edge:
        self.edges.append(edge)
        return edge

    def find_by_name_version(self, name: str, version: str) -> Optional[Package]:
        for package in self.packages:
            if package.name == name and package.version == version:
                return package
        return None

    def find_by_id(self, package_id: str) -> Optional[Package]:
        for package in self.packages:
            if package.id == package_id:
                return package
        return None

    def packages_named(self, name: str) -> List[Package]:
        return [p for p in self.packages if p.name == name]

    def dependencies_of(self, package_id: str) -> List[Edge]:
        """Edges leaving ``package_id`` (what it depends on)."""
        return [e for e in self.edges if e.from_id == package_id]

    def dependents_of(self, package_id: str) -> List[Edge]:
        """Edges entering ``package_id`` (who depends on it)."""
        return [e for e in self.edges if e.to_id == package_id]

    def validate(self) -> None:
        """Check referential integrity and identity uniqueness.

        Raises:
            ReferentialIntegrityError: an edge endpoint does not exist
            DuplicateIdentityError: two packages share an id
        """
        known_ids = {p.id for p in self.packages}
        for edge in self.edges:
            if edge.from_id not in known_ids:
                raise ReferentialIntegrityError(edge.from_id, edge)
            if edge.to_id not in known_ids:
                raise ReferentialIntegrityError(edge.to_id, edge)

        seen = set()
        for package in self.packages:
            if package.id in seen:
                raise DuplicateIdentityError(package.id)
            seen.add(package.id)

        logging.debug(
            "Graph %s validated: packages=%d edges=%d",
            self.project_id,
            len(self.packages),
            len(self.edges),
        )

    def effective_kind(self, package: Package) -> DependencyKind:
        """Declared kind annotation, else the kind shared by every incoming edge."""
        declared = package.declared_kind
        if declared is not None:
            return declared
        incoming = {e.kind for e in self.dependents_of(package.id)}
        if len(incoming) == 1:
            return incoming.pop()
        return DependencyKind.NORMAL

    def dependency_stats(self) -> DependencyStats:
        stats = DependencyStats(total=len(self.packages))
        for package in self.packages:
            if isinstance(package.classification, TcsClassification):
                stats.tcs += 1
            elif isinstance(package.classification, MechanicalClassification):
                stats.mechanical += 1
            if isinstance(package.source, GitSource):
                stats.git += 1
            elif isinstance(package.source, LocalSource):
                stats.local += 1
        return stats

    def unaudited_tcs_packages(self) -> List[Package]:
        return [
            p for p in self.packages
            if isinstance(p.classification, TcsClassification)
            and not isinstance(p.audit_status, Audited)
        ]
