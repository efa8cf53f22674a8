"""
Approved dependency snapshots (epochs) and a simple epoch store.

The drift engine only depends on the read-only accessor surface described
by ``EpochView``; persistence formats belong to whoever stores epochs.
An epoch may approve several versions of the same package name, so
entries are keyed by ``(name, version)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from supply_guard.core.dependency_graph import DependencyGraph
from supply_guard.core.errors import EpochInvalidError
from supply_guard.core.models import (
    Classification,
    PackageSource,
    classification_from_dict,
    classification_to_dict,
    source_from_dict,
    source_to_dict,
)


class EpochView(Protocol):
    """Read-only accessor surface consumed by the drift engine."""

    id: str

    def approved_packages(self) -> List[Tuple[str, str]]: ...

    def approved_versions(self, name: str) -> List[str]: ...

    def approved_source(self, name: str, version: Optional[str] = None) -> Optional[PackageSource]: ...

    def approved_classification(self, name: str, version: Optional[str] = None) -> Optional[Classification]: ...


@dataclass(frozen=True)
class EpochEntry:
    name: str
    version: str
    source: PackageSource
    classification: Classification


@dataclass(frozen=True)
class Epoch:
    """An immutable, previously approved dependency snapshot."""
    id: str
    project_id: str = ""
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    entries: Mapping[Tuple[str, str], EpochEntry] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    def approved_packages(self) -> List[Tuple[str, str]]:
        """Every approved (name, version) pair, in approval order."""
        return list(self.entries)

    def approved_versions(self, name: str) -> List[str]:
        return [version for (entry_name, version) in self.entries if entry_name == name]

    def approved_version(self, name: str) -> Optional[str]:
        versions = self.approved_versions(name)
        return versions[0] if versions else None

    def _entry(self, name: str, version: Optional[str]) -> Optional[EpochEntry]:
        # exact pair first, then the first approved version of the name
        if version is not None and (name, version) in self.entries:
            return self.entries[(name, version)]
        first = self.approved_version(name)
        return self.entries[(name, first)] if first is not None else None

    def approved_source(self, name: str, version: Optional[str] = None) -> Optional[PackageSource]:
        entry = self._entry(name, version)
        return entry.source if entry else None

    def approved_classification(self, name: str, version: Optional[str] = None) -> Optional[Classification]:
        entry = self._entry(name, version)
        return entry.classification if entry else None

    def contains(self, name: str, version: str) -> bool:
        return (name, version) in self.entries

    @classmethod
    def from_graph(cls, graph: DependencyGraph, epoch_id: str) -> "Epoch":
        """Snapshot a classified graph, one entry per distinct (name, version)."""
        entries: Dict[Tuple[str, str], EpochEntry] = {}
        for package in graph.packages:
            key = (package.name, package.version)
            if key in entries:
                continue
            entries[key] = EpochEntry(
                name=package.name,
                version=package.version,
                source=package.source,
                classification=package.classification,
            )
        return cls(id=epoch_id, project_id=graph.project_id, entries=entries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "created_at": self.created_at,
            "packages": [
                {
                    "name": entry.name,
                    "version": entry.version,
                    "source": source_to_dict(entry.source),
                    "classification": classification_to_dict(entry.classification),
                }
                for entry in self.entries.values()
            ],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Epoch":
        """Parse an epoch payload.

        Raises:
            EpochInvalidError: if the payload is not a well-formed epoch
        """
        if not isinstance(data, dict):
            raise EpochInvalidError(None, "epoch payload must be a mapping")
        epoch_id = data.get("id")
        if not epoch_id:
            raise EpochInvalidError(None, "epoch id is missing")

        packages = data.get("packages", [])
        if not isinstance(packages, list):
            raise EpochInvalidError(epoch_id, "'packages' must be a list")

        entries: Dict[Tuple[str, str], EpochEntry] = {}
        for index, raw in enumerate(packages):
            if not isinstance(raw, dict) or not raw.get("name") or not raw.get("version"):
                raise EpochInvalidError(epoch_id, f"package entry {index} needs a name and a version")
            try:
                source = source_from_dict(raw.get("source"))
            except ValueError as e:
                raise EpochInvalidError(epoch_id, f"package '{raw['name']}': {e}") from e
            version = str(raw["version"])
            entries[(raw["name"], version)] = EpochEntry(
                name=raw["name"],
                version=version,
                source=source,
                classification=classification_from_dict(raw.get("classification")),
            )

        kwargs: Dict[str, Any] = {"id": epoch_id, "project_id": data.get("project_id", ""), "entries": entries}
        if data.get("created_at"):
            kwargs["created_at"] = data["created_at"]
        return cls(**kwargs)


class InMemoryEpochStore:
    """Keeps approved epochs by id. Epochs are immutable once saved."""

    def __init__(self):
        self._epochs: Dict[str, Epoch] = {}

    def save(self, epoch: Epoch) -> None:
        self._epochs[epoch.id] = epoch

    def load(self, epoch_id: str) -> Epoch:
        try:
            return self._epochs[epoch_id]
        except KeyError:
            raise EpochInvalidError(epoch_id, "epoch not found in store") from None

    def list_ids(self) -> List[str]:
        return sorted(self._epochs)
