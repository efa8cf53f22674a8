"""
Core data models for dependency graphs.

This module contains pure data structures for representing packages,
their sources, classifications and the edges between them, without any
graph logic. Sum types (source, classification, audit status) are closed
sets of frozen dataclasses joined by a ``Union`` alias.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import uuid


class DependencyKind(Enum):
    """How a dependency is consumed by its dependent."""
    NORMAL = "normal"
    BUILD = "build"
    DEV = "dev"

    @classmethod
    def parse(cls, value: Any) -> "DependencyKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.NORMAL


class TcsCategory(Enum):
    """Trust-Critical Software categories."""
    CRYPTOGRAPHY = "cryptography"
    AUTHENTICATION = "authentication"
    SERIALIZATION = "serialization"
    TRANSPORT = "transport"
    DATABASE = "database"
    RANDOM = "random"
    BUILD_TIME_EXECUTION = "build_time_execution"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: Any) -> "TcsCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.CUSTOM


class MechanicalCategory(Enum):
    """Categories for components without direct trust impact."""
    UTILITY = "utility"
    DATA_STRUCTURES = "data_structures"
    TESTING = "testing"
    DEVELOPMENT = "development"
    DOCUMENTATION = "documentation"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "MechanicalCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.OTHER


# --- Package sources ---

@dataclass(frozen=True)
class RegistrySource:
    url: str
    checksum: str = ""

    @property
    def kind(self) -> str:
        return "registry"


@dataclass(frozen=True)
class GitSource:
    url: str
    rev: str
    checksum: str = ""

    @property
    def kind(self) -> str:
        return "git"


@dataclass(frozen=True)
class LocalSource:
    path: str

    @property
    def kind(self) -> str:
        return "local"


PackageSource = Union[RegistrySource, GitSource, LocalSource]


def source_to_dict(source: PackageSource) -> Dict[str, Any]:
    if isinstance(source, RegistrySource):
        return {"type": "registry", "url": source.url, "checksum": source.checksum}
    if isinstance(source, GitSource):
        return {"type": "git", "url": source.url, "rev": source.rev, "checksum": source.checksum}
    return {"type": "local", "path": source.path}


def source_from_dict(data: Dict[str, Any]) -> PackageSource:
    """Build a source from its tagged dict form.

    Raises:
        ValueError: if the tag is missing or unknown, or a required field is absent
    """
    if not isinstance(data, dict):
        raise ValueError(f"Source must be a mapping, got {type(data).__name__}")
    source_type = str(data.get("type", "")).lower()
    try:
        if source_type == "registry":
            return RegistrySource(url=data["url"], checksum=data.get("checksum", ""))
        if source_type == "git":
            return GitSource(url=data["url"], rev=data["rev"], checksum=data.get("checksum", ""))
        if source_type == "local":
            return LocalSource(path=data["path"])
    except KeyError as e:
        raise ValueError(f"Source of type '{source_type}' is missing field {e}") from e
    raise ValueError(f"Unknown source type: {source_type!r}")


# --- Classification ---

@dataclass(frozen=True)
class TcsClassification:
    category: TcsCategory
    rationale: str = ""


@dataclass(frozen=True)
class MechanicalClassification:
    category: MechanicalCategory = MechanicalCategory.OTHER


@dataclass(frozen=True)
class UnknownClassification:
    pass


Classification = Union[TcsClassification, MechanicalClassification, UnknownClassification]


def is_tcs(classification: Classification) -> bool:
    return isinstance(classification, TcsClassification)


def is_mechanical(classification: Classification) -> bool:
    return isinstance(classification, MechanicalClassification)


def classification_to_dict(classification: Classification) -> Dict[str, Any]:
    if isinstance(classification, TcsClassification):
        return {
            "type": "tcs",
            "category": classification.category.value,
            "rationale": classification.rationale,
        }
    if isinstance(classification, MechanicalClassification):
        return {"type": "mechanical", "category": classification.category.value}
    return {"type": "unknown"}


def classification_from_dict(data: Optional[Dict[str, Any]]) -> Classification:
    """Unknown or missing classification payloads degrade to ``UnknownClassification``."""
    if not isinstance(data, dict):
        return UnknownClassification()
    kind = str(data.get("type", "unknown")).lower()
    if kind == "tcs":
        return TcsClassification(
            category=TcsCategory.parse(data.get("category")),
            rationale=str(data.get("rationale", "")),
        )
    if kind == "mechanical":
        return MechanicalClassification(category=MechanicalCategory.parse(data.get("category")))
    return UnknownClassification()


# --- Audit status ---

@dataclass(frozen=True)
class Audited:
    method: str  # e.g. 'vet:safe-to-deploy', 'manual:adr-12', 'imported:<source>'
    auditor: str
    date: str


@dataclass(frozen=True)
class Exempted:
    reason: str
    expires: Optional[str] = None


@dataclass(frozen=True)
class Unaudited:
    pass


AuditStatus = Union[Audited, Exempted, Unaudited]


# --- Graph elements ---

class AnnotationKeys:
    """Well-known ecosystem annotation keys."""
    FEATURES = "features"
    DEPENDENCY_KIND = "dependency_kind"
    TARGET_SPECIFIC = "target_specific"
    PROC_MACRO = "proc_macro"
    CATEGORIES = "categories"
    KEYWORDS = "keywords"
    EDITION = "edition"
    RUST_VERSION = "rust_version"


@dataclass(frozen=True)
class Annotation:
    """Ecosystem-specific key/value pair, opaque to the core."""
    namespace: str
    key: str
    value: Any


@dataclass
class Package:
    """A node of the dependency graph."""
    name: str
    version: str
    source: PackageSource
    checksum: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    classification: Classification = field(default_factory=UnknownClassification)
    audit_status: AuditStatus = field(default_factory=Unaudited)
    annotations: List[Annotation] = field(default_factory=list)

    def annotation(self, key: str) -> Optional[Any]:
        for annotation in self.annotations:
            if annotation.key == key:
                return annotation.value
        return None

    @property
    def is_proc_macro(self) -> bool:
        value = self.annotation(AnnotationKeys.PROC_MACRO)
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes")
        return bool(value)

    @property
    def declared_kind(self) -> Optional[DependencyKind]:
        value = self.annotation(AnnotationKeys.DEPENDENCY_KIND)
        if value is None:
            return None
        return DependencyKind.parse(value)


@dataclass
class Edge:
    """Dependency relationship: ``from_id`` depends on ``to_id``."""
    from_id: str
    to_id: str
    kind: DependencyKind = DependencyKind.NORMAL
    target: Optional[str] = None  # e.g. 'cfg(windows)'
    optional: bool = False
    features: List[str] = field(default_factory=list)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class GraphMetadata:
    generated_at: str = field(default_factory=_utc_now)
    tool_versions: Dict[str, str] = field(default_factory=dict)
    schema_version: str = "1.0.0"
    offline_mode: bool = False
    properties: Dict[str, Any] = field(default_factory=dict)
