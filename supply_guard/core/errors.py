"""Error types raised by the graph model, drift engine and configuration layer."""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SupplyGuardError(Exception):
    """Base error with a stable code, a hint and a severity."""

    code = "INTERNAL_ERROR"
    severity = ErrorSeverity.LOW

    def __init__(self, message: str, hint: str = ""):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.data = {"hint": hint} if hint else {}

    def guidance(self) -> List[str]:
        steps = [self.hint] if self.hint else []
        steps.append("Check error details for specific guidance")
        return steps

    def context(self) -> Dict[str, Any]:
        return {"error_code": self.code, "severity": self.severity.value}


class GraphValidationError(SupplyGuardError):
    """The dependency graph violates a structural invariant."""

    severity = ErrorSeverity.HIGH


class ReferentialIntegrityError(GraphValidationError):
    code = "REFERENTIAL_INTEGRITY"

    def __init__(self, package_id: str, edge: Any = None):
        super().__init__(
            f"Edge references non-existent package: {package_id}",
            "Ensure the graph producer emits a package node for every edge endpoint",
        )
        self.package_id = package_id
        self.edge = edge

    def context(self) -> Dict[str, Any]:
        context = super().context()
        context["package_id"] = self.package_id
        if self.edge is not None:
            context["edge"] = f"{self.edge.from_id} -> {self.edge.to_id}"
        return context


class DuplicateIdentityError(GraphValidationError):
    code = "DUPLICATE_IDENTITY"

    def __init__(self, package_id: str):
        super().__init__(
            f"Duplicate package ID: {package_id}",
            "Package ids must be unique within a graph",
        )
        self.package_id = package_id

    def context(self) -> Dict[str, Any]:
        context = super().context()
        context["package_id"] = self.package_id
        return context


class EpochInvalidError(SupplyGuardError):
    """The expected epoch is malformed or its store cannot answer a lookup."""

    code = "EPOCH_INVALID"
    severity = ErrorSeverity.CRITICAL

    def __init__(self, epoch_id: Optional[str], reason: str):
        super().__init__(
            f"Epoch invalid: {epoch_id or '<unknown>'} - {reason}",
            "Re-approve a known-good epoch before running drift detection",
        )
        self.epoch_id = epoch_id
        self.reason = reason

    def guidance(self) -> List[str]:
        return [
            f"Verify that epoch '{self.epoch_id}' exists and is readable",
            "Re-approve a known-good epoch before running drift detection",
        ]

    def context(self) -> Dict[str, Any]:
        context = super().context()
        context["epoch_id"] = self.epoch_id or ""
        context["reason"] = self.reason
        return context


class ConfigurationInvalidError(SupplyGuardError):
    code = "CONFIGURATION_INVALID"
    severity = ErrorSeverity.MEDIUM

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Configuration invalid in field '{field}': {reason}",
            "Refer to the configuration documentation for valid values",
        )
        self.field = field
        self.value = value
        self.reason = reason

    def guidance(self) -> List[str]:
        return [
            f"Fix configuration field '{self.field}': {self.reason}",
            f"Current invalid value: {self.value}",
            "Refer to the configuration documentation for valid values",
        ]

    def context(self) -> Dict[str, Any]:
        context = super().context()
        context["field"] = self.field
        context["value"] = str(self.value)
        return context
