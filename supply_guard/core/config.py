import re
import sys
import logging
from typing import List, Optional, Dict, Any
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from supply_guard.core.classification_config import (
    DEFAULT_CLASSIFY_PROC_MACROS,
    DEFAULT_CLASSIFY_BUILD_DEPS,
    DEFAULT_MECHANICAL_CATEGORY,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_PATTERN_CONFIDENCE,
)
from supply_guard.core.drift_config import (
    DEFAULT_DRIFT_IGNORE_MECHANICAL_VERSION_UPDATES,
    DEFAULT_DRIFT_FLAG_SOURCE_CHANGES_HIGH_RISK,
    DEFAULT_DRIFT_INCLUDE_DEV_DEPENDENCIES,
    DEFAULT_DRIFT_INCLUDE_BUILD_DEPENDENCIES,
    DEFAULT_DRIFT_MERGE_MULTIPLE_CHANGES,
    DEFAULT_DRIFT_CONCURRENT_SCANS,
    DEFAULT_MINOR_IMPACT_DRIFT_THRESHOLD,
    DEFAULT_PERFORMANCE_THRESHOLDS,
)
from supply_guard.core.drift_detector import DriftDetectorSettings
from supply_guard.core.drift_models import Priority
from supply_guard.core.drift_report import ImpactThresholds
from supply_guard.core.errors import ConfigurationInvalidError
from supply_guard.core.models import MechanicalCategory, TcsCategory
from supply_guard.core.tcs_classifier import ClassifierSettings, TcsPattern

# Default configuration values
DEFAULT_CONFIG_PATH = "supply_guard.config.yaml"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_OFFLINE_MODE = False


class TcsPatternConfig(BaseModel):
    """Operator-supplied name pattern, evaluated before the built-in table."""
    name: str
    regex: str
    category: str
    description: str = ""
    confidence: float = DEFAULT_PATTERN_CONFIDENCE

    @field_validator('regex')
    @classmethod
    def check_regex(cls, v):
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid regular expression: {e}")
        return v

    def to_pattern(self) -> TcsPattern:
        return TcsPattern(
            name=self.name,
            regex=self.regex,
            category=TcsCategory.parse(self.category),
            description=self.description,
            confidence=self.confidence,
        )


class SupplyGuardConfig(BaseModel):
    """
    Central configuration model for supply-guard.
    """
    # Classification
    explicit_tcs_overrides: Dict[str, str] = Field(default_factory=dict)
    custom_tcs_patterns: List[TcsPatternConfig] = Field(default_factory=list)
    classify_proc_macros: bool = DEFAULT_CLASSIFY_PROC_MACROS
    classify_build_deps: bool = DEFAULT_CLASSIFY_BUILD_DEPS
    default_mechanical_category: str = DEFAULT_MECHANICAL_CATEGORY
    classification_confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD

    # Drift detection
    drift_ignore_mechanical_version_updates: bool = DEFAULT_DRIFT_IGNORE_MECHANICAL_VERSION_UPDATES
    drift_flag_source_changes_high_risk: bool = DEFAULT_DRIFT_FLAG_SOURCE_CHANGES_HIGH_RISK
    drift_priority_overrides: Dict[str, str] = Field(default_factory=dict)
    drift_include_dev_dependencies: bool = DEFAULT_DRIFT_INCLUDE_DEV_DEPENDENCIES
    drift_include_build_dependencies: bool = DEFAULT_DRIFT_INCLUDE_BUILD_DEPENDENCIES
    drift_merge_multiple_changes: bool = DEFAULT_DRIFT_MERGE_MULTIPLE_CHANGES
    drift_concurrent_scans: bool = DEFAULT_DRIFT_CONCURRENT_SCANS
    drift_minor_impact_threshold: int = DEFAULT_MINOR_IMPACT_DRIFT_THRESHOLD
    drift_performance_thresholds: List[int] = Field(default_factory=lambda: list(DEFAULT_PERFORMANCE_THRESHOLDS))

    log_level: str = DEFAULT_LOG_LEVEL
    offline_mode: bool = DEFAULT_OFFLINE_MODE

    # Allow extra fields for flexibility
    class Config:
        extra = "allow"

    @field_validator('classification_confidence_threshold')
    @classmethod
    def check_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("confidence threshold must be between 0 and 1")
        return v

    @field_validator('drift_priority_overrides')
    @classmethod
    def check_priorities(cls, v):
        for name, value in v.items():
            try:
                Priority.parse(value)
            except ValueError:
                raise ValueError(f"unknown priority '{value}' for package '{name}'")
        return v

    @field_validator('drift_performance_thresholds')
    @classmethod
    def check_performance_thresholds(cls, v):
        if len(v) != 3 or sorted(v) != list(v):
            raise ValueError("expected three ascending drift counts (minor, moderate, significant)")
        return v

    @field_validator('log_level')
    @classmethod
    def check_log_level(cls, v):
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError(f"unknown log level: {v}")
        return v.upper()

    def classifier_settings(self) -> ClassifierSettings:
        return ClassifierSettings.with_custom_patterns(
            [p.to_pattern() for p in self.custom_tcs_patterns],
            explicit_overrides={
                name: TcsCategory.parse(category) for name, category in self.explicit_tcs_overrides.items()
            },
            classify_proc_macros=self.classify_proc_macros,
            classify_build_deps=self.classify_build_deps,
            default_category=MechanicalCategory.parse(self.default_mechanical_category),
            confidence_threshold=self.classification_confidence_threshold,
        )

    def drift_settings(self) -> DriftDetectorSettings:
        return DriftDetectorSettings(
            ignore_mechanical_version_updates=self.drift_ignore_mechanical_version_updates,
            flag_source_changes_high_risk=self.drift_flag_source_changes_high_risk,
            priority_overrides={
                name: Priority.parse(value) for name, value in self.drift_priority_overrides.items()
            },
            include_dev_dependencies=self.drift_include_dev_dependencies,
            include_build_dependencies=self.drift_include_build_dependencies,
            merge_multiple_changes=self.drift_merge_multiple_changes,
            concurrent_scans=self.drift_concurrent_scans,
        )

    def impact_thresholds(self) -> ImpactThresholds:
        return ImpactThresholds(
            minor_drift_count=self.drift_minor_impact_threshold,
            performance=tuple(self.drift_performance_thresholds),
        )


def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> SupplyGuardConfig:
    """
    Load configuration from file and overrides.

    Priority:
    1. Overrides (if provided and not None)
    2. Config File (if provided or found at default path)
    3. Default Values

    Args:
        config_path: Path to the YAML config file. If None, tries 'supply_guard.config.yaml'.
        overrides: Dictionary of values that win over the config file.

    Returns:
        SupplyGuardConfig: The resolved configuration object.

    Raises:
        ConfigurationInvalidError: if the merged values fail validation
    """
    config_data: Dict[str, Any] = {}

    target_path = config_path if config_path else DEFAULT_CONFIG_PATH
    path_obj = Path(target_path)

    if path_obj.exists() and path_obj.is_file():
        try:
            with open(path_obj, 'r', encoding='utf-8') as f:
                file_data = yaml.safe_load(f)
                if isinstance(file_data, dict):
                    config_data.update(file_data)
                elif file_data is not None:
                    logging.warning(f"Ignoring config file {target_path}: top level must be a mapping")
            logging.info(f"Loaded configuration from {target_path}")
        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Failed to load config file {target_path}: {e}")
    elif config_path:
        logging.warning(f"Config file not found at explicit path: {config_path}")
    else:
        logging.info(f"No config file found at {DEFAULT_CONFIG_PATH}, using defaults.")

    if overrides:
        for key, value in overrides.items():
            if value is not None:
                config_data[key] = value

    try:
        return SupplyGuardConfig(**config_data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "config"
        raise ConfigurationInvalidError(field, first.get("input"), first.get("msg", str(e))) from e


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), stream=sys.stderr)
