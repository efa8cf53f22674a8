"""Default configuration values for drift detection."""

from supply_guard.core.drift_models import Priority

DEFAULT_DRIFT_IGNORE_MECHANICAL_VERSION_UPDATES = False
DEFAULT_DRIFT_FLAG_SOURCE_CHANGES_HIGH_RISK = True
DEFAULT_DRIFT_INCLUDE_DEV_DEPENDENCIES = False
DEFAULT_DRIFT_INCLUDE_BUILD_DEPENDENCIES = True
DEFAULT_DRIFT_MERGE_MULTIPLE_CHANGES = False
DEFAULT_DRIFT_CONCURRENT_SCANS = False

# Overall impact is Minor when the drift count exceeds this and nothing more severe applies.
DEFAULT_MINOR_IMPACT_DRIFT_THRESHOLD = 10
# Drift counts above which performance impact is Minor, Moderate, Significant.
DEFAULT_PERFORMANCE_THRESHOLDS = (5, 10, 20)

DEFAULT_CLASSIFICATION_PRIORITIES = {
    "tcs": Priority.CRITICAL,
    "mechanical": Priority.MEDIUM,
    "unknown": Priority.LOW,
}

# (expected source kind, actual source kind) -> (priority, high risk)
DEFAULT_SOURCE_RISK_MATRIX = {
    ("registry", "git"): (Priority.CRITICAL, True),
    ("git", "registry"): (Priority.MEDIUM, False),
    ("local", "git"): (Priority.LOW, True),
}
DEFAULT_SOURCE_CHANGE_RISK = (Priority.LOW, False)
