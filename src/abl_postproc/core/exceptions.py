"""
ABL Post-processing Exception Classes

This module defines the exception hierarchy raised while configuring,
building and running the planar statistics workflow.
"""

from typing import Optional, Sequence

# ============================================================================
# Base Exception
# ============================================================================

class ABLPostProcessingError(Exception):
    """Base exception class for all ABL post-processing errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        full_message = f"{message}\nDetails: {details}" if details else message
        super().__init__(full_message)

# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(ABLPostProcessingError):
    """Invalid or incomplete user configuration."""

class MissingKeyError(ConfigurationError):
    """Required configuration key not present."""

    def __init__(self, key: str, section: Optional[str] = None):
        where = f" in '{section}'" if section else ""
        super().__init__(f"Required configuration key '{key}' missing{where}")
        self.key = key

class InvalidParameterError(ConfigurationError):
    """Configuration value with the wrong type or range."""

    def __init__(self, parameter: str, value, reason: str):
        super().__init__(f"Invalid parameter '{parameter}': {value!r}", reason)
        self.parameter = parameter
        self.value = value

class PartNotFoundError(ConfigurationError):
    """Referenced mesh partitions do not exist."""

    def __init__(self, missing_parts: Sequence[str], role: str = "source"):
        parts_str = ", ".join(missing_parts)
        super().__init__(
            f"Mesh partitions not found ({role}): {parts_str}",
            "Check the partition names against the mesh database"
        )
        self.missing_parts = list(missing_parts)
        self.role = role

# ============================================================================
# Geometry Errors
# ============================================================================

class GeometryError(ABLPostProcessingError):
    """Plane generation parameters are inconsistent or degenerate."""

    def __init__(self, issue: str, details: Optional[str] = None):
        super().__init__(f"Plane geometry error: {issue}", details)
        self.issue = issue

# ============================================================================
# Runtime Errors
# ============================================================================

class TransferError(ABLPostProcessingError):
    """Field transfer could not find donors for some target points."""

    def __init__(self, transfer_name: str, reason: str):
        super().__init__(f"Field transfer '{transfer_name}' failed", reason)
        self.transfer_name = transfer_name

class OutOfRangeError(ABLPostProcessingError):
    """Query against an empty height list."""

class StatisticsInvariantError(ABLPostProcessingError):
    """Statistics tables no longer match their height lists."""

    def __init__(self, table: str, rows: int, expected: int):
        super().__init__(
            f"Statistics table '{table}' has {rows} rows, expected {expected}",
            "Tables are sized once during setup; this indicates an internal defect"
        )
        self.table = table

# ============================================================================
# Utility Functions
# ============================================================================

def check_parts_availability(requested: Sequence[str], available, role: str = "source") -> None:
    """Raise PartNotFoundError for names in ``requested`` missing from ``available``."""
    missing = [p for p in requested if p not in available]
    if missing:
        raise PartNotFoundError(missing, role)
