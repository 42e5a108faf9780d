"""
Analysis errors.

Only the two fatal per-unit categories are exceptions: a unit that cannot be
resolved to a documentable class, and a unit that cannot be parsed. Every other
failure inside the engine degrades to empty or default data.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """A unit could not be analyzed."""

    def __init__(self, message: str, unit: str | None = None) -> None:
        super().__init__(message)
        self.unit = unit


class UnitResolutionError(AnalysisError):
    """No documentable class in the unit, or the requested method does not exist."""

    @classmethod
    def no_class(cls, unit: str) -> UnitResolutionError:
        return cls(f"No documentable class found in {unit}", unit)

    @classmethod
    def not_documentable(cls, class_name: str, unit: str) -> UnitResolutionError:
        return cls(f"Class {class_name} is abstract and cannot be documented", unit)

    @classmethod
    def method_not_found(cls, class_name: str, method: str, unit: str) -> UnitResolutionError:
        return cls(f"Method {method} not found in {class_name}", unit)


class SourceParseError(AnalysisError, ValueError):
    """The source unit has syntax errors."""

    def __init__(self, unit: str, line: int | None = None) -> None:
        where = f" near line {line}" if line else ""
        super().__init__(f"Failed to parse PHP source {unit}{where}", unit)
        self.line = line


class GenerationError(Exception):
    """Rendering was requested for a method that has no analysis."""

    @classmethod
    def method_not_analyzed(cls, method: str) -> GenerationError:
        return cls(f"Method {method} has not been analyzed")
