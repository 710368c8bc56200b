"""Pydantic v2 models for validation results."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from layerkit.rules.models import Severity


class Category(str, Enum):
    NAMING = "naming"
    DEPENDENCY_DIRECTION = "dependency-direction"
    DEPENDENCY_CYCLE = "dependency-cycle"
    UNKNOWN_LAYER = "unknown-layer"
    FORBIDDEN_CONSTRUCT = "forbidden-construct"
    MISSING_TEST = "missing-test"
    MISPLACED_TEST = "misplaced-test"
    PROJECT_NOT_FOUND = "project-not-found"


class Violation(BaseModel):
    """A single rule violation found in a plan or a source tree."""

    severity: Severity = Field(default=Severity.ERROR)
    category: Category = Field(...)
    file: str = Field(..., description="Relative file path from project root")
    line: Optional[int] = Field(
        default=None, description="Line number where the violation was found"
    )
    description: str = Field(..., description="Human-readable description of the violation")
    suggestion: str = Field(default="", description="Suggested fix")

    @property
    def location(self) -> str:
        return self.file if self.line is None else f"{self.file}:{self.line}"


class ValidationReport(BaseModel):
    """Aggregated result of validating a plan or a tree."""

    errors: list[Violation] = Field(default_factory=list)
    warnings: list[Violation] = Field(
        default_factory=list, description="Warning and info level violations"
    )
    score: float = Field(
        default=100.0,
        ge=0.0,
        le=100.0,
        description="Layout health score (0-100, higher is better)",
    )
    files_checked: int = Field(default=0)

    @property
    def passed(self) -> bool:
        return not self.errors

    @property
    def violations(self) -> list[Violation]:
        return self.errors + self.warnings

    def by_category(self) -> dict[str, list[Violation]]:
        grouped: dict[str, list[Violation]] = {}
        for violation in self.violations:
            grouped.setdefault(violation.category.value, []).append(violation)
        return grouped
