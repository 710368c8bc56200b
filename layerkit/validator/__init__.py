"""Layout validator.

Checks a planned layout or an existing source tree against a rule set and
reports naming, dependency-direction, cycle, forbidden-construct and test
violations.

Usage::

    from layerkit.validator import print_report, validate_tree

    report = await validate_tree("output/shop", rules)
    print_report(report)
    if not report.passed:
        ...
"""

from layerkit.validator.models import Category, ValidationReport, Violation
from layerkit.validator.validator import (
    LayoutValidator,
    is_test_file,
    print_report,
    validate_plan,
    validate_tree,
)

__all__ = [
    "Category",
    "LayoutValidator",
    "ValidationReport",
    "Violation",
    "is_test_file",
    "print_report",
    "validate_plan",
    "validate_tree",
]
