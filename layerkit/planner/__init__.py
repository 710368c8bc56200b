"""Layout planner.

Usage::

    from layerkit.planner import plan_layout

    plan = plan_layout(features, rules)
    for file in plan.files:
        print(file.path, file.imports)
"""

from layerkit.planner.models import (
    FileKind,
    ImportRef,
    LayoutPlan,
    PlannedFile,
    ts_specifier,
)
from layerkit.planner.planner import PlanningError, plan_layout, expected_test_path

__all__ = [
    "FileKind",
    "ImportRef",
    "LayoutPlan",
    "PlannedFile",
    "PlanningError",
    "plan_layout",
    "expected_test_path",
    "ts_specifier",
]
