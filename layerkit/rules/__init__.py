"""Layering rule model.

Parses layering and naming constraints (e.g. "Repository → Service →
Handler", "snake_case filenames", "tests co-located") into a structured,
validated ``RuleSet``.

Usage::

    from layerkit.rules import default_rules, load_rules

    rules = await load_rules("docs/architecture-rules.md")
    rules.is_allowed("services", "repositories")   # True
    rules.is_allowed("repositories", "services")   # False
"""

from layerkit.rules.defaults import BUILTIN_FORBIDDEN, default_rules
from layerkit.rules.loader import (
    RuleParseError,
    load_rules,
    parse_rules_markdown,
    rules_from_mapping,
)
from layerkit.rules.models import (
    ForbiddenConstruct,
    Language,
    Layer,
    NamingConvention,
    Placement,
    RuleSet,
    Severity,
    SharedFile,
)

__all__ = [
    "BUILTIN_FORBIDDEN",
    "ForbiddenConstruct",
    "Language",
    "Layer",
    "NamingConvention",
    "Placement",
    "RuleParseError",
    "RuleSet",
    "Severity",
    "SharedFile",
    "default_rules",
    "load_rules",
    "parse_rules_markdown",
    "rules_from_mapping",
]
