"""Shared pytest fixtures for the layerkit test suite.

Provides reusable fixtures for:
- Temporary project directories
- Sample feature descriptors and rules documents
- Pre-parsed feature sets, rule sets and layout plans
- A helper that writes small source trees for validator tests
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from layerkit.parser import FeatureSet, parse_feature_markdown
from layerkit.planner import LayoutPlan, plan_layout
from layerkit.rules import RuleSet, default_rules

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary directory for generated projects (auto-cleanup)."""
    project_dir = tmp_path / "test-project"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def sample_features() -> str:
    """Path to the sample-features.md fixture file."""
    path = FIXTURES_DIR / "sample-features.md"
    assert path.exists(), f"Sample features fixture not found at {path}"
    return str(path)


@pytest.fixture
def sample_features_text() -> str:
    """Raw text content of sample-features.md."""
    return (FIXTURES_DIR / "sample-features.md").read_text(encoding="utf-8")


@pytest.fixture
def sample_rules() -> str:
    """Path to the sample-rules.md fixture file."""
    path = FIXTURES_DIR / "sample-rules.md"
    assert path.exists(), f"Sample rules fixture not found at {path}"
    return str(path)


# ---------------------------------------------------------------------------
# Parsed models
# ---------------------------------------------------------------------------

@pytest.fixture
def rules() -> RuleSet:
    """The built-in rule set."""
    return default_rules()


@pytest.fixture
def relaxed_rules() -> RuleSet:
    """Built-in rules without the test requirement, for focused validator tests."""
    return default_rules().model_copy(update={"tests_required": False})


@pytest.fixture
def features(sample_features_text: str) -> FeatureSet:
    """The sample descriptor parsed into a FeatureSet (Product, Order)."""
    return parse_feature_markdown(sample_features_text)


@pytest.fixture
def plan(features: FeatureSet, rules: RuleSet) -> LayoutPlan:
    """Layout plan for the sample features under the built-in rules."""
    return plan_layout(features, rules)


# ---------------------------------------------------------------------------
# Source trees
# ---------------------------------------------------------------------------

@pytest.fixture
def write_tree(tmp_project_dir: Path) -> Callable[[dict[str, str]], Path]:
    """Write ``{relative_path: content}`` under the temporary project root.

    Content is dedented, so tests can use indented triple-quoted strings.
    """

    def _write(files: dict[str, str]) -> Path:
        for rel_path, content in files.items():
            target = tmp_project_dir / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(content), encoding="utf-8")
        return tmp_project_dir

    return _write
