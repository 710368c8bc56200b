"""Integration tests for the parse-plan-emit-validate round trip.

These tests run the real parser, planner, emitter and validator end-to-end
against the sample fixtures and verify that a freshly scaffolded tree
satisfies the rules it was generated from, and that hand-made violations
in that tree are caught.

No external services are required.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from layerkit.config import Config
from layerkit.parser import parse_features
from layerkit.pipeline import Pipeline
from layerkit.planner import plan_layout
from layerkit.rules import RuleSet, default_rules, load_rules
from layerkit.scaffolder import ProjectEmitter
from layerkit.validator import Category, validate_tree


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _scaffold(features_path: str, rules: RuleSet, output_dir: Path) -> Path:
    """Parse, plan and emit a project; return the project root."""
    features = await parse_features(features_path)
    plan = plan_layout(features, rules)
    await ProjectEmitter().emit(plan, features, output_dir)
    return output_dir


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.integration
class TestScaffoldValidation:
    """A scaffolded tree validates cleanly against its own rules."""

    @pytest.mark.asyncio
    async def test_builtin_rules(self, sample_features: str, tmp_project_dir: Path):
        root = await _scaffold(sample_features, default_rules(), tmp_project_dir)
        report = await validate_tree(root, default_rules())
        assert report.violations == []
        assert report.score == 100.0
        # Everything except backend/app/__init__.py lives in a layer directory.
        assert report.files_checked == 42

    @pytest.mark.asyncio
    async def test_sample_rules_with_separate_tests(
        self, sample_features: str, sample_rules: str, tmp_project_dir: Path
    ):
        rules = await load_rules(sample_rules)
        root = await _scaffold(sample_features, rules, tmp_project_dir)
        assert (root / "backend/tests/handlers/test_order_handler.py").is_file()
        assert (root / "frontend/tests/components/OrderView.test.tsx").is_file()

        report = await validate_tree(root, rules)
        assert report.violations == []

    @pytest.mark.asyncio
    async def test_re_emit_is_idempotent(self, sample_features: str, tmp_project_dir: Path):
        root = await _scaffold(sample_features, default_rules(), tmp_project_dir)
        features = await parse_features(sample_features)
        result = await ProjectEmitter().emit(plan_layout(features, default_rules()), features, root)
        assert result.written == []
        assert len(result.unchanged) == 43


@pytest.mark.integration
class TestViolationsInScaffoldedTree:
    """Edits to a scaffolded tree are reported with file and line."""

    @pytest.mark.asyncio
    async def test_reverse_import_is_reported(self, sample_features: str, tmp_project_dir: Path):
        root = await _scaffold(sample_features, default_rules(), tmp_project_dir)
        repository = root / "backend/app/repositories/order_repository.py"
        lines = repository.read_text().splitlines()
        lines.append("from app.services.order_service import OrderService")
        repository.write_text("\n".join(lines) + "\n")

        report = await validate_tree(root, default_rules())
        assert not report.passed
        direction = [v for v in report.errors if v.category is Category.DEPENDENCY_DIRECTION]
        assert [v.location for v in direction] == [
            f"backend/app/repositories/order_repository.py:{len(lines)}"
        ]
        # The service already imports the repository, so this also closes a cycle.
        assert any(v.category is Category.DEPENDENCY_CYCLE for v in report.errors)

    @pytest.mark.asyncio
    async def test_deleted_test_is_reported(self, sample_features: str, tmp_project_dir: Path):
        root = await _scaffold(sample_features, default_rules(), tmp_project_dir)
        (root / "frontend/src/components/OrderView.test.tsx").unlink()

        report = await validate_tree(root, default_rules())
        assert [(v.category, v.file) for v in report.errors] == [
            (Category.MISSING_TEST, "frontend/src/components/OrderView.tsx"),
        ]

    @pytest.mark.asyncio
    async def test_global_state_is_reported(self, sample_features: str, sample_rules: str, tmp_project_dir: Path):
        rules = await load_rules(sample_rules)
        root = await _scaffold(sample_features, rules, tmp_project_dir)
        service = root / "backend/app/services/product_service.py"
        service.write_text(service.read_text() + "\n\ndef reset():\n    global _cache\n    return eval('1')\n")

        report = await validate_tree(root, rules)
        names = sorted(v.description.split("]")[0].lstrip("[") for v in report.errors)
        assert names == ["custom-eval", "global-state"]


@pytest.mark.integration
class TestPipelineEndToEnd:
    @pytest.mark.asyncio
    async def test_yaml_descriptor(self, tmp_path: Path):
        descriptor = tmp_path / "library.yaml"
        descriptor.write_text(yaml.safe_dump({
            "project": "Library",
            "entities": [
                {"name": "Book", "fields": {"title": "str", "pages": "int"}, "operations": ["crud"]},
                {"name": "Author", "fields": {"name": "str"}, "operations": ["create", "list"]},
            ],
        }))
        config = Config(output_dir=tmp_path / "library")
        state = await Pipeline(config).run(str(descriptor))
        assert state["success"] is True
        assert state["phase2"]["project_name"] == "library"

        report = await validate_tree(config.output_dir, default_rules())
        assert report.passed
        assert (config.output_dir / "frontend/src/components/AuthorView.tsx").is_file()
