"""Tests for the project emitter.

Covers:
- Emitting every planned file
- Idempotent re-emission (unchanged files)
- Non-destructive writes (skipped vs. updated with overwrite)
- Rendered content of services, clients, components and tests
- Files without a template
"""

from __future__ import annotations

from pathlib import Path

import pytest

from layerkit.parser import FeatureSet
from layerkit.planner import FileKind, LayoutPlan, PlannedFile
from layerkit.rules import Language
from layerkit.scaffolder import EmitResult, ProjectEmitter, WriteOutcome

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


class TestEmit:
    @pytest.mark.asyncio
    async def test_creates_every_planned_file(self, plan: LayoutPlan, features: FeatureSet, tmp_project_dir: Path):
        result = await ProjectEmitter().emit(plan, features, tmp_project_dir)
        assert result.created == [f.path for f in plan.files]
        assert result.total == 43
        for file in plan.files:
            assert (tmp_project_dir / file.path).is_file(), file.path

    @pytest.mark.asyncio
    async def test_output_dir_is_created(self, plan: LayoutPlan, features: FeatureSet, tmp_path: Path):
        target = tmp_path / "a" / "b"
        await ProjectEmitter().emit(plan, features, target)
        assert (target / "backend/app/__init__.py").is_file()

    @pytest.mark.asyncio
    async def test_re_emit_leaves_files_unchanged(self, plan: LayoutPlan, features: FeatureSet, tmp_project_dir: Path):
        emitter = ProjectEmitter()
        await emitter.emit(plan, features, tmp_project_dir)
        second = await emitter.emit(plan, features, tmp_project_dir)
        assert second.created == []
        assert second.written == []
        assert len(second.unchanged) == 43

    @pytest.mark.asyncio
    async def test_edited_file_is_skipped(self, plan: LayoutPlan, features: FeatureSet, tmp_project_dir: Path):
        await ProjectEmitter().emit(plan, features, tmp_project_dir)
        edited = tmp_project_dir / "backend/app/services/order_service.py"
        edited.write_text("# hand edited\n")

        result = await ProjectEmitter().emit(plan, features, tmp_project_dir)
        assert result.skipped == ["backend/app/services/order_service.py"]
        assert edited.read_text() == "# hand edited\n"

    @pytest.mark.asyncio
    async def test_edited_file_is_replaced_with_overwrite(
        self, plan: LayoutPlan, features: FeatureSet, tmp_project_dir: Path
    ):
        await ProjectEmitter().emit(plan, features, tmp_project_dir)
        edited = tmp_project_dir / "backend/app/services/order_service.py"
        edited.write_text("# hand edited\n")

        result = await ProjectEmitter(overwrite=True).emit(plan, features, tmp_project_dir)
        assert result.updated == ["backend/app/services/order_service.py"]
        assert len(result.unchanged) == 42
        assert "class OrderService" in edited.read_text()


class TestEmitResult:
    def test_counts(self):
        result = EmitResult(created=["a"], updated=["b"], unchanged=["c", "d"], skipped=["e"])
        assert result.written == ["a", "b"]
        assert result.total == 5

    def test_outcome_values_match_fields(self):
        for outcome in WriteOutcome:
            assert outcome.value in EmitResult.model_fields


# ---------------------------------------------------------------------------
# Rendered content
# ---------------------------------------------------------------------------


class TestRenderedContent:
    def _render(self, plan: LayoutPlan, features: FeatureSet, path: str) -> str:
        return ProjectEmitter().render_file(plan, features, plan.by_path()[path])

    def test_domain_entity(self, plan: LayoutPlan, features: FeatureSet):
        content = self._render(plan, features, "backend/app/domain/product.py")
        assert "class Product:" in content
        assert '"""Things we sell."""' in content
        assert "    price: float" in content
        assert "    tags: list[str]" in content
        assert "    summary: str = \"\"" in content

    def test_service(self, plan: LayoutPlan, features: FeatureSet):
        content = self._render(plan, features, "backend/app/services/order_service.py")
        assert "from app.repositories.order_repository import OrderRepository" in content
        assert "from app.domain.errors import NotFoundError" in content
        assert "class OrderService:" in content
        assert "def cancel(self, item_id: UUID) -> Order:" in content
        assert "def build_order_service() -> OrderService:" in content

    def test_router_wires_every_handler(self, plan: LayoutPlan, features: FeatureSet):
        content = self._render(plan, features, "backend/app/api/router.py")
        assert "build_order_handler()," in content
        assert "build_product_handler()," in content
        assert "def build_routes() -> list[Route]:" in content

    def test_client(self, plan: LayoutPlan, features: FeatureSet):
        content = self._render(plan, features, "frontend/src/api/productApi.ts")
        assert 'from "../types/product";' in content
        assert "export class ProductApi" in content
        assert "archive(id: string): Promise<Product>" in content
        assert 'const BASE_PATH = "/products";' in content

    def test_types_keep_wire_field_names(self, plan: LayoutPlan, features: FeatureSet):
        content = self._render(plan, features, "frontend/src/types/order.ts")
        assert "  product_id: string;" in content
        assert "  shipped_at?: string;" in content
        assert "productId" not in content

    def test_component(self, plan: LayoutPlan, features: FeatureSet):
        content = self._render(plan, features, "frontend/src/components/ProductView.tsx")
        assert 'import { ProductApi } from "../api/productApi";' in content
        assert "export function ProductView(" in content
        assert ".list()" in content
        assert "String(item.name ?? item.id)" in content

    def test_python_test(self, plan: LayoutPlan, features: FeatureSet):
        content = self._render(plan, features, "backend/app/domain/test_product.py")
        assert "from app.domain.product import Product" in content
        assert "def test_product_is_importable() -> None:" in content

    def test_typescript_test(self, plan: LayoutPlan, features: FeatureSet):
        content = self._render(plan, features, "frontend/src/api/orderApi.test.ts")
        assert 'import * as subject from "./orderApi";' in content
        assert 'describe("OrderApi"' in content

    def test_no_template_raises(self, plan: LayoutPlan, features: FeatureSet):
        stray = PlannedFile(
            path="backend/app/services/notes.txt",
            layer="services",
            language=Language.PYTHON,
            kind=FileKind.SOURCE,
        )
        with pytest.raises(ValueError, match="no template"):
            ProjectEmitter().render_file(plan, features, stray)
