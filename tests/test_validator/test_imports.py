"""Tests for Python and TypeScript import extraction.

Covers:
- Absolute, relative and submodule imports in Python
- Third-party and standard-library imports being dropped
- The line-based fallback for files that do not parse
- Relative, aliased, index and require() specifiers in TypeScript
- Commented-out imports being ignored
"""

from __future__ import annotations

import textwrap

import pytest

from layerkit.rules import RuleSet
from layerkit.validator.imports import python_imports, resolve_ts_specifier, typescript_imports

pytestmark = pytest.mark.unit


PROJECT_FILES = {
    "backend/app/__init__.py",
    "backend/app/domain/__init__.py",
    "backend/app/domain/order.py",
    "backend/app/domain/errors.py",
    "backend/app/services/__init__.py",
    "backend/app/services/order_service.py",
    "backend/app/repositories/order_repository.py",
    "frontend/src/types/order.ts",
    "frontend/src/api/orderApi.ts",
    "frontend/src/components/index.tsx",
    "frontend/src/components/OrderView.tsx",
}


def _exists(rel_path: str) -> bool:
    return rel_path in PROJECT_FILES


def _py(content: str, rel_path: str, rules: RuleSet) -> list[tuple[int, str]]:
    return python_imports(textwrap.dedent(content), rel_path, rules, _exists)


def _ts(content: str, rel_path: str, rules: RuleSet) -> list[tuple[int, str]]:
    return typescript_imports(textwrap.dedent(content), rel_path, rules, _exists)


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------


class TestPythonImports:
    def test_absolute_from_import(self, rules: RuleSet):
        edges = _py(
            """\
            from app.domain.order import Order
            from app.domain.errors import NotFoundError
            """,
            "backend/app/services/order_service.py",
            rules,
        )
        assert edges == [
            (1, "backend/app/domain/order.py"),
            (2, "backend/app/domain/errors.py"),
        ]

    def test_plain_import(self, rules: RuleSet):
        edges = _py("import app.domain.order\n", "backend/app/services/order_service.py", rules)
        assert edges == [(1, "backend/app/domain/order.py")]

    def test_from_package_import_submodule(self, rules: RuleSet):
        edges = _py("from app.domain import order, errors\n", "backend/app/services/order_service.py", rules)
        assert edges == [(1, "backend/app/domain/errors.py"), (1, "backend/app/domain/order.py")]

    def test_from_package_import_symbol_resolves_package(self, rules: RuleSet):
        edges = _py("from app.domain import Order\n", "backend/app/services/order_service.py", rules)
        assert edges == [(1, "backend/app/domain/__init__.py")]

    def test_relative_imports(self, rules: RuleSet):
        edges = _py(
            """\
            from ..domain.order import Order
            from . import order_service
            from .order_service import OrderService
            """,
            "backend/app/repositories/order_repository.py",
            rules,
        )
        assert edges == [(1, "backend/app/domain/order.py")]

    def test_relative_import_from_package_init(self, rules: RuleSet):
        edges = _py("from .order_service import OrderService\n", "backend/app/services/__init__.py", rules)
        assert edges == [(1, "backend/app/services/order_service.py")]

    def test_relative_import_above_root_is_ignored(self, rules: RuleSet):
        assert _py("from .... import x\n", "backend/app/domain/order.py", rules) == []

    def test_external_imports_are_dropped(self, rules: RuleSet):
        edges = _py(
            """\
            import os
            from typing import Any
            from pydantic import BaseModel
            """,
            "backend/app/domain/order.py",
            rules,
        )
        assert edges == []

    def test_nested_import_has_its_own_line(self, rules: RuleSet):
        edges = _py(
            """\
            def load():
                from app.domain.order import Order
                return Order
            """,
            "backend/app/services/order_service.py",
            rules,
        )
        assert edges == [(2, "backend/app/domain/order.py")]

    def test_syntax_error_falls_back_to_line_scan(self, rules: RuleSet):
        edges = _py(
            """\
            from app.services.order_service import OrderService
            def broken(:
            from ..domain import order
            """,
            "backend/app/repositories/order_repository.py",
            rules,
        )
        assert edges == [
            (1, "backend/app/services/order_service.py"),
            (3, "backend/app/domain/order.py"),
        ]


# ---------------------------------------------------------------------------
# TypeScript
# ---------------------------------------------------------------------------


class TestTypeScriptImports:
    def test_relative_import(self, rules: RuleSet):
        edges = _ts(
            """\
            import type { Order } from "../types/order";
            import { OrderApi } from '../api/orderApi';
            import { useState } from "react";
            """,
            "frontend/src/components/OrderView.tsx",
            rules,
        )
        assert edges == [
            (1, "frontend/src/types/order.ts"),
            (2, "frontend/src/api/orderApi.ts"),
        ]

    def test_alias_import(self, rules: RuleSet):
        edges = _ts('import { OrderApi } from "@/api/orderApi";\n', "frontend/src/types/order.ts", rules)
        assert edges == [(1, "frontend/src/api/orderApi.ts")]

    def test_index_resolution(self, rules: RuleSet):
        edges = _ts('export * from "./components";\n', "frontend/src/main.ts", rules)
        assert edges == [(1, "frontend/src/components/index.tsx")]

    def test_side_effect_dynamic_and_require(self, rules: RuleSet):
        edges = _ts(
            """\
            import "../types/order";
            const lazy = () => import("../api/orderApi");
            const legacy = require("../types/order");
            """,
            "frontend/src/components/OrderView.tsx",
            rules,
        )
        assert edges == [
            (1, "frontend/src/types/order.ts"),
            (2, "frontend/src/api/orderApi.ts"),
            (3, "frontend/src/types/order.ts"),
        ]

    def test_commented_imports_are_ignored(self, rules: RuleSet):
        edges = _ts(
            """\
            // import { OrderApi } from "../api/orderApi";
            /* import { Order } from "../types/order"; */
             * import { Order } from "../types/order";
            """,
            "frontend/src/components/OrderView.tsx",
            rules,
        )
        assert edges == []

    def test_unresolvable_specifier(self, rules: RuleSet):
        assert resolve_ts_specifier("./missing", "frontend/src/api/orderApi.ts", rules, _exists) is None
        assert resolve_ts_specifier("lodash", "frontend/src/api/orderApi.ts", rules, _exists) is None

    def test_explicit_extension(self, rules: RuleSet):
        path = resolve_ts_specifier("../types/order.ts", "frontend/src/api/orderApi.ts", rules, _exists)
        assert path == "frontend/src/types/order.ts"
