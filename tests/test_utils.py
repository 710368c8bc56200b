"""Unit tests for utility functions (layerkit.utils).

Tests cover:
- split_words and the case converters (snake, kebab, Pascal, camel)
- pluralize / singularize
- load_json / save_json (use tmp_path)
- ensure_dir
- format_duration
- PHASE_NAMES / PHASE_COLORS constants
- Rich output helpers (print_phase_header, print_summary_table, etc.)
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from layerkit.utils import (
    PHASE_COLORS,
    PHASE_NAMES,
    camel_case,
    ensure_dir,
    format_duration,
    kebab_case,
    load_json,
    pascal_case,
    pluralize,
    print_error,
    print_phase_header,
    print_success,
    print_summary_table,
    print_warning,
    save_json,
    singularize,
    snake_case,
    split_words,
)


# ---------------------------------------------------------------------------
# Identifier helpers
# ---------------------------------------------------------------------------


class TestSplitWords:
    @pytest.mark.unit
    def test_spaces(self):
        assert split_words("Order Line") == ["order", "line"]

    @pytest.mark.unit
    def test_camel_case(self):
        assert split_words("orderLine") == ["order", "line"]

    @pytest.mark.unit
    def test_acronym(self):
        assert split_words("HTTPRequest") == ["http", "request"]

    @pytest.mark.unit
    def test_mixed_separators(self):
        assert split_words("order-line_item") == ["order", "line", "item"]

    @pytest.mark.unit
    def test_empty_string(self):
        assert split_words("") == []


class TestCaseConverters:
    @pytest.mark.unit
    def test_snake_case(self):
        assert snake_case("OrderLine") == "order_line"
        assert snake_case("ProductRepository") == "product_repository"

    @pytest.mark.unit
    def test_kebab_case(self):
        assert kebab_case("Order Line") == "order-line"
        assert kebab_case("mark_done") == "mark-done"

    @pytest.mark.unit
    def test_pascal_case(self):
        assert pascal_case("order_line view") == "OrderLineView"

    @pytest.mark.unit
    def test_camel_case(self):
        assert camel_case("ProductApi") == "productApi"
        assert camel_case("due_date") == "dueDate"

    @pytest.mark.unit
    def test_camel_case_empty(self):
        assert camel_case("") == ""


class TestPluralization:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("word", "expected"),
        [
            ("product", "products"),
            ("category", "categories"),
            ("day", "days"),
            ("box", "boxes"),
            ("address", "addresses"),
            ("", ""),
        ],
    )
    def test_pluralize(self, word: str, expected: str):
        assert pluralize(word) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("word", "expected"),
        [
            ("products", "product"),
            ("categories", "category"),
            ("boxes", "box"),
            ("status", "status"),
            ("address", "address"),
            ("order", "order"),
            ("purchases", "purchase"),
            ("courses", "course"),
            ("cases", "case"),
            ("houses", "house"),
            ("addresses", "address"),
            ("statuses", "status"),
            ("buses", "bus"),
            ("matches", "match"),
        ],
    )
    def test_singularize(self, word: str, expected: str):
        assert singularize(word) == expected


# ---------------------------------------------------------------------------
# load_json / save_json
# ---------------------------------------------------------------------------


class TestJsonIO:
    @pytest.mark.unit
    def test_load_json_dict(self, tmp_path: Path):
        data = {"key": "value", "number": 42}
        filepath = tmp_path / "test.json"
        filepath.write_text(json.dumps(data))

        assert load_json(filepath) == data

    @pytest.mark.unit
    def test_load_json_list_wraps_in_dict(self, tmp_path: Path):
        filepath = tmp_path / "test.json"
        filepath.write_text(json.dumps([1, 2, 3]))

        assert load_json(filepath) == {"_root": [1, 2, 3]}

    @pytest.mark.unit
    def test_load_json_file_not_found(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_json(tmp_path / "missing.json")

    @pytest.mark.unit
    def test_load_json_invalid_json(self, tmp_path: Path):
        filepath = tmp_path / "bad.json"
        filepath.write_text("not valid json")

        with pytest.raises(json.JSONDecodeError):
            load_json(filepath)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_json_dict(self, tmp_path: Path):
        filepath = tmp_path / "output.json"
        await save_json({"key": "value"}, filepath)

        assert json.loads(filepath.read_text()) == {"key": "value"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_json_creates_parents(self, tmp_path: Path):
        filepath = tmp_path / "deep" / "nested" / "output.json"
        await save_json({"test": True}, filepath)

        assert filepath.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_json_pretty_printed(self, tmp_path: Path):
        filepath = tmp_path / "output.json"
        await save_json({"key": "value"}, filepath)

        text = filepath.read_text()
        assert "\n" in text
        assert "  " in text

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_json_non_serialisable_uses_str(self, tmp_path: Path):
        filepath = tmp_path / "output.json"
        await save_json({"path": tmp_path}, filepath)

        assert json.loads(filepath.read_text())["path"] == str(tmp_path)


# ---------------------------------------------------------------------------
# ensure_dir
# ---------------------------------------------------------------------------


class TestEnsureDir:
    @pytest.mark.unit
    def test_creates_new_dir(self, tmp_path: Path):
        target = tmp_path / "a" / "b"
        result = ensure_dir(target)
        assert target.is_dir()
        assert result == target.resolve()

    @pytest.mark.unit
    def test_existing_dir_no_error(self, tmp_path: Path):
        assert ensure_dir(tmp_path) == tmp_path.resolve()


# ---------------------------------------------------------------------------
# format_duration
# ---------------------------------------------------------------------------


class TestFormatDuration:
    @pytest.mark.unit
    def test_seconds_only(self):
        assert format_duration(3.7) == "3.7s"

    @pytest.mark.unit
    def test_minutes_and_seconds(self):
        assert format_duration(65.2) == "1m 5s"

    @pytest.mark.unit
    def test_hours_minutes_seconds(self):
        assert format_duration(3661.0) == "1h 1m 1s"

    @pytest.mark.unit
    def test_zero(self):
        assert format_duration(0.0) == "0.0s"

    @pytest.mark.unit
    def test_negative(self):
        assert format_duration(-5.0) == "0.0s"


# ---------------------------------------------------------------------------
# Phase constants
# ---------------------------------------------------------------------------


class TestPhaseConstants:
    @pytest.mark.unit
    def test_phase_names_all_present(self):
        assert PHASE_NAMES == {
            1: "RULES",
            2: "PARSE",
            3: "PLAN",
            4: "VALIDATE",
            5: "EMIT",
        }

    @pytest.mark.unit
    def test_phase_colors_all_present(self):
        for i in range(1, 6):
            assert isinstance(PHASE_COLORS[i], str)


# ---------------------------------------------------------------------------
# Rich output helpers (smoke tests - verify they don't raise)
# ---------------------------------------------------------------------------


class TestRichOutputHelpers:
    @pytest.mark.unit
    def test_print_phase_header(self):
        print_phase_header(1, "RULES")
        print_phase_header(5, "EMIT")

    @pytest.mark.unit
    def test_print_summary_table(self):
        print_summary_table({"Key1": "Value1", "Key2": "Value2"}, title="Test Summary")

    @pytest.mark.unit
    def test_print_messages(self):
        print_success("All files emitted")
        print_error("Something failed")
        print_warning("Check your rules")
