"""Tests for the rules document loader.

Covers:
- Dependency chains in prose (arrows, unknown layers, fenced blocks)
- Naming directives (per language and per layer)
- Test placement, test requirement and layer skipping directives
- Built-in and custom forbidden constructs
- YAML/JSON mappings (merge semantics, unknown keys, invalid values)
- load_rules dispatch and error handling
"""

from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest
import yaml

from layerkit.rules import (
    Language,
    NamingConvention,
    Placement,
    RuleParseError,
    default_rules,
    load_rules,
    parse_rules_markdown,
    rules_from_mapping,
)

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Dependency chains
# ---------------------------------------------------------------------------


class TestDependencyChains:
    def test_chain_adds_dependencies(self):
        rules = parse_rules_markdown("- Repository -> Service -> Handler -> Middleware")
        assert "handlers" in rules.layer("middlewares").depends_on
        assert rules.is_allowed("middlewares", "handlers")

    def test_unicode_arrows(self):
        rules = parse_rules_markdown("Domain → Middleware ⟶ Handler")
        assert "middlewares" in rules.layer("handlers").depends_on

    def test_chain_reverses_contradicting_edge(self):
        rules = parse_rules_markdown("Middleware -> Domain")
        assert "middlewares" in rules.layer("domain").depends_on
        assert "domain" not in rules.layer("middlewares").depends_on

    def test_aliases_and_stopwords(self):
        rules = parse_rules_markdown("the data access layer => the business logic layer")
        assert "repositories" in rules.layer("services").depends_on

    def test_unknown_layer_reports_line(self):
        with pytest.raises(RuleParseError) as exc_info:
            parse_rules_markdown("# Rules\n\nRepository -> Gateway")
        assert exc_info.value.line == 3
        assert "Gateway" in str(exc_info.value)

    def test_chain_creating_cycle_is_rejected(self):
        with pytest.raises(RuleParseError, match="cycle"):
            parse_rules_markdown("Service -> Handler\nHandler -> Repository")

    def test_cycle_reports_line(self):
        with pytest.raises(RuleParseError, match="cycle") as exc_info:
            parse_rules_markdown("intro\n\nHandlers → Repositories\n")
        assert exc_info.value.line == 3
        assert str(exc_info.value).startswith("line 3: ")

    def test_plural_alias_in_chain(self):
        rules = parse_rules_markdown("Repositories → Use Cases → Handlers")
        assert rules.is_allowed("services", "repositories")
        assert rules.is_allowed("handlers", "services")

    def test_fenced_blocks_are_ignored(self):
        text = textwrap.dedent("""\
            Rules:
            ```
            Service -> Repository
            ```
        """)
        rules = parse_rules_markdown(text)
        assert rules.layer("repositories").depends_on == ["domain"]


# ---------------------------------------------------------------------------
# Naming / tests / skipping
# ---------------------------------------------------------------------------


class TestPolicyDirectives:
    def test_language_naming(self):
        rules = parse_rules_markdown("TypeScript file names use kebab-case.")
        assert rules.naming[Language.TYPESCRIPT] is NamingConvention.KEBAB_CASE
        assert rules.naming[Language.PYTHON] is NamingConvention.SNAKE_CASE

    def test_layer_naming(self):
        rules = parse_rules_markdown("Service files are named in PascalCase.")
        assert rules.layer("services").naming is NamingConvention.PASCAL_CASE
        assert rules.layer("repositories").naming is None

    def test_naming_without_language_applies_everywhere(self):
        rules = parse_rules_markdown("All file names use snake_case.")
        assert rules.naming[Language.PYTHON] is NamingConvention.SNAKE_CASE
        assert rules.naming[Language.TYPESCRIPT] is NamingConvention.SNAKE_CASE

    def test_convention_mentioned_without_files_is_ignored(self):
        rules = parse_rules_markdown("We like kebab-case URLs.")
        assert rules.naming == default_rules().naming

    def test_separate_tests(self):
        rules = parse_rules_markdown("Tests live in a separate tests/ directory.")
        assert rules.test_placement is Placement.SEPARATE

    def test_co_located_tests(self):
        base = default_rules().model_copy(update={"test_placement": Placement.SEPARATE})
        rules = parse_rules_markdown("Tests are co-located with the code.", base=base)
        assert rules.test_placement is Placement.CO_LOCATED

    def test_tests_optional(self):
        assert parse_rules_markdown("Tests are optional.").tests_required is False

    def test_layer_skipping(self):
        assert parse_rules_markdown("Layer skipping is allowed.").allow_layer_skipping is True
        assert parse_rules_markdown("No layer skipping.").allow_layer_skipping is False


# ---------------------------------------------------------------------------
# Forbidden constructs
# ---------------------------------------------------------------------------


class TestForbiddenDirectives:
    def test_directive_enables_builtin(self):
        base = default_rules().model_copy(update={"forbidden": []})
        rules = parse_rules_markdown("- No global state\n- No print", base=base)
        assert [c.name for c in rules.forbidden] == ["global-state", "module-state", "print-call"]

    def test_directive_does_not_duplicate(self):
        rules = parse_rules_markdown("No global state.\nNo global variables.")
        names = [c.name for c in rules.forbidden]
        assert names.count("global-state") == 1

    def test_custom_literal(self):
        rules = parse_rules_markdown("Forbidden: `eval(`")
        custom = next(c for c in rules.forbidden if c.name == "custom-eval")
        assert custom.pattern == r"eval\("
        assert custom.compiled().search("x = eval(data)")

    def test_custom_literal_with_forbid_verb(self):
        rules = parse_rules_markdown("We forbid `os.system` in every layer.")
        assert any(c.name == "custom-os-system" for c in rules.forbidden)


# ---------------------------------------------------------------------------
# Sample document
# ---------------------------------------------------------------------------


class TestSampleRules:
    def test_sample_rules_document(self, sample_rules: str):
        rules = parse_rules_markdown(Path(sample_rules).read_text(encoding="utf-8"))
        assert rules.test_placement is Placement.SEPARATE
        assert rules.allow_layer_skipping is False
        assert rules.naming[Language.PYTHON] is NamingConvention.SNAKE_CASE
        assert rules.layer("components").naming is NamingConvention.PASCAL_CASE
        assert any(c.name == "custom-eval" for c in rules.forbidden)
        # The fenced reverse chain is ignored.
        assert rules.is_allowed("services", "repositories")
        assert not rules.is_allowed("repositories", "services")


# ---------------------------------------------------------------------------
# Mappings
# ---------------------------------------------------------------------------


class TestRulesFromMapping:
    def test_scalar_keys_replace(self):
        rules = rules_from_mapping({"test_placement": "separate", "tests_required": False})
        assert rules.test_placement is Placement.SEPARATE
        assert rules.tests_required is False

    def test_dict_keys_merge(self):
        rules = rules_from_mapping({"naming": {"typescript": "kebab-case"}})
        assert rules.naming[Language.TYPESCRIPT] is NamingConvention.KEBAB_CASE
        assert rules.naming[Language.PYTHON] is NamingConvention.SNAKE_CASE

    def test_forbidden_names_and_definitions(self):
        rules = rules_from_mapping({
            "forbidden": [
                "bare-except",
                {"name": "no-sleep", "pattern": r"time\.sleep\(", "layers": ["handlers"]},
            ],
        })
        assert [c.name for c in rules.forbidden] == ["bare-except", "no-sleep"]
        assert rules.forbidden[1].layers == ["handlers"]

    def test_unknown_builtin(self):
        with pytest.raises(RuleParseError, match="unknown built-in"):
            rules_from_mapping({"forbidden": ["no-goto"]})

    def test_unknown_keys(self):
        with pytest.raises(RuleParseError, match="unknown rule keys: colour"):
            rules_from_mapping({"colour": "blue"})

    def test_invalid_layers(self):
        layers = default_rules().model_dump(mode="json")["layers"]
        layers[0]["depends_on"] = ["ghost"]
        with pytest.raises(RuleParseError, match="invalid rule set"):
            rules_from_mapping({"layers": layers})

    def test_naming_must_be_mapping(self):
        with pytest.raises(RuleParseError, match="must be a mapping"):
            rules_from_mapping({"naming": "snake_case"})


# ---------------------------------------------------------------------------
# load_rules
# ---------------------------------------------------------------------------


class TestLoadRules:
    @pytest.mark.asyncio
    async def test_markdown(self, sample_rules: str):
        rules = await load_rules(sample_rules)
        assert rules.test_placement is Placement.SEPARATE

    @pytest.mark.asyncio
    async def test_yaml(self, tmp_path: Path):
        path = tmp_path / "rules.yaml"
        path.write_text(yaml.safe_dump({"allow_layer_skipping": True, "python_root": "server"}))
        rules = await load_rules(path)
        assert rules.allow_layer_skipping is True
        assert rules.python_root == "server"

    @pytest.mark.asyncio
    async def test_json(self, tmp_path: Path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"tests_required": False}))
        assert (await load_rules(path)).tests_required is False

    @pytest.mark.asyncio
    async def test_empty_yaml_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "rules.yml"
        path.write_text("")
        assert await load_rules(path) == default_rules()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            await load_rules(tmp_path / "nope.md")

    @pytest.mark.asyncio
    async def test_unsupported_suffix(self, tmp_path: Path):
        path = tmp_path / "rules.toml"
        path.write_text("x = 1")
        with pytest.raises(RuleParseError, match="unsupported"):
            await load_rules(path)

    @pytest.mark.asyncio
    async def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "rules.yaml"
        path.write_text("layers: [unclosed")
        with pytest.raises(RuleParseError, match="invalid YAML"):
            await load_rules(path)

    @pytest.mark.asyncio
    async def test_non_mapping_top_level(self, tmp_path: Path):
        path = tmp_path / "rules.json"
        path.write_text("[1, 2]")
        with pytest.raises(RuleParseError, match="mapping at the top level"):
            await load_rules(path)
