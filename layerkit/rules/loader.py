"""Rules document loader.

Turns a prose rules document (markdown) or a YAML/JSON mapping into a
validated ``RuleSet``. Prose is read line by line and only recognised
directives are applied; everything else is treated as commentary. Uses pure
regex matching -- no AI calls.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from layerkit.utils import kebab_case, snake_case

from .defaults import BUILTIN_FORBIDDEN, FORBID_DIRECTIVES, default_rules
from .models import Language, NamingConvention, Placement, RuleSet, alias_key


class RuleParseError(ValueError):
    """Raised when a rules document cannot be turned into a valid RuleSet."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        prefix = f"line {line}: " if line is not None else ""
        super().__init__(f"{prefix}{message}")


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_ARROW = re.compile(r"\s*(?:→|⟶|->|=>)\s*")
_BULLET_PREFIX = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_PARENTHETICAL = re.compile(r"\([^)]*\)")
_FENCE = re.compile(r"^\s*(```|~~~)")
_CUSTOM_FORBID = re.compile(r"\bforbid(?:den)?\b[^`]*`([^`]+)`", re.IGNORECASE)

_CONVENTION_PATTERNS: list[tuple[re.Pattern[str], NamingConvention]] = [
    (re.compile(r"\bsnake[_ ]case\b", re.IGNORECASE), NamingConvention.SNAKE_CASE),
    (re.compile(r"\bkebab[- ]case\b", re.IGNORECASE), NamingConvention.KEBAB_CASE),
    (re.compile(r"\bpascal ?case\b", re.IGNORECASE), NamingConvention.PASCAL_CASE),
    (re.compile(r"\bcamel ?case\b", re.IGNORECASE), NamingConvention.CAMEL_CASE),
]

_LANGUAGE_WORDS: dict[Language, tuple[str, ...]] = {
    Language.PYTHON: ("python", "backend"),
    Language.TYPESCRIPT: ("typescript", "frontend", "react", "tsx"),
}

_STOPWORDS = {"the", "a", "an", "layer", "layers", "tier", "tiers", "module", "modules"}

_MAPPING_KEYS = {
    "layers", "naming", "test_placement", "tests_required", "allow_layer_skipping",
    "forbidden", "python_root", "test_roots", "ts_aliases",
}


def _directive_pattern(phrase: str) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(word) for word in phrase.split())
    return re.compile(rf"\b{body}(?!\w)", re.IGNORECASE)


_FORBID_PATTERNS = [(_directive_pattern(p), names) for p, names in FORBID_DIRECTIVES.items()]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _find_layer(layers: list[dict[str, Any]], keys: dict[str, set[str]], token: str) -> Optional[dict[str, Any]]:
    """Resolve a prose token such as ``"the Repository layer"`` to a layer dict."""
    cleaned = _PARENTHETICAL.sub(" ", token)
    if ":" in cleaned:
        cleaned = cleaned.rsplit(":", 1)[1]
    words = [w for w in re.split(r"[^A-Za-z0-9_]+", cleaned) if w and w.lower() not in _STOPWORDS]
    if not words:
        return None

    candidates = [alias_key(" ".join(words))]
    if len(words) > 1:
        candidates.append(alias_key(words[-1]))

    for candidate in candidates:
        for layer in layers:
            if candidate in keys[layer["name"]]:
                return layer
    return None


def _alias_index(layers: list[dict[str, Any]]) -> dict[str, set[str]]:
    return {
        layer["name"]: {alias_key(layer["name"])} | {alias_key(a) for a in layer.get("aliases", [])}
        for layer in layers
    }


def _mentioned_layers(line: str, layers: list[dict[str, Any]], keys: dict[str, set[str]]) -> list[str]:
    """Names of layers referred to anywhere in *line*."""
    snake_line = f"_{snake_case(line)}_"
    word_keys = {alias_key(w) for w in re.split(r"[^A-Za-z0-9]+", line) if w}

    # Multi-word aliases win over the single words they contain.
    mentioned: list[str] = []
    consumed: set[str] = set()
    for layer in layers:
        for key in sorted(keys[layer["name"]]):
            if "_" in key and f"_{key}_" in snake_line:
                mentioned.append(layer["name"])
                consumed.update(key.split("_"))
                break

    remaining = word_keys - consumed
    for layer in layers:
        if layer["name"] in mentioned:
            continue
        if keys[layer["name"]] & remaining:
            mentioned.append(layer["name"])
    return [layer["name"] for layer in layers if layer["name"] in mentioned]


def _apply_chain(line: str, lineno: int, layers: list[dict[str, Any]], keys: dict[str, set[str]]) -> None:
    tokens = [t for t in _ARROW.split(line) if t.strip()]
    if len(tokens) < 2:
        return
    resolved: list[dict[str, Any]] = []
    for token in tokens:
        layer = _find_layer(layers, keys, token)
        if layer is None:
            raise RuleParseError(f"unknown layer '{token.strip()}' in dependency chain", lineno)
        resolved.append(layer)

    for lower, upper in zip(resolved, resolved[1:]):
        if lower is upper:
            continue
        if lower["name"] not in upper["depends_on"]:
            upper["depends_on"].append(lower["name"])
        if upper["name"] in lower["depends_on"]:
            lower["depends_on"].remove(upper["name"])
    _check_acyclic(layers, lineno)


def _check_acyclic(layers: list[dict[str, Any]], lineno: int) -> None:
    placed: set[str] = set()
    pending = {layer["name"]: layer["depends_on"] for layer in layers}
    while pending:
        ready = [name for name, deps in pending.items() if all(dep in placed for dep in deps)]
        if not ready:
            raise RuleParseError(f"dependency chain creates a cycle among: {', '.join(sorted(pending))}", lineno)
        placed.update(ready)
        for name in ready:
            del pending[name]


def _apply_naming(
    line: str,
    convention: NamingConvention,
    data: dict[str, Any],
    keys: dict[str, set[str]],
) -> None:
    layers = _mentioned_layers(line, data["layers"], keys)
    if layers:
        for layer in data["layers"]:
            if layer["name"] in layers:
                layer["naming"] = convention.value
        return

    lower = line.lower()
    languages = [lang for lang, words in _LANGUAGE_WORDS.items() if any(w in lower for w in words)]
    for language in languages or list(Language):
        data["naming"][language.value] = convention.value


def _apply_tests(lower: str, data: dict[str, Any]) -> None:
    if any(p in lower for p in ("co-located", "colocated", "co located", "alongside", "next to")):
        data["test_placement"] = Placement.CO_LOCATED.value
    elif any(p in lower for p in ("separate", "tests/ directory", "tests/ folder", "dedicated test")):
        data["test_placement"] = Placement.SEPARATE.value

    if any(p in lower for p in ("tests optional", "tests are optional", "no tests required")):
        data["tests_required"] = False
    elif any(p in lower for p in ("tests required", "tests are required", "must have a test", "must have tests")):
        data["tests_required"] = True


def _apply_skipping(lower: str, data: dict[str, Any]) -> None:
    if any(p in lower for p in ("no layer skipping", "must not skip", "never skip", "cannot skip")):
        data["allow_layer_skipping"] = False
    elif any(p in lower for p in ("may skip layer", "layer skipping allowed", "layer skipping is allowed", "can skip layer")):
        data["allow_layer_skipping"] = True


def _ensure_forbidden(data: dict[str, Any], names: list[str]) -> None:
    present = {c["name"] for c in data["forbidden"]}
    for name in names:
        if name not in present:
            data["forbidden"].append(BUILTIN_FORBIDDEN[name].model_dump(mode="json"))
            present.add(name)


def _add_custom_forbidden(data: dict[str, Any], literal: str) -> None:
    name = f"custom-{kebab_case(literal) or 'literal'}"
    if any(c["name"] == name for c in data["forbidden"]):
        return
    data["forbidden"].append({
        "name": name,
        "pattern": re.escape(literal),
        "description": f"Forbidden construct `{literal}`.",
        "suggestion": f"Remove `{literal}`.",
    })


def _validate(data: dict[str, Any]) -> RuleSet:
    try:
        return RuleSet.model_validate(data)
    except ValidationError as exc:
        raise RuleParseError(f"invalid rule set: {exc}") from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_rules_markdown(text: str, base: RuleSet | None = None) -> RuleSet:
    """Apply the directives found in a prose rules document to *base*.

    Recognised directives:
    - dependency chains such as ``Repository → Service → Handler``
    - naming conventions such as ``snake_case file names for services``
    - test placement (``tests co-located`` / ``tests in a separate tests/ directory``)
    - layer skipping (``no layer skipping`` / ``layer skipping allowed``)
    - forbidden constructs (``no global state``, ``Forbidden: `eval(` ``)

    Args:
        text: Markdown text.
        base: Rule set to start from. Defaults to :func:`default_rules`.

    Returns:
        A validated ``RuleSet``.

    Raises:
        RuleParseError: On an unknown layer in a chain, or when the resulting
            rule set is invalid (e.g. a dependency cycle).
    """
    data = (base or default_rules()).model_dump(mode="json")
    keys = _alias_index(data["layers"])
    in_fence = False

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        if _FENCE.match(raw_line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue

        line = _BULLET_PREFIX.sub("", raw_line).strip().lstrip("#").strip()
        if not line:
            continue
        lower = line.lower()

        if _ARROW.search(line):
            _apply_chain(line, lineno, data["layers"], keys)
            continue

        custom = _CUSTOM_FORBID.search(line)
        if custom:
            _add_custom_forbidden(data, custom.group(1))
            continue

        if "file" in lower or "name" in lower:
            for pattern, convention in _CONVENTION_PATTERNS:
                if pattern.search(line):
                    _apply_naming(line, convention, data, keys)
                    break

        if "test" in lower:
            _apply_tests(lower, data)

        if "skip" in lower:
            _apply_skipping(lower, data)

        for pattern, names in _FORBID_PATTERNS:
            if pattern.search(line):
                _ensure_forbidden(data, names)

    return _validate(data)


def rules_from_mapping(mapping: dict[str, Any], base: RuleSet | None = None) -> RuleSet:
    """Merge a YAML/JSON rules mapping onto *base*.

    Top-level keys that are present replace the base value, except ``naming``,
    ``test_roots`` and ``ts_aliases`` which are merged key by key. Entries of
    ``forbidden`` may be built-in construct names or full definitions.

    Raises:
        RuleParseError: On unknown keys or an invalid resulting rule set.
    """
    unknown = sorted(set(mapping) - _MAPPING_KEYS)
    if unknown:
        raise RuleParseError(f"unknown rule keys: {', '.join(unknown)}")

    data = (base or default_rules()).model_dump(mode="json")
    for key, value in mapping.items():
        if key in ("naming", "test_roots", "ts_aliases"):
            if not isinstance(value, dict):
                raise RuleParseError(f"'{key}' must be a mapping")
            data[key].update(value)
        elif key == "forbidden":
            if not isinstance(value, list):
                raise RuleParseError("'forbidden' must be a list")
            forbidden: list[Any] = []
            for entry in value:
                if isinstance(entry, str):
                    if entry not in BUILTIN_FORBIDDEN:
                        raise RuleParseError(f"unknown built-in forbidden construct '{entry}'")
                    forbidden.append(BUILTIN_FORBIDDEN[entry].model_dump(mode="json"))
                else:
                    forbidden.append(entry)
            data["forbidden"] = forbidden
        else:
            data[key] = value

    return _validate(data)


async def load_rules(path: str | Path) -> RuleSet:
    """Load a rules document from disk.

    Dispatches on suffix: ``.md``/``.markdown``/``.txt`` are parsed as prose,
    ``.yaml``/``.yml`` and ``.json`` as mappings.

    Raises:
        FileNotFoundError: If the file does not exist.
        RuleParseError: If the suffix is unsupported or the content invalid.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Rules file not found: {path}")

    suffix = file_path.suffix.lower()
    text = await asyncio.to_thread(file_path.read_text, "utf-8")

    if suffix in (".md", ".markdown", ".txt"):
        return parse_rules_markdown(text)

    if suffix in (".yaml", ".yml"):
        try:
            mapping = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise RuleParseError(f"invalid YAML in {file_path.name}: {exc}") from exc
    elif suffix == ".json":
        try:
            mapping = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RuleParseError(f"invalid JSON in {file_path.name}: {exc}") from exc
    else:
        raise RuleParseError(f"unsupported rules file type: {file_path.suffix or '(none)'}")

    if mapping is None:
        mapping = {}
    if not isinstance(mapping, dict):
        raise RuleParseError(f"{file_path.name} must contain a mapping at the top level")
    return rules_from_mapping(mapping)
