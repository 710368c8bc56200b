"""Pydantic v2 models for the layering rule set.

A ``RuleSet`` describes the architectural layers of a project, the direction
in which they may depend on each other, file naming conventions, test
placement and constructs that must never appear in source files.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from layerkit.utils import camel_case, kebab_case, pascal_case, singularize, snake_case


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Language(str, Enum):
    """Source language of a layer."""
    PYTHON = "python"
    TYPESCRIPT = "typescript"


class NamingConvention(str, Enum):
    """File-name casing convention, applied to the stem (no extension)."""
    SNAKE_CASE = "snake_case"
    KEBAB_CASE = "kebab-case"
    PASCAL_CASE = "PascalCase"
    CAMEL_CASE = "camelCase"

    def matches(self, stem: str) -> bool:
        return _NAMING_PATTERNS[self].fullmatch(stem) is not None

    def apply(self, text: str) -> str:
        return _NAMING_CONVERTERS[self](text)


class Placement(str, Enum):
    """Where test files live relative to the code they test."""
    CO_LOCATED = "co-located"
    SEPARATE = "separate"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


_NAMING_PATTERNS: dict[NamingConvention, re.Pattern[str]] = {
    NamingConvention.SNAKE_CASE: re.compile(r"[a-z][a-z0-9]*(?:_[a-z0-9]+)*"),
    NamingConvention.KEBAB_CASE: re.compile(r"[a-z][a-z0-9]*(?:-[a-z0-9]+)*"),
    NamingConvention.PASCAL_CASE: re.compile(r"[A-Z][a-zA-Z0-9]*"),
    NamingConvention.CAMEL_CASE: re.compile(r"[a-z][a-zA-Z0-9]*"),
}

_NAMING_CONVERTERS = {
    NamingConvention.SNAKE_CASE: snake_case,
    NamingConvention.KEBAB_CASE: kebab_case,
    NamingConvention.PASCAL_CASE: pascal_case,
    NamingConvention.CAMEL_CASE: camel_case,
}

_DEFAULT_EXTENSIONS: dict[Language, str] = {
    Language.PYTHON: ".py",
    Language.TYPESCRIPT: ".ts",
}


def alias_key(text: str) -> str:
    """Normalise a layer name or prose token for alias lookup.

    ``"Repositories"``, ``"repository"`` and ``"REPOSITORY"`` all map to
    ``"repository"``.
    """
    words = snake_case(text).split("_")
    if words and words[-1]:
        words[-1] = singularize(words[-1])
    return "_".join(w for w in words if w)


def python_module(rel_path: str, python_root: str) -> Optional[str]:
    """Dotted Python module for a file under *python_root*.

    ``backend/app/services/order_service.py`` -> ``app.services.order_service``
    """
    path = PurePosixPath(rel_path.replace("\\", "/"))
    try:
        relative = path.relative_to(PurePosixPath(python_root))
    except ValueError:
        return None
    if relative.suffix != ".py":
        return None
    parts = list(relative.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts) or None


# ---------------------------------------------------------------------------
# Layer models
# ---------------------------------------------------------------------------

class SharedFile(BaseModel):
    """A layer file that is not tied to a single entity (e.g. a router)."""
    stem: str = Field(..., description="File stem before naming is applied")
    template: str = Field(..., description="Template path relative to the template root")
    symbol: str = Field(default="", description="Primary symbol the file exports")
    imports_entities: bool = Field(
        default=False,
        description="Whether the file imports every per-entity file of its dependency layers",
    )


class Layer(BaseModel):
    """A single architectural tier."""
    name: str = Field(..., description="Layer name, e.g. 'repositories'")
    directory: str = Field(..., description="Posix directory relative to the project root")
    language: Language = Field(..., description="Source language")
    extension: str = Field(default="", description="File extension including the dot")
    naming: Optional[NamingConvention] = Field(
        default=None, description="Overrides the language default naming"
    )
    suffix: str = Field(default="", description="Appended to the entity name, e.g. '_repository'")
    entity_template: Optional[str] = Field(
        default=None, description="Template for per-entity files; None disables them"
    )
    shared: list[SharedFile] = Field(default_factory=list)
    depends_on: list[str] = Field(
        default_factory=list, description="Layers this layer may import directly"
    )
    aliases: list[str] = Field(
        default_factory=list, description="Words used for this layer in prose rules"
    )

    @field_validator("directory")
    @classmethod
    def _normalise_directory(cls, value: str) -> str:
        cleaned = str(PurePosixPath(value.replace("\\", "/"))).strip("/")
        if not cleaned or cleaned == ".":
            raise ValueError("Layer directory must not be empty")
        return cleaned

    @model_validator(mode="after")
    def _default_extension(self) -> "Layer":
        if not self.extension:
            self.extension = _DEFAULT_EXTENSIONS[self.language]
        elif not self.extension.startswith("."):
            self.extension = "." + self.extension
        return self

    @property
    def has_entity_files(self) -> bool:
        return self.entity_template is not None

    def alias_keys(self) -> set[str]:
        return {alias_key(self.name)} | {alias_key(a) for a in self.aliases}


class ForbiddenConstruct(BaseModel):
    """A source pattern that must not appear in a layer's files."""
    name: str = Field(..., description="Identifier, e.g. 'bare-except'")
    pattern: str = Field(..., description="Regex applied line by line")
    languages: list[Language] = Field(
        default_factory=lambda: [Language.PYTHON, Language.TYPESCRIPT]
    )
    layers: list[str] = Field(
        default_factory=list, description="Restrict to these layers; empty means all"
    )
    severity: Severity = Field(default=Severity.ERROR)
    description: str = Field(default="")
    suggestion: str = Field(default="")

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid forbidden-construct pattern {value!r}: {exc}") from exc
        return value

    def applies_to(self, layer: Layer) -> bool:
        if layer.language not in self.languages:
            return False
        return not self.layers or layer.name in self.layers

    def compiled(self) -> re.Pattern[str]:
        return re.compile(self.pattern)


# ---------------------------------------------------------------------------
# Rule set
# ---------------------------------------------------------------------------

class RuleSet(BaseModel):
    """The complete constraint set a project layout is checked against."""
    layers: list[Layer] = Field(default_factory=list)
    naming: dict[Language, NamingConvention] = Field(
        default_factory=lambda: {
            Language.PYTHON: NamingConvention.SNAKE_CASE,
            Language.TYPESCRIPT: NamingConvention.CAMEL_CASE,
        },
        description="Default file naming per language",
    )
    test_placement: Placement = Field(default=Placement.CO_LOCATED)
    tests_required: bool = Field(default=True)
    allow_layer_skipping: bool = Field(
        default=False,
        description="Whether a layer may import the dependencies of its dependencies",
    )
    forbidden: list[ForbiddenConstruct] = Field(default_factory=list)
    python_root: str = Field(
        default="backend", description="Directory that acts as the Python import root"
    )
    test_roots: dict[Language, str] = Field(
        default_factory=lambda: {
            Language.PYTHON: "backend/tests",
            Language.TYPESCRIPT: "frontend/tests",
        },
        description="Per-language root for separately placed tests",
    )
    ts_aliases: dict[str, str] = Field(
        default_factory=lambda: {"@/": "frontend/src/"},
        description="TypeScript import alias prefix -> directory prefix",
    )

    @model_validator(mode="after")
    def _check_layers(self) -> "RuleSet":
        names = [layer.name for layer in self.layers]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate layer names: {', '.join(duplicates)}")

        directories = [layer.directory for layer in self.layers]
        shared_dirs = sorted({d for d in directories if directories.count(d) > 1})
        if shared_dirs:
            raise ValueError(f"Layers share a directory: {', '.join(shared_dirs)}")

        by_name = {layer.name: layer for layer in self.layers}
        for layer in self.layers:
            for dep in layer.depends_on:
                if dep == layer.name:
                    raise ValueError(f"Layer '{layer.name}' cannot depend on itself")
                if dep not in by_name:
                    raise ValueError(
                        f"Layer '{layer.name}' depends on unknown layer '{dep}'"
                    )
                if by_name[dep].language != layer.language:
                    raise ValueError(
                        f"Layer '{layer.name}' ({layer.language.value}) cannot depend on "
                        f"'{dep}' ({by_name[dep].language.value})"
                    )

        # Raises on cycles.
        self.dependency_order()
        return self

    # -- Lookup ------------------------------------------------------------

    def layer(self, name: str) -> Layer:
        for layer in self.layers:
            if layer.name == name:
                return layer
        raise KeyError(f"Unknown layer: {name}")

    def layer_for_path(self, rel_path: str) -> Optional[Layer]:
        """Return the layer whose directory is the longest prefix of *rel_path*."""
        path = rel_path.replace("\\", "/").strip("/")
        best: Optional[Layer] = None
        for layer in self.layers:
            if path == layer.directory or path.startswith(layer.directory + "/"):
                if best is None or len(layer.directory) > len(best.directory):
                    best = layer
        return best

    def naming_for(self, layer: Layer) -> NamingConvention:
        return layer.naming or self.naming.get(layer.language, NamingConvention.SNAKE_CASE)

    # -- Dependency graph --------------------------------------------------

    def allowed_dependencies(self, name: str) -> set[str]:
        """Layers *name* may import.

        Direct ``depends_on`` only, unless ``allow_layer_skipping`` is set,
        in which case the transitive closure is returned.
        """
        direct = set(self.layer(name).depends_on)
        if not self.allow_layer_skipping:
            return direct

        closure: set[str] = set()
        stack = list(direct)
        while stack:
            current = stack.pop()
            if current in closure:
                continue
            closure.add(current)
            stack.extend(self.layer(current).depends_on)
        return closure

    def is_allowed(self, source: str, target: str) -> bool:
        return source == target or target in self.allowed_dependencies(source)

    def dependency_order(self) -> list[str]:
        """Topological order of layers, leaves first.

        Ties are broken by declaration order so the result is deterministic.

        Raises:
            ValueError: If the layer graph contains a cycle.
        """
        placed: list[str] = []
        placed_set: set[str] = set()
        pending = list(self.layers)
        while pending:
            for layer in pending:
                if all(dep in placed_set for dep in layer.depends_on):
                    placed.append(layer.name)
                    placed_set.add(layer.name)
                    pending.remove(layer)
                    break
            else:
                cycle = ", ".join(sorted(layer.name for layer in pending))
                raise ValueError(f"Layer dependency cycle among: {cycle}")
        return placed

    # -- Python module mapping ---------------------------------------------

    def module_for_path(self, rel_path: str) -> Optional[str]:
        return python_module(rel_path, self.python_root)

    def paths_for_module(self, module: str) -> list[str]:
        """Candidate file paths for a dotted module, module file first."""
        base = PurePosixPath(self.python_root, *module.split("."))
        return [f"{base}.py", f"{base}/__init__.py"]
