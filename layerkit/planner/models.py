"""Pydantic v2 models for planned project layouts."""

from __future__ import annotations

import hashlib
import json
import posixpath
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from layerkit.rules.models import Language, python_module


class FileKind(str, Enum):
    SOURCE = "source"
    SHARED = "shared"
    PACKAGE = "package"
    TEST = "test"


class ImportRef(BaseModel):
    """A resolved import: where it points and what it brings in."""
    path: str = Field(..., description="Planned path of the imported file")
    module: str = Field(..., description="Dotted Python module or TS import specifier")
    symbol: str = Field(default="")


class PlannedFile(BaseModel):
    """One file the layout prescribes."""
    path: str = Field(..., description="Posix path relative to the project root")
    layer: Optional[str] = Field(default=None, description="Owning layer; None for root packages")
    language: Language
    kind: FileKind
    entity: Optional[str] = Field(default=None, description="Entity name for per-entity files")
    symbol: str = Field(default="", description="Primary exported symbol")
    template: Optional[str] = Field(default=None)
    imports: list[str] = Field(default_factory=list, description="Planned paths this file imports")
    tests: Optional[str] = Field(default=None, description="Path under test, for test files")

    @property
    def stem(self) -> str:
        name = posixpath.basename(self.path)
        return name.split(".", 1)[0]


def ts_specifier(from_path: str, to_path: str) -> str:
    """Relative TypeScript import specifier between two planned files.

    ``frontend/src/api/orderApi.ts`` -> ``frontend/src/types/order.ts``
    gives ``../types/order``.
    """
    target = posixpath.splitext(to_path)[0]
    relative = posixpath.relpath(target, posixpath.dirname(from_path) or ".")
    if not relative.startswith("."):
        relative = "./" + relative
    return relative


class LayoutPlan(BaseModel):
    """The complete set of files to scaffold, sorted by path."""
    project_name: str = Field(default="project")
    python_root: str = Field(default="backend")
    files: list[PlannedFile] = Field(default_factory=list)

    def by_path(self) -> dict[str, PlannedFile]:
        return {f.path: f for f in self.files}

    def files_in_layer(self, layer: str) -> list[PlannedFile]:
        return [f for f in self.files if f.layer == layer]

    def edges(self) -> list[tuple[str, str]]:
        """``(importer, imported)`` path pairs across the whole plan."""
        return [(f.path, target) for f in self.files for target in f.imports]

    def fingerprint(self) -> str:
        """SHA-256 over the canonical JSON form of the plan."""
        canonical = json.dumps(
            self.model_dump(mode="json"), sort_keys=True, separators=(",", ":")
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def import_refs(self, file: PlannedFile) -> list[ImportRef]:
        """Resolve *file*'s planned imports into module/specifier + symbol.

        Raises:
            KeyError: If an import points at a path outside the plan.
        """
        index = self.by_path()
        refs: list[ImportRef] = []
        for target_path in file.imports:
            target = index[target_path]
            if file.language is Language.PYTHON:
                module = python_module(target_path, self.python_root) or ""
            else:
                module = ts_specifier(file.path, target_path)
            refs.append(ImportRef(path=target_path, module=module, symbol=target.symbol))
        return refs
