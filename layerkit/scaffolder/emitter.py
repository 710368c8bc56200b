"""Renders a ``LayoutPlan`` to disk.

Every planned file is rendered from its template with the context of the
file, its entity and its resolved imports.  Writing is non-destructive and
idempotent: identical files are left alone, differing files are only
replaced when ``overwrite`` is set.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from layerkit.parser.models import FeatureSet
from layerkit.planner.models import FileKind, LayoutPlan, PlannedFile

from .templates import TemplateRenderer


class WriteOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


class EmitResult(BaseModel):
    """Paths (relative to the output directory) grouped by outcome."""
    created: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(
        default_factory=list, description="Existing files that differ and were kept"
    )

    @property
    def written(self) -> list[str]:
        return self.created + self.updated

    @property
    def total(self) -> int:
        return len(self.created) + len(self.updated) + len(self.unchanged) + len(self.skipped)


class ProjectEmitter:
    """Writes the files of a layout plan.

    Args:
        renderer: Template renderer; defaults to the bundled templates.
        overwrite: Replace existing files whose content differs.
    """

    def __init__(self, renderer: Optional[TemplateRenderer] = None, overwrite: bool = False) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.overwrite = overwrite

    # -- Public API --------------------------------------------------------

    async def emit(self, plan: LayoutPlan, features: FeatureSet, output_dir: str | Path) -> EmitResult:
        """Render every planned file under *output_dir*.

        Returns:
            An ``EmitResult`` listing what was created, updated, left
            unchanged or skipped.
        """
        root = Path(output_dir)
        await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)

        rendered = [(file, self.render_file(plan, features, file)) for file in plan.files]
        outcomes = await asyncio.gather(
            *(self._write(root / file.path, content) for file, content in rendered)
        )

        result = EmitResult()
        for (file, _), outcome in zip(rendered, outcomes):
            getattr(result, outcome.value).append(file.path)
        return result

    def render_file(self, plan: LayoutPlan, features: FeatureSet, file: PlannedFile) -> str:
        """Render the content of a single planned file.

        Raises:
            ValueError: If the file has no template.
        """
        if file.template is None:
            raise ValueError(f"Planned file has no template: {file.path}")
        return self.renderer.render(file.template, self._build_context(plan, features, file))

    # -- Internals ---------------------------------------------------------

    def _build_context(self, plan: LayoutPlan, features: FeatureSet, file: PlannedFile) -> dict[str, Any]:
        index = plan.by_path()
        refs = plan.import_refs(file)
        targets = {ref.path: index[ref.path] for ref in refs}

        layer_refs: dict[str, list[Any]] = {}
        entity_ref: dict[str, Any] = {}
        for ref in refs:
            target = targets[ref.path]
            if target.layer is None:
                continue
            layer_refs.setdefault(target.layer, []).append(ref)
            if file.entity is not None and target.entity == file.entity:
                entity_ref[target.layer] = ref

        return {
            "project_name": features.project_name,
            "features": features,
            "entities": features.entities,
            "entity": features.entity(file.entity) if file.entity else None,
            "file": file,
            "imports": refs,
            "targets": targets,
            "layer_refs": layer_refs,
            "entity_ref": entity_ref,
            "target": refs[0] if file.kind is FileKind.TEST and refs else None,
        }

    async def _write(self, path: Path, content: str) -> WriteOutcome:
        return await asyncio.to_thread(self._write_sync, path, content)

    def _write_sync(self, path: Path, content: str) -> WriteOutcome:
        if path.exists():
            if path.read_text(encoding="utf-8") == content:
                return WriteOutcome.UNCHANGED
            if not self.overwrite:
                return WriteOutcome.SKIPPED
            path.write_text(content, encoding="utf-8")
            return WriteOutcome.UPDATED
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return WriteOutcome.CREATED
