"""layerkit configuration.

Centralised, typed configuration for the scaffolding pipeline. Settings use
Pydantic v2 models so they are validated at construction time and can be
serialised to/from JSON or read from environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from layerkit.utils import ensure_dir


ALL_PHASES: list[int] = [1, 2, 3, 4, 5]


class Config(BaseModel):
    """Global layerkit configuration.

    Instances are created once by the CLI entry point (or a test) and passed
    to ``Pipeline``. Every artefact a run produces lives under
    ``<output_dir>/<meta_dir>/``.
    """

    project_name: str = Field(default="")
    output_dir: Path = Field(default=Path("./output"))
    meta_dir: str = Field(default=".layerkit")
    rules_path: Optional[Path] = Field(
        default=None, description="Rules document; built-in rules when omitted"
    )
    overwrite: bool = Field(
        default=False, description="Overwrite generated files that were edited by hand"
    )
    min_score: float = Field(
        default=0.0, ge=0.0, le=100.0, description="Minimum plan validation score"
    )

    # Phase control -- which pipeline phases to execute (1-5).
    phases: list[int] = Field(default_factory=lambda: list(ALL_PHASES))

    @field_validator("phases")
    @classmethod
    def _check_phases(cls, value: list[int]) -> list[int]:
        for phase in value:
            if phase not in ALL_PHASES:
                raise ValueError(f"Invalid phase number: {phase} (must be 1-5)")
        return sorted(set(value))

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def meta_path(self) -> Path:
        """Root of the ``.layerkit/`` metadata directory inside the output."""
        return self.output_dir / self.meta_dir

    @property
    def rules_snapshot_path(self) -> Path:
        """Resolved rule set as JSON."""
        return self.meta_path / "rules.json"

    @property
    def features_path(self) -> Path:
        """Normalised feature set as JSON."""
        return self.meta_path / "features.json"

    @property
    def plan_path(self) -> Path:
        """Layout plan as JSON."""
        return self.meta_path / "plan.json"

    @property
    def report_path(self) -> Path:
        """Validation report as JSON."""
        return self.meta_path / "report.json"

    @property
    def state_path(self) -> Path:
        """Persisted pipeline state."""
        return self.meta_path / "pipeline-state.json"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<meta_path>/config.json``.

        Returns:
            The path where the file was written.
        """
        target = path or (self.meta_path / "config.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            LAYERKIT_PROJECT_NAME, LAYERKIT_OUTPUT_DIR, LAYERKIT_RULES,
            LAYERKIT_OVERWRITE, LAYERKIT_MIN_SCORE, LAYERKIT_PHASES.
        """
        kwargs: dict[str, Any] = {
            "project_name": os.environ.get("LAYERKIT_PROJECT_NAME", ""),
            "output_dir": Path(os.environ.get("LAYERKIT_OUTPUT_DIR", "./output")),
        }
        if os.environ.get("LAYERKIT_RULES"):
            kwargs["rules_path"] = Path(os.environ["LAYERKIT_RULES"])
        if os.environ.get("LAYERKIT_OVERWRITE"):
            kwargs["overwrite"] = os.environ["LAYERKIT_OVERWRITE"].strip().lower() in (
                "1", "true", "yes", "on",
            )
        if os.environ.get("LAYERKIT_MIN_SCORE"):
            kwargs["min_score"] = float(os.environ["LAYERKIT_MIN_SCORE"])

        phases_str = os.environ.get("LAYERKIT_PHASES", "1,2,3,4,5")
        kwargs["phases"] = [int(p.strip()) for p in phases_str.split(",") if p.strip()]

        return cls(**kwargs)

    def ensure_directories(self) -> None:
        """Create the directories that must exist before the pipeline runs."""
        for directory in (self.output_dir, self.meta_path):
            ensure_dir(directory)
