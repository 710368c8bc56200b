"""layerkit pipeline orchestrator.

Implements the 5-phase scaffolding pipeline:

Phase 1: RULES    -- Load the layering rule set (built-in or from a document).
Phase 2: PARSE    -- Parse the feature descriptor into entities and operations.
Phase 3: PLAN     -- Lay out every file, its layer and its imports.
Phase 4: VALIDATE -- Check the plan against the rules before anything is written.
Phase 5: EMIT     -- Render the plan to disk from templates.

Usage::

    layerkit scaffold features.md --output ./shop
    layerkit scaffold features.md -r rules.md --phases 1,2,3,4
    layerkit validate ./shop -r rules.md
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ValidationError
from rich.panel import Panel
from rich.table import Table

from layerkit.config import ALL_PHASES, Config
from layerkit.parser import DescriptorError, FeatureSet, parse_features
from layerkit.planner import LayoutPlan, PlanningError, plan_layout
from layerkit.rules import RuleParseError, RuleSet, default_rules, load_rules
from layerkit.scaffolder import ProjectEmitter
from layerkit.utils import (
    PHASE_NAMES,
    console,
    format_duration,
    kebab_case,
    load_json,
    print_error,
    print_phase_header,
    print_success,
    print_summary_table,
    print_warning,
    save_json,
)
from layerkit.validator import ValidationReport, print_report, validate_plan, validate_tree

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PipelineError(Exception):
    """Raised when a pipeline phase fails irrecoverably."""

    def __init__(self, phase: int, message: str) -> None:
        self.phase = phase
        super().__init__(f"Phase {phase} ({PHASE_NAMES.get(phase, '?')}): {message}")


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """layerkit pipeline orchestrator.

    Drives the five-phase pipeline, persisting each phase's artefact under
    ``<output>/.layerkit/`` so that individual phases can be re-run in
    isolation.  A phase whose input phase was not selected reloads that
    input from disk.

    Attributes:
        config: Global pipeline configuration.
        state: Mutable dictionary that accumulates results from each phase.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.state: dict[str, Any] = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "phases_completed": [],
            "phases_failed": [],
            "success": False,
        }
        self.rules: Optional[RuleSet] = None
        self.features: Optional[FeatureSet] = None
        self.plan: Optional[LayoutPlan] = None
        self.report: Optional[ValidationReport] = None

    # ------------------------------------------------------------------
    # State persistence
    # ------------------------------------------------------------------

    async def _save_state(self) -> None:
        """Persist the current pipeline state to ``.layerkit/pipeline-state.json``."""
        self.state["updated_at"] = datetime.now(timezone.utc).isoformat()
        await save_json(self.state, self.config.state_path)

    # ------------------------------------------------------------------
    # Phase dispatch
    # ------------------------------------------------------------------

    _PHASE_METHODS: dict[int, str] = {
        1: "phase1_rules",
        2: "phase2_parse",
        3: "phase3_plan",
        4: "phase4_validate",
        5: "phase5_emit",
    }

    async def run(self, features_path: Optional[str] = None) -> dict[str, Any]:
        """Execute the pipeline (or the selected subset of phases).

        Args:
            features_path: Path to the feature descriptor.  Required when
                phase 2 is selected.

        Returns:
            The final pipeline state dictionary, including a top-level
            ``success`` boolean.
        """
        pipeline_start = time.monotonic()

        console.print(
            Panel(
                f"[bold bright_cyan]layerkit[/bold bright_cyan]\n"
                f"Project : {self.config.project_name or '(from descriptor)'}\n"
                f"Rules   : {self.config.rules_path or '(built-in)'}\n"
                f"Output  : {self.config.output_dir.resolve()}\n"
                f"Phases  : {', '.join(str(p) for p in self.config.phases)}",
                title="[bold]Pipeline Start[/bold]",
                border_style="bright_cyan",
            )
        )

        self.config.ensure_directories()
        if features_path is not None:
            self.state["features_path"] = str(Path(features_path).resolve())

        all_success = True

        for phase_num in self.config.phases:
            method_name = self._PHASE_METHODS[phase_num]
            phase_name = PHASE_NAMES[phase_num]
            print_phase_header(phase_num, phase_name)

            phase_start = time.monotonic()
            try:
                method = getattr(self, method_name)
                if phase_num == 2:
                    result = await method(features_path)
                else:
                    result = await method()

                elapsed = time.monotonic() - phase_start
                self.state[f"phase{phase_num}"] = result
                self.state["phases_completed"].append(phase_num)

                print_success(
                    f"Phase {phase_num} ({phase_name}) completed in {format_duration(elapsed)}"
                )

            except PipelineError as exc:
                elapsed = time.monotonic() - phase_start
                all_success = False
                self.state["phases_failed"].append(phase_num)
                self.state[f"phase{phase_num}_error"] = str(exc)
                print_error(
                    f"Phase {phase_num} ({phase_name}) FAILED after "
                    f"{format_duration(elapsed)}: {exc}"
                )
                # Later phases depend on earlier ones.
                break

            except Exception as exc:
                elapsed = time.monotonic() - phase_start
                all_success = False
                self.state["phases_failed"].append(phase_num)
                tb = traceback.format_exc()
                self.state[f"phase{phase_num}_error"] = tb
                print_error(
                    f"Phase {phase_num} ({phase_name}) FAILED after "
                    f"{format_duration(elapsed)}: {exc}"
                )
                console.print(f"[dim]{tb}[/dim]")
                break

            finally:
                await self._save_state()

        total_elapsed = time.monotonic() - pipeline_start
        self.state["success"] = all_success
        self.state["total_duration"] = format_duration(total_elapsed)
        self.state["finished_at"] = datetime.now(timezone.utc).isoformat()
        await self._save_state()

        self._print_final_summary(total_elapsed)
        return self.state

    # ------------------------------------------------------------------
    # Phase 1: RULES
    # ------------------------------------------------------------------

    async def phase1_rules(self) -> dict[str, Any]:
        """Load the rule set and snapshot it to ``rules.json``."""
        if self.config.rules_path is None:
            self.rules = default_rules()
            source = "built-in"
        else:
            try:
                self.rules = await load_rules(self.config.rules_path)
            except FileNotFoundError as exc:
                raise PipelineError(1, str(exc)) from exc
            except RuleParseError as exc:
                raise PipelineError(1, f"Invalid rules in {self.config.rules_path}: {exc}") from exc
            source = str(self.config.rules_path)

        await _save_model(self.rules, self.config.rules_snapshot_path)

        console.print(
            f"  Layers: {', '.join(self.rules.dependency_order())}\n"
            f"  Tests : {self.rules.test_placement.value}"
            f"{'' if self.rules.tests_required else ' (optional)'}"
        )
        return {
            "source": source,
            "layers": len(self.rules.layers),
            "forbidden": len(self.rules.forbidden),
            "artefact": str(self.config.rules_snapshot_path),
        }

    # ------------------------------------------------------------------
    # Phase 2: PARSE
    # ------------------------------------------------------------------

    async def phase2_parse(self, features_path: Optional[str]) -> dict[str, Any]:
        """Parse the feature descriptor into ``features.json``."""
        if not features_path:
            raise PipelineError(2, "No feature descriptor given")
        try:
            features = await parse_features(features_path)
        except FileNotFoundError as exc:
            raise PipelineError(2, str(exc)) from exc
        except DescriptorError as exc:
            raise PipelineError(2, f"Invalid feature descriptor: {exc}") from exc

        if self.config.project_name:
            features = features.model_copy(
                update={"project_name": kebab_case(self.config.project_name)}
            )
        if not features.entities:
            raise PipelineError(2, f"No entities found in {features_path}")

        self.features = features
        await _save_model(features, self.config.features_path)

        for note in features.ambiguities:
            print_warning(f"  ? {note}")
        print_summary_table(
            {e.name: ", ".join(op.name for op in e.operations) for e in features.entities},
            title=f"Entities ({features.project_name})",
        )
        return {
            "project_name": features.project_name,
            "entities": [e.name for e in features.entities],
            "ambiguities": len(features.ambiguities),
            "artefact": str(self.config.features_path),
        }

    # ------------------------------------------------------------------
    # Phase 3: PLAN
    # ------------------------------------------------------------------

    async def phase3_plan(self) -> dict[str, Any]:
        """Lay out every file and save ``plan.json``."""
        rules = self._require_rules(3)
        features = self._require_features(3)
        try:
            self.plan = plan_layout(features, rules)
        except PlanningError as exc:
            raise PipelineError(3, str(exc)) from exc

        await _save_model(self.plan, self.config.plan_path)

        by_layer: dict[str, int] = {}
        for file in self.plan.files:
            key = file.layer or "(root)"
            by_layer[key] = by_layer.get(key, 0) + 1
        print_summary_table({k: str(v) for k, v in by_layer.items()}, title="Planned files per layer")
        return {
            "files": len(self.plan.files),
            "edges": len(self.plan.edges()),
            "fingerprint": self.plan.fingerprint(),
            "artefact": str(self.config.plan_path),
        }

    # ------------------------------------------------------------------
    # Phase 4: VALIDATE
    # ------------------------------------------------------------------

    async def phase4_validate(self) -> dict[str, Any]:
        """Validate the plan; fail on errors or a score below ``min_score``."""
        rules = self._require_rules(4)
        plan = self._require_plan(4)

        self.report = validate_plan(plan, rules)
        await _save_model(self.report, self.config.report_path)
        print_report(self.report, title="Plan Validation Report")

        if not self.report.passed:
            raise PipelineError(
                4, f"Plan violates the rules ({len(self.report.errors)} error(s))"
            )
        if self.report.score < self.config.min_score:
            raise PipelineError(
                4, f"Plan score {self.report.score} is below the minimum {self.config.min_score}"
            )
        return {
            "score": self.report.score,
            "errors": len(self.report.errors),
            "warnings": len(self.report.warnings),
            "artefact": str(self.config.report_path),
        }

    # ------------------------------------------------------------------
    # Phase 5: EMIT
    # ------------------------------------------------------------------

    async def phase5_emit(self) -> dict[str, Any]:
        """Render the plan into the output directory."""
        plan = self._require_plan(5)
        features = self._require_features(5)

        emitter = ProjectEmitter(overwrite=self.config.overwrite)
        result = await emitter.emit(plan, features, self.config.output_dir)

        for path in result.skipped:
            print_warning(f"  Kept edited file: {path} (use --overwrite to replace)")
        print_summary_table(
            {
                "Created": str(len(result.created)),
                "Updated": str(len(result.updated)),
                "Unchanged": str(len(result.unchanged)),
                "Skipped": str(len(result.skipped)),
            },
            title="Emitted files",
        )
        return {
            "created": len(result.created),
            "updated": len(result.updated),
            "unchanged": len(result.unchanged),
            "skipped": result.skipped,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_rules(self, phase: int) -> RuleSet:
        if self.rules is None:
            data = self._require_artefact(phase, self.config.rules_snapshot_path, "rule set")
            self.rules = _validate_artefact(phase, RuleSet, data, "rule set")
        return self.rules

    def _require_features(self, phase: int) -> FeatureSet:
        if self.features is None:
            data = self._require_artefact(phase, self.config.features_path, "feature set")
            self.features = _validate_artefact(phase, FeatureSet, data, "feature set")
        return self.features

    def _require_plan(self, phase: int) -> LayoutPlan:
        if self.plan is None:
            data = self._require_artefact(phase, self.config.plan_path, "layout plan")
            self.plan = _validate_artefact(phase, LayoutPlan, data, "layout plan")
        return self.plan

    def _require_artefact(self, phase: int, path: Path, description: str) -> dict[str, Any]:
        """Load a required JSON artefact or raise ``PipelineError``.

        Raises:
            PipelineError: If the file does not exist or cannot be parsed.
        """
        if not path.exists():
            raise PipelineError(
                phase, f"Required artefact missing: {description} ({path})"
            )
        try:
            return load_json(path)
        except (OSError, json.JSONDecodeError) as exc:
            raise PipelineError(
                phase, f"Failed to load {description} from {path}: {exc}"
            ) from exc

    def _print_final_summary(self, total_elapsed: float) -> None:
        """Print the final pipeline summary panel."""
        phases_ok = self.state.get("phases_completed", [])
        phases_fail = self.state.get("phases_failed", [])

        if self.state.get("success"):
            border_style = "bold green"
            status_text = "[bold green]PIPELINE SUCCEEDED[/bold green]"
        else:
            border_style = "bold red"
            status_text = "[bold red]PIPELINE FAILED[/bold red]"

        detail_lines = [
            status_text,
            "",
            f"Duration  : {format_duration(total_elapsed)}",
            f"Completed : {', '.join(str(p) for p in phases_ok) or 'none'}",
        ]
        if phases_fail:
            detail_lines.append(
                f"Failed    : {', '.join(str(p) for p in phases_fail)}"
            )
        detail_lines.extend([
            "",
            f"Output    : {self.config.output_dir.resolve()}",
            f"State     : {self.config.state_path}",
        ])

        console.print()
        console.print(
            Panel(
                "\n".join(detail_lines),
                title="[bold]Pipeline Complete[/bold]",
                border_style=border_style,
            )
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


async def _save_model(model: BaseModel, path: Path) -> None:
    await save_json(model.model_dump(mode="json"), path)


def _validate_artefact(phase: int, model: type[Any], data: dict[str, Any], description: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise PipelineError(phase, f"Corrupt {description} artefact: {exc}") from exc


async def _resolve_rules(rules_path: Optional[str]) -> RuleSet:
    return await load_rules(rules_path) if rules_path else default_rules()


def _print_plan(plan: LayoutPlan) -> None:
    table = Table(title=f"Layout plan ({plan.project_name})", show_lines=False)
    table.add_column("Path", style="cyan")
    table.add_column("Layer")
    table.add_column("Kind")
    table.add_column("Imports", justify="right")
    for file in plan.files:
        table.add_row(file.path, file.layer or "-", file.kind.value, str(len(file.imports)))
    console.print(table)
    console.print(f"[dim]fingerprint {plan.fingerprint()}[/dim]")


def _print_rules(rules: RuleSet) -> None:
    table = Table(title="Layers (leaves first)", show_lines=False)
    table.add_column("Layer", style="bold")
    table.add_column("Directory")
    table.add_column("Language")
    table.add_column("Naming")
    table.add_column("May import")
    for name in rules.dependency_order():
        layer = rules.layer(name)
        table.add_row(
            layer.name,
            layer.directory,
            layer.language.value,
            rules.naming_for(layer).value,
            ", ".join(sorted(rules.allowed_dependencies(name))) or "-",
        )
    console.print(table)
    print_summary_table(
        {
            "Test placement": rules.test_placement.value,
            "Tests required": "yes" if rules.tests_required else "no",
            "Layer skipping": "allowed" if rules.allow_layer_skipping else "forbidden",
            "Forbidden": ", ".join(c.name for c in rules.forbidden) or "-",
        },
        title="Policies",
    )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _parse_phases(text: str) -> list[int]:
    try:
        phases = [int(p.strip()) for p in text.split(",") if p.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid phases format: {text}") from exc
    for phase in phases:
        if phase not in ALL_PHASES:
            raise argparse.ArgumentTypeError(f"Invalid phase number: {phase} (must be 1-5)")
    return sorted(set(phases))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="layerkit",
        description="layerkit -- layered project scaffolding and validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  layerkit scaffold features.md -o ./shop\n"
            "  layerkit scaffold features.md -r rules.md --phases 1,2,3,4\n"
            "  layerkit plan features.yaml\n"
            "  layerkit validate ./shop -r rules.md\n"
        ),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    scaffold = sub.add_parser("scaffold", help="Run the full pipeline")
    scaffold.add_argument("features", help="Path to the feature descriptor (.md, .yaml, .json)")
    scaffold.add_argument("--rules", "-r", default=None, help="Rules document (default: built-in)")
    scaffold.add_argument("--output", "-o", default="./output", help="Output directory (default: ./output)")
    scaffold.add_argument(
        "--phases",
        type=_parse_phases,
        default=list(ALL_PHASES),
        help="Comma-separated phases to run (default: 1,2,3,4,5)",
    )
    scaffold.add_argument("--overwrite", action="store_true", help="Replace edited files")
    scaffold.add_argument("--project-name", default=None, help="Override the project name")
    scaffold.add_argument("--min-score", type=float, default=0.0, help="Minimum plan score (0-100)")

    plan = sub.add_parser("plan", help="Print the layout plan without writing files")
    plan.add_argument("features", help="Path to the feature descriptor")
    plan.add_argument("--rules", "-r", default=None, help="Rules document (default: built-in)")

    validate = sub.add_parser("validate", help="Validate an existing source tree")
    validate.add_argument("tree", help="Project root to validate")
    validate.add_argument("--rules", "-r", default=None, help="Rules document (default: built-in)")

    rules = sub.add_parser("rules", help="Print the resolved rule set")
    rules.add_argument("--rules", "-r", default=None, help="Rules document (default: built-in)")

    return parser


async def _cmd_plan(args: argparse.Namespace) -> int:
    rules = await _resolve_rules(args.rules)
    features = await parse_features(args.features)
    plan = plan_layout(features, rules)
    for note in features.ambiguities:
        print_warning(f"? {note}")
    _print_plan(plan)
    return 0


async def _cmd_validate(args: argparse.Namespace) -> int:
    rules = await _resolve_rules(args.rules)
    report = await validate_tree(args.tree, rules)
    print_report(report)
    return 0 if report.passed else 1


async def _cmd_rules(args: argparse.Namespace) -> int:
    _print_rules(await _resolve_rules(args.rules))
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for ``layerkit``."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "scaffold":
        features_path = Path(args.features)
        if 2 in args.phases and not features_path.exists():
            console.print(f"[bold red]Error:[/bold red] Feature descriptor not found: {features_path}")
            sys.exit(1)
        try:
            config = Config(
                project_name=args.project_name or "",
                output_dir=Path(args.output),
                rules_path=Path(args.rules) if args.rules else None,
                overwrite=args.overwrite,
                min_score=args.min_score,
                phases=args.phases,
            )
        except ValidationError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            sys.exit(1)

        result = asyncio.run(Pipeline(config).run(str(features_path)))
        if result.get("success"):
            console.print("[bold green]Scaffolding completed successfully![/bold green]")
        else:
            console.print("[bold red]Scaffolding failed.[/bold red]")
            sys.exit(1)
        return

    commands = {"plan": _cmd_plan, "validate": _cmd_validate, "rules": _cmd_rules}
    try:
        code = asyncio.run(commands[args.command](args))
    except (FileNotFoundError, RuleParseError, DescriptorError, PlanningError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
