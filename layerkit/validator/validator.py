"""Layout validator.

Checks a ``LayoutPlan`` or a source tree on disk against a ``RuleSet``:
file naming, dependency direction between layers, import cycles,
forbidden constructs and test presence/placement.  Produces a structured
:class:`ValidationReport` with file-and-line references for every finding.
"""

from __future__ import annotations

import asyncio
import posixpath
from pathlib import Path
from typing import Optional

from rich.table import Table

from layerkit.planner.models import FileKind, LayoutPlan, PlannedFile
from layerkit.planner.planner import expected_test_path
from layerkit.rules.models import Language, Layer, Placement, RuleSet, Severity
from layerkit.utils import console

from .imports import ImportEdge, python_imports, typescript_imports
from .models import Category, ValidationReport, Violation


_SKIP_DIRS = {"node_modules", "__pycache__", ".git", "dist", "build", ".venv", "venv", ".layerkit"}
_LANGUAGE_EXTENSIONS: dict[Language, set[str]] = {
    Language.PYTHON: {".py"},
    Language.TYPESCRIPT: {".ts", ".tsx"},
}
_EXEMPT_STEMS = {"__init__", "index", "conftest"}
_COMMENT_PREFIXES: dict[Language, tuple[str, ...]] = {
    Language.PYTHON: ("#",),
    Language.TYPESCRIPT: ("//", "/*", "*"),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _read_file_async(path: Path) -> str:
    """Read a file's content asynchronously."""
    return await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")


def _collect_files(root: Path, extensions: set[str]) -> list[Path]:
    """Recursively collect files matching the given extensions, skipping
    node_modules, __pycache__, .git, dist, build and virtualenv directories."""
    results: list[Path] = []
    for child in sorted(root.iterdir()):
        if child.is_dir():
            if child.name in _SKIP_DIRS:
                continue
            results.extend(_collect_files(child, extensions))
        elif child.suffix in extensions and not child.name.endswith(".d.ts"):
            results.append(child)
    return results


def _relative(path: Path, root: Path) -> str:
    """Return *path* relative to *root* as a forward-slash string."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def is_test_file(rel_path: str, language: Language) -> bool:
    name = posixpath.basename(rel_path)
    if language is Language.PYTHON:
        return name.startswith("test_") or name.endswith("_test.py")
    return ".test." in name or ".spec." in name


def _has_source_counterpart(path: Path, language: Language) -> bool:
    """Whether a test-named file sits next to the source it would test."""
    stem = _naming_stem(path.name, language, is_test=True)
    return any((path.parent / f"{stem}{ext}").is_file() for ext in _LANGUAGE_EXTENSIONS[language])


def _naming_stem(rel_path: str, language: Language, is_test: bool) -> str:
    name = posixpath.basename(rel_path)
    stem = name.split(".", 1)[0]
    if is_test and language is Language.PYTHON:
        if stem.startswith("test_"):
            return stem[len("test_"):]
        if stem.endswith("_test"):
            return stem[: -len("_test")]
    return stem


def _find_cycles(graph: dict[str, list[str]]) -> list[list[str]]:
    """Elementary cycles reachable by DFS, each reported once."""
    cycles: list[list[str]] = []
    seen: set[tuple[str, ...]] = set()
    state: dict[str, int] = {}
    stack: list[str] = []

    def _visit(node: str) -> None:
        state[node] = 1
        stack.append(node)
        for target in graph.get(node, []):
            if state.get(target) == 1:
                cycle = stack[stack.index(target):]
                pivot = cycle.index(min(cycle))
                key = tuple(cycle[pivot:] + cycle[:pivot])
                if key not in seen:
                    seen.add(key)
                    cycles.append(list(key))
            elif target not in state:
                _visit(target)
        stack.pop()
        state[node] = 2

    for node in sorted(graph):
        if node not in state:
            _visit(node)
    return cycles


# ---------------------------------------------------------------------------
# LayoutValidator
# ---------------------------------------------------------------------------

class LayoutValidator:
    """Validates plans and source trees against a :class:`RuleSet`."""

    # Weights for score deduction per severity
    _SEVERITY_WEIGHTS = {Severity.ERROR: 5.0, Severity.WARNING: 2.0, Severity.INFO: 0.5}

    def __init__(self, rules: RuleSet) -> None:
        self.rules = rules
        self._layer_names = {layer.name for layer in rules.layers}

    # ------------------------------------------------------------------
    # Plan validation
    # ------------------------------------------------------------------

    def validate_plan(self, plan: LayoutPlan) -> ValidationReport:
        """Check a planned layout without touching the file system."""
        violations: list[Violation] = []
        index = plan.by_path()

        for file in plan.files:
            if file.layer is None:
                if file.kind is not FileKind.PACKAGE:
                    violations.append(self._unknown_layer(file.path, None))
                continue
            if file.layer not in self._layer_names:
                violations.append(self._unknown_layer(file.path, file.layer))
                continue
            if file.kind is not FileKind.PACKAGE:
                violation = self._check_naming(
                    file.path, self.rules.layer(file.layer), file.kind is FileKind.TEST
                )
                if violation:
                    violations.append(violation)

        for importer_path, target_path in plan.edges():
            importer, target = index.get(importer_path), index.get(target_path)
            if importer is None or target is None or importer.kind is FileKind.TEST:
                continue
            violation = self._check_edge(importer.layer, target.layer, importer_path, target_path, None)
            if violation:
                violations.append(violation)

        graph = {
            f.path: [t for t in f.imports if t in index]
            for f in plan.files
            if f.kind is not FileKind.TEST
        }
        violations.extend(self._cycle_violations(graph))

        if self.rules.tests_required:
            for file in plan.files:
                if file.kind not in (FileKind.SOURCE, FileKind.SHARED):
                    continue
                expected = expected_test_path(file, self.rules)
                if expected not in index:
                    violations.append(self._missing_test(file.path, expected))

        return self._build_report(violations, len(plan.files))

    # ------------------------------------------------------------------
    # Tree validation
    # ------------------------------------------------------------------

    async def validate_tree(self, project_path: str | Path) -> ValidationReport:
        """Scan a source tree on disk.

        Each layer directory is walked for files of the layer's language;
        separately placed test roots are walked for test files.
        """
        root = Path(project_path).resolve()
        if not root.is_dir():
            return ValidationReport(
                errors=[
                    Violation(
                        severity=Severity.ERROR,
                        category=Category.PROJECT_NOT_FOUND,
                        file=str(root),
                        description=f"Project path does not exist: {root}",
                        suggestion="Verify the project path is correct.",
                    )
                ],
                score=0.0,
            )

        files = self._collect_tree(root)

        def _exists(rel_path: str) -> bool:
            return (root / rel_path).is_file()

        contents = await asyncio.gather(*(_read_file_async(root / rel) for rel in files))

        violations: list[Violation] = []
        graph: dict[str, list[str]] = {}
        for (rel_path, (layer, language, is_test)), content in zip(files.items(), contents):
            if layer is None:
                continue
            stem = posixpath.basename(rel_path).split(".", 1)[0]
            if stem not in _EXEMPT_STEMS:
                violation = self._check_naming(rel_path, layer, is_test)
                if violation:
                    violations.append(violation)

            if is_test:
                violation = self._check_test_placement(rel_path, layer, language)
                if violation:
                    violations.append(violation)
                continue

            if language is Language.PYTHON:
                edges = python_imports(content, rel_path, self.rules, _exists)
            else:
                edges = typescript_imports(content, rel_path, self.rules, _exists)
            violations.extend(self._check_tree_edges(rel_path, layer, edges, files))
            graph[rel_path] = [
                target for _, target in edges
                if target in files and not files[target][2]
            ]

            violations.extend(self._check_forbidden(rel_path, layer, content))

            if self.rules.tests_required and stem not in _EXEMPT_STEMS:
                violation = self._check_test_presence(rel_path, layer, root)
                if violation:
                    violations.append(violation)

        violations.extend(self._cycle_violations(graph))
        return self._build_report(violations, len(files))

    def _collect_tree(self, root: Path) -> dict[str, tuple[Optional[Layer], Language, bool]]:
        """Map each relevant file to ``(layer, language, is_test)``."""
        files: dict[str, tuple[Optional[Layer], Language, bool]] = {}
        for layer in self.rules.layers:
            directory = root / layer.directory
            if not directory.is_dir():
                continue
            for path in _collect_files(directory, _LANGUAGE_EXTENSIONS[layer.language]):
                rel_path = _relative(path, root)
                owner = self.rules.layer_for_path(rel_path)
                if owner is not None and owner.name == layer.name:
                    is_test = is_test_file(rel_path, layer.language) and _has_source_counterpart(path, layer.language)
                    files[rel_path] = (layer, layer.language, is_test)

        for language, test_root in self.rules.test_roots.items():
            directory = root / test_root
            if not directory.is_dir():
                continue
            for path in _collect_files(directory, _LANGUAGE_EXTENSIONS[language]):
                rel_path = _relative(path, root)
                if rel_path in files or not is_test_file(rel_path, language):
                    continue
                files[rel_path] = (self._test_root_layer(rel_path, test_root), language, True)
        return files

    def _test_root_layer(self, rel_path: str, test_root: str) -> Optional[Layer]:
        first = posixpath.relpath(rel_path, test_root).split("/", 1)[0]
        return next((layer for layer in self.rules.layers if layer.name == first), None)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_naming(self, rel_path: str, layer: Layer, is_test: bool) -> Optional[Violation]:
        convention = self.rules.naming_for(layer)
        stem = _naming_stem(rel_path, layer.language, is_test)
        if stem in _EXEMPT_STEMS or convention.matches(stem):
            return None
        return Violation(
            severity=Severity.ERROR,
            category=Category.NAMING,
            file=rel_path,
            description=(
                f"File name '{stem}' does not follow {convention.value} "
                f"required by layer '{layer.name}'."
            ),
            suggestion=f"Rename to '{convention.apply(stem)}'.",
        )

    def _check_edge(
        self,
        source: Optional[str],
        target: Optional[str],
        importer: str,
        imported: str,
        line: Optional[int],
    ) -> Optional[Violation]:
        if source is None or target is None or self.rules.is_allowed(source, target):
            return None
        if self._reaches(target, source):
            reason = f"reverse dependency: '{target}' already depends on '{source}'"
        elif self._reaches(source, target):
            reason = f"'{source}' may only reach '{target}' through intermediate layers"
        else:
            reason = f"'{target}' is not a declared dependency of '{source}'"
        allowed = sorted(self.rules.allowed_dependencies(source))
        return Violation(
            severity=Severity.ERROR,
            category=Category.DEPENDENCY_DIRECTION,
            file=importer,
            line=line,
            description=f"Layer '{source}' imports '{imported}' from layer '{target}' ({reason}).",
            suggestion=(
                f"'{source}' may import: {', '.join(allowed)}."
                if allowed
                else f"'{source}' may not import other layers."
            ),
        )

    def _reaches(self, start: str, goal: str) -> bool:
        stack, seen = [start], set()
        while stack:
            current = stack.pop()
            if current == goal:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.rules.layer(current).depends_on)
        return False

    def _check_tree_edges(
        self,
        rel_path: str,
        layer: Layer,
        edges: list[ImportEdge],
        files: dict[str, tuple[Optional[Layer], Language, bool]],
    ) -> list[Violation]:
        violations: list[Violation] = []
        for line, target_path in edges:
            if target_path in files and files[target_path][2]:
                continue
            target_layer = self.rules.layer_for_path(target_path)
            if target_layer is None:
                continue
            violation = self._check_edge(layer.name, target_layer.name, rel_path, target_path, line)
            if violation:
                violations.append(violation)
        return violations

    def _check_forbidden(self, rel_path: str, layer: Layer, content: str) -> list[Violation]:
        constructs = [(c, c.compiled()) for c in self.rules.forbidden if c.applies_to(layer)]
        if not constructs:
            return []
        comment_prefixes = _COMMENT_PREFIXES[layer.language]
        violations: list[Violation] = []
        for idx, line in enumerate(content.splitlines(), start=1):
            if line.strip().startswith(comment_prefixes):
                continue
            for construct, pattern in constructs:
                if pattern.search(line):
                    violations.append(
                        Violation(
                            severity=construct.severity,
                            category=Category.FORBIDDEN_CONSTRUCT,
                            file=rel_path,
                            line=idx,
                            description=(
                                f"[{construct.name}] {construct.description}".strip()
                                if construct.description
                                else f"[{construct.name}] Forbidden construct."
                            ),
                            suggestion=construct.suggestion,
                        )
                    )
        return violations

    def _check_test_presence(self, rel_path: str, layer: Layer, root: Path) -> Optional[Violation]:
        source = PlannedFile(
            path=rel_path, layer=layer.name, language=layer.language, kind=FileKind.SOURCE
        )
        expected = expected_test_path(source, self.rules)
        if (root / expected).is_file():
            return None

        # A test under the other placement is reported as misplaced by its own check.
        other = self.rules.model_copy(update={"test_placement": _other_placement(self.rules.test_placement)})
        if (root / expected_test_path(source, other)).is_file():
            return None
        return self._missing_test(rel_path, expected)

    def _check_test_placement(self, rel_path: str, layer: Layer, language: Language) -> Optional[Violation]:
        in_layer = self.rules.layer_for_path(rel_path) is not None
        if self.rules.test_placement is Placement.CO_LOCATED and not in_layer:
            expected_dir = layer.directory
        elif self.rules.test_placement is Placement.SEPARATE and in_layer:
            expected_dir = f"{self.rules.test_roots.get(language, 'tests')}/{layer.name}"
        else:
            return None
        return Violation(
            severity=Severity.WARNING,
            category=Category.MISPLACED_TEST,
            file=rel_path,
            description=f"Test file must be {self.rules.test_placement.value}.",
            suggestion=f"Move it under '{expected_dir}'.",
        )

    def _missing_test(self, rel_path: str, expected: str) -> Violation:
        return Violation(
            severity=Severity.ERROR,
            category=Category.MISSING_TEST,
            file=rel_path,
            description=f"No test found for '{rel_path}'.",
            suggestion=f"Add '{expected}'.",
        )

    def _unknown_layer(self, rel_path: str, layer: Optional[str]) -> Violation:
        return Violation(
            severity=Severity.ERROR,
            category=Category.UNKNOWN_LAYER,
            file=rel_path,
            description=(
                f"File belongs to unknown layer '{layer}'."
                if layer
                else "File does not belong to any layer."
            ),
            suggestion=f"Known layers: {', '.join(sorted(self._layer_names))}.",
        )

    def _cycle_violations(self, graph: dict[str, list[str]]) -> list[Violation]:
        return [
            Violation(
                severity=Severity.ERROR,
                category=Category.DEPENDENCY_CYCLE,
                file=cycle[0],
                description="Import cycle: " + " -> ".join(cycle + [cycle[0]]),
                suggestion="Break the cycle by moving shared code into a lower layer.",
            )
            for cycle in _find_cycles(graph)
        ]

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _build_report(self, violations: list[Violation], files_checked: int) -> ValidationReport:
        errors = [v for v in violations if v.severity is Severity.ERROR]
        warnings = [v for v in violations if v.severity is not Severity.ERROR]
        return ValidationReport(
            errors=errors,
            warnings=warnings,
            score=self._calculate_score(violations),
            files_checked=files_checked,
        )

    def _calculate_score(self, violations: list[Violation]) -> float:
        """Calculate a layout health score from 0 to 100.

        Each violation deducts points based on severity. The floor is 0.
        """
        deductions = sum(self._SEVERITY_WEIGHTS.get(v.severity, 1.0) for v in violations)
        return max(0.0, round(100.0 - deductions, 1))


def _other_placement(placement: Placement) -> Placement:
    return Placement.SEPARATE if placement is Placement.CO_LOCATED else Placement.CO_LOCATED


# ---------------------------------------------------------------------------
# Module-level API
# ---------------------------------------------------------------------------

def validate_plan(plan: LayoutPlan, rules: RuleSet) -> ValidationReport:
    return LayoutValidator(rules).validate_plan(plan)


async def validate_tree(root: str | Path, rules: RuleSet) -> ValidationReport:
    return await LayoutValidator(rules).validate_tree(root)


def print_report(report: ValidationReport, title: str = "Layout Validation Report") -> None:
    """Pretty-print a validation report to the console using Rich."""
    console.print(f"\n[bold]{title}[/bold]\n")

    severity_styles = {
        Severity.ERROR: "red",
        Severity.WARNING: "yellow",
        Severity.INFO: "blue",
    }
    order = [Severity.ERROR, Severity.WARNING, Severity.INFO]

    if report.violations:
        table = Table(title="Violations", show_lines=True)
        table.add_column("Severity", style="bold", width=10)
        table.add_column("Category", width=22)
        table.add_column("Location", width=44)
        table.add_column("Description", width=60)

        for violation in sorted(report.violations, key=lambda v: (order.index(v.severity), v.file)):
            style = severity_styles[violation.severity]
            table.add_row(
                f"[{style}]{violation.severity.value.upper()}[/{style}]",
                violation.category.value,
                violation.location,
                violation.description,
            )
        console.print(table)
    else:
        console.print("[green]No violations found.[/green]")

    score_color = "green" if report.score >= 80 else "yellow" if report.score >= 50 else "red"
    console.print(f"\n[bold]Score:[/bold] [{score_color}]{report.score}/100[/{score_color}]")
    console.print(
        f"  Files: {report.files_checked}  |  Errors: {len(report.errors)}  "
        f"|  Warnings: {len(report.warnings)}\n"
    )
