"""Layout planner.

Turns a ``FeatureSet`` and a ``RuleSet`` into a ``LayoutPlan``: every file
to scaffold, where it lives, what it exports and which other planned files
it imports.  Imports only ever follow a layer's ``depends_on`` list, so a
plan can never contain a reverse edge.
"""

from __future__ import annotations

import posixpath

from layerkit.parser.models import Entity, FeatureSet
from layerkit.rules.models import Language, Layer, Placement, RuleSet
from layerkit.utils import pascal_case

from .models import FileKind, LayoutPlan, PlannedFile


class PlanningError(ValueError):
    """Raised when a feature set cannot be laid out under a rule set."""


_TEST_TEMPLATES: dict[Language, str] = {
    Language.PYTHON: "python/test.py.j2",
    Language.TYPESCRIPT: "typescript/test.ts.j2",
}
_PACKAGE_TEMPLATE = "python/package.py.j2"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

def _entity_path(layer: Layer, entity: Entity, rules: RuleSet) -> str:
    stem = rules.naming_for(layer).apply(entity.name + layer.suffix)
    return f"{layer.directory}/{stem}{layer.extension}"


def _entity_symbol(layer: Layer, entity: Entity) -> str:
    return pascal_case(f"{entity.name} {layer.suffix}")


def _shared_path(layer: Layer, stem: str, rules: RuleSet) -> str:
    return f"{layer.directory}/{rules.naming_for(layer).apply(stem)}{layer.extension}"


def expected_test_path(source: PlannedFile, rules: RuleSet) -> str:
    """Where the test for *source* belongs under the configured placement."""
    directory, filename = posixpath.split(source.path)
    stem, _, extension = filename.partition(".")
    if source.language is Language.PYTHON:
        test_name = f"test_{stem}.py"
    else:
        test_name = f"{stem}.test.{extension}"

    if rules.test_placement is Placement.CO_LOCATED or source.layer is None:
        return f"{directory}/{test_name}"
    root = rules.test_roots.get(source.language, "tests")
    return f"{root}/{source.layer}/{test_name}"


def _package_dirs(layer: Layer, rules: RuleSet) -> list[str]:
    """Directories between ``python_root`` and the layer directory, outermost first."""
    if rules.module_for_path(f"{layer.directory}/__init__.py") is None:
        return []
    root = rules.python_root.strip("/")
    root_depth = 0 if root in ("", ".") else len(root.split("/"))
    parts = layer.directory.split("/")
    return ["/".join(parts[:i]) for i in range(root_depth + 1, len(parts) + 1)]


# ---------------------------------------------------------------------------
# Import derivation
# ---------------------------------------------------------------------------

def _entity_imports(
    layer: Layer, entity: Entity, features: FeatureSet, rules: RuleSet
) -> list[str]:
    imports: list[str] = []
    for dep_name in layer.depends_on:
        dep = rules.layer(dep_name)
        if dep.has_entity_files:
            imports.append(_entity_path(dep, entity, rules))
            for ref in entity.references():
                imports.append(_entity_path(dep, features.entity(ref), rules))
        for shared in dep.shared:
            imports.append(_shared_path(dep, shared.stem, rules))
    return _unique(imports)


def _shared_imports(
    layer: Layer, imports_entities: bool, features: FeatureSet, rules: RuleSet
) -> list[str]:
    imports: list[str] = []
    for dep_name in layer.depends_on:
        dep = rules.layer(dep_name)
        for shared in dep.shared:
            imports.append(_shared_path(dep, shared.stem, rules))
        if imports_entities and dep.has_entity_files:
            imports.extend(_entity_path(dep, e, rules) for e in features.entities)
    return _unique(imports)


def _unique(paths: list[str]) -> list[str]:
    seen: list[str] = []
    for path in paths:
        if path not in seen:
            seen.append(path)
    return seen


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def plan_layout(features: FeatureSet, rules: RuleSet) -> LayoutPlan:
    """Plan every file a feature set needs under a rule set.

    Layers are visited in dependency order (leaves first).  Each layer
    contributes one file per entity when it has an entity template, one
    file per shared file, ``__init__.py`` markers for Python packages and,
    when tests are required, one test per source or shared file.

    Raises:
        PlanningError: If two planned files land on the same path.
    """
    planned: dict[str, PlannedFile] = {}

    def _add(file: PlannedFile) -> None:
        existing = planned.get(file.path)
        if existing is not None:
            if existing.kind is FileKind.PACKAGE and file.kind is FileKind.PACKAGE:
                return
            raise PlanningError(
                f"Two planned files share the path '{file.path}' "
                f"({existing.layer}/{existing.entity or existing.symbol} and "
                f"{file.layer}/{file.entity or file.symbol})"
            )
        planned[file.path] = file

    for layer_name in rules.dependency_order():
        layer = rules.layer(layer_name)

        if layer.language is Language.PYTHON:
            for directory in _package_dirs(layer, rules):
                owner = rules.layer_for_path(directory)
                _add(PlannedFile(
                    path=f"{directory}/__init__.py",
                    layer=owner.name if owner else None,
                    language=Language.PYTHON,
                    kind=FileKind.PACKAGE,
                    template=_PACKAGE_TEMPLATE,
                ))

        if layer.has_entity_files:
            for entity in features.entities:
                _add(PlannedFile(
                    path=_entity_path(layer, entity, rules),
                    layer=layer.name,
                    language=layer.language,
                    kind=FileKind.SOURCE,
                    entity=entity.name,
                    symbol=_entity_symbol(layer, entity),
                    template=layer.entity_template,
                    imports=_entity_imports(layer, entity, features, rules),
                ))

        for shared in layer.shared:
            _add(PlannedFile(
                path=_shared_path(layer, shared.stem, rules),
                layer=layer.name,
                language=layer.language,
                kind=FileKind.SHARED,
                symbol=shared.symbol or pascal_case(shared.stem),
                template=shared.template,
                imports=_shared_imports(layer, shared.imports_entities, features, rules),
            ))

    if rules.tests_required:
        sources = [f for f in planned.values() if f.kind in (FileKind.SOURCE, FileKind.SHARED)]
        for source in sources:
            _add(PlannedFile(
                path=expected_test_path(source, rules),
                layer=source.layer,
                language=source.language,
                kind=FileKind.TEST,
                entity=source.entity,
                template=_TEST_TEMPLATES[source.language],
                imports=[source.path],
                tests=source.path,
            ))

    return LayoutPlan(
        project_name=features.project_name,
        python_root=rules.python_root,
        files=sorted(planned.values(), key=lambda f: f.path),
    )
