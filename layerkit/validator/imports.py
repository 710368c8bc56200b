"""Import extraction for Python and TypeScript sources.

Python imports are read from the ``ast``; TypeScript import specifiers are
matched with regular expressions.  Every import is resolved to a project
relative path when it points at a file inside the project, and dropped
otherwise (third-party and standard-library imports).
"""

from __future__ import annotations

import ast
import posixpath
import re
from typing import Callable

from layerkit.rules.models import RuleSet

# (line, project-relative target path)
ImportEdge = tuple[int, str]

_RE_TS_FROM = re.compile(r"""\bfrom\s+['"]([^'"]+)['"]""")
_RE_TS_BARE = re.compile(r"""\bimport\s*\(?\s*['"]([^'"]+)['"]""")
_RE_TS_REQUIRE = re.compile(r"""\brequire\s*\(\s*['"]([^'"]+)['"]\s*\)""")
_RE_PY_FALLBACK = re.compile(r"^\s*(?:from\s+(\.*[\w.]*)\s+import\s+([\w, ]+)|import\s+([\w.]+))")

_TS_EXTENSIONS = (".ts", ".tsx", ".d.ts", ".js", ".jsx")


def _find_line(content: str, offset: int) -> int:
    """Return the 1-based line number for a character offset."""
    return content[:offset].count("\n") + 1


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------

def _resolve_module(module: str, rules: RuleSet, exists: Callable[[str], bool]) -> str | None:
    if not module:
        return None
    for candidate in rules.paths_for_module(module):
        if exists(candidate):
            return candidate
    return None


def _from_targets(
    prefix: str, names: list[str], rules: RuleSet, exists: Callable[[str], bool]
) -> list[str]:
    """Targets of ``from <prefix> import <names>``: submodules first, else the module."""
    targets: list[str] = []
    for name in names:
        if name == "*":
            continue
        path = _resolve_module(f"{prefix}.{name}" if prefix else name, rules, exists)
        if path and path not in targets:
            targets.append(path)
    if not targets:
        path = _resolve_module(prefix, rules, exists)
        if path:
            targets.append(path)
    return targets


def _package_parts(rel_path: str, rules: RuleSet) -> list[str] | None:
    module = rules.module_for_path(rel_path)
    if module is None:
        return None
    parts = module.split(".")
    return parts if rel_path.endswith("__init__.py") else parts[:-1]


def _relative_prefix(package: list[str] | None, level: int, module: str | None) -> str | None:
    if level == 0:
        return module or ""
    if package is None or level - 1 > len(package):
        return None
    base = package[: len(package) - (level - 1)]
    if module:
        base = base + module.split(".")
    return ".".join(base)


def python_imports(
    content: str, rel_path: str, rules: RuleSet, exists: Callable[[str], bool]
) -> list[ImportEdge]:
    """Project-internal imports of a Python file.

    Absolute modules are resolved against ``rules.python_root``; relative
    imports against the package of *rel_path*.  Files that do not parse
    are scanned line by line instead.
    """
    package = _package_parts(rel_path, rules)
    edges: list[ImportEdge] = []

    try:
        tree = ast.parse(content)
    except SyntaxError:
        return _python_imports_by_line(content, package, rules, exists)

    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                path = _resolve_module(alias.name, rules, exists)
                if path:
                    edges.append((node.lineno, path))
        elif isinstance(node, ast.ImportFrom):
            prefix = _relative_prefix(package, node.level, node.module)
            if prefix is None:
                continue
            names = [alias.name for alias in node.names]
            for path in _from_targets(prefix, names, rules, exists):
                edges.append((node.lineno, path))

    return sorted(set(edges))


def _python_imports_by_line(
    content: str, package: list[str] | None, rules: RuleSet, exists: Callable[[str], bool]
) -> list[ImportEdge]:
    edges: list[ImportEdge] = []
    for idx, line in enumerate(content.splitlines(), start=1):
        match = _RE_PY_FALLBACK.match(line)
        if not match:
            continue
        if match.group(3):
            path = _resolve_module(match.group(3), rules, exists)
            if path:
                edges.append((idx, path))
            continue
        spec = match.group(1)
        level = len(spec) - len(spec.lstrip("."))
        prefix = _relative_prefix(package, level, spec.lstrip(".") or None)
        if prefix is None:
            continue
        names = [n.strip() for n in match.group(2).split(",") if n.strip()]
        for path in _from_targets(prefix, names, rules, exists):
            edges.append((idx, path))
    return edges


# ---------------------------------------------------------------------------
# TypeScript
# ---------------------------------------------------------------------------

def resolve_ts_specifier(
    specifier: str, rel_path: str, rules: RuleSet, exists: Callable[[str], bool]
) -> str | None:
    """Resolve a relative or aliased specifier to a project file, if any."""
    if specifier.startswith("."):
        base = posixpath.normpath(posixpath.join(posixpath.dirname(rel_path), specifier))
    else:
        for prefix, directory in rules.ts_aliases.items():
            if specifier.startswith(prefix):
                base = posixpath.normpath(directory.rstrip("/") + "/" + specifier[len(prefix):])
                break
        else:
            return None

    if exists(base) and posixpath.splitext(base)[1] in _TS_EXTENSIONS:
        return base
    for ext in _TS_EXTENSIONS:
        if exists(base + ext):
            return base + ext
    for ext in (".ts", ".tsx"):
        if exists(f"{base}/index{ext}"):
            return f"{base}/index{ext}"
    return None


def typescript_imports(
    content: str, rel_path: str, rules: RuleSet, exists: Callable[[str], bool]
) -> list[ImportEdge]:
    """Project-internal imports of a TypeScript file (relative and aliased)."""
    edges: list[ImportEdge] = []
    for pattern in (_RE_TS_FROM, _RE_TS_BARE, _RE_TS_REQUIRE):
        for match in pattern.finditer(content):
            line_start = content.rfind("\n", 0, match.start()) + 1
            if content[line_start:match.start()].lstrip().startswith(("//", "*", "/*")):
                continue
            path = resolve_ts_specifier(match.group(1), rel_path, rules, exists)
            if path:
                edges.append((_find_line(content, match.start()), path))
    return sorted(set(edges))
