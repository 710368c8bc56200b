"""Feature descriptor parser.

Parses a human-authored feature list -- markdown or a YAML/JSON mapping --
into a normalised ``FeatureSet``. Uses pure regex and markdown structure
parsing -- no AI calls.

Markdown shape::

    # Project: Shop

    ## Product (P0)
    - Fields: name: str, price: float, tags: list[str], summary?
    - Operations: crud, archive

    ## Order
    - Fields:
      - product_id
      - quantity: int
    - Create orders for a product
    - Cancel an order
"""

from __future__ import annotations

import asyncio
import json
import keyword
import re
from pathlib import Path
from typing import Any, Iterator

import yaml
from pydantic import ValidationError

from layerkit.utils import kebab_case, pascal_case, pluralize, singularize, snake_case, split_words

from .models import (
    FIELD_TYPES,
    Entity,
    FeatureSet,
    FieldSpec,
    HTTPMethod,
    Operation,
    OperationKind,
    Priority,
)


class DescriptorError(ValueError):
    """Raised when a feature descriptor is malformed."""


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_PRIORITY_PATTERN = re.compile(r"\(P([012])\)", re.IGNORECASE)
_HEADER_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)
_BULLET_PATTERN = re.compile(r"^(\s*)[-*+]\s+(.+)$")
_LABEL_PATTERN = re.compile(r"^\**([A-Za-z ]+?)\**\s*:\s*(.*)$")
_NOTE_PATTERN = re.compile(r"\(([^)]*)\)")
_IDENTIFIER = re.compile(r"[a-z][a-z0-9_]*")
_TITLE_NOISE = re.compile(
    r"\b(crud|management|module|entity)\b", re.IGNORECASE
)

# Members the generated entity, service, handler and client already define.
_RESERVED_FIELD_NAMES = {"to_dict"}
_RESERVED_OPERATION_NAMES = {
    "create", "get", "list", "list_all", "update", "delete", "remove",
    "routes", "to_dict", "request", "base_url",
}

_FIELD_LABELS = {"fields", "field", "attributes", "properties", "columns"}
_OPERATION_LABELS = {"operations", "operation", "actions", "endpoints"}

_META_SECTIONS = {
    "overview", "introduction", "summary", "description", "background", "goals",
    "non-goals", "non goals", "out of scope", "notes", "open questions", "glossary",
    "rules", "conventions", "architecture", "requirements", "appendix", "references",
    "tech stack", "constraints", "assumptions",
}
_GROUP_SECTIONS = {"entities", "features", "data model", "models", "resources", "domain"}

_OPERATION_SYNONYMS: dict[str, OperationKind] = {
    "create": OperationKind.CREATE,
    "add": OperationKind.CREATE,
    "new": OperationKind.CREATE,
    "register": OperationKind.CREATE,
    "get": OperationKind.GET,
    "read": OperationKind.GET,
    "view": OperationKind.GET,
    "show": OperationKind.GET,
    "retrieve": OperationKind.GET,
    "fetch": OperationKind.GET,
    "detail": OperationKind.GET,
    "list": OperationKind.LIST,
    "browse": OperationKind.LIST,
    "index": OperationKind.LIST,
    "search": OperationKind.LIST,
    "filter": OperationKind.LIST,
    "update": OperationKind.UPDATE,
    "edit": OperationKind.UPDATE,
    "modify": OperationKind.UPDATE,
    "change": OperationKind.UPDATE,
    "rename": OperationKind.UPDATE,
    "delete": OperationKind.DELETE,
    "remove": OperationKind.DELETE,
    "destroy": OperationKind.DELETE,
}
_CUSTOM_VERBS = {
    "archive", "approve", "assign", "cancel", "close", "complete", "duplicate",
    "export", "mark", "publish", "reject", "reopen", "restore", "share", "ship",
    "submit", "toggle", "unpublish",
}
_KIND_ORDER = [
    OperationKind.CREATE, OperationKind.GET, OperationKind.LIST,
    OperationKind.UPDATE, OperationKind.DELETE,
]
_KIND_DEFAULTS: dict[OperationKind, tuple[HTTPMethod, str]] = {
    OperationKind.CREATE: (HTTPMethod.POST, ""),
    OperationKind.GET: (HTTPMethod.GET, "/{id}"),
    OperationKind.LIST: (HTTPMethod.GET, ""),
    OperationKind.UPDATE: (HTTPMethod.PUT, "/{id}"),
    OperationKind.DELETE: (HTTPMethod.DELETE, "/{id}"),
}

_TYPE_SYNONYMS: dict[str, str] = {
    "str": "str", "string": "str", "text": "str", "email": "str", "url": "str",
    "int": "int", "integer": "int", "count": "int",
    "float": "float", "number": "float", "decimal": "float", "double": "float", "money": "float",
    "bool": "bool", "boolean": "bool", "flag": "bool",
    "datetime": "datetime", "timestamp": "datetime", "time": "datetime",
    "date": "date",
    "uuid": "uuid", "id": "uuid", "objectid": "uuid", "ref": "uuid", "reference": "uuid",
    "dict": "dict", "object": "dict", "json": "dict", "map": "dict", "mapping": "dict",
    "list": "list[str]", "array": "list[str]", "list[str]": "list[str]",
    "string[]": "list[str]", "list[string]": "list[str]", "tags": "list[str]",
}

_FIELD_TYPE_MAP: dict[str, str] = {
    "title": "str", "name": "str", "description": "str", "content": "str",
    "body": "str", "email": "str", "url": "str", "status": "str",
    "category": "str", "priority": "str", "notes": "str", "phone": "str",
    "price": "float", "amount": "float", "score": "float", "rating": "float",
    "quantity": "int", "count": "int", "position": "int", "size": "int",
    "tags": "list[str]", "labels": "list[str]", "categories": "list[str]",
    "metadata": "dict", "settings": "dict",
    "completed": "bool", "archived": "bool", "enabled": "bool",
}

# Field names recognised in prose when no explicit field list is given.
_PROSE_FIELD_PATTERN = re.compile(
    r"\b(title|name|description|email|status|priority|due[_ ]date|start[_ ]date|"
    r"end[_ ]date|category|content|body|url|phone|address|price|amount|quantity|"
    r"rating|score|tags|notes|completed|archived)\b",
    re.IGNORECASE,
)

_AMBIGUITY_PHRASES = [
    "tbd", "to be decided", "to be determined", "not sure", "maybe",
    "possibly", "or similar", "etc.", "and more", "as needed",
    "something like", "some kind of", "somehow", "figure out",
    "placeholder", "might need", "could be",
]


# ---------------------------------------------------------------------------
# Section Parsing
# ---------------------------------------------------------------------------

class _Section:
    """A parsed markdown section with its header level, title, and body."""

    __slots__ = ("level", "title", "body", "children")

    def __init__(self, level: int, title: str, body: str) -> None:
        self.level = level
        self.title = title
        self.body = body
        self.children: list[_Section] = []

    def __repr__(self) -> str:
        return f"_Section(level={self.level}, title={self.title!r})"


def _parse_sections(markdown: str) -> list[_Section]:
    """Parse markdown into a tree of sections based on header levels."""
    sections: list[_Section] = []
    current: _Section | None = None
    body_lines: list[str] = []
    in_fence = False

    def _flush() -> None:
        nonlocal body_lines
        if current is not None:
            current.body = "\n".join(body_lines).strip("\n")
            sections.append(current)
        body_lines = []

    for line in markdown.splitlines():
        if line.lstrip().startswith(("```", "~~~")):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        header_match = _HEADER_PATTERN.match(line)
        if header_match:
            _flush()
            current = _Section(
                level=len(header_match.group(1)),
                title=header_match.group(2).strip(),
                body="",
            )
        else:
            body_lines.append(line)

    _flush()

    root_sections: list[_Section] = []
    stack: list[_Section] = []
    for section in sections:
        while stack and stack[-1].level >= section.level:
            stack.pop()
        if stack:
            stack[-1].children.append(section)
        else:
            root_sections.append(section)
        stack.append(section)

    return root_sections


def _title_key(title: str) -> str:
    cleaned = _PRIORITY_PATTERN.sub("", title)
    cleaned = re.sub(r"[^a-z0-9 -]+", " ", cleaned.lower())
    return " ".join(cleaned.split())


def _entity_sections(sections: list[_Section]) -> Iterator[_Section]:
    """Yield the sections that describe entities, skipping meta sections."""
    for section in sections:
        key = _title_key(section.title)
        if section.level == 1 or key in _GROUP_SECTIONS:
            yield from _entity_sections(section.children)
        elif key in _META_SECTIONS:
            continue
        else:
            yield section


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _extract_project_name(sections: list[_Section]) -> str:
    for section in sections:
        if section.level == 1:
            title = re.sub(r"^\s*project\s*:\s*", "", section.title, flags=re.IGNORECASE)
            return kebab_case(title) or "project"
    return "project"


def _extract_description(body: str) -> str:
    """First paragraph of non-bullet text in a section body."""
    paragraph: list[str] = []
    for line in body.splitlines():
        stripped = line.strip()
        if not stripped:
            if paragraph:
                break
            continue
        if _BULLET_PATTERN.match(line):
            if paragraph:
                break
            continue
        paragraph.append(stripped)
    return " ".join(paragraph)


def _extract_priority(text: str) -> Priority:
    """Priority from '(P0)' markers or keywords. Defaults to P1."""
    match = _PRIORITY_PATTERN.search(text)
    if match:
        return [Priority.P0, Priority.P1, Priority.P2][int(match.group(1))]
    lower = text.lower()
    if any(kw in lower for kw in ["must have", "critical", "essential", "core"]):
        return Priority.P0
    if any(kw in lower for kw in ["nice to have", "optional", "bonus", "stretch"]):
        return Priority.P2
    return Priority.P1


def _entity_name(title: str) -> str:
    """PascalCase singular entity name from a section title.

    Examples:
        'Products (P0)'         -> 'Product'
        'Order Line Management' -> 'OrderLine'
    """
    cleaned = _PRIORITY_PATTERN.sub("", title)
    cleaned = _TITLE_NOISE.sub(" ", cleaned)
    words = split_words(cleaned)
    if not words:
        return ""
    words[-1] = singularize(words[-1])
    return pascal_case(" ".join(words))


def _infer_field_type(name: str) -> str:
    """Guess a canonical type from a field name."""
    if name in _FIELD_TYPE_MAP:
        return _FIELD_TYPE_MAP[name]
    if name.endswith("_at"):
        return "datetime"
    if name.endswith(("_on", "_date")) or name == "date":
        return "date"
    if name.startswith(("is_", "has_", "can_")):
        return "bool"
    if name.endswith("_id") or name == "id":
        return "uuid"
    if name.endswith(("_count", "_number")):
        return "int"
    return "str"


def _normalise_type(raw: str, field_name: str) -> tuple[str, bool]:
    """Map a declared type to a canonical one.

    Returns:
        ``(canonical_type, recognised)`` -- unrecognised types fall back to ``str``.
    """
    hint = raw.strip().strip("`").lower().replace(" ", "")
    if not hint:
        return _infer_field_type(field_name), True
    if hint in FIELD_TYPES:
        return hint, True
    if hint in _TYPE_SYNONYMS:
        return _TYPE_SYNONYMS[hint], True
    if hint.startswith(("list", "array")) or hint.endswith("[]"):
        return "list[str]", True
    return "str", False


def _parse_field_item(item: str, context: str, ambiguities: list[str]) -> FieldSpec | None:
    """Parse ``"name: type"``, ``"name?"`` or ``"name: type (optional)"``."""
    text = item.strip().strip("`").strip()
    optional = False
    for note in _NOTE_PATTERN.findall(text):
        if "optional" in note.lower():
            optional = True
    text = _NOTE_PATTERN.sub("", text).strip()

    name, _, type_hint = text.partition(":")
    name, type_hint = name.strip().strip("`"), type_hint.strip().strip("`")
    if name.endswith("?"):
        optional, name = True, name[:-1]
    if type_hint.endswith("?"):
        optional, type_hint = True, type_hint[:-1]

    field_name = snake_case(name)
    if not _IDENTIFIER.fullmatch(field_name):
        ambiguities.append(f"{context}: ignored field '{item.strip()}' (not a valid name)")
        return None

    field_type, recognised = _normalise_type(type_hint, field_name)
    if not recognised:
        ambiguities.append(
            f"{context}: unknown type '{type_hint}' for field '{field_name}'; using str"
        )
    return FieldSpec(name=field_name, type=field_type, required=not optional)


def _make_operation(kind: OperationKind, name: str = "", method: HTTPMethod | None = None) -> Operation:
    if kind is OperationKind.CUSTOM:
        op_name = snake_case(name)
        return Operation(
            name=op_name,
            kind=kind,
            method=method or HTTPMethod.PATCH,
            path=f"/{{id}}/{kebab_case(op_name)}",
        )
    default_method, path = _KIND_DEFAULTS[kind]
    return Operation(name=kind.value, kind=kind, method=method or default_method, path=path)


def _parse_operation_items(item: str) -> list[Operation]:
    """Parse an explicit operation name such as ``"archive (POST)"`` or ``"crud"``."""
    method: HTTPMethod | None = None
    for note in _NOTE_PATTERN.findall(item):
        upper = note.strip().upper()
        if upper in HTTPMethod.__members__:
            method = HTTPMethod(upper)
    name = _NOTE_PATTERN.sub("", item).strip().strip("`").strip().lower()
    if not name:
        return []
    if name == "crud":
        return [_make_operation(kind) for kind in _KIND_ORDER]
    kind = _OPERATION_SYNONYMS.get(name)
    if kind is not None:
        return [_make_operation(kind, method=method)]
    return [_make_operation(OperationKind.CUSTOM, name, method)]


def _infer_operations(bullet: str) -> list[Operation]:
    """Infer operations from a prose bullet such as 'Create, edit and delete tasks'."""
    lower = bullet.lower()
    words = re.findall(r"[a-z]+", lower)
    operations: list[Operation] = []
    kinds: set[OperationKind] = set()
    for word in words:
        kind = _OPERATION_SYNONYMS.get(word)
        if kind is not None and kind not in kinds:
            kinds.add(kind)
            operations.append(_make_operation(kind))
    if words and words[0] in _CUSTOM_VERBS:
        operations.append(_make_operation(OperationKind.CUSTOM, words[0]))
    return operations


def _infer_fields_from_prose(bullets: list[str]) -> list[FieldSpec]:
    fields: list[FieldSpec] = []
    seen: set[str] = set()
    for bullet in bullets:
        for match in _PROSE_FIELD_PATTERN.finditer(bullet):
            name = snake_case(match.group(1))
            if name not in seen:
                seen.add(name)
                fields.append(FieldSpec(name=name, type=_infer_field_type(name)))
    return fields


def _detect_ambiguities(text: str) -> list[str]:
    """Flag ambiguous language in the descriptor."""
    ambiguities: list[str] = []
    for line in text.splitlines():
        lower = line.lower()
        for phrase in _AMBIGUITY_PHRASES:
            if re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", lower):
                cleaned = line.strip().lstrip("-*+# ").strip()
                if cleaned:
                    ambiguities.append(
                        f"Ambiguous requirement: \"{cleaned}\" (contains '{phrase}')"
                    )
                break
    return ambiguities


# ---------------------------------------------------------------------------
# Entity extraction (markdown)
# ---------------------------------------------------------------------------

def _build_entity(section: _Section, ambiguities: list[str]) -> dict[str, Any]:
    """Collect the raw parts of one entity section."""
    name = _entity_name(section.title)
    context = f"Entity '{name or section.title}'"
    fields: list[FieldSpec] = []
    operations: list[Operation] = []
    prose: list[str] = []

    def _consume(body: str, default_block: str | None = None) -> None:
        block = default_block
        block_indent = -1
        for line in body.splitlines():
            match = _BULLET_PATTERN.match(line)
            if not match:
                continue
            indent, content = len(match.group(1).expandtabs(4)), match.group(2).strip()
            if block is not None and indent > block_indent:
                _add_block_items(block, content)
                continue

            block, block_indent = default_block, -1
            if default_block is not None:
                _add_block_items(default_block, content)
                continue

            label = _LABEL_PATTERN.match(content)
            if label and label.group(1).strip().lower() in _FIELD_LABELS | _OPERATION_LABELS:
                block = "fields" if label.group(1).strip().lower() in _FIELD_LABELS else "operations"
                block_indent = indent
                if label.group(2).strip():
                    _add_block_items(block, label.group(2))
            else:
                prose.append(content)

    def _add_block_items(block: str, content: str) -> None:
        for item in content.split(","):
            if not item.strip():
                continue
            if block == "fields":
                field = _parse_field_item(item, context, ambiguities)
                if field is not None:
                    fields.append(field)
            else:
                operations.extend(_parse_operation_items(item))

    _consume(section.body)
    for child in section.children:
        key = _title_key(child.title)
        if key in _FIELD_LABELS:
            _consume(child.body, "fields")
        elif key in _OPERATION_LABELS:
            _consume(child.body, "operations")
        else:
            _consume(child.body)

    explicit_fields = bool(fields)
    if not explicit_fields:
        fields = _infer_fields_from_prose(prose)
        if fields:
            ambiguities.append(
                f"{context}: no field list; inferred "
                f"{', '.join(f.name for f in fields)} from the description"
            )

    if not operations:
        for bullet in prose:
            operations.extend(_infer_operations(bullet))

    description = _extract_description(section.body)
    return {
        "name": name,
        "title": section.title,
        "description": description,
        "priority": _extract_priority(section.title + " " + description),
        "fields": fields,
        "operations": operations,
    }


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def _default_description(op: Operation, entity: str, plural: str) -> str:
    human = " ".join(split_words(entity))
    human_plural = plural.replace("_", " ")
    return {
        OperationKind.CREATE: f"Create a {human}",
        OperationKind.GET: f"Get a {human} by id",
        OperationKind.LIST: f"List {human_plural}",
        OperationKind.UPDATE: f"Update a {human}",
        OperationKind.DELETE: f"Delete a {human}",
    }.get(op.kind, f"{op.name.replace('_', ' ').capitalize()} a {human}")


def _check_member_name(name: str, what: str, context: str, reserved: set[str]) -> None:
    """Reject names that cannot become a Python member of the generated code."""
    if not name.isidentifier() or keyword.iskeyword(name):
        raise DescriptorError(f"{context}: invalid {what} name '{name}'")
    if name in reserved:
        raise DescriptorError(f"{context}: {what} name '{name}' clashes with a generated member")


def _normalise(
    project_name: str,
    description: str,
    raw_entities: list[dict[str, Any]],
    ambiguities: list[str],
) -> FeatureSet:
    merged: dict[str, dict[str, Any]] = {}
    for raw in raw_entities:
        name = raw["name"]
        if not name or not name[0].isalpha():
            raise DescriptorError(f"Invalid entity name: {raw.get('title', name)!r}")
        if name in merged:
            ambiguities.append(f"Entity '{name}' is defined more than once; definitions merged")
            target = merged[name]
            target["fields"].extend(raw["fields"])
            target["operations"].extend(raw["operations"])
            if not target["description"]:
                target["description"] = raw["description"]
        else:
            merged[name] = {**raw, "fields": list(raw["fields"]), "operations": list(raw["operations"])}

    entity_names = set(merged)
    entities: list[Entity] = []
    for name, raw in merged.items():
        context = f"Entity '{name}'"

        fields: list[FieldSpec] = []
        seen_fields: set[str] = set()
        for field in raw["fields"]:
            _check_member_name(field.name, "field", context, _RESERVED_FIELD_NAMES)
            if field.name in seen_fields:
                continue
            seen_fields.add(field.name)
            reference = None
            if field.name.endswith("_id") and field.name != "id":
                target = pascal_case(field.name[: -len("_id")])
                if target in entity_names:
                    reference = target
                else:
                    ambiguities.append(
                        f"{context}: field '{field.name}' looks like a reference but "
                        f"no entity '{target}' is defined"
                    )
            fields.append(field.model_copy(update={"reference": reference}))
        if not fields:
            ambiguities.append(f"{context} has no fields defined")

        operations = raw["operations"]
        if not operations:
            ambiguities.append(f"{context} has no operations; defaulting to CRUD")
            operations = [_make_operation(kind) for kind in _KIND_ORDER]

        plural = snake_case(raw.get("plural") or "") or _plural_of(name)
        ordered: list[Operation] = []
        seen_ops: set[str] = set()
        standard = sorted(
            (op for op in operations if op.kind is not OperationKind.CUSTOM),
            key=lambda op: _KIND_ORDER.index(op.kind),
        )
        custom = [op for op in operations if op.kind is OperationKind.CUSTOM]
        for op in standard + custom:
            if op.kind is OperationKind.CUSTOM:
                _check_member_name(op.name, "operation", context, _RESERVED_OPERATION_NAMES)
            if op.name in seen_ops:
                continue
            seen_ops.add(op.name)
            if not op.description:
                op = op.model_copy(update={"description": _default_description(op, name, plural)})
            ordered.append(op)

        entities.append(Entity(
            name=name,
            plural=plural,
            description=raw["description"],
            priority=raw["priority"],
            fields=fields,
            operations=ordered,
        ))

    deduped: list[str] = []
    for note in ambiguities:
        if note not in deduped:
            deduped.append(note)

    return FeatureSet(
        project_name=project_name,
        description=description,
        entities=entities,
        ambiguities=deduped,
    )


def _plural_of(entity_name: str) -> str:
    words = split_words(entity_name)
    words[-1] = pluralize(words[-1])
    return "_".join(words)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_feature_markdown(text: str) -> FeatureSet:
    """Parse a markdown feature list into a normalised ``FeatureSet``.

    Raises:
        DescriptorError: If an entity heading does not yield a valid name.
    """
    sections = _parse_sections(text)
    ambiguities = _detect_ambiguities(text)

    project_name = _extract_project_name(sections)
    description = ""
    for section in sections:
        if section.level == 1:
            description = _extract_description(section.body)
            break

    raw_entities = [_build_entity(s, ambiguities) for s in _entity_sections(sections)]
    if not raw_entities:
        ambiguities.append("No entities found in the feature descriptor")

    return _normalise(project_name, description, raw_entities, ambiguities)


def parse_feature_mapping(data: dict[str, Any]) -> FeatureSet:
    """Parse a YAML/JSON feature mapping into a normalised ``FeatureSet``.

    Accepted shape::

        project: shop
        description: A tiny shop
        entities:
          - name: Product
            fields: {name: str, price: float, summary: "str?"}
            operations: [crud, archive]

    ``fields`` may also be a list of ``"name: type"`` strings or field
    mappings, and ``operations`` a list of names or operation mappings.

    Raises:
        DescriptorError: On a malformed mapping.
    """
    if not isinstance(data, dict):
        raise DescriptorError("Feature descriptor must be a mapping")

    ambiguities: list[str] = [str(a) for a in data.get("ambiguities", [])]
    project_name = kebab_case(str(data.get("project") or data.get("project_name") or "")) or "project"
    description = str(data.get("description") or "")

    raw_entities: list[dict[str, Any]] = []
    entries = data.get("entities") or []
    if not isinstance(entries, list):
        raise DescriptorError("'entities' must be a list")

    for entry in entries:
        if isinstance(entry, str):
            entry = {"name": entry}
        if not isinstance(entry, dict) or "name" not in entry:
            raise DescriptorError(f"Entity entries need a 'name': {entry!r}")
        name = _entity_name(str(entry["name"]))
        context = f"Entity '{name or entry['name']}'"

        fields: list[FieldSpec] = []
        raw_fields = entry.get("fields") or []
        if isinstance(raw_fields, dict):
            raw_fields = [f"{k}: {v}" if v else str(k) for k, v in raw_fields.items()]
        if not isinstance(raw_fields, list):
            raise DescriptorError(f"{context}: 'fields' must be a list or mapping")
        for item in raw_fields:
            if isinstance(item, dict):
                try:
                    spec = FieldSpec.model_validate(item)
                except ValidationError as exc:
                    raise DescriptorError(f"{context}: invalid field {item!r}") from exc
                field_type, recognised = _normalise_type(spec.type, snake_case(spec.name))
                if not recognised:
                    ambiguities.append(
                        f"{context}: unknown type '{spec.type}' for field '{spec.name}'; using str"
                    )
                fields.append(spec.model_copy(update={"name": snake_case(spec.name), "type": field_type}))
            else:
                field = _parse_field_item(str(item), context, ambiguities)
                if field is not None:
                    fields.append(field)

        operations: list[Operation] = []
        raw_ops = entry.get("operations") or []
        if not isinstance(raw_ops, list):
            raise DescriptorError(f"{context}: 'operations' must be a list")
        for item in raw_ops:
            if isinstance(item, dict):
                if "kind" in item:
                    try:
                        operations.append(Operation.model_validate(item))
                    except ValidationError as exc:
                        raise DescriptorError(f"{context}: invalid operation {item!r}") from exc
                else:
                    parsed = _parse_operation_items(str(item.get("name", "")))
                    operations.extend(
                        op.model_copy(update={k: v for k, v in item.items() if k in ("path", "description")})
                        for op in parsed
                    )
            else:
                operations.extend(_parse_operation_items(str(item)))

        priority = entry.get("priority") or Priority.P1.value
        try:
            priority = Priority(str(priority).upper())
        except ValueError as exc:
            raise DescriptorError(f"{context}: invalid priority {priority!r}") from exc

        raw_entities.append({
            "name": name,
            "title": str(entry["name"]),
            "plural": entry.get("plural"),
            "description": str(entry.get("description") or ""),
            "priority": priority,
            "fields": fields,
            "operations": operations,
        })

    return _normalise(project_name, description, raw_entities, ambiguities)


async def parse_features(path: str | Path) -> FeatureSet:
    """Read and parse a feature descriptor file.

    Dispatches on suffix: ``.md``/``.markdown``/``.txt`` are parsed as
    markdown, ``.yaml``/``.yml``/``.json`` as mappings.

    Raises:
        FileNotFoundError: If the file does not exist.
        DescriptorError: If the file is empty, of an unsupported type, or
            malformed.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Feature descriptor not found: {path}")

    suffix = file_path.suffix.lower()
    if suffix not in (".md", ".markdown", ".txt", ".yaml", ".yml", ".json"):
        raise DescriptorError(f"Unsupported feature descriptor type: {file_path.suffix or '(none)'}")

    text = await asyncio.to_thread(file_path.read_text, "utf-8")
    if not text.strip():
        raise DescriptorError(f"Feature descriptor is empty: {path}")

    if suffix in (".md", ".markdown", ".txt"):
        return parse_feature_markdown(text)

    try:
        data = yaml.safe_load(text) if suffix in (".yaml", ".yml") else json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise DescriptorError(f"Malformed feature descriptor {file_path.name}: {exc}") from exc
    return parse_feature_mapping(data)
