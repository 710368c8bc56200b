"""Built-in layered architecture and forbidden-construct catalog.

Backend (Python, under ``backend/app``)::

    api -> handlers -> services -> repositories -> domain
    api -> middlewares -> domain

Frontend (TypeScript, under ``frontend/src``)::

    components -> client -> types
"""

from __future__ import annotations

from .models import (
    ForbiddenConstruct,
    Language,
    Layer,
    NamingConvention,
    RuleSet,
    Severity,
    SharedFile,
)


# ---------------------------------------------------------------------------
# Forbidden constructs
# ---------------------------------------------------------------------------

BUILTIN_FORBIDDEN: dict[str, ForbiddenConstruct] = {
    "global-state": ForbiddenConstruct(
        name="global-state",
        pattern=r"^\s*global\s+\w+",
        languages=[Language.PYTHON],
        description="'global' statement mutates module-level state.",
        suggestion="Pass state explicitly or hold it on an injected object.",
    ),
    "module-state": ForbiddenConstruct(
        name="module-state",
        pattern=r"^(?:export\s+)?(?:let|var)\s+\w+",
        languages=[Language.TYPESCRIPT],
        description="Mutable module-level variable.",
        suggestion="Use 'const', or keep the state inside a function or store.",
    ),
    "bare-except": ForbiddenConstruct(
        name="bare-except",
        pattern=r"^\s*except\s*:",
        languages=[Language.PYTHON],
        description="Bare 'except:' swallows every exception including SystemExit.",
        suggestion="Catch a specific exception type.",
    ),
    "print-call": ForbiddenConstruct(
        name="print-call",
        pattern=r"^\s*print\(",
        languages=[Language.PYTHON],
        severity=Severity.WARNING,
        description="print() call in application code.",
        suggestion="Use the logging module.",
    ),
    "console-log": ForbiddenConstruct(
        name="console-log",
        pattern=r"\bconsole\.log\(",
        languages=[Language.TYPESCRIPT],
        severity=Severity.WARNING,
        description="console.log() left in application code.",
        suggestion="Remove it or route it through a logger.",
    ),
    "any-type": ForbiddenConstruct(
        name="any-type",
        pattern=r":\s*any\b",
        languages=[Language.TYPESCRIPT],
        severity=Severity.WARNING,
        description="Explicit 'any' type annotation.",
        suggestion="Use a concrete type or 'unknown'.",
    ),
}

# Prose directive -> catalog entries it enables.
FORBID_DIRECTIVES: dict[str, list[str]] = {
    "no global state": ["global-state", "module-state"],
    "no global variables": ["global-state", "module-state"],
    "no bare except": ["bare-except"],
    "no print": ["print-call"],
    "no console.log": ["console-log"],
    "no any": ["any-type"],
}


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------

def default_layers() -> list[Layer]:
    """The prescribed backend and frontend layers, in declaration order."""
    return [
        Layer(
            name="domain",
            directory="backend/app/domain",
            language=Language.PYTHON,
            entity_template="python/domain.py.j2",
            shared=[
                SharedFile(stem="errors", template="python/errors.py.j2", symbol="NotFoundError"),
            ],
            aliases=["domain", "entity", "model"],
        ),
        Layer(
            name="repositories",
            directory="backend/app/repositories",
            language=Language.PYTHON,
            suffix="_repository",
            entity_template="python/repository.py.j2",
            depends_on=["domain"],
            aliases=["repository", "repo", "data access", "persistence"],
        ),
        Layer(
            name="services",
            directory="backend/app/services",
            language=Language.PYTHON,
            suffix="_service",
            entity_template="python/service.py.j2",
            depends_on=["repositories", "domain"],
            aliases=["service", "use case", "business logic"],
        ),
        Layer(
            name="handlers",
            directory="backend/app/handlers",
            language=Language.PYTHON,
            suffix="_handler",
            entity_template="python/handler.py.j2",
            depends_on=["services", "domain"],
            aliases=["handler", "controller"],
        ),
        Layer(
            name="middlewares",
            directory="backend/app/middlewares",
            language=Language.PYTHON,
            shared=[
                SharedFile(
                    stem="error_handler",
                    template="python/error_middleware.py.j2",
                    symbol="error_middleware",
                ),
                SharedFile(
                    stem="request_logger",
                    template="python/logging_middleware.py.j2",
                    symbol="logging_middleware",
                ),
            ],
            depends_on=["domain"],
            aliases=["middleware"],
        ),
        Layer(
            name="api",
            directory="backend/app/api",
            language=Language.PYTHON,
            shared=[
                SharedFile(
                    stem="router",
                    template="python/router.py.j2",
                    symbol="build_routes",
                    imports_entities=True,
                ),
            ],
            depends_on=["handlers", "middlewares", "domain"],
            aliases=["api", "router", "route", "endpoint"],
        ),
        Layer(
            name="types",
            directory="frontend/src/types",
            language=Language.TYPESCRIPT,
            entity_template="typescript/types.ts.j2",
            aliases=["type", "frontend type", "interface"],
        ),
        Layer(
            name="client",
            directory="frontend/src/api",
            language=Language.TYPESCRIPT,
            suffix="Api",
            entity_template="typescript/client.ts.j2",
            depends_on=["types"],
            aliases=["client", "frontend api", "api client"],
        ),
        Layer(
            name="components",
            directory="frontend/src/components",
            language=Language.TYPESCRIPT,
            extension=".tsx",
            naming=NamingConvention.PASCAL_CASE,
            suffix="View",
            entity_template="typescript/component.tsx.j2",
            depends_on=["client", "types"],
            aliases=["component", "view", "page", "ui"],
        ),
    ]


def default_rules() -> RuleSet:
    """Build the default rule set with every built-in forbidden construct."""
    return RuleSet(
        layers=default_layers(),
        forbidden=[c.model_copy(deep=True) for c in BUILTIN_FORBIDDEN.values()],
    )
