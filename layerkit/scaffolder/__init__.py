"""Project scaffolder.

Renders a layout plan to disk from Jinja2 templates.

Usage::

    from layerkit.scaffolder import ProjectEmitter

    result = await ProjectEmitter().emit(plan, features, "output/shop")
    print(result.created, result.unchanged)
"""

from layerkit.scaffolder.emitter import EmitResult, ProjectEmitter, WriteOutcome
from layerkit.scaffolder.templates import TemplateRenderer

__all__ = [
    "EmitResult",
    "ProjectEmitter",
    "TemplateRenderer",
    "WriteOutcome",
]
