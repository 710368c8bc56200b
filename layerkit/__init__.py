"""layerkit -- rule-driven scaffolding and validation for layered projects."""

__version__ = "0.1.0"
