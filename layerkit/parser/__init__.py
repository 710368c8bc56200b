"""Feature descriptor parser.

Parses a markdown or YAML/JSON feature list into a normalised
``FeatureSet`` of entities, fields and operations.

Usage::

    from layerkit.parser import parse_features

    features = await parse_features("docs/features.md")
    print(features.entities)
    print(features.ambiguities)
"""

from layerkit.parser.extractor import (
    DescriptorError,
    parse_feature_mapping,
    parse_feature_markdown,
    parse_features,
)
from layerkit.parser.models import (
    Entity,
    FeatureSet,
    FieldSpec,
    HTTPMethod,
    Operation,
    OperationKind,
    Priority,
)

__all__ = [
    "DescriptorError",
    "Entity",
    "FeatureSet",
    "FieldSpec",
    "HTTPMethod",
    "Operation",
    "OperationKind",
    "Priority",
    "parse_feature_mapping",
    "parse_feature_markdown",
    "parse_features",
]
