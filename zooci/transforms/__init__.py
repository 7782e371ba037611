from .builtin import BUILTIN_TRANSFORMS, Transform
from .registry import (
    BoundTransform,
    TransformRegistry,
    bind_arguments,
    default_registry,
    parse_reference,
    setter_name,
    snake_to_camel,
)

__all__ = [
    "BUILTIN_TRANSFORMS",
    "Transform",
    "BoundTransform",
    "TransformRegistry",
    "bind_arguments",
    "default_registry",
    "parse_reference",
    "setter_name",
    "snake_to_camel",
]
