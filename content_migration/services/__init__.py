"""Service layer for the content migration pipeline."""

from .transformer import TransformEngine, Transformer
from .mappings import DEFAULT_MAPPING, default_mapping, load_mapping

__all__ = [
    "TransformEngine",
    "Transformer",
    "DEFAULT_MAPPING",
    "default_mapping",
    "load_mapping",
]
