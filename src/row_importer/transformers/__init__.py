"""Row transformers."""

from . import callbacks
from .base_transformer import (
    ConcatenateOptions,
    IdentityTransformer,
    RowTransformer,
    TransformCallback,
    TransformRule,
)
from .standard import StandardTransformer

__all__ = [
    "ConcatenateOptions",
    "IdentityTransformer",
    "RowTransformer",
    "StandardTransformer",
    "TransformCallback",
    "TransformRule",
    "callbacks",
]
