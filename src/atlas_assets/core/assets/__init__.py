# src/atlas_assets/core/assets/__init__.py
"""
Modelo de assets do Atlas Assets.

API pública:
    - AssetKey, coerce_keys → identificador canônico de assets
    - InputSlot, OutputSlot, SourceAsset → declarações
    - DependencyKind, DependencyEdge, AssetNode → estruturas resolvidas
"""

from .definitions import (
    DEFAULT_GROUP,
    DEFAULT_IO_MANAGER_KEY,
    AssetNode,
    DependencyEdge,
    DependencyKind,
    InputSlot,
    OutputSlot,
    SourceAsset,
    input_slot,
    output_slot,
)
from .keys import AssetKey, CoercibleToAssetKey, coerce_keys, format_keys

__all__ = [
    "DEFAULT_GROUP",
    "DEFAULT_IO_MANAGER_KEY",
    "AssetKey",
    "AssetNode",
    "CoercibleToAssetKey",
    "DependencyEdge",
    "DependencyKind",
    "InputSlot",
    "OutputSlot",
    "SourceAsset",
    "coerce_keys",
    "format_keys",
    "input_slot",
    "output_slot",
]
