# src/atlas_assets/core/graph/__init__.py
"""
Grafo de assets do Atlas Assets.

API pública:
    - resolve, compose_graphs → construção do AssetGraph imutável
    - AssetGraph              → consultas de nós, arestas e linhagem
    - AssetSelection, select  → Selection Engine
"""

from .graph import AssetGraph
from .resolver import compose_graphs, resolve
from .selection import AssetSelection, expand_to_steps, select

__all__ = ["AssetGraph", "AssetSelection", "compose_graphs", "expand_to_steps", "resolve", "select"]
