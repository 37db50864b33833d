# src/atlas_assets/core/graph/selection.py
"""
Selection Engine.

Avalia consultas de seleção (já estruturadas; a gramática textual é
externa) contra um `AssetGraph` e retorna um conjunto de chaves.

Consultas disponíveis:
    - AssetSelection.keys(...), .groups(...), .all()
    - fechamentos .upstream(depth=None, include_self=True) e
      .downstream(depth=None, include_self=True)
    - álgebra de conjuntos: `|`, `&`, `-`

Invariantes:
    - O resultado é sempre um subconjunto das chaves do grafo
    - Chaves desconhecidas → UnknownDependency (fatal apenas à seleção)
    - Selecionar qualquer slot de um Step não-subsettable expande a
      seleção para todos os slots desse Step
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple, Union

from atlas_assets.core.assets.keys import AssetKey, CoercibleToAssetKey, coerce_keys

from .graph import AssetGraph, unknown_key_error


class AssetSelection(ABC):
    """Base das consultas de seleção (composáveis e imutáveis)."""

    @abstractmethod
    def resolve(self, graph: AssetGraph) -> FrozenSet[AssetKey]:
        ...

    # ------------------------------------------------------------------
    # Construtores
    # ------------------------------------------------------------------
    @staticmethod
    def keys(*keys: CoercibleToAssetKey) -> "AssetSelection":
        return KeysSelection(coerce_keys(keys))

    @staticmethod
    def groups(*groups: str) -> "AssetSelection":
        return GroupsSelection(tuple(groups))

    @staticmethod
    def all() -> "AssetSelection":
        return AllSelection()

    # ------------------------------------------------------------------
    # Fechamentos
    # ------------------------------------------------------------------
    def upstream(self, depth: Optional[int] = None, include_self: bool = True) -> "AssetSelection":
        return UpstreamSelection(self, depth, include_self)

    def downstream(self, depth: Optional[int] = None, include_self: bool = True) -> "AssetSelection":
        return DownstreamSelection(self, depth, include_self)

    # ------------------------------------------------------------------
    # Álgebra
    # ------------------------------------------------------------------
    def __or__(self, other: "AssetSelection") -> "AssetSelection":
        return OrSelection(self, other)

    def __and__(self, other: "AssetSelection") -> "AssetSelection":
        return AndSelection(self, other)

    def __sub__(self, other: "AssetSelection") -> "AssetSelection":
        return SubtractSelection(self, other)


@dataclass(frozen=True)
class KeysSelection(AssetSelection):
    selected: Tuple[AssetKey, ...]

    def resolve(self, graph: AssetGraph) -> FrozenSet[AssetKey]:
        for key in self.selected:
            if not graph.has_node(key):
                raise unknown_key_error(key, context="selection")
        return frozenset(self.selected)


@dataclass(frozen=True)
class GroupsSelection(AssetSelection):
    selected: Tuple[str, ...]

    def resolve(self, graph: AssetGraph) -> FrozenSet[AssetKey]:
        out: FrozenSet[AssetKey] = frozenset()
        for group in self.selected:
            out |= graph.keys_in_group(group)
        return out


@dataclass(frozen=True)
class AllSelection(AssetSelection):
    def resolve(self, graph: AssetGraph) -> FrozenSet[AssetKey]:
        return graph.keys


@dataclass(frozen=True)
class UpstreamSelection(AssetSelection):
    child: AssetSelection
    depth: Optional[int] = None
    include_self: bool = True

    def resolve(self, graph: AssetGraph) -> FrozenSet[AssetKey]:
        base = self.child.resolve(graph)
        out = set(base) if self.include_self else set()
        for key in base:
            out |= graph.upstream(key, self.depth)
        return frozenset(out)


@dataclass(frozen=True)
class DownstreamSelection(AssetSelection):
    child: AssetSelection
    depth: Optional[int] = None
    include_self: bool = True

    def resolve(self, graph: AssetGraph) -> FrozenSet[AssetKey]:
        base = self.child.resolve(graph)
        out = set(base) if self.include_self else set()
        for key in base:
            out |= graph.downstream(key, self.depth)
        return frozenset(out)


@dataclass(frozen=True)
class OrSelection(AssetSelection):
    left: AssetSelection
    right: AssetSelection

    def resolve(self, graph: AssetGraph) -> FrozenSet[AssetKey]:
        return self.left.resolve(graph) | self.right.resolve(graph)


@dataclass(frozen=True)
class AndSelection(AssetSelection):
    left: AssetSelection
    right: AssetSelection

    def resolve(self, graph: AssetGraph) -> FrozenSet[AssetKey]:
        return self.left.resolve(graph) & self.right.resolve(graph)


@dataclass(frozen=True)
class SubtractSelection(AssetSelection):
    left: AssetSelection
    right: AssetSelection

    def resolve(self, graph: AssetGraph) -> FrozenSet[AssetKey]:
        return self.left.resolve(graph) - self.right.resolve(graph)


SelectionQuery = Union[AssetSelection, Iterable[CoercibleToAssetKey]]


def expand_to_steps(graph: AssetGraph, keys: Iterable[AssetKey]) -> FrozenSet[AssetKey]:
    """Expande chaves de Steps não-subsettable para todos os slots do Step."""
    out = set(keys)
    for key in list(out):
        step = graph.step_for(key)
        if step is not None and not step.subsettable:
            out.update(step.output_keys)
    return frozenset(out)


def select(graph: AssetGraph, query: SelectionQuery) -> FrozenSet[AssetKey]:
    """
    Avalia `query` contra `graph`.

    `query` pode ser um `AssetSelection` ou um iterável de chaves
    (AssetKey, "a/b" ou sequência de segmentos).
    """
    if not isinstance(query, AssetSelection):
        if isinstance(query, (str, AssetKey)):
            query = [query]
        query = AssetSelection.keys(*query)
    return expand_to_steps(graph, query.resolve(graph))
