# src/atlas_assets/core/graph/graph.py
"""
Grafo de assets resolvido e imutável.

Um `AssetGraph` é produzido exclusivamente por `resolve` e nunca é
mutado: um novo conjunto de declarações produz um novo grafo.

Consultas oferecidas:
    - nós, arestas, Steps resolvidos e sources
    - vizinhança direta (`parents`, `children`) e fechamentos
      transitivos com profundidade opcional (`upstream`, `downstream`)
    - ordem topológica determinística (calculada uma vez pelo resolver)
    - localizações que referenciam uma chave (composição cross-location)
"""

from __future__ import annotations

from collections import deque
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from atlas_assets.core.assets.definitions import AssetNode, DependencyEdge, SourceAsset
from atlas_assets.core.assets.keys import AssetKey
from atlas_assets.core.exceptions import UnknownDependency
from atlas_assets.core.pipeline.step import Step


def unknown_key_error(key: AssetKey, *, context: str = "graph") -> UnknownDependency:
    return UnknownDependency(
        message=f"Unknown asset key '{key.to_user_string()}'",
        details={"key": key.to_user_string(), "context": context},
        hint="Verifique se o asset foi declarado (ou importado como source) neste grafo.",
    )


class AssetGraph:
    """Grafo de dependências de assets (somente leitura)."""

    def __init__(
        self,
        *,
        nodes: Mapping[AssetKey, AssetNode],
        steps: Mapping[str, Step],
        sources: Mapping[AssetKey, SourceAsset],
        toposorted_keys: Tuple[AssetKey, ...],
        location: str = "default",
        lineage: Optional[Mapping[AssetKey, FrozenSet[str]]] = None,
    ):
        self._nodes: Dict[AssetKey, AssetNode] = dict(nodes)
        self._steps: Dict[str, Step] = dict(steps)
        self._sources: Dict[AssetKey, SourceAsset] = dict(sources)
        self._toposorted: Tuple[AssetKey, ...] = tuple(toposorted_keys)
        self.location = location
        self._lineage: Dict[AssetKey, FrozenSet[str]] = dict(lineage or {})

        parents: Dict[AssetKey, FrozenSet[AssetKey]] = {}
        children: Dict[AssetKey, set] = {k: set() for k in self._nodes}
        for key, node in self._nodes.items():
            parents[key] = frozenset(node.upstream_keys)
            for up in node.upstream_keys:
                children[up].add(key)
        self._parents = parents
        self._children: Dict[AssetKey, FrozenSet[AssetKey]] = {k: frozenset(v) for k, v in children.items()}
        self._step_by_key: Dict[AssetKey, str] = {
            k: n.step_name for k, n in self._nodes.items() if n.step_name is not None
        }

    # ------------------------------------------------------------------
    # Nós e arestas
    # ------------------------------------------------------------------
    @property
    def keys(self) -> FrozenSet[AssetKey]:
        return frozenset(self._nodes)

    @property
    def nodes(self) -> Dict[AssetKey, AssetNode]:
        return dict(self._nodes)

    @property
    def edges(self) -> FrozenSet[DependencyEdge]:
        return frozenset(e for n in self._nodes.values() for e in n.dependencies)

    def has_node(self, key: AssetKey) -> bool:
        return key in self._nodes

    def node(self, key: AssetKey) -> AssetNode:
        if key not in self._nodes:
            raise unknown_key_error(key)
        return self._nodes[key]

    @property
    def source_keys(self) -> FrozenSet[AssetKey]:
        return frozenset(k for k, n in self._nodes.items() if n.is_source)

    @property
    def computed_keys(self) -> FrozenSet[AssetKey]:
        return frozenset(k for k, n in self._nodes.items() if not n.is_source)

    def keys_in_group(self, group: str) -> FrozenSet[AssetKey]:
        return frozenset(k for k, n in self._nodes.items() if n.group == group)

    @property
    def groups(self) -> FrozenSet[str]:
        return frozenset(n.group for n in self._nodes.values())

    # ------------------------------------------------------------------
    # Steps e sources
    # ------------------------------------------------------------------
    @property
    def steps(self) -> Dict[str, Step]:
        return dict(self._steps)

    def step(self, name: str) -> Step:
        return self._steps[name]

    def step_for(self, key: AssetKey) -> Optional[Step]:
        """Step que computa `key` (None para sources)."""
        node = self.node(key)
        if node.step_name is None:
            return None
        return self._steps[node.step_name]

    @property
    def sources(self) -> Dict[AssetKey, SourceAsset]:
        return dict(self._sources)

    def declarations(self) -> List[object]:
        """Declarações resolvidas (inputs já associados) em ordem estável."""
        out: List[object] = [self._sources[k] for k in sorted(self._sources)]
        out.extend(self._steps[n] for n in sorted(self._steps))
        return out

    # ------------------------------------------------------------------
    # Linhagem
    # ------------------------------------------------------------------
    def parents(self, key: AssetKey) -> FrozenSet[AssetKey]:
        self.node(key)
        return self._parents[key]

    def children(self, key: AssetKey) -> FrozenSet[AssetKey]:
        self.node(key)
        return self._children[key]

    def _walk(self, start: Iterable[AssetKey], neighbors: Mapping[AssetKey, FrozenSet[AssetKey]], depth: Optional[int]) -> FrozenSet[AssetKey]:
        seen: set = set()
        frontier = deque((k, 0) for k in start)
        while frontier:
            key, d = frontier.popleft()
            if depth is not None and d >= depth:
                continue
            for nxt in neighbors[key]:
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append((nxt, d + 1))
        return frozenset(seen)

    def upstream(self, key: AssetKey, depth: Optional[int] = None) -> FrozenSet[AssetKey]:
        """Ancestrais de `key` (sem incluir a própria chave)."""
        self.node(key)
        return self._walk([key], self._parents, depth)

    def downstream(self, key: AssetKey, depth: Optional[int] = None) -> FrozenSet[AssetKey]:
        """Descendentes de `key` (sem incluir a própria chave)."""
        self.node(key)
        return self._walk([key], self._children, depth)

    @property
    def toposorted_keys(self) -> Tuple[AssetKey, ...]:
        return self._toposorted

    def lineage_locations(self, key: AssetKey) -> FrozenSet[str]:
        """Localizações que declaram ou referenciam `key` (exibição de linhagem)."""
        node = self.node(key)
        return self._lineage.get(key, frozenset({node.location}))

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"AssetGraph(location={self.location!r}, nodes={len(self._nodes)}, steps={len(self._steps)})"
