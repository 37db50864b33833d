# src/atlas_assets/core/assets/definitions.py
"""
Modelo declarativo de assets do Atlas Assets.

Este módulo define as estruturas imutáveis que descrevem assets e as
arestas de dependência entre eles:

    - DependencyKind → tipo da aresta (`explicit` ou `loaded`)
    - InputSlot      → input declarado de um Step
    - OutputSlot     → output declarado de um Step (1:1 com um asset)
    - SourceAsset    → asset sem computação (valor fornecido externamente)
    - DependencyEdge → aresta resolvida entre duas chaves
    - AssetNode      → nó resolvido do grafo (produzido pelo resolver)

Invariantes:
    - Todas as estruturas são frozen dataclasses
    - `AssetNode` e `DependencyEdge` só são criados pelo resolver
    - Um nó source nunca referencia um Step

Limites explícitos:
    - Não resolve dependências (ver core.graph.resolver)
    - Não executa computações
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .keys import AssetKey, CoercibleToAssetKey

DEFAULT_GROUP = "default"
DEFAULT_IO_MANAGER_KEY = "io_manager"


class DependencyKind(str, Enum):
    """
    Tipos de aresta de dependência.

    - EXPLICIT: nenhum dado é repassado; o upstream apenas precisa concluir antes
    - LOADED: o valor materializado do upstream é carregado via I/O manager
      e entregue à computação
    """
    EXPLICIT = "explicit"
    LOADED = "loaded"


@dataclass(frozen=True)
class InputSlot:
    """
    Input declarado de um Step.

    Quando `key` é omitida, o resolver associa o input por name-matching:
    o `name` do input deve ser igual ao último segmento de exatamente uma
    chave do grafo. A associação é resolvida uma única vez e gravada no
    Step resolvido.
    """
    name: str
    key: Optional[AssetKey] = None
    kind: DependencyKind = DependencyKind.LOADED

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("InputSlot.name must be a non-empty string")
        if self.key is not None and not isinstance(self.key, AssetKey):
            object.__setattr__(self, "key", AssetKey.from_coercible(self.key))
        object.__setattr__(self, "kind", DependencyKind(self.kind))

    @property
    def is_bound(self) -> bool:
        return self.key is not None


@dataclass(frozen=True)
class OutputSlot:
    """Output declarado de um Step; mapeia 1:1 para um asset."""
    name: str
    key: AssetKey
    required: bool = True
    code_version: Optional[str] = None
    group: str = DEFAULT_GROUP
    io_manager_key: str = DEFAULT_IO_MANAGER_KEY
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("OutputSlot.name must be a non-empty string")
        if not isinstance(self.key, AssetKey):
            object.__setattr__(self, "key", AssetKey.from_coercible(self.key))


@dataclass(frozen=True)
class SourceAsset:
    """Asset sem computação própria: o valor é resolvido pelo I/O manager."""
    key: AssetKey
    group: str = DEFAULT_GROUP
    io_manager_key: str = DEFAULT_IO_MANAGER_KEY
    description: Optional[str] = None
    declared_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if not isinstance(self.key, AssetKey):
            object.__setattr__(self, "key", AssetKey.from_coercible(self.key))

    @property
    def site(self) -> str:
        return self.declared_at or f"source '{self.key.to_user_string()}'"


@dataclass(frozen=True, order=True)
class DependencyEdge:
    """Aresta resolvida `downstream` ← `upstream`, marcada com o tipo."""
    downstream: AssetKey
    upstream: AssetKey
    kind: DependencyKind = DependencyKind.LOADED
    input_name: Optional[str] = None


@dataclass(frozen=True)
class AssetNode:
    """
    Nó resolvido do grafo de assets.

    Campos:
        - key: chave única no grafo
        - dependencies: arestas para os upstreams deste nó
        - code_version: versão de código declarada (None para sources)
        - group: grupo lógico (default: "default")
        - is_source: True quando não há computação associada
        - step_name: Step que computa o nó (None para sources)
        - required: flag do slot de output (sempre True para sources)
        - io_manager_key: backend de store/load do asset
        - location: localização (code location) de origem da declaração
    """
    key: AssetKey
    dependencies: Tuple[DependencyEdge, ...] = ()
    code_version: Optional[str] = None
    group: str = DEFAULT_GROUP
    is_source: bool = False
    step_name: Optional[str] = None
    required: bool = True
    io_manager_key: str = DEFAULT_IO_MANAGER_KEY
    location: str = "default"

    @property
    def upstream_keys(self) -> Tuple[AssetKey, ...]:
        return tuple(e.upstream for e in self.dependencies)


def input_slot(
    name: str,
    key: Optional[CoercibleToAssetKey] = None,
    *,
    kind: DependencyKind = DependencyKind.LOADED,
) -> InputSlot:
    """Atalho para declarar inputs com chaves em formato livre."""
    return InputSlot(
        name=name,
        key=AssetKey.from_coercible(key) if key is not None else None,
        kind=kind,
    )


def output_slot(
    name: str,
    key: Optional[CoercibleToAssetKey] = None,
    **kwargs: Any,
) -> OutputSlot:
    """Atalho para declarar outputs; a chave default é o próprio nome."""
    return OutputSlot(
        name=name,
        key=AssetKey.from_coercible(key if key is not None else name),
        **kwargs,
    )
