# src/atlas_assets/core/staleness.py
"""
Staleness Tracker.

Classifica assets como "stale" comparando a versão de código declarada no
grafo com a versão registrada no último MaterializationEvent de cada chave.

Regras (v1):
    - sources nunca são stale
    - sem nenhum evento → stale (never_materialized)
    - versão declarada != versão do último evento → stale (code_version_changed)
    - caso contrário → fresh

Limites explícitos:
    - Puramente informativo: nunca dispara execução
    - Não propaga staleness para downstreams (cada chave é avaliada isoladamente)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from atlas_assets.core.assets.keys import AssetKey
from atlas_assets.core.graph.graph import AssetGraph
from atlas_assets.core.traceability.events import EventLog, MaterializationEvent


class StalenessReason(str, Enum):
    SOURCE = "source"
    NEVER_MATERIALIZED = "never_materialized"
    CODE_VERSION_CHANGED = "code_version_changed"
    FRESH = "fresh"


@dataclass(frozen=True)
class StalenessStatus:
    key: AssetKey
    is_stale: bool
    reason: StalenessReason
    declared_code_version: Optional[str] = None
    materialized_code_version: Optional[str] = None
    last_event: Optional[MaterializationEvent] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key.to_user_string(),
            "is_stale": self.is_stale,
            "reason": self.reason.value,
            "declared_code_version": self.declared_code_version,
            "materialized_code_version": self.materialized_code_version,
        }


class StalenessTracker:
    """Consulta de staleness sobre um grafo resolvido e um Event Log."""

    def __init__(self, graph: AssetGraph, event_log: EventLog):
        self.graph = graph
        self.event_log = event_log

    def staleness(self, key: AssetKey) -> StalenessStatus:
        node = self.graph.node(key)
        if node.is_source:
            return StalenessStatus(key=key, is_stale=False, reason=StalenessReason.SOURCE)

        last = self.event_log.latest(key)
        if last is None:
            return StalenessStatus(
                key=key,
                is_stale=True,
                reason=StalenessReason.NEVER_MATERIALIZED,
                declared_code_version=node.code_version,
            )

        changed = node.code_version != last.code_version
        return StalenessStatus(
            key=key,
            is_stale=changed,
            reason=StalenessReason.CODE_VERSION_CHANGED if changed else StalenessReason.FRESH,
            declared_code_version=node.code_version,
            materialized_code_version=last.code_version,
            last_event=last,
        )

    def is_stale(self, key: AssetKey) -> bool:
        return self.staleness(key).is_stale

    def stale_keys(self) -> Tuple[AssetKey, ...]:
        """Chaves computadas stale, em ordem topológica."""
        return tuple(
            k for k in self.graph.toposorted_keys
            if not self.graph.node(k).is_source and self.is_stale(k)
        )

    def report(self) -> Dict[str, Dict[str, Any]]:
        return {k.to_user_string(): self.staleness(k).to_dict() for k in self.graph.toposorted_keys}
