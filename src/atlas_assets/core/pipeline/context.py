# src/atlas_assets/core/pipeline/context.py
"""
Contextos de execução do Atlas Assets.

Este módulo define:
    - RunContext  → contexto compartilhado de uma run (log estruturado,
      warnings por Step, configuração resolvida, sinal de cancelamento)
    - StepContext → visão de uma invocação de Step sobre o RunContext,
      entregue à computação

O RunContext é o canal oficial de logging do Atlas Assets: cada evento de
log é um dicionário estruturado contendo sempre `run_id`, `step_id`,
`level`, `message` e `timestamp` (UTC ISO 8601).

Princípios fundamentais:
    - Isolamento por execução (cada run possui seu próprio contexto)
    - Comunicação explícita e rastreável
    - Escritas concorrentes de workers são serializadas por lock

Invariantes:
    - Logs sempre incluem `run_id` e `step_id`
    - Warnings são agrupados por `step_id`
    - A ordem de `events` reflete a ordem de chamada

Limites explícitos:
    - Não executa Steps
    - Não planeja nem coordena execução
    - Não persiste dados automaticamente
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Mapping, Optional

from atlas_assets.core.assets.keys import AssetKey

from .types import UpstreamOutcome

if TYPE_CHECKING:  # pragma: no cover
    from atlas_assets.core.traceability.events import MaterializationEvent

RUN_STEP_ID = "__run__"


@dataclass
class RunContext:
    """
    Contexto de execução compartilhado de uma run.

    Campos:
        - run_id: identificador único da run (fornecido pelo chamador)
        - created_at: timestamp de criação (UTC)
        - config: configuração resolvida (dict puro)
        - meta: metadados livres do chamador
        - cancel_event: sinal externo de cancelamento
    """
    run_id: str
    created_at: datetime
    config: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, step_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "step_id": step_id,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, step_id: str, message: str) -> None:
        with self._lock:
            if step_id not in self.warnings:
                self.warnings[step_id] = []
            self.warnings[step_id].append(message)

    def logs_for(self, step_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(e) for e in self.events if e.get("step_id") == step_id]

    # -----------------------------
    # Cancelamento
    # -----------------------------
    def cancel(self) -> None:
        self.cancel_event.set()

    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()


@dataclass
class StepContext:
    """
    Visão de uma invocação sobre o RunContext, entregue à computação.

    A computação recebe aqui:
        - os slots solicitados (`requested`)
        - a configuração estruturada já validada do Step (`config`)
        - o desfecho explícito de cada upstream (`upstream_outcome`)
        - o último MaterializationEvent de cada upstream (`upstream_event`)
        - o número da tentativa corrente (`attempt`, começa em 1)
    """
    run: RunContext
    step_name: str
    requested: FrozenSet[str]
    config: Dict[str, Any] = field(default_factory=dict)
    attempt: int = 1
    upstream_outcomes: Mapping[str, UpstreamOutcome] = field(default_factory=dict)
    upstream_events: Mapping[AssetKey, Optional["MaterializationEvent"]] = field(default_factory=dict)
    input_keys: Mapping[str, AssetKey] = field(default_factory=dict)

    @property
    def run_id(self) -> str:
        return self.run.run_id

    def is_requested(self, slot_name: str) -> bool:
        return slot_name in self.requested

    def upstream_outcome(self, input_name: str) -> UpstreamOutcome:
        if input_name not in self.upstream_outcomes:
            raise KeyError(f"Step '{self.step_name}' has no input named '{input_name}'")
        return self.upstream_outcomes[input_name]

    def upstream_event(self, input_name: str) -> Optional["MaterializationEvent"]:
        key = self.input_keys.get(input_name)
        if key is None:
            raise KeyError(f"Step '{self.step_name}' has no input named '{input_name}'")
        return self.upstream_events.get(key)

    def log(self, message: str, *, level: str = "info", **extra: Any) -> None:
        self.run.log(step_id=self.step_name, level=level, message=message, attempt=self.attempt, **extra)

    def add_warning(self, message: str) -> None:
        self.run.add_warning(step_id=self.step_name, message=message)

    def is_cancelled(self) -> bool:
        return self.run.is_cancelled()
