# src/atlas_assets/core/pipeline/types.py
"""
Tipos canônicos de execução do Atlas Assets.

Este módulo define as estruturas e enums que padronizam a comunicação
entre computações de Steps, Engine e camadas de rastreabilidade.

Componentes principais:
    - Produced / Declined → resultado rotulado por slot de output
    - InvocationStatus    → máquina de estados de uma invocação de Step
    - SlotStatus          → desfecho final por asset em uma run
    - UpstreamOutcome     → desfecho de um upstream visto pela computação
    - SlotResult / InvocationResult → registros imutáveis de resultado

Princípios fundamentais:
    - Emissão condicional é um valor (`Declined`), não um efeito colateral
    - Enums possuem valores textuais canônicos (serializáveis em JSON)
    - Nenhuma lógica de execução vive neste módulo
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Optional, Tuple

from atlas_assets.core.assets.keys import AssetKey
from atlas_assets.core.errors import AtlasErrorPayload

if TYPE_CHECKING:  # pragma: no cover
    from atlas_assets.core.traceability.events import MaterializationEvent


@dataclass(frozen=True)
class Produced:
    """Slot emitido: valor opaco + metadados do materialization event."""
    value: Any
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Declined:
    """Slot deliberadamente não emitido nesta invocação."""
    reason: Optional[str] = None


DECLINED = Declined()


class InvocationStatus(str, Enum):
    """
    Estados de uma invocação de Step.

    Transições:
        pending → running → {succeeded, failed, skipped}
        failed → running (retry, governado pela RetryPolicy)
        pending → canceled (cancelamento antes do início)
    """
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset(
    {
        InvocationStatus.SUCCEEDED,
        InvocationStatus.FAILED,
        InvocationStatus.SKIPPED,
        InvocationStatus.CANCELED,
    }
)


class SlotStatus(str, Enum):
    MATERIALIZED = "materialized"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELED = "canceled"


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


class UpstreamOutcome(str, Enum):
    """
    Desfecho de um upstream exposto explicitamente à computação downstream.

    - PRODUCED: materializado nesta run
    - DECLINED: não emitido nesta run (skip); só visível via arestas explicit
    - EXTERNAL: não executado nesta run; leitura do estado externo (read-through)
    """
    PRODUCED = "produced"
    DECLINED = "declined"
    EXTERNAL = "external"


@dataclass(frozen=True)
class SlotResult:
    """Desfecho final de um asset solicitado em uma run."""
    key: AssetKey
    step_name: str
    status: SlotStatus
    event: Optional["MaterializationEvent"] = None
    error: Optional[AtlasErrorPayload] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key.to_user_string(),
            "step_name": self.step_name,
            "status": self.status.value,
            "event": self.event.to_dict() if self.event is not None else None,
            "error": self.error.to_dict() if self.error is not None else None,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class InvocationResult:
    """
    Resultado imutável de uma invocação de Step.

    Campos:
        - step_name: Step invocado
        - status: estado terminal da invocação
        - requested: slots solicitados pelo plano
        - executed: slots efetivamente entregues à computação
        - attempts: número de tentativas executadas (0 se nunca executou)
        - retry_delays: atrasos aplicados antes de cada retry (segundos)
        - summary: resumo textual
        - error: payload serializável da falha (quando houver)
        - exception: exceção original (não serializada)
        - short_circuited_by: Step de origem quando a falha foi propagada
        - chain: cadeia de Steps da origem até este (falha propagada)
    """
    step_name: str
    status: InvocationStatus
    requested: FrozenSet[str] = frozenset()
    executed: FrozenSet[str] = frozenset()
    attempts: int = 0
    retry_delays: Tuple[float, ...] = ()
    summary: str = ""
    error: Optional[AtlasErrorPayload] = None
    exception: Optional[BaseException] = field(default=None, compare=False, repr=False)
    short_circuited_by: Optional[str] = None
    chain: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_name": self.step_name,
            "status": self.status.value,
            "requested": sorted(self.requested),
            "executed": sorted(self.executed),
            "attempts": self.attempts,
            "retry_delays": list(self.retry_delays),
            "summary": self.summary,
            "error": self.error.to_dict() if self.error is not None else None,
            "short_circuited_by": self.short_circuited_by,
            "chain": list(self.chain),
        }
