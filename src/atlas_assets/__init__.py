# src/atlas_assets/__init__.py
"""
Atlas Assets: grafo de dependências de assets e engine de materialização parcial.

Este pacote raiz define o namespace público do Atlas Assets. Um asset é um
artefato de dados persistido, identificado por um `AssetKey` e produzido
por um Step (ou fornecido externamente, como SourceAsset).

Princípios centrais:
    - O grafo de assets é resolvido uma única vez e é imutável
    - Qualquer subconjunto do grafo pode ser materializado
    - A execução é determinística, paralela e rastreável
    - Falhas e skips se propagam de forma explícita e auditável

Arquitetura em alto nível:
    - core.assets       → AssetKey e modelo declarativo (slots, sources, nós)
    - core.pipeline     → contrato de Step, contextos, retry e registro
    - core.graph        → resolver, grafo imutável e seleção
    - core.engine       → compilação de planos e execução
    - core.io           → contrato de I/O manager e backends
    - core.traceability → Event Log de materializações e Manifest de runs
    - core.staleness    → comparação de code versions com o Event Log
    - core.config       → carregamento, merge, hashing e schema de configuração

Limites explícitos:
    - Não define DSL/decorators de autoria
    - Não oferece agendamento (cron/sensors) nem execução distribuída
"""

from atlas_assets.core.assets.definitions import (
    DependencyKind,
    InputSlot,
    OutputSlot,
    SourceAsset,
    input_slot,
    output_slot,
)
from atlas_assets.core.assets.keys import AssetKey
from atlas_assets.core.engine.engine import Engine, RunResult
from atlas_assets.core.engine.planner import ExecutionPlan, compile_plan
from atlas_assets.core.graph.resolver import compose_graphs, resolve
from atlas_assets.core.graph.selection import AssetSelection, select
from atlas_assets.core.io.joblib_manager import JoblibIOManager
from atlas_assets.core.io.manager import InMemoryIOManager
from atlas_assets.core.pipeline.retry import RetryPolicy
from atlas_assets.core.pipeline.step import Step, single_output_step
from atlas_assets.core.pipeline.types import DECLINED, Declined, Produced
from atlas_assets.core.staleness import StalenessTracker
from atlas_assets.core.traceability.events import EventLog, MaterializationEvent

__version__ = "0.1.0"

__all__ = [
    "AssetKey",
    "AssetSelection",
    "DECLINED",
    "Declined",
    "DependencyKind",
    "Engine",
    "EventLog",
    "ExecutionPlan",
    "InMemoryIOManager",
    "InputSlot",
    "JoblibIOManager",
    "MaterializationEvent",
    "OutputSlot",
    "Produced",
    "RetryPolicy",
    "RunResult",
    "SourceAsset",
    "StalenessTracker",
    "Step",
    "compile_plan",
    "compose_graphs",
    "input_slot",
    "output_slot",
    "resolve",
    "select",
    "single_output_step",
]
