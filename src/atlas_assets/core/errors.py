"""
Atlas Assets - Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas Assets.
Erros de execução são artefatos do resultado da run e devem ser:

- explícitos
- serializáveis
- rastreáveis
- acionáveis

O Engine nunca propaga exceções de Steps para fora de `execute`: toda falha
é convertida em `AtlasErrorPayload` e anexada ao `RunResult` e ao Manifest.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .exceptions import AtlasException


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtlasErrorPayload:
    """
    Payload canônico de erro do Atlas Assets.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    - decision_required: indica se a execução está bloqueada aguardando decisão humana
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None
    decision_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Resolução / Seleção
DUPLICATE_KEY = "DUPLICATE_KEY"
UNKNOWN_DEPENDENCY = "UNKNOWN_DEPENDENCY"
CYCLIC_DEPENDENCY = "CYCLIC_DEPENDENCY"

# Execução
MISSING_REQUIRED_OUTPUT = "MISSING_REQUIRED_OUTPUT"
STORE_ERROR = "STORE_ERROR"
LOAD_ERROR = "LOAD_ERROR"
UPSTREAM_FAILED = "UPSTREAM_FAILED"
CONFIG_SCHEMA_ERROR = "CONFIG_SCHEMA_ERROR"
COMPUTATION_FAILED = "COMPUTATION_FAILED"

# Engine
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"
ENGINE_CONFIGURATION_ERROR = "ENGINE_CONFIGURATION_ERROR"


_TYPE_BY_EXCEPTION = {
    "DuplicateKey": DUPLICATE_KEY,
    "UnknownDependency": UNKNOWN_DEPENDENCY,
    "AmbiguousDependency": UNKNOWN_DEPENDENCY,
    "CyclicDependency": CYCLIC_DEPENDENCY,
    "MissingRequiredOutput": MISSING_REQUIRED_OUTPUT,
    "StoreError": STORE_ERROR,
    "LoadError": LOAD_ERROR,
    "UpstreamFailed": UPSTREAM_FAILED,
    "ConfigSchemaError": CONFIG_SCHEMA_ERROR,
    "EngineConfigurationError": ENGINE_CONFIGURATION_ERROR,
    "EngineExecutionError": ENGINE_EXECUTION_ERROR,
}


def exception_to_error(exc: BaseException, *, step: Optional[str] = None) -> AtlasErrorPayload:
    """Converte exceções em AtlasErrorPayload (serializável, acionável).

    Regras:
    - AtlasException: já vem com message/details/hint/decision_required.
    - Outras exceções: falha da computação do usuário (COMPUTATION_FAILED),
      sem expor stack trace.
    """
    if isinstance(exc, AtlasException):
        details = dict(exc.details or {})
        if step is not None:
            details.setdefault("step", step)
        return AtlasErrorPayload(
            type=_TYPE_BY_EXCEPTION.get(exc.__class__.__name__, exc.__class__.__name__),
            message=exc.message or "Erro de execução",
            details=details,
            hint=exc.hint,
            decision_required=bool(exc.decision_required),
        )

    return computation_failed(
        step=step,
        exc_type=exc.__class__.__name__,
        exc_message=str(exc),
    )


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def computation_failed(
    *,
    step: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    attempts: Optional[int] = None,
    hint: str = "Verifique a computação do Step; a política de retry já foi esgotada.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=COMPUTATION_FAILED,
        message=exc_message or "Falha inesperada durante a computação do Step",
        details={
            "step": step,
            "exc_type": exc_type,
            "exc_message": exc_message,
            "attempts": attempts,
        },
        hint=hint,
        decision_required=False,
    )


def upstream_failed(
    *,
    step: str,
    origin: str,
    chain: List[str],
    hint: str = "Corrija a falha do Step de origem e reexecute a seleção.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=UPSTREAM_FAILED,
        message=f"Step '{step}' not executed: upstream step '{origin}' failed",
        details={
            "step": step,
            "origin": origin,
            "chain": list(chain),
        },
        hint=hint,
        decision_required=False,
    )


def engine_configuration_error(
    *,
    message: str = "Configuração inválida para execução da run",
    details: Optional[Dict[str, Any]] = None,
    hint: str = "Revise a configuração da engine/steps e declare explicitamente as opções necessárias antes de reexecutar.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=ENGINE_CONFIGURATION_ERROR,
        message=message,
        details=details or {},
        hint=hint,
        decision_required=False,
    )
