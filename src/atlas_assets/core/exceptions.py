"""
Atlas Assets - Canonical Exceptions (v1)

Este módulo define as exceções tipadas internas do Atlas Assets.

Objetivo:
- Permitir que resolver, seleção e Engine levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para AtlasErrorPayload
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Taxonomia:
- Resolução (fatal ao carregamento do grafo): DuplicateKey, UnknownDependency,
  AmbiguousDependency, CyclicDependency
- Seleção (fatal apenas à seleção): UnknownDependency
- Execução (escopo: invocação + fechamento downstream): MissingRequiredOutput,
  StoreError, LoadError, UpstreamFailed, ConfigSchemaError

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None
    decision_required: bool = False

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Resolução do grafo
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DuplicateKey(AtlasException):
    """Duas declarações reivindicam a mesma chave de asset (ou nome de Step)."""


@dataclass(frozen=True)
class UnknownDependency(AtlasException):
    """Referência a um asset que não existe no grafo."""


@dataclass(frozen=True)
class AmbiguousDependency(UnknownDependency):
    """Name-matching de input encontrou mais de um asset candidato."""


@dataclass(frozen=True)
class CyclicDependency(AtlasException):
    """O grafo de dependências contém um ciclo."""


# ---------------------------------------------------------------------------
# Execução
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MissingRequiredOutput(AtlasException):
    """Um slot `required` solicitado não foi emitido pela computação."""


@dataclass(frozen=True)
class StoreError(AtlasException):
    """Falha do I/O manager ao persistir o valor de um slot."""


@dataclass(frozen=True)
class LoadError(AtlasException):
    """Falha do I/O manager ao carregar o valor de um input."""


@dataclass(frozen=True)
class UpstreamFailed(AtlasException):
    """Invocação não executada porque uma dependência terminou em falha."""


@dataclass(frozen=True)
class ConfigSchemaError(AtlasException):
    """Configuração de Step não satisfaz o schema declarado."""


# ---------------------------------------------------------------------------
# Engine / Configuração
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngineConfigurationError(AtlasException):
    """Configuração inválida ou inconsistente para execução."""


@dataclass(frozen=True)
class EngineExecutionError(AtlasException):
    """Erro inesperado durante execução do Engine (encapsulado)."""
