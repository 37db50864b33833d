# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Assets.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações mínimas e determinísticas (dict e YAML)
- contexto de execução controlado (RunContext)
- fábricas de Steps para montar grafos pequenos em cada teste
- I/O manager em memória e Event Log isolados

O objetivo destas fixtures é permitir testes do core
(config, graph, engine, traceability e staleness) sem depender de:
- filesystem (exceto quando o teste usa `tmp_path` explicitamente)
- variáveis de ambiente
- relógio ou aleatoriedade não controlados

Decisões arquiteturais:
    - Fixtures são mantidas simples e explícitas
    - Dados retornados são determinísticos e isolados
    - Imports do core são realizados de forma lazy para
      melhorar a clareza de erros durante falhas

Invariantes:
    - Nenhuma fixture executa uma run real
    - Nenhuma fixture compartilha estado entre testes

Limites explícitos:
    - Não substituir testes de integração
    - Não conter lógica condicional complexa
"""

import pytest
from datetime import datetime, timezone


# =====================================================
# Config fixtures
# =====================================================

@pytest.fixture
def project_like_config_defaults_yaml() -> str:
    """
    Fixture que fornece um YAML de configuração padrão (defaults) semelhante ao uso real.

    Representa o conteúdo típico de um `config.defaults.yaml`, servindo
    como base canônica sobre a qual configurações locais são aplicadas
    via deep-merge.
    """
    return """\
engine:
  max_workers: 4
  default_retry:
    max_retries: 0
    delay: 0.0
    backoff: constant
steps:
  orders:
    enabled: true
  report:
    enabled: true
    config:
      threshold: 10
"""


@pytest.fixture
def project_like_config_local_yaml() -> str:
    """
    Fixture que fornece uma configuração *local* (override) em formato YAML.

    Usado para validar precedência de overrides locais, merge recursivo
    de dicionários e desativação de Steps por configuração.
    """
    return """\
engine:
  max_workers: 2
steps:
  report:
    enabled: false
"""


@pytest.fixture
def dummy_config() -> dict:
    """
    Fixture que fornece uma configuração mínima e já resolvida para testes.

    Invariantes:
        - Estrutura determinística e estável
        - Não depende de filesystem, env vars ou defaults externos
    """
    return {
        "engine": {"max_workers": 2},
        "steps": {},
    }


# =====================================================
# Execution fixtures
# =====================================================

@pytest.fixture
def dummy_ctx(dummy_config):
    """
    Fixture que fornece um RunContext determinístico para testes.

    O import de RunContext é feito de forma lazy para melhorar a
    legibilidade dos erros quando o core não está disponível.
    """
    from atlas_assets.core.pipeline.context import RunContext

    return RunContext(
        run_id="run-test-001",
        created_at=datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc),
        config=dummy_config,
        meta={"source": "pytest"},
    )


@pytest.fixture
def memory_io():
    """I/O manager em memória, isolado por teste."""
    from atlas_assets.core.io.manager import InMemoryIOManager

    return InMemoryIOManager()


@pytest.fixture
def event_log():
    """Event Log vazio, isolado por teste."""
    from atlas_assets.core.traceability.events import EventLog

    return EventLog()


@pytest.fixture
def make_step():
    """
    Fixture que retorna uma fábrica de Steps de um único output.

    A fábrica aceita inputs como strings (binding por nome, tipo `loaded`)
    ou InputSlots já construídos, e uma computação opcional (default:
    retorna a lista de nomes dos inputs recebidos).

    Exemplo:
        step = make_step("b", inputs=["a"], compute=lambda ctx, inputs: inputs["a"] + 1)
    """
    from atlas_assets.core.assets.definitions import InputSlot
    from atlas_assets.core.pipeline.step import single_output_step

    def _default_compute(ctx, inputs):
        return sorted(inputs)

    def _make(name, *, inputs=(), compute=None, **kwargs):
        slots = [i if isinstance(i, InputSlot) else InputSlot(name=i) for i in inputs]
        return single_output_step(name, compute or _default_compute, inputs=slots, **kwargs)

    return _make
