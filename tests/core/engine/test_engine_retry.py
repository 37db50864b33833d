# tests/core/engine/test_engine_retry.py
"""
Testes da política de retry na execução.

Os testes asseguram que:
- uma falha levantada é reexecutada até `max_retries` (max_retries + 1 tentativas)
- o atraso segue a política (exponencial: d, 2d, 4d)
- um Step que se recupera termina SUCCEEDED com o número real de tentativas
- a configuração do Step sobrescreve a política declarada
- erros de I/O nunca são reexecutados
- a espera do retry não ocupa o único worker disponível

Os atrasos verificados são os registrados no resultado, não o relógio,
exceto na verificação de ocupação do worker.
"""
import time

import pytest

try:
    from atlas_assets.core.assets.definitions import SourceAsset
    from atlas_assets.core.assets.keys import AssetKey
    from atlas_assets.core.engine.engine import Engine
    from atlas_assets.core.errors import COMPUTATION_FAILED, LOAD_ERROR
    from atlas_assets.core.graph.resolver import resolve
    from atlas_assets.core.pipeline.retry import Backoff, RetryPolicy
    from atlas_assets.core.pipeline.types import InvocationStatus, RunStatus
except Exception as e:  # noqa: BLE001
    Engine = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing Engine. Import error: {_IMPORT_ERR}")


def test_retry_exhaustion_with_exponential_backoff(make_step, dummy_config):
    _require_imports()
    attempts = []

    def always_fails(ctx, inputs):
        attempts.append(ctx.attempt)
        raise RuntimeError("boom")

    policy = RetryPolicy(max_retries=3, delay=0.01, backoff=Backoff.EXPONENTIAL)
    graph = resolve([make_step("flaky", compute=always_fails, retry_policy=policy)])
    result = Engine(graph, config=dummy_config).submit_run(["flaky"], run_id="run-retry")

    inv = result.invocation("flaky")
    assert result.status is RunStatus.FAILED
    assert inv.status is InvocationStatus.FAILED
    assert attempts == [1, 2, 3, 4]
    assert inv.attempts == 4
    assert inv.retry_delays == pytest.approx((0.01, 0.02, 0.04))
    assert inv.error.type == COMPUTATION_FAILED
    assert inv.error.details["attempts"] == 4
    assert inv.error.details["exc_type"] == "RuntimeError"
    assert isinstance(inv.exception, RuntimeError)
    assert len(result.manifest.events_of("step_retry_scheduled")) == 3


def test_recovers_after_transient_failure(make_step, memory_io, dummy_config):
    _require_imports()
    calls = []

    def transient(ctx, inputs):
        calls.append(ctx.attempt)
        if ctx.attempt == 1:
            raise ConnectionError("temporary")
        return "ok"

    graph = resolve([make_step("fetch", compute=transient, retry_policy=RetryPolicy(max_retries=2))])
    result = Engine(graph, io_manager=memory_io, config=dummy_config).submit_run(["fetch"], run_id="run-recover")

    assert result.success
    assert calls == [1, 2]
    assert result.invocation("fetch").attempts == 2
    assert result.invocation("fetch").retry_delays == (0.0,)
    assert memory_io.load(AssetKey.of("fetch")) == "ok"


def test_step_config_overrides_declared_policy(make_step):
    _require_imports()
    calls = []

    def fails(ctx, inputs):
        calls.append(ctx.attempt)
        raise ValueError("bad")

    graph = resolve([make_step("a", compute=fails, retry_policy=RetryPolicy(max_retries=5))])
    config = {"engine": {"max_workers": 1}, "steps": {"a": {"retry": {"max_retries": 1}}}}
    result = Engine(graph, config=config).submit_run(["a"], run_id="run-override")

    assert calls == [1, 2]
    assert result.invocation("a").attempts == 2


def test_load_errors_are_not_retried(make_step, memory_io, dummy_config):
    _require_imports()
    graph = resolve([
        SourceAsset(AssetKey.of("raw")),
        make_step("clean", inputs=["raw"], retry_policy=RetryPolicy(max_retries=3)),
    ])
    result = Engine(graph, io_manager=memory_io, config=dummy_config).submit_run(["clean"], run_id="run-load")

    inv = result.invocation("clean")
    assert inv.status is InvocationStatus.FAILED
    assert inv.attempts == 1
    assert inv.retry_delays == ()
    assert inv.error.type == LOAD_ERROR


def test_retry_delay_does_not_hold_the_worker(make_step):
    """
    Com um único worker, um Step independente executa durante a espera
    do retry de outro Step.
    """
    _require_imports()
    stamps = {}
    t0 = time.monotonic()

    def flaky(ctx, inputs):
        stamps[f"f{ctx.attempt}"] = time.monotonic() - t0
        if ctx.attempt == 1:
            raise RuntimeError("transient")
        return "ok"

    def independent(ctx, inputs):
        stamps["g"] = time.monotonic() - t0
        return "ok"

    graph = resolve([
        make_step("f", compute=flaky, retry_policy=RetryPolicy(max_retries=1, delay=0.5)),
        make_step("g", compute=independent),
    ])
    config = {"engine": {"max_workers": 1}, "steps": {}}
    result = Engine(graph, config=config).submit_run(["f", "g"], run_id="run-timer")

    assert result.success
    assert result.invocation("f").attempts == 2
    assert stamps["g"] < 0.4 < stamps["f2"]
