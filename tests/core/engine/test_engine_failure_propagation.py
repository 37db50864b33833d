# tests/core/engine/test_engine_failure_propagation.py
"""
Testes de propagação de falha.

Cenário: a → b → c, d independente; `a` falha.

Os testes asseguram que:
- dependentes transitivos terminam FAILED sem executar, com a cadeia de
  Steps desde a origem
- Steps independentes continuam executando normalmente
- a run termina FAILED
- MissingRequiredOutput é levantado antes de qualquer store
"""
import pytest

try:
    from atlas_assets.core.assets.definitions import output_slot
    from atlas_assets.core.assets.keys import AssetKey
    from atlas_assets.core.engine.engine import Engine
    from atlas_assets.core.errors import MISSING_REQUIRED_OUTPUT, UPSTREAM_FAILED
    from atlas_assets.core.exceptions import UpstreamFailed
    from atlas_assets.core.graph.resolver import resolve
    from atlas_assets.core.pipeline.retry import RetryPolicy
    from atlas_assets.core.pipeline.step import Step
    from atlas_assets.core.pipeline.types import DECLINED, InvocationStatus, Produced, RunStatus, SlotStatus
except Exception as e:  # noqa: BLE001
    Engine = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing Engine. Import error: {_IMPORT_ERR}")


def _boom(ctx, inputs):
    raise RuntimeError("boom")


def _never(ctx, inputs):
    raise AssertionError(f"step '{ctx.step_name}' must not run")


def test_failure_short_circuits_dependents(make_step, memory_io, dummy_config):
    _require_imports()
    graph = resolve([
        make_step("a", compute=_boom),
        make_step("b", inputs=["a"], compute=_never),
        make_step("c", inputs=["b"], compute=_never),
        make_step("d", compute=lambda ctx, inputs: "independent"),
    ])
    result = Engine(graph, io_manager=memory_io, config=dummy_config).submit_run(
        ["a", "b", "c", "d"], run_id="run-fail"
    )

    assert result.status is RunStatus.FAILED
    assert result.invocation("a").status is InvocationStatus.FAILED
    assert result.invocation("a").summary == "failed: boom"
    assert result.invocation("d").status is InvocationStatus.SUCCEEDED

    b = result.invocation("b")
    c = result.invocation("c")
    assert b.status is InvocationStatus.FAILED and c.status is InvocationStatus.FAILED
    assert b.attempts == 0 and c.attempts == 0
    assert b.short_circuited_by == "a" and c.short_circuited_by == "a"
    assert b.chain == ("a", "b")
    assert c.chain == ("a", "b", "c")
    assert c.error.type == UPSTREAM_FAILED
    assert c.error.details["chain"] == ["a", "b", "c"]
    assert isinstance(c.exception, UpstreamFailed)

    assert result.failed_keys == {AssetKey.of("a"), AssetKey.of("b"), AssetKey.of("c")}
    assert result.executed_steps == ("a", "d")
    assert memory_io.load(AssetKey.of("d")) == "independent"


def test_missing_required_output_is_not_retried_nor_stored(memory_io, dummy_config):
    _require_imports()
    calls = []

    def compute(ctx, inputs):
        calls.append(ctx.attempt)
        return {"x": DECLINED, "y": Produced(2)}

    step = Step(
        name="m",
        outputs=(output_slot("x"), output_slot("y")),
        compute=compute,
        retry_policy=RetryPolicy(max_retries=2),
    )
    result = Engine(resolve([step]), io_manager=memory_io, config=dummy_config).submit_run(
        ["x", "y"], run_id="run-missing"
    )

    inv = result.invocation("m")
    assert inv.status is InvocationStatus.FAILED
    assert inv.error.type == MISSING_REQUIRED_OUTPUT
    assert inv.error.details["slots"] == ["x"]
    assert calls == [1]
    assert not memory_io.has(AssetKey.of("y"))
    assert result.slots[AssetKey.of("y")].status is SlotStatus.FAILED


def test_absent_slot_in_mapping_counts_as_declined(memory_io, dummy_config):
    _require_imports()
    step = Step(
        name="m",
        outputs=(output_slot("x"), output_slot("y", required=False)),
        compute=lambda ctx, inputs: {"x": Produced(1)},
    )
    result = Engine(resolve([step]), io_manager=memory_io, config=dummy_config).submit_run(
        ["x"], run_id="run-absent"
    )

    assert result.success
    assert result.slots[AssetKey.of("x")].status is SlotStatus.MATERIALIZED
    assert result.slots[AssetKey.of("y")].status is SlotStatus.SKIPPED
