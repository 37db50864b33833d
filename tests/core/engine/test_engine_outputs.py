# tests/core/engine/test_engine_outputs.py
"""
Testes das formas de retorno aceitas pela computação.

Formas aceitas:
    - Produced / Declined com um único slot solicitado
    - mapeamento `slot → Produced | Declined`
    - valor "nu" com um único slot solicitado
    - mapeamento vazio (todos os slots declinados)

Formas inválidas falham a invocação com ENGINE_CONFIGURATION_ERROR, sem retry.
"""
import pytest

try:
    from atlas_assets.core.assets.definitions import output_slot
    from atlas_assets.core.assets.keys import AssetKey
    from atlas_assets.core.engine.engine import Engine
    from atlas_assets.core.errors import ENGINE_CONFIGURATION_ERROR
    from atlas_assets.core.graph.resolver import resolve
    from atlas_assets.core.pipeline.retry import RetryPolicy
    from atlas_assets.core.pipeline.step import Step
    from atlas_assets.core.pipeline.types import InvocationStatus, Produced, SlotStatus
except Exception as e:  # noqa: BLE001
    Engine = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing Engine. Import error: {_IMPORT_ERR}")


def _multi(compute):
    return Step(
        name="m",
        outputs=(output_slot("x", required=False), output_slot("y", required=False)),
        compute=compute,
        retry_policy=RetryPolicy(max_retries=2),
    )


def test_produced_metadata_reaches_event(make_step, memory_io, event_log, dummy_config):
    _require_imports()
    graph = resolve([make_step("a", compute=lambda ctx, inputs: Produced([1, 2], metadata={"rows": 2}))])
    engine = Engine(graph, io_manager=memory_io, event_log=event_log, config=dummy_config)
    result = engine.submit_run(["a"], run_id="run-meta")

    assert result.success
    assert memory_io.load(AssetKey.of("a")) == [1, 2]
    assert memory_io.metadata_for(AssetKey.of("a")) == {"rows": 2}
    assert event_log.latest(AssetKey.of("a")).metadata == {"rows": 2}


def test_bare_mapping_is_a_value_for_single_slot(make_step, memory_io, dummy_config):
    _require_imports()
    graph = resolve([make_step("a", compute=lambda ctx, inputs: {"rows": 3})])
    Engine(graph, io_manager=memory_io, config=dummy_config).submit_run(["a"], run_id="run-bare")
    assert memory_io.load(AssetKey.of("a")) == {"rows": 3}


def test_empty_mapping_declines_every_slot(memory_io, dummy_config):
    _require_imports()
    result = Engine(resolve([_multi(lambda ctx, inputs: {})]), io_manager=memory_io, config=dummy_config).submit_run(
        ["x", "y"], run_id="run-empty"
    )
    assert result.success
    assert result.skipped_keys == {AssetKey.of("x"), AssetKey.of("y")}


@pytest.mark.parametrize(
    "returned",
    [
        [1, 2],
        Produced(1),
        {"z": Produced(1)},
    ],
)
def test_invalid_shapes_fail_without_retry(memory_io, dummy_config, returned):
    _require_imports()
    calls = []

    def compute(ctx, inputs):
        calls.append(ctx.attempt)
        return returned

    result = Engine(resolve([_multi(compute)]), io_manager=memory_io, config=dummy_config).submit_run(
        ["x", "y"], run_id="run-shape"
    )

    inv = result.invocation("m")
    assert inv.status is InvocationStatus.FAILED
    assert inv.error.type == ENGINE_CONFIGURATION_ERROR
    assert calls == [1]
    assert result.slots[AssetKey.of("x")].status is SlotStatus.FAILED
