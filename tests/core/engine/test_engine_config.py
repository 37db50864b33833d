# tests/core/engine/test_engine_config.py
"""
Testes da integração entre configuração e execução.

Os testes asseguram que:
- `steps.<nome>.enabled: false` pula a invocação ("skipped by config")
  e o skip se propaga a dependentes `loaded`
- a configuração estruturada é validada contra o schema do Step e
  entregue já resolvida em `ctx.config`
- configuração inválida falha a invocação (sem executar a computação)
- a configuração carregada de YAML (defaults + local) é aplicada
"""
from pathlib import Path

import pytest

try:
    from atlas_assets.core.assets.keys import AssetKey
    from atlas_assets.core.config.loader import load_config
    from atlas_assets.core.config.schema import ConfigField, schema
    from atlas_assets.core.engine.engine import Engine
    from atlas_assets.core.errors import CONFIG_SCHEMA_ERROR
    from atlas_assets.core.exceptions import EngineConfigurationError
    from atlas_assets.core.graph.resolver import resolve
    from atlas_assets.core.pipeline.types import InvocationStatus, RunStatus
except Exception as e:  # noqa: BLE001
    Engine = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing Engine. Import error: {_IMPORT_ERR}")


def _never(ctx, inputs):
    raise AssertionError(f"step '{ctx.step_name}' must not run")


def _report_schema():
    return schema(
        threshold=ConfigField(int),
        mode=ConfigField(str, default="fast", choices=["fast", "full"]),
    )


def test_skip_by_config_propagates(make_step, dummy_config):
    _require_imports()
    dummy_config["steps"] = {"orders": {"enabled": False}}
    graph = resolve([
        make_step("orders", compute=_never),
        make_step("report", inputs=["orders"], compute=_never),
    ])
    result = Engine(graph, config=dummy_config).submit_run(["orders", "report"], run_id="run-disabled")

    assert result.status is RunStatus.SUCCEEDED
    assert result.invocation("orders").status is InvocationStatus.SKIPPED
    assert result.invocation("orders").summary == "skipped by config"
    assert result.invocation("report").status is InvocationStatus.SKIPPED
    assert result.executed_steps == ()


def test_validated_config_reaches_computation(make_step, dummy_config):
    _require_imports()
    seen = {}

    def report(ctx, inputs):
        seen.update(ctx.config)
        return ctx.config["threshold"]

    dummy_config["steps"] = {"report": {"config": {"threshold": 3}}}
    graph = resolve([make_step("report", compute=report, config_schema=_report_schema())])
    result = Engine(graph, config=dummy_config).submit_run(["report"], run_id="run-config")

    assert result.success
    assert seen == {"threshold": 3, "mode": "fast"}


def test_invalid_config_fails_invocation(make_step, dummy_config):
    _require_imports()
    dummy_config["steps"] = {"report": {"config": {"threshold": "high"}}}
    graph = resolve([
        make_step("report", compute=_never, config_schema=_report_schema()),
        make_step("publish", inputs=["report"], compute=_never),
    ])
    result = Engine(graph, config=dummy_config).submit_run(["report", "publish"], run_id="run-bad-config")

    inv = result.invocation("report")
    assert result.status is RunStatus.FAILED
    assert inv.status is InvocationStatus.FAILED
    assert inv.attempts == 0
    assert inv.error.type == CONFIG_SCHEMA_ERROR
    assert inv.error.details["problems"] == ["field 'threshold' expected int, got str"]
    assert result.invocation("publish").short_circuited_by == "report"


def test_yaml_config_is_applied(
    tmp_path: Path,
    make_step,
    project_like_config_defaults_yaml,
    project_like_config_local_yaml,
):
    _require_imports()
    defaults = tmp_path / "config.defaults.yaml"
    local = tmp_path / "config.local.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    local.write_text(project_like_config_local_yaml, encoding="utf-8")
    config = load_config(defaults_path=defaults, local_path=local)

    graph = resolve([
        make_step("orders", compute=lambda ctx, inputs: [1]),
        make_step("report", inputs=["orders"], compute=_never),
    ])
    engine = Engine(graph, config=config)
    result = engine.submit_run(["orders", "report"], run_id="run-yaml")

    assert engine.settings.max_workers == 2
    assert result.invocation("orders").status is InvocationStatus.SUCCEEDED
    assert result.invocation("report").summary == "skipped by config"
    assert result.manifest.inputs["config_hash"] == engine.config_hash


def test_invalid_engine_config_is_rejected(make_step):
    _require_imports()
    with pytest.raises(EngineConfigurationError):
        Engine(resolve([make_step("a")]), config={"engine": {"max_workers": 0}})
