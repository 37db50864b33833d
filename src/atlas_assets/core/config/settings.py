# src/atlas_assets/core/config/settings.py
"""
Leitura tipada da configuração resolvida da engine.

Chaves reconhecidas:

    engine:
      max_workers: 4            # paralelismo máximo (int >= 1)
      manifest_dir: runs/       # opcional; salva <dir>/<run_id>.json
      default_retry:            # política aplicada a Steps sem retry próprio
        max_retries: 0
        delay: 0.0
        backoff: constant       # constant | exponential
        jitter: none            # none | symmetric
    steps:
      <step_name>:
        enabled: true           # false → invocação SKIPPED ("skipped by config")
        config: {...}           # validado contra Step.config_schema
        retry: {...}            # sobrescreve a política do Step

Valores inválidos levantam `EngineConfigurationError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from atlas_assets.core.exceptions import EngineConfigurationError
from atlas_assets.core.pipeline.retry import NO_RETRY, RetryPolicy

DEFAULT_MAX_WORKERS = 4


def _section(config: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name, {}) or {}
    if not isinstance(value, dict):
        raise EngineConfigurationError(
            message=f"Config section '{name}' must be a mapping",
            details={"section": name, "received": type(value).__name__},
        )
    return value


def _retry_from(data: Any, *, where: str) -> RetryPolicy:
    if not isinstance(data, dict):
        raise EngineConfigurationError(
            message=f"Retry policy at '{where}' must be a mapping",
            details={"path": where},
        )
    try:
        return RetryPolicy.from_dict(data)
    except (TypeError, ValueError) as e:
        raise EngineConfigurationError(
            message=f"Invalid retry policy at '{where}': {e}",
            details={"path": where},
        ) from e


@dataclass(frozen=True)
class StepSettings:
    enabled: bool = True
    config: Dict[str, Any] = field(default_factory=dict)
    retry: Optional[RetryPolicy] = None


@dataclass(frozen=True)
class EngineSettings:
    """Configuração efetiva da engine, derivada de um dict resolvido."""

    max_workers: int = DEFAULT_MAX_WORKERS
    default_retry: RetryPolicy = NO_RETRY
    manifest_dir: Optional[Path] = None
    steps: Dict[str, StepSettings] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "EngineSettings":
        config = config or {}
        engine_cfg = _section(config, "engine")
        steps_cfg = _section(config, "steps")

        max_workers = engine_cfg.get("max_workers", DEFAULT_MAX_WORKERS)
        if not isinstance(max_workers, int) or isinstance(max_workers, bool) or max_workers < 1:
            raise EngineConfigurationError(
                message="engine.max_workers must be an int >= 1",
                details={"received": max_workers},
            )

        default_retry = NO_RETRY
        if engine_cfg.get("default_retry") is not None:
            default_retry = _retry_from(engine_cfg["default_retry"], where="engine.default_retry")

        manifest_dir = engine_cfg.get("manifest_dir")

        steps: Dict[str, StepSettings] = {}
        for name, raw in steps_cfg.items():
            raw = raw or {}
            if not isinstance(raw, dict):
                raise EngineConfigurationError(
                    message=f"steps.{name} must be a mapping",
                    details={"step": name},
                )
            step_config = raw.get("config", {}) or {}
            if not isinstance(step_config, dict):
                raise EngineConfigurationError(
                    message=f"steps.{name}.config must be a mapping",
                    details={"step": name},
                )
            enabled = raw.get("enabled", True)
            if not isinstance(enabled, bool):
                raise EngineConfigurationError(
                    message=f"steps.{name}.enabled must be a bool",
                    details={"step": name, "value": enabled},
                )
            retry = None
            if raw.get("retry") is not None:
                retry = _retry_from(raw["retry"], where=f"steps.{name}.retry")
            steps[str(name)] = StepSettings(
                enabled=enabled,
                config=dict(step_config),
                retry=retry,
            )

        return cls(
            max_workers=max_workers,
            default_retry=default_retry,
            manifest_dir=Path(manifest_dir) if manifest_dir else None,
            steps=steps,
        )

    def for_step(self, name: str) -> StepSettings:
        return self.steps.get(name) or StepSettings()

    def retry_policy_for(self, name: str, declared: Optional[RetryPolicy]) -> RetryPolicy:
        """Precedência: config do Step > política declarada > default da engine."""
        override = self.for_step(name).retry
        if override is not None:
            return override
        if declared is not None:
            return declared
        return self.default_retry
