# src/atlas_assets/core/traceability/manifest.py
"""
Manifest de run (v1): registro forense de uma execução.

O Manifest consolida, para uma run:
    - run: metadados (run_id, started_at, engine_version, status, finished_at)
    - inputs: hash da configuração resolvida e fingerprint do plano
    - steps: estado incremental de cada invocação (status, timestamps,
      duração, tentativas, erro)
    - events: Event Log ordenado de eventos explícitos

Tipos de evento emitidos pela engine:
    run_started, step_started, step_retry_scheduled, step_finished,
    step_failed, step_skipped, step_canceled, asset_materialized, run_finished

Decisões:
    - Nenhum evento é emitido implicitamente; cada função registra
      exatamente um evento
    - Timestamps são normalizados para UTC timezone-aware
    - A estrutura completa é serializável em JSON (round-trip via
      `save_manifest` / `load_manifest`)

Limites explícitos:
    - Não executa Steps
    - Não decide políticas de execução
    - É atualizado apenas pelo loop do scheduler (um único escritor por run)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Timestamps sem timezone são assumidos como UTC; os demais são convertidos."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    """Duração em milissegundos, nunca negativa."""
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class RunManifest:
    """
    Manifest v1 de uma run.

    Invariantes:
        - `steps` é sempre um dicionário indexado por nome de Step
        - `events` é sempre uma lista na ordem de chamada
        - A estrutura completa é serializável
    """
    run: Dict[str, Any]
    inputs: Dict[str, Any]
    steps: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "steps": {k: dict(v) for k, v in self.steps.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunManifest":
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            steps={k: dict(v) for k, v in (data.get("steps", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )

    def events_of(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e.get("event_type") == event_type]


def create_manifest(
    *,
    run_id: str,
    started_at: datetime,
    engine_version: str,
    config_hash: str,
    plan_fingerprint: str,
) -> RunManifest:
    """Cria o Manifest inicial. O Event Log começa vazio."""
    return RunManifest(
        run={
            "run_id": run_id,
            "started_at": _iso(started_at),
            "engine_version": engine_version,
            "status": "running",
        },
        inputs={
            "config_hash": config_hash,
            "plan_fingerprint": plan_fingerprint,
        },
    )


def add_event(
    manifest: RunManifest,
    *,
    event_type: str,
    ts: datetime,
    step_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if step_id is not None:
        ev["step_id"] = step_id
    if payload is not None:
        ev["payload"] = payload
    manifest.events.append(ev)


def run_started(manifest: RunManifest, *, ts: datetime, invocations: List[str]) -> None:
    add_event(manifest, event_type="run_started", ts=ts, payload={"invocations": list(invocations)})


def step_started(manifest: RunManifest, *, step_id: str, ts: datetime, attempt: int, requested: List[str]) -> None:
    s = manifest.steps.setdefault(step_id, {"step_id": step_id})
    s.setdefault("started_at", _iso(ts))
    s.update({"status": "running", "attempts": attempt, "requested": sorted(requested)})
    add_event(manifest, event_type="step_started", ts=ts, step_id=step_id, payload={"attempt": attempt})


def step_retry_scheduled(
    manifest: RunManifest,
    *,
    step_id: str,
    ts: datetime,
    attempt: int,
    delay: float,
    error: Dict[str, Any],
) -> None:
    s = manifest.steps.setdefault(step_id, {"step_id": step_id})
    s.update({"status": "failed", "attempts": attempt})
    add_event(
        manifest,
        event_type="step_retry_scheduled",
        ts=ts,
        step_id=step_id,
        payload={"attempt": attempt, "delay": delay, "error": error},
    )


def _finish(manifest: RunManifest, step_id: str, ts: datetime, status: str) -> Dict[str, Any]:
    s = manifest.steps.setdefault(step_id, {"step_id": step_id})
    started_iso = s.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts
    s.update(
        {
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
        }
    )
    return s


def step_finished(manifest: RunManifest, *, step_id: str, ts: datetime, result: Dict[str, Any]) -> None:
    s = _finish(manifest, step_id, ts, result.get("status", "succeeded"))
    s.update(
        {
            "summary": result.get("summary"),
            "attempts": result.get("attempts", s.get("attempts", 0)),
            "executed": result.get("executed", []),
        }
    )
    add_event(
        manifest,
        event_type="step_finished",
        ts=ts,
        step_id=step_id,
        payload={"status": s["status"], "duration_ms": s["duration_ms"]},
    )


def step_failed(manifest: RunManifest, *, step_id: str, ts: datetime, error: Dict[str, Any], attempts: int = 0) -> None:
    s = _finish(manifest, step_id, ts, "failed")
    s.update({"error": error, "attempts": attempts})
    add_event(manifest, event_type="step_failed", ts=ts, step_id=step_id, payload={"error": error})


def step_skipped(manifest: RunManifest, *, step_id: str, ts: datetime, reason: str) -> None:
    s = _finish(manifest, step_id, ts, "skipped")
    s["summary"] = reason
    add_event(manifest, event_type="step_skipped", ts=ts, step_id=step_id, payload={"reason": reason})


def step_canceled(manifest: RunManifest, *, step_id: str, ts: datetime) -> None:
    _finish(manifest, step_id, ts, "canceled")
    add_event(manifest, event_type="step_canceled", ts=ts, step_id=step_id)


def asset_materialized(manifest: RunManifest, *, step_id: str, ts: datetime, event: Dict[str, Any]) -> None:
    add_event(manifest, event_type="asset_materialized", ts=ts, step_id=step_id, payload={"event": event})


def run_finished(manifest: RunManifest, *, ts: datetime, status: str) -> None:
    manifest.run.update({"status": status, "finished_at": _iso(ts)})
    add_event(manifest, event_type="run_finished", ts=ts, payload={"status": status})


def save_manifest(manifest: RunManifest, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(manifest.to_dict(), ensure_ascii=False, indent=2, sort_keys=True, default=str),
        encoding="utf-8",
    )


def load_manifest(path: Path) -> RunManifest:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return RunManifest.from_dict(data)
