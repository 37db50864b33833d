# src/atlas_assets/core/engine/engine.py
"""
Engine de execução do Atlas Assets.

Executa um `ExecutionPlan` com paralelismo limitado, respeitando a ordem
de dependências, com retry, propagação de skip e de falha, e registro
forense (Event Log + Manifest).

Modelo de concorrência:
    - Um `ThreadPoolExecutor` com `engine.max_workers` workers
    - O loop de agendamento é o único mutador do estado da run
    - Cada worker executa uma tentativa (load → compute → store → evento)
      e reporta o resultado por uma fila
    - O atraso de retry é um `threading.Timer` que reenfileira o Step,
      sem ocupar um worker
    - Cancelamento via `threading.Event`: nenhuma nova invocação é
      iniciada; invocações em andamento terminam normalmente

Máquina de estados por invocação:
    pending → running → {succeeded, failed, skipped}
    failed → running (retry, até `max_retries`)
    pending → canceled (cancelamento antes do início)

Guardrails:
    - Erros de execução nunca escapam de `execute`: cada exceção é
      convertida em AtlasErrorPayload e gravada no resultado e no Manifest
    - Eventos já gravados nunca são revertidos
    - Erros de preparação da run (run_id duplicado, I/O manager
      desconhecido, configuração inválida) levantam EngineConfigurationError

Limites explícitos:
    - Não resolve o grafo nem avalia seleções (ver core.graph)
    - Não decide staleness (ver core.staleness)
"""

from __future__ import annotations

import queue
import random
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple, Union

from atlas_assets.core.assets.definitions import DEFAULT_IO_MANAGER_KEY, DependencyKind, OutputSlot
from atlas_assets.core.assets.keys import AssetKey, CoercibleToAssetKey
from atlas_assets.core.config.hashing import compute_config_hash
from atlas_assets.core.config.settings import EngineSettings
from atlas_assets.core.errors import AtlasErrorPayload, computation_failed, exception_to_error, upstream_failed
from atlas_assets.core.exceptions import (
    AtlasException,
    ConfigSchemaError,
    EngineConfigurationError,
    EngineExecutionError,
    LoadError,
    MissingRequiredOutput,
    StoreError,
    UpstreamFailed,
)
from atlas_assets.core.graph.graph import AssetGraph
from atlas_assets.core.graph.selection import AssetSelection, select
from atlas_assets.core.io.manager import InMemoryIOManager, IOManager
from atlas_assets.core.pipeline.context import RUN_STEP_ID, RunContext, StepContext
from atlas_assets.core.pipeline.retry import RetryPolicy
from atlas_assets.core.pipeline.types import (
    Declined,
    InvocationResult,
    InvocationStatus,
    Produced,
    RunStatus,
    SlotResult,
    SlotStatus,
    UpstreamOutcome,
)
from atlas_assets.core.traceability import manifest as mf
from atlas_assets.core.traceability.events import EventDispatcher, EventLog, MaterializationEvent, Observer
from atlas_assets.core.traceability.manifest import RunManifest

from .planner import ExecutionPlan, InputBinding, StepInvocation, compile_plan

ENGINE_VERSION = "1.0.0"

# Intervalo de polling do loop de agendamento (reação a cancelamento).
POLL_INTERVAL = 0.05

# Falhas que nunca são reexecutadas, mesmo quando levantadas pela computação.
NON_RETRYABLE = (LoadError, StoreError, ConfigSchemaError, MissingRequiredOutput, EngineConfigurationError)

SlotOutcome = Union[Produced, Declined]
RunTarget = Union[ExecutionPlan, AssetSelection, Iterable[CoercibleToAssetKey]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Resultado agregado
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RunResult:
    """Resultado agregado de uma run (RunResult v1)."""

    run_id: str
    status: RunStatus
    invocations: Dict[str, InvocationResult] = field(default_factory=dict)
    slots: Dict[AssetKey, SlotResult] = field(default_factory=dict)
    manifest: Optional[RunManifest] = field(default=None, compare=False, repr=False)
    context: Optional[RunContext] = field(default=None, compare=False, repr=False)

    @property
    def success(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    def invocation(self, name: str) -> InvocationResult:
        return self.invocations[name]

    def _keys_with(self, status: SlotStatus) -> FrozenSet[AssetKey]:
        return frozenset(k for k, s in self.slots.items() if s.status is status)

    @property
    def materialized_keys(self) -> FrozenSet[AssetKey]:
        return self._keys_with(SlotStatus.MATERIALIZED)

    @property
    def skipped_keys(self) -> FrozenSet[AssetKey]:
        return self._keys_with(SlotStatus.SKIPPED)

    @property
    def failed_keys(self) -> FrozenSet[AssetKey]:
        return self._keys_with(SlotStatus.FAILED)

    @property
    def executed_steps(self) -> Tuple[str, ...]:
        """Steps cuja computação foi chamada ao menos uma vez."""
        return tuple(n for n, r in self.invocations.items() if r.attempts > 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "invocations": {n: r.to_dict() for n, r in self.invocations.items()},
            "slots": {k.to_user_string(): s.to_dict() for k, s in sorted(self.slots.items())},
        }


# ---------------------------------------------------------------------------
# Estruturas internas (worker ↔ agendador)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Job:
    """Snapshot imutável do que um worker precisa para uma tentativa."""
    invocation: StepInvocation
    executed: FrozenSet[str]
    pre_skipped: FrozenSet[str]
    config: Dict[str, Any]
    outcomes: Dict[str, UpstreamOutcome]
    upstream_events: Dict[AssetKey, Optional[MaterializationEvent]]
    loaded: Tuple[InputBinding, ...]
    policy: RetryPolicy


@dataclass
class _AttemptReport:
    name: str
    attempt: int
    events: Dict[str, MaterializationEvent] = field(default_factory=dict)
    declined: Dict[str, Optional[str]] = field(default_factory=dict)
    error: Optional[BaseException] = None
    retryable: bool = False


def _normalize_output(
    step_name: str,
    outputs: Iterable[str],
    executed: FrozenSet[str],
    raw: Any,
) -> Tuple[Dict[str, SlotOutcome], List[str]]:
    """
    Converte o retorno da computação em `slot → Produced | Declined`.

    Retorna também a lista de slots emitidos sem terem sido solicitados
    (ignorados pela engine).
    """
    if isinstance(raw, (Produced, Declined)):
        if len(executed) != 1:
            raise EngineConfigurationError(
                message=(
                    f"Step '{step_name}' returned a single result but {len(executed)} slots were requested"
                ),
                details={"step": step_name, "requested": sorted(executed)},
                hint="Retorne um mapeamento `slot → Produced | Declined`.",
            )
        (only,) = tuple(executed)
        return {only: raw}, []

    is_result_mapping = (
        isinstance(raw, Mapping)
        and len(raw) > 0
        and all(isinstance(v, (Produced, Declined)) for v in raw.values())
    )
    if not is_result_mapping:
        if len(executed) == 1:
            (only,) = tuple(executed)
            return {only: Produced(raw)}, []
        if isinstance(raw, Mapping) and len(raw) == 0:
            return {slot: Declined() for slot in executed}, []
        raise EngineConfigurationError(
            message=f"Step '{step_name}' returned an unsupported output shape: {type(raw).__name__}",
            details={"step": step_name, "requested": sorted(executed), "received": type(raw).__name__},
            hint="Retorne Produced/Declined, um mapeamento `slot → Produced | Declined` ou um valor único.",
        )

    known = set(outputs)
    unknown = sorted(str(k) for k in raw if k not in known)
    if unknown:
        raise EngineConfigurationError(
            message=f"Step '{step_name}' emitted undeclared slots {unknown}",
            details={"step": step_name, "slots": unknown},
        )

    ignored = sorted(k for k in raw if k not in executed)
    emitted = {slot: raw.get(slot, Declined()) for slot in executed}
    return emitted, ignored


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class Engine:
    """
    Engine canônico do Atlas Assets.

    Mantém os recursos compartilhados entre runs: grafo resolvido, I/O
    managers por `io_manager_key`, Event Log e dispatcher de observadores.
    """

    def __init__(
        self,
        graph: AssetGraph,
        *,
        io_manager: Optional[IOManager] = None,
        io_managers: Optional[Mapping[str, IOManager]] = None,
        event_log: Optional[EventLog] = None,
        config: Optional[Mapping[str, Any]] = None,
        observers: Iterable[Observer] = (),
        rng: Optional[random.Random] = None,
    ):
        self.graph = graph
        self.io_managers: Dict[str, IOManager] = dict(io_managers or {})
        if io_manager is not None:
            self.io_managers[DEFAULT_IO_MANAGER_KEY] = io_manager
        self.io_managers.setdefault(DEFAULT_IO_MANAGER_KEY, InMemoryIOManager())
        self.event_log = event_log if event_log is not None else EventLog()
        self.config: Dict[str, Any] = dict(config or {})
        self.settings = EngineSettings.from_config(self.config)
        self.config_hash = compute_config_hash(self.config)
        self.dispatcher = EventDispatcher(observers)
        self.rng = rng or random.Random()
        self._run_ids: Set[str] = set()
        self._run_lock = threading.Lock()

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------
    def plan(self, target: RunTarget) -> ExecutionPlan:
        if isinstance(target, ExecutionPlan):
            return target
        return compile_plan(self.graph, select(self.graph, target))

    def submit_run(
        self,
        target: RunTarget,
        run_id: str,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> RunResult:
        """Compila (quando necessário) e executa um plano, uma seleção ou chaves."""
        return self.execute(self.plan(target), run_id=run_id, cancel=cancel)

    def execute(
        self,
        plan: ExecutionPlan,
        *,
        run_id: str,
        cancel: Optional[threading.Event] = None,
    ) -> RunResult:
        self._check_io_managers(plan)
        self._claim_run_id(run_id)

        started = _utcnow()
        ctx = RunContext(
            run_id=run_id,
            created_at=started,
            config=dict(self.config),
            cancel_event=cancel if cancel is not None else threading.Event(),
        )
        manifest = mf.create_manifest(
            run_id=run_id,
            started_at=started,
            engine_version=ENGINE_VERSION,
            config_hash=self.config_hash,
            plan_fingerprint=plan.fingerprint(),
        )
        result = _RunScheduler(self, plan, ctx, manifest).run()

        if self.settings.manifest_dir is not None:
            path = self.settings.manifest_dir / f"{run_id}.json"
            try:
                mf.save_manifest(manifest, path)
            except OSError as e:
                ctx.log(
                    step_id=RUN_STEP_ID,
                    level="error",
                    message="manifest not saved",
                    path=str(path),
                    exc_type=e.__class__.__name__,
                    exc_message=str(e),
                )
        return result

    # ------------------------------------------------------------------
    # Preparação da run
    # ------------------------------------------------------------------
    def _claim_run_id(self, run_id: str) -> None:
        if not isinstance(run_id, str) or not run_id.strip():
            raise EngineConfigurationError(
                message="run_id must be a non-empty string",
                details={"run_id": run_id},
            )
        with self._run_lock:
            if run_id in self._run_ids or self.event_log.has_run(run_id):
                raise EngineConfigurationError(
                    message=f"Duplicate run_id '{run_id}'",
                    details={"run_id": run_id},
                    hint="Cada run precisa de um identificador único por engine e por Event Log.",
                )
            self._run_ids.add(run_id)

    def _check_io_managers(self, plan: ExecutionPlan) -> None:
        needed: Dict[str, List[str]] = {}
        for inv in plan.invocations:
            keys = set(inv.requested_keys) | {b.upstream_key for b in inv.bindings if b.kind is DependencyKind.LOADED}
            for key in keys:
                manager_key = self.graph.node(key).io_manager_key
                needed.setdefault(manager_key, []).append(key.to_user_string())
        missing = sorted(k for k in needed if k not in self.io_managers)
        if missing:
            raise EngineConfigurationError(
                message=f"Unknown io_manager_key(s): {missing}",
                details={"missing": missing, "assets": {k: sorted(needed[k]) for k in missing}},
                hint="Registre os I/O managers em `Engine(io_managers={...})`.",
            )

    def io_manager_for(self, key: AssetKey) -> IOManager:
        return self.io_managers[self.graph.node(key).io_manager_key]

    # ------------------------------------------------------------------
    # Worker: uma tentativa
    # ------------------------------------------------------------------
    def _attempt(self, job: _Job, run: RunContext, attempt: int) -> _AttemptReport:
        inv = job.invocation
        step = inv.step
        report = _AttemptReport(name=inv.name, attempt=attempt)

        try:
            inputs = {b.input_name: self._load(b.upstream_key) for b in job.loaded}
        except LoadError as e:
            report.error = e
            return report

        ctx = StepContext(
            run=run,
            step_name=inv.name,
            requested=job.executed,
            config=dict(job.config),
            attempt=attempt,
            upstream_outcomes=job.outcomes,
            upstream_events=job.upstream_events,
            input_keys={b.input_name: b.upstream_key for b in inv.bindings},
        )

        try:
            raw = step.compute(ctx, inputs)
        except Exception as e:  # noqa: BLE001
            report.error = e
            report.retryable = not isinstance(e, NON_RETRYABLE)
            return report

        try:
            emitted, ignored = _normalize_output(inv.name, step.output_names, job.executed, raw)
            for slot in ignored:
                message = f"slot '{slot}' emitted but not requested; ignored"
                ctx.add_warning(message)
                ctx.log(message, level="warning")

            missing = sorted(
                s for s, out in emitted.items() if isinstance(out, Declined) and step.output(s).required
            )
            if missing:
                raise MissingRequiredOutput(
                    message=f"Step '{inv.name}' did not emit required slot(s) {missing}",
                    details={"step": inv.name, "slots": missing},
                    hint="Marque o slot como `required=False` ou garanta que a computação o emita.",
                )

            for slot in sorted(emitted):
                out = emitted[slot]
                if isinstance(out, Declined):
                    report.declined[slot] = out.reason
                    continue
                report.events[slot] = self._store(step.output(slot), inv.name, run.run_id, out, step.code_version_for(slot))
        except AtlasException as e:
            report.error = e
        return report

    def _load(self, key: AssetKey) -> Any:
        try:
            return self.io_manager_for(key).load(key)
        except LoadError:
            raise
        except Exception as e:
            raise LoadError(
                message=f"Failed to load asset '{key.to_user_string()}': {e}",
                details={"key": key.to_user_string(), "exc_type": e.__class__.__name__},
            ) from e

    def _store(self, slot: OutputSlot, step_name: str, run_id: str, out: Produced, code_version: Optional[str]) -> MaterializationEvent:
        metadata = dict(slot.metadata)
        metadata.update(out.metadata or {})
        manager = self.io_managers[slot.io_manager_key]
        try:
            manager.store(slot.key, out.value, metadata)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(
                message=f"Failed to store asset '{slot.key.to_user_string()}': {e}",
                details={"key": slot.key.to_user_string(), "exc_type": e.__class__.__name__},
            ) from e

        event = self.event_log.append(
            MaterializationEvent(
                asset_key=slot.key,
                run_id=run_id,
                code_version=code_version,
                metadata=metadata,
                step_name=step_name,
            )
        )
        self.dispatcher.notify(event)
        return event


# ---------------------------------------------------------------------------
# Agendador (uma instância por run)
# ---------------------------------------------------------------------------

class _RunScheduler:
    """Loop de agendamento de uma run; único mutador do estado da run."""

    def __init__(self, engine: Engine, plan: ExecutionPlan, ctx: RunContext, manifest: RunManifest):
        self.engine = engine
        self.plan = plan
        self.ctx = ctx
        self.manifest = manifest
        self.order = {name: i for i, name in enumerate(plan.step_names)}

        self.queue: "queue.Queue[Tuple[Any, ...]]" = queue.Queue()
        self.pool: Optional[ThreadPoolExecutor] = None

        self.results: Dict[str, InvocationResult] = {}
        self.slots: Dict[AssetKey, SlotResult] = {}
        self.jobs: Dict[str, _Job] = {}
        self.attempts: Dict[str, int] = {}
        self.delays: Dict[str, List[float]] = {}
        self.last_error: Dict[str, BaseException] = {}

        self.ready: List[str] = []
        self.inflight: Set[str] = set()
        self.waiting_retry: Dict[str, Optional[threading.Timer]] = {}

        self.produced_keys: Set[AssetKey] = set()
        self.skipped_keys: Set[AssetKey] = set()

    # ------------------------------------------------------------------
    # Loop principal
    # ------------------------------------------------------------------
    def run(self) -> RunResult:
        plan = self.plan
        mf.run_started(self.manifest, ts=_utcnow(), invocations=list(plan.step_names))
        self.ctx.log(step_id=RUN_STEP_ID, level="info", message="run started", invocations=len(plan))

        with ThreadPoolExecutor(
            max_workers=self.engine.settings.max_workers,
            thread_name_prefix="atlas-assets-worker",
        ) as pool:
            self.pool = pool
            self.ready = [n for n in plan.step_names if not plan.dependencies(n)]

            while len(self.results) < len(plan):
                if self.ctx.is_cancelled():
                    self._cancel_pending()
                self._dispatch_ready()
                if len(self.results) >= len(plan):
                    break
                if not self.inflight and not self.waiting_retry and not self.ready and self.queue.empty():
                    pending = [n for n in plan.step_names if n not in self.results]
                    raise EngineExecutionError(
                        message="Scheduler stalled with pending invocations",
                        details={"pending": pending},
                    )
                try:
                    msg = self.queue.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    continue
                self._handle(msg)

        status = self._run_status()
        mf.run_finished(self.manifest, ts=_utcnow(), status=status.value)
        self.ctx.log(step_id=RUN_STEP_ID, level="info", message="run finished", status=status.value)

        return RunResult(
            run_id=self.ctx.run_id,
            status=status,
            invocations={n: self.results[n] for n in plan.step_names},
            slots=dict(sorted(self.slots.items())),
            manifest=self.manifest,
            context=self.ctx,
        )

    def _run_status(self) -> RunStatus:
        statuses = {r.status for r in self.results.values()}
        if InvocationStatus.FAILED in statuses:
            return RunStatus.FAILED
        if InvocationStatus.CANCELED in statuses:
            return RunStatus.CANCELED
        return RunStatus.SUCCEEDED

    def _dispatch_ready(self) -> None:
        self.ready.sort(key=self.order.__getitem__)
        while self.ready:
            name = self.ready.pop(0)
            if name in self.results:
                continue
            if self.ctx.is_cancelled():
                self._finish_canceled(name)
                continue
            self._start(name)

    def _handle(self, msg: Tuple[Any, ...]) -> None:
        kind, name = msg[0], msg[1]
        if kind == "retry":
            self.waiting_retry.pop(name, None)
            if name in self.results:
                return
            if self.ctx.is_cancelled():
                self._finish_failed(name, self.last_error[name], attempts=self.attempts[name])
                return
            self._submit(name, self.attempts[name] + 1)
            return

        _, name, attempt, fut = msg
        self.inflight.discard(name)
        try:
            report: _AttemptReport = fut.result()
        except Exception as e:  # noqa: BLE001
            report = _AttemptReport(
                name=name,
                attempt=attempt,
                error=EngineExecutionError(
                    message=f"Unexpected error while running step '{name}': {e}",
                    details={"step": name, "exc_type": e.__class__.__name__},
                ),
            )

        for slot in sorted(report.events):
            mf.asset_materialized(self.manifest, step_id=name, ts=_utcnow(), event=report.events[slot].to_dict())
            self.ctx.log(
                step_id=name,
                level="info",
                message="asset materialized",
                asset_key=report.events[slot].asset_key.to_user_string(),
            )

        if report.error is None:
            self._finish_succeeded(name, report)
            return

        self.last_error[name] = report.error
        job = self.jobs[name]
        if report.retryable and job.policy.allows_retry(attempt) and not self.ctx.is_cancelled():
            self._schedule_retry(name, attempt, report.error)
            return
        self._finish_failed(name, report.error, attempts=attempt, events=report.events)

    # ------------------------------------------------------------------
    # Início de invocação
    # ------------------------------------------------------------------
    def _start(self, name: str) -> None:
        inv = self.plan.invocation(name)
        step = inv.step
        step_settings = self.engine.settings.for_step(name)

        if not step_settings.enabled:
            self._finish_skipped(name, "skipped by config")
            return

        try:
            if step.config_schema is not None:
                config = step.config_schema.validate(step_settings.config, step=name)
            else:
                config = dict(step_settings.config)
        except ConfigSchemaError as e:
            self._finish_failed(name, e, attempts=0)
            return

        pre_skipped = self._slots_skipped_upstream(inv)
        executed = inv.requested - pre_skipped
        if not executed or (pre_skipped and not step.subsettable):
            self._finish_skipped(name, f"upstream skipped: {', '.join(sorted(pre_skipped))}")
            return

        feeding = {i.name for i in step.inputs_feeding(executed)}
        outcomes: Dict[str, UpstreamOutcome] = {}
        events: Dict[AssetKey, Optional[MaterializationEvent]] = {}
        for b in inv.bindings:
            outcomes[b.input_name] = self._outcome_of(b)
            if outcomes[b.input_name] is UpstreamOutcome.PRODUCED:
                events[b.upstream_key] = self.engine.event_log.latest_for_run(b.upstream_key, self.ctx.run_id)
            elif outcomes[b.input_name] is UpstreamOutcome.EXTERNAL:
                events[b.upstream_key] = self.engine.event_log.latest(b.upstream_key)
            else:
                events[b.upstream_key] = None

        self.jobs[name] = _Job(
            invocation=inv,
            executed=frozenset(executed),
            pre_skipped=frozenset(pre_skipped),
            config=config,
            outcomes=outcomes,
            upstream_events=events,
            loaded=tuple(
                b for b in inv.bindings if b.kind is DependencyKind.LOADED and b.input_name in feeding
            ),
            policy=self.engine.settings.retry_policy_for(name, step.retry_policy),
        )
        self._submit(name, 1)

    def _outcome_of(self, binding: InputBinding) -> UpstreamOutcome:
        if binding.producer is None:
            return UpstreamOutcome.EXTERNAL
        if binding.upstream_key in self.skipped_keys:
            return UpstreamOutcome.DECLINED
        return UpstreamOutcome.PRODUCED

    def _slots_skipped_upstream(self, inv: StepInvocation) -> Set[str]:
        """Slots solicitados cujos inputs `loaded` incluem um slot pulado nesta run."""
        skipped: Set[str] = set()
        for slot in inv.requested:
            for i in inv.step.inputs_feeding([slot]):
                if i.kind is DependencyKind.LOADED and i.key in self.skipped_keys:
                    skipped.add(slot)
                    break
        return skipped

    def _submit(self, name: str, attempt: int) -> None:
        job = self.jobs[name]
        self.attempts[name] = attempt
        self.inflight.add(name)
        mf.step_started(
            self.manifest,
            step_id=name,
            ts=_utcnow(),
            attempt=attempt,
            requested=sorted(job.executed),
        )
        self.ctx.log(
            step_id=name,
            level="info",
            message="step started",
            attempt=attempt,
            requested=sorted(job.executed),
        )
        fut = self.pool.submit(self.engine._attempt, job, self.ctx, attempt)
        fut.add_done_callback(partial(self._post, name, attempt))

    def _post(self, name: str, attempt: int, fut: Future) -> None:
        self.queue.put(("done", name, attempt, fut))

    def _schedule_retry(self, name: str, attempt: int, error: BaseException) -> None:
        policy = self.jobs[name].policy
        delay = policy.delay_for(attempt, self.engine.rng)
        self.delays.setdefault(name, []).append(delay)
        payload = exception_to_error(error, step=name)
        mf.step_retry_scheduled(
            self.manifest,
            step_id=name,
            ts=_utcnow(),
            attempt=attempt,
            delay=delay,
            error=payload.to_dict(),
        )
        self.ctx.log(
            step_id=name,
            level="warning",
            message="retry scheduled",
            attempt=attempt,
            delay=delay,
            error=payload.message,
        )

        if delay <= 0:
            self.waiting_retry[name] = None
            self.queue.put(("retry", name))
            return
        timer = threading.Timer(delay, self.queue.put, args=(("retry", name),))
        timer.daemon = True
        self.waiting_retry[name] = timer
        timer.start()

    # ------------------------------------------------------------------
    # Estados terminais
    # ------------------------------------------------------------------
    def _on_terminal(self, name: str) -> None:
        for d in self.plan.dependents(name):
            if d in self.results or d in self.ready:
                continue
            if all(dep in self.results for dep in self.plan.dependencies(d)):
                self.ready.append(d)

    def _finish_succeeded(self, name: str, report: _AttemptReport) -> None:
        job = self.jobs[name]
        inv = job.invocation

        for slot, event in report.events.items():
            key = inv.step.output(slot).key
            self.produced_keys.add(key)
            self.slots[key] = SlotResult(key=key, step_name=name, status=SlotStatus.MATERIALIZED, event=event)
        for slot, reason in report.declined.items():
            key = inv.step.output(slot).key
            self.skipped_keys.add(key)
            self.slots[key] = SlotResult(
                key=key,
                step_name=name,
                status=SlotStatus.SKIPPED,
                reason=reason or "declined",
            )
        for slot in job.pre_skipped:
            key = inv.step.output(slot).key
            self.skipped_keys.add(key)
            self.slots[key] = SlotResult(key=key, step_name=name, status=SlotStatus.SKIPPED, reason="upstream skipped")

        parts = [f"materialized {len(report.events)} slot(s)"]
        skipped_slots = sorted(set(report.declined) | set(job.pre_skipped))
        if skipped_slots:
            parts.append(f"skipped: {', '.join(skipped_slots)}")
        result = InvocationResult(
            step_name=name,
            status=InvocationStatus.SUCCEEDED,
            requested=inv.requested,
            executed=job.executed,
            attempts=report.attempt,
            retry_delays=tuple(self.delays.get(name, ())),
            summary="; ".join(parts),
        )
        self.results[name] = result
        mf.step_finished(self.manifest, step_id=name, ts=_utcnow(), result=result.to_dict())
        self.ctx.log(step_id=name, level="info", message="step succeeded", summary=result.summary)
        self._on_terminal(name)

    def _finish_skipped(self, name: str, reason: str) -> None:
        inv = self.plan.invocation(name)
        for key in inv.requested_keys:
            self.skipped_keys.add(key)
            self.slots[key] = SlotResult(key=key, step_name=name, status=SlotStatus.SKIPPED, reason=reason)
        self.results[name] = InvocationResult(
            step_name=name,
            status=InvocationStatus.SKIPPED,
            requested=inv.requested,
            summary=reason,
        )
        mf.step_skipped(self.manifest, step_id=name, ts=_utcnow(), reason=reason)
        self.ctx.log(step_id=name, level="info", message="step skipped", reason=reason)
        self._on_terminal(name)

    def _finish_canceled(self, name: str) -> None:
        inv = self.plan.invocation(name)
        for key in inv.requested_keys:
            self.slots[key] = SlotResult(key=key, step_name=name, status=SlotStatus.CANCELED, reason="run canceled")
        self.results[name] = InvocationResult(
            step_name=name,
            status=InvocationStatus.CANCELED,
            requested=inv.requested,
            summary="canceled before start",
        )
        mf.step_canceled(self.manifest, step_id=name, ts=_utcnow())
        self.ctx.log(step_id=name, level="warning", message="step canceled")

    def _cancel_pending(self) -> None:
        for name in list(self.waiting_retry):
            timer = self.waiting_retry.pop(name)
            if timer is not None:
                timer.cancel()
            if name not in self.results:
                self._finish_failed(name, self.last_error[name], attempts=self.attempts[name])
        for name in self.plan.step_names:
            if name not in self.results and name not in self.inflight:
                self._finish_canceled(name)
        self.ready.clear()

    def _error_payload(self, name: str, error: BaseException, attempts: int) -> AtlasErrorPayload:
        if isinstance(error, AtlasException):
            return exception_to_error(error, step=name)
        return computation_failed(
            step=name,
            exc_type=error.__class__.__name__,
            exc_message=str(error),
            attempts=attempts,
        )

    def _finish_failed(
        self,
        name: str,
        error: BaseException,
        *,
        attempts: int,
        events: Optional[Mapping[str, MaterializationEvent]] = None,
    ) -> None:
        inv = self.plan.invocation(name)
        payload = self._error_payload(name, error, attempts)
        events = dict(events or {})

        for slot in inv.requested:
            key = inv.step.output(slot).key
            if slot in events:
                self.produced_keys.add(key)
                self.slots[key] = SlotResult(key=key, step_name=name, status=SlotStatus.MATERIALIZED, event=events[slot])
            else:
                self.slots[key] = SlotResult(key=key, step_name=name, status=SlotStatus.FAILED, error=payload)

        self.results[name] = InvocationResult(
            step_name=name,
            status=InvocationStatus.FAILED,
            requested=inv.requested,
            executed=self.jobs[name].executed if name in self.jobs else frozenset(),
            attempts=attempts,
            retry_delays=tuple(self.delays.get(name, ())),
            summary=f"failed: {payload.message}",
            error=payload,
            exception=error,
        )
        mf.step_failed(self.manifest, step_id=name, ts=_utcnow(), error=payload.to_dict(), attempts=attempts)
        self.ctx.log(step_id=name, level="error", message="step failed", error=payload.message, attempts=attempts)
        self._propagate_failure(name)

    def _propagate_failure(self, origin: str) -> None:
        """Marca todo dependente transitivo (ainda não terminal) como falho sem execução."""
        chains: Dict[str, Tuple[str, ...]] = {origin: (origin,)}
        frontier = deque([origin])
        while frontier:
            current = frontier.popleft()
            for d in sorted(self.plan.dependents(current)):
                if d in chains or d in self.results:
                    continue
                chain = chains[current] + (d,)
                chains[d] = chain
                frontier.append(d)
                self._finish_upstream_failed(d, origin, chain)

    def _finish_upstream_failed(self, name: str, origin: str, chain: Tuple[str, ...]) -> None:
        inv = self.plan.invocation(name)
        payload = upstream_failed(step=name, origin=origin, chain=list(chain))
        exc = UpstreamFailed(message=payload.message, details=dict(payload.details), hint=payload.hint)
        for key in inv.requested_keys:
            self.slots[key] = SlotResult(key=key, step_name=name, status=SlotStatus.FAILED, error=payload)
        self.results[name] = InvocationResult(
            step_name=name,
            status=InvocationStatus.FAILED,
            requested=inv.requested,
            summary=f"upstream failed: {origin}",
            error=payload,
            exception=exc,
            short_circuited_by=origin,
            chain=chain,
        )
        mf.step_failed(self.manifest, step_id=name, ts=_utcnow(), error=payload.to_dict(), attempts=0)
        self.ctx.log(
            step_id=name,
            level="error",
            message="step short-circuited by upstream failure",
            origin=origin,
            chain=list(chain),
        )


__all__ = ["ENGINE_VERSION", "Engine", "RunResult"]
