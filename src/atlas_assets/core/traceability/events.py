# src/atlas_assets/core/traceability/events.py
"""
Log append-only de MaterializationEvents.

Este módulo define:
    - MaterializationEvent → registro imutável de uma materialização
    - EventLog             → log append-only, seguro para appends concorrentes
      e leituras pontuais do "último evento por chave"
    - EventDispatcher      → encaminhamento fire-and-forget de eventos para
      observadores externos (UI, telemetria), em thread dedicada

Invariantes:
    - Eventos nunca são mutados nem removidos
    - O último evento por chave é a "materialização corrente"
    - Appends são serializados por um único lock (nenhum update perdido)
    - Observadores lentos ou com erro nunca bloqueiam a engine

Limites explícitos:
    - Não implementa retenção/truncamento
    - Não executa Steps
"""

from __future__ import annotations

import json
import queue
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from atlas_assets.core.assets.keys import AssetKey


class EventOrigin(str, Enum):
    ENGINE = "engine"
    EXTERNAL = "external"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MaterializationEvent:
    """
    Registro imutável produzido quando um slot é materializado.

    Campos:
        - asset_key: chave do asset materializado
        - run_id: run que produziu o evento (ou identificador externo)
        - timestamp: instante UTC do registro
        - code_version: versão de código ativa na produção
        - metadata: mapeamento aberto chave → valor escalar/estruturado
        - step_name: Step produtor (None para eventos externos)
        - origin: `engine` ou `external`
        - event_id: identificador único do evento
    """
    asset_key: AssetKey
    run_id: str
    timestamp: datetime = field(default_factory=_utcnow)
    code_version: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    step_name: Optional[str] = None
    origin: EventOrigin = EventOrigin.ENGINE
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "asset_key": list(self.asset_key.path),
            "run_id": self.run_id,
            "timestamp": self.timestamp.isoformat(),
            "code_version": self.code_version,
            "metadata": dict(self.metadata),
            "step_name": self.step_name,
            "origin": self.origin.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MaterializationEvent":
        ts = datetime.fromisoformat(data["timestamp"])
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return cls(
            asset_key=AssetKey(tuple(data["asset_key"])),
            run_id=data["run_id"],
            timestamp=ts,
            code_version=data.get("code_version"),
            metadata=dict(data.get("metadata") or {}),
            step_name=data.get("step_name"),
            origin=EventOrigin(data.get("origin", EventOrigin.ENGINE.value)),
            event_id=data.get("event_id") or uuid.uuid4().hex,
        )


class EventLog:
    """
    Log append-only de MaterializationEvents, compartilhado entre runs.

    Todas as operações são thread-safe. O log também funciona como o
    registro compartilhado consultado em leituras de assets source e de
    upstreams não executados na run corrente (read-through).
    """

    def __init__(self, events: Optional[Iterable[MaterializationEvent]] = None):
        self._lock = threading.Lock()
        self._events: List[MaterializationEvent] = []
        self._latest: Dict[AssetKey, MaterializationEvent] = {}
        self._run_ids: set = set()
        for ev in events or ():
            self.append(ev)

    def append(self, event: MaterializationEvent) -> MaterializationEvent:
        if not isinstance(event, MaterializationEvent):
            raise TypeError("EventLog only accepts MaterializationEvent")
        with self._lock:
            self._events.append(event)
            self._latest[event.asset_key] = event
            self._run_ids.add(event.run_id)
        return event

    def record_external(
        self,
        key: Union[AssetKey, str],
        *,
        metadata: Optional[Mapping[str, Any]] = None,
        run_id: str = "external",
        code_version: Optional[str] = None,
    ) -> MaterializationEvent:
        """Registra uma materialização feita fora da engine (ex.: asset source)."""
        return self.append(
            MaterializationEvent(
                asset_key=AssetKey.from_coercible(key),
                run_id=run_id,
                code_version=code_version,
                metadata=dict(metadata or {}),
                origin=EventOrigin.EXTERNAL,
            )
        )

    def latest(self, key: AssetKey) -> Optional[MaterializationEvent]:
        with self._lock:
            return self._latest.get(key)

    def latest_for_run(self, key: AssetKey, run_id: str) -> Optional[MaterializationEvent]:
        with self._lock:
            for ev in reversed(self._events):
                if ev.asset_key == key and ev.run_id == run_id:
                    return ev
        return None

    def events_for(self, key: AssetKey) -> Tuple[MaterializationEvent, ...]:
        with self._lock:
            return tuple(e for e in self._events if e.asset_key == key)

    def events_for_run(self, run_id: str) -> Tuple[MaterializationEvent, ...]:
        with self._lock:
            return tuple(e for e in self._events if e.run_id == run_id)

    def has_run(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._run_ids

    def all(self) -> Tuple[MaterializationEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    # ------------------------------------------------------------------
    # Persistência (JSON lines)
    # ------------------------------------------------------------------
    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(e.to_dict(), ensure_ascii=False, sort_keys=True, default=str) for e in self.all()]
        path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "EventLog":
        text = Path(path).read_text(encoding="utf-8")
        events = [MaterializationEvent.from_dict(json.loads(line)) for line in text.splitlines() if line.strip()]
        return cls(events)


Observer = Callable[[MaterializationEvent], Any]

_STOP = object()


class EventDispatcher:
    """
    Encaminha eventos para observadores em uma thread daemon dedicada.

    `notify` apenas enfileira (não bloqueia). Exceções de observadores são
    registradas em `failures` como `(nome do observador, repr da exceção)`.
    """

    def __init__(self, observers: Iterable[Observer] = ()):
        self._observers: List[Observer] = list(observers)
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()
        self.failures: List[Tuple[str, str]] = []

    @property
    def observers(self) -> Tuple[Observer, ...]:
        return tuple(self._observers)

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def _ensure_started(self) -> None:
        with self._start_lock:
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(
                    target=self._drain,
                    name="atlas-assets-event-dispatcher",
                    daemon=True,
                )
                self._thread.start()

    def notify(self, event: MaterializationEvent) -> None:
        if not self._observers:
            return
        self._ensure_started()
        self._queue.put(event)

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                for observer in list(self._observers):
                    try:
                        observer(item)
                    except Exception as e:  # noqa: BLE001
                        name = getattr(observer, "__name__", observer.__class__.__name__)
                        self.failures.append((name, repr(e)))
            finally:
                self._queue.task_done()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Aguarda a entrega dos eventos enfileirados (útil em testes)."""
        if self._thread is None:
            return True
        done = threading.Event()

        def _wait() -> None:
            self._queue.join()
            done.set()

        threading.Thread(target=_wait, daemon=True).start()
        return done.wait(timeout)

    def close(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            self._queue.put(_STOP)
            self._thread.join()
