# src/atlas_assets/core/traceability/__init__.py
"""
Rastreabilidade do Atlas Assets.

API pública:
    - MaterializationEvent, EventLog, EventDispatcher → log append-only de
      materializações e encaminhamento para observadores externos
    - RunManifest, create_manifest, save_manifest, load_manifest → registro
      forense de cada run (estado por invocação + Event Log ordenado)
"""

from .events import EventDispatcher, EventLog, EventOrigin, MaterializationEvent
from .manifest import RunManifest, create_manifest, load_manifest, save_manifest

__all__ = [
    "EventDispatcher",
    "EventLog",
    "EventOrigin",
    "MaterializationEvent",
    "RunManifest",
    "create_manifest",
    "load_manifest",
    "save_manifest",
]
