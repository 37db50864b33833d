# src/atlas_assets/core/io/manager.py
"""
Contrato de I/O manager (Loader Abstraction).

Duas operações, polimórficas sobre o backend:

    store(key, value, metadata) -> None   (falha → StoreError)
    load(key) -> value                    (falha → LoadError)

A engine nunca inspeciona o valor: ele é um payload opaco. Para assets
source, `load` deve ser satisfeito apenas pelo estado externo do backend,
sem que nenhum Step seja executado.

Implementações neste pacote:
    - InMemoryIOManager → dicionário thread-safe (testes, runs efêmeras)
    - JoblibIOManager   → um arquivo joblib por chave (ver joblib_manager.py)
"""

from __future__ import annotations

import threading
from copy import deepcopy
from typing import Any, Dict, Mapping, Optional, Protocol, Union, runtime_checkable

from atlas_assets.core.assets.keys import AssetKey
from atlas_assets.core.exceptions import LoadError


@runtime_checkable
class IOManager(Protocol):
    """Contrato mínimo de um backend de store/load de assets."""

    def store(self, key: AssetKey, value: Any, metadata: Mapping[str, Any]) -> None:
        ...

    def load(self, key: AssetKey) -> Any:
        ...


def missing_value_error(key: AssetKey, backend: str) -> LoadError:
    return LoadError(
        message=f"No stored value for asset '{key.to_user_string()}'",
        details={"key": key.to_user_string(), "backend": backend},
        hint="Materialize o asset (ou registre o valor externo do source) antes de carregá-lo.",
    )


class InMemoryIOManager:
    """
    Backend em memória, seguro para uso concorrente pelos workers.

    Aceita valores iniciais (ex.: assets source) no construtor. Com
    `copy_on_load=True`, cada load devolve uma cópia profunda do valor,
    isolando computações que mutam seus inputs.
    """

    def __init__(
        self,
        values: Optional[Mapping[Union[AssetKey, str], Any]] = None,
        *,
        copy_on_load: bool = True,
    ):
        self._lock = threading.Lock()
        self._values: Dict[AssetKey, Any] = {}
        self._metadata: Dict[AssetKey, Dict[str, Any]] = {}
        self.copy_on_load = copy_on_load
        for k, v in (values or {}).items():
            self._values[AssetKey.from_coercible(k)] = v

    def store(self, key: AssetKey, value: Any, metadata: Mapping[str, Any]) -> None:
        with self._lock:
            self._values[key] = value
            self._metadata[key] = dict(metadata or {})

    def load(self, key: AssetKey) -> Any:
        with self._lock:
            if key not in self._values:
                raise missing_value_error(key, "memory")
            value = self._values[key]
        return deepcopy(value) if self.copy_on_load else value

    def has(self, key: AssetKey) -> bool:
        with self._lock:
            return key in self._values

    def metadata_for(self, key: AssetKey) -> Dict[str, Any]:
        with self._lock:
            return dict(self._metadata.get(key, {}))

    def keys(self):
        with self._lock:
            return sorted(self._values)
