"""I/O manager em disco baseado em joblib (v1).

Cada asset é persistido em um caminho determinístico relativo a `base_dir`:

    <base_dir>/<seg1>/<seg2>/.../<segN>.joblib

e os metadados do último store ficam ao lado, em `<segN>.meta.json`.

Decisões (v1):
- Formato: joblib
- Escrita atômica (arquivo temporário + rename) para que leitores
  concorrentes nunca vejam um arquivo parcial
- Ausência do arquivo no load → LoadError (não FileNotFoundError cru)

Limites explícitos:
- Não versiona valores (um arquivo por chave; o último store vence)
- Não registra eventos (responsabilidade da engine)
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import joblib

from atlas_assets.core.assets.keys import AssetKey
from atlas_assets.core.exceptions import LoadError, StoreError

from .manager import missing_value_error


class JoblibIOManager:
    """Backend de filesystem com um arquivo joblib por chave de asset."""

    def __init__(self, *, base_dir: Union[str, Path], compress: Union[int, bool] = 0):
        self.base_dir = Path(base_dir)
        self.compress = compress

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def artifact_path(self, key: AssetKey) -> Path:
        *parents, leaf = key.path
        return self.base_dir.joinpath(*parents) / f"{leaf}.joblib"

    def metadata_path(self, key: AssetKey) -> Path:
        *parents, leaf = key.path
        return self.base_dir.joinpath(*parents) / f"{leaf}.meta.json"

    # ------------------------------------------------------------------
    # Persist / Load
    # ------------------------------------------------------------------
    def store(self, key: AssetKey, value: Any, metadata: Mapping[str, Any]) -> None:
        path = self.artifact_path(key)
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            joblib.dump(value, tmp, compress=self.compress)
            os.replace(tmp, path)
            self.metadata_path(key).write_text(
                json.dumps(dict(metadata or {}), ensure_ascii=False, sort_keys=True, default=str),
                encoding="utf-8",
            )
        except Exception as e:
            raise StoreError(
                message=f"Failed to store asset '{key.to_user_string()}': {e}",
                details={"key": key.to_user_string(), "path": str(path), "exc_type": e.__class__.__name__},
                hint="Verifique permissões e espaço em disco do base_dir.",
            ) from e

    def load(self, key: AssetKey) -> Any:
        path = self.artifact_path(key)
        if not path.exists():
            raise missing_value_error(key, "joblib")
        try:
            return joblib.load(path)
        except Exception as e:
            raise LoadError(
                message=f"Failed to load asset '{key.to_user_string()}': {e}",
                details={"key": key.to_user_string(), "path": str(path), "exc_type": e.__class__.__name__},
            ) from e

    def stored_metadata(self, key: AssetKey) -> Dict[str, Any]:
        path = self.metadata_path(key)
        if not path.exists():
            return {}
        return json.loads(path.read_text(encoding="utf-8"))


__all__ = ["JoblibIOManager"]
