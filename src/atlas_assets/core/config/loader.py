# src/atlas_assets/core/config/loader.py
"""
Loader canônico de configuração do Atlas Assets.

A configuração efetiva de uma engine é resolvida a partir de:
    - um arquivo de defaults (obrigatório)
    - um arquivo local de overrides (opcional; ignorado se não existir)
    - overrides programáticos (opcional; maior precedência)

Formatos aceitos: YAML (.yaml, .yml) e JSON (.json).

Invariantes:
    - O resultado é sempre um dicionário puro (`dict`)
    - Overrides nunca mutam os defaults
    - A mesma entrada sempre produz a mesma configuração final

Limites explícitos:
    - Não valida valores da engine (ver `EngineSettings.from_config`)
    - Não persiste configuração nem hash
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # PyYAML

from .errors import (
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .merge import deep_merge

PathLike = Union[str, Path]


def _parse(text: str, *, suffix: str) -> Any:
    if suffix in {".yaml", ".yml"}:
        return yaml.safe_load(text)
    if suffix == ".json":
        return json.loads(text)
    raise UnsupportedConfigFormatError(f"Formato não suportado: {suffix}")


def _load_file(path: Path) -> Dict[str, Any]:
    """
    Lê um arquivo de configuração e valida o tipo raiz.

    Arquivos vazios são interpretados como dicionários vazios.

    Raises:
        DefaultsNotFoundError: Se o arquivo não existir.
        UnsupportedConfigFormatError: Se a extensão não for suportada.
        InvalidConfigRootTypeError: Se o conteúdo raiz não for um dicionário.
    """
    if not path.exists():
        raise DefaultsNotFoundError(f"Arquivo de defaults não encontrado: {path}")

    data = _parse(path.read_text(encoding="utf-8"), suffix=path.suffix.lower())
    return _ensure_dict(data)


def _ensure_dict(data: Any) -> Dict[str, Any]:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Config root deve ser dict, recebido: {type(data).__name__}"
        )
    return data


def load_config_text(text: str, *, fmt: str = "yaml") -> Dict[str, Any]:
    """Carrega configuração a partir de uma string YAML/JSON (sem I/O)."""
    return _ensure_dict(_parse(text, suffix=f".{fmt.lower().lstrip('.')}"))


def load_config(
    *,
    defaults_path: PathLike,
    local_path: Optional[PathLike] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Carrega e resolve a configuração efetiva.

    Precedência: overrides > local > defaults.

    Raises:
        DefaultsNotFoundError: Se o arquivo de defaults não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        InvalidConfigRootTypeError: Se o conteúdo não for um dicionário.
        ConfigTypeConflictError: Se ocorrer conflito estrutural durante o merge.
    """
    effective = _load_file(Path(defaults_path))

    if local_path is not None:
        local_file = Path(local_path)
        if local_file.exists():
            effective = deep_merge(effective, _load_file(local_file))

    if overrides:
        effective = deep_merge(effective, _ensure_dict(overrides))

    return effective
