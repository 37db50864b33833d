# src/atlas_assets/core/config/hashing.py
"""
Hashing canônico de estruturas serializáveis.

Política (v1): JSON com chaves ordenadas, separadores compactos, UTF-8,
SHA-256. O hash da configuração resolvida e o fingerprint do plano de
execução são gravados no Manifest de cada run.
"""

import hashlib
import json
from typing import Any, Dict


def canonical_hash(value: Any) -> str:
    canonical_json = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Hash SHA-256 hexadecimal (64 caracteres) da configuração resolvida.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )
    return canonical_hash(config)
