# src/atlas_assets/core/assets/keys.py
"""
Identificador canônico de assets.

Um `AssetKey` é uma sequência ordenada de segmentos de caminho não vazios
(ex.: ``("warehouse", "orders", "daily")``). Igualdade, hash e ordenação
são estruturais, segmento a segmento.

Regras:
    - Segmentos são strings não vazias, sem "/" e diferentes de "." e ".."
    - A chave é imutável após construída
    - A forma de exibição une os segmentos com "/"
    - A ordenação total é a ordenação da tupla de segmentos

Limites explícitos:
    - Não valida existência do asset em nenhum grafo
    - Não conhece I/O managers nem eventos
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple, Union

SEPARATOR = "/"
RESERVED_SEGMENTS = frozenset({".", ".."})


@dataclass(frozen=True, order=True)
class AssetKey:
    """
    Chave estrutural e imutável de um asset.

    Exemplos:
        >>> AssetKey(("raw", "orders")).to_user_string()
        'raw/orders'
        >>> AssetKey.from_coercible("raw/orders") == AssetKey(("raw", "orders"))
        True
    """

    path: Tuple[str, ...]

    def __post_init__(self) -> None:
        path = self.path
        if isinstance(path, str):
            path = (path,)
        path = tuple(path)
        if not path:
            raise ValueError("AssetKey requires at least one path segment")
        for seg in path:
            if not isinstance(seg, str) or not seg.strip():
                raise ValueError(f"AssetKey segments must be non-empty strings, got: {seg!r}")
            if SEPARATOR in seg:
                raise ValueError(f"AssetKey segment must not contain '{SEPARATOR}', got: {seg!r}")
            if seg in RESERVED_SEGMENTS:
                raise ValueError(f"AssetKey segment {seg!r} is reserved")
        object.__setattr__(self, "path", path)

    @classmethod
    def of(cls, *segments: str) -> "AssetKey":
        return cls(tuple(segments))

    @classmethod
    def from_user_string(cls, value: str) -> "AssetKey":
        return cls(tuple(value.split(SEPARATOR)))

    @classmethod
    def from_coercible(cls, value: "CoercibleToAssetKey") -> "AssetKey":
        """Aceita AssetKey, string ("a/b") ou sequência de segmentos."""
        if isinstance(value, AssetKey):
            return value
        if isinstance(value, str):
            return cls.from_user_string(value)
        if isinstance(value, (list, tuple)):
            return cls(tuple(value))
        raise TypeError(f"Cannot coerce {type(value).__name__} to AssetKey")

    @property
    def name(self) -> str:
        """Último segmento da chave (usado no name-matching de inputs)."""
        return self.path[-1]

    @property
    def prefix(self) -> Tuple[str, ...]:
        return self.path[:-1]

    def with_prefix(self, *prefix: str) -> "AssetKey":
        return AssetKey(tuple(prefix) + self.path)

    def to_user_string(self) -> str:
        return SEPARATOR.join(self.path)

    def __str__(self) -> str:
        return self.to_user_string()

    def __repr__(self) -> str:
        return f"AssetKey({list(self.path)!r})"


CoercibleToAssetKey = Union[AssetKey, str, Sequence[str]]


def coerce_keys(values: Iterable[CoercibleToAssetKey]) -> Tuple[AssetKey, ...]:
    return tuple(AssetKey.from_coercible(v) for v in values)


def format_keys(keys: Iterable[AssetKey]) -> str:
    return ", ".join(k.to_user_string() for k in keys)
