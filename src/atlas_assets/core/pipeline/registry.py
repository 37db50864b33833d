# src/atlas_assets/core/pipeline/registry.py
"""
Registro estrutural de declarações (Steps e SourceAssets).

O `DeclarationRegistry` é a porta de entrada das declarações já
finalizadas por um mecanismo externo de carregamento. Ele valida, no
momento do registro:
    - unicidade de nomes de Step
    - unicidade global de chaves de asset (outputs e sources)

Em caso de duplicidade, `DuplicateKey` nomeia os dois locais de declaração.

Limites explícitos:
    - Não resolve dependências (ver core.graph.resolver)
    - Não executa Steps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple, Union

from atlas_assets.core.assets.definitions import SourceAsset
from atlas_assets.core.assets.keys import AssetKey
from atlas_assets.core.exceptions import DuplicateKey

from .step import Step

Declaration = Union[Step, SourceAsset]


def duplicate_key_error(key: AssetKey, first_site: str, second_site: str) -> DuplicateKey:
    return DuplicateKey(
        message=(
            f"Duplicate asset key '{key.to_user_string()}' declared by "
            f"{first_site} and {second_site}"
        ),
        details={
            "key": key.to_user_string(),
            "sites": [first_site, second_site],
        },
        hint="Renomeie uma das declarações ou remova a duplicata.",
    )


def duplicate_step_error(name: str, first_site: str, second_site: str) -> DuplicateKey:
    return DuplicateKey(
        message=f"Duplicate step name '{name}' declared by {first_site} and {second_site}",
        details={"step": name, "sites": [first_site, second_site]},
        hint="Nomes de Step devem ser únicos no grafo.",
    )


@dataclass
class DeclarationRegistry:
    """
    Registro canônico de declarações para validação estrutural pré-resolução.

    A ordem de registro é preservada e repassada ao resolver.
    """

    _steps: Dict[str, Step] = field(default_factory=dict, init=False, repr=False)
    _sources: Dict[AssetKey, SourceAsset] = field(default_factory=dict, init=False, repr=False)
    _key_sites: Dict[AssetKey, str] = field(default_factory=dict, init=False, repr=False)
    _order: List[Declaration] = field(default_factory=list, init=False, repr=False)

    def add(self, declaration: Declaration) -> None:
        if isinstance(declaration, Step):
            self.add_step(declaration)
        elif isinstance(declaration, SourceAsset):
            self.add_source(declaration)
        else:
            raise TypeError(f"Unsupported declaration type: {type(declaration).__name__}")

    def add_all(self, declarations: Iterable[Declaration]) -> "DeclarationRegistry":
        for d in declarations:
            self.add(d)
        return self

    def add_step(self, step: Step) -> None:
        if step.name in self._steps:
            raise duplicate_step_error(step.name, self._steps[step.name].site, step.site)
        own = set()
        for key in step.output_keys:
            if key in self._key_sites:
                raise duplicate_key_error(key, self._key_sites[key], step.site)
            if key in own:
                raise duplicate_key_error(key, step.site, step.site)
            own.add(key)
        for key in step.output_keys:
            self._key_sites[key] = step.site
        self._steps[step.name] = step
        self._order.append(step)

    def add_source(self, source: SourceAsset) -> None:
        if source.key in self._key_sites:
            raise duplicate_key_error(source.key, self._key_sites[source.key], source.site)
        self._key_sites[source.key] = source.site
        self._sources[source.key] = source
        self._order.append(source)

    def steps(self) -> Tuple[Step, ...]:
        return tuple(d for d in self._order if isinstance(d, Step))

    def sources(self) -> Tuple[SourceAsset, ...]:
        return tuple(d for d in self._order if isinstance(d, SourceAsset))

    def list(self) -> List[Declaration]:
        return list(self._order)

    def __len__(self) -> int:
        return len(self._order)
