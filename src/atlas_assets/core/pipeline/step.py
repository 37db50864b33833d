# src/atlas_assets/core/pipeline/step.py
"""
Contrato canônico de Step do Atlas Assets.

Um Step é a unidade de computação: possui um ou mais slots de output
(cada slot mapeia 1:1 para um asset) e zero ou mais slots de input.
Um Step com vários outputs é um "multi-asset".

Responsabilidades de um Step:
    - declarar inputs, outputs e dependências internas (output → inputs)
    - expor uma computação `compute(ctx, inputs)` pura em relação ao Engine
    - declarar políticas opcionais (retry, schema de config, code version)

Princípios fundamentais:
    - Steps não conhecem o Engine nem o planner
    - Steps não controlam ordem de execução
    - Inputs `loaded` chegam como um mapeamento `nome do input → valor`,
      resolvido pela tabela de binding do resolver (sem reflexão)

Invariantes:
    - `name` é único no grafo
    - Nomes de slots (inputs e outputs) são únicos dentro do Step
    - Um Step não-subsettable sempre tenta produzir todos os seus slots

Formas de retorno aceitas por `compute`:
    - `Produced(value, metadata)` ou `Declined()` quando um único slot é solicitado
    - mapeamento `slot → Produced | Declined` (slot ausente = Declined)
    - valor "nu" quando exatamente um slot é solicitado (vira `Produced(value)`)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    FrozenSet,
    Iterable,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from atlas_assets.core.assets.definitions import DependencyKind, InputSlot, OutputSlot
from atlas_assets.core.assets.keys import AssetKey

from .retry import RetryPolicy

if TYPE_CHECKING:  # pragma: no cover
    from atlas_assets.core.config.schema import ConfigSchema
    from .context import StepContext


@runtime_checkable
class Computation(Protocol):
    """Assinatura da computação de um Step."""

    def __call__(self, ctx: "StepContext", inputs: Mapping[str, Any]) -> Any:
        ...


@dataclass(frozen=True)
class Step:
    """
    Declaração imutável de uma unidade de computação.

    Atributos:
        - name: identificador único do Step
        - outputs: slots de output (>= 1)
        - compute: computação `compute(ctx, inputs)`
        - inputs: slots de input (binding explícito ou por nome)
        - subsettable: permite solicitar um subconjunto estrito dos outputs
        - internal_deps: output → inputs que o alimentam (default: todos)
        - retry_policy: política de retry para falhas levantadas
        - config_schema: schema da configuração estruturada do Step
        - code_version: versão default para slots sem versão própria
        - declared_at: local de declaração (usado em mensagens de erro)
    """
    name: str
    outputs: Tuple[OutputSlot, ...]
    compute: Computation = field(compare=False, hash=False)
    inputs: Tuple[InputSlot, ...] = ()
    subsettable: bool = False
    internal_deps: Optional[Mapping[str, FrozenSet[str]]] = field(default=None, hash=False)
    retry_policy: Optional[RetryPolicy] = None
    config_schema: Optional["ConfigSchema"] = field(default=None, compare=False, hash=False)
    code_version: Optional[str] = None
    declared_at: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("step.name must be a non-empty string")
        outputs = tuple(self.outputs)
        inputs = tuple(self.inputs)
        if not outputs:
            raise ValueError(f"Step '{self.name}' must declare at least one output")
        if not callable(self.compute):
            raise TypeError(f"Step '{self.name}' compute must be callable")

        seen = set()
        for slot in list(outputs) + list(inputs):
            if slot.name in seen:
                raise ValueError(f"Step '{self.name}' declares slot '{slot.name}' more than once")
            seen.add(slot.name)

        object.__setattr__(self, "outputs", outputs)
        object.__setattr__(self, "inputs", inputs)
        if self.internal_deps is not None:
            object.__setattr__(
                self,
                "internal_deps",
                {str(k): frozenset(v) for k, v in dict(self.internal_deps).items()},
            )

    # ------------------------------------------------------------------
    # Acesso a slots
    # ------------------------------------------------------------------
    @property
    def site(self) -> str:
        return self.declared_at or f"step '{self.name}'"

    @property
    def output_names(self) -> Tuple[str, ...]:
        return tuple(o.name for o in self.outputs)

    @property
    def output_keys(self) -> Tuple[AssetKey, ...]:
        return tuple(o.key for o in self.outputs)

    def output(self, name: str) -> OutputSlot:
        for o in self.outputs:
            if o.name == name:
                return o
        raise KeyError(name)

    def output_for_key(self, key: AssetKey) -> OutputSlot:
        for o in self.outputs:
            if o.key == key:
                return o
        raise KeyError(key)

    def input(self, name: str) -> InputSlot:
        for i in self.inputs:
            if i.name == name:
                return i
        raise KeyError(name)

    def code_version_for(self, output_name: str) -> Optional[str]:
        slot = self.output(output_name)
        return slot.code_version if slot.code_version is not None else self.code_version

    def inputs_feeding(self, output_names: Iterable[str]) -> Tuple[InputSlot, ...]:
        """Inputs que alimentam ao menos um dos outputs informados."""
        wanted = set(output_names)
        if self.internal_deps is None:
            return self.inputs if wanted else ()
        names = set()
        for out in wanted:
            names |= set(self.internal_deps.get(out, frozenset()))
        return tuple(i for i in self.inputs if i.name in names)

    def loaded_inputs(self) -> Tuple[InputSlot, ...]:
        return tuple(i for i in self.inputs if i.kind is DependencyKind.LOADED)

    def with_inputs(self, inputs: Iterable[InputSlot]) -> "Step":
        return replace(self, inputs=tuple(inputs))

    def __repr__(self) -> str:
        return f"Step(name={self.name!r}, outputs={list(self.output_names)!r})"


def single_output_step(
    name: str,
    compute: Computation,
    *,
    key: Any = None,
    inputs: Iterable[InputSlot] = (),
    required: bool = True,
    code_version: Optional[str] = None,
    group: Optional[str] = None,
    **kwargs: Any,
) -> Step:
    """Atalho para o caso comum de um Step que produz um único asset."""
    out_kwargs: Dict[str, Any] = {"required": required}
    if group is not None:
        out_kwargs["group"] = group
    slot = OutputSlot(
        name=name,
        key=AssetKey.from_coercible(key if key is not None else name),
        **out_kwargs,
    )
    return Step(
        name=name,
        outputs=(slot,),
        compute=compute,
        inputs=tuple(inputs),
        code_version=code_version,
        **kwargs,
    )
