# src/atlas_assets/core/engine/planner.py
"""
Compilador de planos de execução (Step Compiler).

Este módulo transforma um conjunto de chaves selecionadas em um
`ExecutionPlan`: uma invocação por Step que possui ao menos uma chave
computada selecionada, com os slots solicitados e a tabela de bindings
dos inputs necessários.

Princípios fundamentais:
    - O plano é derivado apenas do grafo resolvido e da seleção
    - A ordenação é determinística para a mesma entrada
    - Nenhuma decisão silenciosa ou heurística implícita

Decisões arquiteturais:
    - Ordenação topológica determinística (Kahn) sobre as invocações
    - Empates são resolvidos por ordem lexicográfica do nome do Step
    - Apenas inputs que alimentam os slots solicitados são associados
      (conforme `internal_deps`)
    - Um input cujo upstream não é produzido no plano é lido do estado
      externo (read-through): `producer` é None

Invariantes:
    - Um Step aparece no máximo uma vez por plano
    - Chaves source nunca geram invocações
    - Steps não-subsettable sempre solicitam todos os seus slots
    - Uma invocação só inicia após todos os seus produtores no plano
      atingirem um estado terminal

Limites explícitos:
    - Não executa Steps
    - Não interage com RunContext nem com I/O managers
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

from atlas_assets.core.assets.definitions import DependencyKind
from atlas_assets.core.assets.keys import AssetKey
from atlas_assets.core.config.hashing import canonical_hash
from atlas_assets.core.graph.graph import AssetGraph
from atlas_assets.core.graph.toposort import topological_sort
from atlas_assets.core.pipeline.step import Step


@dataclass(frozen=True)
class InputBinding:
    """Associação resolvida de um input de uma invocação."""
    input_name: str
    upstream_key: AssetKey
    kind: DependencyKind
    producer: Optional[str] = None

    @property
    def is_read_through(self) -> bool:
        return self.producer is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_name": self.input_name,
            "upstream_key": self.upstream_key.to_user_string(),
            "kind": self.kind.value,
            "producer": self.producer,
        }


@dataclass(frozen=True)
class StepInvocation:
    """Uma execução planejada de um Step com um subconjunto de slots solicitados."""
    step: Step
    requested: FrozenSet[str]
    bindings: Tuple[InputBinding, ...] = ()

    @property
    def name(self) -> str:
        return self.step.name

    @property
    def requested_keys(self) -> FrozenSet[AssetKey]:
        return frozenset(self.step.output(n).key for n in self.requested)

    @property
    def producers(self) -> FrozenSet[str]:
        return frozenset(b.producer for b in self.bindings if b.producer is not None)

    @property
    def is_partial(self) -> bool:
        return len(self.requested) < len(self.step.outputs)

    def binding(self, input_name: str) -> InputBinding:
        for b in self.bindings:
            if b.input_name == input_name:
                return b
        raise KeyError(input_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.name,
            "requested": sorted(self.requested),
            "bindings": [b.to_dict() for b in self.bindings],
        }


class ExecutionPlan:
    """Plano imutável: invocações em ordem topológica determinística."""

    def __init__(
        self,
        invocations: Iterable[StepInvocation],
        *,
        selected_keys: FrozenSet[AssetKey] = frozenset(),
    ):
        by_name: Dict[str, StepInvocation] = {}
        for inv in invocations:
            if inv.name in by_name:
                raise ValueError(f"Step '{inv.name}' appears more than once in the plan")
            by_name[inv.name] = inv

        deps = {name: inv.producers & set(by_name) for name, inv in by_name.items()}
        order = topological_sort(by_name, deps)

        self._by_name = by_name
        self._order: Tuple[str, ...] = tuple(order)
        self._deps: Dict[str, FrozenSet[str]] = {n: frozenset(d) for n, d in deps.items()}
        dependents: Dict[str, Set[str]] = {n: set() for n in by_name}
        for name, ds in deps.items():
            for d in ds:
                dependents[d].add(name)
        self._dependents: Dict[str, FrozenSet[str]] = {n: frozenset(d) for n, d in dependents.items()}
        self.selected_keys: FrozenSet[AssetKey] = frozenset(selected_keys)

    @property
    def invocations(self) -> Tuple[StepInvocation, ...]:
        return tuple(self._by_name[n] for n in self._order)

    @property
    def step_names(self) -> Tuple[str, ...]:
        return self._order

    def invocation(self, name: str) -> StepInvocation:
        return self._by_name[name]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[StepInvocation]:
        return iter(self.invocations)

    def __len__(self) -> int:
        return len(self._order)

    def dependencies(self, name: str) -> FrozenSet[str]:
        """Produtores diretos (no plano) da invocação `name`."""
        return self._deps[name]

    def dependents(self, name: str, *, transitive: bool = False) -> FrozenSet[str]:
        """Consumidores diretos (ou transitivos) da invocação `name`."""
        if not transitive:
            return self._dependents[name]
        seen: Set[str] = set()
        stack = list(self._dependents[name])
        while stack:
            n = stack.pop()
            if n in seen:
                continue
            seen.add(n)
            stack.extend(self._dependents[n])
        return frozenset(seen)

    @property
    def requested_keys(self) -> FrozenSet[AssetKey]:
        out: Set[AssetKey] = set()
        for inv in self._by_name.values():
            out |= inv.requested_keys
        return frozenset(out)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invocations": [inv.to_dict() for inv in self.invocations],
            "selected_keys": sorted(k.to_user_string() for k in self.selected_keys),
        }

    def fingerprint(self) -> str:
        return canonical_hash(self.to_dict())

    def __repr__(self) -> str:
        return f"ExecutionPlan(steps={list(self._order)!r})"


def compile_plan(graph: AssetGraph, selected_keys: Iterable[AssetKey]) -> ExecutionPlan:
    """
    Compila a seleção em um plano de execução.

    Raises:
        UnknownDependency: se alguma chave não existir no grafo
    """
    selected = frozenset(selected_keys)

    requested: Dict[str, Set[str]] = {}
    for key in sorted(selected):
        node = graph.node(key)
        if node.is_source:
            continue
        step = graph.step(node.step_name)
        slots = requested.setdefault(step.name, set())
        if step.subsettable:
            slots.add(step.output_for_key(key).name)
        else:
            slots.update(step.output_names)

    produced: Dict[AssetKey, str] = {}
    for name, slots in requested.items():
        step = graph.step(name)
        for slot in slots:
            produced[step.output(slot).key] = name

    invocations: List[StepInvocation] = []
    for name in sorted(requested):
        step = graph.step(name)
        bindings = tuple(
            InputBinding(
                input_name=slot.name,
                upstream_key=slot.key,
                kind=slot.kind,
                producer=produced.get(slot.key),
            )
            for slot in step.inputs_feeding(requested[name])
        )
        invocations.append(StepInvocation(step=step, requested=frozenset(requested[name]), bindings=bindings))

    return ExecutionPlan(invocations, selected_keys=selected)
