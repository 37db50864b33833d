# src/atlas_assets/core/graph/resolver.py
"""
Resolver do grafo de assets.

Transforma declarações (Steps e SourceAssets) em um `AssetGraph` imutável.

Etapas:
    1. Registro estrutural (duplicidade de chaves e de nomes de Step)
    2. Binding de inputs: referência explícita por chave ou name-matching
       contra o último segmento das chaves do grafo
    3. Validação de dependências internas (output → inputs)
    4. Construção dos nós e arestas por slot de output
    5. Detecção de ciclos (nível de assets e nível de Steps)
    6. Ordem topológica determinística (empates por AssetKey)

Invariantes:
    - Erros de resolução abortam a construção (nenhum grafo parcial)
    - Resolver duas vezes as mesmas declarações produz nós e arestas iguais
    - A associação de inputs é gravada no Step resolvido; nada é
      reinterpretado em tempo de execução

Limites explícitos:
    - Não executa Steps
    - Não consulta o Event Log
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Union

from atlas_assets.core.assets.definitions import AssetNode, DependencyEdge, InputSlot, SourceAsset
from atlas_assets.core.assets.keys import AssetKey, format_keys
from atlas_assets.core.exceptions import (
    AmbiguousDependency,
    CyclicDependency,
    DuplicateKey,
    UnknownDependency,
)
from atlas_assets.core.pipeline.registry import Declaration, DeclarationRegistry, duplicate_step_error
from atlas_assets.core.pipeline.step import Step

from .graph import AssetGraph
from .toposort import find_cycle, topological_sort

Declarations = Union[DeclarationRegistry, Iterable[Declaration]]


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------

def _self_cycle_error(step: Step, slot: InputSlot) -> CyclicDependency:
    key = slot.key.to_user_string() if slot.key is not None else slot.name
    return CyclicDependency(
        message=f"Step '{step.name}' input '{slot.name}' depends on its own output '{key}'",
        details={"step": step.name, "input": slot.name, "cycle": [key, key]},
        hint="Um Step não pode consumir um asset que ele próprio produz.",
    )


def _bind_input(
    step: Step,
    slot: InputSlot,
    known: Set[AssetKey],
    by_name: Mapping[str, List[AssetKey]],
) -> InputSlot:
    own = set(step.output_keys)

    if slot.key is not None:
        if slot.key in own:
            raise _self_cycle_error(step, slot)
        if slot.key not in known:
            raise UnknownDependency(
                message=(
                    f"Step '{step.name}' input '{slot.name}' references unknown asset "
                    f"'{slot.key.to_user_string()}'"
                ),
                details={"step": step.name, "input": slot.name, "key": slot.key.to_user_string()},
                hint="Declare o asset (ou um SourceAsset) antes de referenciá-lo.",
            )
        return slot

    candidates = sorted(k for k in by_name.get(slot.name, ()) if k not in own)
    if not candidates:
        raise UnknownDependency(
            message=f"Step '{step.name}' input '{slot.name}' matches no asset key",
            details={"step": step.name, "input": slot.name},
            hint="Informe a chave explicitamente ou renomeie o input para o último segmento da chave.",
        )
    if len(candidates) > 1:
        raise AmbiguousDependency(
            message=(
                f"Step '{step.name}' input '{slot.name}' matches several asset keys: "
                f"{format_keys(candidates)}"
            ),
            details={
                "step": step.name,
                "input": slot.name,
                "candidates": [k.to_user_string() for k in candidates],
            },
            hint="Informe a chave explicitamente no InputSlot.",
        )
    return replace(slot, key=candidates[0])


def _validate_internal_deps(step: Step) -> None:
    if step.internal_deps is None:
        return
    outputs = set(step.output_names)
    inputs = {i.name for i in step.inputs}
    for out, feeding in step.internal_deps.items():
        if out not in outputs:
            raise UnknownDependency(
                message=f"Step '{step.name}' internal_deps references unknown output '{out}'",
                details={"step": step.name, "output": out},
            )
        missing = sorted(set(feeding) - inputs)
        if missing:
            raise UnknownDependency(
                message=f"Step '{step.name}' internal_deps for '{out}' references unknown inputs {missing}",
                details={"step": step.name, "output": out, "inputs": missing},
            )


# ---------------------------------------------------------------------------
# Ciclos + ordem
# ---------------------------------------------------------------------------

def _check_cycles(nodes: Mapping[AssetKey, AssetNode]) -> None:
    deps = {k: n.upstream_keys for k, n in nodes.items()}
    cycle = find_cycle(nodes, deps)
    if cycle is not None:
        names = [k.to_user_string() for k in cycle]
        raise CyclicDependency(
            message=f"Dependency cycle detected: {' -> '.join(names)}",
            details={"cycle": names},
            hint="Remova uma das arestas do ciclo.",
        )

    owner = {k: n.step_name for k, n in nodes.items() if n.step_name is not None}
    step_deps: Dict[str, Set[str]] = {name: set() for name in owner.values()}
    for key, node in nodes.items():
        if node.step_name is None:
            continue
        for up in node.upstream_keys:
            producer = owner.get(up)
            if producer is not None and producer != node.step_name:
                step_deps[node.step_name].add(producer)

    step_cycle = find_cycle(step_deps, step_deps)
    if step_cycle is not None:
        raise CyclicDependency(
            message=f"Step-level dependency cycle detected: {' -> '.join(step_cycle)}",
            details={"cycle": list(step_cycle), "level": "step"},
            hint="Divida o multi-asset em Steps distintos para quebrar o ciclo.",
        )


def _build_graph(
    *,
    nodes: Dict[AssetKey, AssetNode],
    steps: Dict[str, Step],
    sources: Dict[AssetKey, SourceAsset],
    location: str,
    lineage: Optional[Mapping[AssetKey, FrozenSet[str]]] = None,
) -> AssetGraph:
    _check_cycles(nodes)
    order = topological_sort(nodes, {k: n.upstream_keys for k, n in nodes.items()})
    return AssetGraph(
        nodes=nodes,
        steps=steps,
        sources=sources,
        toposorted_keys=tuple(order),
        location=location,
        lineage=lineage,
    )


# ---------------------------------------------------------------------------
# API pública
# ---------------------------------------------------------------------------

def resolve(declarations: Declarations, *, location: str = "default") -> AssetGraph:
    """
    Resolve declarações em um `AssetGraph`.

    Raises:
        DuplicateKey: chave de asset ou nome de Step declarado duas vezes
        UnknownDependency: input sem asset correspondente
        AmbiguousDependency: name-matching com mais de um candidato
        CyclicDependency: ciclo entre assets ou entre Steps
    """
    if isinstance(declarations, DeclarationRegistry):
        registry = declarations
    else:
        registry = DeclarationRegistry().add_all(declarations)

    steps = registry.steps()
    sources = registry.sources()

    known: Set[AssetKey] = {s.key for s in sources}
    for step in steps:
        known.update(step.output_keys)

    by_name: Dict[str, List[AssetKey]] = {}
    for key in known:
        by_name.setdefault(key.name, []).append(key)

    resolved: Dict[str, Step] = {}
    for step in steps:
        _validate_internal_deps(step)
        bound = [_bind_input(step, slot, known, by_name) for slot in step.inputs]
        resolved[step.name] = step.with_inputs(bound)

    nodes: Dict[AssetKey, AssetNode] = {}
    for src in sources:
        nodes[src.key] = AssetNode(
            key=src.key,
            group=src.group,
            is_source=True,
            io_manager_key=src.io_manager_key,
            location=location,
        )

    for step in resolved.values():
        for out in step.outputs:
            edges = sorted(
                DependencyEdge(downstream=out.key, upstream=i.key, kind=i.kind, input_name=i.name)
                for i in step.inputs_feeding([out.name])
            )
            nodes[out.key] = AssetNode(
                key=out.key,
                dependencies=tuple(edges),
                code_version=step.code_version_for(out.name),
                group=out.group,
                step_name=step.name,
                required=out.required,
                io_manager_key=out.io_manager_key,
                location=location,
            )

    return _build_graph(
        nodes=nodes,
        steps=resolved,
        sources={s.key: s for s in sources},
        location=location,
    )


def compose_graphs(*graphs: AssetGraph, location: str = "composed") -> AssetGraph:
    """
    Compõe grafos de várias localizações em um único grafo.

    Regras:
        - dois nós computados com a mesma chave → DuplicateKey
        - um source que colide com um nó computado de outra localização é
          descartado: o nó computado é a referência de storage e a
          localização do source fica registrada em `lineage_locations`
        - sources idênticos em várias localizações viram um único nó
    """
    computed: Dict[AssetKey, AssetNode] = {}
    steps: Dict[str, Step] = {}
    step_location: Dict[str, str] = {}

    for g in graphs:
        for name, step in g.steps.items():
            if name in steps:
                raise duplicate_step_error(
                    name,
                    f"location '{step_location[name]}'",
                    f"location '{g.location}'",
                )
            steps[name] = step
            step_location[name] = g.location
        for key in g.computed_keys:
            if key in computed:
                first = computed[key].location
                raise DuplicateKey(
                    message=(
                        f"Duplicate asset key '{key.to_user_string()}' computed in "
                        f"location '{first}' and location '{g.location}'"
                    ),
                    details={
                        "key": key.to_user_string(),
                        "sites": [f"location '{first}'", f"location '{g.location}'"],
                    },
                    hint="Apenas uma localização pode computar um asset; as demais devem importá-lo como source.",
                )
            computed[key] = g.node(key)

    lineage: Dict[AssetKey, Set[str]] = {}
    nodes: Dict[AssetKey, AssetNode] = dict(computed)
    sources: Dict[AssetKey, SourceAsset] = {}

    for g in graphs:
        for key in g.keys:
            lineage.setdefault(key, set()).add(g.location)
        for key, src in g.sources.items():
            if key in computed or key in sources:
                continue
            sources[key] = src
            nodes[key] = g.node(key)

    return _build_graph(
        nodes=nodes,
        steps=steps,
        sources=sources,
        location=location,
        lineage={k: frozenset(v) for k, v in lineage.items()},
    )
