# src/atlas_assets/core/graph/toposort.py
"""
Ordenação topológica determinística e detecção de ciclos.

Utilitários genéricos usados pelo resolver (nível de assets e de Steps)
e pelo compilador de planos (nível de invocações).

Decisões:
    - Ordenação: algoritmo de Kahn com a fila de prontos mantida ordenada;
      empates são resolvidos pela ordem natural dos identificadores
    - Detecção de ciclo: DFS iterativa com marcação da pilha de recursão,
      retornando a sequência do ciclo (primeiro nó repetido no final)
"""

from __future__ import annotations

import heapq
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Set, TypeVar

T = TypeVar("T", bound=Hashable)


def find_cycle(nodes: Iterable[T], deps: Mapping[T, Iterable[T]]) -> Optional[List[T]]:
    """
    Retorna um ciclo como lista `[n0, n1, ..., n0]` ou None se o grafo for acíclico.

    `deps[n]` lista os nós dos quais `n` depende. A busca percorre os nós
    em ordem ordenada para que o ciclo reportado seja determinístico.
    """
    WHITE, GRAY, BLACK = 0, 1, 2
    ordered = sorted(set(nodes))
    color: Dict[T, int] = {n: WHITE for n in ordered}
    sorted_deps: Dict[T, List[T]] = {n: sorted(set(deps.get(n, ()))) for n in ordered}

    for root in ordered:
        if color[root] != WHITE:
            continue
        path: List[T] = [root]
        iters = [iter(sorted_deps[root])]
        color[root] = GRAY
        while iters:
            nxt = next(iters[-1], None)
            if nxt is None:
                done = path.pop()
                iters.pop()
                color[done] = BLACK
                continue
            state = color.get(nxt, BLACK)
            if state == GRAY:
                start = path.index(nxt)
                return path[start:] + [nxt]
            if state == WHITE:
                color[nxt] = GRAY
                path.append(nxt)
                iters.append(iter(sorted_deps[nxt]))
    return None


def topological_sort(nodes: Iterable[T], deps: Mapping[T, Iterable[T]]) -> List[T]:
    """
    Ordem topológica determinística (Kahn com fila de prontos ordenada).

    Dependências para nós fora de `nodes` são ignoradas.

    Raises:
        ValueError: se o grafo contiver ciclo (use `find_cycle` antes para
            obter a sequência do ciclo).
    """
    node_set: Set[T] = set(nodes)
    incoming: Dict[T, int] = {n: 0 for n in node_set}
    outgoing: Dict[T, Set[T]] = {n: set() for n in node_set}

    for n in node_set:
        for d in set(deps.get(n, ())):
            if d in node_set:
                incoming[n] += 1
                outgoing[d].add(n)

    ready: List[T] = [n for n, c in incoming.items() if c == 0]
    heapq.heapify(ready)
    order: List[T] = []

    while ready:
        n = heapq.heappop(ready)
        order.append(n)
        for child in outgoing[n]:
            incoming[child] -= 1
            if incoming[child] == 0:
                heapq.heappush(ready, child)

    if len(order) != len(node_set):
        raise ValueError("Cycle detected in dependency graph")
    return order
