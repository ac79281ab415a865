import heapq
from typing import Iterable, Mapping

from strata.core.exceptions import CycleError


def topological_sort(
    nodes: Iterable[str],
    edges: Mapping[str, Iterable[str]],
    reverse: bool = False,
) -> list[str]:
    """Kahn's algorithm with a heap, so ready nodes come out sorted.

    Args:
        nodes: Node identities.
        edges: Node to the nodes it depends on. Targets outside nodes
            are ignored.
        reverse: Dependents before their dependencies.

    Raises:
        CycleError: The edges contain a cycle.
    """
    node_set = set(nodes)
    # dependency -> dependents when forward; dependent -> dependencies when
    # reversed
    outgoing: dict[str, set[str]] = {n: set() for n in node_set}
    indegree: dict[str, int] = {n: 0 for n in node_set}
    for node in node_set:
        for target in set(edges.get(node, ())):
            if target not in node_set:
                continue
            if reverse:
                outgoing[node].add(target)
                indegree[target] += 1
            else:
                outgoing[target].add(node)
                indegree[node] += 1

    ready = [n for n, d in indegree.items() if d == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        node = heapq.heappop(ready)
        order.append(node)
        for nxt in outgoing[node]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                heapq.heappush(ready, nxt)

    if len(order) != len(node_set):
        raise CycleError(find_cycle(node_set, edges) or sorted(node_set))
    return order


def find_cycle(
    nodes: Iterable[str],
    edges: Mapping[str, Iterable[str]],
) -> list[str] | None:
    """First cycle found, as a path that starts and ends on the same node."""
    node_set = set(nodes)
    WHITE, GREY, BLACK = 0, 1, 2
    color = {n: WHITE for n in node_set}

    for start in sorted(node_set):
        if color[start] != WHITE:
            continue
        path: list[str] = [start]
        stack = [iter(sorted(set(edges.get(start, ())) & node_set))]
        color[start] = GREY
        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                stack.pop()
                color[path.pop()] = BLACK
                continue
            if color[nxt] == GREY:
                return path[path.index(nxt) :] + [nxt]
            if color[nxt] == WHITE:
                color[nxt] = GREY
                path.append(nxt)
                stack.append(
                    iter(sorted(set(edges.get(nxt, ())) & node_set))
                )
    return None
