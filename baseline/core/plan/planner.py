"""
Planificación: ordena el grafo en un plan de convergencia determinístico.

Lógica pura: entrada = ResourceGraph; salida = ConvergencePlan inmutable.
Orden topológico estable (Kahn, empates por orden de declaración).
No ejecuta nada; la ejecución la hace el ConvergenceExecutor.
"""

import heapq
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Set, Tuple

from baseline.core.errors import ConflictingOrderError, CycleDetectedError, UnknownResourceError
from baseline.core.resources import ChainRef, Resource, ResourceGraph, ResourceKey, ResourceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConvergencePlan:
    """Secuencia ordenada de recursos; se produce una vez por ejecución."""
    resources: Tuple[Resource, ...]

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.resources)

    def __len__(self) -> int:
        return len(self.resources)

    def keys(self) -> List[ResourceKey]:
        return [r.key for r in self.resources]

    def index(self, key: ResourceKey) -> int:
        for i, r in enumerate(self.resources):
            if r.key == key:
                return i
        raise KeyError(key)

    def chains(self) -> Dict[ChainRef, Resource]:
        """Cadenas declaradas en el plan"""
        return {
            r.desired.ref: r
            for r in self.resources
            if r.kind == ResourceKind.FIREWALL_CHAIN
        }

    def rules_by_chain(self) -> Dict[ChainRef, List[Resource]]:
        """Reglas por cadena en el orden del plan"""
        grouped: Dict[ChainRef, List[Resource]] = {}
        for r in self.resources:
            if r.kind == ResourceKind.FIREWALL_RULE:
                grouped.setdefault(r.desired.ref, []).append(r)
        return grouped

    def chain_refs(self) -> List[ChainRef]:
        """Todas las cadenas que aparecen en el plan (declaradas o usadas por reglas)"""
        seen: List[ChainRef] = []
        for r in self.resources:
            if r.kind in (ResourceKind.FIREWALL_CHAIN, ResourceKind.FIREWALL_RULE):
                ref = r.desired.ref
                if ref not in seen:
                    seen.append(ref)
        return seen


def plan(graph: ResourceGraph) -> ConvergencePlan:
    """
    Ordena el grafo.

    Raises:
        UnknownResourceError: una regla usa una cadena de usuario no declarada
        CycleDetectedError: no existe orden válido (no se devuelve plan parcial)
        ConflictingOrderError: el orden resultante viola el orden de cadena
    """
    _check_chain_references(graph)
    edges = graph.edges()
    keys = graph.keys()
    order = {key: idx for idx, key in enumerate(keys)}

    indegree = {key: 0 for key in keys}
    for afters in edges.values():
        for after in afters:
            indegree[after] += 1

    ready = [(order[k], k) for k in keys if indegree[k] == 0]
    heapq.heapify(ready)
    sorted_keys: List[ResourceKey] = []
    while ready:
        _, key = heapq.heappop(ready)
        sorted_keys.append(key)
        for after in edges[key]:
            indegree[after] -= 1
            if indegree[after] == 0:
                heapq.heappush(ready, (order[after], after))

    if len(sorted_keys) != len(keys):
        involved = _cycle_members(set(keys) - set(sorted_keys), edges)
        raise CycleDetectedError(str(k) for k in sorted(involved, key=order.get))

    result = ConvergencePlan(tuple(graph.get(k) for k in sorted_keys))
    _check_chain_order(result)
    logger.info("Plan generado: %d recursos", len(result))
    return result


def _check_chain_references(graph: ResourceGraph) -> None:
    """Toda cadena de usuario usada por una regla debe estar declarada."""
    declared = graph.chain_resources()
    for r in graph:
        if r.kind != ResourceKind.FIREWALL_RULE:
            continue
        refs = [r.desired.ref]
        if r.desired.jump_target is not None:
            refs.append(r.desired.jump_target)
        for ref in refs:
            if not ref.builtin and ref not in declared:
                chain_id = ref.name if ref.table == "filter" else str(ref)
                raise UnknownResourceError(
                    ResourceKey(ResourceKind.FIREWALL_CHAIN, chain_id),
                    referenced_by=r.key,
                )


def _cycle_members(
    remaining: Set[ResourceKey], edges: Dict[ResourceKey, Set[ResourceKey]]
) -> Set[ResourceKey]:
    """Descarta los nodos que solo cuelgan del ciclo (sin sucesores pendientes)."""
    pending = set(remaining)
    changed = True
    while changed:
        changed = False
        for key in list(pending):
            if not (edges[key] & pending):
                pending.discard(key)
                changed = True
    return pending or remaining


def _check_chain_order(result: ConvergencePlan) -> None:
    """Verificación posterior al orden: reglas por posición y cadena antes que sus reglas."""
    chains = result.chains()
    for ref, rules in result.rules_by_chain().items():
        positions = [r.desired.position for r in rules]
        if positions != sorted(positions):
            raise ConflictingOrderError(f"El plan no respeta el orden declarado de {ref}: {positions}")
        owner = chains.get(ref)
        if owner is not None and result.index(owner.key) > result.index(rules[0].key):
            raise ConflictingOrderError(f"La cadena {ref} quedó después de sus reglas")
