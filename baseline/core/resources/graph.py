"""
Grafo de recursos: recursos declarados + aristas de orden.

Aristas explícitas ("a antes que b") y aristas implícitas:
- reglas de la misma cadena: de menor a mayor posición (no negociable,
  anula cualquier arista explícita entre esas dos reglas);
- cadena declarada → sus reglas y las reglas que saltan a ella.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set

from baseline.core.errors import ConflictingOrderError, DuplicateIDError, UnknownResourceError
from baseline.core.resources.models import ChainRef, Resource, ResourceKey, ResourceKind

logger = logging.getLogger(__name__)


class ResourceGraph:
    """Recursos en orden de declaración y sus dependencias"""

    def __init__(self):
        self._resources: Dict[ResourceKey, Resource] = {}
        self._explicit: Dict[ResourceKey, Set[ResourceKey]] = {}

    @classmethod
    def from_resources(cls, resources: Iterable[Resource]) -> "ResourceGraph":
        """Construye el grafo con todos los recursos y sus depends_on."""
        resources = list(resources)
        graph = cls()
        for resource in resources:
            graph.add_resource(resource)
        for resource in resources:
            for dep in sorted(resource.depends_on):
                if dep not in graph:
                    raise UnknownResourceError(dep, referenced_by=resource.key)
                graph.add_dependency(dep, resource.key)
        logger.debug("Grafo construido: %d recursos", len(graph))
        return graph

    def add_resource(self, resource: Resource) -> None:
        if resource.key in self._resources:
            raise DuplicateIDError(resource.key)
        self._resources[resource.key] = resource
        self._explicit[resource.key] = set()

    def add_dependency(self, before: ResourceKey, after: ResourceKey) -> None:
        """Registra que `before` debe aplicarse antes que `after`."""
        for key in (before, after):
            if key not in self._resources:
                raise UnknownResourceError(key)
        self._explicit[before].add(after)

    def __contains__(self, key: ResourceKey) -> bool:
        return key in self._resources

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def get(self, key: ResourceKey) -> Optional[Resource]:
        return self._resources.get(key)

    def keys(self) -> List[ResourceKey]:
        return list(self._resources)

    def resources(self) -> List[Resource]:
        return list(self._resources.values())

    def chain_resources(self) -> Dict[ChainRef, Resource]:
        """Cadenas declaradas explícitamente, por (tabla, nombre)"""
        return {
            r.desired.ref: r
            for r in self._resources.values()
            if r.kind == ResourceKind.FIREWALL_CHAIN
        }

    def rules_by_chain(self) -> Dict[ChainRef, List[Resource]]:
        """Reglas agrupadas por cadena, ordenadas por posición declarada."""
        grouped: Dict[ChainRef, List[Resource]] = {}
        for r in self._resources.values():
            if r.kind == ResourceKind.FIREWALL_RULE:
                grouped.setdefault(r.desired.ref, []).append(r)
        for ref, rules in grouped.items():
            rules.sort(key=lambda r: r.desired.position)
            for prev, cur in zip(rules, rules[1:]):
                if prev.desired.position == cur.desired.position:
                    raise ConflictingOrderError(
                        f"Reglas {prev.id} y {cur.id} comparten la posición "
                        f"{cur.desired.position} en {ref}"
                    )
        return grouped

    def edges(self) -> Dict[ResourceKey, Set[ResourceKey]]:
        """Aristas efectivas (explícitas + implícitas) como sucesores por recurso."""
        rules_by_chain = self.rules_by_chain()
        chain_of = {rule.key: ref for ref, rules in rules_by_chain.items() for rule in rules}

        effective: Dict[ResourceKey, Set[ResourceKey]] = {key: set() for key in self._resources}
        for before, afters in self._explicit.items():
            for after in afters:
                same_chain = before in chain_of and chain_of.get(before) == chain_of.get(after)
                if same_chain:
                    logger.debug("Arista explícita %s → %s anulada por el orden de cadena", before, after)
                    continue
                effective[before].add(after)

        for rules in rules_by_chain.values():
            for i, lower in enumerate(rules):
                for higher in rules[i + 1:]:
                    effective[lower.key].add(higher.key)

        chains = self.chain_resources()
        for rules in rules_by_chain.values():
            for rule in rules:
                owner = chains.get(rule.desired.ref)
                if owner is not None:
                    effective[owner.key].add(rule.key)
                jump = rule.desired.jump_target
                if jump is not None and jump in chains:
                    effective[chains[jump].key].add(rule.key)
        return effective
