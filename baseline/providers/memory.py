"""
Host simulado en memoria (modo --mock y tests).

Mantiene el estado observado de cada tipo de recurso, registra todas las
llamadas y permite inyectar fallos de apply o providers no disponibles.
"""

import hashlib
from typing import Dict, List, Optional, Set, Tuple

from baseline.core.errors import ApplyFailedError, ProviderUnavailableError
from baseline.core.infra import ApplyResult, ProviderRegistry
from baseline.core.resources import ChainRef, ObservedState, Resource, ResourceKey, ResourceKind
from baseline.core.resources.models import BUILTIN_CHAINS, normalize_mode


class InMemoryHost:
    """Estado de un host ficticio"""

    def __init__(self, default_policy: str = "ACCEPT"):
        self.packages: Dict[str, str] = {}
        self.services: Dict[str, Dict[str, bool]] = {}
        self.files: Dict[str, Dict] = {}
        self.chains: Dict[ChainRef, Optional[str]] = {
            ChainRef(table, name): default_policy
            for table, names in BUILTIN_CHAINS.items()
            for name in names
        }
        # Por cadena: [(rule_id, match, target)]
        self.rules: Dict[ChainRef, List[Tuple[str, str, str]]] = {}
        self.restarts: Dict[str, int] = {}
        self.calls: List[Tuple[str, ResourceKey]] = []
        self.fail_apply: Dict[ResourceKey, int] = {}
        self.unavailable: Set[ResourceKind] = set()

    def registry(self) -> ProviderRegistry:
        return ProviderRegistry({kind: MemoryProvider(self, kind) for kind in ResourceKind})

    def apply_calls(self) -> List[ResourceKey]:
        return [key for op, key in self.calls if op == "apply"]

    # --- observación ---

    def observe(self, resource: Resource) -> ObservedState:
        self.calls.append(("current_state", resource.key))
        if resource.kind in self.unavailable:
            raise ProviderUnavailableError(f"provider de {resource.kind.value} no disponible (simulado)")
        d = resource.desired
        if resource.kind == ResourceKind.PACKAGE:
            if d.name not in self.packages:
                return ObservedState(False)
            return ObservedState(True, {"version": self.packages[d.name]})
        if resource.kind == ResourceKind.SERVICE:
            if d.name not in self.services:
                return ObservedState(False)
            return ObservedState(True, dict(self.services[d.name]))
        if resource.kind == ResourceKind.FILE:
            if d.path not in self.files:
                return ObservedState(False)
            return ObservedState(True, dict(self.files[d.path]))
        if resource.kind == ResourceKind.FIREWALL_CHAIN:
            if d.ref not in self.chains:
                return ObservedState(False)
            return ObservedState(True, {"policy": self.chains[d.ref]})
        rules = self.rules.get(d.ref, [])
        for index, (rule_id, match, target) in enumerate(rules):
            if rule_id == resource.id:
                exact = match == d.match and target == d.target
                return ObservedState(True, {"index": index, "exact": exact})
        return ObservedState(False)

    # --- mutación ---

    def apply(self, resource: Resource) -> ApplyResult:
        self.calls.append(("apply", resource.key))
        remaining = self.fail_apply.get(resource.key, 0)
        if remaining:
            self.fail_apply[resource.key] = remaining - 1
            raise ApplyFailedError(f"fallo simulado aplicando {resource.key}")

        d = resource.desired
        if resource.kind == ResourceKind.PACKAGE:
            if d.installed:
                self.packages[d.name] = d.version or "1.0"
            else:
                self.packages.pop(d.name, None)
        elif resource.kind == ResourceKind.SERVICE:
            state = self.services.setdefault(d.name, {"running": False, "enabled": False})
            if d.enabled is not None:
                state["enabled"] = d.enabled
            if d.restart:
                self.restarts[d.name] = self.restarts.get(d.name, 0) + 1
                state["running"] = True
            elif d.running is not None:
                state["running"] = d.running
        elif resource.kind == ResourceKind.FILE:
            checksum = d.expected_checksum()
            if checksum is None and d.source:
                checksum = hashlib.sha256(d.source.encode()).hexdigest()
            self.files[d.path] = {
                "owner": d.owner or "root",
                "group": d.group or "root",
                "mode": normalize_mode(d.mode) if d.mode else 0o644,
                "checksum": checksum,
            }
        elif resource.kind == ResourceKind.FIREWALL_CHAIN:
            current = self.chains.get(d.ref)
            self.chains[d.ref] = d.policy or current
        else:
            rules = self.rules.setdefault(d.ref, [])
            rules[:] = [r for r in rules if r[0] != resource.id]
            rules.insert(min(d.position, len(rules)), (resource.id, d.match, d.target))
        return ApplyResult(changed=True)


class MemoryProvider:
    """Provider de un tipo de recurso sobre un InMemoryHost"""

    def __init__(self, host: InMemoryHost, kind: ResourceKind):
        self.host = host
        self.kind = kind

    @property
    def name(self) -> str:
        return f"memory-{self.kind.value}"

    def current_state(self, resource: Resource) -> ObservedState:
        return self.host.observe(resource)

    def apply(self, resource: Resource) -> ApplyResult:
        return self.host.apply(resource)
