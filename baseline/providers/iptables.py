"""
Providers de firewall sobre iptables.

Las reglas gestionadas se marcan con '-m comment --comment baseline:<id>' para
poder encontrarlas y verificar su posición dentro de la cadena. Se insertan
en position + 1: las reglas gestionadas ocupan la cabecera de la cadena en
orden de declaración.
"""

import logging
import shlex
from typing import List, Optional

from baseline.core.errors import ApplyFailedError, ProviderUnavailableError
from baseline.core.infra import ApplyResult
from baseline.core.resources import ObservedState, Resource
from baseline.providers.shell import run, run_checked

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "baseline:"


def rule_tag(resource: Resource) -> str:
    return f"{COMMENT_PREFIX}{resource.id}"


def _has_tag(line: str, tag: str) -> bool:
    try:
        tokens = shlex.split(line)
    except ValueError:
        return False
    for i, token in enumerate(tokens[:-1]):
        if token == "--comment" and tokens[i + 1] == tag:
            return True
    return False


class IptablesChainProvider:
    """Crea cadenas de usuario y fija la política de cadenas builtin."""

    name = "iptables"

    def __init__(self, binary: str = "iptables"):
        self.binary = binary

    def _dump(self, table: str) -> List[str]:
        ok, out = run([self.binary, "-t", table, "-S"])
        if not ok:
            raise ProviderUnavailableError(f"{self.binary} -t {table} -S: {out}")
        return out.splitlines()

    def current_state(self, resource: Resource) -> ObservedState:
        chain = resource.desired
        for line in self._dump(chain.table):
            parts = line.split()
            if parts[:2] == ["-P", chain.name] and len(parts) > 2:
                return ObservedState(True, {"policy": parts[2]})
            if parts[:2] == ["-N", chain.name]:
                return ObservedState(True, {"policy": None})
        return ObservedState(False)

    def apply(self, resource: Resource) -> ApplyResult:
        chain = resource.desired
        observed = self.current_state(resource)
        changed = False
        if not observed.exists:
            if chain.ref.builtin:
                raise ApplyFailedError(f"La cadena builtin {chain.ref} no existe en el host")
            logger.info("Creando cadena %s", chain.ref)
            run_checked([self.binary, "-t", chain.table, "-N", chain.name])
            changed = True
        if chain.policy and observed.attributes.get("policy") != chain.policy:
            logger.info("Política de %s → %s", chain.ref, chain.policy)
            run_checked([self.binary, "-t", chain.table, "-P", chain.name, chain.policy])
            changed = True
        return ApplyResult(changed=changed)


class IptablesRuleProvider:
    name = "iptables"

    def __init__(self, binary: str = "iptables"):
        self.binary = binary

    def _chain_rules(self, table: str, chain: str) -> List[str]:
        ok, out = run([self.binary, "-t", table, "-S", chain])
        if not ok:
            if "No chain" in out or "does not exist" in out:
                return []
            raise ProviderUnavailableError(f"{self.binary} -t {table} -S {chain}: {out}")
        return [line for line in out.splitlines() if line.startswith("-A ")]

    def _spec(self, resource: Resource) -> List[str]:
        rule = resource.desired
        return shlex.split(rule.match or "") + [
            "-m", "comment", "--comment", rule_tag(resource),
            "-j", rule.target,
        ]

    def _index(self, resource: Resource) -> Optional[int]:
        rule = resource.desired
        tag = rule_tag(resource)
        for i, line in enumerate(self._chain_rules(rule.table, rule.chain)):
            if _has_tag(line, tag):
                return i
        return None

    def current_state(self, resource: Resource) -> ObservedState:
        rule = resource.desired
        index = self._index(resource)
        if index is None:
            return ObservedState(False)
        exact, _ = run([self.binary, "-t", rule.table, "-C", rule.chain] + self._spec(resource))
        return ObservedState(True, {"index": index, "exact": exact})

    def apply(self, resource: Resource) -> ApplyResult:
        rule = resource.desired
        index = self._index(resource)
        if index is not None:
            # Regla desactualizada o fuera de posición: se reemplaza
            run_checked([self.binary, "-t", rule.table, "-D", rule.chain, str(index + 1)])
        existing = len(self._chain_rules(rule.table, rule.chain))
        position = min(rule.position, existing) + 1
        logger.info("Insertando %s en %s/%s posición %d", resource.id, rule.table, rule.chain, position)
        run_checked(
            [self.binary, "-t", rule.table, "-I", rule.chain, str(position)] + self._spec(resource)
        )
        return ApplyResult(changed=True)
