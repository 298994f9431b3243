"""
Validación de política de firewall sobre el plan (antes de cualquier mutación).

Por cada cadena del plan:
- ninguna regla puede quedar cubierta por una regla terminal anterior;
- la cadena debe cerrar en deny: política por defecto DROP o última regla
  DROP/REJECT de cobertura total (postura deny-by-default + allow-list explícita).
"""

import logging
from typing import Callable, List, Optional

from baseline.core.errors import OpenChainPolicyError, UnreachableRuleError
from baseline.core.plan.matching import parse_match
from baseline.core.plan.planner import ConvergencePlan
from baseline.core.resources import ChainRef, Resource
from baseline.core.resources.models import DENY_TARGETS, TERMINAL_TARGETS

logger = logging.getLogger(__name__)

# RETURN también corta la evaluación de la cadena
SHADOWING_TARGETS = TERMINAL_TARGETS | frozenset({"RETURN"})

PolicyLookup = Callable[[ChainRef], Optional[str]]


class FirewallPolicyValidator:
    """
    Valida la secuencia de reglas por cadena.

    Args:
        policy_lookup: consulta de solo lectura de la política actual de una cadena
            builtin en el host (None = desconocida, se trata como no-deny)
        allow_accept_all: acepta un ACCEPT de cobertura total como cierre explícito
    """

    def __init__(self, policy_lookup: Optional[PolicyLookup] = None, allow_accept_all: bool = False):
        self.policy_lookup = policy_lookup
        self.allow_accept_all = allow_accept_all

    def validate(self, plan: ConvergencePlan) -> None:
        chains = plan.chains()
        rules_by_chain = plan.rules_by_chain()
        refs = plan.chain_refs()
        for ref in refs:
            rules = rules_by_chain.get(ref, [])
            self._check_reachability(rules)
            self._check_closing(ref, rules, chains.get(ref))
        logger.info("Política de firewall válida (%d cadenas)", len(refs))

    def _check_reachability(self, rules: List[Resource]) -> None:
        specs = [parse_match(r.desired.match) for r in rules]
        for i, rule in enumerate(rules):
            for j in range(i):
                earlier = rules[j]
                if earlier.desired.target not in SHADOWING_TARGETS:
                    continue
                if specs[j].covers(specs[i]):
                    raise UnreachableRuleError(rule.id, shadowed_by=earlier.id)

    def _closing_targets(self):
        if self.allow_accept_all:
            return DENY_TARGETS | {"ACCEPT"}
        return DENY_TARGETS

    def _check_closing(self, ref: ChainRef, rules: List[Resource], declared: Optional[Resource]) -> None:
        if rules:
            last = rules[-1]
            if last.desired.target in self._closing_targets() and parse_match(last.desired.match).unconstrained:
                return

        policy = self._effective_policy(ref, declared)
        if policy == "DROP":
            return

        if not rules:
            detail = "sin reglas"
        else:
            detail = f"última regla '{rules[-1].id}' no es un deny de cobertura total"
        detail += f", política {policy or 'desconocida'}"
        raise OpenChainPolicyError(str(ref), detail)

    def _effective_policy(self, ref: ChainRef, declared: Optional[Resource]) -> Optional[str]:
        if declared is not None and declared.desired.policy:
            return declared.desired.policy
        # Las cadenas de usuario no tienen política (siempre RETURN)
        if not ref.builtin or self.policy_lookup is None:
            return None
        return self.policy_lookup(ref)


def validate_plan(
    plan: ConvergencePlan,
    policy_lookup: Optional[PolicyLookup] = None,
    allow_accept_all: bool = False,
) -> None:
    """Atajo funcional de FirewallPolicyValidator.validate."""
    FirewallPolicyValidator(policy_lookup, allow_accept_all).validate(plan)
