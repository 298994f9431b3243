"""
Plan: ordenamiento del grafo y validación de firewall.

Lógica pura; sin I/O ni dependencias de CLI o providers.
"""

from baseline.core.plan.planner import ConvergencePlan, plan
from baseline.core.plan.firewall import FirewallPolicyValidator, validate_plan
from baseline.core.plan.matching import MatchSpec, parse_match

__all__ = [
    "ConvergencePlan",
    "FirewallPolicyValidator",
    "MatchSpec",
    "parse_match",
    "plan",
    "validate_plan",
]
