"""
Punto de entrada del motor: recursos declarados → grafo → plan → validación → ejecución.

Los errores estructurales se propagan antes de cualquier llamada a apply;
el executor no llega a invocarse.
"""

import logging
import time
from typing import Callable, Iterable, Optional

from baseline.core.infra import ProviderRegistry
from baseline.core.plan import ConvergencePlan, FirewallPolicyValidator, plan
from baseline.core.plan.firewall import PolicyLookup
from baseline.core.resources import ChainRef, Resource, ResourceGraph, ResourceKind, firewall_chain
from baseline.core.runtime.executor import ConvergenceExecutor
from baseline.core.runtime.report import ConvergenceReport
from baseline.core.runtime.settings import EngineSettings

logger = logging.getLogger(__name__)


def chain_policy_lookup(providers: Optional[ProviderRegistry]) -> Optional[PolicyLookup]:
    """Consulta de solo lectura de la política de una cadena builtin vía su provider."""
    if providers is None:
        return None
    provider = providers.get(ResourceKind.FIREWALL_CHAIN)
    if provider is None:
        return None

    def lookup(ref: ChainRef) -> Optional[str]:
        observed = provider.current_state(firewall_chain(ref.name, ref.table))
        if not observed.exists:
            return None
        return observed.attributes.get("policy")

    return lookup


def prepare(
    resources: Iterable[Resource],
    providers: Optional[ProviderRegistry] = None,
    allow_accept_all: bool = False,
) -> ConvergencePlan:
    """Construye y valida el plan sin mutar nada."""
    graph = ResourceGraph.from_resources(resources)
    ordered = plan(graph)
    validator = FirewallPolicyValidator(chain_policy_lookup(providers), allow_accept_all=allow_accept_all)
    validator.validate(ordered)
    return ordered


def converge(
    resources: Iterable[Resource],
    providers: ProviderRegistry,
    settings: Optional[EngineSettings] = None,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> ConvergenceReport:
    """Ejecución completa. Raises PlanError si la declaración es inválida."""
    settings = settings or EngineSettings()
    ordered = prepare(resources, providers, allow_accept_all=settings.allow_accept_all)
    executor = ConvergenceExecutor(
        providers,
        retry_policy=settings.retry_policy(),
        dry_run=dry_run,
        sleep=sleep,
    )
    return executor.execute(ordered)
