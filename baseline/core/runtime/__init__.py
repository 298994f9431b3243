"""
Runtime: ejecución del plan, reporte y settings.

El motor no guarda estado entre ejecuciones; cada corrida re-deriva el
estado actual desde los providers.
"""

from baseline.core.runtime.report import Action, ConvergenceReport, ResourceOutcome
from baseline.core.runtime.executor import ConvergenceExecutor, ResourceStatus, RetryPolicy
from baseline.core.runtime.settings import EngineSettings, load_settings, recipes_root
from baseline.core.runtime.engine import chain_policy_lookup, converge, prepare

__all__ = [
    "Action",
    "ConvergenceExecutor",
    "ConvergenceReport",
    "EngineSettings",
    "ResourceOutcome",
    "ResourceStatus",
    "RetryPolicy",
    "chain_policy_lookup",
    "converge",
    "load_settings",
    "prepare",
    "recipes_root",
]
