"""
Core: lógica del motor de convergencia.

ENFORCEMENT (arquitectura limpia):
- Este paquete NO debe importar: baseline.cli, baseline.providers (implementaciones),
  ni baseline.declarative (formato de recetas).
- Permitido: typing, dataclasses, logging, baseline.core.*.
- Los providers y la CLI importan desde core; nunca al revés.
"""

from baseline.core.errors import (
    ApplyFailedError,
    BaselineError,
    ConfigError,
    ConflictingOrderError,
    CycleDetectedError,
    DuplicateIDError,
    OpenChainPolicyError,
    PlanError,
    ProviderError,
    ProviderUnavailableError,
    UnknownResourceError,
    UnreachableRuleError,
)

__all__ = [
    "ApplyFailedError",
    "BaselineError",
    "ConfigError",
    "ConflictingOrderError",
    "CycleDetectedError",
    "DuplicateIDError",
    "OpenChainPolicyError",
    "PlanError",
    "ProviderError",
    "ProviderUnavailableError",
    "UnknownResourceError",
    "UnreachableRuleError",
]
