"""
Contratos de providers del host.

Los providers (apt, systemd, iptables, archivos remotos) implementan estos contratos;
el core no depende de ningún provider concreto.
"""

from baseline.core.infra.contracts import ApplyResult, Provider, ProviderRegistry

__all__ = ["ApplyResult", "Provider", "ProviderRegistry"]
