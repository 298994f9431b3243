"""
Providers del host: implementaciones de los contratos de baseline.core.infra.
"""

from typing import Optional

from baseline.core.infra import ProviderRegistry
from baseline.core.resources import ResourceKind
from baseline.core.runtime import EngineSettings
from baseline.providers.apt import AptPackageProvider
from baseline.providers.iptables import IptablesChainProvider, IptablesRuleProvider
from baseline.providers.memory import InMemoryHost, MemoryProvider
from baseline.providers.remote_file import RemoteFileProvider
from baseline.providers.systemd import SystemdServiceProvider


def host_registry(settings: Optional[EngineSettings] = None) -> ProviderRegistry:
    """Providers reales del host (apt, systemd, requests, iptables)."""
    settings = settings or EngineSettings()
    return ProviderRegistry({
        ResourceKind.PACKAGE: AptPackageProvider(),
        ResourceKind.SERVICE: SystemdServiceProvider(),
        ResourceKind.FILE: RemoteFileProvider(timeout=settings.http_timeout),
        ResourceKind.FIREWALL_CHAIN: IptablesChainProvider(),
        ResourceKind.FIREWALL_RULE: IptablesRuleProvider(),
    })


__all__ = [
    "AptPackageProvider",
    "InMemoryHost",
    "IptablesChainProvider",
    "IptablesRuleProvider",
    "MemoryProvider",
    "RemoteFileProvider",
    "SystemdServiceProvider",
    "host_registry",
]
