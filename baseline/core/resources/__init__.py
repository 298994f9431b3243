"""
Resources: modelo inmutable de estado deseado y grafo de dependencias.
"""

from baseline.core.resources.models import (
    ChainRef,
    FileState,
    FirewallChainState,
    FirewallRuleState,
    ObservedState,
    PackageState,
    Resource,
    ResourceKey,
    ResourceKind,
    ServiceState,
    file,
    firewall_chain,
    firewall_rule,
    package,
    service,
)
from baseline.core.resources.graph import ResourceGraph

__all__ = [
    "ChainRef",
    "FileState",
    "FirewallChainState",
    "FirewallRuleState",
    "ObservedState",
    "PackageState",
    "Resource",
    "ResourceGraph",
    "ResourceKey",
    "ResourceKind",
    "ServiceState",
    "file",
    "firewall_chain",
    "firewall_rule",
    "package",
    "service",
]
