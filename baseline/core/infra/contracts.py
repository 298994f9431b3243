"""
Contratos que deben implementar los providers del host.

El core solo define interfaces; la implementación vive en baseline/providers/*.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Protocol

from baseline.core.errors import ProviderUnavailableError
from baseline.core.resources import ObservedState, Resource, ResourceKind


@dataclass(frozen=True)
class ApplyResult:
    """Resultado de aplicar un recurso"""
    changed: bool
    detail: str = ""


class Provider(Protocol):
    """
    Contrato mínimo de un provider (paquetes, servicios, archivos, firewall).
    Solo lectura en current_state; toda mutación del host pasa por apply.
    """
    @property
    def name(self) -> str:
        """Identificador del provider (ej: apt, systemd)."""
        ...

    def current_state(self, resource: Resource) -> ObservedState:
        """Estado real del recurso. Raises ProviderUnavailableError."""
        ...

    def apply(self, resource: Resource) -> ApplyResult:
        """Lleva el host al estado deseado. Raises ApplyFailedError."""
        ...


class ProviderRegistry:
    """Provider por tipo de recurso"""

    def __init__(self, providers: Optional[Mapping[ResourceKind, Provider]] = None):
        self._providers: Dict[ResourceKind, Provider] = dict(providers or {})

    def register(self, kind: ResourceKind, provider: Provider) -> None:
        self._providers[kind] = provider

    def get(self, kind: ResourceKind) -> Optional[Provider]:
        return self._providers.get(kind)

    def for_resource(self, resource: Resource) -> Provider:
        provider = self._providers.get(resource.kind)
        if provider is None:
            raise ProviderUnavailableError(f"No hay provider registrado para '{resource.kind.value}'")
        return provider

    def __contains__(self, kind: ResourceKind) -> bool:
        return kind in self._providers
