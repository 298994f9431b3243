"""
Modelo de recursos del motor (agnóstico de providers y de formato de receta).

Cada Resource es inmutable y lleva un estado deseado con variante por tipo:
solo los campos relevantes para ese tipo de recurso.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union


class ResourceKind(str, Enum):
    """Tipo de recurso declarable"""
    PACKAGE = "package"
    SERVICE = "service"
    FILE = "file"
    FIREWALL_CHAIN = "firewall_chain"
    FIREWALL_RULE = "firewall_rule"


# Targets con semántica propia en el packet filter; cualquier otro es salto a cadena de usuario
TERMINAL_TARGETS = frozenset({"ACCEPT", "DROP", "REJECT"})
DENY_TARGETS = frozenset({"DROP", "REJECT"})
BUILTIN_TARGETS = TERMINAL_TARGETS | frozenset({
    "RETURN", "LOG", "NFLOG", "QUEUE", "NFQUEUE", "MASQUERADE", "SNAT", "DNAT",
    "REDIRECT", "MARK", "CONNMARK", "TCPMSS", "NOTRACK", "CT", "TRACE",
})

BUILTIN_CHAINS: Dict[str, FrozenSet[str]] = {
    "filter": frozenset({"INPUT", "FORWARD", "OUTPUT"}),
    "nat": frozenset({"PREROUTING", "INPUT", "OUTPUT", "POSTROUTING"}),
    "mangle": frozenset({"PREROUTING", "INPUT", "FORWARD", "OUTPUT", "POSTROUTING"}),
    "raw": frozenset({"PREROUTING", "OUTPUT"}),
    "security": frozenset({"INPUT", "FORWARD", "OUTPUT"}),
}

POLICIES = frozenset({"ACCEPT", "DROP"})


def is_builtin_chain(table: str, name: str) -> bool:
    return name in BUILTIN_CHAINS.get(table, frozenset())


@dataclass(frozen=True, order=True)
class ResourceKey:
    """Identidad de un recurso dentro de un plan: (kind, id)"""
    kind: ResourceKind
    id: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @classmethod
    def parse(cls, text: str) -> "ResourceKey":
        """Convierte 'kind:id' en ResourceKey. El id puede contener ':'."""
        kind, sep, rid = text.partition(":")
        if not sep or not rid:
            raise ValueError(f"Referencia inválida '{text}' (formato esperado kind:id)")
        try:
            return cls(ResourceKind(kind.strip()), rid.strip())
        except ValueError:
            allowed = ", ".join(k.value for k in ResourceKind)
            raise ValueError(f"Tipo desconocido '{kind}' en '{text}' (permitidos: {allowed})")


@dataclass(frozen=True)
class ChainRef:
    """Cadena identificada por (tabla, nombre)"""
    table: str
    name: str

    @property
    def builtin(self) -> bool:
        return is_builtin_chain(self.table, self.name)

    def __str__(self) -> str:
        return f"{self.table}/{self.name}"


@dataclass
class ObservedState:
    """Estado real reportado por un provider"""
    exists: bool
    attributes: Dict[str, Any] = field(default_factory=dict)


# --- Estados deseados (una variante por tipo) ---

@dataclass(frozen=True)
class PackageState:
    name: str
    installed: bool = True
    version: Optional[str] = None
    source: Optional[str] = None  # .deb local instalado con dpkg

    def satisfied_by(self, observed: ObservedState) -> bool:
        if not self.installed:
            return not observed.exists
        if not observed.exists:
            return False
        return self.version is None or observed.attributes.get("version") == self.version


@dataclass(frozen=True)
class ServiceState:
    """
    Estado deseado de un servicio.
    restart es una acción: nunca se considera satisfecha de antemano.
    """
    name: str
    running: Optional[bool] = None
    enabled: Optional[bool] = None
    restart: bool = False

    def satisfied_by(self, observed: ObservedState) -> bool:
        if self.restart or not observed.exists:
            return False
        attrs = observed.attributes
        if self.running is not None and attrs.get("running") != self.running:
            return False
        if self.enabled is not None and attrs.get("enabled") != self.enabled:
            return False
        return True


def normalize_mode(mode: Union[str, int, None]) -> Optional[int]:
    """'0600' / '600' / 0o600 → 0o600"""
    if mode is None:
        return None
    if isinstance(mode, int):
        return mode
    return int(str(mode), 8)


@dataclass(frozen=True)
class FileState:
    path: str
    source: Optional[str] = None
    content: Optional[str] = None
    owner: Optional[str] = None
    group: Optional[str] = None
    mode: Optional[str] = None
    checksum: Optional[str] = None  # sha256 hex

    def __post_init__(self):
        if self.mode is None:
            return
        try:
            normalize_mode(self.mode)
        except ValueError:
            raise ValueError(f"Permisos inválidos '{self.mode}' en {self.path} (octal, ej: 0644)")

    def expected_checksum(self) -> Optional[str]:
        if self.checksum:
            return self.checksum.lower()
        if self.content is not None:
            return hashlib.sha256(self.content.encode()).hexdigest()
        return None

    def satisfied_by(self, observed: ObservedState) -> bool:
        if not observed.exists:
            return False
        attrs = observed.attributes
        if self.owner is not None and attrs.get("owner") != self.owner:
            return False
        if self.group is not None and attrs.get("group") != self.group:
            return False
        if self.mode is not None and normalize_mode(attrs.get("mode")) != normalize_mode(self.mode):
            return False
        expected = self.expected_checksum()
        if expected is not None and attrs.get("checksum") != expected:
            return False
        return True


@dataclass(frozen=True)
class FirewallChainState:
    name: str
    table: str = "filter"
    policy: Optional[str] = None  # solo cadenas builtin

    def __post_init__(self):
        if self.policy is None:
            return
        if self.policy not in POLICIES:
            raise ValueError(f"Política inválida '{self.policy}' (permitidas: ACCEPT, DROP)")
        if not is_builtin_chain(self.table, self.name):
            raise ValueError(f"La cadena de usuario {self.table}/{self.name} no admite política")

    @property
    def ref(self) -> ChainRef:
        return ChainRef(self.table, self.name)

    def satisfied_by(self, observed: ObservedState) -> bool:
        if not observed.exists:
            return False
        return self.policy is None or observed.attributes.get("policy") == self.policy


@dataclass(frozen=True)
class FirewallRuleState:
    """
    Regla de firewall. position es el índice de declaración dentro de su cadena
    y es la única fuente de verdad del orden.
    """
    chain: str
    target: str
    position: int
    match: str = ""
    table: str = "filter"

    @property
    def ref(self) -> ChainRef:
        return ChainRef(self.table, self.chain)

    @property
    def jump_target(self) -> Optional[ChainRef]:
        """Cadena de usuario a la que salta la regla (None si el target es builtin)"""
        if self.target in BUILTIN_TARGETS:
            return None
        return ChainRef(self.table, self.target)

    def satisfied_by(self, observed: ObservedState) -> bool:
        if not observed.exists:
            return False
        attrs = observed.attributes
        return bool(attrs.get("exact")) and attrs.get("index") == self.position


DesiredState = Union[PackageState, ServiceState, FileState, FirewallChainState, FirewallRuleState]

_STATE_BY_KIND = {
    ResourceKind.PACKAGE: PackageState,
    ResourceKind.SERVICE: ServiceState,
    ResourceKind.FILE: FileState,
    ResourceKind.FIREWALL_CHAIN: FirewallChainState,
    ResourceKind.FIREWALL_RULE: FirewallRuleState,
}


@dataclass(frozen=True)
class Resource:
    """Unidad de estado deseado. Identidad = (kind, id)."""
    id: str
    kind: ResourceKind
    desired: DesiredState
    depends_on: FrozenSet[ResourceKey] = frozenset()

    def __post_init__(self):
        expected = _STATE_BY_KIND[self.kind]
        if not isinstance(self.desired, expected):
            raise TypeError(
                f"{self.kind.value}:{self.id} requiere {expected.__name__}, "
                f"recibido {type(self.desired).__name__}"
            )

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.kind, self.id)

    def __str__(self) -> str:
        return str(self.key)


# --- Constructores ---

Reference = Union[ResourceKey, str]


def _keys(depends_on: Optional[Iterable[Reference]]) -> FrozenSet[ResourceKey]:
    if not depends_on:
        return frozenset()
    return frozenset(d if isinstance(d, ResourceKey) else ResourceKey.parse(d) for d in depends_on)


def package(name: str, depends_on: Optional[Iterable[Reference]] = None, **kwargs) -> Resource:
    return Resource(name, ResourceKind.PACKAGE, PackageState(name, **kwargs), _keys(depends_on))


def service(name: str, depends_on: Optional[Iterable[Reference]] = None, **kwargs) -> Resource:
    return Resource(name, ResourceKind.SERVICE, ServiceState(name, **kwargs), _keys(depends_on))


def file(path: str, depends_on: Optional[Iterable[Reference]] = None, **kwargs) -> Resource:
    return Resource(path, ResourceKind.FILE, FileState(path, **kwargs), _keys(depends_on))


def firewall_chain(
    name: str,
    table: str = "filter",
    policy: Optional[str] = None,
    depends_on: Optional[Iterable[Reference]] = None,
) -> Resource:
    # Mismo nombre en tablas distintas son cadenas distintas
    chain_id = name if table == "filter" else f"{table}/{name}"
    return Resource(
        chain_id,
        ResourceKind.FIREWALL_CHAIN,
        FirewallChainState(name, table, policy),
        _keys(depends_on),
    )


def firewall_rule(
    rule_id: str,
    chain: str,
    target: str,
    position: int,
    match: str = "",
    table: str = "filter",
    depends_on: Optional[Iterable[Reference]] = None,
) -> Resource:
    return Resource(
        rule_id,
        ResourceKind.FIREWALL_RULE,
        FirewallRuleState(chain=chain, target=target, position=position, match=match, table=table),
        _keys(depends_on),
    )
