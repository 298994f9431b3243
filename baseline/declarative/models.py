"""
Modelos de recetas declarativas (YAML)
Usa Pydantic para validación; cada entrada se identifica por `kind`.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from baseline.core.resources.models import ResourceKey, is_builtin_chain

ServiceAction = Literal["enable", "disable", "start", "stop", "restart"]


class _Declaration(BaseModel):
    """Campos comunes a toda declaración"""
    name: str = Field(..., min_length=1, description="Identificador del recurso dentro de su tipo")
    depends_on: List[str] = Field(
        default_factory=list,
        description="Recursos que deben aplicarse antes (formato kind:id)",
    )

    class Config:
        extra = "forbid"

    @field_validator("depends_on")
    @classmethod
    def check_references(cls, v):
        for ref in v:
            ResourceKey.parse(ref)
        return v


class PackageDecl(_Declaration):
    """Paquete del sistema (apt); con source se instala un .deb local"""
    kind: Literal["package"]
    installed: bool = Field(True, description="False para asegurar que no esté instalado")
    version: Optional[str] = Field(None, description="Versión exacta (ej: 1.1.1f-1ubuntu2)")
    source: Optional[str] = Field(None, description="Ruta a un .deb local (dpkg -i)")


class ServiceDecl(_Declaration):
    """Servicio del init; actions al estilo receta: [enable, start] o [restart]"""
    kind: Literal["service"]
    running: Optional[bool] = None
    enabled: Optional[bool] = None
    restart: bool = False
    actions: List[ServiceAction] = Field(default_factory=list)

    @model_validator(mode="after")
    def apply_actions(self):
        for action in self.actions:
            if action == "enable":
                self.enabled = True
            elif action == "disable":
                self.enabled = False
            elif action == "start":
                self.running = True
            elif action == "stop":
                self.running = False
            elif action == "restart":
                self.restart = True
        return self


class FileDecl(_Declaration):
    """Archivo en el host; name es la ruta destino"""
    kind: Literal["file"]
    source: Optional[str] = Field(None, description="URL de descarga")
    content: Optional[str] = Field(None, description="Contenido literal")
    owner: Optional[str] = None
    group: Optional[str] = None
    mode: Optional[str] = Field(None, description="Permisos en octal (ej: '0600')")
    checksum: Optional[str] = Field(None, description="sha256 esperado")

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, v):
        if v is None:
            return v
        if isinstance(v, int):
            # YAML 1.1 interpreta 0600 como octal → int
            return f"{v:04o}"
        int(str(v), 8)
        return str(v)

    @model_validator(mode="after")
    def check_origin(self):
        if self.source and self.content is not None:
            raise ValueError("source y content son excluyentes")
        return self


class FirewallChainDecl(_Declaration):
    """Cadena de firewall; policy solo para cadenas builtin"""
    kind: Literal["firewall_chain"]
    table: str = "filter"
    policy: Optional[Literal["ACCEPT", "DROP"]] = None

    @model_validator(mode="after")
    def check_policy(self):
        if self.policy and not is_builtin_chain(self.table, self.name):
            raise ValueError(f"La cadena de usuario {self.name} no admite policy")
        return self


class FirewallRuleDecl(_Declaration):
    """Regla de firewall; su posición es el orden de declaración dentro de la cadena"""
    kind: Literal["firewall_rule"]
    table: str = "filter"
    chain: str = Field(..., description="INPUT, OUTPUT o cadena de usuario")
    match: str = Field("", description="Expresión de coincidencia (ej: -p tcp --dport 22 -i eth0)")
    target: str = Field(..., description="ACCEPT | DROP | REJECT | cadena de usuario")


Declaration = Annotated[
    Union[PackageDecl, ServiceDecl, FileDecl, FirewallChainDecl, FirewallRuleDecl],
    Field(discriminator="kind"),
]


class RecipeFile(BaseModel):
    """Archivo de receta"""
    version: int = Field(1, description="Versión del esquema")
    include: List[str] = Field(default_factory=list, description="Recetas a expandir antes (rutas relativas)")
    resources: List[Declaration] = Field(default_factory=list)

    class Config:
        extra = "forbid"
