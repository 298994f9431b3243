"""
Errores del motor de convergencia.

El core solo define excepciones; las capas (CLI) se encargan del formato de salida.

Estructurales (PlanError): se detectan antes de cualquier mutación del host.
Runtime (ProviderError): el executor las captura por recurso y las registra en el reporte.
"""

from typing import Iterable, Optional, Tuple


class BaselineError(Exception):
    """Error base de baseline."""
    pass


class ConfigError(BaselineError):
    """Error de configuración (receta faltante, YAML inválido, settings inválidos)."""
    pass


class PlanError(BaselineError):
    """Error estructural: la declaración no puede planificarse ni validarse."""
    pass


class DuplicateIDError(PlanError):
    """El par (kind, id) ya existe en el grafo."""

    def __init__(self, key):
        self.key = key
        super().__init__(f"Recurso duplicado: {key}")


class UnknownResourceError(PlanError):
    """Una dependencia o referencia apunta a un recurso no declarado."""

    def __init__(self, key, referenced_by=None):
        self.key = key
        self.referenced_by = referenced_by
        msg = f"Recurso desconocido: {key}"
        if referenced_by is not None:
            msg += f" (referenciado por {referenced_by})"
        super().__init__(msg)


class CycleDetectedError(PlanError):
    """No existe un orden válido: hay un ciclo de dependencias."""

    def __init__(self, involved_ids: Iterable):
        self.involved_ids: Tuple = tuple(involved_ids)
        joined = ", ".join(str(k) for k in self.involved_ids)
        super().__init__(f"Ciclo de dependencias entre: {joined}")


class ConflictingOrderError(PlanError):
    """Restricciones de orden contradictorias (p. ej. dos reglas con la misma posición)."""
    pass


class UnreachableRuleError(PlanError):
    """Una regla nunca puede coincidir: una regla terminal anterior la cubre."""

    def __init__(self, rule_id: str, shadowed_by: Optional[str] = None):
        self.rule_id = rule_id
        self.shadowed_by = shadowed_by
        msg = f"Regla inalcanzable: {rule_id}"
        if shadowed_by:
            msg += f" (cubierta por {shadowed_by})"
        super().__init__(msg)


class OpenChainPolicyError(PlanError):
    """La cadena no termina en deny y su política por defecto no es DROP."""

    def __init__(self, chain: str, detail: Optional[str] = None):
        self.chain = chain
        self.detail = detail
        msg = f"Cadena abierta: {chain}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class ProviderError(BaselineError):
    """Error delegado desde un provider (apt, systemd, iptables, etc.)."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ProviderUnavailableError(ProviderError):
    """El provider no puede consultar el estado (entorno roto, binario ausente)."""
    pass


class ApplyFailedError(ProviderError):
    """El provider no pudo aplicar el estado deseado."""
    pass
