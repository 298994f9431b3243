"""
Resolución de settings del motor desde variables de entorno.

- load_settings(): lee BASELINE_* (el CLI carga antes el .env del proyecto).
- recipes_root(): directorio base de recetas para rutas relativas.

El core NO lee archivos; solo interpreta el entorno recibido.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from baseline.core.errors import ConfigError
from baseline.core.runtime.executor import RetryPolicy

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class EngineSettings:
    service_attempts: int = 3
    retry_delay: float = 2.0
    allow_accept_all: bool = False
    http_timeout: float = 30.0
    recipes_dir: Path = Path("recipes")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(service_attempts=self.service_attempts, delay=self.retry_delay)

    def override(self, **changes) -> "EngineSettings":
        """Copia con los valores no-None de `changes` (opciones del CLI)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _int(environ: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} debe ser un entero (valor: {raw!r})")
    if value < minimum:
        raise ConfigError(f"{name} debe ser >= {minimum}")
    return value


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} debe ser numérico (valor: {raw!r})")
    if value < 0:
        raise ConfigError(f"{name} no puede ser negativo")
    return value


def _bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name} debe ser booleano (valor: {raw!r})")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> EngineSettings:
    """Settings desde el entorno; valores inválidos → ConfigError."""
    env = os.environ if environ is None else environ
    defaults = EngineSettings()
    return EngineSettings(
        service_attempts=_int(env, "BASELINE_SERVICE_ATTEMPTS", defaults.service_attempts, 1),
        retry_delay=_float(env, "BASELINE_RETRY_DELAY", defaults.retry_delay),
        allow_accept_all=_bool(env, "BASELINE_ALLOW_ACCEPT_ALL", defaults.allow_accept_all),
        http_timeout=_float(env, "BASELINE_HTTP_TIMEOUT", defaults.http_timeout),
        recipes_dir=recipes_root(env),
    )


def recipes_root(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Directorio base de recetas.
    Resolución: BASELINE_RECIPES_DIR → ./recipes (desde cwd).
    """
    env = os.environ if environ is None else environ
    explicit = env.get("BASELINE_RECIPES_DIR", "").strip()
    if explicit:
        return Path(explicit).expanduser().resolve()
    return Path.cwd() / "recipes"
