"""
Loader de recetas declarativas
Carga YAML, expande includes y los convierte a recursos del core
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from baseline.core.errors import ConfigError
from baseline.core.resources import Resource, ResourceKey
from baseline.core.resources import models as res
from baseline.declarative.models import (
    FileDecl,
    FirewallChainDecl,
    FirewallRuleDecl,
    PackageDecl,
    RecipeFile,
    ServiceDecl,
)

logger = logging.getLogger(__name__)


class RecipeLoader:
    """Carga recetas y produce la lista ordenada de recursos"""

    def __init__(self, base_dir: Optional[Path] = None):
        """
        Args:
            base_dir: directorio alternativo para rutas relativas (BASELINE_RECIPES_DIR)
        """
        self.base_dir = base_dir

    def resolve(self, path, relative_to: Optional[Path] = None) -> Path:
        """Resuelve una ruta de receta: relativa al archivo que la incluye, cwd o base_dir."""
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            options = [candidate]
        else:
            options = []
            if relative_to is not None:
                options.append(relative_to / candidate)
            options.append(Path.cwd() / candidate)
            if self.base_dir is not None:
                options.append(self.base_dir / candidate)
        for option in options:
            if option.is_file():
                return option.resolve()
        raise ConfigError(f"Receta no encontrada: {path}")

    def load(self, path) -> List[Resource]:
        """Carga una receta (con sus includes) y devuelve los recursos en orden de declaración."""
        entries: List[Tuple[Path, object]] = []
        self._expand(self.resolve(path), [], set(), entries)
        resources = self._to_resources(entries)
        logger.info("Receta %s: %d recursos", path, len(resources))
        return resources

    def read(self, path: Path) -> RecipeFile:
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"{path}: error al parsear YAML: {e}")
        except OSError as e:
            raise ConfigError(f"{path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: la receta debe ser un mapa (version/include/resources)")
        try:
            return RecipeFile(**data)
        except ValidationError as e:
            raise ConfigError(f"{path}: receta inválida:\n{e}")

    def _expand(self, path: Path, stack: List[Path], seen: set, out: List[Tuple[Path, object]]) -> None:
        if path in stack:
            chain = " → ".join(p.name for p in stack + [path])
            raise ConfigError(f"Include cíclico: {chain}")
        if path in seen:
            # Cada receta se incluye una sola vez
            return
        seen.add(path)
        recipe = self.read(path)
        for include in recipe.include:
            self._expand(self.resolve(include, relative_to=path.parent), stack + [path], seen, out)
        out.extend((path, decl) for decl in recipe.resources)

    def _to_resources(self, entries: List[Tuple[Path, object]]) -> List[Resource]:
        positions: Dict[Tuple[str, str], int] = {}
        resources: List[Resource] = []
        for source, decl in entries:
            deps = [ResourceKey.parse(d) for d in decl.depends_on]
            try:
                resources.append(self._convert(decl, deps, positions))
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{source}: {decl.kind} {decl.name}: {e}")
        return resources

    def _convert(self, decl, deps, positions: Dict[Tuple[str, str], int]) -> Resource:
        if isinstance(decl, PackageDecl):
            return res.package(
                decl.name, depends_on=deps,
                installed=decl.installed, version=decl.version, source=decl.source,
            )
        if isinstance(decl, ServiceDecl):
            return res.service(
                decl.name, depends_on=deps,
                running=decl.running, enabled=decl.enabled, restart=decl.restart,
            )
        if isinstance(decl, FileDecl):
            return res.file(
                decl.name, depends_on=deps,
                source=decl.source, content=decl.content, owner=decl.owner,
                group=decl.group, mode=decl.mode, checksum=decl.checksum,
            )
        if isinstance(decl, FirewallChainDecl):
            return res.firewall_chain(decl.name, table=decl.table, policy=decl.policy, depends_on=deps)
        if isinstance(decl, FirewallRuleDecl):
            slot = (decl.table, decl.chain)
            position = positions.get(slot, 0)
            positions[slot] = position + 1
            return res.firewall_rule(
                decl.name, decl.chain, decl.target, position,
                match=decl.match, table=decl.table, depends_on=deps,
            )
        raise TypeError(f"Declaración no soportada: {type(decl).__name__}")


def load_recipe(path, base_dir: Optional[Path] = None) -> List[Resource]:
    """Atajo: RecipeLoader(base_dir).load(path)"""
    return RecipeLoader(base_dir).load(path)
