"""
Provider de paquetes Debian/Ubuntu (apt-get + dpkg).
"""

import logging

from baseline.core.infra import ApplyResult
from baseline.core.resources import ObservedState, Resource
from baseline.providers.shell import run, run_checked

logger = logging.getLogger(__name__)

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class AptPackageProvider:
    """Instala/elimina paquetes; `source` instala un .deb local con dpkg."""

    name = "apt"

    def __init__(self, timeout: int = 600):
        self.timeout = timeout

    def current_state(self, resource: Resource) -> ObservedState:
        pkg = resource.desired
        ok, out = run(["dpkg-query", "-W", "-f=${Status}\t${Version}", pkg.name])
        if not ok:
            # dpkg-query devuelve 1 para paquetes desconocidos
            return ObservedState(False)
        status, _, version = out.partition("\t")
        installed = status.split()[-1:] == ["installed"]
        return ObservedState(installed, {"status": status.strip(), "version": version.strip()})

    def apply(self, resource: Resource) -> ApplyResult:
        pkg = resource.desired
        if not pkg.installed:
            cmd = ["apt-get", "remove", "-y", pkg.name]
        elif pkg.source:
            cmd = ["dpkg", "-i", pkg.source]
        else:
            target = f"{pkg.name}={pkg.version}" if pkg.version else pkg.name
            cmd = ["apt-get", "install", "-y", target]
        logger.info("Paquete %s: %s", pkg.name, " ".join(cmd))
        run_checked(cmd, timeout=self.timeout, env=_APT_ENV)
        return ApplyResult(changed=True, detail=" ".join(cmd))
