"""
Provider de servicios systemd.
"""

import logging
from typing import Dict, List

from baseline.core.errors import ProviderUnavailableError
from baseline.core.infra import ApplyResult
from baseline.core.resources import ObservedState, Resource
from baseline.providers.shell import run, run_checked

logger = logging.getLogger(__name__)

_ENABLED_STATES = {"enabled", "enabled-runtime", "static", "alias"}


def _parse_properties(out: str) -> Dict[str, str]:
    props = {}
    for line in out.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            props[key.strip()] = value.strip()
    return props


class SystemdServiceProvider:
    name = "systemd"

    def __init__(self, timeout: int = 90):
        self.timeout = timeout

    def current_state(self, resource: Resource) -> ObservedState:
        svc = resource.desired
        ok, out = run(["systemctl", "show", svc.name, "--property=LoadState,ActiveState,UnitFileState"])
        if not ok:
            raise ProviderUnavailableError(f"systemctl show {svc.name}: {out}")
        props = _parse_properties(out)
        exists = props.get("LoadState") == "loaded"
        return ObservedState(exists, {
            "running": props.get("ActiveState") == "active",
            "enabled": props.get("UnitFileState") in _ENABLED_STATES,
        })

    def apply(self, resource: Resource) -> ApplyResult:
        svc = resource.desired
        observed = self.current_state(resource)
        attrs = observed.attributes
        commands: List[List[str]] = []

        if svc.enabled is True and not attrs.get("enabled"):
            commands.append(["systemctl", "enable", svc.name])
        elif svc.enabled is False and attrs.get("enabled"):
            commands.append(["systemctl", "disable", svc.name])

        if svc.restart:
            commands.append(["systemctl", "restart", svc.name])
        elif svc.running is True and not attrs.get("running"):
            commands.append(["systemctl", "start", svc.name])
        elif svc.running is False and attrs.get("running"):
            commands.append(["systemctl", "stop", svc.name])

        for cmd in commands:
            logger.info("Servicio %s: %s", svc.name, " ".join(cmd))
            run_checked(cmd, timeout=self.timeout)
        return ApplyResult(changed=bool(commands), detail="; ".join(" ".join(c) for c in commands))
