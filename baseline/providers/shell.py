"""
Ejecución de comandos del host para los providers.
"""

import logging
import os
import subprocess
from typing import Dict, List, Optional, Tuple

from baseline.core.errors import ApplyFailedError, ProviderUnavailableError

logger = logging.getLogger(__name__)


def run(cmd: List[str], timeout: int = 60, env: Optional[Dict[str, str]] = None) -> Tuple[bool, str]:
    """
    Ejecuta comando; retorna (éxito, salida).

    Raises:
        ProviderUnavailableError: el binario no existe en el host
    """
    logger.debug("$ %s", " ".join(cmd))
    full_env = None
    if env:
        full_env = {**os.environ, **env}
    try:
        r = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=full_env,
            check=False,
        )
    except FileNotFoundError:
        raise ProviderUnavailableError(f"Comando no encontrado: {cmd[0]}")
    except subprocess.TimeoutExpired:
        return False, f"Timeout ({timeout}s) ejecutando {cmd[0]}"
    out = (r.stdout or "") + (r.stderr or "")
    return r.returncode == 0, out.strip()


def run_checked(cmd: List[str], timeout: int = 60, env: Optional[Dict[str, str]] = None) -> str:
    """Como run(), pero un código de salida distinto de 0 es ApplyFailedError."""
    ok, out = run(cmd, timeout=timeout, env=env)
    if not ok:
        tail = out[-300:] if out else "sin salida"
        raise ApplyFailedError(f"{' '.join(cmd)}: {tail}")
    return out
