"""
Provider de archivos: descarga remota (requests) o contenido literal,
con ownership, permisos y checksum sha256.
"""

import grp
import hashlib
import logging
import os
import pwd
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Optional

import requests

from baseline.core.errors import ApplyFailedError, ProviderUnavailableError
from baseline.core.infra import ApplyResult
from baseline.core.resources import ObservedState, Resource
from baseline.core.resources.models import normalize_mode

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _user_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


class RemoteFileProvider:
    name = "remote_file"

    def __init__(self, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def current_state(self, resource: Resource) -> ObservedState:
        f = resource.desired
        path = Path(f.path)
        try:
            if not path.exists():
                return ObservedState(False)
            st = path.stat()
            attrs = {
                "mode": stat.S_IMODE(st.st_mode),
                "owner": _user_name(st.st_uid),
                "group": _group_name(st.st_gid),
            }
            if f.expected_checksum() is not None:
                attrs["checksum"] = sha256_file(path)
        except OSError as e:
            raise ProviderUnavailableError(f"No se pudo inspeccionar {path}: {e}")
        return ObservedState(True, attrs)

    def apply(self, resource: Resource) -> ApplyResult:
        f = resource.desired
        path = Path(f.path)
        observed = self.current_state(resource)
        expected = f.expected_checksum()
        content_ok = observed.exists and (expected is None or observed.attributes.get("checksum") == expected)

        try:
            if not content_ok:
                if f.content is not None:
                    self._write(path, f.content.encode())
                elif f.source:
                    self._download(f.source, path, expected)
                else:
                    raise ApplyFailedError(f"{path}: no hay source ni content para crearlo")
            if f.mode is not None:
                os.chmod(path, normalize_mode(f.mode))
            if f.owner or f.group:
                shutil.chown(path, user=f.owner, group=f.group)
        except (OSError, LookupError) as e:
            raise ApplyFailedError(f"{path}: {e}")
        return ApplyResult(changed=True)

    def _download(self, url: str, path: Path, expected: Optional[str]) -> None:
        logger.info("Descargando %s → %s", url, path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        digest = hashlib.sha256()
        try:
            with os.fdopen(fd, "wb") as out:
                with self.session.get(url, stream=True, timeout=self.timeout) as response:
                    response.raise_for_status()
                    for chunk in response.iter_content(chunk_size=_CHUNK):
                        out.write(chunk)
                        digest.update(chunk)
            if expected and digest.hexdigest() != expected:
                raise ApplyFailedError(
                    f"Checksum de {url} no coincide: {digest.hexdigest()} != {expected}"
                )
            os.replace(tmp, path)
        except requests.exceptions.RequestException as e:
            os.unlink(tmp)
            raise ApplyFailedError(f"Descarga fallida {url}: {e}")
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        with os.fdopen(fd, "wb") as out:
            out.write(data)
        os.replace(tmp, path)
