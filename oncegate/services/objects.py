# oncegate/services/objects.py
from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple
from urllib.parse import quote

import google.auth
import google.auth.transport.requests
import httpx
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from oncegate.services.errors import CollaboratorFailure, DeliveryFailure

READ_ONLY_SCOPE = "https://www.googleapis.com/auth/devstorage.read_only"
CHUNK_SIZE = 64 * 1024


@dataclass
class ObjectStream:
    """Objeto abierto: status y headers del upstream, más los chunks del body.

    `iter_body` libera el transporte al terminar, fallar o cortarse el cliente.
    """

    status_code: int
    headers: List[Tuple[str, str]]
    chunks: Iterator[bytes]
    on_close: Callable[[], None]
    operation: str = "storage.stream"
    _closed: bool = field(default=False, repr=False)

    def iter_body(self) -> Iterator[bytes]:
        try:
            yield from self.chunks
        except (httpx.HTTPError, OSError) as e:
            # el grant ya está confirmado: el nombre queda consumido.
            # lo registra el servidor ASGI al abortar la respuesta
            raise DeliveryFailure(self.operation) from e
        finally:
            self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.on_close()


class ObjectStore:
    def exists(self, filename: str) -> bool:
        raise NotImplementedError

    def open(self, filename: str) -> ObjectStream:
        raise NotImplementedError

    def close(self) -> None:
        pass


# -----------------------------
# disco local (dev)
# -----------------------------
class LocalObjectStore(ObjectStore):
    def __init__(self, root: Path, chunk_size: int = CHUNK_SIZE):
        self.root = Path(root)
        self.chunk_size = chunk_size

    def path_for(self, filename: str) -> Optional[Path]:
        base = self.root.resolve()
        p = (base / filename).resolve()
        if p == base or not p.is_relative_to(base):
            return None
        return p

    def exists(self, filename: str) -> bool:
        try:
            p = self.path_for(filename)
            return p is not None and p.is_file()
        except ValueError:
            # p.ej. byte nulo en el nombre: no puede existir en disco
            return False
        except OSError as e:
            raise CollaboratorFailure("local.stat") from e

    def open(self, filename: str) -> ObjectStream:
        try:
            p = self.path_for(filename)
            if p is None:
                raise FileNotFoundError(filename)
            f = open(p, "rb")
        except (OSError, ValueError) as e:
            raise DeliveryFailure("local.open") from e
        try:
            size = os.fstat(f.fileno()).st_size
        except OSError as e:
            f.close()
            raise DeliveryFailure("local.open") from e

        ctype = mimetypes.guess_type(p.name)[0] or "application/octet-stream"
        return ObjectStream(
            status_code=200,
            headers=[("content-type", ctype), ("content-length", str(size))],
            chunks=iter(lambda: f.read(self.chunk_size), b""),
            on_close=f.close,
            operation="local.stream",
        )


# -----------------------------
# Cloud Storage (prod)
# -----------------------------
class GCSObjectStore(ObjectStore):
    """Existencia vía el cliente de storage; bytes vía GET a `<base_url>/<bucket>/<name>`
    con las mismas credenciales, para que status y headers lleguen tal cual.
    """

    def __init__(
        self,
        bucket_name: str,
        project: str = "",
        base_url: str = "https://storage.googleapis.com",
        client=None,
        credentials=None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.bucket_name = bucket_name
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        try:
            if credentials is None:
                credentials, _ = google.auth.default(scopes=[READ_ONLY_SCOPE])
            if client is None:
                client = storage.Client(project=project or None, credentials=credentials)
        except (GoogleAuthError, OSError, ValueError) as e:
            raise CollaboratorFailure("storage.NewClient") from e
        self.credentials = credentials
        self.client = client
        self.bucket = client.bucket(bucket_name)

    def object_url(self, filename: str) -> str:
        return f"{self.base_url}/{quote(self.bucket_name, safe='')}/{quote(filename)}"

    def exists(self, filename: str) -> bool:
        try:
            self.bucket.blob(filename).reload()
        except NotFound:
            return False
        except (GoogleAPIError, GoogleAuthError) as e:
            raise CollaboratorFailure("storage.Attrs") from e
        return True

    def auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if not self.credentials.valid:
            self.credentials.refresh(google.auth.transport.requests.Request())
        self.credentials.apply(headers)
        return headers

    def open(self, filename: str) -> ObjectStream:
        try:
            headers = self.auth_headers()
        except GoogleAuthError as e:
            raise DeliveryFailure("storage.credentials") from e

        http = httpx.Client(transport=self.transport, timeout=httpx.Timeout(30.0, read=None))
        try:
            request = http.build_request("GET", self.object_url(filename), headers=headers)
            response = http.send(request, stream=True)
        except httpx.HTTPError as e:
            http.close()
            raise DeliveryFailure("storage.proxy") from e

        def close() -> None:
            response.close()
            http.close()

        return ObjectStream(
            status_code=response.status_code,
            headers=list(response.headers.multi_items()),
            # raw: sin descomprimir, content-encoding/content-length siguen valiendo
            chunks=response.iter_raw(),
            on_close=close,
            operation="storage.proxy",
        )

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            close()
