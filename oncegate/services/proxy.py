# oncegate/services/proxy.py
from __future__ import annotations

from typing import Iterable, Tuple

# headers por defecto de cloud storage que no deben llegar al cliente
STORAGE_HEADERS = frozenset({
    "expires",
    "x-goog-generation",
    "x-goog-hash",
    "x-goog-metageneration",
    "x-goog-storage-class",
    "x-goog-stored-content-encoding",
    "x-goog-stored-content-length",
    "x-guploader-uploadid",
})

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

# la app los vuelve a poner en cada respuesta
OVERRIDDEN_HEADERS = frozenset({"cache-control", "pragma", "date", "server"})

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, private, max-age=0",
    "Expires": "Thu, 01 Jan 1970 00:00:00 GMT",
    "Pragma": "no-cache",
}


def sanitize_headers(headers: Iterable[Tuple[str, str]]) -> dict[str, str]:
    out: dict[str, str] = {}
    for name, value in headers:
        low = name.lower()
        if low in STORAGE_HEADERS or low in HOP_BY_HOP_HEADERS or low in OVERRIDDEN_HEADERS:
            continue
        out[low] = value
    return out


def apply_no_cache(headers) -> None:
    for name, value in NO_CACHE_HEADERS.items():
        headers[name] = value
