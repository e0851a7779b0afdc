# oncegate/services/validation.py
from __future__ import annotations

from oncegate.services.errors import InvalidInput

MAX_FILENAME_LENGTH = 128


def validate_filename(filename: str | None) -> str:
    # sin canonicalizar rutas: el nombre se usa tal cual como clave
    if not filename:
        raise InvalidInput("empty filename")
    if len(filename) > MAX_FILENAME_LENGTH:
        raise InvalidInput("invalid filename")
    return filename
