# tools/setup_storage.py
"""
Prepara DATA_DIR para los backends locales (sqlite + disco) y provisiona archivos.

Uso: python tools/setup_storage.py DATA_DIR [archivo ...]
"""
from __future__ import annotations

import shutil
import sys
from pathlib import Path

from oncegate.config import Settings
from oncegate.services.storage import init_local_storage


def copy_if_missing(src: Path, dst: Path) -> bool:
    if src.exists() and not dst.exists():
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)
        return True
    return False


def autoinit(data_dir: Path, files: list[Path]) -> list[str]:
    """Crea objects/ y grants.db; copia `files` a objects/ sin pisar existentes."""
    settings = Settings(grant_backend="sqlite", object_backend="local", data_dir=data_dir)
    init_local_storage(settings)

    copied = []
    for src in files:
        if copy_if_missing(src, settings.objects_dir / src.name):
            copied.append(src.name)
    return copied


def main(argv: list[str]) -> int:
    if not argv:
        print("Uso: python tools/setup_storage.py DATA_DIR [archivo ...]")
        return 2
    copied = autoinit(Path(argv[0]), [Path(a) for a in argv[1:]])
    for name in copied:
        print(f"[+] {name}")
    print(f"[i] {len(copied)} archivo(s) provisionados en {argv[0]}/objects")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
