# oncegate/dependencies.py
from __future__ import annotations

from functools import partial

from fastapi import Depends

from oncegate.config import Settings, get_settings
from oncegate.services.gate import DownloadGate
from oncegate.services.storage import open_grant_store, open_object_store


def get_gate(settings: Settings = Depends(get_settings)) -> DownloadGate:
    # los clientes se abren por request dentro del gate, no aquí
    return DownloadGate(
        open_grants=partial(open_grant_store, settings),
        open_objects=partial(open_object_store, settings),
    )
