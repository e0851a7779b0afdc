# oncegate/services/gate.py
"""Gate de descarga única: validar, pre-check, existencia, grant atómico, stream.

Solo el grant se serializa, y lo hace el record store. El grant no se revierte.
"""
from __future__ import annotations

import logging
from contextlib import closing
from typing import Callable, Optional

from oncegate.services.errors import AlreadyGranted, ObjectMissing
from oncegate.services.grants import GrantRecord, GrantStore, utcnow
from oncegate.services.objects import ObjectStore, ObjectStream
from oncegate.services.validation import validate_filename

logger = logging.getLogger(__name__)

GrantStoreFactory = Callable[[], GrantStore]
ObjectStoreFactory = Callable[[], ObjectStore]


class DownloadGate:
    def __init__(self, open_grants: GrantStoreFactory, open_objects: ObjectStoreFactory):
        self.open_grants = open_grants
        self.open_objects = open_objects

    def grant(self, filename: Optional[str], country: str = "", region: str = "") -> ObjectStream:
        filename = validate_filename(filename)

        with closing(self.open_grants()) as grants:
            if grants.get(filename) is not None:
                raise AlreadyGranted(filename)

            objects = self.open_objects()
            try:
                record = self.claim(grants, objects, filename, country, region)
            except BaseException:
                objects.close()
                raise

        logger.info("granted %s (country=%r region=%r)", filename, record.country, record.region)
        with closing(objects):
            return objects.open(filename)

    def claim(self, grants: GrantStore, objects: ObjectStore, filename: str,
              country: str, region: str) -> GrantRecord:
        if not objects.exists(filename):
            # sin registro negativo: si el objeto aparece luego, se puede entregar
            raise ObjectMissing(filename)

        record = GrantRecord(country=country or "", region=region or "", downloaded_at=utcnow())
        if not grants.create_if_absent(filename, record):
            # perdió la carrera contra otra request concurrente
            raise AlreadyGranted(filename)
        return record
