# oncegate/config.py
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel

DEFAULT_PORT = "8080"


class Settings(BaseModel):
    port: int = int(DEFAULT_PORT)
    project_id: str = ""
    bucket_name: str = ""

    grant_backend: str = "datastore"   # "datastore" | "sqlite"
    object_backend: str = "gcs"        # "gcs" | "local"
    data_dir: Path = Path("storage")

    grant_kind: str = "DownloadLogEntry"
    storage_base_url: str = "https://storage.googleapis.com"

    # headers puestos por el front-door (App Engine / LB), no se validan
    country_header: str = "X-Appengine-Country"
    region_header: str = "X-Appengine-Region"

    log_level: str = "INFO"

    @property
    def objects_dir(self) -> Path:
        return self.data_dir / "objects"

    @property
    def grants_db_path(self) -> Path:
        return self.data_dir / "grants.db"


def load_settings() -> Settings:
    return Settings(
        port=int(os.getenv("PORT") or DEFAULT_PORT),
        project_id=os.getenv("GOOGLE_CLOUD_PROJECT", ""),
        bucket_name=os.getenv("BUCKET_NAME", ""),
        grant_backend=os.getenv("GRANT_BACKEND", "datastore").strip().lower(),
        object_backend=os.getenv("OBJECT_BACKEND", "gcs").strip().lower(),
        data_dir=Path(os.getenv("DATA_DIR", "storage")),
        grant_kind=os.getenv("GRANT_KIND", "DownloadLogEntry"),
        storage_base_url=os.getenv("STORAGE_BASE_URL", "https://storage.googleapis.com").rstrip("/"),
        country_header=os.getenv("COUNTRY_HEADER", "X-Appengine-Country"),
        region_header=os.getenv("REGION_HEADER", "X-Appengine-Region"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
