# oncegate/services/storage.py
from __future__ import annotations

from oncegate.config import Settings
from oncegate.services.errors import CollaboratorFailure
from oncegate.services.grants import DatastoreGrantStore, GrantStore, SqliteGrantStore, init_grants_db
from oncegate.services.objects import GCSObjectStore, LocalObjectStore, ObjectStore


def init_local_storage(settings: Settings) -> None:
    """
    Prepara la estructura local en DATA_DIR (objects/ y grants.db).
    Solo hace algo para los backends locales; llamar en startup.
    """
    if settings.object_backend == "local":
        settings.objects_dir.mkdir(parents=True, exist_ok=True)
    if settings.grant_backend == "sqlite":
        init_grants_db(settings.grants_db_path)


def open_grant_store(settings: Settings) -> GrantStore:
    backend = settings.grant_backend
    if backend == "datastore":
        return DatastoreGrantStore(project=settings.project_id, kind=settings.grant_kind)
    if backend == "sqlite":
        return SqliteGrantStore(settings.grants_db_path)
    raise CollaboratorFailure(f"config.GRANT_BACKEND={backend!r}")


def open_object_store(settings: Settings) -> ObjectStore:
    backend = settings.object_backend
    if backend == "gcs":
        return GCSObjectStore(
            settings.bucket_name,
            project=settings.project_id,
            base_url=settings.storage_base_url,
        )
    if backend == "local":
        return LocalObjectStore(settings.objects_dir)
    raise CollaboratorFailure(f"config.OBJECT_BACKEND={backend!r}")
