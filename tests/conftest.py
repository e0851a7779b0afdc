# tests/conftest.py
from __future__ import annotations

from functools import partial

import httpx
import pytest
from fastapi.testclient import TestClient
from google.api_core.exceptions import Forbidden, NotFound

from oncegate.config import Settings
from oncegate.services.gate import DownloadGate
from oncegate.services.storage import init_local_storage, open_grant_store, open_object_store


@pytest.fixture
def settings(tmp_path):
    s = Settings(grant_backend="sqlite", object_backend="local", data_dir=tmp_path / "data")
    init_local_storage(s)
    return s


@pytest.fixture
def grants(settings):
    return open_grant_store(settings)


@pytest.fixture
def put_object(settings):
    def _put(name: str, data: bytes = b"payload") -> None:
        p = settings.objects_dir / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
    return _put


@pytest.fixture
def gate(settings):
    return DownloadGate(
        open_grants=partial(open_grant_store, settings),
        open_objects=partial(open_object_store, settings),
    )


@pytest.fixture
def make_client():
    """TestClient whose download route uses the given gate."""
    from main import app
    from oncegate.dependencies import get_gate

    clients = []

    def _make(g: DownloadGate, **kwargs) -> TestClient:
        app.dependency_overrides[get_gate] = lambda: g
        tc = TestClient(app, **kwargs)
        clients.append(tc)
        return tc

    yield _make

    for tc in clients:
        tc.close()
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client, gate):
    return make_client(gate)


# -----------------------------
# fakes de Cloud Storage
# -----------------------------
class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name

    def reload(self):
        if self.name in self.bucket.forbidden:
            raise Forbidden("permission denied on bucket internals")
        if self.name not in self.bucket.names:
            raise NotFound("no such object")


class FakeBucket:
    def __init__(self, names=(), forbidden=()):
        self.names = set(names)
        self.forbidden = set(forbidden)

    def blob(self, name):
        return FakeBlob(self, name)


class FakeStorageClient:
    def __init__(self, bucket: FakeBucket):
        self._bucket = bucket
        self.bucket_names = []
        self.closed = False

    def bucket(self, name):
        self.bucket_names.append(name)
        return self._bucket

    def close(self):
        self.closed = True


class FakeCredentials:
    valid = True

    def apply(self, headers, token=None):
        headers["authorization"] = "Bearer test-token"


@pytest.fixture
def fake_bucket():
    return FakeBucket()


@pytest.fixture
def fake_storage_client(fake_bucket):
    return FakeStorageClient(fake_bucket)


@pytest.fixture
def fake_credentials():
    return FakeCredentials()


GCS_RESPONSE_HEADERS = {
    "content-type": "application/pdf",
    "etag": '"abc123"',
    "expires": "Mon, 01 Jan 2035 00:00:00 GMT",
    "cache-control": "public, max-age=3600",
    "x-goog-generation": "1700000000000000",
    "x-goog-hash": "crc32c=AAAAAA==,md5=BBBBBBBBBBBBBBBBBBBBBB==",
    "x-goog-metageneration": "1",
    "x-goog-storage-class": "STANDARD",
    "x-goog-stored-content-encoding": "identity",
    "x-goog-stored-content-length": "11",
    "x-guploader-uploadid": "ADPycdsomething",
}


@pytest.fixture
def gcs_transport():
    """MockTransport serving `<bucket>/<name>` from a dict, recording requests."""
    objects: dict[str, bytes] = {}
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        key = request.url.path.lstrip("/")
        if key not in objects:
            return httpx.Response(404, headers={"content-type": "text/plain"}, content=iter([b"NoSuchKey"]))
        # cuerpo como iterador: se transmite igual que un upstream real
        return httpx.Response(200, headers=GCS_RESPONSE_HEADERS, content=iter([objects[key]]))

    transport = httpx.MockTransport(handler)
    transport.objects = objects
    transport.seen = seen
    return transport
