import pytest

from src.catalog.config import Settings
from src.catalog.domain.errors import StorageFailure
from src.catalog.infra.storage.objects import (
    InMemoryObjectStore,
    LocalObjectStore,
    MinioObjectStore,
    build_object_store,
)


class FakeResponse:
    def __init__(self, data):
        self._data = data
        self.closed = False
        self.released = False

    def read(self):
        return self._data

    def close(self):
        self.closed = True

    def release_conn(self):
        self.released = True


class FakeMinio:
    """Just enough of the minio client surface for MinioObjectStore."""

    def __init__(self, fail=False):
        self.buckets = set()
        self.objects = {}
        self.fail = fail
        self.responses = []

    def bucket_exists(self, bucket):
        return bucket in self.buckets

    def make_bucket(self, bucket):
        self.buckets.add(bucket)

    def put_object(self, bucket, key, stream, length, content_type):
        if self.fail:
            raise ConnectionError("connection refused")
        self.objects[(bucket, key)] = (stream.read(length), content_type)

    def get_object(self, bucket, key):
        if self.fail:
            raise ConnectionError("connection refused")
        response = FakeResponse(self.objects[(bucket, key)][0])
        self.responses.append(response)
        return response


def test_local_store_writes_under_base_dir(tmp_path):
    store = LocalObjectStore(tmp_path)
    url = store.put(b"%PDF", "guidelines/1-000001-a.pdf")

    assert (tmp_path / "guidelines" / "1-000001-a.pdf").read_bytes() == b"%PDF"
    assert url.startswith("file://")
    assert store.get("guidelines/1-000001-a.pdf") == b"%PDF"


def test_local_store_public_url(tmp_path):
    store = LocalObjectStore(tmp_path, public_url="https://files.example.org/")
    assert store.put(b"%PDF", "guidelines/a b.pdf") == "https://files.example.org/guidelines/a%20b.pdf"


def test_local_store_refuses_keys_outside_base(tmp_path):
    store = LocalObjectStore(tmp_path / "uploads")
    with pytest.raises(StorageFailure):
        store.put(b"x", "../escape.pdf")


def test_local_store_missing_object(tmp_path):
    with pytest.raises(StorageFailure):
        LocalObjectStore(tmp_path).get("guidelines/missing.pdf")


def test_in_memory_store():
    store = InMemoryObjectStore()
    url = store.put(b"%PDF", "guidelines/a.pdf")
    assert url == "memory://guidelines/guidelines/a.pdf"
    assert "guidelines/a.pdf" in store
    assert store.get("guidelines/a.pdf") == b"%PDF"
    with pytest.raises(StorageFailure):
        store.get("guidelines/other.pdf")


def test_minio_store_creates_bucket_and_round_trips():
    client = FakeMinio()
    store = MinioObjectStore(client, "guidelines-bucket", endpoint="minio:9000", secure=False)

    url = store.put(b"%PDF", "guidelines/a.pdf")

    assert "guidelines-bucket" in client.buckets
    assert client.objects[("guidelines-bucket", "guidelines/a.pdf")] == (b"%PDF", "application/pdf")
    assert url == "http://minio:9000/guidelines-bucket/guidelines/a.pdf"

    assert store.get("guidelines/a.pdf") == b"%PDF"
    assert client.responses[0].closed and client.responses[0].released


def test_minio_store_failures_become_storage_failure():
    store = MinioObjectStore(FakeMinio(fail=True), "bucket", endpoint="minio:9000")
    with pytest.raises(StorageFailure):
        store.put(b"%PDF", "guidelines/a.pdf")
    with pytest.raises(StorageFailure):
        store.get("guidelines/a.pdf")


def test_build_object_store_selects_backend(tmp_path):
    assert isinstance(build_object_store(Settings(object_store_backend="memory")), InMemoryObjectStore)
    assert isinstance(
        build_object_store(Settings(object_store_backend="local", object_store_dir=tmp_path)),
        LocalObjectStore,
    )
    with pytest.raises(RuntimeError):
        build_object_store(Settings(object_store_backend="minio", minio_access_key=None, minio_secret_key=None))
