from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Dict, Optional
from urllib.parse import quote

from minio import Minio
from minio.error import S3Error

from src.catalog.config import Settings, settings
from src.catalog.domain.errors import StorageFailure

logger = logging.getLogger(__name__)


class ObjectStore(ABC):
    @abstractmethod
    def put(self, data: bytes, key: str, *, content_type: str = "application/pdf") -> str:
        """Persist bytes under ``key`` and return a retrievable URL."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the bytes previously stored under ``key``."""


def _public_url(base: str, key: str) -> str:
    return f"{base.rstrip('/')}/{quote(key)}"


class LocalObjectStore(ObjectStore):
    """Stores objects as files below a base directory."""

    def __init__(self, base_dir: Path, public_url: Optional[str] = None) -> None:
        self._base = base_dir
        self._public_url = public_url

    def _path_for(self, key: str) -> Path:
        base = self._base.resolve()
        path = (base / key).resolve()
        if base not in path.parents:
            raise StorageFailure("Invalid storage key")
        return path

    def put(self, data: bytes, key: str, *, content_type: str = "application/pdf") -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            logger.exception("Failed to write object %s", key)
            raise StorageFailure() from exc
        if self._public_url:
            return _public_url(self._public_url, key)
        return path.as_uri()

    def get(self, key: str) -> bytes:
        try:
            return self._path_for(key).read_bytes()
        except OSError as exc:
            logger.exception("Failed to read object %s", key)
            raise StorageFailure("Failed to read file") from exc


class MinioObjectStore(ObjectStore):
    """S3-compatible bucket storage (MinIO, AWS S3) via the minio client."""

    def __init__(
        self,
        client: Minio,
        bucket: str,
        *,
        endpoint: str,
        secure: bool = True,
        public_url: Optional[str] = None,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._endpoint = endpoint
        self._secure = secure
        self._public_url = public_url
        self._bucket_checked = False

    @classmethod
    def from_settings(cls, config: Settings) -> "MinioObjectStore":
        if not config.minio_access_key or not config.minio_secret_key:
            raise RuntimeError("MINIO credentials not configured")
        client = Minio(
            config.minio_endpoint,
            access_key=config.minio_access_key,
            secret_key=config.minio_secret_key,
            secure=config.minio_secure,
        )
        return cls(
            client,
            config.minio_bucket,
            endpoint=config.minio_endpoint,
            secure=config.minio_secure,
            public_url=config.object_store_public_url,
        )

    def _ensure_bucket(self) -> None:
        if self._bucket_checked:
            return
        try:
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket)
        except S3Error as exc:
            if exc.code not in {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}:
                raise
        self._bucket_checked = True

    def url_for(self, key: str) -> str:
        if self._public_url:
            return _public_url(self._public_url, key)
        scheme = "https" if self._secure else "http"
        return _public_url(f"{scheme}://{self._endpoint}/{self._bucket}", key)

    def put(self, data: bytes, key: str, *, content_type: str = "application/pdf") -> str:
        try:
            self._ensure_bucket()
            self._client.put_object(
                self._bucket,
                key,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except S3Error as exc:
            logger.error("Object store rejected upload of %s: %s", key, exc.code or exc)
            raise StorageFailure() from exc
        except Exception as exc:
            logger.exception("Object store unavailable while uploading %s", key)
            raise StorageFailure() from exc
        logger.info("Stored object %s (%d bytes) in bucket %s", key, len(data), self._bucket)
        return self.url_for(key)

    def get(self, key: str) -> bytes:
        response = None
        try:
            response = self._client.get_object(self._bucket, key)
            return response.read()
        except S3Error as exc:
            logger.error("Object store failed to return %s: %s", key, exc.code or exc)
            raise StorageFailure("Failed to read file") from exc
        except Exception as exc:
            logger.exception("Object store unavailable while reading %s", key)
            raise StorageFailure("Failed to read file") from exc
        finally:
            if response is not None:
                response.close()
                response.release_conn()


class InMemoryObjectStore(ObjectStore):
    """Process-local object store for development and tests."""

    def __init__(self, base_url: str = "memory://guidelines") -> None:
        self._objects: Dict[str, bytes] = {}
        self._base_url = base_url
        self._lock = Lock()

    def put(self, data: bytes, key: str, *, content_type: str = "application/pdf") -> str:
        with self._lock:
            self._objects[key] = bytes(data)
        return _public_url(self._base_url, key)

    def get(self, key: str) -> bytes:
        with self._lock:
            data = self._objects.get(key)
        if data is None:
            raise StorageFailure("Failed to read file")
        return data

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def __len__(self) -> int:
        return len(self._objects)


def build_object_store(config: Settings = settings) -> ObjectStore:
    backend = config.object_store_backend.lower()
    if backend == "minio":
        return MinioObjectStore.from_settings(config)
    if backend == "memory":
        return InMemoryObjectStore()
    return LocalObjectStore(config.object_store_dir, public_url=config.object_store_public_url)
