"""
Integration tests for the object-store backend against a running MinIO

Enabled with MINIO_INTEGRATION=1 (docker run -p 9000:9000 minio/minio server /data).
"""
import os
import uuid

import pytest
from minio import Minio

from fileshare.storage.exceptions import ObjectExistsError, ObjectNotFoundError
from fileshare.storage.minio_storage import MinIOStorage

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.getenv("MINIO_INTEGRATION") != "1",
        reason="requires a running MinIO (set MINIO_INTEGRATION=1)",
    ),
]


@pytest.fixture
async def live_storage():
    """MinIOStorage on a throwaway bucket"""
    client = Minio(
        os.getenv("MINIO_LIVE_ENDPOINT", "localhost:9000"),
        access_key=os.getenv("MINIO_LIVE_ACCESS_KEY", "minioadmin"),
        secret_key=os.getenv("MINIO_LIVE_SECRET_KEY", "minioadmin"),
        secure=False,
    )
    bucket = f"fileshare-test-{uuid.uuid4().hex[:8]}"
    # self-hosted MinIO has no KMS by default and ignores storage classes
    storage = MinIOStorage(client, bucket, server_side_encryption=False, storage_class=None)
    await storage.ensure_bucket()

    yield storage

    for obj in client.list_objects(bucket, recursive=True):
        client.remove_object(bucket, obj.object_name)
    client.remove_bucket(bucket)


class TestMinIOLive:

    @pytest.mark.asyncio
    async def test_round_trip(self, live_storage):
        payload = os.urandom(200_000)
        stored = await live_storage.store(payload, "big.bin", "application/octet-stream")

        assert (await live_storage.describe(stored.location)).size == len(payload)
        stream = await live_storage.retrieve(stored.location)
        assert await stream.read() == payload

    @pytest.mark.asyncio
    async def test_overwrite_and_delete(self, live_storage):
        stored = await live_storage.store(b"one", "k.txt", "text/plain")

        with pytest.raises(ObjectExistsError):
            await live_storage.store(b"two", "k.txt", "text/plain")

        await live_storage.delete(stored.location)
        await live_storage.delete(stored.location)
        with pytest.raises(ObjectNotFoundError):
            await live_storage.retrieve(stored.location)
