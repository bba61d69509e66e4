"""
Pytest configuration and fixtures for file sharing service tests
"""
import os
import tempfile
from typing import AsyncGenerator, Dict
from unittest.mock import MagicMock

import pytest

# Set test environment variables BEFORE any imports
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///:memory:'
os.environ['DATABASE_CREATE_TABLES'] = 'true'
os.environ['UPLOAD_DIR'] = tempfile.mkdtemp(prefix="fileshare-uploads-")
os.environ['STORAGE_BACKEND'] = 'local'
os.environ['MINIO_ENDPOINT'] = 'localhost:9000'
os.environ['MINIO_ACCESS_KEY'] = 'test_access'
os.environ['MINIO_SECRET_KEY'] = 'test_secret'
os.environ['JWT_SECRET'] = 'test-secret-key-for-testing-only-32chars'
os.environ['PASSWORD_HASH_ROUNDS'] = '4'
os.environ['LOG_JSON'] = 'false'
os.environ['DEBUG'] = 'false'
os.environ['FRONTEND_URL'] = 'https://share.example.com'


from fileshare.storage.base import ByteStream, ObjectInfo, StorageBackend, StoredLocation, iter_source  # noqa: E402
from fileshare.storage.exceptions import (  # noqa: E402
    ObjectExistsError,
    ObjectNotFoundError,
    StorageBackendError,
)


class InMemoryStorage(StorageBackend):
    """
    Dict-backed storage backend with failure injection.

    Registered under the "local" name so records written through it look
    like ordinary local uploads.
    """

    def __init__(self, name: str = "local"):
        self.name = name
        self.objects: Dict[str, bytes] = {}
        self.fail_on = set()
        self.fail_locations = set()
        self.opened = []

    def _maybe_fail(self, operation: str):
        if operation in self.fail_on:
            raise StorageBackendError(f"injected {operation} failure")

    async def store(self, source, key, mime_type):
        self._maybe_fail("store")
        if key in self.objects:
            raise ObjectExistsError(key)
        data = b"".join([chunk async for chunk in iter_source(source)])
        self.objects[key] = data
        return StoredLocation(backend=self.name, key=key, location=key, size=len(data))

    async def retrieve(self, location):
        self._maybe_fail("retrieve")
        if location not in self.objects:
            raise ObjectNotFoundError(location)
        data = self.objects[location]
        stream = ByteStream(iter([data[i:i + 4] for i in range(0, len(data), 4)]), lambda: None)
        self.opened.append(stream)
        return stream

    async def delete(self, location):
        self._maybe_fail("delete")
        if location in self.fail_locations:
            raise StorageBackendError(f"injected delete failure for {location}")
        self.objects.pop(location, None)

    async def describe(self, location):
        if location not in self.objects:
            raise ObjectNotFoundError(location)
        return ObjectInfo(size=len(self.objects[location]), last_modified=None)


@pytest.fixture
async def db_engine(tmp_path):
    """
    SQLite database file per test (several sessions can share it)

    Yields:
        AsyncEngine
    """
    from sqlalchemy.ext.asyncio import create_async_engine
    from fileshare.database.models import BaseModel

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_maker) -> AsyncGenerator:
    """
    Database session for a test

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    async with session_maker() as session:
        yield session


@pytest.fixture
def security():
    from fileshare.auth.security import SecurityService

    return SecurityService(rounds=4)


@pytest.fixture
def local_storage(tmp_path):
    from fileshare.storage.local_storage import LocalStorage

    return LocalStorage(str(tmp_path / "uploads"), chunk_size=8)


@pytest.fixture
def storage_manager(local_storage):
    from fileshare.storage.manager import StorageManager

    return StorageManager({local_storage.name: local_storage}, active=local_storage.name)


@pytest.fixture
def memory_storage():
    return InMemoryStorage()


@pytest.fixture
def memory_storage_manager(memory_storage):
    from fileshare.storage.manager import StorageManager

    return StorageManager({memory_storage.name: memory_storage}, active=memory_storage.name)


@pytest.fixture
def file_service(test_db, storage_manager):
    from fileshare.services.file_service import FileService

    return FileService(test_db, storage=storage_manager)


@pytest.fixture
async def sample_user(test_db, security):
    """Create a sample user for testing"""
    from fileshare.database.repositories.user_repository import UserRepository

    user = await UserRepository(test_db, security).create(
        email="owner@example.com",
        password="TestPassword123",
        name="Owner",
    )
    await test_db.commit()
    return user


@pytest.fixture
async def other_user(test_db, security):
    """Another user (not the owner of sample files)"""
    from fileshare.database.repositories.user_repository import UserRepository

    user = await UserRepository(test_db, security).create(
        email="stranger@example.com",
        password="OtherPassword456",
    )
    await test_db.commit()
    return user


@pytest.fixture
def mock_minio():
    """MinIO client mock with an object dict behind put/get/stat/remove"""
    from minio.error import S3Error

    objects: Dict[str, bytes] = {}

    def _missing(name):
        return S3Error(
            code="NoSuchKey",
            message="The specified key does not exist.",
            resource=f"/fileshare-files/{name}",
            request_id="req",
            host_id="host",
            response=MagicMock(),
        )

    def put_object(bucket, name, data, length, **kwargs):
        objects[name] = data.read(length)
        return MagicMock(object_name=name)

    def get_object(bucket, name):
        if name not in objects:
            raise _missing(name)
        payload = objects[name]
        response = MagicMock()
        response.stream.side_effect = lambda amt: iter(
            [payload[i:i + amt] for i in range(0, len(payload), amt)]
        )
        return response

    def stat_object(bucket, name):
        if name not in objects:
            raise _missing(name)
        return MagicMock(size=len(objects[name]), last_modified=None)

    def remove_object(bucket, name):
        objects.pop(name, None)

    client = MagicMock()
    client.objects = objects
    client.put_object.side_effect = put_object
    client.get_object.side_effect = get_object
    client.stat_object.side_effect = stat_object
    client.remove_object.side_effect = remove_object
    client.bucket_exists.return_value = True
    return client


@pytest.fixture
async def client(session_maker, storage_manager):
    """HTTP client against the app with test database and storage"""
    from fastapi import Depends
    from httpx import ASGITransport, AsyncClient

    from fileshare.api.v1.files import get_file_service
    from fileshare.database.connection import get_db
    from fileshare.main import app
    from fileshare.services.file_service import FileService

    async def override_get_db():
        async with session_maker() as session:
            yield session

    async def override_get_file_service(db=Depends(get_db)):
        return FileService(db, storage=storage_manager)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_service] = override_get_file_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def auth_headers(client, sample_user) -> Dict[str, str]:
    """Bearer header for sample_user"""
    from fileshare.auth.dependencies import jwt_service

    return {"Authorization": f"Bearer {jwt_service.create_access_token(sample_user.id)}"}


@pytest.fixture
async def other_auth_headers(client, other_user) -> Dict[str, str]:
    from fileshare.auth.dependencies import jwt_service

    return {"Authorization": f"Bearer {jwt_service.create_access_token(other_user.id)}"}
