import pytest
from botocore.exceptions import ClientError

from files_gateway.models import UploadRequest
from files_gateway.storage.exceptions import ObjectNotFoundError, StorageError
from files_gateway.storage.s3 import S3StorageBackend


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeBody:
    def __init__(self, data: bytes):
        self.data = data

    async def read(self) -> bytes:
        return self.data


class FakeS3Client:
    def __init__(self, bucket: dict):
        self.bucket = bucket

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def put_object(self, Bucket, Key, Body, ContentType):
        self.bucket[Key] = (Body, ContentType)

    async def head_object(self, Bucket, Key):
        if Key not in self.bucket:
            raise client_error("404", "HeadObject")
        return {}

    async def delete_object(self, Bucket, Key):
        self.bucket.pop(Key, None)

    async def get_object(self, Bucket, Key):
        if Key not in self.bucket:
            raise client_error("NoSuchKey", "GetObject")
        return {"Body": FakeBody(self.bucket[Key][0])}


class FakeSession:
    def __init__(self):
        self.bucket: dict = {}

    def client(self, service_name, endpoint_url=None):
        assert service_name == "s3"
        return FakeS3Client(self.bucket)


class DeniedSession(FakeSession):
    def client(self, service_name, endpoint_url=None):
        client = FakeS3Client(self.bucket)

        async def denied(**kwargs):
            raise client_error("AccessDenied", "PutObject")

        client.put_object = denied
        return client


@pytest.mark.asyncio
async def test_s3_round_trip():
    session = FakeSession()
    backend = S3StorageBackend(bucket_name="files", session=session)

    key = await backend.upload(UploadRequest("a.pdf", "application/pdf", b"%PDF-1.7"), "acme")

    assert session.bucket[key] == (b"%PDF-1.7", "application/pdf")
    assert await backend.get(key) == b"%PDF-1.7"

    await backend.delete(key)
    assert key not in session.bucket


@pytest.mark.asyncio
async def test_s3_missing_key_is_not_found():
    backend = S3StorageBackend(bucket_name="files", session=FakeSession())

    with pytest.raises(ObjectNotFoundError):
        await backend.get("acme/missing.pdf")
    with pytest.raises(ObjectNotFoundError):
        await backend.delete("acme/missing.pdf")


@pytest.mark.asyncio
async def test_s3_access_denied_is_storage_error():
    backend = S3StorageBackend(bucket_name="files", session=DeniedSession())

    with pytest.raises(StorageError, match="Access denied"):
        await backend.upload(UploadRequest("a.pdf", "application/pdf", b"%PDF"), "acme")


def test_s3_requires_bucket(monkeypatch):
    from files_gateway.config import settings

    monkeypatch.setattr(settings, "S3_BUCKET_NAME", None)
    with pytest.raises(ValueError):
        S3StorageBackend(session=FakeSession())
