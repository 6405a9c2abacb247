"""
Tests for the HTTP-based backends against in-process mock services.
"""
import hashlib

import httpx
import pytest

from files_gateway.models import UploadRequest
from files_gateway.storage.blob import BlobApiStorageBackend
from files_gateway.storage.cloudinary import CloudinaryStorageBackend
from files_gateway.exceptions import UnsupportedFileTypeError
from files_gateway.storage.exceptions import ObjectNotFoundError, StorageError


class FakeBlobService:
    """Minimal blob API: upload, fetch and delete by path."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("Authorization") != "Bearer secret":
            return httpx.Response(401)

        if request.method == "POST" and request.url.path == "/upload":
            path = request.url.params["path"]
            request.read()
            self.objects[path] = request.content
            return httpx.Response(201, json={"path": path})

        path = request.url.path.removeprefix("/files/")
        if path not in self.objects:
            return httpx.Response(404)
        if request.method == "GET":
            return httpx.Response(200, content=b"stored:" + path.encode())
        if request.method == "DELETE":
            del self.objects[path]
            return httpx.Response(204)
        return httpx.Response(405)


def blob_backend(service) -> BlobApiStorageBackend:
    return BlobApiStorageBackend(
        base_url="http://blob.test",
        api_key="secret",
        client=httpx.AsyncClient(transport=httpx.MockTransport(service)),
    )


@pytest.mark.asyncio
async def test_blob_upload_sends_tenant_and_returns_path():
    service = FakeBlobService()
    backend = blob_backend(service)

    key = await backend.upload(UploadRequest("a.pdf", "application/pdf", b"%PDF"), "acme")

    assert key.startswith("acme/")
    assert key in service.objects
    assert service.requests[0].headers["X-Tenant-ID"] == "acme"


@pytest.mark.asyncio
async def test_blob_get_and_delete_use_quoted_full_key():
    service = FakeBlobService()
    backend = blob_backend(service)
    key = await backend.upload(UploadRequest("a.pdf", "application/pdf", b"%PDF"), "acme")

    assert await backend.get(key) == b"stored:" + key.encode()
    await backend.delete(key)

    assert key not in service.objects
    assert "acme%2F" in str(service.requests[-1].url)


@pytest.mark.asyncio
async def test_blob_missing_object_is_not_found():
    backend = blob_backend(FakeBlobService())

    with pytest.raises(ObjectNotFoundError):
        await backend.get("acme/missing.pdf")
    with pytest.raises(ObjectNotFoundError):
        await backend.delete("acme/missing.pdf")


@pytest.mark.asyncio
async def test_blob_server_error_is_storage_error():
    backend = BlobApiStorageBackend(
        base_url="http://blob.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
    )

    with pytest.raises(StorageError):
        await backend.upload(UploadRequest("a.pdf", "application/pdf", b"%PDF"), "acme")


def test_blob_requires_base_url(monkeypatch):
    from files_gateway.config import settings

    monkeypatch.setattr(settings, "BLOB_API_BASE_URL", None)
    with pytest.raises(ValueError):
        BlobApiStorageBackend()


class FakeCloudinary:
    def __init__(self):
        self.public_ids: set[str] = set()
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = request.read()
        if request.url.path == "/v1_1/demo/image/upload":
            assert b'name="signature"' in body
            public_id = body.split(b'name="public_id"\r\n\r\n', 1)[1].split(b"\r\n", 1)[0].decode()
            self.public_ids.add(public_id)
            return httpx.Response(200, json={"public_id": public_id})
        if request.url.path == "/v1_1/demo/image/destroy":
            form = dict(httpx.QueryParams(body.decode()))
            if form["public_id"] in self.public_ids:
                self.public_ids.remove(form["public_id"])
                return httpx.Response(200, json={"result": "ok"})
            return httpx.Response(200, json={"result": "not found"})
        if request.url.host == "res.cloudinary.com":
            public_id = request.url.path.removeprefix("/demo/image/upload/")
            if public_id in self.public_ids:
                return httpx.Response(200, content=b"image-bytes")
            return httpx.Response(404)
        return httpx.Response(400)


def cloudinary_backend(service) -> CloudinaryStorageBackend:
    return CloudinaryStorageBackend(
        cloud_name="demo",
        api_key="key",
        api_secret="shh",
        client=httpx.AsyncClient(transport=httpx.MockTransport(service)),
    )


@pytest.mark.asyncio
async def test_cloudinary_round_trip_uses_public_id_without_extension():
    service = FakeCloudinary()
    backend = cloudinary_backend(service)

    key = await backend.upload(UploadRequest("photo.png", "image/png", b"\x89PNG"), "acme")

    assert key.startswith("acme/")
    assert not key.endswith(".png")
    assert await backend.get(key) == b"image-bytes"

    await backend.delete(key)
    with pytest.raises(ObjectNotFoundError):
        await backend.get(key)


@pytest.mark.asyncio
async def test_cloudinary_delete_missing_is_not_found():
    backend = cloudinary_backend(FakeCloudinary())

    with pytest.raises(ObjectNotFoundError):
        await backend.delete("acme/nothing")


@pytest.mark.asyncio
async def test_cloudinary_rejects_non_images_before_calling_api():
    service = FakeCloudinary()
    backend = cloudinary_backend(service)

    with pytest.raises(UnsupportedFileTypeError):
        await backend.upload(UploadRequest("a.pdf", "application/pdf", b"%PDF"), "acme")
    assert service.requests == []


def test_cloudinary_signature_sorts_parameters():
    backend = cloudinary_backend(FakeCloudinary())

    expected = hashlib.sha1(b"public_id=sample&timestamp=1315060510shh").hexdigest()
    assert backend.sign({"timestamp": 1315060510, "public_id": "sample"}) == expected
