import httpx
import pytest

from files_gateway.gateway.router import MessageGateway
from files_gateway.services.chunked_upload import ChunkSessionManager
from files_gateway.services.files import FilesService
from files_gateway.services.processing import FileProcessor
from files_gateway.services.quota import QuotaGate
from files_gateway.storage.local import LocalStorageBackend
from files_gateway.storage.router import StorageProvider, StorageRouter


def make_quota_gate(handler, timeout_seconds: float = 5.0) -> QuotaGate:
    """Quota gate talking to an in-process mock of the quota authority."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return QuotaGate(base_url="http://quota.test", timeout_seconds=timeout_seconds, client=client)


def allow_all(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"allowed": True, "usage": 0, "limit": 10_000_000})


@pytest.fixture
def storage(tmp_path):
    """Local storage backend rooted in a temporary directory."""
    return LocalStorageBackend(base_path=str(tmp_path))


@pytest.fixture
def router(storage):
    return StorageRouter({StorageProvider.LOCAL: lambda: storage}, StorageProvider.LOCAL)


@pytest.fixture
def quota_gate_factory():
    """Build quota gates backed by a custom mock handler."""
    return make_quota_gate


@pytest.fixture
def quota_gate():
    return make_quota_gate(allow_all)


@pytest.fixture
def files_service(router, quota_gate):
    return FilesService(router, quota_gate)


@pytest.fixture
def sessions(files_service):
    return ChunkSessionManager(files_service, FileProcessor(), finalize_grace_seconds=1.0)


@pytest.fixture
def gateway(files_service, sessions):
    return MessageGateway(files_service, sessions)
