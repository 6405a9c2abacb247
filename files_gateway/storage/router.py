"""
Storage router.

Selects one backend by explicit provider name or the configured default.
The set of providers is closed: ``StorageProvider`` enumerates them and a
factory per member builds the backend on first use.
"""
import enum
from typing import Callable

from files_gateway.exceptions import ValidationError
from files_gateway.logging_config import setup_logging
from files_gateway.storage.base import StorageBackend

logger = setup_logging()


class StorageProvider(str, enum.Enum):
    LOCAL = "local"
    S3 = "s3"
    CLOUDINARY = "cloudinary"
    BLOB = "blob"


BackendFactory = Callable[[], StorageBackend]


class StorageRouter:
    """Caches one backend instance per provider."""

    def __init__(
        self,
        factories: dict[StorageProvider, BackendFactory],
        default_provider: StorageProvider | str,
    ):
        self._factories = factories
        self.default_provider = self.parse_provider(default_provider)
        self._backends: dict[StorageProvider, StorageBackend] = {}

    @staticmethod
    def parse_provider(name: StorageProvider | str) -> StorageProvider:
        try:
            return StorageProvider(name)
        except ValueError:
            allowed = ", ".join(p.value for p in StorageProvider)
            raise ValidationError(
                f"Unknown storage provider: {name}. Allowed providers: {allowed}"
            ) from None

    def get(self, provider: StorageProvider | str | None = None) -> StorageBackend:
        """
        Return the backend for ``provider`` (default provider when None).

        Raises:
            ValidationError: If the provider is unknown or not configured
        """
        selected = self.parse_provider(provider) if provider else self.default_provider

        backend = self._backends.get(selected)
        if backend is None:
            factory = self._factories.get(selected)
            if factory is None:
                raise ValidationError(f"Storage provider not configured: {selected.value}")
            try:
                backend = factory()
            except ValueError as e:
                raise ValidationError(f"Storage provider {selected.value} is misconfigured: {e}") from e
            self._backends[selected] = backend
            logger.info(f"Storage backend initialized: provider={selected.value}")
        return backend

    async def aclose(self) -> None:
        for provider, backend in self._backends.items():
            try:
                await backend.aclose()
            except Exception as e:
                logger.warning(f"Failed to close storage backend {provider.value}: {e}")
        self._backends.clear()
