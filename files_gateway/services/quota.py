"""
Quota admission gate.

Before an upload reaches storage, the external quota authority is asked
whether the tenant may store the requested number of bytes. The gate fails
closed: when the authority cannot be reached the upload is blocked too, but
reported as a technical failure instead of a quota verdict.
"""
from dataclasses import dataclass

import httpx

from files_gateway.config import settings
from files_gateway.exceptions import QuotaCheckError, QuotaExceededError
from files_gateway.logging_config import setup_logging

logger = setup_logging()


@dataclass
class QuotaVerdict:
    allowed: bool
    usage: int
    limit: int


class QuotaGate:
    """Client of the quota authority's ``POST /storage/check-quota`` endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or settings.QUOTA_SERVICE_URL or "").rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.QUOTA_TIMEOUT_SECONDS
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def check(self, tenant_id: str | None, requested_bytes: int | None) -> None:
        """
        Admit or block an upload.

        A request without a tenant or without file data is admitted
        unchecked, as is every request when no authority is configured.

        Raises:
            QuotaExceededError: If the authority reports insufficient quota
            QuotaCheckError: If the authority fails, times out or answers
                with an unreadable verdict
        """
        if not self.enabled or not tenant_id or not requested_bytes:
            return

        verdict = await self._request_verdict(tenant_id, requested_bytes)
        if not verdict.allowed:
            logger.warning(
                f"Quota exceeded: tenant={tenant_id}, usage={verdict.usage}, "
                f"limit={verdict.limit}, requested={requested_bytes}"
            )
            raise QuotaExceededError(tenant_id, verdict.usage, verdict.limit, requested_bytes)

    async def _request_verdict(self, tenant_id: str, requested_bytes: int) -> QuotaVerdict:
        try:
            response = await self._get_client().post(
                f"{self.base_url}/storage/check-quota",
                json={"tenantId": tenant_id, "requestedBytes": requested_bytes},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            body = response.json()
            return QuotaVerdict(
                allowed=bool(body.get("allowed", body.get("hasQuota", False))),
                usage=int(body.get("usage", 0)),
                limit=int(body.get("limit", 0)),
            )
        except httpx.TimeoutException as e:
            logger.error(
                f"Quota check timed out: tenant={tenant_id}, requested={requested_bytes}, "
                f"timeout={self.timeout_seconds}s"
            )
            raise QuotaCheckError(
                f"Quota check timed out after {self.timeout_seconds}s",
                details={"tenantId": tenant_id},
            ) from e
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            logger.error(
                f"Quota check failed: tenant={tenant_id}, requested={requested_bytes}, error={e}"
            )
            raise QuotaCheckError(
                f"Quota check failed: {e}",
                details={"tenantId": tenant_id},
            ) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
