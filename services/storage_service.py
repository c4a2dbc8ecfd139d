"""
Object storage client issuing short-lived signed URLs.

Speaks the Supabase Storage REST API (``POST /object/sign/{bucket}/{path}``).
"""
from typing import Optional
from urllib.parse import quote

import httpx
import structlog

from core.config import settings
from core.exceptions import UpstreamServiceException

logger = structlog.get_logger("storage")


class SignedUrlError(UpstreamServiceException):
    """Storage refused or failed to sign an object path."""

    def __init__(self, detail: str = "Failed to generate access URL"):
        super().__init__(detail=detail, code="SIGNED_URL_FAILED", status_code=500, provider="storage")


class StorageClient:
    """Minimal async client for signing object paths in one bucket."""

    def __init__(
        self,
        base_url: Optional[str],
        service_key: Optional[str],
        bucket: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.service_key = service_key
        self.bucket = bucket
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.service_key)

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        """
        Sign ``path`` for ``expires_in`` seconds and return an absolute URL.

        Raises:
            SignedUrlError: storage is unconfigured, unreachable, or returned no URL.
        """
        if not self.is_configured:
            logger.error("Storage is not configured")
            raise SignedUrlError()

        url = f"{self.base_url}/object/sign/{self.bucket}/{quote(path)}"
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(url, json={"expiresIn": expires_in}, headers=headers)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Signed URL request failed", bucket=self.bucket, path=path, error=str(e))
            raise SignedUrlError()

        signed = data.get("signedURL") or data.get("signedUrl")
        if not signed:
            logger.error("Storage returned no signed URL", bucket=self.bucket, path=path)
            raise SignedUrlError()

        if signed.startswith(("http://", "https://")):
            return signed
        return f"{self.base_url}/{signed.lstrip('/')}"


def get_storage_client() -> StorageClient:
    """Dependency provider, built from settings per request."""
    return StorageClient(
        base_url=settings.storage_url,
        service_key=settings.storage_service_key,
        bucket=settings.storage_bucket,
        timeout_seconds=settings.storage_request_timeout_seconds,
    )
