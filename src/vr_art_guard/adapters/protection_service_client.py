"""HTTP client for the remote watermark-embedding service."""

from dataclasses import dataclass

import httpx

from vr_art_guard.services.delivery import ProtectionServiceClient
from vr_art_guard.services.errors import ResponseParseError, TransportError


@dataclass
class HttpxProtectionServiceClient(ProtectionServiceClient):
    """HTTPX-backed protection service client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 25.0

    @classmethod
    def create(cls, base_url: str, timeout: float = 25.0) -> "HttpxProtectionServiceClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def health(self) -> object:
        """Fetch the service health body."""
        return await self._request("GET", "/health", timeout=5)

    async def watermark_batch(self, body: dict[str, object]) -> object:
        """Embed every layer of a cycle in one call."""
        return await self._request("POST", "/watermark_batch", json=body)

    async def watermark(self, body: dict[str, object]) -> object:
        """Embed one layer."""
        return await self._request("POST", "/watermark", json=body)

    async def verify(self, body: dict[str, object]) -> object:
        """Detect a watermark in one image."""
        return await self._request("POST", "/verify", json=body)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, object] | None = None,
        timeout: float | None = None,
    ) -> object:
        url = f"{self.base_url}{path}"
        try:
            response = await self.http_client.request(
                method, url, json=json, timeout=timeout or self.timeout
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"{method} {path} returned {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseParseError(f"{method} {path} returned invalid JSON") from exc
