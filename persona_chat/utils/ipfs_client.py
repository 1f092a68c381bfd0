import os
from typing import Any, Optional

import httpx

from persona_chat.exception.custom_exception import ContentFetchError, UpstreamTimeoutError
from persona_chat.logger import GLOBAL_LOGGER as log

DEFAULT_GATEWAY = "https://gateway.pinata.cloud"
IPFS_SCHEME = "ipfs://"


def to_gateway_url(locator: str, gateway_url: str = DEFAULT_GATEWAY) -> str:
    """
    ipfs://<cid>[/path] and bare cids resolve through the gateway;
    http(s) URLs are used as-is.
    """
    locator = locator.strip()
    if locator.startswith(("http://", "https://")):
        return locator
    if locator.startswith(IPFS_SCHEME):
        locator = locator[len(IPFS_SCHEME) :]
    locator = locator.lstrip("/")
    if locator.startswith("ipfs/"):
        locator = locator[len("ipfs/") :]
    return f"{gateway_url.rstrip('/')}/ipfs/{locator}"


class IpfsGatewayClient:
    """Fetches pinned JSON documents over an HTTP gateway."""

    def __init__(
        self,
        gateway_url: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.gateway_url = gateway_url or os.getenv("IPFS_GATEWAY_URL") or DEFAULT_GATEWAY
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_json(self, locator: str) -> Any:
        if not locator:
            raise ContentFetchError("Empty content locator")

        url = to_gateway_url(locator, self.gateway_url)
        log.info("Fetching pinned document | url=%s", url)

        try:
            resp = await self.client.get(url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            log.error("Gateway request timed out | url=%s", url)
            raise UpstreamTimeoutError("Timed out fetching persona metadata", e) from e
        except httpx.HTTPError as e:
            log.error("Gateway request failed | url=%s | error=%s", url, str(e))
            raise ContentFetchError(f"Failed to fetch persona metadata: {e}", e) from e

        if resp.status_code != 200:
            log.error("Gateway returned error | url=%s | status=%d", url, resp.status_code)
            raise ContentFetchError(
                f"Failed to fetch persona metadata: status {resp.status_code}"
            )

        try:
            return resp.json()
        except ValueError as e:
            raise ContentFetchError("Persona metadata is not valid JSON", e) from e

    async def aclose(self) -> None:
        await self.client.aclose()
