"""
Upstream feed client.

Two POST endpoints on the feed host return JSON:
- /Home/GetEventsByType: the current list of events for one game type
- /Home/GetEventDetail: one event with its full market tree

Request bodies are logged with session/operator guids redacted. Failures are
raised as FeedError; there are no retries, the next sync tick is the retry.
"""
from typing import Any, Dict, Optional

import httpx

from betfeed.core.config import GameConfig, settings
from betfeed.core.exceptions import FeedError
from betfeed.core.logging import get_logger, log_context
from betfeed.core.metrics import record_feed_request

logger = get_logger(__name__)

LIST_ENDPOINT = "/Home/GetEventsByType"
DETAIL_ENDPOINT = "/Home/GetEventDetail"


def build_list_request_body(game: GameConfig) -> Dict[str, Any]:
    """Body for GetEventsByType."""
    return {
        "sessionGuid": settings.SESSION_GUID,
        "operatorGuid": settings.OPERATOR_GUID,
        "name": game.type_name,
        "feedId": game.feed_id,
        "userInitiated": True,
        "offset": settings.OFFSET_SECONDS,
        "languageCode": settings.LANGUAGE_CODE,
        "bettingLayoutEnumValue": settings.BETTING_LAYOUT_ENUM_VALUE,
        "primaryMarketClassIds": settings.PRIMARY_MARKET_CLASS_IDS,
        "nextEventCount": "",
    }


def build_detail_request_body(event_id: str) -> Dict[str, Any]:
    """Body for GetEventDetail."""
    return {
        "id": event_id,
        "userInitiated": False,  # system request, not a user click
        "offset": settings.OFFSET_SECONDS,
        "languageCode": settings.LANGUAGE_CODE,
        "excludePlayerDetails": True,
        "bettingLayoutEnumValue": settings.BETTING_LAYOUT_ENUM_VALUE,
        "primaryMarketClassIds": settings.PRIMARY_MARKET_CLASS_IDS,
    }


class FeedClient:
    """
    Async client for the upstream events API.

    One instance is shared by the sync orchestrator and the finishing sweep;
    call close() on shutdown.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Feed host, defaults to API_BASE
            timeout: Per-request timeout in seconds, defaults to UPSTREAM_TIMEOUT
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = (base_url or settings.API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "Betfeed/1.0",
        }
        headers.update(settings.EXTRA_HEADERS)
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers=self._get_headers(),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        logger.info(
            f"POST {endpoint}",
            extra=log_context(url=endpoint, body=body),
        )
        client = await self._get_client()
        try:
            response = await client.post(endpoint, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            record_feed_request(endpoint, success=False)
            logger.error(
                f"Feed error on {endpoint}: HTTP {e.response.status_code}",
                extra={"url": endpoint, "status": e.response.status_code},
            )
            raise FeedError(endpoint, f"HTTP {e.response.status_code}", e.response.status_code) from e
        except httpx.HTTPError as e:
            record_feed_request(endpoint, success=False)
            logger.error(f"Feed request to {endpoint} failed: {e}")
            raise FeedError(endpoint, str(e) or e.__class__.__name__) from e
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError both land here
            record_feed_request(endpoint, success=False)
            logger.error(f"Feed returned invalid JSON on {endpoint}: {e}")
            raise FeedError(endpoint, "invalid JSON response", response.status_code) from e

        record_feed_request(endpoint, success=True)
        logger.info(
            f"Feed response {endpoint}: {response.status_code}",
            extra={"url": endpoint, "status": response.status_code, "size": len(response.content)},
        )
        return data

    async def get_events_by_type(self, game: GameConfig) -> Any:
        """
        Fetch the current event list for one game type.

        Raises:
            FeedError: transport failure, non-2xx status or non-JSON body
        """
        return await self._post(LIST_ENDPOINT, build_list_request_body(game))

    async def get_event_detail(self, event_id: str) -> Any:
        """
        Fetch the full detail payload for one event.

        Raises:
            FeedError: transport failure, non-2xx status or non-JSON body
        """
        return await self._post(DETAIL_ENDPOINT, build_detail_request_body(event_id))

    async def check_connection(self) -> bool:
        """GET / on the feed host; False on any transport error or error status."""
        client = await self._get_client()
        try:
            response = await client.get("/")
            response.raise_for_status()
        except httpx.HTTPError as e:
            record_feed_request("/", success=False)
            logger.error(f"Feed connection test failed: {e}")
            return False
        record_feed_request("/", success=True)
        logger.info("Feed connection test successful")
        return True


_feed_client: Optional[FeedClient] = None


def get_feed_client() -> FeedClient:
    """Process-wide feed client."""
    global _feed_client
    if _feed_client is None:
        _feed_client = FeedClient()
    return _feed_client


async def close_feed_client() -> None:
    global _feed_client
    if _feed_client is not None:
        await _feed_client.close()
        _feed_client = None
