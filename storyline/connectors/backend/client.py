"""STORYLINE — Backend HTTP Client.

Handles authentication, bearer headers, and bounded retries for the
handshake and feed calls. Event delivery makes a single attempt; retrying
events is the flusher's job.
"""

import asyncio
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from storyline.config import Configuration, Settings, settings as default_settings
from storyline.connectors.base_transport import CampaignTransport
from storyline.connectors.backend.endpoints import (
    BackendEndpoints,
    auth_body,
    event_body,
    track_screen_body,
)
from storyline.models.campaign_models import AccessTokenResponse
from storyline.models.event_models import PendingEvent
from storyline.core.logging import get_logger

logger = get_logger("backend.client")


class TransportError(Exception):
    """Raised when the backend call fails or returns a non-2xx status."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class HttpTransport(CampaignTransport):
    """Async HTTP transport for the campaign backend."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or default_settings
        self._client: Optional[httpx.AsyncClient] = client
        self._endpoints: Optional[BackendEndpoints] = None
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        # Bumped by reset(); a handshake that started earlier must not commit
        self._generation = 0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.settings.request_timeout)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def reset(self) -> None:
        self._generation += 1
        self._endpoints = None
        self.access_token = None
        self.refresh_token = None

    @property
    def endpoints(self) -> BackendEndpoints:
        if self._endpoints is None:
            raise TransportError("Transport used before authentication")
        return self._endpoints

    def _headers(self) -> Dict[str, str]:
        if not self.access_token:
            raise TransportError("No access token")
        return {"Authorization": f"Bearer {self.access_token}"}

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        url: str,
        json: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
        max_attempts: int | None = None,
        parse_json: bool = True,
    ) -> Any:
        """Make a request, retrying 429 / 5xx / connection errors.

        With ``parse_json=False`` any 2xx is success and the body is ignored.
        """
        attempts = max_attempts or self.settings.max_retries
        delay = self.settings.retry_base_delay
        client = await self._get_client()

        for attempt in range(1, attempts + 1):
            try:
                resp = await client.request(method, url, json=json, headers=headers)

                # Rate limited
                if resp.status_code == 429 and attempt < attempts:
                    wait = delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"Rate limited (429). Retrying in {wait}s (attempt {attempt}/{attempts})"
                    )
                    await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                if not parse_json or not resp.content:
                    return None
                return resp.json()

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if attempt < attempts and status >= 500:
                    wait = delay * (2 ** (attempt - 1))
                    logger.warning(f"Server error {status}. Retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise TransportError(f"HTTP {status} from {url}", status) from e

            except httpx.RequestError as e:
                if attempt < attempts:
                    wait = delay * (2 ** (attempt - 1))
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise TransportError(
                    f"Connection failed after {attempts} attempts: {e}"
                ) from e

            except ValueError as e:
                raise TransportError(f"Invalid JSON from {url}: {e}") from e

        raise TransportError("Max retries exhausted")

    # ── Handshake ──

    async def authenticate(self, config: Configuration) -> None:
        """Exchange account/app ids for an access token."""
        generation = self._generation
        endpoints = BackendEndpoints(self.settings, config)
        result = await self._request("POST", endpoints.auth_url, json=auth_body(config))
        try:
            tokens = AccessTokenResponse.model_validate(result)
        except ValidationError as e:
            raise TransportError(f"Malformed auth response: {e.error_count()} errors") from e

        if generation != self._generation:
            logger.debug("Discarding access token from a handshake started before reset")
            return

        self._endpoints = endpoints
        self.access_token = tokens.access_token
        self.refresh_token = tokens.refresh_token
        logger.info("Access token acquired")

    # ── Events ──

    async def send_event(self, event: PendingEvent, user_id: str) -> bool:
        """Single delivery attempt; failures are reported, never raised."""
        try:
            await self._request(
                "POST",
                self.endpoints.events_url,
                json=event_body(event, user_id),
                headers=self._headers(),
                max_attempts=1,
                parse_json=False,
            )
            return True
        except TransportError as e:
            logger.warning(
                f"Event delivery failed: {e}",
                extra={
                    "event_type": event.event_type,
                    "campaign_id": event.campaign_id,
                    "status_code": e.status_code,
                },
            )
            return False
        except ValueError as e:
            # Metadata that cannot be encoded as JSON
            logger.warning(
                f"Event could not be encoded: {e}",
                extra={"event_type": event.event_type, "campaign_id": event.campaign_id},
            )
            return False

    # ── Campaign Feed ──

    async def fetch_campaign_feed(
        self, screen: str, user_id: str, attributes: Optional[Dict[str, Any]] = None
    ) -> Any:
        return await self._request(
            "POST",
            self.endpoints.campaigns_url,
            json=track_screen_body(screen, user_id, attributes),
            headers=self._headers(),
        )
