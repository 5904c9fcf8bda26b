"""
Meta Conversions API Client.

Server-side counterpart of the in-page pixel. Each event carries the same
event_id the pixel reported, so Meta counts the browser hit and the server
hit as one conversion.

References:
- https://developers.facebook.com/docs/marketing-api/conversions-api
- https://developers.facebook.com/docs/marketing-api/conversions-api/deduplicate-pixel-and-server-events
"""

import logging
import time
from typing import Any, Mapping

import httpx
from pydantic import BaseModel, Field

from .config import DEFAULT_GRAPH_API_VERSION
from .errors import UpstreamError
from .hashing import hash_user_data

logger = logging.getLogger(__name__)


class ConversionUserData(BaseModel):
    """Hashed identity plus request context for one event."""

    em: str | None = Field(None, description="SHA-256 of lowercased email")
    ph: str | None = Field(None, description="SHA-256 of digits-only phone")
    fn: str | None = Field(None, description="SHA-256 of lowercased first name")
    ln: str | None = Field(None, description="SHA-256 of lowercased last name")
    client_ip_address: str | None = None
    client_user_agent: str | None = None


class ConversionEvent(BaseModel):
    """A single server event as accepted by the Conversions API."""

    event_name: str
    event_time: int = Field(
        default_factory=lambda: int(time.time()),
        description="Unix seconds, stamped when the relay builds the event"
    )
    action_source: str = "website"
    event_id: str | None = Field(None, description="Deduplication key shared with the pixel")
    user_data: ConversionUserData = Field(default_factory=ConversionUserData)
    custom_data: dict[str, Any] | None = None

    def to_api(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "event_name": self.event_name,
            "event_time": self.event_time,
            "action_source": self.action_source,
            "user_data": self.user_data.model_dump(exclude_none=True),
        }
        if self.event_id is not None:
            data["event_id"] = self.event_id
        # custom_data is caller-owned and passed through untouched
        if self.custom_data is not None:
            data["custom_data"] = self.custom_data
        return data


def build_conversion_event(
    event_name: str,
    event_id: str | None,
    event_data: dict[str, Any] | None,
    user_data: Mapping[str, Any] | None,
    client_ip_address: str | None = None,
    client_user_agent: str | None = None,
) -> ConversionEvent:
    """Hash the client's identity fields and assemble a ConversionEvent."""
    return ConversionEvent(
        event_name=event_name,
        event_id=event_id,
        user_data=ConversionUserData(
            **hash_user_data(user_data),
            client_ip_address=client_ip_address,
            client_user_agent=client_user_agent,
        ),
        custom_data=event_data,
    )


class MetaConversionsClient:
    """
    Client for the Meta Conversions API.

    Example usage:
        client = MetaConversionsClient()

        await client.send_events(
            pixel_id="123456789012345",
            events=[build_conversion_event("Share", "event_1", {}, {"email": "a@b.com"})],
            access_token="...",
        )
    """

    BASE_URL = "https://graph.facebook.com"

    def __init__(
        self,
        api_version: str = DEFAULT_GRAPH_API_VERSION,
        timeout: float = 30.0,
        test_event_code: str | None = None,
        base_url: str | None = None,
    ):
        self.api_version = api_version
        self.timeout = timeout
        self.test_event_code = test_event_code
        self.base_url = (base_url or self.BASE_URL).rstrip("/")

    def events_url(self, pixel_id: str) -> str:
        return f"{self.base_url}/{self.api_version}/{pixel_id}/events"

    def build_payload(self, events: list[ConversionEvent]) -> dict[str, Any]:
        """Build the API payload from a list of events."""
        payload: dict[str, Any] = {"data": [event.to_api() for event in events]}
        if self.test_event_code:
            payload["test_event_code"] = self.test_event_code
        return payload

    async def send_events(
        self,
        pixel_id: str,
        events: list[ConversionEvent],
        access_token: str,
    ) -> dict[str, Any]:
        """
        Send events to the Conversions API.

        The access token travels as a query parameter and is kept out of
        every log line and exception message.

        Returns the API response body.

        Raises:
            UpstreamError: the request failed or Meta answered non-2xx.
        """
        payload = self.build_payload(events)

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.events_url(pixel_id),
                    params={"access_token": access_token},
                    json=payload,
                    timeout=self.timeout,
                )
        except httpx.RequestError as e:
            raise UpstreamError(
                f"Conversions API request failed: {type(e).__name__}"
            ) from None

        if response.status_code >= 400:
            raise UpstreamError(
                f"Conversions API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.debug(
            "Forwarded %d event(s) to pixel %s", len(events), pixel_id
        )
        try:
            return response.json()
        except ValueError:
            return {}
