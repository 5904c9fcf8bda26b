"""
Event Composer: one tracked action, two delivery channels, one event id.

When a user shares a countdown card, redeems a coupon or asks for a quote,
the UI calls ``track()`` once. It:
1. Builds an EventRecord with a fresh event id
2. Reports it through the in-page pixel (may be blocked)
3. Reports it through the server relay (may be unconfigured or fail)

Both channels carry the same event id, which is what the advertising
platform uses to count the two hits as one conversion. Neither channel
waits on the other and nothing raises out of ``track()``.

Usage:
    from capi_relay.tracking import configure_tracking, track
    configure_tracking(pixel=fbq_bridge, beacon=send_beacon)
    track(settings, 'Share', {'method': 'native'}, user)
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict, Mapping, Optional, Union

from ..config import RelaySettings
from ..models import EventRecord, TrackedUser
from .browser import GoogleTagEmitter, GoogleTagFunction, PixelEmitter, PixelFunction
from .relay_client import BeaconTransport, ServerRelayClient

logger = logging.getLogger(__name__)


def generate_event_id() -> str:
    """Time component plus random suffix; unique without coordination."""
    return f'event_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}'


UserLike = Union[TrackedUser, Mapping[str, Any]]


def _user_data(user: Optional[UserLike]) -> Dict[str, str]:
    if not user:
        return {}
    if not isinstance(user, TrackedUser):
        user = TrackedUser.model_validate(dict(user))
    return user.to_user_data()


class EventComposer:
    """Builds EventRecords and fans them out to the delivery channels."""

    def __init__(
        self,
        pixel: Optional[PixelEmitter] = None,
        relay_client: Optional[ServerRelayClient] = None,
        google_tag: Optional[GoogleTagEmitter] = None,
        id_factory: Callable[[], str] = generate_event_id,
    ):
        self.pixel = pixel or PixelEmitter()
        self.relay_client = relay_client or ServerRelayClient()
        self.google_tag = google_tag or GoogleTagEmitter()
        self.id_factory = id_factory

    def track(
        self,
        settings: RelaySettings,
        event_name: str,
        params: Optional[Mapping[str, Any]] = None,
        user: Optional[UserLike] = None,
    ) -> Optional[str]:
        """
        Track one logical event through both channels.

        Args:
            settings: Tracking settings; no pixel id means tracking is off
            event_name: Platform event name (e.g. 'Share', 'Lead')
            params: Free-form event parameters, sent unchanged
            user: Signed-in identity (a TrackedUser or its field mapping), if any

        Returns:
            The event id shared by both channels, or None when tracking is
            disabled or the event cannot be built. Never raises.
        """
        if not settings.account_pixel_id:
            logger.warning('Pixel ID is not configured. Skipping event %s.', event_name)
            return None

        try:
            record = EventRecord(
                event_name=event_name,
                event_id=self.id_factory(),
                params=dict(params or {}),
                user_data=_user_data(user),
            )
        except Exception as e:
            # Validation messages echo their input, which may hold PII
            logger.error(
                'Could not build event %s: %s', event_name, type(e).__name__
            )
            return None

        # 1. Browser pixel (blocked by ad blockers and iOS tracking prevention)
        try:
            self.pixel.emit(record.event_name, record.params, record.event_id)
        except Exception as e:
            logger.error('Browser channel failed for %s: %s', event_name, e)

        # 2. Server relay to the Conversions API
        if not settings.relay_url:
            logger.warning(
                'Relay URL is not configured. Skipping server-side event %s.',
                event_name,
            )
            return record.event_id

        try:
            self.relay_client.send(settings.relay_url, record.to_relay_payload(settings))
        except Exception as e:
            logger.error('Relay channel failed for %s: %s', event_name, e)

        return record.event_id

    def track_google(
        self,
        event_name: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Browser-only Google tag event."""
        try:
            self.google_tag.emit(event_name, params)
        except Exception as e:
            logger.error('Google Tag channel failed for %s: %s', event_name, e)


# ============================================================================
# Global instance management
# ============================================================================

_composer: Optional[EventComposer] = None


def configure_tracking(
    pixel: Optional[PixelFunction] = None,
    gtag: Optional[GoogleTagFunction] = None,
    beacon: Optional[BeaconTransport] = None,
) -> EventComposer:
    """Wire the page's tracking capabilities once at startup."""
    global _composer
    _composer = EventComposer(
        pixel=PixelEmitter(pixel),
        relay_client=ServerRelayClient(beacon=beacon),
        google_tag=GoogleTagEmitter(gtag),
    )
    return _composer


def get_composer() -> EventComposer:
    global _composer
    if _composer is None:
        _composer = EventComposer()
    return _composer


def reset_tracking() -> None:
    global _composer
    _composer = None


# ============================================================================
# Convenience functions
# ============================================================================


def track(
    settings: RelaySettings,
    event_name: str,
    params: Optional[Mapping[str, Any]] = None,
    user: Optional[UserLike] = None,
) -> Optional[str]:
    """Track an event through the configured composer. Safe from any code path."""
    return get_composer().track(settings, event_name, params, user)


def track_google_event(event_name: str, params: Optional[Dict[str, Any]] = None) -> None:
    get_composer().track_google(event_name, params)
