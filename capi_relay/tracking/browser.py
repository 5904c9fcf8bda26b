"""
In-page delivery channels.

The pixel and the Google tag are injected capabilities: a callable when the
tracking script loaded, ``None`` when it was blocked or never loaded. A
missing capability is the normal case on privacy-hardened browsers, so it
is logged and skipped rather than reported.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

# pixel(event_name, params, {'eventID': event_id})
PixelFunction = Callable[[str, Dict[str, Any], Dict[str, str]], Any]
# gtag(event_name, params)
GoogleTagFunction = Callable[[str, Dict[str, Any]], Any]


class PixelEmitter:
    """Reports events through the in-page Meta pixel."""

    def __init__(self, pixel: Optional[PixelFunction] = None):
        self.pixel = pixel

    @property
    def available(self) -> bool:
        return callable(self.pixel)

    def emit(
        self,
        event_name: str,
        params: Optional[Mapping[str, Any]],
        event_id: str,
    ) -> bool:
        """
        Send one event through the pixel.

        The third argument is the marker the pixel SDK uses to pair this
        hit with the server-side one.

        Returns:
            True if the pixel accepted the call, False otherwise. Never raises.
        """
        if not self.available:
            logger.info('Pixel event blocked (browser): %s', event_name)
            return False

        try:
            self.pixel(event_name, dict(params or {}), {'eventID': event_id})
            return True
        except Exception as e:
            logger.warning('Pixel call failed for %s: %s', event_name, e)
            return False


class GoogleTagEmitter:
    """Reports events through the in-page Google tag (no deduplication)."""

    def __init__(self, gtag: Optional[GoogleTagFunction] = None):
        self.gtag = gtag

    @property
    def available(self) -> bool:
        return callable(self.gtag)

    def emit(self, event_name: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        if not self.available:
            logger.info('Google Tag event blocked: %s', event_name)
            return False

        try:
            self.gtag(event_name, dict(params or {}))
            return True
        except Exception as e:
            logger.warning('Google Tag call failed for %s: %s', event_name, e)
            return False
