"""
Client-side conversion tracking.

Provides the event composer, its two delivery channels and the business
event catalog built on top of them.
"""

from .browser import GoogleTagEmitter, PixelEmitter
from .composer import (
    EventComposer,
    configure_tracking,
    generate_event_id,
    get_composer,
    reset_tracking,
    track,
    track_google_event,
)
from .relay_client import ServerRelayClient

__all__ = [
    'EventComposer',
    'PixelEmitter',
    'GoogleTagEmitter',
    'ServerRelayClient',
    'configure_tracking',
    'generate_event_id',
    'get_composer',
    'reset_tracking',
    'track',
    'track_google_event',
]
