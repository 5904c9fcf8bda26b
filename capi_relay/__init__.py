"""
Conversion event tracking and deduplication pipeline.

Client side (``capi_relay.tracking``): every tracked action is sent once
through the in-page pixel and once through the server relay, both carrying
the same event id. Server side (``capi_relay.server``): a stateless relay
that hashes identity fields and forwards the event to the Meta Conversions
API.
"""

__version__ = '0.3.0'

from .config import RelaySettings, ServerConfig, load_config
from .errors import (
    ConfigurationError,
    PayloadValidationError,
    TrackingError,
    TransportError,
    UpstreamError,
)
from .hashing import hash_user_data, hash_value
from .models import EventRecord, TrackedUser


def create_app(*args, **kwargs):
    """Create the relay FastAPI app (imported lazily to keep the client light)."""
    from .server import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    '__version__',
    'RelaySettings',
    'ServerConfig',
    'load_config',
    'TrackingError',
    'ConfigurationError',
    'PayloadValidationError',
    'TransportError',
    'UpstreamError',
    'hash_value',
    'hash_user_data',
    'EventRecord',
    'TrackedUser',
    'create_app',
]
