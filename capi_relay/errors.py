"""
Error types for the conversion tracking pipeline.

- ConfigurationError: pixel id, relay URL or service secret missing
- PayloadValidationError: relay request body is malformed (HTTP 400)
- TransportError: a delivery channel failed to hand off the event
- UpstreamError: the Conversions API rejected or failed the request

None of these ever reach the code that triggered a tracking call; they end
in a log line or, at the relay, in a structured HTTP response.
"""

from typing import Optional


class TrackingError(Exception):
    """Base class for conversion tracking errors."""

    http_status: int = 500
    public_message: str = 'Internal Server Error'


class ConfigurationError(TrackingError):
    """A required setting or secret is not configured."""

    http_status = 500
    public_message = 'Server configuration error.'


class PayloadValidationError(TrackingError):
    """The relay request body is missing fields or has the wrong shape."""

    http_status = 400
    public_message = 'Invalid event payload.'

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)
        if message:
            self.public_message = message


class TransportError(TrackingError):
    """Delivery of an event through one channel failed."""


class UpstreamError(TrackingError):
    """The advertising platform's API rejected or failed the request.

    The message never contains the request URL, which carries the access
    token as a query parameter.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
