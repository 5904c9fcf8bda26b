"""
Server relay delivery channel.

Hands an event to the conversions relay without making the caller wait.
A beacon transport, when one is injected, queues the body and returns at
once. Otherwise the POST runs on a shared thread pool; its worker threads
are joined at interpreter exit, so a send started just before shutdown
still completes.

Delivery is best-effort: failures are logged and never retried.
"""

import json
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

import httpx

from ..errors import TransportError

logger = logging.getLogger(__name__)

# beacon(url, body) -> True when the body was queued for delivery
BeaconTransport = Callable[[str, str], bool]

DEFAULT_TIMEOUT = 10.0

# Thread pool for relay POSTs
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix='relay-send')


class ServerRelayClient:
    """Fire-and-forget client for the /forwardEvent relay."""

    def __init__(
        self,
        beacon: Optional[BeaconTransport] = None,
        timeout: float = DEFAULT_TIMEOUT,
        executor: Optional[Executor] = None,
    ):
        self.beacon = beacon
        self.timeout = timeout
        self._executor = executor or _executor

    def send(self, url: str, payload: Dict[str, Any]) -> None:
        """Queue ``payload`` for delivery to ``url``. Never raises, never blocks."""
        try:
            body = json.dumps(payload, default=str)
        except (TypeError, ValueError) as e:
            logger.error('Failed to serialize event for relay: %s', e)
            return

        try:
            if callable(self.beacon):
                if self.beacon(url, body):
                    return
                logger.debug('Beacon refused event, falling back to HTTP POST')
            self._executor.submit(self._deliver, url, body)
        except Exception as e:
            logger.error('Failed to send event to relay: %s', e)

    def _deliver(self, url: str, body: str) -> None:
        try:
            self._post(url, body)
        except TransportError as e:
            logger.warning('Relay delivery failed: %s', e)
        except Exception as e:
            logger.error('Unexpected relay delivery error: %s', e)

    def _post(self, url: str, body: str) -> None:
        """POST the serialized event; raises TransportError on any failure."""
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(
                    url,
                    content=body,
                    headers={'Content-Type': 'application/json'},
                )
        except httpx.RequestError as e:
            raise TransportError(f'{type(e).__name__} posting to {url}') from e

        if resp.status_code >= 400:
            raise TransportError(
                f'relay answered {resp.status_code}: {resp.text[:200]}'
            )
        logger.debug('Event delivered to relay %s', url)
