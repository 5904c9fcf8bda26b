"""
Tests for the event composer.

Tests event id generation, dual-channel fan-out with a shared id, channel
independence, and an end-to-end pass through the relay endpoint.
"""

import json
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from capi_relay.config import RelaySettings, ServerConfig, StaticSecretProvider
from capi_relay.hashing import hash_value
from capi_relay.models import TrackedUser
from capi_relay.relay_api import get_conversions_client, get_secret_provider
from capi_relay.server import create_app
from capi_relay.tracking import composer as composer_module
from capi_relay.tracking.browser import PixelEmitter
from capi_relay.tracking.composer import (
    EventComposer,
    configure_tracking,
    generate_event_id,
    get_composer,
    reset_tracking,
    track,
)
from capi_relay.tracking.relay_client import ServerRelayClient


# ============================================================================
# Helpers
# ============================================================================


SETTINGS = RelaySettings(accountPixelId='123', relayUrl='https://relay/x')


class RecordingRelayClient:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send(self, url, payload):
        self.sent.append((url, payload))
        if self.error:
            raise self.error


def _make_composer(pixel=None, relay_error=None):
    pixel = pixel if pixel is not None else MagicMock()
    relay = RecordingRelayClient(error=relay_error)
    composer = EventComposer(pixel=PixelEmitter(pixel), relay_client=relay)
    return composer, pixel, relay


@pytest.fixture(autouse=True)
def _reset_global_composer():
    reset_tracking()
    yield
    reset_tracking()


# ============================================================================
# Event ids
# ============================================================================


class TestEventIds:

    def test_format(self):
        event_id = generate_event_id()
        prefix, millis, suffix = event_id.split('_')
        assert prefix == 'event'
        assert millis.isdigit()
        assert len(suffix) == 12

    def test_distinct_across_calls(self):
        ids = {generate_event_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_each_track_call_gets_a_new_id(self):
        composer, pixel, relay = _make_composer()

        first = composer.track(SETTINGS, 'Share', {})
        second = composer.track(SETTINGS, 'Share', {})

        assert first != second
        assert relay.sent[0][1]['eventId'] != relay.sent[1][1]['eventId']


# ============================================================================
# Fan-out
# ============================================================================


class TestTrack:

    def test_same_event_id_on_both_channels(self):
        composer, pixel, relay = _make_composer()

        event_id = composer.track(SETTINGS, 'Share', {'method': 'native'})

        pixel_marker = pixel.call_args[0][2]
        relay_payload = relay.sent[0][1]
        assert pixel_marker == {'eventID': event_id}
        assert relay_payload['eventId'] == event_id

    def test_relay_payload_shape(self):
        composer, _, relay = _make_composer()
        user = TrackedUser(email='A@B.com', first_name='Ana')

        composer.track(SETTINGS, 'Lead', {'value': 1}, user)

        url, payload = relay.sent[0]
        assert url == 'https://relay/x'
        assert payload['eventName'] == 'Lead'
        assert payload['eventData'] == {'value': 1}
        assert payload['userData'] == {'email': 'A@B.com', 'firstName': 'Ana'}
        assert payload['settings'] == {'accountPixelId': '123', 'relayUrl': 'https://relay/x'}

    def test_anonymous_user_sends_empty_user_data(self):
        composer, _, relay = _make_composer()
        composer.track(SETTINGS, 'Share', {})
        assert relay.sent[0][1]['userData'] == {}

    def test_no_pixel_id_disables_tracking(self):
        composer, pixel, relay = _make_composer()

        result = composer.track(RelaySettings(relayUrl='https://relay/x'), 'Share', {})

        assert result is None
        pixel.assert_not_called()
        assert relay.sent == []

    def test_no_relay_url_still_fires_pixel(self):
        composer, pixel, relay = _make_composer()

        event_id = composer.track(RelaySettings(accountPixelId='123'), 'Share', {'method': 'native'})

        assert event_id is not None
        pixel.assert_called_once()
        assert pixel.call_args[0][0] == 'Share'
        assert relay.sent == []

    def test_blocked_pixel_still_sends_to_relay(self):
        relay = RecordingRelayClient()
        composer = EventComposer(pixel=PixelEmitter(None), relay_client=relay)

        event_id = composer.track(SETTINGS, 'Share', {})

        assert relay.sent[0][1]['eventId'] == event_id

    def test_pixel_failure_does_not_block_relay(self):
        pixel = MagicMock(side_effect=RuntimeError('pixel crashed'))
        composer, _, relay = _make_composer(pixel=pixel)

        composer.track(SETTINGS, 'Share', {})

        assert len(relay.sent) == 1

    def test_broken_emitter_does_not_block_relay(self):
        emitter = MagicMock()
        emitter.emit.side_effect = RuntimeError('emitter bug')
        relay = RecordingRelayClient()
        composer = EventComposer(pixel=emitter, relay_client=relay)

        composer.track(SETTINGS, 'Share', {})  # Should not raise

        assert len(relay.sent) == 1

    def test_relay_failure_does_not_raise(self):
        composer, pixel, _ = _make_composer(relay_error=RuntimeError('network down'))

        event_id = composer.track(SETTINGS, 'Share', {})

        assert event_id is not None
        pixel.assert_called_once()

    def test_params_are_copied(self):
        composer, pixel, relay = _make_composer()
        params = {'method': 'native'}

        composer.track(SETTINGS, 'Share', params)
        params['method'] = 'changed'

        assert relay.sent[0][1]['eventData'] == {'method': 'native'}

    def test_user_mapping_is_accepted(self):
        composer, pixel, relay = _make_composer()

        event_id = composer.track(SETTINGS, 'Share', {'method': 'native'}, {'email': 'A@B.com'})

        assert event_id is not None
        pixel.assert_called_once()
        assert relay.sent[0][1]['userData'] == {'email': 'A@B.com'}

    def test_user_mapping_with_wire_names(self):
        composer, _, relay = _make_composer()
        composer.track(SETTINGS, 'Lead', {}, {'firstName': 'Ana', 'lastName': 'Silva'})
        assert relay.sent[0][1]['userData'] == {'firstName': 'Ana', 'lastName': 'Silva'}

    def test_unbuildable_params_do_not_raise(self):
        composer, pixel, relay = _make_composer()

        result = composer.track(SETTINGS, 'Share', {1: 'x'})  # Should not raise

        assert result is None
        pixel.assert_not_called()
        assert relay.sent == []

    def test_invalid_user_does_not_raise(self):
        composer, pixel, relay = _make_composer()

        result = composer.track(SETTINGS, 'Share', {}, {'email': ['not', 'a', 'string']})

        assert result is None
        pixel.assert_not_called()
        assert relay.sent == []

    def test_custom_id_factory(self):
        relay = RecordingRelayClient()
        composer = EventComposer(relay_client=relay, id_factory=lambda: 'fixed-id')
        assert composer.track(SETTINGS, 'Share', {}) == 'fixed-id'


class TestGoogleTag:

    def test_track_google_uses_gtag(self):
        gtag = MagicMock()
        configure_tracking(gtag=gtag)

        composer_module.track_google_event('share', {'item_id': 't1'})

        gtag.assert_called_once_with('share', {'item_id': 't1'})


# ============================================================================
# Global instance
# ============================================================================


class TestGlobalComposer:

    def test_configure_tracking_wires_capabilities(self):
        pixel = MagicMock()
        beacon = MagicMock(return_value=True)
        configure_tracking(pixel=pixel, beacon=beacon)

        event_id = track(SETTINGS, 'Share', {'method': 'native'})

        pixel.assert_called_once_with('Share', {'method': 'native'}, {'eventID': event_id})
        url, body = beacon.call_args[0]
        assert url == 'https://relay/x'
        assert json.loads(body)['eventId'] == event_id

    def test_default_composer_is_created_lazily(self):
        composer = get_composer()
        assert composer is get_composer()
        assert composer.pixel.available is False


# ============================================================================
# End to end
# ============================================================================


class FakeConversionsClient:
    def __init__(self):
        self.events = []

    async def send_events(self, pixel_id, events, access_token):
        self.events.extend(events)
        return {'events_received': len(events)}


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_share_flows_through_both_channels(self):
        pixel = MagicMock()
        beacon = MagicMock(return_value=True)
        composer = EventComposer(
            pixel=PixelEmitter(pixel),
            relay_client=ServerRelayClient(beacon=beacon),
        )

        composer.track(SETTINGS, 'Share', {'method': 'native'}, TrackedUser(email='A@B.com'))

        # (a) browser pixel got the event with a non-empty eventID
        name, _, marker = pixel.call_args[0]
        assert name == 'Share'
        assert marker['eventID']

        # (b) relay POST carries the same id
        url, body = beacon.call_args[0]
        assert url == 'https://relay/x'
        assert json.loads(body)['eventId'] == marker['eventID']

        # (c) the relay forwards it with the hashed email
        upstream = FakeConversionsClient()
        app = create_app(ServerConfig())
        app.dependency_overrides[get_secret_provider] = lambda: StaticSecretProvider('tok')
        app.dependency_overrides[get_conversions_client] = lambda: upstream

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url='http://test') as client:
            resp = await client.post(
                '/forwardEvent',
                content=body,
                headers={'Content-Type': 'text/plain;charset=UTF-8'},
            )

        assert resp.status_code == 200
        assert len(upstream.events) == 1
        forwarded = upstream.events[0].to_api()
        assert forwarded['event_id'] == marker['eventID']
        assert forwarded['user_data']['em'] == hash_value('a@b.com')
