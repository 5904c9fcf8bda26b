"""
Conversions relay endpoint.

Receives events from the tracking client, hashes identity fields and
forwards a single server event to the Meta Conversions API.

Endpoints:
    OPTIONS /forwardEvent  - CORS preflight (204)
    POST    /forwardEvent  - Forward one event
    *       /forwardEvent  - 405

Every branch is terminal; a request produces exactly one response and the
handler keeps no state between requests.
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from .config import EnvSecretProvider, SecretProvider, ServerConfig
from .errors import ConfigurationError, PayloadValidationError, UpstreamError
from .meta_capi import MetaConversionsClient, build_conversion_event
from .models import ForwardEventRequest, ForwardEventResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=['Conversions'])

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type',
}

# Registered explicitly so unsupported methods still get CORS headers
RELAY_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']

PIXEL_ID_KEYS = ('accountPixelId', 'metaPixelId')


# ============================================================================
# Dependencies
# ============================================================================


def get_secret_provider() -> SecretProvider:
    return EnvSecretProvider()


def get_conversions_client(request: Request) -> MetaConversionsClient:
    config: ServerConfig = getattr(request.app.state, 'config', None) or ServerConfig()
    return MetaConversionsClient(
        api_version=config.graph_api_version,
        timeout=config.upstream_timeout,
        test_event_code=config.test_event_code,
    )


# ============================================================================
# Helper Functions
# ============================================================================


def _result(status_code: int, success: bool, message: str) -> JSONResponse:
    body = ForwardEventResponse(success=success, message=message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers=CORS_HEADERS,
    )


def client_ip(request: Request) -> Optional[str]:
    """Caller IP, preferring the first X-Forwarded-For hop."""
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.client.host if request.client else None


async def _read_body(request: Request) -> Dict[str, Any]:
    """
    Parse the JSON body whatever its Content-Type.

    Beacon transports post strings as text/plain, so the content type says
    nothing about the payload.
    """
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, ValueError):
        raise PayloadValidationError() from None
    if not isinstance(data, dict):
        raise PayloadValidationError()
    return data


def extract_pixel_id(body: Dict[str, Any]) -> Optional[str]:
    settings = body.get('settings')
    if not isinstance(settings, dict):
        return None
    for key in PIXEL_ID_KEYS:
        value = settings.get(key)
        if value:
            return str(value)
    return None


def is_valid_pixel_id(pixel_id: str) -> bool:
    """Pixel ids are plain decimal numbers; anything else would reshape the Graph URL."""
    return pixel_id.isascii() and pixel_id.isdigit()


# ============================================================================
# Endpoints
# ============================================================================


@router.api_route('/forwardEvent', methods=RELAY_METHODS)
async def forward_event(
    request: Request,
    secrets: SecretProvider = Depends(get_secret_provider),
    client: MetaConversionsClient = Depends(get_conversions_client),
) -> Response:
    """Forward one tracked event to the Conversions API."""
    if request.method == 'OPTIONS':
        return Response(status_code=204, headers=CORS_HEADERS)

    if request.method != 'POST':
        return PlainTextResponse(
            'Method Not Allowed',
            status_code=405,
            headers={**CORS_HEADERS, 'Allow': 'POST, OPTIONS'},
        )

    access_token = secrets.get_secret()
    if not access_token:
        logger.error('Conversions API access token is not configured')
        return _result(500, False, ConfigurationError.public_message)

    try:
        body = await _read_body(request)
        pixel_id = extract_pixel_id(body)
        if not pixel_id:
            logger.error('Pixel ID is missing from the request settings')
            raise PayloadValidationError('Pixel ID is required.')
        if not is_valid_pixel_id(pixel_id):
            logger.warning('Rejected non-numeric pixel id')
            raise PayloadValidationError('Pixel ID is invalid.')
        event = ForwardEventRequest.model_validate(body)
    except PayloadValidationError as e:
        return _result(e.http_status, False, e.public_message)
    except ValidationError as e:
        logger.warning('Rejected malformed event payload: %d error(s)', e.error_count())
        return _result(400, False, PayloadValidationError.public_message)

    conversion = build_conversion_event(
        event_name=event.event_name,
        event_id=event.event_id,
        event_data=event.event_data,
        user_data=event.user_data,
        client_ip_address=client_ip(request),
        client_user_agent=request.headers.get('user-agent'),
    )

    try:
        await client.send_events(pixel_id, [conversion], access_token=access_token)
    except UpstreamError as e:
        logger.error('Error forwarding event %s to Meta: %s', event.event_name, e)
        return _result(500, False, 'Internal Server Error')
    except Exception as e:
        logger.error(
            'Unexpected error forwarding event %s to Meta: %s',
            event.event_name, type(e).__name__,
        )
        return _result(500, False, 'Internal Server Error')

    logger.info('Forwarded %s (event_id=%s)', event.event_name, event.event_id)
    return _result(200, True, 'Event forwarded successfully.')
