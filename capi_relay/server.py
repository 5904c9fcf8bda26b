"""
FastAPI application factory for the conversions relay.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI

from . import __version__
from .config import SecretProvider, ServerConfig, load_config
from .relay_api import get_secret_provider, router as relay_router

logger = logging.getLogger(__name__)


def create_app(config: Optional[ServerConfig] = None) -> FastAPI:
    """Create the relay app; reads configuration from the environment when none is given."""
    config = config or load_config()

    app = FastAPI(
        title='TripSignal Conversions Relay',
        version=__version__,
        description='Forwards pixel-deduplicated conversion events to the Meta Conversions API',
    )
    app.state.config = config
    app.include_router(relay_router)

    @app.get('/health')
    async def health(
        secrets: SecretProvider = Depends(get_secret_provider),
    ) -> Dict[str, Any]:
        return {
            'status': 'ok',
            'version': __version__,
            'graph_api_version': config.graph_api_version,
            'secret_configured': secrets.configured,
        }

    logger.info(
        'Relay app created (graph_api_version=%s, upstream_timeout=%ss)',
        config.graph_api_version, config.upstream_timeout,
    )
    return app
