#!/usr/bin/env python3
"""
Conversions Relay Runner

Main entry point for running the relay service.
"""

import argparse
import logging
from typing import Optional

import uvicorn

from capi_relay import __version__
from capi_relay.config import ServerConfig, load_config
from capi_relay.server import create_app


def setup_logging(level: str = 'INFO'):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    # httpx logs full request URLs at INFO; the upstream URL carries the token
    logging.getLogger('httpx').setLevel(logging.WARNING)


# Get logger after setup
logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment configuration with command-line overrides applied."""
    config = load_config()
    overrides = {
        'host': args.host,
        'port': args.port,
        'log_level': args.log_level,
    }
    return config.model_copy(
        update={key: value for key, value in overrides.items() if value is not None}
    )


def run_server(args: argparse.Namespace) -> None:
    config = build_config(args)
    setup_logging(config.log_level)

    app = create_app(config)
    logger.info('Starting conversions relay on %s:%d', config.host, config.port)
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


def main(argv: Optional[list] = None):
    parser = argparse.ArgumentParser(description='Conversions Relay Runner')
    parser.add_argument(
        '--version', '-V', action='version', version=__version__
    )
    subparsers = parser.add_subparsers(
        dest='command', help='Available commands'
    )

    run_parser = subparsers.add_parser('run', help='Run the relay server')
    run_parser.add_argument(
        '--host', default=None, help='Host to bind to (RELAY_HOST)'
    )
    run_parser.add_argument(
        '--port', type=int, default=None, help='Port to bind to (RELAY_PORT)'
    )
    run_parser.add_argument(
        '--log-level',
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
    )

    subparsers.add_parser('examples', help='Show example configurations')

    args = parser.parse_args(argv)

    if args.command == 'run':
        run_server(args)
    elif args.command == 'examples':
        print('Example configurations:')
        print()
        print('1. Run the relay on the default port:')
        print('   python run_server.py run')
        print()
        print('2. Run on a custom port with debug logging:')
        print('   python run_server.py run --port 9000 --log-level DEBUG')
        print()
        print('3. Environment variables:')
        print('   META_CAPI_ACCESS_TOKEN=...   # Conversions API token (required)')
        print('   RELAY_HOST=0.0.0.0')
        print('   RELAY_PORT=8080')
        print('   RELAY_LOG_LEVEL=INFO')
        print('   META_GRAPH_API_VERSION=v19.0')
        print('   META_CAPI_TIMEOUT_SECONDS=30')
        print('   META_TEST_EVENT_CODE=TEST123   # Route events to Test Events')
    else:
        parser.print_help()


if __name__ == '__main__':
    main()
