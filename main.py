"""
maxrouter: subscription-billed Messages API router

Main entry point for the application.

Usage:
    python main.py [--port PORT] [--quiet | --minimal | --verbose]
    python main.py login
"""

import argparse
import asyncio
import logging
import sys

from maxrouter.config import Config
from maxrouter.exceptions import AuthenticationError
from maxrouter.logging_config import setup_logging
from maxrouter import oauth
from maxrouter.tokens import TokenStore

logger = logging.getLogger("maxrouter")


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments"""
    p = argparse.ArgumentParser(description="OpenAI/native Messages router with OAuth subscription auth")
    p.add_argument("command", nargs="?", default="serve", choices=["serve", "login"])
    p.add_argument("-p", "--port", type=int, default=None, help="Port to listen on (default: ROUTER_PORT or 3000)")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-q", "--quiet", dest="verbosity", action="store_const", const="quiet",
                           help="No request logging")
    verbosity.add_argument("-m", "--minimal", dest="verbosity", action="store_const", const="minimal",
                           help="One line per request")
    verbosity.add_argument("-V", "--verbose", dest="verbosity", action="store_const", const="maximum",
                           help="Full request/response bodies")
    return p.parse_args(argv)


async def login(store: TokenStore) -> None:
    """Interactive PKCE login; saves tokens to the store"""
    verifier, challenge = oauth.generate_pkce()
    state = oauth.generate_state()

    print("\nVisit this URL to authorize:\n")
    print(oauth.get_authorization_url(challenge, state))
    print("\nThen paste the redirect URL (or the code shown on the page).")
    pasted = input("> ")

    code = oauth.parse_authorization_response(pasted, state)
    tokens = await oauth.exchange_code_for_tokens(code, verifier, state)
    store.save(tokens)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = Config()
    if args.port:
        config.port = args.port
    if args.verbosity:
        config.verbosity = args.verbosity

    setup_logging(config.verbosity)
    store = TokenStore(config.token_file)

    try:
        if args.command == "login" or store.load() is None:
            logger.info("Starting authentication...")
            asyncio.run(login(store))
            if args.command == "login":
                return 0

        asyncio.run(store.get_valid_access_token())
        logger.info("Token validated.")
    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e.message}")
        logger.info(f"Delete {config.token_file} and run: python main.py login")
        return 1

    import uvicorn

    from maxrouter.api import create_app
    from maxrouter.client import UpstreamClient
    from maxrouter.model_mapper import load_overrides

    upstream = UpstreamClient(config.api_url, store.get_valid_access_token, timeout=config.upstream_timeout)
    app = create_app(upstream, config=config, overrides=load_overrides(config.model_overrides_file))

    logger.info(f"Router running on http://{config.host}:{config.port}")
    logger.info(f"   POST http://{config.host}:{config.port}/v1/chat/completions")
    logger.info(f"   POST http://{config.host}:{config.port}/v1/messages")
    logger.info(f"   GET  http://{config.host}:{config.port}/health")

    uvicorn.run(app, host=config.host, port=config.port, log_level="warning" if config.verbosity == "quiet" else "info")
    return 0


if __name__ == "__main__":
    sys.exit(main())
