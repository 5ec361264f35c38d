"""
OAuth PKCE helpers for subscription authentication
"""

import base64
import hashlib
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlparse

import httpx

from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)

CLIENT_ID = "9d1c250a-e61b-44d9-88ed-5944d1962f5e"
AUTHORIZE_URL = "https://claude.ai/oauth/authorize"
TOKEN_URL = "https://console.anthropic.com/v1/oauth/token"
REDIRECT_URI = "https://console.anthropic.com/oauth/code/callback"
SCOPE = "org:create_api_key user:profile user:inference"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_pkce() -> Tuple[str, str]:
    """Return (verifier, S256 challenge)"""
    verifier = _b64url(secrets.token_bytes(32))
    challenge = _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
    return verifier, challenge


def generate_state() -> str:
    return _b64url(secrets.token_bytes(32))


def get_authorization_url(code_challenge: str, state: str) -> str:
    """Build the browser URL that starts the authorization step"""
    params = {
        "code": "true",
        "client_id": CLIENT_ID,
        "redirect_uri": REDIRECT_URI,
        "response_type": "code",
        "scope": SCOPE,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "state": state,
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


def parse_authorization_response(pasted: str, expected_state: str) -> str:
    """
    Extract the authorization code from what the user pasted.

    Accepts either the full redirect URL or the `code#state` string shown on
    the callback page.

    Raises:
        AuthenticationError: error returned, code missing, or state mismatch
    """
    pasted = pasted.strip()
    if pasted.startswith("http://") or pasted.startswith("https://"):
        query = parse_qs(urlparse(pasted).query)
        if "error" in query:
            raise AuthenticationError(f"Authorization failed: {query['error'][0]}")
        code = (query.get("code") or [""])[0]
        state = (query.get("state") or [None])[0]
    else:
        code, _, state = pasted.partition("#")
        state = state or None

    if not code:
        raise AuthenticationError("No authorization code found")
    if state is not None and state != expected_state:
        raise AuthenticationError("State mismatch - possible CSRF attack")
    return code


async def exchange_code_for_tokens(
    code: str,
    verifier: str,
    state: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """Exchange an authorization code for access and refresh tokens"""
    payload = {
        "grant_type": "authorization_code",
        "client_id": CLIENT_ID,
        "code": code,
        "redirect_uri": REDIRECT_URI,
        "code_verifier": verifier,
    }
    if state:
        payload["state"] = state
    return await _token_request(payload, "Token exchange", client)


async def refresh_access_token(
    refresh_token: str,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """Trade a refresh token for a new access token"""
    payload = {
        "grant_type": "refresh_token",
        "client_id": CLIENT_ID,
        "refresh_token": refresh_token,
    }
    return await _token_request(payload, "Token refresh", client)


async def _token_request(
    payload: Dict[str, str],
    action: str,
    client: Optional[httpx.AsyncClient],
) -> Dict[str, Any]:
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0))
    try:
        resp = await client.post(TOKEN_URL, data=payload)
    except httpx.HTTPError as e:
        raise AuthenticationError(f"{action} failed: {e}")
    finally:
        if owns_client:
            await client.aclose()

    if resp.status_code >= 400:
        raise AuthenticationError(f"{action} failed ({resp.status_code}): {resp.text[:300]}")

    tokens = resp.json()
    tokens["expires_at"] = int(time.time() * 1000) + int(tokens.get("expires_in", 0)) * 1000
    tokens["created_at"] = datetime.now(timezone.utc).isoformat()
    logger.info(f"{action} succeeded, expires in {tokens.get('expires_in', 0)}s")
    return tokens
