"""OAuth token persistence and refresh."""

import asyncio
import json
import logging
import os
import time
from typing import Any, Dict, Optional

from .exceptions import AuthenticationError
from .oauth import refresh_access_token

logger = logging.getLogger(__name__)

EXPIRY_BUFFER_MS = 5 * 60 * 1000


class TokenStore:
    """
    Token file on disk plus refresh-on-demand.

    `expires_at` is a millisecond epoch, as written by the oauth helpers.
    Tokens are read from disk once and kept in memory; the file is written
    again only when they are saved or refreshed. Concurrent callers share one
    refresh.
    """

    def __init__(self, path: str = ".oauth-tokens.json"):
        self.path = path
        self._lock = asyncio.Lock()
        self._tokens: Optional[Dict[str, Any]] = None

    def load(self) -> Optional[Dict[str, Any]]:
        """Load tokens; a missing or unreadable file yields None"""
        try:
            with open(self.path, encoding="utf-8") as f:
                tokens = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read token file {self.path}: {e}")
            return None
        return tokens if isinstance(tokens, dict) else None

    def save(self, tokens: Dict[str, Any]) -> None:
        """Write tokens atomically and make them the in-memory copy"""
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(tokens, f, indent=2)
        os.replace(tmp_path, self.path)
        self._tokens = tokens
        logger.info(f"Tokens saved to {self.path}")

    @staticmethod
    def is_expired(tokens: Dict[str, Any], now_ms: Optional[int] = None) -> bool:
        expires_at = tokens.get("expires_at")
        if not expires_at:
            return True
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return now_ms >= expires_at - EXPIRY_BUFFER_MS

    async def get_valid_access_token(self) -> str:
        """
        Return a usable access token, refreshing and persisting it if expired.

        Raises:
            AuthenticationError: no tokens stored, or refresh failed
        """
        async with self._lock:
            if self._tokens is None:
                self._tokens = self.load()
            tokens = self._tokens
            if not tokens:
                raise AuthenticationError(f"No tokens found in {self.path}. Run the login flow first.")

            if not self.is_expired(tokens):
                return tokens["access_token"]

            if not tokens.get("refresh_token"):
                raise AuthenticationError("Access token expired and no refresh token is available")

            logger.info("Token expired, refreshing...")
            new_tokens = await refresh_access_token(tokens["refresh_token"])
            if not new_tokens.get("refresh_token"):
                new_tokens["refresh_token"] = tokens["refresh_token"]

            self.save(new_tokens)
            return new_tokens["access_token"]
