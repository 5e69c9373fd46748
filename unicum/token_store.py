#!/usr/bin/env python3
"""
Token Store Module

Persists the single cached session credential (latest_token.json) so that a
restarted monitor can reuse a still-valid token instead of logging in again.

File format:
    {"token": "<nvmc_login cookie value>", "validUntil": <unix seconds>}

A missing file means "no cached token". Anything else that prevents reading
the file (permissions, corrupt JSON, missing keys) raises CacheError.

Usage:
    store = TokenStore("/var/cache/unicum")
    credential = store.load()
    if credential is None or not store.is_valid(credential):
        ...
    store.save(Credential(token, valid_until))
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from unicum.errors import CacheError
from unicum.models import Credential
from unicum.utils import get_unix

logger = logging.getLogger(__name__)

TOKEN_CACHE_FILE = "latest_token.json"


class TokenStore:
    """Reads and writes the cached credential file."""

    def __init__(self, cache_dir: Union[str, Path], filename: str = TOKEN_CACHE_FILE):
        self.cache_dir = Path(cache_dir)
        self.cache_file = self.cache_dir / filename

    def load(self) -> Optional[Credential]:
        """
        Read the cached credential.

        Returns:
            Credential, or None if no cache file exists

        Raises:
            CacheError: If the file exists but cannot be read or parsed
        """
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.debug(f"No token cache at {self.cache_file}")
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise CacheError(self.cache_file, str(e)) from e

        try:
            return Credential.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CacheError(self.cache_file, f"malformed token record ({e})") from e

    def save(self, credential: Credential):
        """Replace the cache file with `credential` (temp file + rename)."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        temp_file = self.cache_file.with_suffix(".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(credential.to_dict(), f)

        temp_file.replace(self.cache_file)
        logger.debug(f"Token cache file updated (valid until {credential.valid_until})")

    @staticmethod
    def is_valid(credential: Optional[Credential], now: Optional[int] = None) -> bool:
        """True if `credential` exists and has not expired."""
        if credential is None:
            return False
        return credential.is_valid(get_unix() if now is None else now)
