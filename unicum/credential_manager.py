#!/usr/bin/env python3
"""
Credential Manager Module

Owns the monitor's single live session token (the `nvmc_login` cookie).

The Unicum telemetry service allows one login session per operator account and
re-issues the token on every authenticated response. The manager therefore has
exactly two places where the live token changes:

1. Acquisition (ensure_credential / init): reuse the cached token from
   latest_token.json while it is valid, otherwise log in again.
2. Rotation (accept_rotated_token): called by the API client after every
   successful authenticated response carrying a new token.

Both paths persist through TokenStore before the token is used.

Login busy handling:
    The auth endpoint answers 409 when its login queue is full. The manager
    waits `login_retry_ms` and repeats the identical request, with no attempt
    limit. Any other non-200 status raises UpstreamError.

Usage:
    manager = CredentialManager(config)
    manager.ensure_credential()
    headers = manager.auth_headers()
"""

import time
import logging
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit

import requests

from unicum.config_loader import DEFAULT_TOKEN_TTL_SECONDS
from unicum.errors import ConfigurationError, UpstreamError
from unicum.models import Credential
from unicum.token_store import TokenStore
from unicum.utils import get_unix, format_relative

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "nvmc_login"
BUSY_STATUS = 409
REQUEST_TIMEOUT = 30


def build_auth_url(base_url: str) -> str:
    """
    Derive the login endpoint from the API base URL.

    The login form lives at the site root: https://host/nvmc/api/ -> https://host/n/
    """
    parts = urlsplit(base_url)
    if not parts.scheme or not parts.netloc:
        raise ConfigurationError("BASE_HOST", f"BASE_HOST is not an absolute URL: {base_url!r}")
    return f"{parts.scheme}://{parts.netloc}/n/"


class CredentialManager:
    """
    Session credential lifecycle: cached-valid vs needs-refresh.

    Attributes:
        credential (Credential): Live token and its expiry, None before init
        token_store (TokenStore): Persistence for latest_token.json
        auth_url (str): Login endpoint
    """

    def __init__(
        self,
        config: Dict[str, Any],
        session: Optional[requests.Session] = None,
        token_store: Optional[TokenStore] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], int] = get_unix
    ):
        """
        Initialize the credential manager.

        Args:
            config: Full configuration dict (uses the "unicum" section)
            session: HTTP session shared with the API client
            token_store: Override for the token cache (defaults to cache_dir)
            sleep: Delay function used between busy retries
            clock: Unix-time provider
        """
        unicum_config = config["unicum"]

        self.login = unicum_config["login"]
        self.password = unicum_config["password"]
        self.retry_ms = int(unicum_config["login_retry_ms"])
        self.token_ttl = int(unicum_config.get("token_ttl_seconds", DEFAULT_TOKEN_TTL_SECONDS))
        self.auth_url = build_auth_url(unicum_config["base_url"])

        self.session = session or requests.Session()
        self.token_store = token_store or TokenStore(unicum_config["cache_dir"])

        self._sleep = sleep
        self._clock = clock

        self.credential: Optional[Credential] = None

    @property
    def token(self) -> Optional[str]:
        return self.credential.token if self.credential else None

    def has_valid_token(self) -> bool:
        return self.credential is not None and self.credential.is_valid(self._clock())

    # =========================================================================
    # ACQUISITION
    # =========================================================================

    def init(self, token: Optional[str] = None) -> 'CredentialManager':
        """
        Startup entry point.

        Args:
            token: Explicit token to adopt. It is stored with validUntil=0, so
                   it is never sent: the next authenticated call (or
                   ensure_credential()) logs in and replaces it.
        """
        if not self.token_store.cache_dir.exists():
            logger.debug(f"Cache directory doesn't exist yet, creating! ({self.token_store.cache_dir})")
            self.token_store.cache_dir.mkdir(parents=True, exist_ok=True)

        if token:
            self._set_token(token, valid_until=0)
        else:
            self.ensure_credential()
        return self

    def ensure_credential(self) -> Credential:
        """
        Return a usable credential, logging in only when the cache can't be used.

        Returns:
            Credential: Cached one if still valid, otherwise a fresh one

        Raises:
            UpstreamError: Login failed with a non-busy error
            CacheError: Token cache exists but is unreadable
        """
        logger.info("Searching for saved token...")

        cached = self.token_store.load()
        now = self._clock()

        if cached is not None and cached.is_valid(now):
            logger.info(f"Saved token is okay! Expires {format_relative(cached.valid_until, now)}")
            self.credential = cached
            return cached

        if cached is None:
            logger.warning("Saved token is not okay! There's no token...")
        else:
            logger.warning(f"Saved token is not okay! Expired {format_relative(cached.valid_until, now)}.")

        token = self.fetch_token()
        return self._set_token(token)

    def fetch_token(self) -> str:
        """
        Log in against the auth endpoint, retrying while it reports busy.

        Returns:
            str: New session token

        Raises:
            UpstreamError: Non-200/non-409 status, missing token, or network error
        """
        logger.info("Acquiring token...")
        attempt = 0

        while True:
            attempt += 1
            logger.debug(f"[{attempt}] Sending login request to {self.auth_url}")

            try:
                response = self.session.post(
                    self.auth_url,
                    data={
                        "httpauthreqtype": "G",
                        "Login": self.login,
                        "Password": self.password,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    timeout=REQUEST_TIMEOUT
                )
            except requests.exceptions.RequestException as e:
                logger.error(f"Login request error: {e}")
                raise UpstreamError(f"Login request failed: {e}", url=self.auth_url) from e

            if response.status_code == BUSY_STATUS:
                logger.warning(f"Login endpoint busy ({BUSY_STATUS}), retrying in {self.retry_ms}ms.")
                self._sleep(self.retry_ms / 1000)
                continue

            if response.status_code != 200:
                logger.error(f"Login failed: {response.status_code} - {response.text}")
                raise UpstreamError(
                    f"Login failed with status {response.status_code}",
                    status_code=response.status_code,
                    url=self.auth_url
                )

            token = self._extract_token(response)
            if not token:
                raise UpstreamError(
                    "Login succeeded but no token in response",
                    status_code=response.status_code,
                    url=self.auth_url
                )

            logger.info(f"Token acquired after {attempt} attempt(s)")
            return token

    @staticmethod
    def _extract_token(response: requests.Response) -> Optional[str]:
        """Token comes as the nvmc_login cookie; some deployments return it in the JSON body."""
        token = response.cookies.get(TOKEN_COOKIE)
        if token:
            return token

        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        return body.get("token") or (body.get("user") or {}).get("token")

    # =========================================================================
    # ROTATION
    # =========================================================================

    def accept_rotated_token(self, token: str) -> Credential:
        """Adopt the token re-issued by an authenticated response."""
        return self._set_token(token)

    def _set_token(self, token: str, valid_until: Optional[int] = None) -> Credential:
        """Install `token` as the live credential and persist it."""
        if valid_until is None:
            valid_until = self._clock() + self.token_ttl

        credential = Credential(token=token, valid_until=valid_until)
        self.token_store.save(credential)
        self.credential = credential

        logger.debug(f"Updated and cached token. Valid until {valid_until} ({format_relative(valid_until, self._clock())})")
        return credential

    def auth_headers(self) -> Dict[str, str]:
        """Cookie header for authenticated API calls."""
        return {"Cookie": f"{TOKEN_COOKIE}={self.token or ''}"}
