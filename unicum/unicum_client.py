"""
unicum_client.py - Unicum Telemetry API Client Module

Authenticated REST transport for the vending-machine telemetry service:
- Cookie authentication through CredentialManager
- Post-response hooks run after every successful authenticated call
  (the default hook adopts the rotated token from `user.token`)
- Endpoints: getmachines.json (fleet listing), curstate.json (machine state)

Requests are strictly sequential. The service keeps one session per account
and re-issues the token on each response, so overlapping calls would race on
the token.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from unicum.credential_manager import CredentialManager
from unicum.errors import UpstreamError
from unicum.models import CurrentState

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30

MACHINES_ENDPOINT = "getmachines.json"
CURSTATE_ENDPOINT = "curstate.json"

ResponseHook = Callable[[Dict[str, Any]], None]


class UnicumClient:
    """
    Unicum telemetry API client.

    Attributes:
        base_url (str): API root, always ending in "/"
        credentials (CredentialManager): Session owner, also used for login
        response_hooks (list): Callables invoked with each parsed response body

    Example:
        >>> manager = CredentialManager(config).init()
        >>> client = UnicumClient(config, manager)
        >>> listing = client.get_machines()
    """

    def __init__(
        self,
        config: Dict[str, Any],
        credentials: CredentialManager,
        session: Optional[requests.Session] = None
    ):
        base_url = config["unicum"]["base_url"]
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.credentials = credentials
        self.session = session or credentials.session

        self.response_hooks: List[ResponseHook] = [self._rotate_token]

    def _rotate_token(self, body: Dict[str, Any]):
        """Adopt the token the server re-issued with this response."""
        token = (body.get("user") or {}).get("token")
        if token:
            self.credentials.accept_rotated_token(token)
        else:
            logger.debug("Response carried no rotated token")

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None
    ) -> Dict[str, Any]:
        """
        Make an authenticated API request.

        Args:
            method: HTTP method (GET, POST)
            endpoint: Path relative to base_url
            data: JSON request body

        Returns:
            dict: Parsed response body

        Raises:
            UpstreamError: Network error, non-200 status, or a body that is not a JSON object
        """
        if not self.credentials.has_valid_token():
            self.credentials.ensure_credential()

        url = f"{self.base_url}{endpoint}"
        headers = self.credentials.auth_headers()
        if data is not None:
            headers["Content-Type"] = "application/json"

        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=headers,
                json=data,
                timeout=REQUEST_TIMEOUT
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout for {endpoint}")
            raise UpstreamError(f"Request timeout for {endpoint}", url=url) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error for {endpoint}: {e}")
            raise UpstreamError(f"Request error for {endpoint}: {e}", url=url) from e

        if response.status_code != 200:
            logger.error(f"API request failed: {response.status_code} - {response.text}")
            raise UpstreamError(
                f"{method} {endpoint} failed with status {response.status_code}",
                status_code=response.status_code,
                url=url
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(f"{endpoint} returned a non-JSON body", status_code=200, url=url) from e

        if not isinstance(body, dict):
            logger.error(f"{endpoint} returned {type(body).__name__} instead of an object")
            raise UpstreamError(
                f"{endpoint} returned {type(body).__name__} instead of an object",
                status_code=200,
                url=url
            )

        for hook in self.response_hooks:
            hook(body)

        return body

    def get_machines(self) -> Dict[str, Any]:
        """Raw fleet listing: {"user": {...}, "company": ..., "machines": [...]}."""
        logger.debug("Getting machineInfos")
        return self._make_request("GET", MACHINES_ENDPOINT)

    def get_current_state(self, guid: str) -> CurrentState:
        """Live state of the machine with `guid`."""
        logger.debug(f"Getting curstate of machine {guid}")
        body = self._make_request("POST", CURSTATE_ENDPOINT, data={"machineguid": guid})
        try:
            return CurrentState.from_api(body, machine_guid=guid)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise UpstreamError(
                f"Malformed curstate for machine {guid}: {e!r}",
                status_code=200,
                url=f"{self.base_url}{CURSTATE_ENDPOINT}"
            ) from e
