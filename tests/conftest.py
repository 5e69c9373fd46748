"""Shared fixtures for the Unicum monitor tests."""

import os
import sys
from unittest.mock import MagicMock

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


NOW = 1_700_000_000


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def config(cache_dir):
    """Minimal loaded configuration."""
    return {
        "unicum": {
            "base_url": "https://telemetry.example.com/nvmc/api/",
            "login": "operator",
            "password": "secret",
            "login_retry_ms": 500,
            "token_ttl_seconds": 2280,
            "cache_dir": str(cache_dir),
        },
        "poller": {"interval_minutes": 30, "vends_threshold": 3},
        "logging": {"log_file": "logs/test.log", "log_level": "INFO", "console_output": False},
    }


@pytest.fixture
def make_response():
    """Factory for stand-ins of requests.Response."""
    def _make(status_code=200, json_body=None, cookies=None, text=""):
        response = MagicMock()
        response.status_code = status_code
        response.cookies = cookies or {}
        response.text = text
        if json_body is None:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.json.return_value = json_body
        return response
    return _make


@pytest.fixture
def session():
    """Stand-in for requests.Session (post for login, request for API calls)."""
    return MagicMock()
