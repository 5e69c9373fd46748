"""
Unicum fleet monitor core.

This package contains the pieces used by the poller service:
- config_loader: environment/.env + JSON settings
- logger_service: process logging setup
- token_store: latest_token.json persistence
- credential_manager: login, busy retry, token rotation
- unicum_client: authenticated REST transport
- machine_directory: fleet listing + latest_machineinfos.json snapshot
- aggregator: vends/cash/offline reports

SESSION MODEL
================================================================================
The telemetry service allows ONE session per operator account and re-issues
the token on every authenticated response. Consequences:

    - Requests are sequential. Never fan out curstate calls across threads.
    - The token changes only in CredentialManager: on acquisition and in
      accept_rotated_token() (called by the client's response hook).
    - Only one monitor process may use a cache directory at a time.

Usage:
    from unicum import load_config, CredentialManager, UnicumClient, MachineDirectory, StateAggregator

    config = load_config()
    manager = CredentialManager(config).init()
    client = UnicumClient(config, manager)
    directory = MachineDirectory(client, config["unicum"]["cache_dir"])
    aggregator = StateAggregator(client, directory)

    report = aggregator.check_offline()
================================================================================
"""

from unicum.errors import UnicumError, ConfigurationError, UpstreamError, CacheError
from unicum.config_loader import ConfigLoader, get_config_loader, load_config
from unicum.logger_service import setup_logging
from unicum.models import Credential, MachineInfo, ProductState, CurrentState, OfflineReport
from unicum.token_store import TokenStore
from unicum.credential_manager import CredentialManager
from unicum.unicum_client import UnicumClient
from unicum.machine_directory import MachineDirectory
from unicum.aggregator import StateAggregator

__all__ = [
    # Errors
    'UnicumError', 'ConfigurationError', 'UpstreamError', 'CacheError',
    # Config / logging
    'ConfigLoader', 'get_config_loader', 'load_config', 'setup_logging',
    # Models
    'Credential', 'MachineInfo', 'ProductState', 'CurrentState', 'OfflineReport',
    # Core
    'TokenStore', 'CredentialManager', 'UnicumClient', 'MachineDirectory', 'StateAggregator',
]
