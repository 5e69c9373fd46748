"""
Fleet Poller Service

Keeps an eye on the vending fleet between operator requests.

How It Works:
-------------
1. Loads configuration from the environment (.env) and config/config.json
2. Restores the cached session token or logs in (409 busy -> retry)
3. Every interval: ensure token, fetch fleet listing, report offline machines
4. A failed cycle is logged; the next interval tries again

Configuration:
--------------
| Setting                | Default | Description                          |
|------------------------|---------|--------------------------------------|
| POLL_INTERVAL_MINUTES  | 30      | Minutes between cycles               |
| VENDS_THRESHOLD        | 3       | Default threshold for --vends        |
| LOGIN_RETRYMS          | -       | Delay between busy login retries     |

Files:
------
| File                             | Purpose                          |
|----------------------------------|----------------------------------|
| <cache>/latest_token.json        | Cached session token             |
| <cache>/latest_machineinfos.json | Last fleet listing               |

Usage:
------
    python -m services.fleet_poller.main
"""

from services.fleet_poller.main import (
    run_fleet_poller,
    run_poll_cycle,
    format_vends_report,
    format_cash_report,
    build_components,
)

__all__ = [
    'run_fleet_poller',
    'run_poll_cycle',
    'format_vends_report',
    'format_cash_report',
    'build_components',
]
