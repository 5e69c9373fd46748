"""
Unicum Monitor Services

Standalone long-running processes built on the `unicum` package.

Services:
---------
- fleet_poller: Periodic offline check for the vending fleet
  - Reuses the cached session token while valid, logs in otherwise
  - Checks the fleet listing every 30 minutes (POLL_INTERVAL_MINUTES)
  - Hands offline alerts to a notifier callable
"""
