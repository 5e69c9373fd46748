#!/usr/bin/env python3
"""
Machine Directory Module

Live fleet listing with an on-disk snapshot.

list_machines() always queries the API; the full response is then written to
latest_machineinfos.json so other readers (report formatting, a chat front end)
can resolve machine ids to names without touching the API.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from unicum.errors import CacheError, UpstreamError
from unicum.models import MachineInfo
from unicum.unicum_client import UnicumClient

logger = logging.getLogger(__name__)

MACHINES_CACHE_FILE = "latest_machineinfos.json"


class MachineDirectory:
    """Fleet listing backed by getmachines.json plus its file snapshot."""

    def __init__(self, client: UnicumClient, cache_dir: Union[str, Path]):
        self.client = client
        self.cache_dir = Path(cache_dir)
        self.cache_file = self.cache_dir / MACHINES_CACHE_FILE

    def list_machines(self) -> List[MachineInfo]:
        """
        Fetch the current fleet.

        Side effects: the token is rotated (client hook) and the raw listing
        replaces the snapshot file. A listing that fails to parse leaves the
        previous snapshot in place.

        Raises:
            UpstreamError: If the listing request fails or a machine entry is malformed
        """
        listing = self.client.get_machines()
        try:
            machines = [MachineInfo.from_api(m) for m in listing.get("machines") or []]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed machine entry in fleet listing: {e!r}")
            raise UpstreamError(f"Malformed machine entry in fleet listing: {e!r}", status_code=200) from e

        self._write_snapshot(listing)
        logger.info(f"Fleet listing refreshed: {len(machines)} machine(s)")
        return machines

    def _write_snapshot(self, listing: Dict[str, Any]):
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with open(self.cache_file, "w", encoding="utf-8") as f:
            json.dump(listing, f, ensure_ascii=False)
        logger.debug(f"Machine listing written to {self.cache_file}")

    def load_snapshot(self) -> Optional[Dict[str, Any]]:
        """
        Last persisted listing, or None if none has been written yet.

        Raises:
            CacheError: If the snapshot exists but cannot be read or parsed
        """
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise CacheError(self.cache_file, str(e)) from e

    def machine_name(self, machine_id: int) -> Optional[str]:
        """Display name (`comment`) of `machine_id` from the snapshot."""
        snapshot = self.load_snapshot()
        if not snapshot:
            return None

        for machine in snapshot.get("machines") or []:
            if str(machine.get("id")) == str(machine_id):
                return machine.get("comment")
        return None
