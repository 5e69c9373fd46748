"""
State Aggregator Module

Turns per-machine live state into the reports consumed by the notifier:
- vends_over(threshold): slots that sold at least `threshold` times
- cash_amounts(): banknote totals per machine
- check_offline(): machines the listing reports as offline

Machine states are fetched one at a time, in listing order. A failure for any
machine aborts the whole report; partial results are never returned.
"""

import logging
from typing import Dict, List, Optional, Tuple

from unicum.machine_directory import MachineDirectory
from unicum.models import CurrentState, MachineInfo, OfflineReport, ProductState
from unicum.unicum_client import UnicumClient

logger = logging.getLogger(__name__)


def selection_sort_key(product: ProductState) -> Tuple[int, int]:
    """Order by the leading hex digits of the slot code; codes without any go last."""
    number = product.slot_number
    if number is None:
        return (1, 0)
    return (0, number)


def format_offline_message(offline: List[MachineInfo]) -> str:
    names = ", ".join(m.comment for m in offline)
    if len(offline) == 1:
        return f"Machine [{names}] is offline!"
    return f"Machines [{names}] are offline!"


class StateAggregator:
    """
    Builds fleet reports from the machine directory and per-machine state.

    Every report method accepts an optional machine list; when omitted the
    directory is refreshed first.
    """

    def __init__(self, client: UnicumClient, directory: MachineDirectory):
        self.client = client
        self.directory = directory

    def _machines(self, machines: Optional[List[MachineInfo]]) -> List[MachineInfo]:
        if machines is None:
            return self.directory.list_machines()
        return machines

    def fetch_state(self, machine: MachineInfo) -> CurrentState:
        return self.client.get_current_state(machine.guid)

    def fetch_states(self, machines: Optional[List[MachineInfo]] = None) -> Dict[int, CurrentState]:
        """Current state of every machine, keyed by machine id."""
        states = {}
        for machine in self._machines(machines):
            states[machine.id] = self.fetch_state(machine)
        return states

    def products_all(self, machines: Optional[List[MachineInfo]] = None) -> Dict[int, List[ProductState]]:
        return {
            machine_id: state.products
            for machine_id, state in self.fetch_states(machines).items()
        }

    def vends_over(
        self,
        threshold: int,
        machines: Optional[List[MachineInfo]] = None
    ) -> Dict[int, List[ProductState]]:
        """
        Products with `vends >= threshold`, per machine.

        Machines without a qualifying product map to an empty list. Products are
        ordered by int(selection, 16); ties keep API order.
        """
        result = {}
        for machine_id, products in self.products_all(machines).items():
            selling = [p for p in products if p.vends >= threshold]
            result[machine_id] = sorted(selling, key=selection_sort_key)

        hits = sum(len(v) for v in result.values())
        logger.info(f"Found {hits} slot(s) with at least {threshold} vends across {len(result)} machine(s)")
        return result

    def cash_amounts(self, machines: Optional[List[MachineInfo]] = None) -> Dict[int, float]:
        """Banknote total per machine in major units (bills / 100)."""
        return {
            machine_id: state.cash_total
            for machine_id, state in self.fetch_states(machines).items()
        }

    def check_offline(self, machines: Optional[List[MachineInfo]] = None) -> OfflineReport:
        """Offline machines and an operator-facing message (None when all are online)."""
        logger.info("Checking for offline machines")
        offline = [m for m in self._machines(machines) if not m.online]

        if not offline:
            logger.debug("Found no offline machines!")
            return OfflineReport()

        message = format_offline_message(offline)
        logger.warning(f"Found {len(offline)} offline machine(s): {message}")
        return OfflineReport(offline=offline, message=message)
