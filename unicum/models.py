"""
Unicum Data Classes.

This module defines the structures passed between the client layers:
- Credential: cached session token with its expiry
- MachineInfo: one machine from the fleet listing
- ProductState: one product slot from a machine's current state
- CurrentState: live state of one machine (products + money counters)
- OfflineReport: result of the offline-machine check

Each API-backed class keeps the raw dict it was built from in `raw`, so fields
the monitor does not interpret stay available to callers.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Optional sign and 0x prefix, then the hex digits that make up the slot number
_HEX_PREFIX = re.compile(r"\s*([+-]?)(?:0[xX](?=[0-9a-fA-F]))?([0-9a-fA-F]+)")


@dataclass(frozen=True)
class Credential:
    """Session token plus the Unix time it stops being trusted."""
    token: str
    valid_until: int

    def is_valid(self, now: int) -> bool:
        return self.valid_until > now

    def to_dict(self) -> Dict[str, Any]:
        """On-disk representation (latest_token.json)."""
        return {"token": self.token, "validUntil": self.valid_until}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        return cls(token=str(data["token"]), valid_until=int(data["validUntil"]))


@dataclass(frozen=True)
class MachineInfo:
    """
    One vending machine from getmachines.json.

    Identity is `id`; `guid` addresses the machine in curstate requests and
    `comment` is the human-readable name shown to operators.
    """
    id: int
    guid: str
    comment: str
    online: bool
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "MachineInfo":
        status = (data.get("device") or {}).get("status") or {}
        return cls(
            id=int(data["id"]),
            guid=data["guid"],
            comment=data.get("comment") or "",
            # Only an explicit false marks a machine offline
            online=status.get("online") is not False,
            raw=data,
        )


@dataclass
class ProductState:
    """One product slot; `selection` is a hex slot code such as "1A"."""
    selection: str
    name: str
    vends: int
    price: int = 0
    level: int = 0
    max: int = 0
    blocked: bool = False
    disabled: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def slot_number(self) -> Optional[int]:
        """
        Numeric value of the leading hex digits of `selection` ("1A" -> 26,
        "1G" -> 1). None when the code does not start with a hex digit.
        """
        match = _HEX_PREFIX.match(self.selection)
        if not match:
            return None
        value = int(match.group(2), 16)
        return -value if match.group(1) == "-" else value

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ProductState":
        return cls(
            selection=str(data["selection"]),
            name=data.get("name") or "",
            vends=int(data.get("vends") or 0),
            price=int(data.get("price") or 0),
            level=int(data.get("level") or 0),
            max=int(data.get("max") or 0),
            blocked=bool(data.get("blocked", False)),
            disabled=bool(data.get("disabled", False)),
            raw=data,
        )


@dataclass
class CurrentState:
    """Live state of one machine from curstate.json. Money counters are in minor units."""
    machine_guid: str
    products: List[ProductState] = field(default_factory=list)
    bills: int = 0
    cashbox: int = 0
    vends_count: int = 0
    vends_cost: int = 0
    state: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def cash_total(self) -> float:
        """Banknote total in major units."""
        return self.bills / 100

    @classmethod
    def from_api(cls, data: Dict[str, Any], machine_guid: Optional[str] = None) -> "CurrentState":
        return cls(
            machine_guid=machine_guid or data.get("vmguid", ""),
            products=[ProductState.from_api(p) for p in data.get("products") or []],
            bills=int(data.get("bills") or 0),
            cashbox=int(data.get("cashbox") or 0),
            vends_count=int(data.get("vendscount") or 0),
            vends_cost=int(data.get("vendscost") or 0),
            state=data.get("state") or "",
            raw=data,
        )


@dataclass
class OfflineReport:
    """Outcome of an offline check. `message` is None when every machine is online."""
    offline: List[MachineInfo] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def all_online(self) -> bool:
        return not self.offline
