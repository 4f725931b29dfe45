from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from experia_router_utils import as_bool, as_float, as_string

JsonValue = Union[None, bool, int, float, str, list, dict]
JsonObject = dict[str, Any]

DEFAULT_NETDEV_CANDIDATES = ("ETH0", "ETH1", "ETH2", "ETH3")

PERMISSION_DENIED = "permission denied"

UNKNOWN_CONNECTION_STATE = "Unknown"


@dataclass
class SessionContext:
    token: str = ""


@dataclass(frozen=True)
class InterfaceCandidate:
    device_id: str
    """Upper-cased identifier used in NeMo.Intf.<ID> service names."""
    label: str
    """Stable ifname label (eth1..ethN), derived from list position only."""

    @classmethod
    def from_ids(cls, ids) -> list[InterfaceCandidate]:
        cleaned = [str(i).strip().upper() for i in ids if str(i).strip()]
        return [cls(device_id=d, label=f"eth{i + 1}") for i, d in enumerate(cleaned)]


class NormalizedRecord:
    """Flat, lower-cased view of one interface's getMIBs data."""

    def __init__(self, fields: Optional[dict] = None):
        self._fields: dict[str, JsonValue] = {}
        if fields:
            self.update(fields)

    def update(self, fields: dict):
        for k, v in fields.items():
            self._fields[str(k).lower()] = v

    def get(self, key: str) -> JsonValue:
        return self._fields.get(key.lower())

    def get_bool(self, key: str) -> Optional[bool]:
        return as_bool(self.get(key))

    def get_string(self, key: str) -> Optional[str]:
        return as_string(self.get(key))

    def get_float(self, key: str) -> Optional[float]:
        return as_float(self.get(key))

    def __repr__(self) -> str:
        return f"NormalizedRecord({self._fields!r})"


@dataclass
class ApiError:
    error: int
    description: str
    info: str


@dataclass
class WanStatus:
    status: bool
    link_type: str = ""
    mac_address: str = ""
    protocol: str = ""
    connection_state: str = ""
    ip_address: str = ""
    errors: list[ApiError] = field(default_factory=list)

    @property
    def is_up(self) -> bool:
        return self.status and self.connection_state == "Connected"

    @property
    def connection_state_label(self) -> str:
        return self.connection_state or UNKNOWN_CONNECTION_STATE

    @property
    def permission_denied_count(self) -> int:
        return sum(1 for e in self.errors if PERMISSION_DENIED in e.description.lower())


@dataclass
class MibInfo:
    up: float = 0.0
    mtu: float = 0.0
    tx_queue_len: float = 0.0
    speed_mbps: float = 0.0
    last_change: float = 0.0
    alias: str = ""
    flags: str = ""
    lladdr: str = ""
    type: str = ""


@dataclass
class PortParams:
    """Port parameters read from getMIBs (bit rates, duplex, LLIntf mapping)."""
    current_bitrate: float = 0.0
    max_bitrate_supported: float = 0.0
    max_bitrate_enabled: float = 0.0
    current_duplex_mode: str = ""
    duplex_mode_enabled: bool = False
    set_port: str = ""


@dataclass(frozen=True)
class NetDevStatField:
    key: str
    """Counter name as reported by getNetDevStats."""
    metric: str
    documentation: str


NETDEV_STAT_FIELDS: tuple[NetDevStatField, ...] = (
    NetDevStatField("RxPackets", "netdev_rx_packets_total", "Number of received packets"),
    NetDevStatField("TxPackets", "netdev_tx_packets_total", "Number of transmitted packets"),
    NetDevStatField("RxBytes", "netdev_rx_bytes_total", "Number of received bytes"),
    NetDevStatField("TxBytes", "netdev_tx_bytes_total", "Number of transmitted bytes"),
    NetDevStatField("RxErrors", "netdev_rx_errors_total", "Number of receive errors"),
    NetDevStatField("TxErrors", "netdev_tx_errors_total", "Number of transmit errors"),
    NetDevStatField("RxDropped", "netdev_rx_dropped_total", "Number of received dropped packets"),
    NetDevStatField("TxDropped", "netdev_tx_dropped_total", "Number of transmitted dropped packets"),
    NetDevStatField("Multicast", "netdev_multicast_total", "Number of multicast packets"),
    NetDevStatField("Collisions", "netdev_collisions_total", "Number of collisions"),
    NetDevStatField("RxLengthErrors", "netdev_rx_length_errors_total", "Rx length errors"),
    NetDevStatField("RxOverErrors", "netdev_rx_over_errors_total", "Rx over errors"),
    NetDevStatField("RxCrcErrors", "netdev_rx_crc_errors_total", "Rx CRC errors"),
    NetDevStatField("RxFrameErrors", "netdev_rx_frame_errors_total", "Rx frame errors"),
    NetDevStatField("RxFifoErrors", "netdev_rx_fifo_errors_total", "Rx FIFO errors"),
    NetDevStatField("RxMissedErrors", "netdev_rx_missed_errors_total", "Rx missed errors"),
    NetDevStatField("TxAbortedErrors", "netdev_tx_aborted_errors_total", "Tx aborted errors"),
    NetDevStatField("TxCarrierErrors", "netdev_tx_carrier_errors_total", "Tx carrier errors"),
    NetDevStatField("TxFifoErrors", "netdev_tx_fifo_errors_total", "Tx FIFO errors"),
    NetDevStatField("TxHeartbeatErrors", "netdev_tx_heartbeat_errors_total", "Tx heartbeat errors"),
    NetDevStatField("TxWindowErrors", "netdev_tx_window_errors_total", "Tx window errors"),
)


@dataclass
class NetDevStats:
    values: dict[str, float] = field(default_factory=dict)
    """Counter values keyed by NetDevStatField.key; missing counters read as 0."""

    def get(self, key: str) -> float:
        return self.values.get(key, 0.0)
