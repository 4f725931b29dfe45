"""
Response normalization for the NMC / NeMo web services.

Firmware releases disagree on nesting depth, key casing and where the per-interface
sections live, so everything here is tolerant: lookups that find nothing return None
and callers substitute placeholder values.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Optional

from experia_router_client_exceptions import ParseException
from experia_router_models import (
    ApiError,
    JsonObject,
    JsonValue,
    MibInfo,
    NETDEV_STAT_FIELDS,
    NetDevStats,
    NormalizedRecord,
    PortParams,
    WanStatus,
)
from experia_router_utils import as_bool, as_float, as_string, lookup

logger = logging.getLogger(__name__)

MAX_SEARCH_DEPTH = 8

SECTION_KEYS = ("base", "netdev")


def decode_document(raw: bytes | str | None) -> Optional[JsonObject]:
    if raw is None or len(raw) == 0:
        return None
    try:
        document = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
        raise ParseException(f"invalid JSON response: {e}") from e
    if not isinstance(document, dict):
        raise ParseException(f"expected a JSON object, got {type(document).__name__}")
    return document


def _find_section(node: JsonValue, depth: int) -> Optional[JsonObject]:
    if depth < 0:
        return None
    if isinstance(node, dict):
        if any(k in node for k in SECTION_KEYS):
            return node
        children = node.values()
    elif isinstance(node, list):
        children = node
    else:
        return None
    for child in children:
        found = _find_section(child, depth - 1)
        if found is not None:
            return found
    return None


def locate_status_section(document: Optional[JsonObject],
                          max_depth: int = MAX_SEARCH_DEPTH) -> Optional[JsonObject]:
    """
    Find the object carrying the per-interface `base` / `netdev` maps.

    Depth-first over the whole document, bounded by `max_depth` levels. When no such
    object exists, a literal top-level `status` or `data` object is returned instead.
    """
    if not isinstance(document, dict):
        return None
    found = _find_section(document, max_depth)
    if found is not None:
        return found
    for key in ("status", "data"):
        if isinstance(document.get(key), dict):
            return document[key]
    return None


def _match_entry(subsection: JsonValue, candidate: str) -> Optional[JsonObject]:
    if not isinstance(subsection, dict):
        return None
    wanted = candidate.lower()
    for k, v in subsection.items():
        if str(k).lower() == wanted and isinstance(v, dict):
            return v
    # firmware that omits explicit naming returns a single unnamed entry
    entries = [v for v in subsection.values() if isinstance(v, dict)]
    if len(subsection) == 1 and len(entries) == 1:
        return entries[0]
    return None


def extract_candidate_record(section: Optional[JsonObject], candidate: str) -> Optional[NormalizedRecord]:
    if not isinstance(section, dict):
        return None
    base_entry = _match_entry(section.get("base"), candidate)
    netdev_entry = _match_entry(section.get("netdev"), candidate)
    if base_entry is None and netdev_entry is None:
        return None
    record = NormalizedRecord()
    # netdev is applied last so its fields win on collision
    for entry in (base_entry, netdev_entry):
        if entry is not None:
            record.update(entry)
    return record


def extract_alias(section: Optional[JsonObject], candidate: str) -> str:
    if not isinstance(section, dict):
        return ""
    entry = _match_entry(section.get("alias"), candidate)
    return as_string(lookup(entry, "Alias")) or ""


def _base_entry(section: Optional[JsonObject], candidate: str) -> Optional[JsonObject]:
    if not isinstance(section, dict):
        return None
    return _match_entry(section.get("base"), candidate)


def interface_up(record: NormalizedRecord) -> float:
    """
    Explicit boolean Status takes precedence; NetDevState is consulted only without it.
    """
    status = record.get("Status")
    if isinstance(status, bool):
        return 1.0 if status else 0.0
    state = record.get_string("NetDevState")
    if state is not None and state.lower() == "up":
        return 1.0
    return 0.0


def _first_float(record: NormalizedRecord, *keys: str) -> float:
    for key in keys:
        value = record.get_float(key)
        if value is not None:
            return value
    return 0.0


def _first_string(record: NormalizedRecord, *keys: str) -> str:
    for key in keys:
        value = record.get_string(key)
        if value is not None:
            return value
    return ""


def build_mib_info(record: NormalizedRecord, alias: str = "") -> MibInfo:
    return MibInfo(
        up=interface_up(record),
        mtu=_first_float(record, "MTU"),
        tx_queue_len=_first_float(record, "TxQueueLen"),
        speed_mbps=_first_float(record, "CurrentBitRate", "CurrentBitRateMbps"),
        last_change=_first_float(record, "LastChangeTime"),
        alias=alias,
        flags=_first_string(record, "NetDevFlags", "Flags"),
        lladdr=_first_string(record, "LLAddress"),
        type=_first_string(record, "NetDevType"),
    )


def build_port_params(record: NormalizedRecord, section: Optional[JsonObject], candidate: str) -> PortParams:
    params = PortParams(
        current_bitrate=_first_float(record, "CurrentBitRate"),
        max_bitrate_supported=_first_float(record, "MaxBitRateSupported"),
        max_bitrate_enabled=_first_float(record, "MaxBitRateEnabled"),
        current_duplex_mode=_first_string(record, "CurrentDuplexMode"),
        duplex_mode_enabled=bool(record.get_bool("DuplexModeEnabled")),
    )
    # The web UI derives the switch port from the first key of base.<IF>.LLIntf
    ll_intf = lookup(_base_entry(section, candidate), "LLIntf")
    if isinstance(ll_intf, dict) and ll_intf:
        params.set_port = str(next(iter(ll_intf)))
    elif isinstance(ll_intf, str):
        params.set_port = ll_intf
    return params


def parse_mibs(raw: bytes | str | None, candidate: str) -> Optional[tuple[MibInfo, PortParams]]:
    """
    Decode a getMIBs response for one candidate.

    Returns None when the body is empty or holds no section for the candidate.
    Raises ParseException for undecodable JSON.
    """
    document = decode_document(raw)
    section = locate_status_section(document)
    record = extract_candidate_record(section, candidate)
    if record is None:
        return None
    alias = extract_alias(section, candidate)
    return build_mib_info(record, alias), build_port_params(record, section, candidate)


def parse_netdev_stats_record(document: Optional[JsonObject]) -> Optional[JsonObject]:
    if not isinstance(document, dict):
        return None
    for key in ("data", "status"):
        if isinstance(document.get(key), dict):
            return document[key]
    return document


def parse_netdev_stats(raw: bytes | str | None) -> Optional[NetDevStats]:
    record = parse_netdev_stats_record(decode_document(raw))
    if record is None:
        return None
    stats = NetDevStats()
    for f in NETDEV_STAT_FIELDS:
        value = as_float(lookup(record, f.key))
        if value is not None:
            stats.values[f.key] = value
    return stats


def _parse_errors(raw_errors: JsonValue) -> list[ApiError]:
    if not isinstance(raw_errors, list):
        return []
    errors = []
    for e in raw_errors:
        if not isinstance(e, dict):
            continue
        code = as_float(lookup(e, "error"))
        errors.append(ApiError(
            error=int(code) if code is not None and math.isfinite(code) else 0,
            description=as_string(lookup(e, "description")) or "",
            info=as_string(lookup(e, "info")) or "",
        ))
    return errors


def parse_wan_status(raw: bytes | str | None) -> Optional[WanStatus]:
    """
    Decode a getWANStatus response. None for an empty body, ParseException for bad JSON.
    """
    document = decode_document(raw)
    if document is None:
        return None
    data = lookup(document, "data")
    if not isinstance(data, dict):
        data = {}

    def text(key: str) -> str:
        return as_string(lookup(data, key)) or ""

    return WanStatus(
        status=as_bool(lookup(document, "status")) is True,
        link_type=text("LinkType"),
        mac_address=text("MACAddress"),
        protocol=text("Protocol"),
        connection_state=text("ConnectionState"),
        ip_address=text("IPAddress"),
        errors=_parse_errors(lookup(document, "errors")),
    )
