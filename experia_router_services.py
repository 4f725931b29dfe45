"""
JSON request bodies for the Experia Box V10 web services API.

Field names and casing must match what the firmware expects byte for byte.
"""

from __future__ import annotations

import json

LOGIN_SERVICE = "sah.Device.Information"
WAN_SERVICE = "NMC"
NEMO_INTF_SERVICE = "NeMo.Intf.{}"


def _body(service: str, method: str, parameters: dict | None = None) -> str:
    return json.dumps(
        {"service": service, "method": method, "parameters": parameters or {}},
        separators=(",", ":"),
    )


def login_body(username: str, password: str) -> str:
    return _body(LOGIN_SERVICE, "createContext", {
        "applicationName": "webui",
        "username": username,
        "password": password,
    })


def wan_status_body() -> str:
    return _body(WAN_SERVICE, "getWANStatus")


def mibs_body(candidate: str) -> str:
    return _body(NEMO_INTF_SERVICE.format(candidate.upper()), "getMIBs")


def netdev_stats_body(candidate: str) -> str:
    return _body(NEMO_INTF_SERVICE.format(candidate.upper()), "getNetDevStats")
