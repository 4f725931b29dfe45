#!/usr/bin/env python3
"""
Prometheus exporter for the KPN Experia Box V10 router.

Authenticates against the router's web services API and exports WAN connection
status plus per-interface MIB values and network device counters. Every scrape
emits the full set of metric families; missing data shows up as zero or "Unknown"
placeholders and as error counters, never as absent series.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import Iterable, Iterator, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server
from prometheus_client.core import Metric

from experia_router_client import DEFAULT_TIMEOUT, RouterClient
from experia_router_client_exceptions import (
    AuthenticationException,
    ConfigException,
    FetchException,
    ParseException,
)
from experia_router_models import (
    DEFAULT_NETDEV_CANDIDATES,
    InterfaceCandidate,
    NETDEV_STAT_FIELDS,
    NetDevStats,
    UNKNOWN_CONNECTION_STATE,
    WanStatus,
)
from experia_router_parser import parse_mibs, parse_netdev_stats, parse_wan_status
from experia_router_prometheus_utils import MetricDescriptor, ScrapeFamilies, b, zero_families
from experia_router_services import mibs_body, netdev_stats_body, wan_status_body
from experia_router_utils import mask_token, parse_candidates, parse_listen_addr, parse_router_ip, parse_timeout

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

METRIC_PREFIX = "experia_v10_"

WAN_CONNECTION = MetricDescriptor(
    METRIC_PREFIX + "internet_connection",
    "The internet connection status",
    ("link_type", "protocol", "connection_state", "ip", "mac"),
)

# Per-interface values from getMIBs
NETDEV_UP = MetricDescriptor(METRIC_PREFIX + "netdev_up", "1 if the network device is up")
NETDEV_MTU = MetricDescriptor(METRIC_PREFIX + "netdev_mtu", "MTU of the network device")
NETDEV_TX_QUEUE_LEN = MetricDescriptor(METRIC_PREFIX + "netdev_tx_queue_len",
                                       "Tx queue length of the network device")
NETDEV_SPEED_MBPS = MetricDescriptor(METRIC_PREFIX + "netdev_speed_mbps",
                                     "Current bit rate of the device in Mbps")
NETDEV_LAST_CHANGE = MetricDescriptor(METRIC_PREFIX + "netdev_last_change_seconds",
                                      "LastChange time reported by the device (seconds)")
NETDEV_INFO = MetricDescriptor(
    METRIC_PREFIX + "netdev_info",
    "Static info about the netdev (value is always 1), labels: alias, flags, lladdr, type",
    ("ifname", "alias", "flags", "lladdr", "type"),
)

# Port parameters from getMIBs
PORT_CURRENT_BITRATE = MetricDescriptor(METRIC_PREFIX + "netdev_port_current_bitrate_mbps",
                                        "Current port bit rate in Mbps")
PORT_MAX_BITRATE_SUPPORTED = MetricDescriptor(METRIC_PREFIX + "netdev_port_max_bitrate_supported_mbps",
                                              "Maximum bit rate supported by the port in Mbps")
PORT_MAX_BITRATE_ENABLED = MetricDescriptor(METRIC_PREFIX + "netdev_port_max_bitrate_enabled_mbps",
                                            "Maximum bit rate enabled on the port in Mbps")
PORT_DUPLEX_ENABLED = MetricDescriptor(METRIC_PREFIX + "netdev_port_duplex_enabled",
                                       "1 if duplex mode is enabled on the port")
PORT_INFO = MetricDescriptor(
    METRIC_PREFIX + "netdev_port_info",
    "Port mapping info (value is always 1), labels: set_port, duplex_mode",
    ("ifname", "set_port", "duplex_mode"),
)

# Per-interface counters from getNetDevStats
NETDEV_STATS: dict[str, MetricDescriptor] = {
    f.key: MetricDescriptor(METRIC_PREFIX + f.metric, f.documentation)
    for f in NETDEV_STAT_FIELDS
}

MIB_NUMERIC_DESCRIPTORS = (NETDEV_UP, NETDEV_MTU, NETDEV_TX_QUEUE_LEN, NETDEV_SPEED_MBPS, NETDEV_LAST_CHANGE)
PORT_NUMERIC_DESCRIPTORS = (PORT_CURRENT_BITRATE, PORT_MAX_BITRATE_SUPPORTED, PORT_MAX_BITRATE_ENABLED,
                            PORT_DUPLEX_ENABLED)

PER_INTERFACE_DESCRIPTORS: tuple[MetricDescriptor, ...] = (
    *MIB_NUMERIC_DESCRIPTORS,
    NETDEV_INFO,
    *PORT_NUMERIC_DESCRIPTORS,
    PORT_INFO,
    *NETDEV_STATS.values(),
)

ALL_DESCRIPTORS: tuple[MetricDescriptor, ...] = (WAN_CONNECTION, *PER_INTERFACE_DESCRIPTORS)

WAN_PLACEHOLDER_LABELS = ("", "", UNKNOWN_CONNECTION_STATE, "", "")


class RouterMetricsCollector:
    """
    Custom Prometheus collector; every collect() call is one scrape cycle.

    Error counters, the up gauge and the scrape duration histogram belong to the
    instance and are exported through this collector, so several collectors can
    live in one process without sharing state.
    """

    def __init__(self, client: RouterClient, candidates: Optional[Iterable[str]] = None,
                 registry: Optional[CollectorRegistry] = None):
        self.client = client
        self.candidates = InterfaceCandidate.from_ids(candidates or DEFAULT_NETDEV_CANDIDATES)

        self.up = Gauge(
            METRIC_PREFIX + "up",
            "Shows if the Experia Box V10 is deemed up by the collector.",
            registry=None,
        )
        self.auth_errors = Counter(
            METRIC_PREFIX + "auth_errors_total",
            "Counts number of authentication errors encountered by the collector.",
            registry=None,
        )
        self.scrape_errors = Counter(
            METRIC_PREFIX + "scrape_errors_total",
            "Counts the number of scrape errors by this collector.",
            registry=None,
        )
        self.permission_errors = Counter(
            METRIC_PREFIX + "permission_errors_total",
            "Counts the number of permission denied errors from the modem API.",
            registry=None,
        )
        self.scrape_duration = Histogram(
            METRIC_PREFIX + "scrape_duration_seconds",
            "Time spent scraping router metrics",
            registry=None,
        )

        if registry is not None:
            registry.register(self)

    def _own_metrics(self):
        return self.up, self.auth_errors, self.scrape_errors, self.permission_errors, self.scrape_duration

    def describe(self) -> Iterator[Metric]:
        for d in ALL_DESCRIPTORS:
            yield d.family()
        for m in self._own_metrics():
            yield from m.describe()

    def collect(self) -> Iterator[Metric]:
        with self.scrape_duration.time():
            families = self.scrape()
        yield from families.non_empty()
        for m in self._own_metrics():
            yield from m.collect()

    def scrape(self) -> ScrapeFamilies:
        """Run one scrape cycle and return the populated metric families."""
        families = ScrapeFamilies(ALL_DESCRIPTORS)

        if not self._ensure_session():
            families.add(WAN_CONNECTION, WAN_PLACEHOLDER_LABELS, 0.0)
            return families

        wan = self._collect_wan_status(families)
        wan_mac = wan.mac_address if wan is not None else ""

        for candidate in self.candidates:
            if self._collect_mibs(families, candidate, wan_mac):
                self._collect_netdev_stats(families, candidate)
            else:
                zero_families(families, NETDEV_STATS.values(), candidate.label)

        logger.debug(f"Scrape finished for {len(self.candidates)} interfaces")
        return families

    def _ensure_session(self) -> bool:
        if self.client.session_token:
            return True
        try:
            self.client.login()
        except AuthenticationException as e:
            logger.warning(f"Authentication failed: {e}")
            self.auth_errors.inc()
            self.up.set(0)
            return False
        return True

    def _fetch(self, body: str, what: str) -> bytes:
        try:
            raw = self.client.call(body)
        except FetchException as e:
            logger.warning(f"Failed to fetch {what}: {e}")
            self.scrape_errors.inc()
            return b""
        logger.debug(f"Raw {what} response ({len(raw)} bytes): {raw.decode('utf-8', errors='replace')}")
        return raw

    def _collect_wan_status(self, families: ScrapeFamilies) -> Optional[WanStatus]:
        raw = self._fetch(wan_status_body(), "getWANStatus")
        wan = None
        if raw:
            try:
                wan = parse_wan_status(raw)
            except ParseException as e:
                logger.warning(f"Undecodable getWANStatus response: {e}")
                self.scrape_errors.inc()

        if wan is None:
            self.up.set(0)
            families.add(WAN_CONNECTION, WAN_PLACEHOLDER_LABELS, 0.0)
            return None

        denied = wan.permission_denied_count
        if denied:
            logger.warning(f"getWANStatus reported {denied} permission denied error(s)")
            self.permission_errors.inc(denied)

        self.up.set(1)
        families.add(
            WAN_CONNECTION,
            (wan.link_type, wan.protocol, wan.connection_state_label, wan.ip_address, wan.mac_address),
            1.0 if wan.is_up else 0.0,
        )
        return wan

    def _collect_mibs(self, families: ScrapeFamilies, candidate: InterfaceCandidate, wan_mac: str) -> bool:
        """Emit MIB and port families for one candidate; False when placeholders were used."""
        label = candidate.label
        raw = self._fetch(mibs_body(candidate.device_id), f"getMIBs {candidate.device_id}")
        parsed = None
        if raw:
            try:
                parsed = parse_mibs(raw, candidate.device_id)
            except ParseException as e:
                logger.debug(f"Skipping undecodable getMIBs for {candidate.device_id}: {e}")

        if parsed is None:
            zero_families(families, MIB_NUMERIC_DESCRIPTORS, label)
            families.add(NETDEV_INFO, (label, "", "", "", ""), 1.0)
            zero_families(families, PORT_NUMERIC_DESCRIPTORS, label)
            families.add(PORT_INFO, (label, "", ""), 1.0)
            return False

        mib, port = parsed
        alias = mib.alias
        if not alias and wan_mac and mib.lladdr.lower() == wan_mac.lower():
            alias = "wan"

        families.add(NETDEV_UP, [label], mib.up)
        families.add(NETDEV_MTU, [label], mib.mtu)
        families.add(NETDEV_TX_QUEUE_LEN, [label], mib.tx_queue_len)
        families.add(NETDEV_SPEED_MBPS, [label], mib.speed_mbps)
        families.add(NETDEV_LAST_CHANGE, [label], mib.last_change)
        families.add(NETDEV_INFO, (label, alias, mib.flags, mib.lladdr, mib.type), 1.0)

        families.add(PORT_CURRENT_BITRATE, [label], port.current_bitrate)
        families.add(PORT_MAX_BITRATE_SUPPORTED, [label], port.max_bitrate_supported)
        families.add(PORT_MAX_BITRATE_ENABLED, [label], port.max_bitrate_enabled)
        families.add(PORT_DUPLEX_ENABLED, [label], b(port.duplex_mode_enabled))
        families.add(PORT_INFO, (label, port.set_port, port.current_duplex_mode), 1.0)

        logger.debug(f"[{label}] {candidate.device_id}: up={mib.up} mtu={mib.mtu} "
                     f"tx_queue_len={mib.tx_queue_len} speed={mib.speed_mbps}")
        return True

    def _collect_netdev_stats(self, families: ScrapeFamilies, candidate: InterfaceCandidate):
        raw = self._fetch(netdev_stats_body(candidate.device_id), f"getNetDevStats {candidate.device_id}")
        stats = None
        if raw:
            try:
                stats = parse_netdev_stats(raw)
            except ParseException as e:
                logger.debug(f"Skipping undecodable getNetDevStats for {candidate.device_id}: {e}")
        if stats is None:
            stats = NetDevStats()

        for f in NETDEV_STAT_FIELDS:
            families.add(NETDEV_STATS[f.key], [candidate.label], stats.get(f.key))


def check_login(client: RouterClient) -> int:
    """Log in once and print the session token and cookies held for the router."""
    try:
        client.login()
    except AuthenticationException as e:
        print(f"Login failed: {e}", file=sys.stderr)
        return 1
    print("Login succeeded")
    print(f"Session token: {mask_token(client.session_token)}")
    for url in (client.host, f"{client.host}/"):
        cookies = client.cookies_for_host(url)
        print(f"Found {len(cookies)} cookies for {url}")
        for c in cookies:
            print(f"Cookie: {c.name}={mask_token(c.value or '')}; Path={c.path}; Domain={c.domain}; "
                  f"Expires={c.expires}; Secure={c.secure}")
    return 0


def create_app(router_ip: str, username: str, password: str, timeout: float,
               listen_addr: str = ":9100", candidates: Optional[list[str]] = None):
    """
    Create and configure the Prometheus metrics exporter.

    Args:
        router_ip: Experia Box IP address
        username: Router web UI user
        password: Router web UI password
        timeout: Per-request timeout in seconds
        listen_addr: [host]:port to expose metrics on (default: ":9100")
        candidates: Upper-cased interface identifiers to probe (default: ETH0..ETH3)

    Returns:
        Callable that starts the exporter
    """
    addr, port = parse_listen_addr(listen_addr)

    def app():
        logger.info(f"Connecting to router at {router_ip}")
        client = RouterClient(router_ip, username, password, timeout=timeout)

        # Best effort; the collector logs in again on the first scrape if this fails
        try:
            client.login()
            logger.info("Initial login succeeded")
        except AuthenticationException as e:
            logger.warning(f"Initial login failed: {e}")

        registry = CollectorRegistry()
        collector = RouterMetricsCollector(client, candidates=candidates, registry=registry)
        logger.info(f"Probing interfaces: {', '.join(c.device_id for c in collector.candidates)}")

        start_http_server(port, addr=addr, registry=registry)
        logger.info(f"Metrics available at http://{addr}:{port}/metrics")

        try:
            while True:
                time.sleep(60)
        except KeyboardInterrupt:
            logger.info("Shutting down exporter")

    return app


def main():
    """Main entry point for the Prometheus exporter."""
    # Read defaults from environment variables
    default_router_ip = os.getenv("EXPERIA_V10_ROUTER_IP", "127.0.0.1")
    default_username = os.getenv("EXPERIA_V10_ROUTER_USERNAME", "")
    default_password = os.getenv("EXPERIA_V10_ROUTER_PASSWORD", "")
    default_timeout = os.getenv("EXPERIA_V10_TIMEOUT", f"{DEFAULT_TIMEOUT}s")
    default_listen_addr = os.getenv("EXPERIA_V10_LISTEN_ADDR", ":9100")
    default_interfaces = os.getenv("EXPERIA_EXPECT_NETDEV_IFACES", ",".join(DEFAULT_NETDEV_CANDIDATES))
    default_log_level = os.getenv("EXPERIA_V10_LOG_LEVEL", "INFO")

    parser = argparse.ArgumentParser(
        description="Prometheus exporter for Experia Box V10 router metrics",
        epilog="Environment variables can be used as defaults: "
               "EXPERIA_V10_ROUTER_IP, EXPERIA_V10_ROUTER_USERNAME, EXPERIA_V10_ROUTER_PASSWORD, "
               "EXPERIA_V10_TIMEOUT, EXPERIA_V10_LISTEN_ADDR, EXPERIA_EXPECT_NETDEV_IFACES, "
               "EXPERIA_V10_LOG_LEVEL"
    )
    parser.add_argument(
        "--router-ip",
        default=default_router_ip,
        help="Router IP address (default: 127.0.0.1) [env: EXPERIA_V10_ROUTER_IP]"
    )
    parser.add_argument(
        "--username",
        default=default_username,
        help="Router web UI username [env: EXPERIA_V10_ROUTER_USERNAME]"
    )
    parser.add_argument(
        "--password",
        default=default_password,
        help="Router web UI password [env: EXPERIA_V10_ROUTER_PASSWORD]"
    )
    parser.add_argument(
        "--timeout",
        default=default_timeout,
        help="Request timeout, e.g. 5s, 500ms or plain seconds (default: 5s) [env: EXPERIA_V10_TIMEOUT]"
    )
    parser.add_argument(
        "--listen-addr",
        default=default_listen_addr,
        help="Address to expose Prometheus metrics on (default: :9100) [env: EXPERIA_V10_LISTEN_ADDR]"
    )
    parser.add_argument(
        "--interfaces",
        default=default_interfaces,
        help="Comma separated interfaces to probe, in order; the first is exported as eth1, "
             "the second as eth2 and so on (default: ETH0,ETH1,ETH2,ETH3) [env: EXPERIA_EXPECT_NETDEV_IFACES]"
    )
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO) [env: EXPERIA_V10_LOG_LEVEL]"
    )
    parser.add_argument(
        "--check-login",
        action="store_true",
        help="Log in once, print the session token and cookies, then exit"
    )

    args = parser.parse_args()

    # Validate configuration before anything touches the network
    try:
        router_ip = parse_router_ip(args.router_ip)
        timeout = parse_timeout(args.timeout)
        parse_listen_addr(args.listen_addr)
    except ConfigException as e:
        parser.error(str(e))
    candidates = parse_candidates(args.interfaces)
    if not candidates:
        parser.error("--interfaces must name at least one interface")

    # Set logging level
    logging.getLogger().setLevel(getattr(logging, args.log_level))

    if args.check_login:
        sys.exit(check_login(RouterClient(router_ip, args.username, args.password, timeout=timeout)))

    # Create and run app
    app = create_app(router_ip, args.username, args.password, timeout, args.listen_addr, candidates)
    app()


if __name__ == "__main__":
    main()
