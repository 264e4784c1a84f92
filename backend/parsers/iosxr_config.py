"""
Pull device identity and protocol markers out of a normalized IOS-XR config.

Only a handful of subtrees matter for matching a payload to a graph node:
  .../host-names                  → hostname
  .../interface-configurations    → Loopback0 (router_id), MgmtEth* (mgmt_ip)
  .../isis                        → IGP marker
  .../bgp                         → BGP marker + ASN
Everything else rides along untouched in running_config.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from errors import MalformedPath, MissingIdentity
from models import ConfigUpdate
from parsers.gnmi_path import parse_path

logger = logging.getLogger(__name__)

# Address-family containers that hold an interface's IPv4 addresses
IPV4_CONTAINERS = ("Cisco-IOS-XR-ipv4-io-cfg:ipv4-network", "ipv4-network")

LOOPBACK_NAME = "Loopback0"
MGMT_PREFIX = "MgmtEth"


@dataclass
class MatchInfo:
    """Identity recovered from one collection message."""
    hostname: Optional[str] = None
    router_id: Optional[str] = None      # Loopback0 IPv4
    mgmt_ip: Optional[str] = None
    has_isis: bool = False
    has_bgp: bool = False
    bgp_asn: int = 0                     # 0 = not found


def extract_match_info(updates: Iterable[ConfigUpdate]) -> MatchInfo:
    """
    Scan updates once, in order, and build a MatchInfo.

    Hostname and ASN keep the first value seen; router_id and mgmt_ip keep
    the last. Raises MissingIdentity if neither hostname nor router_id turns up.
    """
    info = MatchInfo()

    for update in updates:
        path = update.path.strip()
        try:
            parse_path(path)
        except MalformedPath as exc:
            logger.debug("ignoring update with unusable path: %s", exc)
            continue

        if path.endswith("/host-names"):
            if info.hostname is None:
                info.hostname = find_string(update.value, "host-name")
        elif path.endswith("/interface-configurations"):
            loopback, mgmt = _extract_interfaces(update.value)
            if loopback:
                info.router_id = loopback
            if mgmt:
                info.mgmt_ip = mgmt
        elif path.endswith("/isis"):
            info.has_isis = True
        elif path.endswith("/bgp"):
            info.has_bgp = True
            if info.bgp_asn == 0:
                info.bgp_asn = find_asn(update.value) or 0

    if not info.router_id and not info.hostname:
        raise MissingIdentity("missing router_id and hostname in config payload")

    return info


def _extract_interfaces(value: Any) -> tuple[Optional[str], Optional[str]]:
    if not isinstance(value, dict):
        return None, None
    entries = value.get("interface-configuration")
    if not isinstance(entries, list):
        return None, None

    loopback = None
    mgmt = None
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        if_name = entry.get("interface-name")
        if not isinstance(if_name, str):
            continue
        ipv4 = _primary_ipv4(entry)
        if not ipv4:
            continue
        if if_name == LOOPBACK_NAME:
            loopback = ipv4
        if if_name.startswith(MGMT_PREFIX):
            mgmt = ipv4
    return loopback, mgmt


def _primary_ipv4(entry: dict) -> Optional[str]:
    for container in IPV4_CONTAINERS:
        node = entry.get(container)
        for key in ("addresses", "primary", "address"):
            if not isinstance(node, dict):
                node = None
                break
            node = node.get(key)
        if isinstance(node, str) and node:
            return node
    return None


def find_string(tree: Any, key: str) -> Optional[str]:
    """Depth-first search for the first string value stored under `key`."""
    if isinstance(tree, dict):
        direct = tree.get(key)
        if isinstance(direct, str):
            return direct
        for item in tree.values():
            found = find_string(item, key)
            if found is not None:
                return found
    elif isinstance(tree, list):
        for item in tree:
            found = find_string(item, key)
            if found is not None:
                return found
    return None


def find_asn(tree: Any) -> Optional[int]:
    """
    Depth-first ASN search. In every map a nested `four-byte-as` container
    is tried before a direct positive `as`, then the remaining values.
    """
    if isinstance(tree, dict):
        if "four-byte-as" in tree:
            asn = find_asn(tree["four-byte-as"])
            if asn:
                return asn
        if "as" in tree:
            number = _to_int(tree["as"])
            if number is not None and number > 0:
                return number
        for item in tree.values():
            asn = find_asn(item)
            if asn:
                return asn
    elif isinstance(tree, list):
        for item in tree:
            asn = find_asn(item)
            if asn:
                return asn
    return None


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None
