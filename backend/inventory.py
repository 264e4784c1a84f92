"""
Inventory Loader — Parse the publisher YAML config into host/transport settings.

Layout:

    interval: 5m
    run_once: false
    kafka:
      brokers: [kafka:9092]
      topic: gnmi-config
    gnmi:
      username: cisco
      paths: [/Cisco-IOS-XR-shellutil-cfg:host-names]
    hosts:
      - name: xrd01
        address: 10.0.0.1:57400
        paths: [...]            # optional per-host override

Global gnmi settings act as defaults; each host may override credentials,
TLS, paths and request type. GNMI_USERNAME / GNMI_PASSWORD override the file.
"""

from __future__ import annotations

import os
import re
import yaml
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from errors import ConfigError

DEFAULT_INTERVAL = 300.0

_DURATION_RE = re.compile(r'(\d+(?:\.\d+)?)(ms|s|m|h)')
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any, default: float = 0.0) -> float:
    """Seconds from a number or a Go-style duration string like '1m30s'."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return default
    pos = 0
    total = 0.0
    for m in _DURATION_RE.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos != len(text):
        raise ConfigError(f"invalid duration: {value!r}")
    return total


@dataclass
class TLSConfig:
    ca_file: str = ""
    cert_file: str = ""
    key_file: str = ""
    insecure_skip_verify: bool = False

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> "TLSConfig":
        raw = raw or {}
        return cls(
            ca_file=raw.get("ca_file", ""),
            cert_file=raw.get("cert_file", ""),
            key_file=raw.get("key_file", ""),
            insecure_skip_verify=bool(raw.get("insecure_skip_verify", False)),
        )


@dataclass
class KafkaConfig:
    brokers: list[str] = field(default_factory=list)
    topic: str = ""
    batch_timeout: float = 0.5
    required_acks: str = "all"
    max_message_size: int = 5 * 1024 * 1024
    create_topic: bool = False
    topic_partitions: int = 1
    topic_replication_factor: int = 1

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> "KafkaConfig":
        raw = raw or {}
        brokers = raw.get("brokers") or []
        if isinstance(brokers, str):
            brokers = [b.strip() for b in brokers.split(",") if b.strip()]
        return cls(
            brokers=list(brokers),
            topic=raw.get("topic", ""),
            batch_timeout=parse_duration(raw.get("batch_timeout"), 0.5),
            required_acks=str(raw.get("required_acks") or "all"),
            max_message_size=int(raw.get("max_message_size") or 5 * 1024 * 1024),
            create_topic=bool(raw.get("create_topic", False)),
            topic_partitions=int(raw.get("topic_partitions") or 1),
            topic_replication_factor=int(raw.get("topic_replication_factor") or 1),
        )


@dataclass
class GNMIConfig:
    """Global gNMI defaults shared by every host."""
    username: str = ""
    password: str = ""
    dial_timeout: float = 10.0
    request_timeout: float = 20.0
    insecure: bool = False
    encoding: str = "json_ietf"
    paths: list[str] = field(default_factory=list)
    type: str = "config"
    tls: TLSConfig = field(default_factory=TLSConfig)

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> "GNMIConfig":
        raw = raw or {}
        return cls(
            username=raw.get("username", ""),
            password=raw.get("password", ""),
            dial_timeout=parse_duration(raw.get("dial_timeout"), 10.0),
            request_timeout=parse_duration(raw.get("request_timeout"), 20.0),
            insecure=bool(raw.get("insecure", False)),
            encoding=raw.get("encoding") or "json_ietf",
            paths=list(raw.get("paths") or []),
            type=raw.get("type") or "config",
            tls=TLSConfig.from_dict(raw.get("tls")),
        )


@dataclass
class HostResolved:
    """A host with every gNMI default applied — what the collector dials."""
    name: str
    address: str
    target: str = ""
    username: str = ""
    password: str = ""
    insecure: bool = False
    paths: list[str] = field(default_factory=lambda: ["/"])
    type: str = "config"
    encoding: str = "json_ietf"
    dial_timeout: float = 10.0
    request_timeout: float = 20.0
    tls: TLSConfig = field(default_factory=TLSConfig)


@dataclass
class HostConfig:
    name: str = ""
    address: str = ""
    target: str = ""
    username: str = ""
    password: str = ""
    insecure: Optional[bool] = None
    paths: list[str] = field(default_factory=list)
    type: str = ""
    tls: Optional[TLSConfig] = None

    @classmethod
    def from_dict(cls, raw: dict) -> "HostConfig":
        raw = raw or {}
        insecure = raw.get("insecure")
        return cls(
            name=raw.get("name", ""),
            address=raw.get("address", ""),
            target=raw.get("target", ""),
            username=raw.get("username", ""),
            password=raw.get("password", ""),
            insecure=None if insecure is None else bool(insecure),
            paths=list(raw.get("paths") or []),
            type=raw.get("type", ""),
            tls=TLSConfig.from_dict(raw["tls"]) if raw.get("tls") is not None else None,
        )

    def resolve(self, defaults: GNMIConfig) -> HostResolved:
        return HostResolved(
            name=self.name,
            address=self.address,
            target=self.target or self.name,
            username=self.username or defaults.username,
            password=self.password or defaults.password,
            insecure=defaults.insecure if self.insecure is None else self.insecure,
            paths=list(self.paths or defaults.paths or ["/"]),
            type=self.type or defaults.type,
            encoding=defaults.encoding,
            dial_timeout=defaults.dial_timeout,
            request_timeout=defaults.request_timeout,
            tls=replace(self.tls) if self.tls is not None else replace(defaults.tls),
        )


@dataclass
class PublisherConfig:
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    gnmi: GNMIConfig = field(default_factory=GNMIConfig)
    hosts: list[HostConfig] = field(default_factory=list)
    interval: float = DEFAULT_INTERVAL
    run_once: bool = False

    def get_host(self, name: str) -> Optional[HostConfig]:
        for host in self.hosts:
            if host.name == name:
                return host
        return None

    def resolved_hosts(self, names: Optional[list[str]] = None) -> list[HostResolved]:
        hosts = self.hosts
        if names:
            wanted = set(names)
            hosts = [h for h in hosts if h.name in wanted]
        return [h.resolve(self.gnmi) for h in hosts]

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> "PublisherConfig":
        raw = raw or {}
        interval = parse_duration(raw.get("interval"), DEFAULT_INTERVAL)
        return cls(
            kafka=KafkaConfig.from_dict(raw.get("kafka")),
            gnmi=GNMIConfig.from_dict(raw.get("gnmi")),
            hosts=[HostConfig.from_dict(h) for h in raw.get("hosts") or []],
            interval=interval if interval > 0 else DEFAULT_INTERVAL,
            run_once=bool(raw.get("run_once", False)),
        )


def load_config(path: str | Path) -> PublisherConfig:
    """Load, default and validate the publisher config file."""
    path = Path(path)
    with open(path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"{path}: {exc}") from exc

    if raw is not None and not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    cfg = PublisherConfig.from_dict(raw)

    if os.environ.get("GNMI_USERNAME"):
        cfg.gnmi.username = os.environ["GNMI_USERNAME"]
    if os.environ.get("GNMI_PASSWORD"):
        cfg.gnmi.password = os.environ["GNMI_PASSWORD"]

    if not cfg.hosts:
        raise ConfigError("no hosts configured")

    for host in cfg.hosts:
        if not host.name:
            host.name = host.address

    return cfg
