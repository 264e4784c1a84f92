"""
Config publisher — collect every configured device and publish to Kafka.

Usage: config-pub --config /etc/config-pub/config.yaml [--once]
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from typing import Optional, Protocol

from errors import ConfigError, PublishError
from inventory import HostResolved, KafkaConfig, PublisherConfig, load_config
from models import CollectionMessage

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/config-pub/config.yaml"
SEND_TIMEOUT = 30.0


class Collector(Protocol):
    def collect(self, host: HostResolved) -> CollectionMessage: ...


def parse_acks(value: str) -> int | str:
    """kafka-python acks setting for a configured required_acks value."""
    v = (value or "").lower()
    if v in ("none", "0"):
        return 0
    if v in ("one", "1"):
        return 1
    return "all"


def message_key(host: HostResolved) -> str:
    return host.name or host.address


class KafkaPublisher:
    """Publish CollectionMessages as JSON, keyed by host so per-device order holds."""

    def __init__(self, cfg: KafkaConfig, producer=None):
        if not cfg.brokers:
            raise ConfigError("kafka brokers are required")
        if not cfg.topic:
            raise ConfigError("kafka topic is required")
        self.topic = cfg.topic
        self.max_message_size = cfg.max_message_size

        if producer is None:
            from kafka import KafkaProducer

            if cfg.create_topic:
                ensure_topic(cfg)
            producer = KafkaProducer(
                bootstrap_servers=cfg.brokers,
                acks=parse_acks(cfg.required_acks),
                linger_ms=int(cfg.batch_timeout * 1000),
                max_request_size=max(cfg.max_message_size, 1024 * 1024),
            )
        self._producer = producer

    def publish(self, host: HostResolved, msg: Optional[CollectionMessage]) -> None:
        if msg is None:
            raise PublishError("nil message")

        payload = msg.model_dump_json().encode("utf-8")
        if self.max_message_size > 0 and len(payload) > self.max_message_size:
            raise PublishError(f"message too large: {len(payload)} bytes (max {self.max_message_size})")

        future = self._producer.send(
            self.topic,
            key=message_key(host).encode("utf-8"),
            value=payload,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            future.get(timeout=SEND_TIMEOUT)
        except Exception as exc:
            raise PublishError(f"kafka send failed: {exc}") from exc

    def close(self) -> None:
        self._producer.flush()
        self._producer.close()


def ensure_topic(cfg: KafkaConfig) -> None:
    """Create the topic if it is missing. An existing topic is fine."""
    from kafka.admin import KafkaAdminClient, NewTopic
    from kafka.errors import TopicAlreadyExistsError

    admin = KafkaAdminClient(bootstrap_servers=cfg.brokers, request_timeout_ms=10000)
    try:
        admin.create_topics([NewTopic(
            name=cfg.topic,
            num_partitions=cfg.topic_partitions,
            replication_factor=cfg.topic_replication_factor,
        )])
        logger.info("created kafka topic %s", cfg.topic)
    except TopicAlreadyExistsError:
        pass
    finally:
        admin.close()


def run_cycle(
    hosts: list[HostResolved],
    collector: Collector,
    publisher: KafkaPublisher,
    stop: Optional[threading.Event] = None,
) -> tuple[list[str], list[str]]:
    """
    Collect and publish each host in turn. Failures are logged and skipped.

    Returns (published host names, error strings).
    """
    logger.info("starting collection cycle")
    published: list[str] = []
    errors: list[str] = []

    for host in hosts:
        if stop is not None and stop.is_set():
            logger.info("stop requested, ending cycle early")
            break
        try:
            msg = collector.collect(host)
        except Exception as exc:
            logger.error("collect failed for %s (%s): %s", host.name, host.address, exc)
            errors.append(f"{host.name}: collect: {exc}")
            continue
        try:
            publisher.publish(host, msg)
        except Exception as exc:
            logger.error("kafka publish failed for %s (%s): %s", host.name, host.address, exc)
            errors.append(f"{host.name}: publish: {exc}")
            continue
        logger.info("published config for %s (%s)", host.name, host.address)
        published.append(host.name)

    return published, errors


def run_forever(
    cfg: PublisherConfig,
    collector: Collector,
    publisher: KafkaPublisher,
    stop: threading.Event,
) -> None:
    """Run a cycle now, then one per interval until stopped. Cycles never overlap."""
    run_cycle(cfg.resolved_hosts(), collector, publisher, stop)
    if cfg.run_once:
        return
    while not stop.wait(cfg.interval):
        run_cycle(cfg.resolved_hosts(), collector, publisher, stop)


def install_signal_handlers(stop: threading.Event) -> None:
    def _handler(signum, frame):
        logger.info("signal received, shutting down")
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main(argv: Optional[list[str]] = None) -> int:
    from collectors import GnmiCollector

    parser = argparse.ArgumentParser(description="Publish gNMI config snapshots to Kafka")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config file")
    parser.add_argument("--once", action="store_true", help="Run a single collection cycle and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    try:
        cfg = load_config(args.config)
    except (OSError, ConfigError) as exc:
        logger.error("load config: %s", exc)
        return 1
    if args.once:
        cfg.run_once = True

    try:
        publisher = KafkaPublisher(cfg.kafka)
    except Exception as exc:
        logger.error("init kafka publisher: %s", exc)
        return 1

    stop = threading.Event()
    install_signal_handlers(stop)
    try:
        run_forever(cfg, GnmiCollector(), publisher, stop)
    finally:
        publisher.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
