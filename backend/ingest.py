"""
Config ingest — consume collection messages and attach them to graph nodes.

Each Kafka record is decoded, its identity extracted, and the whole message
merged onto the matching IGP node (if the config has an IS-IS block) or BGP
node (if it has a BGP block). Anything that fails is logged and skipped.

Usage:
    config-ingest --message-server kafka:9092 \\
        --database-server http://arangodb:8529 --database-name jalapeno
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from enum import Enum
from typing import Optional, Protocol

from pydantic import ValidationError

from errors import MissingASN, MissingIdentity
from graph_store import (
    DEFAULT_BGP_COLLECTION, DEFAULT_IGP_COLLECTION,
    ArangoGraphStore, MemoryGraphStore, UpdateResult, connect_arango,
)
from models import CollectionMessage
from parsers.iosxr_config import extract_match_info
from publisher import install_signal_handlers

logger = logging.getLogger(__name__)

POLL_TIMEOUT_MS = 1000


class GraphStore(Protocol):
    def update_igp(self, router_id: Optional[str], hostname: Optional[str], update: dict) -> UpdateResult: ...
    def update_bgp(self, router_id: Optional[str], asn: int, update: dict) -> UpdateResult: ...


class IngestOutcome(str, Enum):
    STORED = "stored"
    NOT_MATCHED = "not_matched"
    STORE_ERROR = "store_error"
    INVALID_PAYLOAD = "invalid_payload"
    MISSING_IDENTITY = "missing_identity"
    MISSING_ASN = "missing_asn"
    NO_MARKERS = "no_markers"


def build_update_document(msg: CollectionMessage) -> dict:
    """Fields merged onto the matched node."""
    running_config = msg.model_dump(mode="json")
    return {
        "running_config": running_config,
        "config_ts": running_config["timestamp"],
        "config_source": {
            "target": msg.target,
            "address": msg.address,
        },
    }


def process_message(raw: bytes | str, store: GraphStore) -> IngestOutcome:
    """Decode one bus payload and apply it to the store."""
    try:
        msg = CollectionMessage.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("invalid payload: %s", exc)
        return IngestOutcome.INVALID_PAYLOAD

    try:
        info = extract_match_info(msg.updates)
    except MissingIdentity as exc:
        logger.warning("parse payload for target=%s: %s", msg.target, exc)
        return IngestOutcome.MISSING_IDENTITY

    update = build_update_document(msg)

    if info.has_isis:
        kind = "igp"
        result = store.update_igp(info.router_id, info.hostname, update)
        missing = f"igp node not found for router_id={info.router_id} hostname={info.hostname}"
    elif info.has_bgp:
        kind = "bgp"
        try:
            result = store.update_bgp(info.router_id, info.bgp_asn, update)
        except MissingASN:
            logger.warning("bgp payload missing ASN for router_id=%s hostname=%s",
                           info.router_id, info.hostname)
            return IngestOutcome.MISSING_ASN
        except MissingIdentity:
            logger.warning("bgp payload missing router_id for hostname=%s asn=%d",
                           info.hostname, info.bgp_asn)
            return IngestOutcome.MISSING_IDENTITY
        missing = f"bgp node not found for router_id={info.router_id} asn={info.bgp_asn}"
    else:
        logger.warning("payload missing IGP/BGP markers for target=%s", msg.target)
        return IngestOutcome.NO_MARKERS

    if result is UpdateResult.ERROR:
        logger.error("%s update failed for target=%s router_id=%s", kind, msg.target, info.router_id)
        return IngestOutcome.STORE_ERROR
    if result is UpdateResult.NOT_MATCHED:
        logger.warning(missing)
        return IngestOutcome.NOT_MATCHED

    logger.info("stored config for target=%s router_id=%s", msg.target, info.router_id)
    return IngestOutcome.STORED


def consume(consumer, store: GraphStore, stop: threading.Event) -> dict[IngestOutcome, int]:
    """Read records one at a time until stopped; returns outcome counts."""
    from kafka.errors import KafkaError

    counts: dict[IngestOutcome, int] = {}
    while not stop.is_set():
        try:
            batches = consumer.poll(timeout_ms=POLL_TIMEOUT_MS, max_records=1)
        except KafkaError as exc:
            logger.error("kafka read error: %s", exc)
            stop.wait(POLL_TIMEOUT_MS / 1000)
            continue
        for records in batches.values():
            for record in records:
                outcome = process_message(record.value, store)
                counts[outcome] = counts.get(outcome, 0) + 1
    return counts


def split_comma(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ingest gNMI config snapshots into the graph store")
    parser.add_argument("--message-server", default="", help="Kafka broker list (comma-separated)")
    parser.add_argument("--kafka-topic", default="gnmi-config", help="Kafka topic to consume")
    parser.add_argument("--kafka-group", default="config-ingest", help="Kafka consumer group id")
    parser.add_argument("--database-server", default="", help="ArangoDB endpoint, e.g. http://arangodb.jalapeno:8529")
    parser.add_argument("--database-name", default="", help="ArangoDB database name")
    parser.add_argument("--database-user", default="", help="ArangoDB username")
    parser.add_argument("--database-pass", default="", help="ArangoDB password")
    parser.add_argument("--database-user-file", default="", help="Path to ArangoDB username file")
    parser.add_argument("--database-pass-file", default="", help="Path to ArangoDB password file")
    parser.add_argument("--igp-collection", default=DEFAULT_IGP_COLLECTION, help="Arango IGP node collection")
    parser.add_argument("--bgp-collection", default=DEFAULT_BGP_COLLECTION, help="Arango BGP node collection")
    parser.add_argument("--memory-store", default="", help="Seed YAML for an in-memory store instead of ArangoDB")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    if not args.message_server or not args.kafka_topic:
        logger.error("message-server and kafka-topic are required")
        return 1

    try:
        if args.memory_store:
            store = MemoryGraphStore.from_yaml(args.memory_store, args.igp_collection, args.bgp_collection)
        else:
            if not args.database_server or not args.database_name:
                logger.error("database-server and database-name are required")
                return 1
            db = connect_arango(
                args.database_server, args.database_name,
                user=args.database_user, password=args.database_pass,
                user_file=args.database_user_file, password_file=args.database_pass_file,
            )
            store = ArangoGraphStore(db, args.igp_collection, args.bgp_collection)
    except Exception as exc:
        logger.error("graph store: %s", exc)
        return 1

    from kafka import KafkaConsumer

    consumer = KafkaConsumer(
        args.kafka_topic,
        bootstrap_servers=split_comma(args.message_server),
        group_id=args.kafka_group,
        auto_offset_reset="earliest",
        enable_auto_commit=True,
        auto_commit_interval_ms=1000,
    )

    stop = threading.Event()
    install_signal_handlers(stop)

    try:
        consume(consumer, store, stop)
    finally:
        consumer.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
