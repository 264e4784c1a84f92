"""
gNMI Collector — one Get round trip per device, flattened into a CollectionMessage.

The transport pieces (grpc, generated gNMI stubs) are imported lazily so the
normalizer can be used and tested without them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from errors import MalformedPath
from inventory import HostResolved
from models import CollectionMessage, ConfigUpdate, TypedValue
from parsers.gnmi_path import (
    GnmiPath, build_paths, parse_path, path_from_proto, path_to_proto, path_to_string,
)
from parsers.typed_value import decode_typed_value, typed_value_from_proto

logger = logging.getLogger(__name__)

_ENCODINGS = {
    "json": "JSON",
    "bytes": "BYTES",
    "proto": "PROTO",
    "ascii": "ASCII",
}

_DATA_TYPES = {
    "state": "STATE",
    "operational": "STATE",
    "all": "ALL",
}


def encoding_name(encoding: str) -> str:
    """gNMI Encoding enum name for a configured encoding (default JSON_IETF)."""
    return _ENCODINGS.get((encoding or "").lower(), "JSON_IETF")


def data_type_name(kind: str) -> str:
    """GetRequest.DataType enum name for a configured request type (default CONFIG)."""
    return _DATA_TYPES.get((kind or "").lower(), "CONFIG")


def _path_string(path: str | GnmiPath | None) -> str:
    if path is None or isinstance(path, GnmiPath):
        return path_to_string(path)
    try:
        return path_to_string(parse_path(path))
    except MalformedPath as exc:
        logger.warning("keeping unparseable update path %r: %s", path, exc)
        return path


def normalize_response(
    updates: Iterable[tuple[str | GnmiPath | None, Optional[TypedValue]]],
    *,
    target: str,
    address: str,
    encoding: str,
    request_type: str,
    timestamp: Optional[datetime] = None,
) -> CollectionMessage:
    """Build a CollectionMessage from ordered (path, value) pairs."""
    msg = CollectionMessage(
        timestamp=timestamp or datetime.now(timezone.utc),
        target=target,
        address=address,
        encoding=encoding,
        type=request_type,
    )

    for path, typed in updates:
        value, value_type = decode_typed_value(typed)
        msg.updates.append(ConfigUpdate(path=_path_string(path), value=value, value_type=value_type))

    if not msg.updates:
        msg.updates.append(ConfigUpdate(path="/", value={}, value_type="empty"))

    return msg


class GnmiCollector:
    """Collect configuration from gNMI targets with a Get request."""

    def collect(self, host: HostResolved) -> CollectionMessage:
        import grpc
        from pygnmi.spec.v080 import gnmi_pb2, gnmi_pb2_grpc

        request_paths = build_paths(host.paths)
        request = gnmi_pb2.GetRequest(
            prefix=gnmi_pb2.Path(target=host.target),
            path=[path_to_proto(p, gnmi_pb2) for p in request_paths],
            type=gnmi_pb2.GetRequest.DataType.Value(data_type_name(host.type)),
            encoding=gnmi_pb2.Encoding.Value(encoding_name(host.encoding)),
        )

        metadata = []
        if host.username or host.password:
            metadata = [("username", host.username), ("password", host.password)]

        channel = self._dial(grpc, host)
        try:
            stub = gnmi_pb2_grpc.gNMIStub(channel)
            response = stub.Get(request, metadata=metadata, timeout=host.request_timeout)
        finally:
            channel.close()

        pairs = [
            (path_from_proto(update.path), typed_value_from_proto(update.val))
            for notification in response.notification
            for update in notification.update
        ]
        msg = normalize_response(
            pairs,
            target=host.target,
            address=host.address,
            encoding=host.encoding,
            request_type=host.type,
        )
        logger.info("[%s] collected %d updates", host.name, len(msg.updates))
        return msg

    @staticmethod
    def _dial(grpc, host: HostResolved):
        if host.insecure:
            channel = grpc.insecure_channel(host.address)
        else:
            channel = grpc.secure_channel(host.address, _channel_credentials(grpc, host))
        try:
            grpc.channel_ready_future(channel).result(timeout=host.dial_timeout)
        except grpc.FutureTimeoutError:
            channel.close()
            raise ConnectionError(f"dial {host.address}: timed out after {host.dial_timeout}s")
        return channel


def _read_file(path: str) -> Optional[bytes]:
    if not path:
        return None
    with open(path, "rb") as f:
        return f.read()


def _channel_credentials(grpc, host: HostResolved):
    if host.tls.insecure_skip_verify:
        logger.warning("[%s] insecure_skip_verify is not supported by grpc; verifying with configured CA", host.name)
    return grpc.ssl_channel_credentials(
        root_certificates=_read_file(host.tls.ca_file),
        private_key=_read_file(host.tls.key_file),
        certificate_chain=_read_file(host.tls.cert_file),
    )
