"""Decode gNMI TypedValues into plain Python values plus a type tag."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Optional

from models import AnyValue, Decimal64, TypedValue

logger = logging.getLogger(__name__)

# Variant field -> tag for values that pass through unchanged
_SCALAR_TAGS = {
    "string_val": "string",
    "int_val": "int",
    "uint_val": "uint",
    "bool_val": "bool",
    "float_val": "float",
    "double_val": "float",
    "ascii_val": "ascii",
}


def decode_typed_value(value: Optional[TypedValue]) -> tuple[Any, str]:
    """
    Return (value, tag) for a TypedValue. Never raises.

    Decimal values with precision 0 come back as the raw integer digits;
    bytes and Any payloads come back base64-encoded so the result stays
    JSON-serializable.
    """
    if value is None:
        return None, "nil"

    variant = value.which()
    if variant is None:
        extra = value.model_extra or {}
        for name, raw in extra.items():
            if raw is not None:
                return _unknown(name, raw), "unknown"
        return None, "nil"

    raw = getattr(value, variant)

    if variant in _SCALAR_TAGS:
        return raw, _SCALAR_TAGS[variant]
    if variant == "decimal_val":
        return _decimal(raw), "decimal"
    if variant == "bytes_val":
        return _b64(raw), "bytes"
    if variant == "json_val":
        return decode_json(raw), "json"
    if variant == "json_ietf_val":
        return decode_json(raw), "json_ietf"
    if variant == "leaflist_val":
        return [decode_typed_value(elem)[0] for elem in raw], "leaflist"
    if variant == "any_val":
        return {"@type": raw.type_url, "value": _b64(raw.value)}, "any"

    return _unknown(variant, raw), "unknown"


def decode_json(raw: bytes | str) -> Any:
    """Decode a JSON payload; empty becomes {}, invalid JSON stays as text."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("value is not valid JSON, keeping raw text")
        return raw


def _decimal(dec: Decimal64) -> int | float:
    if dec.precision == 0:
        return dec.digits
    return dec.digits / (10 ** dec.precision)


def _b64(raw: bytes | str) -> str:
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def _unknown(name: str, raw: Any) -> dict:
    return {"@type": name, "value": _jsonable(raw)}


def _jsonable(raw: Any) -> Any:
    if raw is None or isinstance(raw, (str, int, float, bool)):
        return raw
    if isinstance(raw, bytes):
        return _b64(raw)
    if isinstance(raw, dict):
        return {str(k): _jsonable(v) for k, v in raw.items()}
    if isinstance(raw, (list, tuple)):
        return [_jsonable(v) for v in raw]
    if hasattr(raw, "model_dump"):
        return raw.model_dump(mode="json")
    if hasattr(raw, "DESCRIPTOR"):
        from google.protobuf import json_format
        try:
            return json_format.MessageToDict(raw)
        except Exception as exc:
            logger.debug("could not render %s as JSON: %s", type(raw).__name__, exc)
    return str(raw)


def typed_value_from_proto(pb) -> Optional[TypedValue]:
    """Convert a protobuf gnmi.TypedValue into the TypedValue model."""
    if pb is None:
        return None

    variant = pb.WhichOneof("value")
    if variant is None:
        return TypedValue()

    raw = getattr(pb, variant)
    if variant == "decimal_val":
        return TypedValue(decimal_val=Decimal64(digits=raw.digits, precision=raw.precision))
    if variant == "leaflist_val":
        return TypedValue(leaflist_val=[typed_value_from_proto(e) for e in raw.element])
    if variant == "any_val":
        return TypedValue(any_val=AnyValue(type_url=raw.type_url, value=raw.value))
    # Known scalars validate into their fields; anything else lands in extras
    return TypedValue(**{variant: raw})
