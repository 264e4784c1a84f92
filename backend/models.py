"""
Data models for the config pipeline.

Two families live here:
- gNMI-side input: TypedValue and its nested Decimal64/AnyValue, mirroring
  the protobuf oneof so the decoder can run without protobuf installed
- Bus-side output: ConfigUpdate and CollectionMessage, the JSON payload
  published once per device per collection cycle
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- gNMI Typed Values ---

class Decimal64(BaseModel):
    digits: int = 0
    precision: int = Field(0, ge=0)


class AnyValue(BaseModel):
    """google.protobuf.Any: a type URL and its packed bytes."""
    type_url: str = ""
    value: bytes = b""


class TypedValue(BaseModel):
    """One gNMI TypedValue. At most one variant field is expected to be set.

    Unknown variants (fields this model does not declare) are kept as
    extras so the decoder can still tag them.
    """
    model_config = ConfigDict(extra="allow")

    string_val: Optional[str] = None
    int_val: Optional[int] = None
    uint_val: Optional[int] = None
    bool_val: Optional[bool] = None
    float_val: Optional[float] = None
    double_val: Optional[float] = None
    decimal_val: Optional[Decimal64] = None
    ascii_val: Optional[str] = None
    bytes_val: Optional[bytes] = None
    json_val: Optional[bytes] = None
    json_ietf_val: Optional[bytes] = None
    leaflist_val: Optional[list["TypedValue"]] = None
    any_val: Optional[AnyValue] = None

    def which(self) -> Optional[str]:
        """Name of the first declared variant that is set, if any."""
        for name in VARIANTS:
            if getattr(self, name) is not None:
                return name
        return None


VARIANTS = (
    "string_val", "int_val", "uint_val", "bool_val", "float_val", "double_val",
    "decimal_val", "ascii_val", "bytes_val", "json_val", "json_ietf_val",
    "leaflist_val", "any_val",
)

VALUE_TYPES = frozenset({
    "string", "int", "uint", "bool", "float", "decimal", "ascii", "bytes",
    "json", "json_ietf", "leaflist", "any", "unknown", "nil", "empty",
})


# --- Bus Payload ---

class ConfigUpdate(BaseModel):
    path: str
    value: Any = None
    value_type: str


class CollectionMessage(BaseModel):
    """Everything collected from one device in one cycle."""
    timestamp: datetime
    target: str = ""
    address: str = ""
    encoding: str = ""
    type: str = ""
    updates: list[ConfigUpdate] = Field(default_factory=list)


# --- Collection Jobs ---

class CollectionJob(BaseModel):
    id: str
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    hosts: list[str] = Field(default_factory=list)
    published: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
