"""Parsers for gNMI paths, typed values and collected device config."""

from .gnmi_path import GnmiPath, PathElem, parse_path, path_to_string
from .typed_value import decode_typed_value
from .iosxr_config import MatchInfo, extract_match_info

__all__ = [
    "GnmiPath", "PathElem", "parse_path", "path_to_string",
    "decode_typed_value",
    "MatchInfo", "extract_match_info",
]
