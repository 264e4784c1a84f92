"""Tests for the gNMI path codec."""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from errors import MalformedPath
from parsers.gnmi_path import (
    GnmiPath, PathElem, build_paths, parse_path, path_from_proto, path_to_string,
)


class TestParsePath:

    def test_empty_and_root(self):
        assert parse_path("") == GnmiPath()
        assert parse_path("/") == GnmiPath()
        assert parse_path("   /  ") == GnmiPath()

    def test_simple_elements(self):
        path = parse_path("/interfaces/interface/config")
        assert [e.name for e in path.elems] == ["interfaces", "interface", "config"]
        assert all(e.keys == {} for e in path.elems)

    def test_without_leading_slash(self):
        assert parse_path("a/b") == parse_path("/a/b")

    def test_module_prefixed_name(self):
        path = parse_path("/Cisco-IOS-XR-shellutil-cfg:host-names")
        assert path.elems == [PathElem(name="Cisco-IOS-XR-shellutil-cfg:host-names")]

    def test_keys(self):
        path = parse_path("/network-instances/network-instance[name=default][type=DEFAULT]/protocols")
        assert path.elems[1] == PathElem("network-instance", {"name": "default", "type": "DEFAULT"})
        assert path.elems[2].name == "protocols"

    def test_key_value_with_slashes(self):
        path = parse_path("/interfaces/interface[name=GigabitEthernet0/0/0/0]/state")
        assert len(path.elems) == 3
        assert path.elems[1].keys == {"name": "GigabitEthernet0/0/0/0"}

    def test_unclosed_bracket_keeps_later_elements(self):
        path = parse_path("/a[k=v/b/c")
        assert [e.name for e in path.elems] == ["a", "b", "c"]
        assert path.elems[0].keys == {}

    def test_nested_open_bracket_keeps_later_elements(self):
        path = parse_path("/a[k=[x]/b")
        assert [e.name for e in path.elems] == ["a", "b"]

    def test_empty_segments_skipped(self):
        assert parse_path("/a//b/") == parse_path("/a/b")

    def test_empty_name_is_malformed(self):
        with pytest.raises(MalformedPath):
            parse_path("/a/[name=x]")

    def test_malformed_is_value_error(self):
        with pytest.raises(ValueError):
            parse_path("[k=v]")


class TestPathToString:

    def test_empty_path(self):
        assert path_to_string(GnmiPath()) == "/"
        assert path_to_string(None) == "/"

    def test_keys_sorted(self):
        path = GnmiPath([PathElem("ni", {"type": "DEFAULT", "name": "default"})])
        assert path_to_string(path) == "/ni[name=default][type=DEFAULT]"

    def test_nameless_element(self):
        assert path_to_string(GnmiPath([PathElem("")])) == "/"

    def test_str(self):
        assert str(parse_path("/a/b[k=v]")) == "/a/b[k=v]"


@pytest.mark.parametrize("raw", [
    "/",
    "/Cisco-IOS-XR-ipv4-bgp-cfg:bgp",
    "/a/b[z=1][a=2]/c",
    "/interfaces/interface[name=MgmtEth0/RP0/CPU0/0]/config/description",
])
def test_round_trip(raw):
    once = path_to_string(parse_path(raw))
    assert parse_path(once) == parse_path(raw)
    assert path_to_string(parse_path(once)) == once


def test_key_order_does_not_matter():
    a = parse_path("/x[b=2][a=1]")
    b = parse_path("/x[a=1][b=2]")
    assert a == b
    assert path_to_string(a) == path_to_string(b) == "/x[a=1][b=2]"


def test_build_paths_stops_on_first_bad_path():
    assert len(build_paths(["/a", "/b[k=v]"])) == 2
    with pytest.raises(MalformedPath):
        build_paths(["/a", "/[k=v]"])


def _pb_elem(name, /, **keys):
    return SimpleNamespace(name=name, key=keys)


def test_path_from_proto_structured():
    pb = SimpleNamespace(elem=[_pb_elem("interfaces"), _pb_elem("interface", name="Loopback0")], element=[])
    assert path_to_string(path_from_proto(pb)) == "/interfaces/interface[name=Loopback0]"


def test_path_from_proto_legacy_elements():
    pb = SimpleNamespace(elem=[], element=["interfaces", "interface"])
    assert path_to_string(path_from_proto(pb)) == "/interfaces/interface"


def test_path_from_proto_none():
    assert path_to_string(path_from_proto(None)) == "/"
