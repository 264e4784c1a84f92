"""Tests for the conditional graph updater."""

import copy
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import requests
from arango.exceptions import ArangoError

from errors import MissingASN, MissingIdentity
from graph_store import (
    ArangoGraphStore, MemoryGraphStore, UpdateResult, merge_document, read_credential,
)

FIXTURES = Path(__file__).parent / "fixtures"

UPDATE = {
    "running_config": {"target": "xrd01", "updates": [{"path": "/", "value": {}, "value_type": "empty"}]},
    "config_ts": "2026-10-17T08:30:00Z",
    "config_source": {"target": "xrd01", "address": "10.0.0.1:57400"},
}


class TestMergeDocument:

    def test_adds_and_overwrites(self):
        doc = {"_key": "1", "name": "old", "keep": 1}
        merge_document(doc, {"name": "new", "extra": [1, 2]})
        assert doc == {"_key": "1", "name": "new", "keep": 1, "extra": [1, 2]}

    def test_null_strips_field(self):
        doc = {"_key": "1", "stale": "x", "nested": {"a": 1, "b": 2}}
        merge_document(doc, {"stale": None, "nested": {"a": None}})
        assert doc == {"_key": "1", "nested": {"b": 2}}

    def test_nested_nulls_not_written(self):
        doc = {}
        merge_document(doc, {"new": {"a": None, "b": {"c": None, "d": 1}}})
        assert doc == {"new": {"b": {"d": 1}}}


class TestMemoryGraphStore:

    def setup_method(self):
        self.store = MemoryGraphStore.from_yaml(FIXTURES / "topology.yaml")

    def test_loads_topology(self):
        assert len(self.store.documents("igp_node")) == 2
        assert len(self.store.documents("bgp_node")) == 2
        assert self.store.get("bgp_node", "10.0.0.7")["asn"] == 65007

    def test_igp_by_router_id(self):
        result = self.store.update_igp("10.0.0.1", "ignored", UPDATE)
        assert result is UpdateResult.MATCHED
        doc = self.store.get("igp_node", "2_0_0_0000.0000.0001")
        assert doc["config_source"]["target"] == "xrd01"
        assert doc["name"] == "xrd01"

    def test_igp_router_id_takes_priority_over_name(self):
        result = self.store.update_igp("10.99.99.99", "xrd01", UPDATE)
        assert result is UpdateResult.NOT_MATCHED
        assert "running_config" not in self.store.get("igp_node", "2_0_0_0000.0000.0001")

    def test_igp_by_name_fallback(self):
        assert self.store.update_igp(None, "xrd02", UPDATE) is UpdateResult.MATCHED
        assert self.store.get("igp_node", "2_0_0_0000.0000.0002")["config_ts"] == UPDATE["config_ts"]

    def test_igp_needs_some_identity(self):
        with pytest.raises(MissingIdentity):
            self.store.update_igp("", None, UPDATE)
        assert self.store.queries == 0

    def test_bgp_match_requires_both_keys(self):
        assert self.store.update_bgp("10.0.0.1", 65007, UPDATE) is UpdateResult.NOT_MATCHED
        assert self.store.update_bgp("10.0.0.1", 65000, UPDATE) is UpdateResult.MATCHED

    def test_bgp_zero_asn_skips_without_query(self):
        with pytest.raises(MissingASN):
            self.store.update_bgp("10.0.0.1", 0, UPDATE)
        assert self.store.queries == 0

    def test_bgp_without_router_id(self):
        with pytest.raises(MissingIdentity):
            self.store.update_bgp(None, 65000, UPDATE)
        assert self.store.queries == 0

    def test_idempotent(self):
        self.store.update_igp("10.0.0.1", None, UPDATE)
        first = copy.deepcopy(self.store.get("igp_node", "2_0_0_0000.0000.0001"))
        assert self.store.update_igp("10.0.0.1", None, UPDATE) is UpdateResult.MATCHED
        assert self.store.get("igp_node", "2_0_0_0000.0000.0001") == first

    def test_update_does_not_alias_input(self):
        update = copy.deepcopy(UPDATE)
        self.store.update_igp("10.0.0.1", None, update)
        update["running_config"]["target"] = "changed"
        assert self.store.get("igp_node", "2_0_0_0000.0000.0001")["running_config"]["target"] == "xrd01"

    def test_multiple_matches_updates_first_only(self, caplog):
        self.store.add_node("igp_node", "dup", name="xrd01", router_id="10.0.0.1")
        assert self.store.update_igp("10.0.0.1", None, UPDATE) is UpdateResult.MATCHED
        assert "running_config" in self.store.get("igp_node", "2_0_0_0000.0000.0001")
        assert "running_config" not in self.store.get("igp_node", "dup")
        assert "several documents match" in caplog.text

    def test_missing_topology_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MemoryGraphStore.from_yaml(tmp_path / "nope.yaml")


class FakeAQL:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = []

    def execute(self, query, bind_vars=None):
        self.calls.append((query, bind_vars))
        if self.error:
            raise self.error
        return iter(self.rows)


class FakeDB:
    def __init__(self, **kwargs):
        self.aql = FakeAQL(**kwargs)


class TestArangoGraphStore:

    def test_igp_router_id_query(self):
        db = FakeDB(rows=[{"key": "n1", "candidates": 1}])
        store = ArangoGraphStore(db)
        assert store.update_igp("10.0.0.1", "xrd01", UPDATE) is UpdateResult.MATCHED

        query, bind_vars = db.aql.calls[0]
        assert "n.router_id == @router_id" in query
        assert "keepNull: false" in query
        assert "LIMIT 2" in query
        assert bind_vars == {"@collection": "igp_node", "update": UPDATE, "router_id": "10.0.0.1"}

    def test_igp_name_query(self):
        db = FakeDB(rows=[])
        store = ArangoGraphStore(db, igp_collection="nodes")
        assert store.update_igp("", "xrd01", UPDATE) is UpdateResult.NOT_MATCHED

        query, bind_vars = db.aql.calls[0]
        assert "n.name == @name" in query
        assert bind_vars["@collection"] == "nodes"
        assert bind_vars["name"] == "xrd01"
        assert "router_id" not in bind_vars

    def test_bgp_query(self):
        db = FakeDB(rows=[{"key": "n1", "candidates": 1}])
        store = ArangoGraphStore(db)
        assert store.update_bgp("10.0.0.1", 65000, UPDATE) is UpdateResult.MATCHED

        query, bind_vars = db.aql.calls[0]
        assert "n.router_id == @router_id AND n.asn == @asn" in query
        assert bind_vars["@collection"] == "bgp_node"
        assert bind_vars["asn"] == 65000

    def test_bgp_zero_asn_never_queries(self):
        db = FakeDB()
        with pytest.raises(MissingASN):
            ArangoGraphStore(db).update_bgp("10.0.0.1", 0, UPDATE)
        assert db.aql.calls == []

    def test_one_query_per_update(self):
        db = FakeDB(rows=[{"key": "n1", "candidates": 1}])
        ArangoGraphStore(db).update_igp("10.0.0.1", None, UPDATE)
        assert len(db.aql.calls) == 1

    def test_multiplicity_is_a_warning(self, caplog):
        db = FakeDB(rows=[{"key": "n1", "candidates": 2}])
        assert ArangoGraphStore(db).update_igp("10.0.0.1", None, UPDATE) is UpdateResult.MATCHED
        assert "several documents match" in caplog.text

    def test_store_error(self, caplog):
        db = FakeDB(error=ArangoError("boom"))
        assert ArangoGraphStore(db).update_igp("10.0.0.1", None, UPDATE) is UpdateResult.ERROR
        assert "igp_node update failed" in caplog.text


def test_read_credential(tmp_path):
    f = tmp_path / ".username"
    f.write_text("root\n")
    assert read_credential(str(f)) == "root"


def test_read_credential_too_long(tmp_path):
    f = tmp_path / ".password"
    f.write_text("x" * 300)
    with pytest.raises(ValueError):
        read_credential(str(f))


def test_transport_error_is_store_error():
    db = FakeDB(error=requests.exceptions.ConnectionError("refused"))
    assert ArangoGraphStore(db).update_bgp("10.0.0.1", 65000, UPDATE) is UpdateResult.ERROR
