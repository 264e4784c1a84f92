"""
Graph store — conditional, null-stripping updates of IGP/BGP node documents.

IGP nodes match on router_id, falling back to name; BGP nodes match on
router_id AND asn. Each update is a single AQL query that touches at most
one document. More than one candidate is logged, not treated as an error.
"""

from __future__ import annotations

import copy
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import networkx as nx
import requests
import yaml
from arango.exceptions import ArangoError

from errors import MissingASN, MissingIdentity

logger = logging.getLogger(__name__)

DEFAULT_IGP_COLLECTION = "igp_node"
DEFAULT_BGP_COLLECTION = "bgp_node"
DEFAULT_USER_FILE = "/credentials/.username"
DEFAULT_PASS_FILE = "/credentials/.password"
MAX_CREDENTIAL = 256


class UpdateResult(str, Enum):
    MATCHED = "matched"
    NOT_MATCHED = "not_matched"
    ERROR = "error"


# Read up to two candidates so multiplicity is visible, update only the first.
_CONDITIONAL_UPDATE = """
LET candidates = (
    FOR n IN @@collection
        FILTER {filter}
        LIMIT 2
        RETURN n
)
FOR n IN SLICE(candidates, 0, 1)
    UPDATE n WITH @update IN @@collection OPTIONS {{ keepNull: false }}
    RETURN {{ key: NEW._key, candidates: LENGTH(candidates) }}
"""

_FILTER_ROUTER_ID = "n.router_id == @router_id"
_FILTER_NAME = "n.name == @name"
_FILTER_ROUTER_ID_ASN = "n.router_id == @router_id AND n.asn == @asn"


def _igp_filter(router_id: Optional[str], hostname: Optional[str]) -> tuple[str, dict]:
    if router_id:
        return _FILTER_ROUTER_ID, {"router_id": router_id}
    if hostname:
        return _FILTER_NAME, {"name": hostname}
    raise MissingIdentity("igp update needs a router_id or hostname")


def _check_bgp_key(router_id: Optional[str], asn: int) -> None:
    if not asn or asn <= 0:
        raise MissingASN(f"bgp update for router_id={router_id} has no ASN")
    if not router_id:
        raise MissingIdentity(f"bgp update for asn={asn} has no router_id")


class ArangoGraphStore:
    """Conditional updates against ArangoDB node collections."""

    def __init__(self, db, igp_collection: str = DEFAULT_IGP_COLLECTION,
                 bgp_collection: str = DEFAULT_BGP_COLLECTION):
        self.db = db
        self.igp_collection = igp_collection
        self.bgp_collection = bgp_collection

    def update_igp(self, router_id: Optional[str], hostname: Optional[str], update: dict) -> UpdateResult:
        filter_expr, bind_vars = _igp_filter(router_id, hostname)
        return self._conditional_update(self.igp_collection, filter_expr, bind_vars, update)

    def update_bgp(self, router_id: Optional[str], asn: int, update: dict) -> UpdateResult:
        _check_bgp_key(router_id, asn)
        return self._conditional_update(
            self.bgp_collection, _FILTER_ROUTER_ID_ASN,
            {"router_id": router_id, "asn": asn}, update,
        )

    def _conditional_update(self, collection: str, filter_expr: str,
                            bind_vars: dict, update: dict) -> UpdateResult:
        query = _CONDITIONAL_UPDATE.format(filter=filter_expr)
        bind_vars = {"@collection": collection, "update": update, **bind_vars}
        try:
            cursor = self.db.aql.execute(query, bind_vars=bind_vars)
            rows = list(cursor)
        except (ArangoError, requests.exceptions.RequestException) as exc:
            logger.error("%s update failed (%s): %s", collection, _describe(bind_vars), exc)
            return UpdateResult.ERROR

        if not rows:
            return UpdateResult.NOT_MATCHED
        if rows[0].get("candidates", 1) > 1:
            logger.warning("%s: several documents match %s; updated %s only",
                           collection, _describe(bind_vars), rows[0].get("key"))
        return UpdateResult.MATCHED


def _describe(bind_vars: dict) -> str:
    return " ".join(f"{k}={v}" for k, v in bind_vars.items() if k not in ("@collection", "update"))


def merge_document(doc: dict, update: dict) -> dict:
    """Merge `update` into `doc` the way ArangoDB does with keepNull=false."""
    for key, value in update.items():
        if value is None:
            doc.pop(key, None)
        elif isinstance(value, dict) and isinstance(doc.get(key), dict):
            merge_document(doc[key], value)
        elif isinstance(value, dict):
            doc[key] = _strip_nulls(value)
        else:
            doc[key] = copy.deepcopy(value)
    return doc


def _strip_nulls(value: dict) -> dict:
    return {
        k: _strip_nulls(v) if isinstance(v, dict) else copy.deepcopy(v)
        for k, v in value.items() if v is not None
    }


class MemoryGraphStore:
    """
    In-memory stand-in for ArangoGraphStore backed by a NetworkX graph.

    Node ids are "<collection>/<key>", node attributes hold the document.
    Used for offline ingest runs and tests.
    """

    def __init__(self, igp_collection: str = DEFAULT_IGP_COLLECTION,
                 bgp_collection: str = DEFAULT_BGP_COLLECTION):
        self.graph = nx.DiGraph()
        self.igp_collection = igp_collection
        self.bgp_collection = bgp_collection
        self.queries = 0

    def add_node(self, collection: str, key: str, **fields: Any) -> None:
        doc = {"_key": key, **fields}
        self.graph.add_node(f"{collection}/{key}", collection=collection, doc=doc)

    def get(self, collection: str, key: str) -> Optional[dict]:
        node = self.graph.nodes.get(f"{collection}/{key}")
        return node["doc"] if node else None

    def documents(self, collection: str) -> list[dict]:
        return [data["doc"] for _, data in self.graph.nodes(data=True)
                if data.get("collection") == collection]

    def update_igp(self, router_id: Optional[str], hostname: Optional[str], update: dict) -> UpdateResult:
        filter_expr, bind_vars = _igp_filter(router_id, hostname)
        field_name = "router_id" if filter_expr == _FILTER_ROUTER_ID else "name"
        wanted = {field_name: bind_vars[field_name]}
        return self._conditional_update(self.igp_collection, wanted, update)

    def update_bgp(self, router_id: Optional[str], asn: int, update: dict) -> UpdateResult:
        _check_bgp_key(router_id, asn)
        return self._conditional_update(self.bgp_collection, {"router_id": router_id, "asn": asn}, update)

    def _conditional_update(self, collection: str, wanted: dict, update: dict) -> UpdateResult:
        self.queries += 1
        candidates = [
            doc for doc in self.documents(collection)
            if all(doc.get(k) == v for k, v in wanted.items())
        ][:2]
        if not candidates:
            return UpdateResult.NOT_MATCHED
        if len(candidates) > 1:
            logger.warning("%s: several documents match %s; updated %s only",
                           collection, wanted, candidates[0].get("_key"))
        merge_document(candidates[0], update)
        return UpdateResult.MATCHED

    @classmethod
    def from_yaml(cls, path: str | Path, igp_collection: str = DEFAULT_IGP_COLLECTION,
                  bgp_collection: str = DEFAULT_BGP_COLLECTION) -> "MemoryGraphStore":
        """
        Seed a store from YAML:

            igp_node:
              - {_key: "2_0_0_0000.0000.0001", router_id: 10.0.0.1, name: xrd01}
            bgp_node:
              - {_key: "10.0.0.1", router_id: 10.0.0.1, asn: 65000}
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Topology not found: {path}")

        with open(path) as f:
            raw = yaml.safe_load(f) or {}

        store = cls(igp_collection=igp_collection, bgp_collection=bgp_collection)
        for collection in (igp_collection, bgp_collection):
            for i, doc in enumerate(raw.get(collection) or []):
                doc = dict(doc)
                key = str(doc.pop("_key", None) or f"{collection}-{i}")
                store.add_node(collection, key, **doc)
        return store


def read_credential(path: str, limit: int = MAX_CREDENTIAL) -> str:
    p = Path(path)
    if p.stat().st_size > limit:
        raise ValueError(f"credential too long: {path}")
    return p.read_text().strip()


def connect_arango(url: str, database: str, user: str = "", password: str = "",
                   user_file: str = "", password_file: str = ""):
    """Open a python-arango database handle, reading credential files if needed."""
    from arango import ArangoClient

    if not user or not password:
        user = read_credential(user_file or DEFAULT_USER_FILE)
        password = read_credential(password_file or DEFAULT_PASS_FILE)

    client = ArangoClient(hosts=url)
    db = client.db(database, username=user, password=password, verify=True)
    logger.info("connected to arango %s/%s", url, database)
    return db
