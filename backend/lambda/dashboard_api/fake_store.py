"""fake_store.py — In-memory stand-in for DynamoDocumentStore used by the tests.

Mirrors the store's observable behaviour: same-type comparisons only,
ordering by parsed time with missing values lowest, and a ClientError when
updating an unknown id.
"""
from __future__ import annotations

import copy
import itertools
import operator
from typing import Any, Dict, Iterable, List, Optional

from botocore.exceptions import ClientError

from store import DOCUMENT_KEY, Filter, _order_value

_OPS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _comparable(a: Any, b: Any) -> bool:
    numeric = (int, float)
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool)
    if isinstance(a, numeric) and isinstance(b, numeric):
        return True
    return type(a) is type(b)


class InMemoryStore:
    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self._ids = itertools.count(1)
        for name, docs in (collections or {}).items():
            for doc in docs:
                self.seed(name, doc)

    def seed(self, collection: str, doc: Dict[str, Any]) -> None:
        self.collections.setdefault(collection, {})[doc[DOCUMENT_KEY]] = copy.deepcopy(doc)

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        self.calls.append(("get_all", collection))
        return [copy.deepcopy(d) for d in self.collections.get(collection, {}).values()]

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        filters = list(filters)
        self.calls.append(("query", collection, tuple(filters)))
        out = []
        for doc in self.collections.get(collection, {}).values():
            matched = True
            for field, op, value in filters:
                if field not in doc or not _comparable(doc[field], value) or not _OPS[op](doc[field], value):
                    matched = False
                    break
            if matched:
                out.append(copy.deepcopy(doc))
        if order_by:
            out.sort(key=lambda d: _order_value(d.get(order_by)), reverse=descending)
        if limit is not None:
            out = out[:limit]
        return out

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        self.calls.append(("get", collection, doc_id))
        doc = self.collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc else None

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        self.calls.append(("add", collection))
        doc_id = f"doc-{next(self._ids)}"
        self.seed(collection, {**data, DOCUMENT_KEY: doc_id})
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self.calls.append(("update", collection, doc_id))
        docs = self.collections.get(collection, {})
        if doc_id not in docs:
            raise ClientError(
                {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
                "UpdateItem",
            )
        docs[doc_id].update(copy.deepcopy(fields))
