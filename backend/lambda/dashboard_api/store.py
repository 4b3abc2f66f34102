"""store.py — Document collection store backed by DynamoDB tables.

Each collection is one table keyed on ``id``. Documents come back as plain
dicts with the key included. Filtering runs server-side through scan
FilterExpressions; ordering and limits are applied to the filtered result
because scans are unordered. Ordering compares values as timestamps, so ISO
strings in any precision or offset and epoch numbers interleave by time.

Part of the Prometheus dashboard API Lambda.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from serialization import _deserialize, _parse_timestamp, _serialize

__all__ = [
    "DOCUMENT_KEY",
    "DynamoDocumentStore",
    "Filter",
]

DOCUMENT_KEY = "id"

# (field, operator, value), operator one of _COMPARATORS.
Filter = Tuple[str, str, Any]

_COMPARATORS = {
    "==": "=",
    "!=": "<>",
    "<": "<",
    "<=": "<=",
    ">": ">",
    ">=": ">=",
}


def _new_document_id() -> str:
    return uuid.uuid4().hex[:20]


def _order_value(value: Any) -> Tuple[int, float, str]:
    """Sort key ordering by time: parsed timestamps (ISO or epoch) on top,
    unparseable values below them, missing values lowest."""
    if value is None:
        return (0, 0.0, "")
    parsed = _parse_timestamp(value)
    if parsed is None:
        return (1, 0.0, str(value))
    return (2, parsed.timestamp(), "")


def _filter_expression(filters: Sequence[Filter]) -> Dict[str, Any]:
    clauses: List[str] = []
    names: Dict[str, str] = {}
    values: Dict[str, Any] = {}
    for idx, (field, op, value) in enumerate(filters):
        comparator = _COMPARATORS.get(op)
        if comparator is None:
            raise ValueError(f"Unsupported filter operator: {op!r}")
        names[f"#f{idx}"] = field
        values[f":v{idx}"] = _serialize(value)
        clauses.append(f"#f{idx} {comparator} :v{idx}")
    if not clauses:
        return {}
    return {
        "FilterExpression": " AND ".join(clauses),
        "ExpressionAttributeNames": names,
        "ExpressionAttributeValues": values,
    }


class DynamoDocumentStore:
    """Collection-oriented access to DynamoDB using a low-level client."""

    def __init__(self, client: Any, table_prefix: str = "") -> None:
        self._client = client
        self._table_prefix = table_prefix

    def table_name(self, collection: str) -> str:
        if not self._table_prefix:
            return collection
        return f"{self._table_prefix}-{collection}"

    def _scan(self, collection: str, **kwargs: Any) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        scan_kwargs: Dict[str, Any] = {"TableName": self.table_name(collection), **kwargs}
        while True:
            resp = self._client.scan(**scan_kwargs)
            items.extend(_deserialize(raw) for raw in resp.get("Items") or [])
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return items
            scan_kwargs["ExclusiveStartKey"] = last_key

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        return self._scan(collection)

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return documents matching every filter, optionally ordered and capped."""
        items = self._scan(collection, **_filter_expression(list(filters)))
        if order_by:
            items.sort(key=lambda doc: _order_value(doc.get(order_by)), reverse=descending)
        if limit is not None:
            items = items[:limit]
        return items

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        resp = self._client.get_item(
            TableName=self.table_name(collection),
            Key={DOCUMENT_KEY: _serialize(doc_id)},
        )
        raw = resp.get("Item")
        if not raw:
            return None
        return _deserialize(raw)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Insert a new document under a generated id and return the id."""
        doc_id = _new_document_id()
        item = {**data, DOCUMENT_KEY: doc_id}
        self._client.put_item(
            TableName=self.table_name(collection),
            Item={k: _serialize(v) for k, v in item.items()},
            ConditionExpression="attribute_not_exists(#k)",
            ExpressionAttributeNames={"#k": DOCUMENT_KEY},
        )
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Set ``fields`` on an existing document.

        Unknown ids fail with the client's ConditionalCheckFailedException.
        """
        if not fields:
            return
        names = {"#k": DOCUMENT_KEY}
        values: Dict[str, Any] = {}
        assignments: List[str] = []
        for idx, (field, value) in enumerate(fields.items()):
            names[f"#u{idx}"] = field
            values[f":u{idx}"] = _serialize(value)
            assignments.append(f"#u{idx} = :u{idx}")
        self._client.update_item(
            TableName=self.table_name(collection),
            Key={DOCUMENT_KEY: _serialize(doc_id)},
            UpdateExpression="SET " + ", ".join(assignments),
            ConditionExpression="attribute_exists(#k)",
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )
