"""
Document store abstraction for Firestore and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import operator
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Tuple

from firebase_admin import firestore
from google.api_core import exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from portal.errors import NotFoundError

# (field, operator, value), e.g. ("uid", "==", uid)
Filter = Tuple[str, str, Any]

_OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass
class Document:
    id: str
    data: dict


class DocumentStore(Protocol):
    """Operations the portal needs from the document database."""

    def add(self, collection: str, data: dict) -> str:
        ...

    def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def update(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        increments: Optional[Mapping[str, int]] = None,
    ) -> None:
        ...

    def query(
        self,
        collection: str,
        *,
        where: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[Document]:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...


def _matches(data: dict, flt: Filter) -> bool:
    field, op, value = flt
    if field not in data:
        return False
    try:
        return bool(_OPERATORS[op](data[field], value))
    except TypeError:
        return False


class InMemoryDocumentStore:
    """Simple in-memory document database for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = defaultdict(dict)

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.collections[collection][doc_id] = copy.deepcopy(data)
        return doc_id

    def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        existing = self.collections[collection].get(doc_id)
        if merge and existing is not None:
            existing.update(copy.deepcopy(data))
        else:
            self.collections[collection][doc_id] = copy.deepcopy(data)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        data = self.collections[collection].get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def update(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        increments: Optional[Mapping[str, int]] = None,
    ) -> None:
        doc = self.collections[collection].get(doc_id)
        if doc is None:
            raise NotFoundError(f"No document to update: {collection}/{doc_id}")
        doc.update(copy.deepcopy(data))
        for field, amount in (increments or {}).items():
            doc[field] = (doc.get(field) or 0) + amount

    def query(
        self,
        collection: str,
        *,
        where: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[Document]:
        for _, op, _ in where:
            if op not in _OPERATORS:
                raise ValueError(f"Unsupported operator: {op}")
        docs = [
            Document(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self.collections[collection].items()
            if all(_matches(data, flt) for flt in where)
        ]
        if order_by:
            # Firestore leaves out documents that lack the ordering field.
            docs = [doc for doc in docs if doc.data.get(order_by) is not None]
            docs.sort(key=lambda doc: doc.data[order_by], reverse=descending)
        if limit is not None:
            docs = docs[:limit]
        return docs

    def delete(self, collection: str, doc_id: str) -> None:
        self.collections[collection].pop(doc_id, None)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()


class FirestoreDocumentStore:
    """Firestore-backed implementation using the Firebase Admin SDK."""

    def __init__(self, client=None):
        if client is None:
            from portal.firebase import get_firebase_app

            client = firestore.client(get_firebase_app())
        self.client = client

    def add(self, collection: str, data: dict) -> str:
        _, doc_ref = self.client.collection(collection).add(data)
        return doc_ref.id

    def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        self.client.collection(collection).document(doc_id).set(data, merge=merge)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def update(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        increments: Optional[Mapping[str, int]] = None,
    ) -> None:
        payload = dict(data)
        for field, amount in (increments or {}).items():
            payload[field] = firestore.Increment(amount)
        doc_ref = self.client.collection(collection).document(doc_id)
        try:
            doc_ref.update(payload)
        except exceptions.NotFound as e:
            raise NotFoundError(
                f"No document to update: {collection}/{doc_id}"
            ) from e

    def query(
        self,
        collection: str,
        *,
        where: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[Document]:
        query = self.client.collection(collection)
        for field, op, value in where:
            query = query.where(filter=FieldFilter(field, op, value))
        if order_by:
            direction = (
                firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            )
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)
        return [
            Document(id=snapshot.id, data=snapshot.to_dict() or {})
            for snapshot in query.stream()
        ]

    def delete(self, collection: str, doc_id: str) -> None:
        self.client.collection(collection).document(doc_id).delete()
