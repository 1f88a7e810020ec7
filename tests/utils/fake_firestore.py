"""Stateful in-memory Firestore double for repository and service tests.

Supports the subset of the client API the repositories use:
- ``client.collection(name)`` / ``client.collections()`` / ``client.get_all(refs)``
- ``collection.document(id)`` with ``get``/``set(merge=...)``/``update``/``delete``
- ``collection.where(field, "==", value).limit(n).stream()``
- dotted field paths and ``firestore.Increment`` inside ``update``

No network or emulator usage.
"""

from __future__ import annotations

import copy
import itertools
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from google.api_core.exceptions import NotFound
from google.cloud.firestore import Increment


_ids = itertools.count(1)


def _resolve(current: Any, value: Any) -> Any:
    if isinstance(value, Increment):
        return (current or 0) + value.value
    return copy.deepcopy(value)


def _deep_merge(target: Dict[str, Any], patch: Dict[str, Any]) -> None:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = _resolve(target.get(key), value)


def _apply_path(target: Dict[str, Any], path: List[str], value: Any) -> None:
    node = target
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[path[-1]] = _resolve(node.get(path[-1]), value)


class FakeDocumentSnapshot:
    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]], reference: "FakeDocumentReference") -> None:
        self.id = doc_id
        self.exists = data is not None
        self.reference = reference
        self._data = copy.deepcopy(data)

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data)


class FakeDocumentReference:
    def __init__(self, collection: "FakeCollection", doc_id: str) -> None:
        self._collection = collection
        self.id = doc_id

    @property
    def _docs(self) -> Dict[str, Dict[str, Any]]:
        return self._collection.docs

    def get(self, **_: Any) -> FakeDocumentSnapshot:
        return FakeDocumentSnapshot(self.id, self._docs.get(self.id), self)

    def set(self, data: Dict[str, Any], merge: bool = False) -> None:
        current = self._docs.get(self.id)
        if merge and current is not None:
            _deep_merge(current, data)
        else:
            fresh: Dict[str, Any] = {}
            _deep_merge(fresh, data)
            self._docs[self.id] = fresh

    def update(self, updates: Dict[str, Any]) -> None:
        current = self._docs.get(self.id)
        if current is None:
            raise NotFound(f"No document to update: {self._collection.name}/{self.id}")
        for path, value in updates.items():
            _apply_path(current, path.split("."), value)

    def delete(self) -> None:
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, collection: "FakeCollection", filters: Tuple[Tuple[str, str, Any], ...] = (), limit: Optional[int] = None) -> None:
        self._collection = collection
        self._filters = filters
        self._limit = limit

    def where(self, field: str, op: str, value: Any) -> "FakeQuery":
        if op != "==":
            raise NotImplementedError(f"operator {op!r} not supported by the fake")
        return FakeQuery(self._collection, self._filters + ((field, op, value),), self._limit)

    def limit(self, count: int) -> "FakeQuery":
        return FakeQuery(self._collection, self._filters, count)

    def stream(self) -> Iterator[FakeDocumentSnapshot]:
        matched = [
            doc_id
            for doc_id, data in self._collection.docs.items()
            if all(data.get(field) == value for field, _op, value in self._filters)
        ]
        if self._limit is not None:
            matched = matched[: self._limit]
        return iter([self._collection.document(doc_id).get() for doc_id in matched])


class FakeCollection(FakeQuery):
    def __init__(self, name: str) -> None:
        self.name = name
        self.id = name
        self.docs: Dict[str, Dict[str, Any]] = {}
        super().__init__(self)

    def document(self, doc_id: Optional[str] = None) -> FakeDocumentReference:
        return FakeDocumentReference(self, doc_id or f"auto-{next(_ids)}")


class FakeFirestoreClient:
    """In-memory client; ``get_all_calls`` counts batched reads."""

    def __init__(self) -> None:
        self._collections: Dict[str, FakeCollection] = {}
        self.get_all_calls = 0

    def collection(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]

    def collections(self) -> List[FakeCollection]:
        return list(self._collections.values())

    def get_all(self, references: Iterable[FakeDocumentReference]) -> Iterator[FakeDocumentSnapshot]:
        self.get_all_calls += 1
        return iter([ref.get() for ref in references])

    def seed(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.collection(collection).document(doc_id).set(data)

    def raw(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.collection(collection).docs.get(doc_id))
