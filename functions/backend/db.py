"""
Document store abstraction for Firestore and an in-memory test implementation.
"""

from __future__ import annotations

import contextlib
import copy
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Protocol, Sequence

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud.firestore_v1 import Increment as FirestoreIncrement
from google.cloud.firestore_v1 import Query, transactional
from google.cloud.firestore_v1.base_query import FieldFilter

from backend.errors import ErrorKind, TimeBankError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Increment:
    """Field value that adds `amount` to the stored number."""

    amount: float


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    data: dict


@dataclass(frozen=True)
class Guard:
    """Condition checked inside `commit_if`: `field` must be one of `allowed`."""

    collection: str
    doc_id: str
    field: str
    allowed: frozenset


@dataclass(frozen=True)
class UpdateWrite:
    collection: str
    doc_id: str
    fields: dict


@dataclass(frozen=True)
class DeleteWrite:
    collection: str
    doc_id: str


class DocumentStore(Protocol):
    """The operations the time bank needs from the remote document store."""

    def get(
        self, collection: str, doc_id: str, *, timeout: float | None = None
    ) -> Optional[DocumentSnapshot]:
        ...

    def create(
        self, collection: str, data: dict, *, timeout: float | None = None
    ) -> str:
        ...

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        *,
        merge: bool = False,
        timeout: float | None = None,
    ) -> None:
        ...

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: dict,
        *,
        timeout: float | None = None,
    ) -> None:
        ...

    def delete(
        self, collection: str, doc_id: str, *, timeout: float | None = None
    ) -> None:
        ...

    def query(
        self,
        collection: str,
        *,
        filters: Sequence[tuple[str, Any]] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[DocumentSnapshot]:
        ...

    def commit_if(
        self,
        guard: Guard,
        writes: Sequence[UpdateWrite | DeleteWrite],
        *,
        timeout: float | None = None,
    ) -> bool:
        ...


def _apply_fields(target: dict, fields: dict) -> None:
    for key, value in fields.items():
        if isinstance(value, Increment):
            target[key] = (target.get(key) or 0) + value.amount
        else:
            target[key] = copy.deepcopy(value)


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.Lock()

    def _collection(self, name: str) -> Dict[str, dict]:
        return self.collections.setdefault(name, {})

    def get(
        self, collection: str, doc_id: str, *, timeout: float | None = None
    ) -> Optional[DocumentSnapshot]:
        with self._lock:
            data = self._collection(collection).get(doc_id)
            if data is None:
                return None
            return DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))

    def create(
        self, collection: str, data: dict, *, timeout: float | None = None
    ) -> str:
        doc_id = uuid.uuid4().hex[:20]
        with self._lock:
            stored: dict = {}
            _apply_fields(stored, data)
            self._collection(collection)[doc_id] = stored
        return doc_id

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        *,
        merge: bool = False,
        timeout: float | None = None,
    ) -> None:
        with self._lock:
            docs = self._collection(collection)
            stored = docs.get(doc_id, {}) if merge else {}
            _apply_fields(stored, data)
            docs[doc_id] = stored

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: dict,
        *,
        timeout: float | None = None,
    ) -> None:
        with self._lock:
            stored = self._collection(collection).get(doc_id)
            if stored is None:
                raise TimeBankError(
                    ErrorKind.NOT_FOUND, f"No document to update: {collection}/{doc_id}"
                )
            _apply_fields(stored, fields)

    def delete(
        self, collection: str, doc_id: str, *, timeout: float | None = None
    ) -> None:
        with self._lock:
            self._collection(collection).pop(doc_id, None)

    def query(
        self,
        collection: str,
        *,
        filters: Sequence[tuple[str, Any]] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[DocumentSnapshot]:
        with self._lock:
            matches = [
                DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))
                for doc_id, data in self._collection(collection).items()
                if all(data.get(name) == value for name, value in filters)
            ]
        if order_by:
            # Firestore leaves out documents that lack the ordering field.
            matches = [snap for snap in matches if snap.data.get(order_by) is not None]
            matches.sort(key=lambda snap: snap.data[order_by], reverse=descending)
        if limit is not None:
            matches = matches[:limit]
        return matches

    def commit_if(
        self,
        guard: Guard,
        writes: Sequence[UpdateWrite | DeleteWrite],
        *,
        timeout: float | None = None,
    ) -> bool:
        with self._lock:
            guarded = self._collection(guard.collection).get(guard.doc_id)
            if guarded is None or guarded.get(guard.field) not in guard.allowed:
                return False
            for write in writes:
                if isinstance(write, DeleteWrite):
                    continue
                if write.doc_id not in self._collection(write.collection):
                    raise TimeBankError(
                        ErrorKind.NOT_FOUND,
                        f"No document to update: {write.collection}/{write.doc_id}",
                    )
            for write in writes:
                docs = self._collection(write.collection)
                if isinstance(write, DeleteWrite):
                    docs.pop(write.doc_id, None)
                else:
                    _apply_fields(docs[write.doc_id], write.fields)
            return True

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()


_GOOGLE_ERROR_KINDS: list[tuple[type, ErrorKind]] = [
    (google_exceptions.DeadlineExceeded, ErrorKind.TIMEOUT),
    (google_exceptions.RetryError, ErrorKind.TIMEOUT),
    (google_exceptions.ServiceUnavailable, ErrorKind.UNAVAILABLE),
    (google_exceptions.ResourceExhausted, ErrorKind.UNAVAILABLE),
    (google_exceptions.FailedPrecondition, ErrorKind.FAILED_PRECONDITION),
    (google_exceptions.PermissionDenied, ErrorKind.PERMISSION_DENIED),
    (google_exceptions.Unauthenticated, ErrorKind.AUTH_EXPIRED),
    (google_exceptions.NotFound, ErrorKind.NOT_FOUND),
    (auth_exceptions.TransportError, ErrorKind.NETWORK),
    (ConnectionError, ErrorKind.NETWORK),
]


def classify_google_error(error: Exception) -> ErrorKind:
    for error_type, kind in _GOOGLE_ERROR_KINDS:
        if isinstance(error, error_type):
            return kind
    return ErrorKind.UNKNOWN


@contextlib.contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except TimeBankError:
        raise
    except (google_exceptions.GoogleAPIError, auth_exceptions.TransportError, ConnectionError) as e:
        kind = classify_google_error(e)
        logger.warning("Firestore %s failed (%s): %s", action, kind.value, e)
        raise TimeBankError(kind, f"Firestore {action} failed: {e}") from e


def _encode(fields: dict) -> dict:
    return {
        key: FirestoreIncrement(value.amount) if isinstance(value, Increment) else value
        for key, value in fields.items()
    }


class FirestoreDocumentStore:
    """
    Firestore-backed implementation. Takes a `google.cloud.firestore.Client`
    (e.g. from `firebase_admin.firestore.client()`).
    """

    def __init__(self, client):
        self._client = client

    def _doc(self, collection: str, doc_id: str):
        return self._client.collection(collection).document(doc_id)

    def get(
        self, collection: str, doc_id: str, *, timeout: float | None = None
    ) -> Optional[DocumentSnapshot]:
        with _translate_errors(f"get {collection}/{doc_id}"):
            snapshot = self._doc(collection, doc_id).get(timeout=timeout)
        if not snapshot.exists:
            return None
        return DocumentSnapshot(id=snapshot.id, data=snapshot.to_dict() or {})

    def create(
        self, collection: str, data: dict, *, timeout: float | None = None
    ) -> str:
        with _translate_errors(f"create in {collection}"):
            _, doc_ref = self._client.collection(collection).add(
                _encode(data), timeout=timeout
            )
        return doc_ref.id

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        *,
        merge: bool = False,
        timeout: float | None = None,
    ) -> None:
        with _translate_errors(f"set {collection}/{doc_id}"):
            self._doc(collection, doc_id).set(_encode(data), merge=merge, timeout=timeout)

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: dict,
        *,
        timeout: float | None = None,
    ) -> None:
        with _translate_errors(f"update {collection}/{doc_id}"):
            self._doc(collection, doc_id).update(_encode(fields), timeout=timeout)

    def delete(
        self, collection: str, doc_id: str, *, timeout: float | None = None
    ) -> None:
        with _translate_errors(f"delete {collection}/{doc_id}"):
            self._doc(collection, doc_id).delete(timeout=timeout)

    def query(
        self,
        collection: str,
        *,
        filters: Sequence[tuple[str, Any]] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[DocumentSnapshot]:
        query = self._client.collection(collection)
        for name, value in filters:
            query = query.where(filter=FieldFilter(name, "==", value))
        if order_by:
            direction = Query.DESCENDING if descending else Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)
        with _translate_errors(f"query {collection}"):
            snapshots = query.get(timeout=timeout)
        return [
            DocumentSnapshot(id=snapshot.id, data=snapshot.to_dict() or {})
            for snapshot in snapshots
        ]

    def commit_if(
        self,
        guard: Guard,
        writes: Sequence[UpdateWrite | DeleteWrite],
        *,
        timeout: float | None = None,
    ) -> bool:
        guard_ref = self._doc(guard.collection, guard.doc_id)

        @transactional
        def _commit(transaction) -> bool:
            snapshot = guard_ref.get(transaction=transaction, timeout=timeout)
            current = (snapshot.to_dict() or {}).get(guard.field) if snapshot.exists else None
            if current not in guard.allowed:
                return False
            for write in writes:
                ref = self._doc(write.collection, write.doc_id)
                if isinstance(write, DeleteWrite):
                    transaction.delete(ref)
                else:
                    transaction.update(ref, _encode(write.fields))
            return True

        with _translate_errors(f"transaction on {guard.collection}/{guard.doc_id}"):
            return _commit(self._client.transaction())
