"""
pressgate/repositories/store.py - Document store boundary.

The decision subsystem depends on four store operations:
`get_profile`, `upsert_profile`, `get_resource_owner` and the transactional
`apply_if_permitted(write, policy_check)`. `FirestoreDocumentStore` implements
them with the Firebase Admin SDK; `MemoryDocumentStore` keeps everything in
process for local development and tests.

Inside `apply_if_permitted` the policy check reads through a `StoreView`, so the
role and ownership it sees are the ones the write is applied against.
"""
from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

from google.api_core import exceptions as gexc
from google.cloud import firestore as gcf
from google.cloud.firestore_v1 import FieldFilter

from pressgate.core.errors import Conflict, NotFound, StoreUnavailable

logger = logging.getLogger("pressgate.store")

PROFILES = "users"
POSTS = "posts"
COMMENTS = "comments"
SITE = "site"
SITE_SETTINGS_ID = "settings"
OWNER_FIELD = "ownerId"

WriteOp = Literal["create", "update", "delete", "set"]

# Failures worth retrying; anything else from the client library is a bug or a denial
_TRANSIENT = (
    gexc.ServiceUnavailable,
    gexc.DeadlineExceeded,
    gexc.InternalServerError,
    gexc.TooManyRequests,
    gexc.RetryError,
    gexc.Unknown,
)


@dataclass
class Write:
    """A single document mutation requested on behalf of `requester_uid` (None = unauthenticated)."""
    op: WriteOp
    collection: str
    doc_id: Optional[str]
    requester_uid: Optional[str]
    data: Dict[str, Any] = field(default_factory=dict)


class StoreView(ABC):
    """Reads available to a policy check, bound to the enclosing transaction."""

    @abstractmethod
    def get_profile(self, uid: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: ...


PolicyCheck = Callable[[Write, StoreView], None]


class DocumentStore(ABC):

    @abstractmethod
    def get_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        """Stored profile document or None."""

    @abstractmethod
    def upsert_profile(self, uid: str, defaults: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        Create `users/{uid}` from `defaults` if it does not exist.
        Returns (stored document, created). An existing document is returned untouched.
        """

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def list_documents(
        self,
        collection: str,
        *,
        where: Optional[List[Tuple[str, Any]]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Dict[str, Any]]]: ...

    @abstractmethod
    def apply_if_permitted(self, write: Write, policy_check: PolicyCheck) -> str:
        """
        Run `policy_check` and apply `write` atomically; returns the document id.
        `policy_check` raises PermissionDenied to abort without writing.
        """

    def get_resource_owner(self, collection: str, doc_id: str) -> Optional[str]:
        """Stored ownerId of a resource. Raises NotFound when the document does not exist."""
        data = self.get_document(collection, doc_id)
        if data is None:
            raise NotFound(collection, doc_id)
        return data.get(OWNER_FIELD)


# ---------- Firestore ----------

class _FirestoreView(StoreView):
    def __init__(self, db, transaction):
        self._db = db
        self._tx = transaction

    def _read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snap = self._db.collection(collection).document(doc_id).get(transaction=self._tx)
        return (snap.to_dict() or {}) if snap.exists else None

    def get_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        return self._read(PROFILES, uid)

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self._read(collection, doc_id)


class FirestoreDocumentStore(DocumentStore):
    def __init__(self, db):
        self._db = db

    def _snap(self, collection: str, doc_id: str):
        try:
            return self._db.collection(collection).document(doc_id).get()
        except _TRANSIENT as exc:
            raise StoreUnavailable(f"Firestore read {collection}/{doc_id} failed: {exc}") from exc

    def get_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        return self.get_document(PROFILES, uid)

    def upsert_profile(self, uid: str, defaults: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        ref = self._db.collection(PROFILES).document(uid)
        data = {**defaults, "uid": uid, "createdAt": gcf.SERVER_TIMESTAMP, "updatedAt": gcf.SERVER_TIMESTAMP}
        created = True
        try:
            ref.create(data)
        except gexc.AlreadyExists:
            # The concurrent first sign-in (or an earlier session) won
            created = False
        except _TRANSIENT as exc:
            raise StoreUnavailable(f"Firestore profile create for {uid} failed: {exc}") from exc
        snap = self._snap(PROFILES, uid)
        return (snap.to_dict() or {}), created

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snap = self._snap(collection, doc_id)
        return (snap.to_dict() or {}) if snap.exists else None

    def list_documents(self, collection, *, where=None, order_by=None, descending=False, limit=None):
        q = self._db.collection(collection)
        for fld, value in where or []:
            q = q.where(filter=FieldFilter(fld, "==", value))
        if order_by:
            q = q.order_by(order_by, direction=gcf.Query.DESCENDING if descending else gcf.Query.ASCENDING)
        if limit:
            q = q.limit(limit)
        try:
            return [(d.id, d.to_dict() or {}) for d in q.stream()]
        except _TRANSIENT as exc:
            raise StoreUnavailable(f"Firestore query on {collection} failed: {exc}") from exc

    def apply_if_permitted(self, write: Write, policy_check: PolicyCheck) -> str:
        col = self._db.collection(write.collection)
        ref = col.document(write.doc_id) if write.doc_id else col.document()

        @gcf.transactional
        def _run(tx) -> str:
            # All transaction reads happen inside policy_check, before any write
            policy_check(write, _FirestoreView(self._db, tx))
            data = dict(write.data)
            if write.op == "create":
                data["createdAt"] = gcf.SERVER_TIMESTAMP
                data["updatedAt"] = gcf.SERVER_TIMESTAMP
                tx.create(ref, data)
            elif write.op == "update":
                data["updatedAt"] = gcf.SERVER_TIMESTAMP
                tx.update(ref, data)
            elif write.op == "set":
                data["updatedAt"] = gcf.SERVER_TIMESTAMP
                tx.set(ref, data, merge=True)
            elif write.op == "delete":
                tx.delete(ref)
            return ref.id

        try:
            return _run(self._db.transaction())
        except gexc.NotFound as exc:
            raise NotFound(write.collection, ref.id) from exc
        except gexc.AlreadyExists as exc:
            raise Conflict(write.collection, ref.id) from exc
        except _TRANSIENT as exc:
            raise StoreUnavailable(f"Firestore {write.op} on {write.collection}/{ref.id} failed: {exc}") from exc


# ---------- In-memory ----------

class _MemoryView(StoreView):
    def __init__(self, store: "MemoryDocumentStore"):
        self._store = store

    def get_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        return self._store._read(PROFILES, uid)

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self._store._read(collection, doc_id)


class MemoryDocumentStore(DocumentStore):
    """Process-local store. One lock serialises every mutation, standing in for a transaction."""

    def __init__(self, seed: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = deepcopy(seed) if seed else {}

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._collections.get(collection, {}).get(doc_id)
        return deepcopy(doc) if doc is not None else None

    def get_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        return self.get_document(PROFILES, uid)

    def upsert_profile(self, uid: str, defaults: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        with self._lock:
            profiles = self._collections.setdefault(PROFILES, {})
            if uid in profiles:
                return deepcopy(profiles[uid]), False
            now = self._now()
            profiles[uid] = {**defaults, "uid": uid, "createdAt": now, "updatedAt": now}
            return deepcopy(profiles[uid]), True

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._read(collection, doc_id)

    def list_documents(self, collection, *, where=None, order_by=None, descending=False, limit=None):
        with self._lock:
            rows = [(doc_id, deepcopy(d)) for doc_id, d in self._collections.get(collection, {}).items()]
        for fld, value in where or []:
            rows = [r for r in rows if r[1].get(fld) == value]
        if order_by:
            rows.sort(key=lambda r: (r[1].get(order_by) is None, r[1].get(order_by)), reverse=descending)
        return rows[:limit] if limit else rows

    def apply_if_permitted(self, write: Write, policy_check: PolicyCheck) -> str:
        with self._lock:
            policy_check(write, _MemoryView(self))
            docs = self._collections.setdefault(write.collection, {})
            doc_id = write.doc_id or uuid.uuid4().hex[:20]
            now = self._now()
            if write.op == "create":
                if doc_id in docs:
                    raise Conflict(write.collection, doc_id)
                docs[doc_id] = {**deepcopy(write.data), "createdAt": now, "updatedAt": now}
            elif write.op in ("update", "delete") and doc_id not in docs:
                raise NotFound(write.collection, doc_id)
            elif write.op == "update":
                docs[doc_id].update({**deepcopy(write.data), "updatedAt": now})
            elif write.op == "set":
                docs.setdefault(doc_id, {}).update({**deepcopy(write.data), "updatedAt": now})
            elif write.op == "delete":
                del docs[doc_id]
            logger.debug("Applied %s on %s/%s", write.op, write.collection, doc_id)
            return doc_id


def build_store(backend: str) -> DocumentStore:
    if backend == "memory":
        return MemoryDocumentStore()
    from pressgate.config import get_db
    return FirestoreDocumentStore(get_db())
