"""
Player store: durable player documents keyed by player id.

``PlayerStore`` defines the primitives the engine relies on (read one, read
many, update field paths, create, stream) and builds the typed helpers on top
of them. ``FirestorePlayerStore`` talks to a ``google.cloud.firestore.Client``;
``InMemoryPlayerStore`` keeps plain dicts and is used by tests and by the Flask
app when Firestore is not reachable.

Backend exceptions never leave this module: a missing document becomes
``ERR_NOT_FOUND`` and any other I/O failure ``ERR_STORE_UNAVAILABLE``.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from google.api_core import exceptions as gexc
from google.cloud.firestore import Client

from .errors import ErrorCode, RelationshipError
from .models import (
    CATEGORIES,
    NAME_FIELD,
    RELATIONSHIPS_FIELD,
    SELECTOR_FIELD,
    Player,
    field_path,
    new_player_document,
)

logger = logging.getLogger(__name__)


def _not_found(player_id: str) -> RelationshipError:
    return RelationshipError(ErrorCode.ERR_NOT_FOUND, details={"playerId": player_id})


class PlayerStore:
    """Access to player documents. Subclasses implement the raw primitives."""

    # -------- primitives --------
    def get_document(self, player_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def get_documents(self, player_ids: Iterable[str]) -> Dict[str, Optional[Dict[str, Any]]]:
        return {pid: self.get_document(pid) for pid in dict.fromkeys(player_ids)}

    def update_fields(self, player_id: str, fields: Dict[str, Any]) -> None:
        """Set dotted field paths on an existing document (last write wins)."""
        raise NotImplementedError

    def create(self, player_id: str, document: Dict[str, Any]) -> None:
        raise NotImplementedError

    def stream_documents(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        raise NotImplementedError

    # -------- typed helpers --------
    def get(self, player_id: str) -> Player:
        doc = self.get_document(player_id)
        if doc is None:
            raise _not_found(player_id)
        return Player.from_document(player_id, doc)

    def get_many(self, player_ids: Iterable[str]) -> Dict[str, Optional[Player]]:
        """Resolve ids in one batch; ids without a document map to None."""
        docs = self.get_documents(player_ids)
        return {
            pid: Player.from_document(pid, doc) if doc is not None else None
            for pid, doc in docs.items()
        }

    def stream(self) -> Iterator[Player]:
        for pid, doc in self.stream_documents():
            yield Player.from_document(pid, doc)

    def ensure_player(
        self,
        player_id: str,
        player_name: Optional[str] = None,
        pilot_active: Optional[str] = None,
    ) -> Player:
        """Create the player with empty relationship sets, or update its profile.

        Existing documents missing any relationship array get it backfilled
        so the engine never has to default them.
        """
        if not player_id:
            raise RelationshipError(ErrorCode.ERR_INVALID_REQUEST)

        doc = self.get_document(player_id)
        if doc is None:
            doc = new_player_document(player_name or "", pilot_active or "")
            self.create(player_id, doc)
            return Player.from_document(player_id, doc)

        fields: Dict[str, Any] = {}
        if player_name is not None:
            fields[NAME_FIELD] = player_name
            fields["playerNameLower"] = player_name.lower()
        if pilot_active is not None:
            fields[SELECTOR_FIELD] = pilot_active
        existing = doc.get(RELATIONSHIPS_FIELD)
        existing = existing if isinstance(existing, dict) else {}
        for category in CATEGORIES:
            if not isinstance(existing.get(category), list):
                fields[field_path(category)] = []

        if fields:
            self.update_fields(player_id, fields)
        return self.get(player_id)


class FirestorePlayerStore(PlayerStore):
    def __init__(self, client: Client, collection: str = "users"):
        self._client = client
        self._collection = collection

    def _ref(self, player_id: str):
        return self._client.collection(self._collection).document(player_id)

    def _unavailable(self, action: str, player_id: Optional[str]) -> RelationshipError:
        logger.exception("Firestore %s failed for player %s", action, player_id)
        return RelationshipError(ErrorCode.ERR_STORE_UNAVAILABLE)

    def get_document(self, player_id: str) -> Optional[Dict[str, Any]]:
        try:
            snap = self._ref(player_id).get()
        except (gexc.GoogleAPICallError, gexc.RetryError):
            raise self._unavailable("get", player_id)
        if not snap.exists:
            return None
        return snap.to_dict() or {}

    def get_documents(self, player_ids: Iterable[str]) -> Dict[str, Optional[Dict[str, Any]]]:
        ids = list(dict.fromkeys(player_ids))
        found: Dict[str, Optional[Dict[str, Any]]] = {pid: None for pid in ids}
        if not ids:
            return found
        try:
            # get_all does not preserve request order; key results by id.
            for snap in self._client.get_all([self._ref(pid) for pid in ids]):
                if snap.exists:
                    found[snap.id] = snap.to_dict() or {}
        except (gexc.GoogleAPICallError, gexc.RetryError):
            raise self._unavailable("get_all", None)
        return found

    def update_fields(self, player_id: str, fields: Dict[str, Any]) -> None:
        try:
            self._ref(player_id).update(fields)
        except gexc.NotFound:
            raise _not_found(player_id)
        except (gexc.GoogleAPICallError, gexc.RetryError):
            raise self._unavailable("update", player_id)

    def create(self, player_id: str, document: Dict[str, Any]) -> None:
        try:
            self._ref(player_id).create(document)
        except gexc.Conflict:
            raise RelationshipError(
                ErrorCode.ERR_INVALID_REQUEST,
                "User data already set, no need to create again",
                details={"playerId": player_id},
            )
        except (gexc.GoogleAPICallError, gexc.RetryError):
            raise self._unavailable("create", player_id)

    def stream_documents(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        try:
            for snap in self._client.collection(self._collection).stream():
                yield snap.id, snap.to_dict() or {}
        except (gexc.GoogleAPICallError, gexc.RetryError):
            raise self._unavailable("stream", None)


class InMemoryPlayerStore(PlayerStore):
    """Dict-backed store. ``documents`` is used as-is so callers can share it."""

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        self.documents: Dict[str, Dict[str, Any]] = documents if documents is not None else {}

    def get_document(self, player_id: str) -> Optional[Dict[str, Any]]:
        doc = self.documents.get(player_id)
        return copy.deepcopy(doc) if doc is not None else None

    def update_fields(self, player_id: str, fields: Dict[str, Any]) -> None:
        doc = self.documents.get(player_id)
        if doc is None:
            raise _not_found(player_id)
        for path, value in fields.items():
            parts: List[str] = path.split(".")
            node = doc
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = node[part] = {}
                node = child
            node[parts[-1]] = copy.deepcopy(value)

    def create(self, player_id: str, document: Dict[str, Any]) -> None:
        if player_id in self.documents:
            raise RelationshipError(
                ErrorCode.ERR_INVALID_REQUEST,
                "User data already set, no need to create again",
                details={"playerId": player_id},
            )
        self.documents[player_id] = copy.deepcopy(document)

    def stream_documents(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        for pid in list(self.documents):
            yield pid, copy.deepcopy(self.documents[pid])
