"""
Relationship consistency engine.

Each public method applies one relationship transition between an actor
(``self_id``) and a target (``other_id``):

  send_request    other.request += self
  accept_request  self.request -= other, self.friend += other,
                  other.friend += self, other.request -= self
                  (refused while either side blocks the other)
  remove_request  self.request -= other                 (self only)
  remove_friend   self.friend -= other, other.friend -= self
  block           self.block += other, self.friend -= other,
                  self.request -= other, other.friend -= self
  unblock         self.block -= other                   (self only)

Both documents are loaded and every precondition is checked before the first
write. Writes are independent per-document updates issued self side first;
there is no multi-document transaction and no rollback. When the first write
commits and the second fails the engine raises ``ERR_PARTIAL_WRITE`` naming
the committed side and carrying the set edits still owed to the failed
side; ``complete_partial`` re-applies them. Set-level writes are idempotent,
so most transitions also converge when the caller simply replays them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from . import relationship_sets as rs
from .errors import ErrorCode, RelationshipError
from .models import BLOCK, FRIEND, REQUEST, Player, field_path
from .projection import PlayerProjection, View
from .store import PlayerStore

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    operation: str
    message: str
    changed: bool = False
    committed: List[str] = field(default_factory=list)   # player ids written, in order

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "message": self.message,
            "changed": self.changed,
            "committed": list(self.committed),
        }


class _PendingWrite:
    """Relationship edits to one player document, applied in memory first."""

    def __init__(self, player: Player):
        self.player = player
        self.fields: Dict[str, List[str]] = {}
        self.edits: List[Dict[str, str]] = []

    def add(self, category: str, target: str) -> bool:
        members, changed = rs.add_if_absent(self.player.relationships.members(category), target)
        return self._record("add", category, target, members, changed)

    def remove(self, category: str, target: str) -> bool:
        members, changed = rs.remove_if_present(self.player.relationships.members(category), target)
        return self._record("remove", category, target, members, changed)

    def _record(self, action: str, category: str, target: str, members: List[str], changed: bool) -> bool:
        if changed:
            self.player.relationships.replace(category, members)
            self.fields[field_path(category)] = members
            self.edits.append({"action": action, "category": category, "target": target})
        return changed


class RelationshipEngine:
    def __init__(self, store: PlayerStore, projection: Optional[PlayerProjection] = None):
        self._store = store
        self._projection = projection or PlayerProjection(store)

    # -------------------------
    # Loading / validation
    # -------------------------

    @staticmethod
    def _validate(self_id: Any, other_id: Any) -> None:
        if not isinstance(self_id, str) or not isinstance(other_id, str) or not self_id or not other_id:
            raise RelationshipError(ErrorCode.ERR_INVALID_REQUEST)
        if self_id == other_id:
            raise RelationshipError(
                ErrorCode.ERR_INVALID_REQUEST,
                "A player cannot target themselves",
                details={"playerId": self_id},
            )

    def _load_pair(self, self_id: str, other_id: str) -> Tuple[Player, Player]:
        self._validate(self_id, other_id)
        players = self._store.get_many([self_id, other_id])
        me, other = players.get(self_id), players.get(other_id)
        if me is None or other is None:
            missing = [pid for pid, p in ((self_id, me), (other_id, other)) if p is None]
            raise RelationshipError(
                ErrorCode.ERR_NOT_FOUND,
                "User or friend not found",
                details={"missing": missing},
            )
        return me, other

    # -------------------------
    # Write coordinator
    # -------------------------

    def _commit(self, operation: str, *writes: _PendingWrite) -> List[str]:
        """Issue the per-document updates in order, recording each side that lands."""
        committed: List[str] = []
        for write in writes:
            if not write.fields:
                continue
            pid = write.player.player_id
            try:
                self._store.update_fields(pid, write.fields)
            except RelationshipError as err:
                if not committed:
                    raise
                logger.error(
                    "%s partially applied: committed=%s failed=%s (%s)",
                    operation, committed, pid, err.code.value,
                )
                raise RelationshipError(
                    ErrorCode.ERR_PARTIAL_WRITE,
                    details={
                        "operation": operation,
                        "committed": list(committed),
                        "failed": pid,
                        "cause": err.code.value,
                        "pending": [dict(e) for e in write.edits],
                    },
                ) from err
            committed.append(pid)
        return committed

    # -------------------------
    # Transitions
    # -------------------------

    def send_request(self, self_id: str, other_id: str) -> TransitionResult:
        me, other = self._load_pair(self_id, other_id)
        mine, theirs = me.relationships, other.relationships

        if rs.contains(mine.block, other_id):
            raise RelationshipError(ErrorCode.ERR_BLOCKED)
        if rs.contains(theirs.request, self_id):
            raise RelationshipError(ErrorCode.ERR_DUPLICATE_REQUEST)
        if rs.contains(theirs.friend, self_id):
            raise RelationshipError(ErrorCode.ERR_ALREADY_FRIENDS)
        if rs.contains(theirs.block, self_id):
            raise RelationshipError(ErrorCode.ERR_BLOCKED)

        target = _PendingWrite(other)
        target.add(REQUEST, self_id)
        committed = self._commit("send_request", target)
        return TransitionResult("send_request", "Friend request sent successfully", True, committed)

    def accept_request(self, self_id: str, other_id: str) -> TransitionResult:
        me, other = self._load_pair(self_id, other_id)

        if rs.contains(me.relationships.friend, other_id):
            # No duplicate write on our side; a counterpart left behind by an
            # earlier partial write is brought back in line.
            theirs = _PendingWrite(other)
            if not rs.contains(other.relationships.block, self_id):
                theirs.add(FRIEND, self_id)
                theirs.remove(REQUEST, self_id)
            committed = self._commit("accept_request", theirs)
            return TransitionResult(
                "accept_request",
                "Friend request accepted successfully. User is already your friend.",
                bool(committed),
                committed,
            )
        if not rs.contains(me.relationships.request, other_id):
            raise RelationshipError(ErrorCode.ERR_REQUEST_NOT_FOUND)
        # A request left over from before a block never becomes a friendship.
        if rs.contains(other.relationships.block, self_id) or rs.contains(me.relationships.block, other_id):
            raise RelationshipError(ErrorCode.ERR_BLOCKED)

        mine, theirs = _PendingWrite(me), _PendingWrite(other)
        mine.remove(REQUEST, other_id)
        mine.add(FRIEND, other_id)
        theirs.add(FRIEND, self_id)
        theirs.remove(REQUEST, self_id)   # a crossed request from us is settled too
        committed = self._commit("accept_request", mine, theirs)
        return TransitionResult("accept_request", "Friend request accepted successfully", True, committed)

    def remove_request(self, self_id: str, other_id: str) -> TransitionResult:
        me, _ = self._load_pair(self_id, other_id)
        mine = _PendingWrite(me)
        changed = mine.remove(REQUEST, other_id)
        committed = self._commit("remove_request", mine)
        return TransitionResult("remove_request", "Friend request removed successfully", changed, committed)

    def remove_friend(self, self_id: str, other_id: str) -> TransitionResult:
        me, other = self._load_pair(self_id, other_id)
        if not rs.contains(me.relationships.friend, other_id):
            raise RelationshipError(ErrorCode.ERR_NOT_FRIENDS)

        mine, theirs = _PendingWrite(me), _PendingWrite(other)
        mine.remove(FRIEND, other_id)
        theirs.remove(FRIEND, self_id)    # tolerated when already clean
        committed = self._commit("remove_friend", mine, theirs)
        return TransitionResult("remove_friend", "Friend removed successfully", True, committed)

    def block(self, self_id: str, other_id: str) -> TransitionResult:
        me, other = self._load_pair(self_id, other_id)

        mine, theirs = _PendingWrite(me), _PendingWrite(other)
        mine.add(BLOCK, other_id)
        mine.remove(FRIEND, other_id)
        mine.remove(REQUEST, other_id)
        # Only friend symmetry is repaired on the other side; their block and
        # request sets stay theirs.
        theirs.remove(FRIEND, self_id)
        committed = self._commit("block", mine, theirs)
        return TransitionResult("block", "Player blocked successfully", bool(committed), committed)

    def unblock(self, self_id: str, other_id: str) -> TransitionResult:
        me, _ = self._load_pair(self_id, other_id)
        mine = _PendingWrite(me)
        if not mine.remove(BLOCK, other_id):
            raise RelationshipError(ErrorCode.ERR_NOT_BLOCKED)
        committed = self._commit("unblock", mine)
        return TransitionResult("unblock", "Player unblocked successfully", True, committed)

    def complete_partial(self, failure: RelationshipError) -> TransitionResult:
        """Re-apply the edits a partially written transition still owes.

        The edits are replayed with set semantics against a fresh read of the
        failed document, so calling this more than once is harmless.
        """
        if failure.code != ErrorCode.ERR_PARTIAL_WRITE:
            raise RelationshipError(ErrorCode.ERR_INVALID_REQUEST, "Not a partial write failure")
        details = failure.details
        write = _PendingWrite(self._store.get(details["failed"]))
        for edit in details.get("pending", []):
            if edit["action"] == "add":
                write.add(edit["category"], edit["target"])
            else:
                write.remove(edit["category"], edit["target"])
        operation = details.get("operation", "complete_partial")
        committed = self._commit(operation, write)
        return TransitionResult(operation, "Relationship update completed", bool(committed), committed)

    # -------------------------
    # Views
    # -------------------------

    def get_relationship_view(self, self_id: str) -> View:
        if not isinstance(self_id, str) or not self_id:
            raise RelationshipError(ErrorCode.ERR_INVALID_REQUEST)
        me = self._store.get(self_id)
        return self._projection.project(me.relationships.groups())
