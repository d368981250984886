"""
Player projection: turn relationship id lists into display records.

The projection resolves every id of every group through one batched store
read, builds a flat list of summaries in resolution order and then filters
that list back into each category. Ids that do not resolve (no document, or
a document without a player name) are dropped with a warning; they never
abort the batch. When the batched read itself fails, each id is read on its
own and the ones that still fail are dropped the same way.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Tuple, Union

from .errors import ErrorCode, RelationshipError
from .models import PlayerSummary
from .store import PlayerStore

logger = logging.getLogger(__name__)

Groups = Union[Dict[str, Sequence[str]], Sequence[Tuple[str, Sequence[str]]]]
View = Dict[str, List[PlayerSummary]]

_UNREADABLE: Any = object()


def view_to_dict(view: View) -> Dict[str, List[Dict[str, Any]]]:
    return {category: [s.to_dict() for s in summaries] for category, summaries in view.items()}


class PlayerProjection:
    def __init__(self, store: PlayerStore, search_min_length: int = 4):
        self._store = store
        self._search_min_length = search_min_length

    def project(self, groups: Groups) -> View:
        """Map each category label to the summaries of its resolvable members.

        ``groups`` is either a mapping or a sequence of ``(label, ids)`` pairs.
        Ids repeated across categories are resolved once and listed under
        every category that names them.
        """
        pairs: List[Tuple[str, List[str]]] = [
            (label, [i for i in ids if isinstance(i, str)])
            for label, ids in (groups.items() if isinstance(groups, dict) else groups)
        ]
        flat = [pid for _, ids in pairs for pid in ids]
        resolved = self._resolve(flat, {pid: label for label, ids in reversed(pairs) for pid in ids})

        view: View = {}
        for label, ids in pairs:
            members = set(ids)
            view[label] = [s for s in resolved if s.user_id in members]
        return view

    def _resolve(self, player_ids: List[str], first_label: Dict[str, str]) -> List[PlayerSummary]:
        try:
            players = self._store.get_many(player_ids)
        except RelationshipError as exc:
            logger.warning("Batched player read failed (%s); resolving ids one by one", exc.code.value)
            players = {}
            for pid in dict.fromkeys(player_ids):
                try:
                    players.update(self._store.get_many([pid]))
                except RelationshipError as item_exc:
                    logger.warning(
                        "Dropping %s from %s list: read failed (%s)", pid, first_label.get(pid), item_exc.code.value
                    )
                    players[pid] = _UNREADABLE
        summaries: List[PlayerSummary] = []
        for pid in dict.fromkeys(player_ids):
            player = players.get(pid)
            if player is _UNREADABLE:
                continue
            if player is None:
                logger.warning("Dropping %s from %s list: player document not found", pid, first_label.get(pid))
                continue
            if player.player_name is None:
                logger.warning("Dropping %s from %s list: player name is undefined", pid, first_label.get(pid))
                continue
            summaries.append(player.summary())
        return summaries

    def search(self, query: str) -> List[PlayerSummary]:
        """Case-insensitive substring search over player names."""
        query = (query or "").strip()
        if len(query) < self._search_min_length:
            raise RelationshipError(
                ErrorCode.ERR_INVALID_REQUEST,
                "Invalid or too short query parameter",
                details={"minLength": self._search_min_length},
            )
        needle = query.lower()
        results: List[PlayerSummary] = []
        for player in self._store.stream():
            if player.player_name is None:
                logger.info("Player name is undefined for document with ID: %s", player.player_id)
                continue
            if needle in player.player_name.lower():
                results.append(player.summary())
        return results
