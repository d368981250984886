"""
Player documents and the records derived from them.

Documents in the users collection keep the camelCase field names the game
client reads (``playerName``, ``pilotActive``, ``playerList``). The
``playerList`` map holds the three relationship arrays; they are always
present on documents written by this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

NAME_FIELD = "playerName"
SELECTOR_FIELD = "pilotActive"
RELATIONSHIPS_FIELD = "playerList"

FRIEND = "friend"
REQUEST = "request"
BLOCK = "block"
CATEGORIES: Tuple[str, ...] = (FRIEND, REQUEST, BLOCK)


def field_path(category: str) -> str:
    """Dotted Firestore field path for one relationship array."""
    if category not in CATEGORIES:
        raise KeyError(category)
    return f"{RELATIONSHIPS_FIELD}.{category}"


def _unique_ids(values: Any) -> List[str]:
    # Arrays written by older clients may repeat ids or be missing entirely.
    if not isinstance(values, (list, tuple)):
        return []
    return list(dict.fromkeys(v for v in values if isinstance(v, str) and v))


@dataclass
class Relationships:
    friend: List[str] = field(default_factory=list)
    request: List[str] = field(default_factory=list)   # incoming: "that player asked me"
    block: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Relationships":
        data = data if isinstance(data, dict) else {}
        return cls(
            friend=_unique_ids(data.get(FRIEND)),
            request=_unique_ids(data.get(REQUEST)),
            block=_unique_ids(data.get(BLOCK)),
        )

    def members(self, category: str) -> List[str]:
        if category not in CATEGORIES:
            raise KeyError(category)
        return getattr(self, category)

    def replace(self, category: str, members: Iterable[str]) -> None:
        if category not in CATEGORIES:
            raise KeyError(category)
        setattr(self, category, list(members))

    def groups(self) -> List[Tuple[str, List[str]]]:
        """Category-labelled id groups in the order the client renders them."""
        return [(c, list(self.members(c))) for c in CATEGORIES]

    def to_dict(self) -> Dict[str, List[str]]:
        return {c: list(self.members(c)) for c in CATEGORIES}


@dataclass
class Player:
    player_id: str
    player_name: Optional[str] = None
    pilot_active: Optional[str] = None
    relationships: Relationships = field(default_factory=Relationships)

    @classmethod
    def from_document(cls, player_id: str, data: Optional[Dict[str, Any]]) -> "Player":
        data = data or {}
        name = data.get(NAME_FIELD)
        return cls(
            player_id=player_id,
            player_name=name if isinstance(name, str) else None,
            pilot_active=data.get(SELECTOR_FIELD),
            relationships=Relationships.from_dict(data.get(RELATIONSHIPS_FIELD)),
        )

    def summary(self) -> "PlayerSummary":
        return PlayerSummary(self.player_id, self.player_name or "", self.pilot_active)


@dataclass(frozen=True)
class PlayerSummary:
    """Display record for one player inside a relationship view."""

    user_id: str
    player_name: str
    pilot_active: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            NAME_FIELD: self.player_name,
            SELECTOR_FIELD: self.pilot_active,
        }


def new_player_document(player_name: str = "", pilot_active: str = "") -> Dict[str, Any]:
    """Fresh player profile with all relationship arrays initialised empty."""
    return {
        NAME_FIELD: player_name,
        "playerNameLower": player_name.lower(),
        SELECTOR_FIELD: pilot_active,
        RELATIONSHIPS_FIELD: Relationships().to_dict(),
    }
