"""Request payloads shared by the Cloud Functions and the Flask app."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from .errors import ErrorCode, RelationshipError


class RelationshipAction(BaseModel):
    # Older clients name the target after the action.
    targetId: str = Field(
        validation_alias=AliasChoices("targetId", "friendId", "playerToBlockId", "unblockPlayerId"),
    )


class PlayerSearch(BaseModel):
    query: str


class ProfileUpdate(BaseModel):
    playerName: Optional[str] = None
    pilotActive: Optional[str] = None


def parse_payload(model: type, data: Any) -> Any:
    """Validate ``data`` against ``model`` or raise ERR_INVALID_REQUEST."""
    try:
        return model.model_validate(data or {})
    except ValidationError as exc:
        fields = [".".join(str(p) for p in e["loc"]) for e in exc.errors()]
        raise RelationshipError(ErrorCode.ERR_INVALID_REQUEST, details={"fields": fields})
