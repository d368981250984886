"""Flask application exposing the player relationship graph over REST.

Endpoints live under ``/api/v1`` and keep the paths the game client already
calls. Every request is authenticated with a Firebase ID token and the
authenticated uid is the acting player. When Firestore is unavailable, a
local in-memory store is used which is suitable for tests and examples.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Tuple

import firebase_admin
from firebase_admin import auth, firestore
from flask import (
    Flask,
    Response,
    current_app,
    g,
    jsonify,
    request,
)
from werkzeug.exceptions import HTTPException

from social_graph.config import SocialGraphConfig
from social_graph.engine import RelationshipEngine, TransitionResult
from social_graph.errors import ErrorCode, RelationshipError, http_status
from social_graph.projection import PlayerProjection, view_to_dict
from social_graph.schemas import PlayerSearch, ProfileUpdate, RelationshipAction, parse_payload
from social_graph.store import FirestorePlayerStore, InMemoryPlayerStore, PlayerStore

app = Flask(__name__)
social_config = SocialGraphConfig.from_env()

# ---------------------------------------------------------------------------
# Firebase / Firestore setup
# ---------------------------------------------------------------------------
try:
    firebase_admin.get_app()
except ValueError:  # pragma: no cover - only runs when not already initialised
    firebase_admin.initialize_app()

try:  # Attempt to obtain a Firestore client; fall back to None if it fails.
    db = firestore.client()
except Exception:  # pragma: no cover - Firestore may be missing during tests
    db = None


def player_store() -> PlayerStore:
    if db:
        return FirestorePlayerStore(db, social_config.users_collection)
    return InMemoryPlayerStore(current_app.config.setdefault("_local_users", {}))


def relationship_engine() -> RelationshipEngine:
    store = player_store()
    return RelationshipEngine(store, PlayerProjection(store, social_config.search_min_length))


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
def error_response(err: RelationshipError) -> Tuple[Response, int]:
    return jsonify(status="error", error=err.code.value, message=err.message), http_status(err.code)


@app.errorhandler(RelationshipError)
def handle_relationship_error(err: RelationshipError):
    return error_response(err)


@app.errorhandler(Exception)
def handle_unexpected_error(err: Exception):
    if isinstance(err, HTTPException):
        return err
    app.logger.exception("Unhandled error on %s", request.path)
    return error_response(RelationshipError(ErrorCode.ERR_INTERNAL))


# ---------------------------------------------------------------------------
# Authentication decorator
# ---------------------------------------------------------------------------
def require_firebase_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Verify the Firebase ID token from the Authorization header."""

    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any):
        if current_app.config.get("TESTING"):
            g.user = {"uid": "test-uid"}
            return fn(*args, **kwargs)

        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            raise RelationshipError(ErrorCode.ERR_UNAUTHENTICATED)
        token = header.split(" ", 1)[1]
        try:
            decoded = auth.verify_id_token(token)
        except Exception:  # pragma: no cover - depends on firebase_admin internals
            raise RelationshipError(ErrorCode.ERR_UNAUTHENTICATED)
        g.user = {"uid": decoded["uid"], "email": decoded.get("email")}
        return fn(*args, **kwargs)

    return wrapper


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/api/v1/health")
def health() -> Tuple[Response, int]:
    """Simple health-check endpoint."""
    return jsonify(status="ok"), 200


@app.get("/api/v1/users/me")
@require_firebase_auth
def get_me() -> Tuple[Response, int]:
    """Return the current user's profile with a hydrated player list."""
    engine = relationship_engine()
    profile = player_store().get_document(g.user["uid"])
    if profile is None:
        raise RelationshipError(ErrorCode.ERR_NOT_FOUND)
    profile["userId"] = g.user["uid"]
    profile["playerList"] = view_to_dict(engine.get_relationship_view(g.user["uid"]))
    return jsonify(status="success", message="User retrieved successfully", data=profile), 200


@app.put("/api/v1/users/me")
@require_firebase_auth
def update_me() -> Tuple[Response, int]:
    """Create the current user's player document or update its profile fields."""
    data = parse_payload(ProfileUpdate, request.get_json(silent=True))
    player = player_store().ensure_player(g.user["uid"], data.playerName, data.pilotActive)
    return jsonify(
        status="success",
        message="User data set successfully",
        data={**player.summary().to_dict(), "playerList": player.relationships.to_dict()},
    ), 200


@app.get("/api/v1/user/get-player-list")
@require_firebase_auth
def get_player_list() -> Tuple[Response, int]:
    view = relationship_engine().get_relationship_view(g.user["uid"])
    return jsonify(
        status="success",
        message="Player list retrieved successfully",
        data={"playerList": view_to_dict(view)},
    ), 200


@app.get("/api/v1/user/search-playername")
@require_firebase_auth
def search_player_name() -> Tuple[Response, int]:
    data = parse_payload(PlayerSearch, request.args.to_dict())
    store = player_store()
    results = PlayerProjection(store, social_config.search_min_length).search(data.query)
    return jsonify(
        status="success",
        message="Player name search successful",
        data=[s.to_dict() for s in results],
    ), 200


def _relationship_action(
    transition: Callable[[RelationshipEngine, str, str], TransitionResult],
    with_view: bool = True,
) -> Tuple[Response, int]:
    data = parse_payload(RelationshipAction, request.get_json(silent=True))
    engine = relationship_engine()
    result = transition(engine, g.user["uid"], data.targetId)
    if not with_view:
        return jsonify(status="success", message=result.message), 200
    # The transition is committed here; a failed view read is reported as a
    # missing playerList rather than as a failed write.
    try:
        player_list = view_to_dict(engine.get_relationship_view(g.user["uid"]))
    except RelationshipError as err:
        app.logger.warning("%s committed but view read failed: %s", request.path, err.code.value)
        player_list = None
    return jsonify(
        status="success",
        message=result.message,
        data={"playerList": player_list},
    ), 200


@app.post("/api/v1/user/send-friend-request")
@require_firebase_auth
def send_friend_request() -> Tuple[Response, int]:
    return _relationship_action(RelationshipEngine.send_request, with_view=False)


@app.post("/api/v1/user/accept-friend-request")
@require_firebase_auth
def accept_friend_request() -> Tuple[Response, int]:
    return _relationship_action(RelationshipEngine.accept_request)


@app.post("/api/v1/user/remove-friend-request")
@require_firebase_auth
def remove_friend_request() -> Tuple[Response, int]:
    return _relationship_action(RelationshipEngine.remove_request)


@app.post("/api/v1/user/remove-friend")
@require_firebase_auth
def remove_friend() -> Tuple[Response, int]:
    return _relationship_action(RelationshipEngine.remove_friend)


@app.post("/api/v1/user/block-player")
@require_firebase_auth
def block_player() -> Tuple[Response, int]:
    return _relationship_action(RelationshipEngine.block)


@app.post("/api/v1/user/unblock-player")
@require_firebase_auth
def unblock_player() -> Tuple[Response, int]:
    return _relationship_action(RelationshipEngine.unblock)


if __name__ == "__main__":
    app.run(debug=True)
