# functions-python/main.py
"""
Firebase Cloud Functions (Gen2, Python): callable endpoints for the player
relationship graph (friends, incoming friend requests, block list).

Every function here is https callable; the client invokes it with
httpsCallable(functions, 'name'). The acting player is always the
authenticated uid; the target comes from the payload.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import firebase_admin
from firebase_admin import firestore as admin_fs
from firebase_functions import https_fn, logger, options
from firebase_functions.https_fn import FunctionsErrorCode, HttpsError

from social_graph.config import SocialGraphConfig
from social_graph.engine import RelationshipEngine, TransitionResult
from social_graph.errors import ErrorCode, RelationshipError
from social_graph.projection import PlayerProjection, view_to_dict
from social_graph.schemas import PlayerSearch, RelationshipAction, parse_payload
from social_graph.store import FirestorePlayerStore, PlayerStore

CONFIG = SocialGraphConfig.from_env()

# -------------------------
# Región y timeout
# -------------------------
options.set_global_options(region=CONFIG.region, timeout_sec=CONFIG.timeout_sec)

# -------------------------
# Admin SDK (lazy: the client is only built on the first request)
# -------------------------
_store: Optional[PlayerStore] = None


def _player_store() -> PlayerStore:
    global _store
    if _store is None:
        # Para depurar en local exporta FIRESTORE_EMULATOR_HOST=127.0.0.1:8080
        if not firebase_admin._apps:
            firebase_admin.initialize_app()
        _store = FirestorePlayerStore(admin_fs.client(), CONFIG.users_collection)
    return _store


def _engine() -> RelationshipEngine:
    store = _player_store()
    return RelationshipEngine(store, PlayerProjection(store, CONFIG.search_min_length))


# -------------------------
# Utilidades
# -------------------------

_FUNCTIONS_CODE: Dict[ErrorCode, FunctionsErrorCode] = {
    ErrorCode.ERR_INTERNAL: FunctionsErrorCode.INTERNAL,
    ErrorCode.ERR_UNAUTHENTICATED: FunctionsErrorCode.UNAUTHENTICATED,
    ErrorCode.ERR_INVALID_REQUEST: FunctionsErrorCode.INVALID_ARGUMENT,
    ErrorCode.ERR_NOT_FOUND: FunctionsErrorCode.NOT_FOUND,
    ErrorCode.ERR_BLOCKED: FunctionsErrorCode.PERMISSION_DENIED,
    ErrorCode.ERR_ALREADY_FRIENDS: FunctionsErrorCode.ALREADY_EXISTS,
    ErrorCode.ERR_DUPLICATE_REQUEST: FunctionsErrorCode.ALREADY_EXISTS,
    ErrorCode.ERR_REQUEST_NOT_FOUND: FunctionsErrorCode.FAILED_PRECONDITION,
    ErrorCode.ERR_NOT_FRIENDS: FunctionsErrorCode.FAILED_PRECONDITION,
    ErrorCode.ERR_NOT_BLOCKED: FunctionsErrorCode.FAILED_PRECONDITION,
    ErrorCode.ERR_PARTIAL_WRITE: FunctionsErrorCode.ABORTED,
    ErrorCode.ERR_STORE_UNAVAILABLE: FunctionsErrorCode.UNAVAILABLE,
}


def _to_https_error(err: RelationshipError) -> HttpsError:
    details: Dict[str, Any] = {"error": err.code.value}
    if err.details:
        details["meta"] = err.details
    return HttpsError(
        _FUNCTIONS_CODE.get(err.code, FunctionsErrorCode.INTERNAL),
        err.message,
        details=details,
    )


def _require_uid(req: https_fn.CallableRequest) -> str:
    if req.auth and getattr(req.auth, "uid", None):
        return req.auth.uid
    raise _to_https_error(RelationshipError(ErrorCode.ERR_UNAUTHENTICATED))


def _call(name: str, fn: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return fn()
    except RelationshipError as err:
        logger.warn(f"{name} rejected", code=err.code.value, details=err.details)
        raise _to_https_error(err)
    except HttpsError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in {name}: {e!r}")
        raise _to_https_error(RelationshipError(ErrorCode.ERR_INTERNAL))


def _relationship_action(
    req: https_fn.CallableRequest,
    name: str,
    transition: Callable[[RelationshipEngine, str, str], TransitionResult],
    with_view: bool = True,
) -> Dict[str, Any]:
    uid = _require_uid(req)

    def run() -> Dict[str, Any]:
        payload = parse_payload(RelationshipAction, req.data)
        engine = _engine()
        result = transition(engine, uid, payload.targetId)
        response: Dict[str, Any] = {"ok": True, "message": result.message}
        if with_view:
            # The transition is committed at this point; a failed view read
            # must not be reported as a failed write.
            try:
                response["playerList"] = view_to_dict(engine.get_relationship_view(uid))
            except RelationshipError as err:
                logger.warn(f"{name} committed but view read failed", code=err.code.value)
                response["playerList"] = None
        return response

    return _call(name, run)


# -------------------------
# Endpoints callable
# -------------------------

@https_fn.on_call()
def send_friend_request(req: https_fn.CallableRequest) -> Dict[str, Any]:
    return _relationship_action(req, "send_friend_request", RelationshipEngine.send_request, with_view=False)


@https_fn.on_call()
def accept_friend_request(req: https_fn.CallableRequest) -> Dict[str, Any]:
    return _relationship_action(req, "accept_friend_request", RelationshipEngine.accept_request)


@https_fn.on_call()
def remove_friend_request(req: https_fn.CallableRequest) -> Dict[str, Any]:
    return _relationship_action(req, "remove_friend_request", RelationshipEngine.remove_request)


@https_fn.on_call()
def remove_friend(req: https_fn.CallableRequest) -> Dict[str, Any]:
    return _relationship_action(req, "remove_friend", RelationshipEngine.remove_friend)


@https_fn.on_call()
def block_player(req: https_fn.CallableRequest) -> Dict[str, Any]:
    return _relationship_action(req, "block_player", RelationshipEngine.block)


@https_fn.on_call()
def unblock_player(req: https_fn.CallableRequest) -> Dict[str, Any]:
    return _relationship_action(req, "unblock_player", RelationshipEngine.unblock)


def _player_list(req: https_fn.CallableRequest) -> Dict[str, Any]:
    uid = _require_uid(req)
    return _call(
        "get_player_list",
        lambda: {"ok": True, "playerList": view_to_dict(_engine().get_relationship_view(uid))},
    )


def _search_player_name(req: https_fn.CallableRequest) -> Dict[str, Any]:
    _require_uid(req)

    def run() -> Dict[str, Any]:
        payload = parse_payload(PlayerSearch, req.data)
        store = _player_store()
        results = PlayerProjection(store, CONFIG.search_min_length).search(payload.query)
        return {"ok": True, "players": [s.to_dict() for s in results]}

    return _call("search_player_name", run)


@https_fn.on_call()
def get_player_list(req: https_fn.CallableRequest) -> Dict[str, Any]:
    return _player_list(req)


@https_fn.on_call()
def search_player_name(req: https_fn.CallableRequest) -> Dict[str, Any]:
    return _search_player_name(req)
