import logging

import pytest

from social_graph.errors import ErrorCode, RelationshipError
from social_graph.models import new_player_document
from social_graph.projection import PlayerProjection, view_to_dict
from social_graph.store import InMemoryPlayerStore


def make_store() -> InMemoryPlayerStore:
    store = InMemoryPlayerStore()
    store.create("p1", new_player_document("Nova", "falcon"))
    store.create("p2", new_player_document("Orion", "viper"))
    store.create("p3", new_player_document("novak", ""))
    store.documents["nameless"] = {"pilotActive": "x"}
    return store


def test_missing_player_is_dropped_without_error(caplog):
    projection = PlayerProjection(make_store())
    with caplog.at_level(logging.WARNING, logger="social_graph.projection"):
        view = projection.project({"friend": ["p9"]})
    assert view == {"friend": []}
    assert "p9" in caplog.text


def test_malformed_record_is_dropped():
    projection = PlayerProjection(make_store())
    view = projection.project([("friend", ["nameless", "p1"])])
    assert [s.user_id for s in view["friend"]] == ["p1"]


def test_groups_keep_categories_and_summary_shape():
    projection = PlayerProjection(make_store())
    view = projection.project([("friend", ["p1", "p2"]), ("request", ["p3"]), ("block", [])])
    assert view_to_dict(view) == {
        "friend": [
            {"userId": "p1", "playerName": "Nova", "pilotActive": "falcon"},
            {"userId": "p2", "playerName": "Orion", "pilotActive": "viper"},
        ],
        "request": [{"userId": "p3", "playerName": "novak", "pilotActive": ""}],
        "block": [],
    }


def test_id_in_two_categories_is_listed_under_both():
    projection = PlayerProjection(make_store())
    view = projection.project([("friend", ["p1", "p2"]), ("request", ["p2"])])
    assert [s.user_id for s in view["friend"]] == ["p1", "p2"]
    assert [s.user_id for s in view["request"]] == ["p2"]


def test_order_follows_resolution_sequence():
    projection = PlayerProjection(make_store())
    view = projection.project([("request", ["p2"]), ("friend", ["p1", "p2"])])
    # p2 resolved first (from request), so it leads the friend list too.
    assert [s.user_id for s in view["friend"]] == ["p2", "p1"]


def test_single_batched_read():
    store = make_store()
    calls = []
    original = store.get_documents

    def spy(ids):
        ids = list(ids)
        calls.append(ids)
        return original(ids)

    store.get_documents = spy
    PlayerProjection(store).project({"friend": ["p1", "p2"], "request": ["p2", "p3"]})
    assert calls == [["p1", "p2", "p2", "p3"]]


def test_search_is_case_insensitive_substring():
    projection = PlayerProjection(make_store())
    found = projection.search("NOVA")
    assert sorted(s.user_id for s in found) == ["p1", "p3"]


def test_search_rejects_short_query():
    projection = PlayerProjection(make_store(), search_min_length=4)
    with pytest.raises(RelationshipError) as exc:
        projection.search("no")
    assert exc.value.code == ErrorCode.ERR_INVALID_REQUEST


class FlakyStore(InMemoryPlayerStore):
    """Fails every read of the listed player ids."""

    def __init__(self, broken):
        super().__init__()
        self.broken = set(broken)

    def get_document(self, player_id):
        if player_id in self.broken:
            raise RelationshipError(ErrorCode.ERR_STORE_UNAVAILABLE)
        return super().get_document(player_id)


def test_failed_read_drops_only_that_player(caplog):
    store = FlakyStore({"bad"})
    store.create("p1", new_player_document("Nova"))
    store.create("p2", new_player_document("Orion"))
    projection = PlayerProjection(store)

    with caplog.at_level(logging.WARNING, logger="social_graph.projection"):
        view = projection.project({"friend": ["p1", "bad"], "request": ["p2"]})
    assert [s.user_id for s in view["friend"]] == ["p1"]
    assert [s.user_id for s in view["request"]] == ["p2"]
    assert "bad" in caplog.text
