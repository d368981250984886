from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gexc

from social_graph.errors import ErrorCode, RelationshipError
from social_graph.models import Player, new_player_document
from social_graph.store import FirestorePlayerStore, InMemoryPlayerStore


def test_update_fields_sets_nested_paths():
    store = InMemoryPlayerStore()
    store.create("p1", new_player_document("Nova"))
    store.update_fields("p1", {"playerList.friend": ["p2"], "pilotActive": "falcon"})
    assert store.documents["p1"]["playerList"] == {"friend": ["p2"], "request": [], "block": []}
    assert store.documents["p1"]["pilotActive"] == "falcon"


def test_update_missing_player_is_not_found():
    store = InMemoryPlayerStore()
    with pytest.raises(RelationshipError) as exc:
        store.update_fields("ghost", {"playerList.friend": []})
    assert exc.value.code == ErrorCode.ERR_NOT_FOUND


def test_reads_are_copies():
    store = InMemoryPlayerStore()
    store.create("p1", new_player_document("Nova"))
    player = store.get("p1")
    player.relationships.friend.append("p2")
    assert store.documents["p1"]["playerList"]["friend"] == []


def test_ensure_player_creates_with_empty_sets():
    store = InMemoryPlayerStore()
    player = store.ensure_player("p1", player_name="Nova")
    assert player.player_name == "Nova"
    assert store.documents["p1"]["playerList"] == {"friend": [], "request": [], "block": []}
    assert store.documents["p1"]["playerNameLower"] == "nova"


def test_ensure_player_backfills_legacy_document():
    store = InMemoryPlayerStore({"p1": {"playerName": "Old", "playerList": {"friend": ["p2", "p2"]}}})
    player = store.ensure_player("p1", pilot_active="viper")
    assert store.documents["p1"]["playerList"] == {"friend": ["p2", "p2"], "request": [], "block": []}
    assert player.relationships.friend == ["p2"]
    assert player.pilot_active == "viper"


def test_get_many_maps_missing_ids_to_none():
    store = InMemoryPlayerStore()
    store.create("p1", new_player_document("Nova"))
    players = store.get_many(["p1", "ghost"])
    assert isinstance(players["p1"], Player)
    assert players["ghost"] is None


def make_firestore():
    client = MagicMock()
    refs = {}

    def document(pid):
        return refs.setdefault(pid, MagicMock(name=f"ref-{pid}"))

    client.collection.return_value.document.side_effect = document
    return client, refs


def snapshot(pid, data=None):
    snap = MagicMock()
    snap.id = pid
    snap.exists = data is not None
    snap.to_dict.return_value = data
    return snap


def test_firestore_get_translates_missing_document():
    client, refs = make_firestore()
    store = FirestorePlayerStore(client, "users")
    store._ref("ghost").get.return_value = snapshot("ghost")

    with pytest.raises(RelationshipError) as exc:
        store.get("ghost")
    assert exc.value.code == ErrorCode.ERR_NOT_FOUND
    client.collection.assert_called_with("users")


def test_firestore_get_many_uses_get_all():
    client, _ = make_firestore()
    client.get_all.return_value = [snapshot("p2", new_player_document("Orion")), snapshot("p1")]
    store = FirestorePlayerStore(client)

    players = store.get_many(["p1", "p2", "p1"])
    assert players["p1"] is None
    assert players["p2"].player_name == "Orion"
    assert client.get_all.call_count == 1
    assert len(client.get_all.call_args[0][0]) == 2


def test_firestore_update_errors_are_translated():
    client, _ = make_firestore()
    store = FirestorePlayerStore(client)

    store._ref("ghost").update.side_effect = gexc.NotFound("no document")
    with pytest.raises(RelationshipError) as exc:
        store.update_fields("ghost", {"playerList.friend": []})
    assert exc.value.code == ErrorCode.ERR_NOT_FOUND

    store._ref("p1").update.side_effect = gexc.ServiceUnavailable("backend down")
    with pytest.raises(RelationshipError) as exc:
        store.update_fields("p1", {"playerList.friend": []})
    assert exc.value.code == ErrorCode.ERR_STORE_UNAVAILABLE
    assert "backend down" not in exc.value.message


def test_firestore_update_passes_field_paths():
    client, _ = make_firestore()
    store = FirestorePlayerStore(client)
    store.update_fields("p1", {"playerList.block": ["p2"]})
    store._ref("p1").update.assert_called_once_with({"playerList.block": ["p2"]})
