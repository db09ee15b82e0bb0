"""
HTTP surface, exercised through the FastAPI test client against in-memory SQLite.
"""

import pytest
from fastapi.testclient import TestClient

from riskgame.api.main import app, get_store
from riskgame.api.store import GameStore
from riskgame.engine.errors import ConcurrencyConflict


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _new_game(client, players=("p1", "p2"), seed=11):
    game_id = client.post("/games", json={"name": "test"}).json()["game_id"]
    for pid in players:
        resp = client.post(f"/games/{game_id}/join", json={"player_id": pid, "name": pid.upper()})
        assert resp.status_code == 200
    resp = client.post(f"/games/{game_id}/start", json={"seed": seed})
    assert resp.status_code == 200
    return game_id, resp.json()["state"]


def _owned(state, player_id):
    return sorted(tid for tid, ts in state["territories"].items() if ts["owner"] == player_id)


def _frontline(client, state, player_id):
    """First territory of player_id that borders an enemy."""
    board = client.get("/map").json()["territories"]
    for tid in _owned(state, player_id):
        if any(state["territories"][n]["owner"] != player_id for n in board[tid]["adjacent"]):
            return tid
    raise AssertionError(f"{player_id} has no border territory")


def _finish_setup(client, game_id, state):
    for player in state["players"]:
        territory = _frontline(client, state, player["id"])
        resp = client.post(f"/games/{game_id}/moves", json={
            "type": "deploy",
            "player": player["id"],
            "payload": {"territory": territory, "troops": player["armies_available"]},
        })
        assert resp.status_code == 200, resp.text
    return resp.json()["state"]


# ============================================================
# MAPS AND LOBBY
# ============================================================

def test_root_and_maps(client):
    assert client.get("/").json()["message"] == "Risk API"
    assert any(m["id"] == "classic" for m in client.get("/maps").json()["maps"])
    board = client.get("/map").json()
    assert len(board["territories"]) == 42
    assert client.get("/map", params={"map_id": "nope"}).status_code == 404


def test_create_with_unknown_map(client):
    resp = client.post("/games", json={"name": "x", "map_id": "nope"})
    assert resp.status_code == 400


def test_lobby_flow(client):
    game_id, state = _new_game(client)
    assert state["status"] == "setup"
    assert len(_owned(state, "p1")) == 21
    assert [p["armies_available"] for p in state["players"]] == [19, 19]

    late = client.post(f"/games/{game_id}/join", json={"player_id": "p3", "name": "Late"})
    assert late.status_code == 400
    assert late.json()["detail"] == "Game has already started"


def test_seeded_start_is_reproducible(client):
    _, first = _new_game(client, seed=5)
    _, second = _new_game(client, seed=5)
    assert first["territories"] == second["territories"]


def test_duplicate_join(client):
    game_id = client.post("/games", json={"name": "dup"}).json()["game_id"]
    client.post(f"/games/{game_id}/join", json={"player_id": "p1", "name": "One"})
    resp = client.post(f"/games/{game_id}/join", json={"player_id": "p1", "name": "Again"})
    assert resp.status_code == 400


def test_unknown_game(client):
    assert client.get("/games/missing").status_code == 404
    assert client.get("/games/missing/moves").status_code == 404


# ============================================================
# MOVES
# ============================================================

def test_setup_then_play(client):
    game_id, state = _new_game(client)
    state = _finish_setup(client, game_id, state)
    assert state["status"] == "playing"
    assert state["summary"]["current_player"] == "p1"

    actions = client.get(f"/games/{game_id}/available-actions").json()
    assert actions["move_types"] == ["deploy", "skip"]
    assert actions["next_reinforcements"] >= 3

    wrong = client.post(f"/games/{game_id}/moves", json={"type": "skip", "player": "p2"})
    assert wrong.status_code == 400
    assert wrong.json()["detail"] == "Not your turn"

    resp = client.post(f"/games/{game_id}/moves", json={"type": "skip", "player": "p1"})
    assert resp.status_code == 200
    assert resp.json()["state"]["phase"] == "attack"
    assert resp.json()["battle"] is None

    log = client.get(f"/games/{game_id}/moves").json()["moves"]
    assert len(log) == 3
    assert log[-1]["move"]["type"] == "skip"

    assert client.post(f"/games/{game_id}/setup/complete").json()["transitioned"] is False


def test_validate_never_writes(client):
    game_id, state = _new_game(client)
    territory = _owned(state, "p2")[0]
    resp = client.post(f"/games/{game_id}/validate", json={
        "type": "deploy",
        "player": "p1",
        "payload": {"territory": territory, "troops": 1},
    })
    assert resp.json() == {"valid": False, "error": f"You do not own {territory}"}
    assert client.get(f"/games/{game_id}").json()["version"] == state["version"]


def test_attack_returns_battle(client):
    game_id, state = _new_game(client)
    state = _finish_setup(client, game_id, state)
    client.post(f"/games/{game_id}/moves", json={"type": "skip", "player": "p1"})

    options = client.get(f"/games/{game_id}/available-actions").json()["attack_options"]
    assert options
    choice = max(options, key=lambda o: o["attacking_armies"])
    resp = client.post(f"/games/{game_id}/moves", json={
        "type": "attack",
        "player": "p1",
        "payload": {"from": choice["from"], "to": choice["to"]},
    })
    assert resp.status_code == 200
    battle = resp.json()["battle"]
    assert battle["from_territory"] == choice["from"]
    assert len(battle["attacker_dice"]) == min(3, choice["attacking_armies"] - 1)


def test_odds(client):
    game_id, state = _new_game(client)
    p1 = _owned(state, "p1")[0]
    p2 = _owned(state, "p2")[0]
    resp = client.get(f"/games/{game_id}/odds", params={
        "from_territory": p1, "to_territory": p2, "simulations": 50,
    })
    assert resp.status_code == 200
    assert 0.0 <= resp.json()["probability"] <= 1.0
    bad = client.get(f"/games/{game_id}/odds", params={
        "from_territory": p1, "to_territory": p2, "simulations": 0,
    })
    assert bad.status_code == 400


def test_conflict_maps_to_409(session_factory, make_state):
    class AlwaysStaleStore(GameStore):
        def save(self, state, expected_version, move=None, events=None):
            raise ConcurrencyConflict(state.game_id, expected_version)

    stale = AlwaysStaleStore(session_factory)
    stale.create(make_state(), "stale")
    app.dependency_overrides[get_store] = lambda: stale
    try:
        resp = TestClient(app).post("/games/g1/moves", json={"type": "skip", "player": "p1"})
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 409


# ============================================================
# AI AND TUTORIAL
# ============================================================

def test_ai_turn_endpoint(client):
    game_id = client.post("/games", json={"name": "bots"}).json()["game_id"]
    client.post(f"/games/{game_id}/join", json={"player_id": "me", "name": "Me"})
    client.post(f"/games/{game_id}/join", json={"player_id": "bot", "name": "Bot", "is_ai": True})
    state = client.post(f"/games/{game_id}/start", json={"seed": 2}).json()["state"]

    early = client.post(f"/games/{game_id}/ai-turn")
    assert early.status_code == 400

    state = _finish_setup(client, game_id, state)
    not_ai = client.post(f"/games/{game_id}/ai-turn")
    assert not_ai.json()["detail"] == "Current player is not an AI"

    for _ in range(3):
        client.post(f"/games/{game_id}/moves", json={"type": "skip", "player": "me"})
    logged = len(client.get(f"/games/{game_id}/moves").json()["moves"])
    resp = client.post(f"/games/{game_id}/ai-turn")
    assert resp.status_code == 200
    body = resp.json()
    assert body["moves"]
    assert all(m["player"] == "bot" for m in body["moves"])

    log = client.get(f"/games/{game_id}/moves").json()["moves"]
    assert len(log) - logged == len(body["moves"])
    assert [m["move"] for m in log[logged:]] == body["moves"]
    assert log[-1]["seq"] == body["state"]["version"]
    if body["state"]["status"] == "playing":
        assert body["state"]["summary"]["current_player"] == "me"


def test_tutorial_flow(client):
    resp = client.post("/tutorial", json={"player_id": "me"})
    assert resp.status_code == 200
    game_id = resp.json()["game_id"]
    assert resp.json()["state"]["tutorial"]["step"] == 0

    blocked = client.post(f"/games/{game_id}/moves", json={
        "type": "deploy", "player": "me", "payload": {"territory": "alaska", "troops": 1},
    })
    assert blocked.status_code == 400

    resp = client.post(f"/games/{game_id}/tutorial/continue")
    body = resp.json()
    assert body["state"]["tutorial"]["title"] == "Reinforcement Phase"
    assert body["completed"] is False

    resp = client.post(f"/games/{game_id}/moves", json={
        "type": "deploy", "player": "me", "payload": {"territory": "alaska", "troops": 5},
    })
    assert resp.status_code == 200
    assert resp.json()["state"]["territories"]["alaska"]["armies"] == 8
    assert resp.json()["state"]["phase"] == "reinforcement"

    for _ in range(4):
        body = client.post(f"/games/{game_id}/tutorial/continue").json()
    assert body["completed"] is True

    log = client.get(f"/games/{game_id}/moves").json()["moves"]
    assert [m["move"]["type"] for m in log] == ["continue_tutorial", "deploy"] + ["continue_tutorial"] * 4

    again = client.post(f"/games/{game_id}/tutorial/continue").json()
    assert again["events"] == []
    assert len(client.get(f"/games/{game_id}/moves").json()["moves"]) == 6


# ============================================================
# UNDO
# ============================================================

def test_undo_flow(client):
    game_id, state = _new_game(client)
    state = _finish_setup(client, game_id, state)
    # the last placement started the game, which cannot be taken back
    assert client.get(f"/games/{game_id}/undo", params={"player_id": "p2"}).json()["available"] is False

    client.post(f"/games/{game_id}/moves", json={"type": "skip", "player": "p1"})
    status = client.get(f"/games/{game_id}/undo", params={"player_id": "p1"}).json()
    assert status["available"] is True
    assert status["last_move"]["move"]["type"] == "skip"

    other = client.post(f"/games/{game_id}/undo", json={"player_id": "p2"})
    assert other.status_code == 400
    assert other.json()["detail"] == "Can only undo your own most recent move"

    resp = client.post(f"/games/{game_id}/undo", json={"player_id": "p1"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["undone"]["move"]["type"] == "skip"
    assert body["state"]["phase"] == "reinforcement"
    assert body["state"]["territories"] == state["territories"]
    assert body["state"]["players"] == state["players"]
    assert len(client.get(f"/games/{game_id}/moves").json()["moves"]) == 2


def test_undo_unknown_game(client):
    assert client.post("/games/missing/undo", json={"player_id": "p1"}).status_code == 404
