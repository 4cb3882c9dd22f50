import logging
import threading

import pytest
from fastapi.testclient import TestClient

from api import GameSession, SessionStore, app
from game_state import GameState


def rows(*lines):
    return [value for line in lines for value in line]


@pytest.fixture
def client():
    app.state.sessions.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.state.sessions.clear()


@pytest.fixture
def scripted_game(client, twos_rng):
    """Registers a game with a known board and returns its id."""
    def register(cells, **kwargs):
        game = GameState.from_grid(cells, rng=twos_rng, **kwargs)
        app.state.sessions.add("fixed", GameSession(game))
        return "fixed"
    return register


def test_new_game(client):
    response = client.post("/game/new", json={"best_score": 300, "seed": 5})
    assert response.status_code == 200
    data = response.json()

    assert data["score"] == 0
    assert data["best_score"] == 300
    assert data["status"] == "active"
    assert data["won"] is False
    assert data["win_value"] == 2048
    assert data["board_size"] == 4
    assert sum(1 for row in data["board"] for value in row if value) == 2
    assert data["game_id"] in app.state.sessions


def test_new_game_is_reproducible_with_seed(client):
    first = client.post("/game/new", json={"seed": 77}).json()
    second = client.post("/game/new", json={"seed": 77}).json()
    assert first["board"] == second["board"]
    assert first["game_id"] != second["game_id"]


def test_new_game_rejects_bad_win_value(client):
    assert client.post("/game/new", json={"win_value": 100}).status_code == 400
    assert client.post("/game/new", json={"win_value": 2}).status_code == 422


def test_bad_stored_best_score_counts_as_zero(client):
    data = client.post("/game/new", json={"best_score": -40}).json()
    assert data["best_score"] == 0


def test_get_game(client):
    game_id = client.post("/game/new", json={}).json()["game_id"]
    response = client.get(f"/game/{game_id}")
    assert response.status_code == 200
    assert response.json()["game_id"] == game_id


def test_unknown_game_is_404(client):
    assert client.get("/game/nope").status_code == 404
    assert client.post("/game/nope/move", json={"direction": "left"}).status_code == 404
    assert client.post("/game/nope/continue").status_code == 404


def test_move(client, scripted_game):
    game_id = scripted_game(rows([2, 2, 0, 0], [0] * 4, [0] * 4, [0] * 4))
    response = client.post(f"/game/{game_id}/move", json={"direction": "left"})
    assert response.status_code == 200
    data = response.json()

    assert data["move_was_effective"] is True
    assert data["score_delta"] == 4
    assert data["score"] == 4
    assert data["best_score_candidate"] == 4
    assert data["board"][0] == [4, 2, 0, 0]
    assert data["message"] is None


def test_swipe_move(client, scripted_game):
    game_id = scripted_game(rows([2, 0, 0, 0], [0] * 4, [0] * 4, [0] * 4))
    data = client.post(f"/game/{game_id}/move", json={"swipe": {"dx": 5, "dy": 80}}).json()
    assert data["move_was_effective"] is True
    assert data["board"][3][0] == 2


def test_ineffective_and_unknown_moves_change_nothing(client, scripted_game):
    game_id = scripted_game(rows([2, 4, 0, 0], [0] * 4, [0] * 4, [0] * 4))

    blocked = client.post(f"/game/{game_id}/move", json={"direction": "left"}).json()
    assert blocked["move_was_effective"] is False
    assert "not effective" in blocked["message"]

    unknown = client.post(f"/game/{game_id}/move", json={"direction": "sideways"}).json()
    assert unknown["move_was_effective"] is False
    assert "Unrecognised" in unknown["message"]

    short_swipe = client.post(f"/game/{game_id}/move", json={"swipe": {"dx": 3, "dy": 2}}).json()
    assert short_swipe["move_was_effective"] is False
    assert short_swipe["board"][0] == [2, 4, 0, 0]


def test_win_then_continue(client, scripted_game):
    game_id = scripted_game(rows([1024, 1024, 0, 0], [0] * 4, [0] * 4, [0] * 4))

    won = client.post(f"/game/{game_id}/move", json={"direction": "ArrowLeft"}).json()
    assert won["won_just_now"] is True
    assert won["status"] == "won"
    assert won["message"] == "Congratulations! You won!"

    kept = client.post(f"/game/{game_id}/continue").json()
    assert kept["status"] == "won_continuing"
    assert kept["won"] is True

    later = client.post(f"/game/{game_id}/move", json={"direction": "down"}).json()
    assert later["won_just_now"] is False
    assert later["status"] == "won_continuing"


def test_game_over(client, scripted_game):
    game_id = scripted_game(rows([2, 4, 2, 4], [4, 2, 4, 2], [2, 4, 2, 4], [0, 8, 16, 8]))
    data = client.post(f"/game/{game_id}/move", json={"direction": "left"}).json()
    assert data["status"] == "over"
    assert data["message"] == "Game Over. No more valid moves."


def test_restart_keeps_best_score(client, scripted_game):
    game_id = scripted_game(rows([2, 2, 0, 0], [0] * 4, [0] * 4, [0] * 4), best_score=10)
    client.post(f"/game/{game_id}/move", json={"direction": "left"})

    data = client.post(f"/game/{game_id}/restart").json()
    assert data["score"] == 0
    assert data["status"] == "active"
    assert data["best_score"] == 10


def test_deleted_game_is_gone(client):
    game_id = client.post("/game/new", json={"seed": 1}).json()["game_id"]

    response = client.delete(f"/game/{game_id}")
    assert response.status_code == 204
    assert game_id not in app.state.sessions

    assert client.get(f"/game/{game_id}").status_code == 404
    assert client.post(f"/game/{game_id}/move", json={"direction": "up"}).status_code == 404
    assert client.delete(f"/game/{game_id}").status_code == 404


def test_oldest_game_is_evicted_past_the_cap(client, monkeypatch):
    monkeypatch.setattr(app.state, "sessions", SessionStore(max_sessions=2))

    first = client.post("/game/new", json={}).json()["game_id"]
    second = client.post("/game/new", json={}).json()["game_id"]
    third = client.post("/game/new", json={}).json()["game_id"]

    assert len(app.state.sessions) == 2
    assert client.get(f"/game/{first}").status_code == 404
    assert client.get(f"/game/{second}").status_code == 200
    assert client.get(f"/game/{third}").status_code == 200


class TestSessionStore:
    def test_recently_used_game_survives_eviction(self):
        store = SessionStore(max_sessions=2)
        store.add("a", GameSession(GameState(seed=0)))
        store.add("b", GameSession(GameState(seed=1)))

        assert store.get("a") is not None
        store.add("c", GameSession(GameState(seed=2)))

        assert "a" in store
        assert "b" not in store
        assert "c" in store

    def test_remove(self):
        store = SessionStore()
        store.add("a", GameSession(GameState(seed=0)))
        assert store.remove("a")
        assert not store.remove("a")
        assert store.get("a") is None

    def test_cap_must_be_positive(self):
        with pytest.raises(ValueError):
            SessionStore(max_sessions=0)


def test_concurrent_moves_are_serialised(client, scripted_game):
    game_id = scripted_game(rows([2, 2, 0, 0], [0] * 4, [0] * 4, [0] * 4))
    directions = ["left", "up", "right", "down"] * 5
    responses = []

    def send(direction):
        responses.append(client.post(f"/game/{game_id}/move", json={"direction": direction}).json())

    threads = [threading.Thread(target=send, args=(direction,)) for direction in directions]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    final = client.get(f"/game/{game_id}").json()
    assert len(responses) == len(directions)
    assert final["score"] == sum(data["score_delta"] for data in responses)
    assert sum(1 for row in final["board"] for value in row if value) <= \
        2 + sum(1 for data in responses if data["move_was_effective"])


def test_unexpected_move_error_is_logged(client, scripted_game, monkeypatch, caplog):
    game_id = scripted_game(rows([2, 2, 0, 0], [0] * 4, [0] * 4, [0] * 4))

    def explode(self, direction):
        raise RuntimeError("boom")
    monkeypatch.setattr(GameState, "apply_move", explode)

    with caplog.at_level(logging.ERROR, logger="api"):
        response = client.post(f"/game/{game_id}/move", json={"direction": "left"})

    assert response.status_code == 500
    record = caplog.records[-1]
    assert record.msg == "Unexpected error in /game/%s/move: %s"
    assert record.args[0] == game_id
    assert record.exc_info is not None


def test_every_endpoint_is_documented():
    for path, operations in app.openapi()["paths"].items():
        for method, operation in operations.items():
            assert operation.get("description"), f"{method.upper()} {path}"
