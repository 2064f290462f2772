"""Integration tests for the JSON game routes."""

from __future__ import annotations

import random
from collections.abc import Generator
from http import HTTPStatus

import pytest
from fastapi.testclient import TestClient

from armada.ai.targeting import TargetingEngine
from armada.api.routes import game as game_routes
from armada.api.routes.game import _SESSIONS
from armada.main import app


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture(autouse=True)
def _cleanup_sessions() -> Generator[None, None, None]:
    yield
    _SESSIONS.clear()


@pytest.fixture()
def game_id(client: TestClient) -> str:
    r = client.post("/game")
    assert r.status_code == HTTPStatus.CREATED
    return r.json()["id"]


@pytest.fixture()
def started_id(client: TestClient, game_id: str) -> str:
    _SESSIONS[game_id].engine = TargetingEngine(rng=random.Random(11))
    _SESSIONS[game_id].rng = random.Random(12)
    assert client.post(f"/game/{game_id}/auto-place").status_code == HTTPStatus.OK
    assert client.post(f"/game/{game_id}/start").status_code == HTTPStatus.OK
    return game_id


def test_health(client: TestClient) -> None:
    """Health endpoint reports ok."""
    r = client.get("/health")
    assert r.status_code == HTTPStatus.OK
    assert r.json()["status"] == "ok"


def test_create_and_read_game(client: TestClient, game_id: str) -> None:
    """A new game can be read back in the setup phase."""
    r = client.get(f"/game/{game_id}")

    assert r.status_code == HTTPStatus.OK
    body = r.json()
    assert body["phase"] == "setup"
    assert body["board_size"] == 10
    assert len(body["ships"]) == 5
    assert body["test_mode"] is False


def test_unknown_game(client: TestClient) -> None:
    """Unknown game ids are a 404."""
    assert client.get("/game/nope").status_code == HTTPStatus.NOT_FOUND


def test_delete_game(client: TestClient, game_id: str) -> None:
    """Deleting a game frees its session."""
    r = client.delete(f"/game/{game_id}")

    assert r.status_code == HTTPStatus.NO_CONTENT
    assert game_id not in _SESSIONS
    assert client.get(f"/game/{game_id}").status_code == HTTPStatus.NOT_FOUND
    assert client.delete(f"/game/{game_id}").status_code == HTTPStatus.NOT_FOUND


def test_oldest_session_is_evicted_at_capacity(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Creating games past the limit drops the oldest session."""
    monkeypatch.setattr(game_routes, "MAX_SESSIONS", 2)
    ids = [client.post("/game").json()["id"] for _ in range(3)]

    assert list(_SESSIONS) == ids[1:]
    assert client.get(f"/game/{ids[0]}").status_code == HTTPStatus.NOT_FOUND
    assert client.get(f"/game/{ids[2]}").status_code == HTTPStatus.OK


def test_place_and_remove_ship(client: TestClient, game_id: str) -> None:
    """Ships can be placed and taken back through the API."""
    r = client.post(
        f"/game/{game_id}/ships/0",
        json={"row": 2, "col": 1, "orientation": "vertical"},
    )
    assert r.status_code == HTTPStatus.OK
    assert r.json()["player_board"][6][1] == "ship"
    assert r.json()["ships"][0]["placed"] is True

    r = client.delete(f"/game/{game_id}/ships/0")
    assert r.status_code == HTTPStatus.OK
    assert r.json()["player_board"][6][1] == "empty"


def test_bad_placement(client: TestClient, game_id: str) -> None:
    """Illegal placements are a 400, malformed ones a 422."""
    r = client.post(f"/game/{game_id}/ships/0", json={"row": 0, "col": 8})
    assert r.status_code == HTTPStatus.BAD_REQUEST
    assert r.json()["detail"] == "Cannot place ship there!"

    r = client.post(f"/game/{game_id}/ships/0", json={"row": -1, "col": 0})
    assert r.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_start_requires_fleet(client: TestClient, game_id: str) -> None:
    """Starting without a full fleet is a 400."""
    r = client.post(f"/game/{game_id}/start")
    assert r.status_code == HTTPStatus.BAD_REQUEST


def test_setup_while_session_busy(client: TestClient, game_id: str) -> None:
    """Setup routes answer 409 while another action holds the session."""
    session = _SESSIONS[game_id]
    session._turn_lock.acquire()
    try:
        auto = client.post(f"/game/{game_id}/auto-place")
        place = client.post(f"/game/{game_id}/ships/0", json={"row": 0, "col": 0})
    finally:
        session._turn_lock.release()

    assert auto.status_code == HTTPStatus.CONFLICT
    assert place.status_code == HTTPStatus.CONFLICT


def test_fire_plays_one_turn(client: TestClient, started_id: str) -> None:
    """Firing returns both the human and the computer shot."""
    r = client.post(f"/game/{started_id}/fire", json={"row": 0, "col": 0})

    assert r.status_code == HTTPStatus.OK
    body = r.json()
    assert body["player_shot"]["row"] == 0
    assert body["player_shot"]["outcome"] in {"hit", "miss"}
    computer = body["computer_shot"]
    assert body["player_board"][computer["row"]][computer["col"]] in {"hit", "miss"}
    assert body["enemy_board"][0][0] in {"hit", "miss"}


def test_fire_twice_at_same_cell(client: TestClient, started_id: str) -> None:
    """Repeating a shot is a 400."""
    client.post(f"/game/{started_id}/fire", json={"row": 4, "col": 4})
    r = client.post(f"/game/{started_id}/fire", json={"row": 4, "col": 4})
    assert r.status_code == HTTPStatus.BAD_REQUEST


def test_fire_while_turn_in_flight(client: TestClient, started_id: str) -> None:
    """A second turn during a turn is a 409."""
    session = _SESSIONS[started_id]
    session._turn_lock.acquire()
    try:
        r = client.post(f"/game/{started_id}/fire", json={"row": 1, "col": 1})
    finally:
        session._turn_lock.release()
    assert r.status_code == HTTPStatus.CONFLICT


def test_test_mode_suggest_and_commit(client: TestClient, started_id: str) -> None:
    """Test mode suggests the computer's shot and fires it only when committed."""
    r = client.post(f"/game/{started_id}/test-mode", json={"enabled": True})
    assert r.status_code == HTTPStatus.OK
    row, col = r.json()["recommended_shot"]
    assert r.json()["player_board"][row][col] in {"empty", "ship"}

    r = client.post(f"/game/{started_id}/fire", json={"row": 0, "col": 0})
    assert r.json()["computer_shot"] is None

    r = client.post(f"/game/{started_id}/computer-shot", json={"row": row, "col": col})
    assert r.status_code == HTTPStatus.OK
    assert r.json()["computer_shot"]["row"] == row
    assert r.json()["player_board"][row][col] in {"hit", "miss"}
    assert r.json()["recommended_shot"] != [row, col]

    r = client.post(f"/game/{started_id}/computer-shot", json={"row": row, "col": col})
    assert r.status_code == HTTPStatus.BAD_REQUEST


def test_test_mode_rejected_during_setup(client: TestClient, game_id: str) -> None:
    """Test mode and committed shots need a game in progress."""
    r = client.post(f"/game/{game_id}/test-mode", json={"enabled": True})
    assert r.status_code == HTTPStatus.BAD_REQUEST

    r = client.post(f"/game/{game_id}/computer-shot", json={"row": 0, "col": 0})
    assert r.status_code == HTTPStatus.BAD_REQUEST


def test_reset(client: TestClient, started_id: str) -> None:
    """Reset returns the game to setup with an empty log."""
    client.post(f"/game/{started_id}/fire", json={"row": 0, "col": 0})

    r = client.post(f"/game/{started_id}/reset")

    assert r.status_code == HTTPStatus.OK
    assert r.json()["phase"] == "setup"
    assert r.json()["log"] == []
