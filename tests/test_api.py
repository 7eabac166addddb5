"""Tests for the FastAPI PerfectXO interface."""

from __future__ import annotations

import logging

from fastapi.testclient import TestClient

from perfectxo import ui
from perfectxo.ui import app


client = TestClient(app)
ui.AI_THINK_DELAY = 0.0


def _new_game(**payload) -> dict:
    response = client.post("/api/game", json=payload)
    assert response.status_code == 200
    return response.json()


def _move(game_id: str, cell_index: int):
    return client.post(f"/api/game/{game_id}/move", json={"cellIndex": cell_index})


def test_create_game_and_first_move():
    payload = _new_game(mode="pvc", humanSide="X")
    assert payload["currentPlayer"] == "X"
    assert payload["status"] == "not_started"
    assert payload["cells"] == [""] * 9
    assert payload["moveLog"] == []
    assert payload["aiPending"] is False

    game_id = payload["id"]
    move_response = _move(game_id, 0)
    assert move_response.status_code == 200
    state = move_response.json()
    assert state["moveLog"][0] == {"player": "X", "cellIndex": 0}
    assert state["cells"][0] == "X"
    assert state["currentPlayer"] == "O"
    assert state["aiPending"] is True

    follow_up = client.get(f"/api/game/{game_id}")
    assert follow_up.status_code == 200
    final_state = follow_up.json()
    assert final_state["aiPending"] is False
    assert final_state["currentPlayer"] == "X"
    assert final_state["lastMove"] == {"player": "O", "cellIndex": 4}
    assert final_state["cells"][4] == "O"
    assert final_state["status"] == "in_progress"


def test_choosing_o_lets_the_computer_open():
    payload = _new_game(mode="pvc", humanSide="O")
    assert payload["humanSide"] == "O"
    assert payload["aiSide"] == "X"
    assert payload["currentPlayer"] == "X"
    assert payload["aiPending"] is True

    state = client.get(f"/api/game/{payload['id']}").json()
    assert state["cells"][4] == "X"
    assert state["currentPlayer"] == "O"


def test_invalid_move_rejected():
    game_id = _new_game(mode="pvp")["id"]
    assert _move(game_id, 0).status_code == 200

    duplicate_move = _move(game_id, 0)
    assert duplicate_move.status_code == 400
    assert "occupied" in duplicate_move.json()["detail"]

    state = client.get(f"/api/game/{game_id}").json()
    assert state["cells"][0] == "X"
    assert state["currentPlayer"] == "O"


def test_out_of_range_move_rejected():
    game_id = _new_game()["id"]
    assert _move(game_id, 9).status_code == 422


def test_rejects_unsupported_mode_and_side():
    assert client.post("/api/game", json={"mode": "cvc"}).status_code == 422
    assert client.post("/api/game", json={"humanSide": "0"}).status_code == 422


def test_missing_game_returns_404():
    assert client.get("/api/game/missing").status_code == 404
    assert _move("missing", 0).status_code == 404


def test_pvp_win_updates_scores_and_blocks_further_moves():
    game_id = _new_game(mode="pvp")["id"]
    for index in (0, 3, 1, 4, 2):
        assert _move(game_id, index).status_code == 200

    state = client.get(f"/api/game/{game_id}").json()
    assert state["status"] == "won"
    assert state["winner"] == "X"
    assert state["winningLine"] == [0, 1, 2]
    assert state["scores"] == {"X": 1, "O": 0, "draws": 0}

    late = _move(game_id, 8)
    assert late.status_code == 400

    reset = client.post(f"/api/game/{game_id}/reset").json()
    assert reset["cells"] == [""] * 9
    assert reset["moveLog"] == []
    assert reset["scores"] == {"X": 1, "O": 0, "draws": 0}

    fresh = client.post(f"/api/game/{game_id}/new").json()
    assert fresh["scores"] == {"X": 0, "O": 0, "draws": 0}
    assert fresh["status"] == "not_started"


def test_pvp_draw_is_tallied():
    game_id = _new_game(mode="pvp")["id"]
    for index in (0, 1, 2, 4, 3, 5, 7, 6, 8):
        assert _move(game_id, index).status_code == 200
    state = client.get(f"/api/game/{game_id}").json()
    assert state["drawn"] is True
    assert state["scores"]["draws"] == 1


def test_human_cannot_beat_the_computer():
    # Corner opening then the opposite corner; the AI holds the draw
    game_id = _new_game(mode="pvc", humanSide="X")["id"]
    state = None
    for index in (0, 8, 2, 6, 5, 7, 3, 1):
        state = client.get(f"/api/game/{game_id}").json()
        if state["winner"] or state["drawn"]:
            break
        if state["cells"][index]:
            continue
        assert _move(game_id, index).status_code == 200
    state = client.get(f"/api/game/{game_id}").json()
    assert state["winner"] != "X"
    assert state["scores"]["X"] == 0


def test_switch_mode_and_side_reset_round():
    payload = _new_game(mode="pvc", humanSide="X")
    game_id = payload["id"]
    _move(game_id, 0)

    switched = client.post(f"/api/game/{game_id}/mode", json={"mode": "pvp"}).json()
    assert switched["mode"] == "pvp"
    assert switched["cells"] == [""] * 9
    assert switched["aiPending"] is False

    chosen = client.post(f"/api/game/{game_id}/side", json={"side": "o"}).json()
    assert chosen["humanSide"] == "O"
    assert chosen["currentPlayer"] == "X"
    # Two-player mode never schedules the computer
    assert chosen["aiPending"] is False

    back = client.post(f"/api/game/{game_id}/mode", json={"mode": "pvc"}).json()
    assert back["aiPending"] is True
    state = client.get(f"/api/game/{game_id}").json()
    assert state["cells"][4] == "X"


def test_index_serves_html():
    response = client.get("/")
    assert response.status_code == 200
    assert "PerfectXO" in response.text


def _pending_session(human_side: str = "O"):
    """A pvc session whose AI move is scheduled but has not run yet."""
    game_id, session = ui._create_session("pvc", human_side)
    with session.lock:
        ui._start_round(game_id, session)
    assert session.ai_pending is True
    return game_id, session


def test_human_move_rejected_while_ai_is_pending():
    game_id, session = _pending_session()

    response = _move(game_id, 0)
    assert response.status_code == 400
    assert response.json()["detail"] == "AI is completing its move"
    assert session.game.board.is_empty()


def test_stale_ai_task_leaves_round_untouched():
    game_id, session = _pending_session()
    token = session.ai_token

    ui._run_ai_turn(game_id, token - 1)
    assert session.game.board.is_empty()
    assert session.ai_pending is True
    assert session.move_log == []

    ui._run_ai_turn(game_id, token)
    assert session.game.board[4] == "X"
    assert session.ai_pending is False
    assert session.move_log == [{"player": "X", "cellIndex": 4}]


def test_ai_task_failure_is_logged_and_clears_pending(monkeypatch, caplog):
    game_id, session = _pending_session()

    def broken_choose(self, game):
        raise ValueError("It is not this AI player's turn")

    monkeypatch.setattr(ui.MinimaxAI, "choose", broken_choose)
    with caplog.at_level(logging.ERROR, logger="perfectxo.ui"):
        ui._run_ai_turn(game_id, session.ai_token)

    assert session.ai_pending is False
    assert session.game.board.is_empty()
    assert any("AI move failed" in record.getMessage() for record in caplog.records)


def test_round_won_by_the_computer_is_tallied_once():
    game_id = _new_game(mode="pvc", humanSide="X")["id"]

    assert _move(game_id, 0).status_code == 200
    state = client.get(f"/api/game/{game_id}").json()
    assert state["cells"][4] == "O"

    # Forces the block at 2, which leaves O threatening 2-4-6
    assert _move(game_id, 1).status_code == 200
    state = client.get(f"/api/game/{game_id}").json()
    assert state["cells"][2] == "O"

    # Ignore the threat; the computer completes the diagonal
    assert _move(game_id, 8).status_code == 200
    state = client.get(f"/api/game/{game_id}").json()
    assert state["winner"] == "O"
    assert state["winningLine"] == [2, 4, 6]
    assert state["scores"] == {"X": 0, "O": 1, "draws": 0}

    again = client.get(f"/api/game/{game_id}").json()
    assert again["scores"]["O"] == 1


def test_payload_lists_open_cells():
    game_id = _new_game(mode="pvp")["id"]
    state = _move(game_id, 4).json()
    assert state["availableMoves"] == [0, 1, 2, 3, 5, 6, 7, 8]
