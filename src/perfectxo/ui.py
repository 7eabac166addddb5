"""FastAPI-powered web UI for playing PerfectXO in the browser."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import threading

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ai import MinimaxAI
from .game import (
    MODES,
    PLAYERS,
    MoveError,
    NoLegalMoveError,
    Outcome,
    Player,
    TicTacToeGame,
)

LOGGER = logging.getLogger("perfectxo.ui")


@dataclass
class Scoreboard:
    """Cumulative results across the rounds of one session."""

    x: int = 0
    o: int = 0
    draws: int = 0

    def record(self, outcome: Outcome) -> None:
        if outcome.winner == "X":
            self.x += 1
        elif outcome.winner == "O":
            self.o += 1
        elif outcome.drawn:
            self.draws += 1

    def clear(self) -> None:
        self.x = self.o = self.draws = 0

    def as_dict(self) -> Dict[str, int]:
        return {"X": self.x, "O": self.o, "draws": self.draws}


@dataclass
class GameSession:
    """Container for an active round, its score tallies and AI bookkeeping."""

    game: TicTacToeGame
    scores: Scoreboard = field(default_factory=Scoreboard)
    move_log: List[Dict[str, int | str]] = field(default_factory=list)
    ai_pending: bool = False
    # Bumped whenever a round starts so a sleeping AI task can tell it is stale
    ai_token: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


SESSIONS: Dict[str, GameSession] = {}
app = FastAPI(title="PerfectXO", description="Tic-tac-toe against an unbeatable AI")


ALLOWED_MODES: Tuple[str, ...] = MODES
AI_THINK_DELAY: float = 0.3


def _normalize_side(value: str) -> str:
    side = value.strip().upper()
    if side not in PLAYERS:
        raise ValueError(f"Unsupported side {value!r}. Choose X or O.")
    return side


def _normalize_mode(value: str) -> str:
    mode = value.strip().lower()
    if mode not in ALLOWED_MODES:
        raise ValueError(
            f"Unsupported mode {value!r}. Choose one of {', '.join(ALLOWED_MODES)}."
        )
    return mode


class NewGameRequest(BaseModel):
    """Request payload for starting a new game."""

    model_config = ConfigDict(populate_by_name=True)

    mode: str = Field(default="pvc", description="'pvp' or 'pvc'")
    human_side: str = Field(
        default="X", alias="humanSide", description="Symbol played by the human"
    )

    @field_validator("mode")
    @classmethod
    def ensure_supported_mode(cls, value: str) -> str:
        return _normalize_mode(value)

    @field_validator("human_side")
    @classmethod
    def ensure_supported_side(cls, value: str) -> str:
        return _normalize_side(value)


class MoveRequest(BaseModel):
    """Request payload for submitting a move on an existing game."""

    model_config = ConfigDict(populate_by_name=True)

    cell_index: int = Field(alias="cellIndex", ge=0, le=8)


class ModeRequest(BaseModel):
    mode: str

    @field_validator("mode")
    @classmethod
    def ensure_supported_mode(cls, value: str) -> str:
        return _normalize_mode(value)


class SideRequest(BaseModel):
    side: str

    @field_validator("side")
    @classmethod
    def ensure_supported_side(cls, value: str) -> str:
        return _normalize_side(value)


def _create_session(mode: str, human_side: Player) -> Tuple[str, GameSession]:
    """Create a new game session and register it for later access."""

    game = TicTacToeGame(mode=mode, human_side=human_side)
    session = GameSession(game=game)
    session_id = uuid.uuid4().hex
    SESSIONS[session_id] = session
    LOGGER.info(
        "Created game %s mode=%s human=%s", session_id, mode, human_side
    )
    return session_id, session


def _get_session(game_id: str) -> GameSession:
    try:
        return SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc


def _play(game_id: str, session: GameSession, index: int) -> None:
    """Apply a move for the side to move, log it and tally a finished round."""

    game = session.game
    player = game.current_player
    outcome = game.play_move(index)
    session.move_log.append({"player": player, "cellIndex": index})
    if outcome.finished:
        session.scores.record(outcome)
        LOGGER.info(
            "Game %s round finished: %s",
            game_id,
            f"{outcome.winner} wins" if outcome.winner else "draw",
        )


def _schedule_ai(session: GameSession) -> Optional[int]:
    """Mark the AI as pending if it has to move; returns the task token."""

    if not session.game.ai_to_move():
        return None
    session.ai_pending = True
    return session.ai_token


def _run_ai_turn(game_id: str, token: int) -> None:
    session = SESSIONS.get(game_id)
    if not session:
        return

    time.sleep(max(0.0, AI_THINK_DELAY))

    with session.lock:
        if session.ai_token != token:
            return
        try:
            game = session.game
            if not game.ai_to_move():
                return
            ai = MinimaxAI(player=game.ai_side)
            index = ai.choose(game)
            _play(game_id, session, index)
        except (MoveError, NoLegalMoveError, ValueError):
            LOGGER.exception("AI move failed for game %s", game_id)
        finally:
            session.ai_pending = False


def _start_round(
    game_id: str,
    session: GameSession,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    """Clear the board and move log, then let the AI open if it plays X.

    Caller must hold ``session.lock``.
    """

    session.game.reset()
    session.move_log.clear()
    session.ai_pending = False
    session.ai_token += 1
    token = _schedule_ai(session)
    if token is not None and background_tasks is not None:
        background_tasks.add_task(_run_ai_turn, game_id, token)


def _serialize_session(game_id: str, session: GameSession) -> Dict[str, object]:
    with session.lock:
        game = session.game
        outcome = game.outcome
        state: Dict[str, object] = {
            "id": game_id,
            "mode": game.mode,
            "humanSide": game.human_side,
            "aiSide": game.ai_side,
            "currentPlayer": game.current_player,
            "cells": list(game.board.cells),
            "status": game.status.value,
            "winner": outcome.winner,
            "drawn": outcome.drawn,
            "winningLine": list(outcome.line) if outcome.line else None,
            "availableMoves": list(game.available_moves()),
            "scores": session.scores.as_dict(),
            "moveLog": list(session.move_log),
            "aiPending": session.ai_pending,
        }
        if session.move_log:
            state["lastMove"] = session.move_log[-1]
        return state


def _apply_player_move(
    game_id: str,
    session: GameSession,
    cell_index: int,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    token: Optional[int] = None
    with session.lock:
        game = session.game
        if game.finished:
            raise HTTPException(status_code=400, detail="Round already finished")

        if session.ai_pending:
            raise HTTPException(status_code=400, detail="AI is completing its move")

        if game.mode == "pvc" and game.current_player != game.human_side:
            raise HTTPException(status_code=400, detail="It is not your turn")

        try:
            _play(game_id, session, cell_index)
        except MoveError as exc:
            LOGGER.warning("Rejected move %s in game %s: %s", cell_index, game_id, exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        token = _schedule_ai(session)

    if token is not None and background_tasks is not None:
        background_tasks.add_task(_run_ai_turn, game_id, token)


@app.post("/api/game")
def create_game(
    request: NewGameRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    game_id, session = _create_session(request.mode, request.human_side)
    with session.lock:
        _start_round(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    _apply_player_move(game_id, session, request.cell_index, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/reset")
def reset_round(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        _start_round(game_id, session, background_tasks)
    LOGGER.info("Game %s round reset", game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/new")
def new_game(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        session.scores.clear()
        _start_round(game_id, session, background_tasks)
    LOGGER.info("Game %s scores cleared", game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/mode")
def switch_mode(
    game_id: str, request: ModeRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        session.game.switch_mode(request.mode)
        _start_round(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/side")
def choose_side(
    game_id: str, request: SideRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        session.game.choose_side(request.side)
        _start_round(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/", response_class=HTMLResponse)
def index() -> str:
    return HTML_PAGE


HTML_PAGE = """<!DOCTYPE html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <title>PerfectXO</title>
    <link rel=\"preconnect\" href=\"https://fonts.googleapis.com\" />
    <link rel=\"preconnect\" href=\"https://fonts.gstatic.com\" crossorigin />
    <link
      href=\"https://fonts.googleapis.com/css2?family=Poppins:wght@400;500;600;700&display=swap\"
      rel=\"stylesheet\"
    />
    <style>
      :root {
        color-scheme: light;
        font-family: 'Poppins', system-ui, -apple-system, BlinkMacSystemFont, \"Segoe UI\", sans-serif;
        font-weight: 400;
      }
      * {
        box-sizing: border-box;
      }
      body {
        margin: 0;
        background: radial-gradient(circle at top, #f2f5ff, #dbe0ff 40%, #cfd8ff 70%);
        min-height: 100vh;
        display: flex;
        justify-content: center;
        padding: 2rem 1rem 3rem;
        color: #13203a;
      }
      main {
        background: rgba(255, 255, 255, 0.92);
        border-radius: 18px;
        box-shadow: 0 20px 40px rgba(34, 47, 79, 0.16);
        padding: clamp(1.5rem, 4vw, 2.5rem);
        width: min(520px, 100%);
      }
      h1 {
        margin: 0 0 0.5rem;
        font-size: clamp(1.8rem, 2.4vw + 1.2rem, 2.6rem);
        text-align: center;
        letter-spacing: 0.06em;
        color: #0c1a33;
      }
      .tagline {
        text-align: center;
        margin: 0 0 1.5rem;
        color: rgba(19, 32, 58, 0.75);
        font-weight: 500;
      }
      button {
        font-size: 1rem;
        padding: 0.55rem 0.95rem;
        border-radius: 999px;
        border: 1px solid rgba(60, 70, 120, 0.25);
        background: white;
        cursor: pointer;
        transition: transform 0.1s ease, box-shadow 0.1s ease;
        font-family: inherit;
      }
      button:hover {
        transform: translateY(-1px);
        box-shadow: 0 8px 18px rgba(0, 64, 128, 0.12);
      }
      button:disabled {
        cursor: default;
        opacity: 0.6;
        transform: none;
        box-shadow: none;
      }
      button.active,
      button.selected {
        background: #3a66ff;
        border-color: #3a66ff;
        color: white;
      }
      .controls {
        display: flex;
        flex-wrap: wrap;
        gap: 0.75rem;
        justify-content: center;
        align-items: center;
        margin-bottom: 1.25rem;
      }
      .hidden {
        display: none !important;
      }
      #status {
        text-align: center;
        font-size: 1.1rem;
        font-weight: 600;
        margin: 0 auto 1rem;
        min-height: 1.6rem;
      }
      #message {
        text-align: center;
        min-height: 1.25rem;
        color: #b00020;
        font-weight: 600;
        margin-bottom: 1rem;
      }
      .board-grid {
        display: grid;
        grid-template-columns: repeat(3, 1fr);
        gap: 0.55rem;
        max-width: 360px;
        margin: 0 auto 1.5rem;
      }
      .board-grid.thinking {
        opacity: 0.7;
      }
      .cell {
        aspect-ratio: 1 / 1;
        border-radius: 14px;
        font-size: clamp(2rem, 8vw, 3.2rem);
        font-weight: 700;
        padding: 0;
      }
      .cell.x {
        color: #ff4f7b;
      }
      .cell.o {
        color: #3a7bff;
      }
      .cell.winning-cell {
        background: #fff3c4;
        border-color: #f2b600;
      }
      .scores {
        display: flex;
        justify-content: center;
        gap: 1.5rem;
        font-weight: 600;
      }
    </style>
  </head>
  <body>
    <main>
      <h1>PerfectXO</h1>
      <p class=\"tagline\">Play a friend or try to beat an AI that never loses.</p>
      <div class=\"controls\">
        <button id=\"pvp-mode\" type=\"button\">Two players</button>
        <button id=\"pvc-mode\" type=\"button\" class=\"active\">Vs computer</button>
      </div>
      <div id=\"choose-symbol-area\" class=\"controls\">
        <span>Play as</span>
        <button id=\"choose-x\" type=\"button\" class=\"selected\">X</button>
        <button id=\"choose-o\" type=\"button\">O</button>
      </div>
      <div id=\"game-info\" aria-live=\"polite\"></div>
      <div id=\"status\" role=\"status\"></div>
      <div id=\"message\"></div>
      <div id=\"game-board\" class=\"board-grid\"></div>
      <div class=\"controls\">
        <button id=\"reset-btn\" type=\"button\">Reset round</button>
        <button id=\"new-game-btn\" type=\"button\">New game</button>
      </div>
      <div class=\"scores\">
        <span>X: <span id=\"x-score\">0</span></span>
        <span>O: <span id=\"o-score\">0</span></span>
        <span>Draws: <span id=\"draw-score\">0</span></span>
      </div>
    </main>
    <script>
      const boardEl = document.getElementById('game-board');
      const statusEl = document.getElementById('status');
      const messageEl = document.getElementById('message');
      const pvpButton = document.getElementById('pvp-mode');
      const pvcButton = document.getElementById('pvc-mode');
      const chooseXButton = document.getElementById('choose-x');
      const chooseOButton = document.getElementById('choose-o');
      const resetButton = document.getElementById('reset-btn');
      const newGameButton = document.getElementById('new-game-btn');
      const xScoreEl = document.getElementById('x-score');
      const oScoreEl = document.getElementById('o-score');
      const drawScoreEl = document.getElementById('draw-score');

      let gameId = null;
      let gameState = null;
      let isRequestPending = false;
      let aiPollHandle = null;

      function stopAiPolling() {
        if (aiPollHandle !== null) {
          clearTimeout(aiPollHandle);
          aiPollHandle = null;
        }
      }

      function ensureAiPolling() {
        if (aiPollHandle !== null) return;
        aiPollHandle = window.setTimeout(pollAiState, 200);
      }

      async function request(path, body) {
        const response = await fetch(path, {
          method: body === undefined ? 'GET' : 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: body === undefined ? undefined : JSON.stringify(body),
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          const detail = typeof payload?.detail === 'string' ? payload.detail : 'Request failed';
          throw new Error(detail);
        }
        return payload;
      }

      async function run(path, body) {
        if (isRequestPending) return;
        isRequestPending = true;
        messageEl.textContent = '';
        try {
          setState(await request(path, body));
        } catch (error) {
          messageEl.textContent = error.message || 'Network error. Please try again.';
        } finally {
          isRequestPending = false;
        }
      }

      async function startGame(mode, humanSide) {
        stopAiPolling();
        await run('/api/game', { mode, humanSide });
      }

      async function pollAiState() {
        aiPollHandle = null;
        if (!gameId) return;
        try {
          setState(await request(`/api/game/${gameId}`));
        } catch (error) {
          console.error('Polling failed', error);
          ensureAiPolling();
        }
      }

      function sendMove(cellIndex) {
        if (!gameState || gameState.aiPending) return;
        if (gameState.winner || gameState.drawn) return;
        if (gameState.cells[cellIndex] !== '') return;
        run(`/api/game/${gameId}/move`, { cellIndex });
      }

      function setState(data) {
        gameId = data.id;
        gameState = data;
        render();
        if (gameState.aiPending) {
          ensureAiPolling();
        } else {
          stopAiPolling();
        }
      }

      function render() {
        boardEl.innerHTML = '';
        const winning = new Set(gameState.winningLine || []);
        const open = new Set(gameState.availableMoves || []);
        gameState.cells.forEach((value, index) => {
          const cell = document.createElement('button');
          cell.type = 'button';
          cell.className = `cell ${value.toLowerCase()}`;
          cell.dataset.index = String(index);
          cell.textContent = value;
          const cellStatus = value ? `occupied by ${value}` : 'empty';
          cell.setAttribute('aria-label', `Cell ${index + 1}, ${cellStatus}`);
          if (winning.has(index)) cell.classList.add('winning-cell');
          cell.disabled = !open.has(index) || Boolean(gameState.aiPending);
          cell.addEventListener('click', () => sendMove(index));
          boardEl.appendChild(cell);
        });
        boardEl.classList.toggle('thinking', Boolean(gameState.aiPending));

        pvpButton.classList.toggle('active', gameState.mode === 'pvp');
        pvcButton.classList.toggle('active', gameState.mode === 'pvc');
        chooseXButton.classList.toggle('selected', gameState.humanSide === 'X');
        chooseOButton.classList.toggle('selected', gameState.humanSide === 'O');

        xScoreEl.textContent = gameState.scores.X;
        oScoreEl.textContent = gameState.scores.O;
        drawScoreEl.textContent = gameState.scores.draws;

        if (gameState.winner) {
          statusEl.textContent = `Player ${gameState.winner} wins!`;
        } else if (gameState.drawn) {
          statusEl.textContent = "It's a draw!";
        } else if (gameState.mode === 'pvp') {
          statusEl.textContent = `Player ${gameState.currentPlayer}'s Turn`;
        } else if (gameState.currentPlayer === gameState.humanSide) {
          statusEl.textContent = `Your Turn (${gameState.humanSide})`;
        } else {
          statusEl.textContent = `Computer's Turn (${gameState.aiSide})`;
        }
      }

      pvpButton.addEventListener('click', () => {
        if (gameId) run(`/api/game/${gameId}/mode`, { mode: 'pvp' });
      });
      pvcButton.addEventListener('click', () => {
        if (gameId) run(`/api/game/${gameId}/mode`, { mode: 'pvc' });
      });
      chooseXButton.addEventListener('click', () => {
        if (gameId) run(`/api/game/${gameId}/side`, { side: 'X' });
      });
      chooseOButton.addEventListener('click', () => {
        if (gameId) run(`/api/game/${gameId}/side`, { side: 'O' });
      });
      resetButton.addEventListener('click', () => {
        if (gameId) run(`/api/game/${gameId}/reset`, {});
      });
      newGameButton.addEventListener('click', () => {
        if (gameId) run(`/api/game/${gameId}/new`, {});
      });

      document.addEventListener('keydown', (event) => {
        if (/^[1-9]$/.test(event.key)) {
          sendMove(Number(event.key) - 1);
        }
      });

      startGame('pvc', 'X');
    </script>
  </body>
</html>
"""
