"""Exhaustive minimax AI for PerfectXO with a per-search transposition table."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple
import logging
import math

from .game import (
    CENTER,
    Board,
    NoLegalMoveError,
    Player,
    TicTacToeGame,
    evaluate,
    other,
)

LOGGER = logging.getLogger("perfectxo.ai")

WIN_SCORE = 10

TTKey = Tuple[Board, int, bool]


@dataclass
class MinimaxAI:
    """AI player that searches the full game tree and never loses.

    Scores are seen from ``player``: a win ``depth`` plies deep is worth
    ``10 - depth``, a loss ``depth - 10`` and a draw 0, so faster wins and
    slower losses are preferred among otherwise equal lines.
    """

    player: Player
    _tt: Dict[TTKey, int] = field(default_factory=dict, repr=False)
    _nodes: int = field(default=0, repr=False)

    def __post_init__(self) -> None:
        self.opponent: Player = other(self.player)

    # ---- public API ----

    def choose(self, game: TicTacToeGame) -> int:
        if game.current_player != self.player:
            raise ValueError("It is not this AI player's turn")
        return self.best_move(game.board)

    def best_move(self, board: Board) -> int:
        moves = board.empty_cells()
        if not moves:
            raise NoLegalMoveError("No valid moves available")

        # Opening shortcut; the search would also settle on the center
        if board.is_empty():
            return CENTER

        # The table only lives for one search so no state leaks across calls
        self._tt = {}
        self._nodes = 0

        best_score = -math.inf
        best_index = moves[0]
        for index in moves:
            child = board.place(index, self.player)
            score = self.score(child, 0, False)
            # Strict comparison keeps the lowest index on ties
            if score > best_score:
                best_score, best_index = score, index

        LOGGER.debug(
            "best_move player=%s index=%d score=%s nodes=%d",
            self.player,
            best_index,
            best_score,
            self._nodes,
        )
        self._tt = {}
        return best_index

    # ---- core search ----

    def score(self, board: Board, depth: int, maximizing: bool) -> int:
        self._nodes += 1
        outcome = evaluate(board)
        if outcome.winner == self.player:
            return WIN_SCORE - depth
        if outcome.winner == self.opponent:
            return depth - WIN_SCORE
        if outcome.drawn:
            return 0

        key = (board, depth, maximizing)
        cached = self._tt.get(key)
        if cached is not None:
            return cached

        mover = self.player if maximizing else self.opponent
        children = (
            self.score(board.place(i, mover), depth + 1, not maximizing)
            for i in board.empty_cells()
        )
        value = max(children) if maximizing else min(children)

        self._tt[key] = value
        return value


# ---- functional entry points ----


def best_move(board: Board, ai_side: Player) -> int:
    """Return the optimal cell for ``ai_side`` to play on ``board``."""
    return MinimaxAI(player=ai_side).best_move(board)


def score(
    board: Board,
    depth: int,
    maximizing: bool,
    ai_side: Player,
    human_side: Player,
) -> int:
    """Minimax value of ``board`` for ``ai_side`` ``depth`` plies below the root."""
    if human_side != other(ai_side):
        raise ValueError("ai_side and human_side must be different players")
    return MinimaxAI(player=ai_side).score(board, depth, maximizing)
