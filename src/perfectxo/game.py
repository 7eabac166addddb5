"""Core rules for PerfectXO: the 3x3 board, outcome detection and the round controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

Player = str  # "X" or "O"

EMPTY = ""
PLAYERS: Tuple[Player, Player] = ("X", "O")
CENTER = 4
BOARD_SIZE = 9

WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


# ---------- Errors ----------


class PerfectXOError(Exception):
    """Base class for every error raised by the game core."""


class MoveError(PerfectXOError, ValueError):
    """A move was rejected; the board is left untouched."""


class InvalidIndexError(MoveError):
    def __init__(self, index: object) -> None:
        super().__init__(f"Cell index {index!r} is out of range (0-8)")
        self.index = index


class OccupiedCellError(MoveError):
    def __init__(self, index: int, mark: Player) -> None:
        super().__init__(f"Cell {index} is already occupied by {mark}")
        self.index = index
        self.mark = mark


class GameOverError(MoveError):
    """Raised when a move is attempted on a finished round."""


class NoLegalMoveError(PerfectXOError, RuntimeError):
    """Raised when the AI is asked to move on a board with no empty cell."""


def other(player: Player) -> Player:
    if player not in PLAYERS:
        raise ValueError(f"Unknown player {player!r}")
    return "O" if player == "X" else "X"


def _check_index(index: int) -> None:
    # bool is an int subclass, but True/False are never cell indices
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvalidIndexError(index)
    if not 0 <= index < BOARD_SIZE:
        raise InvalidIndexError(index)


# ---------- Board ----------


@dataclass(frozen=True)
class Board:
    """Immutable 3x3 grid; index 0 is the top-left cell, row-major."""

    cells: Tuple[str, ...] = (EMPTY,) * BOARD_SIZE

    def __post_init__(self) -> None:
        cells = tuple(self.cells)
        if len(cells) != BOARD_SIZE:
            raise ValueError(f"A board has {BOARD_SIZE} cells, got {len(cells)}")
        for c in cells:
            if c != EMPTY and c not in PLAYERS:
                raise ValueError(f"Invalid cell value {c!r}")
        object.__setattr__(self, "cells", cells)

    @classmethod
    def from_cells(cls, cells) -> "Board":
        """Build a board from any 9-item sequence, treating ' ' and None as empty."""
        return cls(tuple(EMPTY if c in (None, " ") else c for c in cells))

    def __getitem__(self, index: int) -> str:
        return self.cells[index]

    def __iter__(self):
        return iter(self.cells)

    def __len__(self) -> int:
        return BOARD_SIZE

    def is_empty(self) -> bool:
        return all(c == EMPTY for c in self.cells)

    def is_full(self) -> bool:
        return all(c != EMPTY for c in self.cells)

    def empty_cells(self) -> Tuple[int, ...]:
        return tuple(i for i, c in enumerate(self.cells) if c == EMPTY)

    def place(self, index: int, player: Player) -> "Board":
        """Return a copy with ``player`` marked on ``index``."""
        _check_index(index)
        if player not in PLAYERS:
            raise ValueError(f"Unknown player {player!r}")
        current = self.cells[index]
        if current != EMPTY:
            raise OccupiedCellError(index, current)
        cells = list(self.cells)
        cells[index] = player
        return Board(tuple(cells))

    def clear(self, index: int) -> "Board":
        """Return a copy with ``index`` emptied again (retracts a hypothetical move)."""
        _check_index(index)
        cells = list(self.cells)
        cells[index] = EMPTY
        return Board(tuple(cells))

    def rows(self) -> Tuple[Tuple[str, ...], ...]:
        return tuple(self.cells[i : i + 3] for i in range(0, BOARD_SIZE, 3))

    def pretty(self) -> str:
        return "\n---------\n".join(
            " | ".join(c or " " for c in row) for row in self.rows()
        )

    def __str__(self) -> str:
        return self.pretty()


# ---------- Outcome ----------


@dataclass(frozen=True)
class Outcome:
    winner: Optional[Player] = None
    drawn: bool = False
    line: Optional[Tuple[int, int, int]] = None

    @property
    def ongoing(self) -> bool:
        return self.winner is None and not self.drawn

    @property
    def finished(self) -> bool:
        return not self.ongoing


ONGOING = Outcome()
DRAW = Outcome(drawn=True)


class RoundStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    WON = "won"
    DRAWN = "drawn"


def winning_line(board: Board) -> Optional[Tuple[int, int, int]]:
    for a, b, c in WINNING_LINES:
        v = board[a]
        if v != EMPTY and v == board[b] == board[c]:
            return (a, b, c)
    return None


def evaluate(board: Board) -> Outcome:
    """Win beats fullness: a full board with a line is a win, not a draw."""
    line = winning_line(board)
    if line is not None:
        return Outcome(winner=board[line[0]], line=line)
    if board.is_full():
        return DRAW
    return ONGOING


def is_occupied(board: Board, index: int) -> bool:
    _check_index(index)
    return board[index] != EMPTY


def apply_move(board: Board, index: int, player: Player) -> Tuple[Board, Outcome]:
    new_board = board.place(index, player)
    return new_board, evaluate(new_board)


# ---------- Round controller ----------

MODES: Tuple[str, str] = ("pvp", "pvc")


@dataclass
class TicTacToeGame:
    board: Board = field(default_factory=Board)
    current_player: Player = "X"
    mode: str = "pvc"
    human_side: Player = "X"

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"Unknown mode {self.mode!r}")
        other(self.human_side)
        other(self.current_player)

    # ---- derived state ----

    @property
    def ai_side(self) -> Player:
        return other(self.human_side)

    @property
    def outcome(self) -> Outcome:
        return evaluate(self.board)

    @property
    def winner(self) -> Optional[Player]:
        return self.outcome.winner

    @property
    def drawn(self) -> bool:
        return self.outcome.drawn

    @property
    def finished(self) -> bool:
        return self.outcome.finished

    @property
    def status(self) -> RoundStatus:
        outcome = self.outcome
        if outcome.winner is not None:
            return RoundStatus.WON
        if outcome.drawn:
            return RoundStatus.DRAWN
        if self.board.is_empty():
            return RoundStatus.NOT_STARTED
        return RoundStatus.IN_PROGRESS

    def available_moves(self) -> Tuple[int, ...]:
        if self.finished:
            return ()
        return self.board.empty_cells()

    def ai_to_move(self) -> bool:
        return (
            self.mode == "pvc"
            and not self.finished
            and self.current_player == self.ai_side
        )

    # ---- transitions ----

    def play_move(self, index: int) -> Outcome:
        """Mark ``index`` for the side to move and pass the turn if the round goes on."""
        if self.finished:
            raise GameOverError("Round already finished")
        self.board, outcome = apply_move(self.board, index, self.current_player)
        if outcome.ongoing:
            self.current_player = other(self.current_player)
        return outcome

    def reset(self) -> None:
        self.board = Board()
        self.current_player = "X"

    def choose_side(self, side: Player) -> None:
        other(side)
        self.human_side = side
        # X always opens, so picking O hands the first move to the computer
        self.reset()

    def switch_mode(self, mode: str) -> None:
        if mode not in MODES:
            raise ValueError(f"Unknown mode {mode!r}")
        self.mode = mode
        self.reset()
