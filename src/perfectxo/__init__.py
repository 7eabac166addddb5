"""PerfectXO package exposing game logic, the minimax AI, and the web application."""

from .ai import MinimaxAI, best_move
from .game import Board, Outcome, TicTacToeGame, apply_move, evaluate, is_occupied
from .ui import app

__all__ = [
    "Board",
    "MinimaxAI",
    "Outcome",
    "TicTacToeGame",
    "app",
    "apply_move",
    "best_move",
    "evaluate",
    "is_occupied",
]
