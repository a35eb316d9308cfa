"""
Engine Core - Turn bookkeeping for one game.

The engine:
1. Tracks whose move it is (question or answer)
2. Records turns in order
3. Ends the game with the oracle's verdict
"""

from .state import GameSnapshot, SessionState, TransitionResult, Turn, Verdict
from .machine import TurnStateMachine

__all__ = [
    "GameSnapshot",
    "SessionState",
    "TransitionResult",
    "Turn",
    "Verdict",
    "TurnStateMachine",
]
