"""
API Module - HTTP interface.

Browsers:
1. Create a game (the creator becomes the oracle)
2. Share the game link with guessers
3. Submit questions and answers
4. Watch turns arrive over server-sent events
5. The oracle ends the game with a verdict
"""

from .app import create_app
from .schemas import ErrorResponse, GameStateResponse, HealthResponse, TurnInfo

__all__ = [
    "create_app",
    "ErrorResponse",
    "GameStateResponse",
    "HealthResponse",
    "TurnInfo",
]
