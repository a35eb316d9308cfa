"""
Session Module - Live game sessions.

A session represents one game:
- Created when the oracle starts a game
- Holds the turn state machine and the live-update hub
- Expires a fixed time after creation

Sessions are EPHEMERAL: no persistence, no cross-process sharing.
"""

from .hub import BroadcastHub, ConnectionLifetime, Subscriber
from .game import GameSession
from .manager import SessionRegistry, random_session_id

__all__ = [
    "BroadcastHub",
    "ConnectionLifetime",
    "Subscriber",
    "GameSession",
    "SessionRegistry",
    "random_session_id",
]
