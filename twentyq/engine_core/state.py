"""
Game State - Turns, phases and verdicts of a single twenty-questions game.

Design principles:
- Turns are append-only; a completed turn is never touched again
- Snapshots are immutable copies handed to renderers and API responses
- All mutation lives in TurnStateMachine (machine.py)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum


class SessionState(Enum):
    """What the game is waiting for next."""
    AWAITING_QUESTION = "awaiting_question"
    AWAITING_ANSWER = "awaiting_answer"
    ENDED = "ended"


class Verdict(Enum):
    """The oracle's final ruling on the guessers."""
    CORRECT = "correct"
    INCORRECT = "incorrect"


@dataclass
class Turn:
    """
    One question/answer exchange.

    index is 1-based. answer stays None while the turn is open.
    """
    index: int
    question: str
    answer: str | None = None

    @property
    def is_open(self) -> bool:
        return self.answer is None


@dataclass(frozen=True)
class GameSnapshot:
    """Read-only view of a game at one point in time."""
    state: SessionState
    turns: tuple[Turn, ...] = ()
    verdict: Verdict | None = None

    @property
    def is_over(self) -> bool:
        return self.state == SessionState.ENDED

    @property
    def open_turn(self) -> Turn | None:
        """The turn awaiting an answer; None once the game is over."""
        if self.state == SessionState.AWAITING_ANSWER and self.turns and self.turns[-1].is_open:
            return self.turns[-1]
        return None


@dataclass
class TransitionResult:
    """
    Result of a submission or verdict.

    Contains:
    - Whether the transition was accepted
    - The snapshot right after it (if accepted)
    - Why it was rejected (if not)
    """
    success: bool
    snapshot: GameSnapshot | None = None
    error: str | None = None
    error_code: str | None = None
    changes: list[str] = field(default_factory=list)

    @classmethod
    def rejected(cls, error: str, error_code: str = "REJECTED") -> TransitionResult:
        """Create a rejection result."""
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def accepted(cls, snapshot: GameSnapshot, change: str) -> TransitionResult:
        """Create a success result carrying the new snapshot."""
        return cls(success=True, snapshot=snapshot, changes=[change])
