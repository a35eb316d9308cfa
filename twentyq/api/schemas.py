"""
Pydantic Schemas for API - JSON response models.

HTML pages and the event stream are not modelled here; these cover the
JSON surfaces (game state, errors, health) for OpenAPI.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or has expired
- REJECTED_TRANSITION: Out of turn, empty, or after the game ended
- UNAUTHORIZED: Oracle-only operation without a valid oracle credential
- RENDER_FAILED: The update could not be rendered; nothing was published
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..engine_core import GameSnapshot
from ..exceptions import ErrorCode


# =============================================================================
# Enums
# =============================================================================

class GameStatus(str, Enum):
    """What the game is waiting for."""
    AWAITING_QUESTION = "awaiting_question"
    AWAITING_ANSWER = "awaiting_answer"
    ENDED = "ended"


class VerdictValue(str, Enum):
    """Final ruling."""
    CORRECT = "correct"
    INCORRECT = "incorrect"


# =============================================================================
# Shared Models
# =============================================================================

class TurnInfo(BaseModel):
    """One question and its answer, if given yet."""
    index: int = Field(ge=1)
    question: str
    answer: Optional[str] = None

    model_config = {"from_attributes": True}


# =============================================================================
# Responses
# =============================================================================

class GameStateResponse(BaseModel):
    """Current state of one game, as seen by the caller."""
    session_id: str
    status: GameStatus
    verdict: Optional[VerdictValue] = None
    turns: list[TurnInfo] = Field(default_factory=list)
    is_oracle: bool = False
    expires_at: float = Field(description="Unix time the session is deleted")

    @classmethod
    def from_snapshot(
        cls,
        session_id: str,
        snapshot: GameSnapshot,
        is_oracle: bool,
        expires_at: float,
    ) -> "GameStateResponse":
        return cls(
            session_id=session_id,
            status=GameStatus(snapshot.state.value),
            verdict=VerdictValue(snapshot.verdict.value) if snapshot.verdict else None,
            turns=[TurnInfo.model_validate(turn) for turn in snapshot.turns],
            is_oracle=is_oracle,
            expires_at=expires_at,
        )


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    error_code: ErrorCode
    session_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    service: str = "twentyq"
    version: str
    sessions: int = 0
