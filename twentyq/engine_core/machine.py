"""
Turn State Machine - The single point of game mutation.

States:
    AWAITING_QUESTION -> AWAITING_ANSWER -> AWAITING_QUESTION -> ...
    either awaiting state -> ENDED(verdict), terminal

A verdict given while a question is still awaiting its answer closes that
turn as it stands: the question stays unanswered for good, and no turn
counts as open once the game has ended.

Every operation reads and writes the state and the turn list inside one
asyncio.Lock region. Two racing submissions of the same kind therefore
produce exactly one acceptance and one rejection, decided by lock
acquisition order.
"""

from __future__ import annotations
import asyncio
from dataclasses import replace

from .state import GameSnapshot, SessionState, TransitionResult, Turn, Verdict
from ..observability.logging import get_logger

logger = get_logger(__name__)


class TurnStateMachine:
    """
    Question/answer alternation for one session.

    Usage:
        machine = TurnStateMachine()

        result = await machine.submit_question("Is it alive?")
        if not result.success:
            ...  # out of turn, empty, or game over

        await machine.submit_answer("Yes")
        await machine.resolve(Verdict.CORRECT)
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = SessionState.AWAITING_QUESTION
        self._verdict: Verdict | None = None
        self._turns: list[Turn] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def verdict(self) -> Verdict | None:
        return self._verdict

    def snapshot(self) -> GameSnapshot:
        """Copy of the current game, safe to hand to other tasks."""
        return GameSnapshot(
            state=self._state,
            turns=tuple(replace(turn) for turn in self._turns),
            verdict=self._verdict,
        )

    async def submit_question(self, text: str) -> TransitionResult:
        """Open a new turn. Only valid while awaiting a question."""
        async with self._lock:
            if self._state == SessionState.ENDED:
                return TransitionResult.rejected("Game is over", error_code="GAME_OVER")
            if self._state != SessionState.AWAITING_QUESTION:
                return TransitionResult.rejected(
                    "Not currently awaiting a question", error_code="OUT_OF_TURN",
                )
            if not text:
                return TransitionResult.rejected("Question is empty", error_code="EMPTY")

            turn = Turn(index=len(self._turns) + 1, question=text)
            self._turns.append(turn)
            self._state = SessionState.AWAITING_ANSWER

            logger.debug("question_submitted", turn=turn.index)
            return TransitionResult.accepted(self.snapshot(), f"question {turn.index}")

    async def submit_answer(self, text: str) -> TransitionResult:
        """Close the open turn. Only valid while awaiting an answer."""
        async with self._lock:
            if self._state == SessionState.ENDED:
                return TransitionResult.rejected("Game is over", error_code="GAME_OVER")
            if self._state != SessionState.AWAITING_ANSWER:
                return TransitionResult.rejected(
                    "Not currently awaiting an answer", error_code="OUT_OF_TURN",
                )
            if not text:
                return TransitionResult.rejected("Answer is empty", error_code="EMPTY")

            turn = self._turns[-1]
            turn.answer = text
            self._state = SessionState.AWAITING_QUESTION

            logger.debug("answer_submitted", turn=turn.index)
            return TransitionResult.accepted(self.snapshot(), f"answer {turn.index}")

    async def resolve(self, verdict: Verdict) -> TransitionResult:
        """End the game. Locks out every later submission and verdict."""
        async with self._lock:
            if self._state == SessionState.ENDED:
                return TransitionResult.rejected("Game is over", error_code="GAME_OVER")

            self._state = SessionState.ENDED
            self._verdict = verdict

            logger.debug("game_resolved", verdict=verdict.value, turns=len(self._turns))
            return TransitionResult.accepted(self.snapshot(), f"verdict {verdict.value}")

    async def restore(self, snapshot: GameSnapshot) -> None:
        """
        Put the game back exactly as it was when snapshot was taken.

        Used to undo a transition whose result could not be shown to
        anyone. The caller must make sure nothing else has mutated the
        machine since the snapshot.
        """
        async with self._lock:
            self._state = snapshot.state
            self._verdict = snapshot.verdict
            self._turns = [replace(turn) for turn in snapshot.turns]

            logger.debug("state_restored", state=snapshot.state.value, turns=len(self._turns))
