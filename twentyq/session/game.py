"""
Game Session - The operations one session exposes to the transport layer.

A GameSession composes:
- The oracle capability token (who may answer and rule)
- The turn state machine (what may happen next)
- The broadcast hub (who is watching)
- The renderer (what they see)

Mutations run mutate -> render -> publish inside one per-session lock,
so every subscriber sees updates in the order the game changed. A
render failure aborts the event: nothing is published and the state
machine is put back as it was.
"""

from __future__ import annotations
import asyncio
import time
from dataclasses import dataclass, field

from ..auth import CapabilityToken, Role, resolve_role
from ..engine_core import GameSnapshot, TransitionResult, TurnStateMachine, Verdict
from ..exceptions import RenderError, TransitionRejectedError, UnauthorizedError
from ..observability.logging import get_logger
from ..rendering import GameRenderer
from .hub import BroadcastHub, ConnectionLifetime, Subscriber

logger = get_logger(__name__)


@dataclass
class GameSession:
    """
    One live game, owned by the SessionRegistry.

    Usage:
        role = session.authorize(request.cookies.get(session.session_id))
        await session.submit_response(role, "Is it alive?")
        await session.resolve(role, Verdict.CORRECT)
    """
    session_id: str
    capability: CapabilityToken
    renderer: GameRenderer
    created_at: float = field(default_factory=time.time)
    expires_at: float = 0.0

    machine: TurnStateMachine = field(default_factory=TurnStateMachine)
    hub: BroadcastHub = field(init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        initial = self.renderer.render_responses(self.machine.snapshot())
        self.hub = BroadcastHub(self.session_id, initial=initial)

    # =========================================================================
    # Reads
    # =========================================================================

    def authorize(self, credential: str | None) -> Role:
        """Resolve the request's credential (or lack of one) to a Role."""
        return resolve_role(credential, self.capability, self.session_id)

    def snapshot(self) -> GameSnapshot:
        return self.machine.snapshot()

    def render_page(self, role: Role) -> str:
        return self.renderer.render_game_page(self.session_id, is_oracle=role.is_oracle)

    async def subscribe(self, lifetime: ConnectionLifetime) -> Subscriber:
        return await self.hub.subscribe(lifetime)

    # =========================================================================
    # Transitions
    # =========================================================================

    async def submit_response(self, role: Role, text: str) -> GameSnapshot:
        """
        Submit a question (guesser) or an answer (oracle).

        Raises TransitionRejectedError when it is not the caller's turn,
        the text is empty, or the game is over.
        """
        async with self._lock:
            before = self.machine.snapshot()
            if role.is_oracle:
                result = await self.machine.submit_answer(text)
            else:
                result = await self.machine.submit_question(text)
            return await self._publish(result, role, before)

    async def resolve(self, role: Role, verdict: Verdict) -> GameSnapshot:
        """
        End the game with the oracle's verdict.

        Raises UnauthorizedError for non-oracles and
        TransitionRejectedError if the game is already over.
        """
        if not role.is_oracle:
            logger.info("verdict_unauthorized", session_id=self.session_id)
            raise UnauthorizedError()

        async with self._lock:
            before = self.machine.snapshot()
            result = await self.machine.resolve(verdict)
            return await self._publish(result, role, before)

    async def _publish(
        self, result: TransitionResult, role: Role, before: GameSnapshot,
    ) -> GameSnapshot:
        """
        Render the accepted transition and fan it out. Caller holds the lock.

        If rendering fails the machine is restored to before, so the
        event leaves no trace and may simply be retried.
        """
        if not result.success:
            logger.info(
                "transition_rejected",
                session_id=self.session_id,
                role=role.value,
                reason=result.error_code,
            )
            raise TransitionRejectedError(result.error or "Transition rejected")

        snapshot = result.snapshot
        try:
            rendered = self.renderer.render_responses(snapshot)
        except RenderError:
            await self.machine.restore(before)
            logger.warning(
                "transition_rolled_back",
                session_id=self.session_id,
                role=role.value,
                change=", ".join(result.changes),
            )
            raise
        delivered = await self.hub.publish(rendered)

        logger.info(
            "transition_published",
            session_id=self.session_id,
            role=role.value,
            change=", ".join(result.changes),
            state=snapshot.state.value,
            delivered=delivered,
        )
        return snapshot
