"""
Tests for the session registry.

Tests:
- Identifier format and uniqueness (including concurrent creation)
- Collision re-roll
- Lookup misses
- TTL expiry, explicit expiry and shutdown
"""

import asyncio
import string

import pytest

from ..auth import Role
from ..engine_core import Verdict
from ..session import ConnectionLifetime, SessionRegistry, random_session_id


class TestIdentifiers:

    def test_random_id_format(self):
        session_id = random_session_id(12)
        assert len(session_id) == 12
        assert set(session_id) <= set(string.ascii_letters + string.digits)

    @pytest.mark.asyncio
    async def test_concurrent_creates_unique(self, registry):
        sessions = await asyncio.gather(*(registry.create() for _ in range(50)))

        ids = {s.session_id for s in sessions}
        assert len(ids) == 50
        assert len(registry) == 50
        await registry.close()

    @pytest.mark.asyncio
    async def test_collision_rerolls(self, renderer):
        rolls = iter(["dupdupdupdup", "dupdupdupdup", "freshfresh12"])
        registry = SessionRegistry(renderer=renderer, id_factory=lambda _length: next(rolls))

        first = await registry.create()
        second = await registry.create()

        assert first.session_id == "dupdupdupdup"
        assert second.session_id == "freshfresh12"
        await registry.close()

    @pytest.mark.asyncio
    async def test_concurrent_creates_with_tiny_alphabet(self, renderer):
        """Even with forced collisions, racing creators never share an id."""
        counter = iter(range(10_000))
        registry = SessionRegistry(
            renderer=renderer,
            id_factory=lambda _length: f"id{next(counter) % 40}",
        )

        sessions = await asyncio.gather(*(registry.create() for _ in range(30)))

        assert len({s.session_id for s in sessions}) == 30
        await registry.close()


class TestLookup:

    @pytest.mark.asyncio
    async def test_lookup_hit(self, registry):
        session = await registry.create()
        assert registry.lookup(session.session_id) is session
        assert session.session_id in registry
        await registry.close()

    def test_lookup_miss(self, registry):
        assert registry.lookup("nope") is None
        assert "nope" not in registry

    @pytest.mark.asyncio
    async def test_token_bound_to_session(self, registry):
        session = await registry.create()
        other = await registry.create()

        assert session.authorize(session.capability.token) is Role.ORACLE
        assert session.authorize(other.capability.token) is Role.GUESSER
        await registry.close()


class TestExpiry:

    @pytest.mark.asyncio
    async def test_ttl_removes_session(self, renderer):
        registry = SessionRegistry(session_ttl=0.05, renderer=renderer)
        session = await registry.create()
        lifetime = ConnectionLifetime()
        await session.subscribe(lifetime)

        await asyncio.sleep(0.2)

        assert registry.lookup(session.session_id) is None
        assert len(registry) == 0
        assert lifetime.ended
        assert session.hub.is_shut_down

    @pytest.mark.asyncio
    async def test_explicit_expire(self, registry):
        session = await registry.create()

        assert await registry.expire(session.session_id)
        assert registry.lookup(session.session_id) is None
        assert not await registry.expire(session.session_id)

    @pytest.mark.asyncio
    async def test_expire_while_submission_blocked_on_stalled_reader(self, registry):
        session = await registry.create()
        lifetime = ConnectionLifetime()
        await session.subscribe(lifetime)  # never read

        submitting = asyncio.create_task(session.submit_response(Role.GUESSER, "Is it alive?"))
        await asyncio.sleep(0.01)
        assert not submitting.done()

        assert await asyncio.wait_for(registry.expire(session.session_id), 1.0)

        snapshot = await asyncio.wait_for(submitting, 1.0)
        assert snapshot.turns[0].question == "Is it alive?"
        assert lifetime.ended
        assert session.hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_verdict_does_not_delete(self, registry):
        session = await registry.create()
        await session.resolve(Role.ORACLE, Verdict.CORRECT)

        assert registry.lookup(session.session_id) is session
        await registry.close()

    @pytest.mark.asyncio
    async def test_expiry_isolated_per_session(self, renderer):
        registry = SessionRegistry(session_ttl=0.05, renderer=renderer)
        short = await registry.create()
        registry.session_ttl = 3600
        long = await registry.create()

        await asyncio.sleep(0.2)

        assert registry.lookup(short.session_id) is None
        assert registry.lookup(long.session_id) is long
        await registry.close()

    @pytest.mark.asyncio
    async def test_close_shuts_everything_down(self, registry):
        sessions = [await registry.create() for _ in range(3)]
        lifetimes = []
        for session in sessions:
            lifetime = ConnectionLifetime()
            await session.subscribe(lifetime)
            lifetimes.append(lifetime)

        await registry.close()

        assert len(registry) == 0
        assert registry.session_ids() == []
        assert all(lifetime.ended for lifetime in lifetimes)

    @pytest.mark.asyncio
    async def test_expires_at(self, registry):
        session = await registry.create()
        assert session.expires_at == pytest.approx(session.created_at + 3600)
        await registry.close()
