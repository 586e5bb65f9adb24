import asyncio

import pytest

from hearth.models.conversation import ROLE_ASSISTANT, ROLE_USER
from hearth.orchestrator.session import SessionManager


async def test_session_loads_from_store(store):
    await store.append_turns("alice", [(ROLE_USER, "q1"), (ROLE_ASSISTANT, "a1")])
    manager = SessionManager(store, max_history=50)

    async with manager.session("alice") as session:
        assert [m["content"] for m in session.messages()] == ["q1", "a1"]
        assert session.loaded


async def test_window_is_bounded(store):
    for i in range(5):
        await store.append_turns("alice", [(ROLE_USER, f"u{i}")])
    manager = SessionManager(store, max_history=3)

    async with manager.session("alice") as session:
        assert [t.text for t in session.history()] == ["u2", "u3", "u4"]
        session.extend(await store.append_turns("alice", [(ROLE_USER, "u5")]))
        assert [t.text for t in session.history()] == ["u3", "u4", "u5"]

    # The store still has everything
    assert len(await store.load_recent_turns("alice", 100)) == 6


def test_max_history_must_be_positive(store):
    with pytest.raises(ValueError):
        SessionManager(store, max_history=0)


async def test_same_user_is_serialised(store):
    manager = SessionManager(store)
    order: list[str] = []

    async def hold(tag: str, delay: float):
        async with manager.session("alice"):
            order.append(f"{tag}-in")
            await asyncio.sleep(delay)
            order.append(f"{tag}-out")

    await asyncio.gather(hold("a", 0.05), hold("b", 0))
    assert order == ["a-in", "a-out", "b-in", "b-out"]


async def test_different_users_do_not_block(store):
    manager = SessionManager(store)
    release = asyncio.Event()

    async def alice():
        async with manager.session("alice"):
            await release.wait()

    task = asyncio.create_task(alice())
    await asyncio.sleep(0)

    async with manager.session("bob") as session:
        assert session.user_id == "bob"
    release.set()
    await task


async def test_lock_released_on_error(store):
    manager = SessionManager(store)
    with pytest.raises(RuntimeError):
        async with manager.session("alice"):
            raise RuntimeError("boom")

    async with manager.session("alice") as session:
        assert session.user_id == "alice"


async def test_invalidate_reloads(store):
    manager = SessionManager(store)
    async with manager.session("alice") as session:
        assert len(session) == 0

    await store.append_turns("alice", [(ROLE_USER, "written elsewhere")])
    await manager.invalidate("alice")

    async with manager.session("alice") as session:
        assert [t.text for t in session.history()] == ["written elsewhere"]
    assert manager.active_users() == ["alice"]


async def test_with_session(store):
    manager = SessionManager(store)

    async def count(session):
        return len(session)

    assert await manager.with_session("alice", count) == 0
