from __future__ import annotations

import asyncio

from coursegate.db.locks import InMemoryKeyedLock, KeyedLock, registration_key


def test_in_memory_lock_satisfies_protocol() -> None:
    assert isinstance(InMemoryKeyedLock(), KeyedLock)


def test_registration_key_is_per_pair() -> None:
    assert registration_key("u1", "c1") == "registration:u1:c1"
    assert registration_key("u1", "c1") != registration_key("u1", "c2")


def test_same_key_sections_never_overlap() -> None:
    lock = InMemoryKeyedLock()
    inside = 0
    peak = 0

    async def _section() -> None:
        nonlocal inside, peak
        async with lock.hold("k"):
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0)
            inside -= 1

    async def _run() -> None:
        await asyncio.gather(*(_section() for _ in range(10)))

    asyncio.run(_run())
    assert peak == 1


def test_different_keys_do_not_wait_on_each_other() -> None:
    lock = InMemoryKeyedLock()
    order: list[str] = []

    async def _slow() -> None:
        async with lock.hold("a"):
            order.append("a-in")
            await asyncio.sleep(0.02)
            order.append("a-out")

    async def _fast() -> None:
        await asyncio.sleep(0)
        async with lock.hold("b"):
            order.append("b")

    async def _run() -> None:
        await asyncio.gather(_slow(), _fast())

    asyncio.run(_run())
    assert order == ["a-in", "b", "a-out"]


def test_unused_keys_are_released() -> None:
    lock = InMemoryKeyedLock()

    async def _run() -> None:
        async with lock.hold("k1"):
            assert len(lock) == 1
        async with lock.hold("k2"):
            pass

    asyncio.run(_run())
    assert len(lock) == 0


def test_lock_released_when_section_raises() -> None:
    lock = InMemoryKeyedLock()

    async def _run() -> None:
        try:
            async with lock.hold("k"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        async with lock.hold("k"):
            pass

    asyncio.run(_run())
    assert len(lock) == 0
