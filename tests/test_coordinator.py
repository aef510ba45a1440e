from __future__ import annotations

import asyncio

from notepdf.coordinator import GenerationCoordinator
from notepdf.pdf_export import GenerationSuperseded


def test_newer_request_supersedes_running_pass() -> None:
    async def scenario():
        coord = GenerationCoordinator()
        started = asyncio.Event()
        release = asyncio.Event()
        ran: list[str] = []

        async def slow(check):
            ran.append("slow")
            started.set()
            await release.wait()
            check()
            return "old"

        async def queued(check):
            ran.append("queued")
            return "middle"

        async def fast(check):
            ran.append("fast")
            check()
            return "new"

        first = asyncio.create_task(coord.run("doc", slow))
        await started.wait()
        second = asyncio.create_task(coord.run("doc", queued))
        third = asyncio.create_task(coord.run("doc", fast))
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(first, second, third, return_exceptions=True)
        return results, ran

    results, ran = asyncio.run(scenario())
    assert isinstance(results[0], GenerationSuperseded)
    # The queued request went stale before it started, so its work never ran.
    assert isinstance(results[1], GenerationSuperseded)
    assert results[2] == "new"
    assert ran == ["slow", "fast"]


def test_documents_do_not_supersede_each_other() -> None:
    async def scenario():
        coord = GenerationCoordinator()

        async def job(check):
            await asyncio.sleep(0)
            check()
            return "done"

        return await asyncio.gather(coord.run("a", job), coord.run("b", job))

    assert asyncio.run(scenario()) == ["done", "done"]


def test_tokens_track_latest_request() -> None:
    coord = GenerationCoordinator()
    first = coord.begin("doc")
    second = coord.begin("doc")
    assert not coord.is_current("doc", first)
    assert coord.is_current("doc", second)
    assert coord.is_current("other", first) is False


def test_finished_documents_are_forgotten() -> None:
    async def scenario():
        coord = GenerationCoordinator()

        async def job(check):
            await asyncio.sleep(0)
            check()
            return "done"

        results = await asyncio.gather(
            coord.run("a", job), coord.run("a", job), coord.run("b", job), return_exceptions=True
        )
        return coord, results

    coord, results = asyncio.run(scenario())
    assert isinstance(results[0], GenerationSuperseded)
    assert results[1:] == ["done", "done"]
    assert coord._latest == {}
    assert coord._locks == {}
