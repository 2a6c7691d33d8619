import asyncio

from quluub.services.dispatch_queue import DispatchQueue
from quluub.services.profile_cache import ProfileCache
from quluub.services.push_channel import PushChannel


class FakeClock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestDispatchQueue:

    async def test_submit_returns_before_work_runs(self):
        queue = DispatchQueue()
        done = []

        async def work():
            done.append(True)

        queue.submit(work(), name="work")
        assert done == []
        assert queue.pending == 1

        await queue.drain()
        assert done == [True]
        assert queue.pending == 0

    async def test_failures_are_logged_not_raised(self):
        queue = DispatchQueue()

        async def broken():
            raise RuntimeError("provider down")

        task = queue.submit(broken(), name="broken")
        await queue.drain()

        assert task.done()
        assert task.exception() is None

    async def test_drain_waits_for_work_submitted_while_draining(self):
        queue = DispatchQueue()
        done = []

        async def child():
            done.append("child")

        async def parent():
            queue.submit(child(), name="child")
            done.append("parent")

        queue.submit(parent(), name="parent")
        await queue.drain()

        assert done == ["parent", "child"]

    async def test_shutdown_cancels_stragglers(self):
        queue = DispatchQueue()

        task = queue.submit(asyncio.sleep(60), name="slow")
        await queue.shutdown(timeout=0.01)

        assert task.cancelled()
        assert queue.pending == 0


class TestProfileCache:

    async def test_hits_until_ttl_expires(self, storage):
        clock = FakeClock()
        cache = ProfileCache(storage.users, ttl_seconds=30, clock=clock)

        first = await cache.get("ahmed")
        storage.collections["users"][0]["fname"] = "Renamed"

        assert (await cache.get("ahmed")).display_name == first.display_name

        clock.now += 31
        assert (await cache.get("ahmed")).display_name == "Renamed Test"

    async def test_get_many_queries_only_misses(self, storage, monkeypatch):
        cache = ProfileCache(storage.users, ttl_seconds=30, clock=FakeClock())
        await cache.get("ahmed")
        requested = []
        find_many = storage.users.find_many

        async def spy(user_ids):
            user_ids = list(user_ids)
            requested.append(user_ids)
            return await find_many(user_ids)

        monkeypatch.setattr(storage.users, "find_many", spy)

        found = await cache.get_many(["ahmed", "fatima", "nobody", "fatima"])

        assert sorted(found) == ["ahmed", "fatima"]
        assert requested == [["fatima", "nobody"]]
        assert len(cache) == 2

    async def test_invalidate(self, storage):
        cache = ProfileCache(storage.users, ttl_seconds=30, clock=FakeClock())
        await cache.get("ahmed")

        cache.invalidate("ahmed")
        cache.invalidate("never-cached")

        assert len(cache) == 0


class TestPushChannel:

    async def test_emit_reaches_every_listener(self):
        channel = PushChannel()
        received = []

        async def first(event, payload):
            received.append(("first", event))

        async def second(event, payload):
            received.append(("second", event))

        channel.subscribe("fatima", first)
        channel.subscribe("fatima", second)

        assert await channel.emit("fatima", "new_request", {}) == 2
        assert received == [("first", "new_request"), ("second", "new_request")]
        assert await channel.emit("ahmed", "new_request", {}) == 0

    async def test_failing_listener_is_dropped(self):
        channel = PushChannel()

        async def closed_socket(event, payload):
            raise ConnectionError("socket closed")

        channel.subscribe("fatima", closed_socket)

        assert await channel.emit("fatima", "new_message", {}) == 0
        assert not channel.is_connected("fatima")

    async def test_unsubscribe(self):
        channel = PushChannel()

        async def listener(event, payload):
            pass

        channel.subscribe("fatima", listener)
        assert channel.is_connected("fatima")

        channel.unsubscribe("fatima", listener)
        assert not channel.is_connected("fatima")
