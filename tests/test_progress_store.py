import asyncio
import json

from onboarding import progress_store
from onboarding.models import GenerationProgress, ImageTask
from onboarding.progress_store import (
    FileProgressStore,
    MemoryProgressStore,
    RedisProgressStore,
    strip_none,
)


def _progress() -> GenerationProgress:
    task = ImageTask(id="img-0", prompt_key="hero.imageUrl", prompt="p", status="generating", started_at=5)
    return GenerationProgress(
        phase="images",
        content_progress=100,
        images_total=1,
        all_images=[task],
        current_image=task,
        started_at=1,
        generation_id="gen-1",
    )


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.calls = []

    async def set(self, key, value):
        self.calls.append(("set", key))
        self.data[key] = value

    async def setex(self, key, ttl, value):
        self.calls.append(("setex", key, ttl))
        self.data[key] = value

    async def get(self, key):
        return self.data.get(key)

    async def delete(self, key):
        self.data.pop(key, None)


def test_strip_none_keeps_list_length():
    assert strip_none({"a": None, "b": [None, {"c": None, "d": 1}]}) == {"b": [None, {"d": 1}]}


def test_memory_store_round_trip_and_clear():
    store = MemoryProgressStore()

    async def run():
        assert await store.load() is None
        await store.save(_progress())
        loaded = await store.load()
        await store.clear()
        return loaded, await store.load()

    loaded, cleared = asyncio.run(run())
    assert loaded == _progress()
    assert cleared is None


def test_file_store_writes_camel_case_without_nulls(tmp_path):
    store = FileProgressStore("user/42", directory=tmp_path)

    async def run():
        await store.save(_progress())
        return await store.load()

    assert asyncio.run(run()) == _progress()
    assert store.path.name == "user_42.json"
    record = json.loads(store.path.read_text(encoding="utf-8"))
    assert record["phase"] == "images"
    assert record["imagesTotal"] == 1
    assert record["allImages"][0]["promptKey"] == "hero.imageUrl"
    assert "error" not in record and "completedAt" not in record
    assert not list(tmp_path.glob("*.tmp"))

    asyncio.run(store.clear())
    assert not store.path.exists()
    asyncio.run(store.clear())


def test_file_store_ignores_corrupt_record(tmp_path):
    store = FileProgressStore(directory=tmp_path)
    store.path.write_text("{not json", encoding="utf-8")
    assert asyncio.run(store.load()) is None


def test_redis_store_uses_ttl_when_configured():
    client = FakeRedis()
    store = RedisProgressStore("u1", client=client, ttl_seconds=3600)

    async def run():
        await store.save(_progress())
        return await store.load()

    assert asyncio.run(run()) == _progress()
    assert client.calls == [("setex", "onboarding:progress:u1", 3600)]

    plain = RedisProgressStore("u2", client=client, ttl_seconds=0)
    asyncio.run(plain.save(_progress()))
    assert client.calls[-1] == ("set", "onboarding:progress:u2")

    asyncio.run(store.clear())
    assert "onboarding:progress:u1" not in client.data


def test_factory_picks_backend_from_config(monkeypatch, tmp_path):
    monkeypatch.setattr(progress_store, "PROGRESS_DIR", tmp_path)
    monkeypatch.setattr(progress_store, "REDIS_URL", "")
    store = progress_store.get_progress_store("abc")
    assert isinstance(store, FileProgressStore)
    assert store.path == tmp_path / "abc.json"

    monkeypatch.setattr(progress_store, "REDIS_URL", "redis://localhost:6399/0")
    store = progress_store.get_progress_store("abc")
    assert isinstance(store, RedisProgressStore)
    assert store.key == "onboarding:progress:abc"
