import pytest

from studyaid.services import text_cache
from studyaid.services.text_cache import InMemoryTextCache, RedisTextCache, cache_key


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class _FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, name):
        value = self.store.get(name)
        return value.encode("utf-8") if value is not None else None

    def set(self, name, value):
        self.store[name] = value

    def setex(self, name, ttl, value):
        self.store[name] = value
        self.ttls[name] = ttl

    def scan_iter(self, match=None):
        prefix = (match or "").rstrip("*")
        return [k.encode("utf-8") for k in self.store if k.startswith(prefix)]


def test_cache_key_scopes_by_user():
    assert cache_key(1, "notes.pdf") == "1:notes.pdf"
    assert cache_key(1, "notes.pdf") != cache_key(2, "notes.pdf")


def test_last_writer_wins():
    cache = InMemoryTextCache(ttl_seconds=0, max_entries=4)
    cache.set("1:a.pdf", "first")
    cache.set("1:a.pdf", "second")

    assert cache.get("1:a.pdf") == "second"
    assert cache.keys() == ["1:a.pdf"]


def test_entries_expire_after_ttl():
    clock = _Clock()
    cache = InMemoryTextCache(ttl_seconds=60, max_entries=4, clock=clock)
    cache.set("k", "text")

    clock.now += 59
    assert cache.get("k") == "text"

    clock.now += 1
    assert cache.get("k") is None
    assert cache.keys() == []


def test_least_recently_used_entry_is_evicted():
    cache = InMemoryTextCache(ttl_seconds=0, max_entries=2)
    cache.set("a", "1")
    cache.set("b", "2")
    assert cache.get("a") == "1"

    cache.set("c", "3")

    assert cache.get("b") is None
    assert sorted(cache.keys()) == ["a", "c"]


def test_cache_size_must_be_positive():
    with pytest.raises(ValueError):
        InMemoryTextCache(max_entries=0)


def test_redis_cache_uses_prefix_and_ttl():
    client = _FakeRedis()
    cache = RedisTextCache(client, ttl_seconds=30)

    cache.set("1:a.pdf", "hello")

    assert client.ttls["studyaid:text:1:a.pdf"] == 30
    assert cache.get("1:a.pdf") == "hello"
    assert cache.keys() == ["1:a.pdf"]


def test_redis_cache_without_ttl_uses_plain_set():
    client = _FakeRedis()
    RedisTextCache(client, ttl_seconds=0).set("k", "v")

    assert client.store == {"studyaid:text:k": "v"}
    assert client.ttls == {}


def test_build_text_cache_rejects_unknown_backend(monkeypatch):
    monkeypatch.setattr(text_cache.settings, "TEXT_CACHE_BACKEND", "memcached")
    with pytest.raises(ValueError):
        text_cache.build_text_cache()


def test_build_text_cache_defaults_to_memory(monkeypatch):
    monkeypatch.setattr(text_cache.settings, "TEXT_CACHE_BACKEND", "memory")
    assert isinstance(text_cache.build_text_cache(), InMemoryTextCache)
