from meal_to_macros.cache import TTLCache


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = _Clock()
    cache = TTLCache(60, clock=clock)
    cache.set("k", "v")
    assert cache.get("k") == "v"
    clock.now += 59
    assert cache.get("k") == "v"
    clock.now += 1
    assert cache.get("k") is None
    assert len(cache) == 0


def test_per_entry_ttl_overrides_default():
    clock = _Clock()
    cache = TTLCache(60, clock=clock)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2)
    clock.now += 10
    assert cache.get("short") is None
    assert cache.get("long") == 2
    assert len(cache) == 1


def test_non_positive_ttl_is_not_stored():
    cache = TTLCache(60)
    cache.set("k", "v", ttl=0)
    assert cache.get("k") is None


def test_missing_key():
    assert TTLCache().get("nope") is None
