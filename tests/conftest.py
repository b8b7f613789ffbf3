from datetime import datetime, timezone

import pytest

from forecast import cache

NOW = datetime(2025, 10, 20, 12, 0, tzinfo=timezone.utc)  # lunes
NOW_TS = int(NOW.timestamp())


@pytest.fixture(autouse=True)
def memory_cache(monkeypatch):
    # los tests siempre usan el almacén en memoria, vacío
    monkeypatch.setattr(cache, "REDIS_URL", "")
    monkeypatch.setattr(cache, "_redis", None)
    cache._mem_store.clear()
    yield cache._mem_store
    cache._mem_store.clear()
