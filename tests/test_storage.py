import asyncio

import pytest

from forecast import cache, storage
from forecast.models import FavoriteLocation, WeatherType


def fav(lat, lon, name=None):
    return FavoriteLocation(lat=lat, lon=lon, temp=18, weather_type=WeatherType.SUNNY, name=name)


@pytest.mark.asyncio
async def test_add_sin_duplicados():
    await storage.add_favorite(fav(40.4, -3.7, "Madrid"))
    await storage.add_favorite(fav(40.4, -3.7, "Madrid otra vez"))
    favorites = await storage.list_favorites()
    assert len(favorites) == 1
    assert favorites[0].name == "Madrid"
    assert favorites[0].weather_type is WeatherType.SUNNY


@pytest.mark.asyncio
async def test_remove_limpia_el_actual():
    madrid = fav(40.4, -3.7)
    await storage.add_favorite(madrid)
    await storage.add_favorite(fav(41.4, 2.2))
    await storage.set_current_favorite(madrid)
    assert await storage.is_favorite(40.4, -3.7)

    left = await storage.remove_favorite(40.4, -3.7)
    assert [(f.lat, f.lon) for f in left] == [(41.4, 2.2)]
    assert await storage.get_current_favorite() is None


@pytest.mark.asyncio
async def test_remove_inexistente():
    await storage.add_favorite(fav(1, 1))
    assert len(await storage.remove_favorite(2, 2)) == 1


@pytest.mark.asyncio
async def test_is_favorite_con_tolerancia():
    await storage.set_current_favorite(fav(40.40, -3.70))
    assert not await storage.is_favorite(40.45, -3.70)
    assert await storage.is_favorite(40.45, -3.70, tolerance=0.1)
    await storage.set_current_favorite(None)
    assert not await storage.is_favorite(40.40, -3.70)


@pytest.mark.asyncio
async def test_move():
    for i in range(3):
        await storage.add_favorite(fav(i, i))
    out = await storage.move_favorite(0, 2)
    assert [f.lat for f in out] == [1, 2, 0]
    with pytest.raises(IndexError):
        await storage.move_favorite(5, 0)


@pytest.mark.asyncio
async def test_estado_del_tiempo():
    assert await storage.load_weather_type() is None
    await storage.save_weather_type(WeatherType.RAINY)
    assert await storage.load_weather_type() is WeatherType.RAINY

    await storage.replace_saved_forecasts([{"day": "Monday"}])
    await storage.replace_saved_forecasts([{"day": "Tuesday"}])
    assert await storage.load_saved_forecasts() == [{"day": "Tuesday"}]


@pytest.mark.asyncio
async def test_valor_corrupto_se_ignora():
    await cache.aset(storage.FAVORITES_KEY, "{no json")
    assert await storage.list_favorites() == []


@pytest.mark.asyncio
async def test_cache_ttl(memory_cache):
    await cache.aset("k", "v", 10)
    await cache.aset("sin-ttl", "v")
    assert await cache.aget("k") == "v"
    # forzamos la expiración
    memory_cache["k"] = (0.0, "v")
    assert await cache.aget("k") is None
    assert "k" not in memory_cache
    assert await cache.aget("sin-ttl") == "v"
    await cache.adelete("sin-ttl")
    assert await cache.aget("sin-ttl") is None


@pytest.mark.asyncio
async def test_add_concurrente_no_pierde_entradas(monkeypatch):
    original_aget = cache.aget

    async def slow_aget(key):
        # cede el control entre la lectura y la escritura
        await asyncio.sleep(0)
        return await original_aget(key)

    monkeypatch.setattr(cache, "aget", slow_aget)

    await asyncio.gather(*(storage.add_favorite(fav(i, i)) for i in range(5)))
    assert sorted(f.lat for f in await storage.list_favorites()) == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_upsert_por_fecha_y_borrado():
    await storage.replace_saved_forecasts([
        {"day": "Monday", "date": "2025-10-20", "min_temp": 10, "max_temp": 20, "icon": "clear"},
    ])
    await storage.upsert_saved_forecast(
        {"day": "Wednesday", "date": "2025-10-22", "min_temp": 8, "max_temp": 15, "icon": "rain"}
    )
    days = await storage.upsert_saved_forecast(
        {"day": "Monday", "date": "2025-10-20", "min_temp": 11, "max_temp": 21, "icon": "partlysunny"}
    )
    assert [d["date"] for d in days] == ["2025-10-20", "2025-10-22"]
    assert days[0]["min_temp"] == 11
    assert await storage.load_saved_forecasts() == days

    await storage.delete_saved_forecasts()
    assert await storage.load_saved_forecasts() == []


@pytest.mark.asyncio
async def test_estado_inicial():
    assert await storage.load_initial_state() == (None, None)
    await storage.save_weather_type(WeatherType.CLOUDY)
    await storage.save_current_weather({"name": "Madrid"})
    assert await storage.load_initial_state() == (WeatherType.CLOUDY, {"name": "Madrid"})
