"""
Estado persistido del usuario sobre el almacén clave-valor de `cache`:
favoritos, favorito actual, último tipo de tiempo, última observación
y la última previsión diaria guardada.
"""
import asyncio
import json
import logging
from typing import Optional

from . import cache
from .models import FavoriteLocation, WeatherType

logger = logging.getLogger(__name__)

FAVORITES_KEY = "favorites_list_key"
CURRENT_FAVORITE_KEY = "current_favorite_key"
WEATHER_TYPE_KEY = "weatherType"
CURRENT_WEATHER_KEY = "currentWeather"
DAILY_FORECASTS_KEY = "dailyForecasts"

# serializan leer-modificar-escribir de las listas guardadas
_favorites_lock = asyncio.Lock()
_forecasts_lock = asyncio.Lock()


async def _load_json(key: str):
    raw = await cache.aget(key)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring corrupt value stored under %s", key)
        return None


# ---- Favoritos ----
async def list_favorites() -> list[FavoriteLocation]:
    data = await _load_json(FAVORITES_KEY) or []
    return [FavoriteLocation.from_dict(d) for d in data]


async def _save_favorites(favorites: list[FavoriteLocation]) -> None:
    await cache.aset(FAVORITES_KEY, json.dumps([f.to_dict() for f in favorites]))


async def add_favorite(favorite: FavoriteLocation) -> list[FavoriteLocation]:
    async with _favorites_lock:
        favorites = await list_favorites()
        # una sola entrada por coordenada
        if not any(f.lat == favorite.lat and f.lon == favorite.lon for f in favorites):
            favorites.append(favorite)
            await _save_favorites(favorites)
        return favorites


async def remove_favorite(lat: float, lon: float) -> list[FavoriteLocation]:
    async with _favorites_lock:
        favorites = await list_favorites()
        idx = next((i for i, f in enumerate(favorites) if f.lat == lat and f.lon == lon), None)
        if idx is None:
            return favorites
        favorites.pop(idx)
        await _save_favorites(favorites)

    current = await get_current_favorite()
    if current and current.lat == lat and current.lon == lon:
        await set_current_favorite(None)
    return favorites


async def move_favorite(from_index: int, to_index: int) -> list[FavoriteLocation]:
    async with _favorites_lock:
        favorites = await list_favorites()
        if not 0 <= from_index < len(favorites):
            raise IndexError(f"favorite index out of range: {from_index}")
        item = favorites.pop(from_index)
        favorites.insert(max(0, min(to_index, len(favorites))), item)
        await _save_favorites(favorites)
        return favorites


async def get_current_favorite() -> Optional[FavoriteLocation]:
    data = await _load_json(CURRENT_FAVORITE_KEY)
    return FavoriteLocation.from_dict(data) if data else None


async def set_current_favorite(favorite: Optional[FavoriteLocation]) -> None:
    if favorite is None:
        await cache.adelete(CURRENT_FAVORITE_KEY)
        return
    await cache.aset(CURRENT_FAVORITE_KEY, json.dumps(favorite.to_dict()))


async def is_favorite(lat: float, lon: float, tolerance: float = 0.0) -> bool:
    """Compara contra el favorito actual (exacto si tolerance == 0)."""
    current = await get_current_favorite()
    if current is None:
        return False
    if tolerance == 0:
        return current.lat == lat and current.lon == lon
    return abs(current.lat - lat) <= tolerance and abs(current.lon - lon) <= tolerance


# ---- Estado del tiempo ----
async def save_weather_type(weather_type: WeatherType) -> None:
    await cache.aset(WEATHER_TYPE_KEY, weather_type.value)


async def load_weather_type() -> Optional[WeatherType]:
    raw = await cache.aget(WEATHER_TYPE_KEY)
    return WeatherType.parse(raw) if raw else None


async def save_current_weather(payload: dict) -> None:
    await cache.aset(CURRENT_WEATHER_KEY, json.dumps(payload))


async def load_current_weather() -> Optional[dict]:
    return await _load_json(CURRENT_WEATHER_KEY)


async def replace_saved_forecasts(days: list[dict]) -> None:
    # reemplaza todo lo guardado, no mezcla con previsiones anteriores
    await cache.aset(DAILY_FORECASTS_KEY, json.dumps(days))


async def load_saved_forecasts() -> list[dict]:
    return await _load_json(DAILY_FORECASTS_KEY) or []


async def upsert_saved_forecast(day: dict) -> list[dict]:
    """Inserta o actualiza un día guardado usando `date` como clave."""
    async with _forecasts_lock:
        days = [d for d in await load_saved_forecasts() if d.get("date") != day["date"]]
        days.append(day)
        days.sort(key=lambda d: d.get("date") or "")
        await cache.aset(DAILY_FORECASTS_KEY, json.dumps(days))
        return days


async def delete_saved_forecasts() -> None:
    await cache.adelete(DAILY_FORECASTS_KEY)


async def load_initial_state() -> tuple[Optional[WeatherType], Optional[dict]]:
    return await load_weather_type(), await load_current_weather()
