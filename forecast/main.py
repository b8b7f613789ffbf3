import os
import json
import logging
from datetime import date
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .aggregations import aggregate_next_days, classify_sample, samples_from_forecast, weekday_name
from .clients import fetch_current_weather, fetch_forecast
from .models import FavoriteLocation, IconCategory, WeatherSample, WeatherType, kelvin_to_celsius
from . import cache  # aget/aset asíncronos
from . import storage

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def c_to_f(c: float) -> float:
    return round((c * 9 / 5) + 32, 2)


# ------------------------------------------------------------
# Configuración principal
# ------------------------------------------------------------
app = FastAPI(title="Forecast API", version="1.0.0")

# --- CORS ---
ALLOW_ORIGINS = os.getenv("ALLOW_ORIGINS", "*")
ALLOW_METHODS = os.getenv("ALLOW_METHODS", "*")
ALLOW_HEADERS = os.getenv("ALLOW_HEADERS", "*")
EXPOSE_HEADERS = os.getenv("EXPOSE_HEADERS", "X-Cache")
ALLOW_CREDENTIALS = os.getenv("ALLOW_CREDENTIALS", "false").lower() == "true"
CORS_MAX_AGE = int(os.getenv("CORS_MAX_AGE", "600"))

origins = [o.strip() for o in ALLOW_ORIGINS.split(",") if o.strip()]
methods = [m.strip() for m in ALLOW_METHODS.split(",") if m.strip()]
headers = [h.strip() for h in ALLOW_HEADERS.split(",") if h.strip()]
expose = [h.strip() for h in EXPOSE_HEADERS.split(",") if h.strip()]

allow_origins_cfg = ["*"] if (origins == ["*"] and not ALLOW_CREDENTIALS) else origins or ["*"]
allow_methods_cfg = ["*"] if methods == ["*"] else (methods or ["GET", "POST", "PUT", "DELETE", "OPTIONS"])
allow_headers_cfg = ["*"] if headers == ["*"] else (headers or ["*"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins_cfg,
    allow_credentials=ALLOW_CREDENTIALS,
    allow_methods=allow_methods_cfg,
    allow_headers=allow_headers_cfg,
    expose_headers=expose,
    max_age=CORS_MAX_AGE,
)
# ------------------------------------------------------------


CACHE_TTL = int(os.getenv("CACHE_TTL_SECONDS", "600"))

# Ubicación por defecto si el cliente no envía coordenadas (Nueva York aprox.)
DEFAULT_LAT = int(os.getenv("DEFAULT_LAT", "40"))
DEFAULT_LON = int(os.getenv("DEFAULT_LON", "-74"))


def _coords(lat: Optional[float], lon: Optional[float]) -> tuple[int, int]:
    if lat is None or lon is None:
        return DEFAULT_LAT, DEFAULT_LON
    # el proveedor se consulta con coordenadas enteras
    return int(lat), int(lon)


def _convert(temp: Optional[int], unit: str):
    if temp is None or unit == "C":
        return temp
    return c_to_f(temp)


async def _cached(cache_key: str) -> Optional[dict]:
    cached_str = await cache.aget(cache_key)
    if not cached_str:
        return None
    try:
        return json.loads(cached_str)
    except (TypeError, ValueError):
        # si hay algo corrupto, lo ignoramos y seguimos
        logger.warning("Corrupt cache entry for %s", cache_key)
        return None


@app.get("/health")
async def health():
    """
    OK si el proceso está vivo.
    Incluye 'cache'='redis' si REDIS_URL responde a PING; 'memory' en caso contrario.
    """
    status = {"status": "ok", "cache": "memory"}
    try:
        r = await cache._get_redis()
        if r and await r.ping():
            status["cache"] = "redis"
    except Exception as e:
        logger.warning("Redis ping failed: %s", e)
    return status


@app.get("/weather/current")
async def get_current_weather(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lon: Optional[float] = Query(None, ge=-180, le=180),
    unit: str = Query("C", pattern="^[CFcf]$"),
):
    ilat, ilon = _coords(lat, lon)
    out_unit = unit.upper()
    cache_key = f"current:{ilat}:{ilon}:{out_unit}"

    cached = await _cached(cache_key)
    if cached is not None:
        return JSONResponse(content=cached, headers={"X-Cache": "HIT"})

    raw = await fetch_current_weather(ilat, ilon)
    sample = WeatherSample.from_openweather(raw)
    weather_type = classify_sample(sample)
    main = raw.get("main") if isinstance(raw.get("main"), dict) else {}
    feels_like = main.get("feels_like")

    result = {
        "city": raw.get("name"),
        "timezone": raw.get("timezone"),
        "unit": out_unit,
        "condition": sample.condition_label,
        "weather_type": weather_type.value,
        "temp": _convert(sample.temp_celsius, out_unit),
        "feels_like": _convert(
            kelvin_to_celsius(feels_like) if isinstance(feels_like, (int, float)) else None,
            out_unit,
        ),
        "temp_min": _convert(kelvin_to_celsius(sample.temp_min_kelvin), out_unit),
        "temp_max": _convert(kelvin_to_celsius(sample.temp_max_kelvin), out_unit),
    }

    await storage.save_weather_type(weather_type)
    await storage.save_current_weather(raw)
    await cache.aset(cache_key, json.dumps(result), CACHE_TTL)
    return JSONResponse(content=result, headers={"X-Cache": "MISS"})


@app.get("/forecast/daily")
async def get_daily_forecast(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lon: Optional[float] = Query(None, ge=-180, le=180),
    unit: str = Query("C", pattern="^[CFcf]$"),
):
    ilat, ilon = _coords(lat, lon)
    out_unit = unit.upper()
    cache_key = f"forecast:{ilat}:{ilon}:{out_unit}"

    cached = await _cached(cache_key)
    if cached is not None:
        return JSONResponse(content=cached, headers={"X-Cache": "HIT"})

    raw = await fetch_forecast(ilat, ilon)
    city = raw.get("city") if isinstance(raw.get("city"), dict) else {}
    offset = city.get("timezone")
    offset = offset if isinstance(offset, int) else 0

    summaries = aggregate_next_days(samples_from_forecast(raw), offset)
    days = [s.to_dict() for s in summaries]
    # se persiste siempre en Celsius
    await storage.replace_saved_forecasts(days)

    if out_unit == "F":
        for it in days:
            it["min_temp"] = c_to_f(it["min_temp"])
            it["max_temp"] = c_to_f(it["max_temp"])

    result = {
        "city": city.get("name"),
        "timezone": offset,
        "unit": out_unit,
        "days": days,
    }
    await cache.aset(cache_key, json.dumps(result), CACHE_TTL)
    return JSONResponse(content=result, headers={"X-Cache": "MISS"})


@app.get("/forecast/saved")
async def get_saved_forecast():
    weather_type, current = await storage.load_initial_state()
    return {
        "weather_type": weather_type.value if weather_type else None,
        "current": current,
        "days": await storage.load_saved_forecasts(),
    }


class SavedDayIn(BaseModel):
    min_temp: int
    max_temp: int
    icon: IconCategory
    day: Optional[str] = None


@app.put("/forecast/saved/{day_date}")
async def upsert_saved_day(day_date: date, body: SavedDayIn):
    days = await storage.upsert_saved_forecast({
        "day": body.day or weekday_name(day_date),
        "date": day_date.isoformat(),
        "min_temp": body.min_temp,
        "max_temp": body.max_temp,
        "icon": body.icon.value,
    })
    return {"days": days}


@app.delete("/forecast/saved", status_code=204)
async def delete_saved_forecast():
    await storage.delete_saved_forecasts()


# ------------------------------------------------------------
# Favoritos
# ------------------------------------------------------------
class FavoriteIn(BaseModel):
    lat: float
    lon: float
    temp: int = 0
    weather_type: str = WeatherType.NONE.value
    name: Optional[str] = None


class MoveIn(BaseModel):
    from_index: int
    to_index: int


def _favorite_from(body: FavoriteIn) -> FavoriteLocation:
    return FavoriteLocation(
        lat=body.lat,
        lon=body.lon,
        temp=body.temp,
        weather_type=WeatherType.parse(body.weather_type),
        name=body.name,
    )


@app.get("/favorites")
async def list_favorites():
    return [f.to_dict() for f in await storage.list_favorites()]


@app.post("/favorites", status_code=201)
async def add_favorite(body: FavoriteIn):
    favorites = await storage.add_favorite(_favorite_from(body))
    return [f.to_dict() for f in favorites]


@app.delete("/favorites")
async def remove_favorite(lat: float = Query(...), lon: float = Query(...)):
    favorites = await storage.remove_favorite(lat, lon)
    return [f.to_dict() for f in favorites]


@app.post("/favorites/move")
async def move_favorite(body: MoveIn):
    try:
        favorites = await storage.move_favorite(body.from_index, body.to_index)
    except IndexError as e:
        raise HTTPException(400, str(e))
    return [f.to_dict() for f in favorites]


@app.get("/favorites/current")
async def get_current_favorite():
    current = await storage.get_current_favorite()
    return current.to_dict() if current else None


@app.put("/favorites/current")
async def set_current_favorite(body: Optional[FavoriteIn] = None):
    favorite = _favorite_from(body) if body else None
    await storage.set_current_favorite(favorite)
    return favorite.to_dict() if favorite else None


@app.get("/favorites/check")
async def check_favorite(
    lat: float = Query(...),
    lon: float = Query(...),
    tolerance: float = Query(0.0, ge=0),
):
    return {"is_favorite": await storage.is_favorite(lat, lon, tolerance)}
