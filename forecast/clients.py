import os
import logging

import httpx
from fastapi import HTTPException

logger = logging.getLogger(__name__)

OPENWEATHER_BASE_URL = os.getenv("OPENWEATHER_BASE_URL", "https://api.openweathermap.org/data/2.5")
OPENWEATHER_API_KEY = os.getenv("OPENWEATHER_API_KEY", "")
PER_REQ_TIMEOUT = float(os.getenv("PER_REQ_TIMEOUT", "10"))


async def _get(path: str, lat: int, lon: int) -> dict:
    """
    Una sola petición (sin reintentos):
    - 200 -> devolver JSON (objeto; otra cosa -> 503)
    - 401 -> 401 (API key inválida)
    - otros 4xx -> propagar el mismo 4xx
    - 5xx/errores de red -> 503
    """
    if not OPENWEATHER_API_KEY:
        raise HTTPException(status_code=500, detail="OPENWEATHER_API_KEY missing")

    try:
        async with httpx.AsyncClient(timeout=PER_REQ_TIMEOUT) as client:
            r = await client.get(
                f"{OPENWEATHER_BASE_URL}{path}",
                params={"lat": lat, "lon": lon, "appid": OPENWEATHER_API_KEY},
            )
    except httpx.RequestError as e:
        logger.warning("OpenWeather %s unreachable: %s", path, e)
        raise HTTPException(status_code=503, detail="You need a network connection.")

    if r.status_code == 200:
        try:
            data = r.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            # el proveedor siempre responde un objeto JSON
            logger.warning("OpenWeather %s returned a non-object body", path)
            raise HTTPException(status_code=503, detail="OpenWeather devolvió una respuesta inválida")
        return data

    logger.warning("OpenWeather %s -> %s: %s", path, r.status_code, r.text)
    if r.status_code == 401:
        raise HTTPException(status_code=401, detail="You are unauthorized to access this data.")
    if 400 <= r.status_code < 500:
        raise HTTPException(status_code=r.status_code, detail=r.text)
    raise HTTPException(status_code=503, detail=f"OpenWeather no disponible: {r.status_code}")


async def fetch_current_weather(lat: int, lon: int) -> dict:
    return await _get("/weather", lat, lon)


async def fetch_forecast(lat: int, lon: int) -> dict:
    """Previsión 5 días / 3 horas (`list` + `city.timezone`)."""
    return await _get("/forecast", lat, lon)
