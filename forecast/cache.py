import os
import time
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "").strip()

# ---- Fallback en memoria (TTL opcional) ----
_mem_store: dict[str, tuple[Optional[float], Any]] = {}

def _mem_get(key: str) -> Optional[Any]:
    item = _mem_store.get(key)
    if not item:
        return None
    exp, data = item
    if exp is not None and exp < time.time():
        _mem_store.pop(key, None)
        return None
    return data

def _mem_set(key: str, data: Any, ttl_seconds: Optional[int]) -> None:
    exp = time.time() + ttl_seconds if ttl_seconds else None
    _mem_store[key] = (exp, data)


# ---- Redis asíncrono (si REDIS_URL está configurado) ----
_redis = None

async def _get_redis():
    global _redis
    if _redis is not None:
        return _redis
    if not REDIS_URL:
        return None
    try:
        from redis import asyncio as aioredis
        _redis = aioredis.from_url(REDIS_URL, encoding="utf-8", decode_responses=True)
        # probamos conexión
        await _redis.ping()
        return _redis
    except Exception as e:
        logger.warning("Redis no disponible (%s), usando memoria", e)
        _redis = None
        return None


# ---- API pública asíncrona ----
async def aget(key: str) -> Optional[Any]:
    """
    Obtiene desde Redis si está disponible; si no, desde memoria.
    Los valores se guardan como string JSON; el caller decide cómo parsear.
    """
    r = await _get_redis()
    if r:
        return await r.get(key)
    return _mem_get(key)


async def aset(key: str, data: Any, ttl_seconds: Optional[int] = None) -> None:
    """
    Guarda en Redis (con EX si hay TTL) o en memoria.
    Sin TTL el valor no expira (favoritos, estado guardado).
    """
    r = await _get_redis()
    if r:
        await r.set(key, data, ex=ttl_seconds or None)
        return
    _mem_set(key, data, ttl_seconds)


async def adelete(key: str) -> None:
    r = await _get_redis()
    if r:
        await r.delete(key)
        return
    _mem_store.pop(key, None)
