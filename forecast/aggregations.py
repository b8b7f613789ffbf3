import calendar
import logging
import math
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from .models import (
    KELVIN_OFFSET,
    DailySummary,
    IconCategory,
    WeatherSample,
    WeatherType,
)

logger = logging.getLogger(__name__)

FORECAST_DAYS = 5
DEFAULT_CONDITION = "clear"

_EPOCH = datetime(1970, 1, 1)


def classify_sample(sample: WeatherSample) -> WeatherType:
    """
    Clasificación de una sola muestra (prioridad, gana la primera):
    - lluvia en la etiqueta, volumen de lluvia > 0 o pop >= 0.5 -> RAINY
    - nubes en la etiqueta o nubosidad > 50 -> CLOUDY
    - resto -> SUNNY
    Los campos ausentes cuentan como vacío/0.
    """
    label = (sample.condition_label or "").lower()
    cloudiness = sample.cloudiness_percent or 0
    pop = sample.probability_of_precipitation or 0.0
    rain = sample.rain_volume_last_3h or 0.0

    if "rain" in label or rain > 0 or pop >= 0.5:
        return WeatherType.RAINY
    if "cloud" in label or cloudiness > 50:
        return WeatherType.CLOUDY
    return WeatherType.SUNNY


def icon_for_condition(condition: str) -> IconCategory:
    # mapeo del icono diario; distinto a classify_sample
    condition = condition.lower()
    if "rain" in condition:
        return IconCategory.RAIN
    if "cloud" in condition:
        return IconCategory.PARTLYSUNNY
    return IconCategory.CLEAR


def weekday_name(day: date, abbreviated: bool = False) -> str:
    """Nombre del día de la semana según el locale LC_TIME del proceso."""
    names = calendar.day_abbr if abbreviated else calendar.day_name
    return names[day.weekday()]


def local_date(epoch_seconds: int, utc_offset_seconds: int) -> date:
    return (_EPOCH + timedelta(seconds=epoch_seconds + utc_offset_seconds)).date()


def _first_present(sample: WeatherSample, lookups: Iterable[Callable[[WeatherSample], Optional[float]]]) -> Optional[float]:
    for lookup in lookups:
        value = lookup(sample)
        # NaN/inf se tratan como ausentes y se pasa al siguiente
        if value is not None and math.isfinite(value):
            return value
    return None


# Cadena ordenada: valor ya en Celsius -> derivado de Kelvin -> (sin valor)
_MIN_LOOKUPS = (
    lambda s: s.min_celsius,
    lambda s: None if s.temp_min_kelvin is None else s.temp_min_kelvin - KELVIN_OFFSET,
)
_MAX_LOOKUPS = (
    lambda s: s.max_celsius,
    lambda s: None if s.temp_max_kelvin is None else s.temp_max_kelvin - KELVIN_OFFSET,
)


def dominant_condition(samples: list[WeatherSample]) -> str:
    """
    Etiqueta más frecuente (en minúsculas). Empates: gana la primera vista
    en orden cronológico. Sin etiquetas utilizables -> "clear".
    """
    ordered = sorted(samples, key=lambda s: s.epoch_seconds or 0)
    labels = [
        s.condition_label.strip().lower()
        for s in ordered
        if s.condition_label and s.condition_label.strip()
    ]
    if not labels:
        return DEFAULT_CONDITION
    counts = Counter(labels)
    # max() devuelve el primer máximo en orden de inserción (cronológico)
    return max(counts, key=counts.get)


def summarize_day(day: date, samples: list[WeatherSample]) -> DailySummary:
    mins = [v for v in (_first_present(s, _MIN_LOOKUPS) for s in samples) if v is not None]
    maxs = [v for v in (_first_present(s, _MAX_LOOKUPS) for s in samples) if v is not None]

    return DailySummary(
        day=weekday_name(day),
        date=day,
        min_temp=int(min(mins)) if mins else 0,
        max_temp=int(max(maxs)) if maxs else 0,
        icon=icon_for_condition(dominant_condition(samples)),
    )


def aggregate_next_days(
    samples: Iterable[WeatherSample],
    utc_offset_seconds: int,
    now: Optional[datetime] = None,
    days: int = FORECAST_DAYS,
) -> list[DailySummary]:
    """
    Agrupa muestras de 3h en resúmenes diarios en la zona horaria local.

    - descarta muestras sin `dt` o anteriores a "ahora" (local)
    - agrupa por fecha local (epoch + offset)
    - min/max, condición dominante e icono por día
    - orden ascendente por fecha y se quedan los ÚLTIMOS `days` días
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now_epoch = now.timestamp()

    groups: dict[date, list[WeatherSample]] = {}
    dropped = 0
    for s in samples:
        # local >= local_now  <=>  dt >= now (mismo offset en ambos lados)
        if s.epoch_seconds is None or s.epoch_seconds < now_epoch:
            dropped += 1
            continue
        try:
            day = local_date(s.epoch_seconds, utc_offset_seconds)
        except (OverflowError, ValueError):
            # dt fuera del rango de fechas representable
            dropped += 1
            continue
        groups.setdefault(day, []).append(s)

    if dropped:
        logger.debug("aggregate_next_days: %d samples discarded (no dt or past)", dropped)

    out = [summarize_day(d, vals) for d, vals in sorted(groups.items(), key=lambda kv: kv[0])]
    if days <= 0:
        return []
    return out[-days:]


def samples_from_forecast(payload: dict) -> list[WeatherSample]:
    items = payload.get("list") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        return []
    return [WeatherSample.from_openweather(it) for it in items if isinstance(it, dict)]
