from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

KELVIN_OFFSET = 273.15


class WeatherType(str, Enum):
    SUNNY = "SUNNY"
    CLOUDY = "CLOUDY"
    RAINY = "RAINY"
    NONE = "None"

    @classmethod
    def parse(cls, raw: Any) -> "WeatherType":
        # valores guardados desconocidos -> NONE
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


class IconCategory(str, Enum):
    CLEAR = "clear"
    PARTLYSUNNY = "partlysunny"
    RAIN = "rain"


def kelvin_to_celsius(kelvin: Optional[float]) -> Optional[int]:
    """Kelvin -> Celsius truncado hacia cero. None si no hay dato."""
    if kelvin is None or not math.isfinite(kelvin):
        return None
    return int(kelvin - KELVIN_OFFSET)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    # NaN/inf (json acepta 1e400 y NaN) cuentan como ausentes
    return f if math.isfinite(f) else None


def _section(item: dict, key: str) -> dict:
    value = item.get(key)
    return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class WeatherSample:
    epoch_seconds: Optional[int] = None
    temp_kelvin: Optional[float] = None
    temp_min_kelvin: Optional[float] = None
    temp_max_kelvin: Optional[float] = None
    min_celsius: Optional[int] = None
    max_celsius: Optional[int] = None
    condition_label: Optional[str] = None
    cloudiness_percent: Optional[int] = None
    probability_of_precipitation: Optional[float] = None
    rain_volume_last_3h: Optional[float] = None

    @property
    def temp_celsius(self) -> Optional[int]:
        return kelvin_to_celsius(self.temp_kelvin)

    @classmethod
    def from_openweather(cls, item: dict) -> "WeatherSample":
        """
        Construye una muestra desde un elemento de OpenWeatherMap
        (`/weather` o un elemento de `list` en `/forecast`).
        Cualquier campo ausente o mal formado queda a None.
        """
        main = _section(item, "main")
        rain = _section(item, "rain")
        clouds = _section(item, "clouds")

        weather = item.get("weather")
        first = weather[0] if isinstance(weather, list) and weather else {}
        label = first.get("main") if isinstance(first, dict) else None

        return cls(
            epoch_seconds=_as_int(item.get("dt")),
            temp_kelvin=_as_float(main.get("temp")),
            temp_min_kelvin=_as_float(main.get("temp_min")),
            temp_max_kelvin=_as_float(main.get("temp_max")),
            condition_label=label if isinstance(label, str) else None,
            cloudiness_percent=_as_int(clouds.get("all")),
            probability_of_precipitation=_as_float(item.get("pop")),
            rain_volume_last_3h=_as_float(rain.get("3h")),
        )


@dataclass(frozen=True)
class DailySummary:
    day: str
    date: date
    min_temp: int
    max_temp: int
    icon: IconCategory

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "date": self.date.isoformat(),
            "min_temp": self.min_temp,
            "max_temp": self.max_temp,
            "icon": self.icon.value,
        }


@dataclass
class FavoriteLocation:
    lat: float
    lon: float
    temp: int = 0
    weather_type: WeatherType = WeatherType.NONE
    name: Optional[str] = None
    id: str = field(default_factory=lambda: uuid4().hex)

    def to_dict(self) -> dict:
        out = asdict(self)
        out["weather_type"] = self.weather_type.value
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "FavoriteLocation":
        return cls(
            lat=float(data["lat"]),
            lon=float(data["lon"]),
            temp=int(data.get("temp", 0)),
            weather_type=WeatherType.parse(data.get("weather_type")),
            name=data.get("name"),
            id=data.get("id") or uuid4().hex,
        )
