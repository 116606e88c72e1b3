"""Weather document, location and cache snapshot models.

Field names on the wire follow weatherapi.com (``temp_c``, ``feelslike_c``,
``forecast.forecastday`` ...). ``from_api`` and ``to_api`` map between the
provider's JSON objects and these frozen dataclasses so that a cached payload
deserializes back to an equal document.
"""

import json
from dataclasses import dataclass

from skycast.models.common import EpochMillis, format_coordinates

# Raised by from_api/from_json on a payload that does not match the model.
PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


@dataclass(frozen=True)
class Condition:
    text: str
    icon: str
    code: int

    @classmethod
    def from_api(cls, raw: dict) -> "Condition":
        return cls(text=raw["text"], icon=raw["icon"], code=int(raw["code"]))

    def to_api(self) -> dict:
        return {"text": self.text, "icon": self.icon, "code": self.code}


@dataclass(frozen=True)
class Location:
    name: str
    region: str
    country: str
    lat: float
    lon: float
    local_time: str

    @classmethod
    def from_api(cls, raw: dict) -> "Location":
        return cls(
            name=raw["name"],
            region=raw.get("region", ""),
            country=raw.get("country", ""),
            lat=float(raw["lat"]),
            lon=float(raw["lon"]),
            local_time=raw.get("localtime", ""),
        )

    def to_api(self) -> dict:
        return {
            "name": self.name,
            "region": self.region,
            "country": self.country,
            "lat": self.lat,
            "lon": self.lon,
            "localtime": self.local_time,
        }


@dataclass(frozen=True)
class Current:
    temp_c: float
    temp_f: float
    condition: Condition
    wind_kph: float
    wind_dir: str
    humidity: int
    feels_like_c: float

    @classmethod
    def from_api(cls, raw: dict) -> "Current":
        return cls(
            temp_c=float(raw["temp_c"]),
            temp_f=float(raw["temp_f"]),
            condition=Condition.from_api(raw["condition"]),
            wind_kph=float(raw["wind_kph"]),
            wind_dir=raw["wind_dir"],
            humidity=int(raw["humidity"]),
            feels_like_c=float(raw["feelslike_c"]),
        )

    def to_api(self) -> dict:
        return {
            "temp_c": self.temp_c,
            "temp_f": self.temp_f,
            "condition": self.condition.to_api(),
            "wind_kph": self.wind_kph,
            "wind_dir": self.wind_dir,
            "humidity": self.humidity,
            "feelslike_c": self.feels_like_c,
        }


@dataclass(frozen=True)
class Day:
    max_temp_c: float
    min_temp_c: float
    condition: Condition
    chance_of_rain: int

    @classmethod
    def from_api(cls, raw: dict) -> "Day":
        return cls(
            max_temp_c=float(raw["maxtemp_c"]),
            min_temp_c=float(raw["mintemp_c"]),
            condition=Condition.from_api(raw["condition"]),
            chance_of_rain=int(raw.get("daily_chance_of_rain", 0)),
        )

    def to_api(self) -> dict:
        return {
            "maxtemp_c": self.max_temp_c,
            "mintemp_c": self.min_temp_c,
            "condition": self.condition.to_api(),
            "daily_chance_of_rain": self.chance_of_rain,
        }


@dataclass(frozen=True)
class Astro:
    sunrise: str
    sunset: str


@dataclass(frozen=True)
class Hour:
    time: str
    temp_c: float
    condition: Condition

    @classmethod
    def from_api(cls, raw: dict) -> "Hour":
        return cls(
            time=raw["time"],
            temp_c=float(raw["temp_c"]),
            condition=Condition.from_api(raw["condition"]),
        )

    def to_api(self) -> dict:
        return {
            "time": self.time,
            "temp_c": self.temp_c,
            "condition": self.condition.to_api(),
        }


@dataclass(frozen=True)
class ForecastDay:
    date: str  # YYYY-MM-DD
    day: Day
    astro: Astro
    hour: tuple[Hour, ...]

    @classmethod
    def from_api(cls, raw: dict) -> "ForecastDay":
        astro = raw.get("astro", {})
        return cls(
            date=raw["date"],
            day=Day.from_api(raw["day"]),
            astro=Astro(
                sunrise=astro.get("sunrise", ""), sunset=astro.get("sunset", "")
            ),
            hour=tuple(Hour.from_api(h) for h in raw.get("hour", [])),
        )

    def to_api(self) -> dict:
        return {
            "date": self.date,
            "day": self.day.to_api(),
            "astro": {"sunrise": self.astro.sunrise, "sunset": self.astro.sunset},
            "hour": [h.to_api() for h in self.hour],
        }


@dataclass(frozen=True)
class WeatherDocument:
    location: Location
    current: Current
    forecast: tuple[ForecastDay, ...]

    @classmethod
    def from_api(cls, raw: dict) -> "WeatherDocument":
        """Build a document from a forecast.json or current.json response.

        current.json carries no ``forecast`` block; the forecast is then empty.
        """
        days = raw.get("forecast", {}).get("forecastday", [])
        return cls(
            location=Location.from_api(raw["location"]),
            current=Current.from_api(raw["current"]),
            forecast=tuple(ForecastDay.from_api(d) for d in days),
        )

    def to_api(self) -> dict:
        return {
            "location": self.location.to_api(),
            "current": self.current.to_api(),
            "forecast": {"forecastday": [d.to_api() for d in self.forecast]},
        }

    @classmethod
    def from_json(cls, payload: str) -> "WeatherDocument":
        return cls.from_api(json.loads(payload))

    def to_json(self) -> str:
        return json.dumps(self.to_api(), separators=(",", ":"))


@dataclass(frozen=True)
class LocationSuggestion:
    id: int
    name: str
    region: str
    country: str
    lat: float
    lon: float

    @classmethod
    def from_api(cls, raw: dict) -> "LocationSuggestion":
        return cls(
            id=int(raw["id"]),
            name=raw["name"],
            region=raw.get("region", ""),
            country=raw.get("country", ""),
            lat=float(raw["lat"]),
            lon=float(raw["lon"]),
        )

    @property
    def query(self) -> str:
        return format_coordinates(self.lat, self.lon)


@dataclass(frozen=True)
class LocationFix:
    latitude: float
    longitude: float
    timestamp_millis: EpochMillis = 0

    @property
    def query(self) -> str:
        return format_coordinates(self.latitude, self.longitude)


@dataclass(frozen=True)
class WeatherSnapshot:
    location_key: str
    fetched_at_epoch_millis: EpochMillis
    payload: str  # WeatherDocument JSON
    is_current_location: bool = False

    @classmethod
    def from_document(
        cls,
        document: WeatherDocument,
        fetched_at_epoch_millis: EpochMillis,
        is_current_location: bool,
    ) -> "WeatherSnapshot":
        return cls(
            location_key=document.location.name,
            fetched_at_epoch_millis=fetched_at_epoch_millis,
            payload=document.to_json(),
            is_current_location=is_current_location,
        )

    def document(self) -> WeatherDocument:
        return WeatherDocument.from_json(self.payload)
