from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import asdict, dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

BROADER_SEARCH_TERMS = ("hospital", "clinic", "medical center")
RADIUS_WIDENING_FACTOR = 2.0
RADIUS_ATTEMPTS = 3

_MEDICAL_TYPES = {
    "clinic",
    "hospital",
    "doctors",
    "dentist",
    "pharmacy",
    "healthcare",
    "medical_laboratory",
    "laboratory",
}

LOCATION_UNAVAILABLE_NOTICE = "Unable to access your location. Showing sample providers instead."
NO_RESULTS_NOTICE = "No healthcare facilities were found nearby. Showing sample providers instead."
SERVICE_UNAVAILABLE_NOTICE = "The map service is unavailable right now. Showing sample providers instead."


def _safe_float(value: Any) -> float | None:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    radius_km = 6371.0
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return radius_km * c


@dataclass(frozen=True)
class Origin:
    lat: float
    lng: float


@dataclass
class Place:
    id: str
    name: str
    address: str
    lat: float
    lng: float
    category: str
    distance_km: float | None = None


@dataclass
class Provider:
    id: str
    name: str
    specialty: str
    address: str
    distance: str
    rating: float | None = None
    lat: float | None = None
    lng: float | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_place(cls, place: Place) -> "Provider":
        distance = f"{place.distance_km:.2f} km" if place.distance_km is not None else "unknown"
        return cls(
            id=place.id,
            name=place.name,
            specialty=place.category.title(),
            address=place.address,
            distance=distance,
            lat=place.lat,
            lng=place.lng,
        )


@dataclass
class DiscoveryResult:
    providers: list[Provider] = field(default_factory=list)
    using_live_data: bool = False
    radius_km: float | None = None
    notice: str | None = None
    fallback_reason: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "providers": [provider.as_dict() for provider in self.providers],
            "using_live_data": self.using_live_data,
            "radius_km": self.radius_km,
            "notice": self.notice,
            "fallback_reason": self.fallback_reason,
        }


FALLBACK_PROVIDERS = (
    Provider("sample-1", "Dr. Sarah Johnson", "General Physician", "123 Medical Center, Downtown", "0.7 miles", 4.8),
    Provider("sample-2", "Dr. Michael Chen", "Cardiologist", "456 Health Avenue, Westside", "1.2 miles", 4.9),
    Provider("sample-3", "Dr. Emily Williams", "Pediatrician", "789 Care Boulevard, Northside", "1.5 miles", 4.7),
)


class ProviderDiscovery:
    def __init__(self) -> None:
        self.disable_external = os.getenv("ASSISTANT_DISABLE_EXTERNAL_WEB", "false").lower() == "true"
        self.timeout = float(os.getenv("ASSISTANT_WEB_TIMEOUT_SECONDS", "5.0"))
        self.search_url = os.getenv("ASSISTANT_GEOCODER_URL", "https://nominatim.openstreetmap.org/search")

    def find_providers(
        self,
        origin: Origin | None,
        *,
        category: str = "hospital",
        radius_km: float = 5.0,
    ) -> DiscoveryResult:
        if origin is None:
            return self._fallback_result(reason="location_unavailable", notice=LOCATION_UNAVAILABLE_NOTICE)
        if self.disable_external:
            return self._fallback_result(reason="external_web_disabled", notice=None)

        radius = max(0.5, radius_km)
        try:
            for _ in range(RADIUS_ATTEMPTS):
                places = self.search_nearby(category, origin, radius)
                if places:
                    return self._live_result(places, radius)
                logger.info("no %s results within %.1f km, widening search", category, radius)
                radius *= RADIUS_WIDENING_FACTOR

            radius /= RADIUS_WIDENING_FACTOR
            merged: dict[str, Place] = {}
            for term in BROADER_SEARCH_TERMS:
                for place in self.search_nearby(term, origin, radius):
                    merged.setdefault(place.id, place)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("provider discovery failed: %s", exc)
            return self._fallback_result(reason="service_error", notice=SERVICE_UNAVAILABLE_NOTICE)

        if merged:
            return self._live_result(list(merged.values()), radius)
        return self._fallback_result(reason="no_live_results", notice=NO_RESULTS_NOTICE)

    def search_nearby(self, category: str, origin: Origin, radius_km: float) -> list[Place]:
        lat_delta = radius_km / 111.0
        lng_delta = radius_km / max(111.0 * math.cos(math.radians(origin.lat)), 1e-6)
        response = httpx.get(
            self.search_url,
            params={
                "q": category,
                "format": "jsonv2",
                "limit": 15,
                "bounded": 1,
                "viewbox": ",".join(
                    f"{value:.6f}"
                    for value in (
                        origin.lng - lng_delta,
                        origin.lat + lat_delta,
                        origin.lng + lng_delta,
                        origin.lat - lat_delta,
                    )
                ),
            },
            headers={"User-Agent": "health-assistant/1.0"},
            timeout=self.timeout,
        )
        response.raise_for_status()

        rows = response.json() if response.content else []
        places: list[Place] = []
        for row in rows if isinstance(rows, list) else []:
            if not isinstance(row, dict):
                continue
            lat = _safe_float(row.get("lat"))
            lng = _safe_float(row.get("lon"))
            if lat is None or lng is None:
                continue
            row_type = str(row.get("type") or "")
            if row_type and row_type not in _MEDICAL_TYPES and row.get("category") != "healthcare":
                continue
            display_name = _normalize_whitespace(str(row.get("display_name") or ""))
            name = _normalize_whitespace(str(row.get("name") or "")) or display_name.split(",")[0]
            distance = haversine_km(origin.lat, origin.lng, lat, lng)
            if distance > radius_km:
                continue
            places.append(
                Place(
                    id=str(row.get("place_id") or row.get("osm_id") or f"{lat:.5f},{lng:.5f}"),
                    name=name or "Healthcare facility",
                    address=display_name,
                    lat=lat,
                    lng=lng,
                    category=row_type or category,
                    distance_km=round(distance, 2),
                )
            )
        return places

    def _live_result(self, places: list[Place], radius_km: float) -> DiscoveryResult:
        places.sort(key=lambda place: place.distance_km if place.distance_km is not None else math.inf)
        return DiscoveryResult(
            providers=[Provider.from_place(place) for place in places],
            using_live_data=True,
            radius_km=radius_km,
        )

    def _fallback_result(self, *, reason: str, notice: str | None) -> DiscoveryResult:
        logger.info("provider discovery fallback (%s)", reason)
        return DiscoveryResult(
            providers=[Provider(**asdict(provider)) for provider in FALLBACK_PROVIDERS],
            using_live_data=False,
            notice=notice,
            fallback_reason=reason,
        )
