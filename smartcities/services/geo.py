# smartcities/services/geo.py
"""
Calculs de proximité : distance haversine, boîte englobante, garde de rayon.

Unités explicites à chaque appel : kilomètres pour les listes/classements,
mètres pour la garde de proximité.
"""
from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt
from typing import Optional

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = 6_371_000.0

# Approximation "terre plate" : 1° de latitude ≈ 111 km
KM_PER_DEGREE = 111.0


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    # None = pas de contrainte en longitude (pôles, antiméridien)
    min_lng: Optional[float] = None
    max_lng: Optional[float] = None

    def contains(self, point: Coordinate) -> bool:
        if not (self.min_lat <= point.lat <= self.max_lat):
            return False
        if self.min_lng is None or self.max_lng is None:
            return True
        return self.min_lng <= point.lng <= self.max_lng


def _haversine(a: Coordinate, b: Coordinate, radius: float) -> float:
    lat1 = radians(a.lat)
    lat2 = radians(b.lat)
    dlat = lat2 - lat1
    dlng = radians(b.lng - a.lng)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    # dérive flottante près des antipodes : h peut dépasser 1
    h = min(1.0, max(0.0, h))
    return radius * 2 * atan2(sqrt(h), sqrt(1 - h))


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Distance orthodromique en kilomètres."""
    return _haversine(a, b, EARTH_RADIUS_KM)


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Distance orthodromique en mètres."""
    return _haversine(a, b, EARTH_RADIUS_M)


def bounding_box(center: Optional[Coordinate], radius_km: Optional[float]) -> Optional[BoundingBox]:
    """
    Boîte lat/lng autour de `center` pour pré-filtrer côté base.

    Peut contenir des faux positifs (coins de la boîte) : l'appelant doit
    toujours refiltrer avec la distance exacte. Renvoie None si pas de centre
    ou rayon nul : pas de pré-filtre.
    """
    if center is None or not radius_km or radius_km <= 0:
        return None

    dlat = radius_km / KM_PER_DEGREE
    min_lat = max(-90.0, center.lat - dlat)
    max_lat = min(90.0, center.lat + dlat)

    # 1° de longitude rétrécit avec cos(lat) ; jamais plus étroit que radius/111
    cos_lat = cos(radians(center.lat))
    if cos_lat <= 1e-6:
        return BoundingBox(min_lat, max_lat)
    dlng = radius_km / (KM_PER_DEGREE * cos_lat)
    min_lng = center.lng - dlng
    max_lng = center.lng + dlng
    if min_lng < -180.0 or max_lng > 180.0:
        return BoundingBox(min_lat, max_lat)
    return BoundingBox(min_lat, max_lat, min_lng, max_lng)


def is_within_radius(actor: Optional[Coordinate], target: Coordinate, radius_m: float) -> bool:
    if actor is None:
        return False
    return haversine_m(actor, target) <= radius_m
