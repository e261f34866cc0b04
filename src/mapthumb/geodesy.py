"""WGS-84 geodesy helpers.

ECEF to geodetic conversion, great-circle distance and spherical
midpoint/centroid math used by the view fitting and exercise readers.
All angles at the public interface are in degrees, distances in nautical
miles unless noted otherwise.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Tuple

from pyproj import Transformer

from . import config

# WGS-84 ellipsoid
WGS84_A = 6378137.0
WGS84_E2 = 6.69437999014e-3

EARTH_MEAN_RADIUS_KM = 6371.0088
KM_PER_NM = 1.852

# Geodetic (lon, lat, h) to geocentric ECEF
_transformer_to_ecef = Transformer.from_crs(
    "EPSG:4979", "EPSG:4978", always_xy=True
)


class GeodesyConvergenceError(ValueError):
    """Raised when the iterative geodetic latitude does not converge."""


@dataclass(frozen=True)
class GeoPoint:
    """Geographic position in degrees."""
    lon: float
    lat: float

    def __post_init__(self) -> None:
        if not (-180.0 <= self.lon <= 180.0) or not (-90.0 <= self.lat <= 90.0):
            raise ValueError(f"lon/lat out of range: ({self.lon}, {self.lat})")


@dataclass(frozen=True)
class EcefPosition:
    """Earth-centered, Earth-fixed position in meters on WGS-84."""
    x: float
    y: float
    z: float

    def to_geopoint(self) -> GeoPoint:
        lat, lon = ecef_to_geodetic(self.x, self.y, self.z)
        return GeoPoint(lon, lat)


def ecef_to_geodetic(x: float, y: float, z: float,
                     max_iter: int | None = None,
                     tol: float = 1e-12) -> Tuple[float, float]:
    """Convert WGS-84 ECEF coordinates to geodetic latitude/longitude.

    Longitude is exact; latitude is solved by fixed-point iteration starting
    from ``atan2(z, p * (1 - e2))``.

    Parameters
    ----------
    x, y, z : float
        ECEF coordinates in meters.
    max_iter : int, optional
        Iteration cap. Defaults to the ``max_geodetic_iterations`` setting.
    tol : float, optional
        Convergence threshold between successive iterates in radians.

    Returns
    -------
    tuple of float
        (lat, lon) in degrees.

    Raises
    ------
    GeodesyConvergenceError
        If the latitude has not converged after ``max_iter`` iterations.
    ValueError
        If any coordinate is not finite.
    """
    if not all(math.isfinite(v) for v in (x, y, z)):
        raise ValueError(f"non-finite ECEF position ({x}, {y}, {z})")
    if max_iter is None:
        max_iter = int(config.get("max_geodetic_iterations"))

    lon = math.atan2(y, x)
    p = math.hypot(x, y)
    lat = math.atan2(z, p * (1.0 - WGS84_E2))

    for _ in range(max_iter):
        lat_prev = lat
        sin_lat = math.sin(lat)
        n = WGS84_A / math.sqrt(1.0 - WGS84_E2 * sin_lat * sin_lat)
        lat = math.atan2(z + WGS84_E2 * n * sin_lat, p)
        if abs(lat - lat_prev) <= tol:
            return math.degrees(lat), math.degrees(lon)

    raise GeodesyConvergenceError(
        f"latitude did not converge after {max_iter} iterations "
        f"for ECEF ({x}, {y}, {z})"
    )


def geodetic_to_ecef(lat: float, lon: float, height: float = 0.0) -> EcefPosition:
    """Convert geodetic latitude/longitude/height to WGS-84 ECEF meters."""
    x, y, z = _transformer_to_ecef.transform(lon, lat, height)
    return EcefPosition(float(x), float(y), float(z))


def haversine_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in nautical miles on the mean Earth sphere."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2.0) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2.0) ** 2)
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_MEAN_RADIUS_KM * c / KM_PER_NM


def distance_nm(p1: GeoPoint, p2: GeoPoint) -> float:
    return haversine_nm(p1.lat, p1.lon, p2.lat, p2.lon)


def _unit_vector(point: GeoPoint) -> Tuple[float, float, float]:
    phi = math.radians(point.lat)
    lam = math.radians(point.lon)
    return (math.cos(phi) * math.cos(lam),
            math.cos(phi) * math.sin(lam),
            math.sin(phi))


def _from_vector(x: float, y: float, z: float) -> GeoPoint:
    hyp = math.hypot(x, y)
    return GeoPoint(math.degrees(math.atan2(y, x)),
                    math.degrees(math.atan2(z, hyp)))


def geographic_midpoint(p1: GeoPoint, p2: GeoPoint) -> GeoPoint:
    """Midpoint of two points from the average of their unit vectors."""
    x1, y1, z1 = _unit_vector(p1)
    x2, y2, z2 = _unit_vector(p2)
    return _from_vector((x1 + x2) / 2.0, (y1 + y2) / 2.0, (z1 + z2) / 2.0)


def centroid_via_unit_vectors(points: Iterable[GeoPoint]) -> GeoPoint:
    """Spherical centroid of ``points`` by averaging unit vectors.

    A single point is returned unchanged and an empty input gives (0, 0).
    """
    points = list(points)
    if not points:
        return GeoPoint(0.0, 0.0)
    if len(points) == 1:
        return points[0]

    cx = cy = cz = 0.0
    for point in points:
        x, y, z = _unit_vector(point)
        cx += x
        cy += y
        cz += z
    n = len(points)
    return _from_vector(cx / n, cy / n, cz / n)
