"""Geographic view windows and the equirectangular canvas projection."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .geodesy import GeoPoint

NM_PER_DEGREE = 60.0


@dataclass(frozen=True)
class ViewWindow:
    """Longitude/latitude box shown on a tile.

    Edges may lie outside [-180, 180] / [-90, 90] when derived from a center
    and radius; the projection is a plain linear map so that is harmless.
    """
    min_lon: float
    max_lon: float
    min_lat: float
    max_lat: float

    def __post_init__(self) -> None:
        if not (self.min_lon < self.max_lon and self.min_lat < self.max_lat):
            raise ValueError(
                f"degenerate window lon[{self.min_lon}, {self.max_lon}] "
                f"lat[{self.min_lat}, {self.max_lat}]"
            )

    @classmethod
    def from_center(cls, center: GeoPoint, radius_nm: float,
                    pad_ratio: float = 1.0) -> "ViewWindow":
        """Square window of ``radius_nm`` around ``center`` (1 deg = 60 nm)."""
        if radius_nm <= 0:
            raise ValueError(f"radius must be > 0, got {radius_nm}")
        if pad_ratio <= 0:
            raise ValueError(f"pad_ratio must be > 0, got {pad_ratio}")
        deg = (radius_nm / NM_PER_DEGREE) * pad_ratio
        return cls(center.lon - deg, center.lon + deg,
                   center.lat - deg, center.lat + deg)

    @classmethod
    def world(cls) -> "ViewWindow":
        return cls(-180.0, 180.0, -85.0, 85.0)

    @property
    def width(self) -> float:
        return self.max_lon - self.min_lon

    @property
    def height(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def center(self) -> Tuple[float, float]:
        """(lon, lat) of the window center; may lie off the globe."""
        return (0.5 * (self.min_lon + self.max_lon),
                0.5 * (self.min_lat + self.max_lat))


def to_canvas(point: GeoPoint, window: ViewWindow,
              width: int, height: int) -> Tuple[float, float]:
    """Project a point to pixel coordinates (origin top-left)."""
    x = (point.lon - window.min_lon) / window.width * width
    y = (1.0 - (point.lat - window.min_lat) / window.height) * height
    return x, y


def to_canvas_array(lons: np.ndarray, lats: np.ndarray, window: ViewWindow,
                    width: int, height: int) -> np.ndarray:
    """Vectorised ``to_canvas``; returns an (N, 2) array of pixel positions."""
    x = (np.asarray(lons, dtype=float) - window.min_lon) / window.width * width
    y = (1.0 - (np.asarray(lats, dtype=float) - window.min_lat) / window.height) * height
    return np.column_stack((x, y))


def clamp_to_window(lons: np.ndarray, lats: np.ndarray,
                    window: ViewWindow) -> Tuple[np.ndarray, np.ndarray]:
    """Clip vertex coordinates into the window bounds.

    Coastline rings are clamped rather than culled so land stays continuous
    at the tile edge.
    """
    return (np.clip(lons, window.min_lon, window.max_lon),
            np.clip(lats, window.min_lat, window.max_lat))


def inside_window(point: GeoPoint, window: ViewWindow) -> bool:
    """Inclusive bounds test on both axes."""
    return (window.min_lon <= point.lon <= window.max_lon and
            window.min_lat <= point.lat <= window.max_lat)


@dataclass(frozen=True)
class MarkerSet:
    """Markers drawn on a tile, bottom layer first.

    ``others`` (contacts) are drawn first, then ``centers``, then
    ``launches`` on top.
    """
    others: Tuple[GeoPoint, ...] = ()
    centers: Tuple[GeoPoint, ...] = ()
    launches: Tuple[GeoPoint, ...] = ()

    def __post_init__(self) -> None:
        for name in ("others", "centers", "launches"):
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))

    @property
    def is_empty(self) -> bool:
        return not (self.others or self.centers or self.launches)

    @property
    def has_platforms(self) -> bool:
        return bool(self.others or self.launches)

    def layers(self):
        """(layer name, points) pairs in draw order."""
        return (("other", self.others),
                ("center", self.centers),
                ("launch", self.launches))
