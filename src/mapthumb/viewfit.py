"""View fitting for point sets.

Three related fits are provided:

- ``auto_view``: farthest-pair fit over every marker, used when all platforms
  must be visible.
- ``tight_cluster_view``: centroid fit with a capped radius, used for a
  close-in view of clustered contacts.
- ``adaptive_cluster_zoom``: contacts-first view that widens toward the
  auto-fit whenever the tight view would clip a launch platform.
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .geodesy import (GeoPoint, centroid_via_unit_vectors, distance_nm,
                      geographic_midpoint)
from .utils import clamp
from .viewport import ViewWindow

WORLD_CENTER = GeoPoint(0.0, 0.0)
DEFAULT_AUTO_RADIUS_NM = 600.0
DEFAULT_TIGHT_RADIUS_NM = 60.0
WIDE_VIEW_RADIUS_NM = 1200.0
# Tight view is kept while the needed radius stays within this factor of it
TIGHT_TOLERANCE = 1.05


@dataclass(frozen=True)
class ViewFit:
    """Center and radius (nautical miles) of a fitted view."""
    center: GeoPoint
    radius_nm: float

    def to_window(self, pad_ratio: float = 1.0) -> ViewWindow:
        return ViewWindow.from_center(self.center, self.radius_nm, pad_ratio)


def auto_view(point_sets: Iterable[Optional[Iterable[GeoPoint]]],
              min_radius_nm: float = 60.0,
              padding_nm: float = 30.0) -> ViewFit:
    """Fit a view that contains every point of every set.

    The center is the midpoint of the farthest pair; the radius is half the
    pair distance plus padding, widened afterwards for any point that would
    otherwise fall closer than ``padding_nm`` to the edge.

    Parameters
    ----------
    point_sets : iterable of iterables of GeoPoint
        Point collections to combine; ``None`` entries are skipped.
    min_radius_nm : float, optional
        Lower bound for the radius, by default 60.
    padding_nm : float, optional
        Margin kept around every point, by default 30.
    """
    pts = [p for ps in point_sets if ps is not None for p in ps]

    if not pts:
        return ViewFit(WORLD_CENTER, max(min_radius_nm, DEFAULT_AUTO_RADIUS_NM))
    if len(pts) == 1:
        return ViewFit(pts[0], min_radius_nm)

    max_nm = 0.0
    i_max, j_max = 0, 1
    for i, j in itertools.combinations(range(len(pts)), 2):
        d = distance_nm(pts[i], pts[j])
        if d > max_nm:
            max_nm = d
            i_max, j_max = i, j

    mid = geographic_midpoint(pts[i_max], pts[j_max])
    radius = max(min_radius_nm, max_nm / 2.0 + padding_nm)
    for p in pts:
        d = distance_nm(mid, p)
        if d + padding_nm > radius:
            radius = d + padding_nm

    return ViewFit(mid, radius)


def tight_cluster_view(points: Optional[Sequence[GeoPoint]],
                       min_radius_nm: float,
                       padding_nm: float,
                       max_radius_nm: float) -> ViewFit:
    """Centroid fit clamped to ``[min_radius_nm, max_radius_nm]``.

    Points farther than ``max_radius_nm`` from the centroid are allowed to
    fall out of frame.
    """
    points = list(points or [])
    if not points:
        return ViewFit(WORLD_CENTER, max(min_radius_nm, DEFAULT_TIGHT_RADIUS_NM))
    if len(points) == 1:
        return ViewFit(points[0], min_radius_nm)

    center = centroid_via_unit_vectors(points)
    radius = max(distance_nm(center, p) for p in points) + padding_nm
    radius = clamp(radius, min_radius_nm, max_radius_nm)
    return ViewFit(center, radius)


def adaptive_cluster_fit(contacts: Optional[Sequence[GeoPoint]],
                         launches: Optional[Sequence[GeoPoint]],
                         center_marker: Optional[GeoPoint] = None,
                         min_contacts_radius_nm: float = 8.0,
                         padding_nm: float = 8.0,
                         max_contacts_radius_nm: float = 120.0) -> ViewFit:
    """Contacts-first fit that never clips a launch platform.

    Without any platform the result is a wide view around (0, 0); the
    ``center_marker`` is only drawn in that view, it does not move it.
    """
    contacts = list(contacts or [])
    launches = list(launches or [])

    if not contacts and not launches:
        return ViewFit(WORLD_CENTER, WIDE_VIEW_RADIUS_NM)

    if not contacts:
        return auto_view([launches], 60.0, 30.0)

    tight = tight_cluster_view(contacts, min_contacts_radius_nm, padding_nm,
                               max_contacts_radius_nm)
    auto_all = auto_view([launches, contacts], 60.0, 30.0)

    max_from_tight = max(distance_nm(tight.center, p)
                         for p in itertools.chain(contacts, launches))
    needed = max_from_tight + padding_nm

    if needed <= tight.radius_nm * TIGHT_TOLERANCE:
        return tight

    # Widen to include everything, but never beyond the overall auto-fit
    widened = max(needed, min_contacts_radius_nm)
    widened = min(widened, max(max_contacts_radius_nm, auto_all.radius_nm))
    widened = min(widened, auto_all.radius_nm)
    return ViewFit(auto_all.center, widened)


def adaptive_cluster_zoom(contacts: Optional[Sequence[GeoPoint]],
                          launches: Optional[Sequence[GeoPoint]],
                          center_marker: Optional[GeoPoint] = None,
                          min_contacts_radius_nm: float = 8.0,
                          padding_nm: float = 8.0,
                          max_contacts_radius_nm: float = 120.0,
                          pad_ratio: float = 1.10) -> ViewWindow:
    """Window for ``adaptive_cluster_fit`` expanded by ``pad_ratio``."""
    fit = adaptive_cluster_fit(contacts, launches, center_marker,
                               min_contacts_radius_nm, padding_nm,
                               max_contacts_radius_nm)
    return fit.to_window(pad_ratio)


def compute_auto_view(points: Iterable[GeoPoint],
                      min_radius_nm: float = 60.0,
                      padding_nm: float = 30.0,
                      pad_ratio: float = 1.0) -> ViewWindow:
    """Window that fits every point in ``points``."""
    return auto_view([points], min_radius_nm, padding_nm).to_window(pad_ratio)
