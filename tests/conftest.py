"""Shared pytest fixtures for mapthumb tests."""

import tempfile
from pathlib import Path

import pytest
import shapefile
from shapely.geometry import Polygon

from mapthumb.geodesy import geodetic_to_ecef
from mapthumb.readers.coastline import PolygonSource


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# Clockwise exterior, counter-clockwise hole (shapefile ring convention)
LAND_EXTERIOR = [(-10.0, -10.0), (-10.0, 10.0), (10.0, 10.0), (10.0, -10.0), (-10.0, -10.0)]
LAKE_HOLE = [(-2.0, -2.0), (2.0, -2.0), (2.0, 2.0), (-2.0, 2.0), (-2.0, -2.0)]


@pytest.fixture
def land_shapefile(temp_dir):
    """Shapefile holding one square island (lon/lat -10..10) with a lake."""
    path = temp_dir / "land.shp"
    with shapefile.Writer(str(path), shapeType=shapefile.POLYGON) as w:
        w.field("name", "C")
        w.poly([LAND_EXTERIOR, LAKE_HOLE])
        w.record("island")
    return path


@pytest.fixture
def land_source():
    """In-memory version of ``land_shapefile``."""
    return PolygonSource([Polygon(LAND_EXTERIOR, [LAKE_HOLE])])


def _xyz(lat, lon):
    pos = geodetic_to_ecef(lat, lon)
    return f"<X>{pos.x!r}</X><Y>{pos.y!r}</Y><Z>{pos.z!r}</Z>"


def exercise_xml(center=None, platforms=()):
    """Exercise document text.

    Parameters
    ----------
    center : tuple of float, optional
        (lat, lon) of the exercise center.
    platforms : iterable of tuple
        (role, lat, lon) per platform; role None omits the Role element.
    """
    parts = ["<Exercise>"]
    if center is not None:
        parts.append(_xyz(*center))
    parts.append("<PlatformManager><Platforms>")
    for role, lat, lon in platforms:
        parts.append("<Platform>")
        if role is not None:
            parts.append(f"<Role>{role}</Role>")
        parts.append(f"<Position>{_xyz(lat, lon)}</Position>")
        parts.append("</Platform>")
    parts.append("</Platforms></PlatformManager></Exercise>")
    return "".join(parts)


@pytest.fixture
def make_exercise(temp_dir):
    """Factory writing an exercise file into ``temp_dir``."""
    def _make(name="scenario.exercise", center=None, platforms=(), text=None):
        path = temp_dir / name
        path.write_text(text if text is not None else exercise_xml(center, platforms))
        return path
    return _make


@pytest.fixture
def sample_exercise(make_exercise):
    """Exercise centred at (lat 1, lon 1) with one launch and two contacts."""
    return make_exercise(
        center=(1.0, 1.0),
        platforms=[
            ("LaunchPlatform", 1.0, 1.0),
            ("Contact", 1.5, 1.2),
            ("Contact", 0.8, 0.6),
        ],
    )
