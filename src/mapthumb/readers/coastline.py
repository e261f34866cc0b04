"""Coastline polygon sources.

``CoastlineSource`` streams polygons from an ESRI shapefile (for example the
GSHHS ``GSHHS_l_L1.shp`` land layer) using pyshp, converting each record to
shapely geometry. ``PolygonSource`` wraps polygons already in memory.

Sources hold no open file handles between iterations, so one instance can be
shared by renders running on several threads.
"""

import logging
import pathlib

import shapefile
from shapely.geometry import MultiPolygon, Polygon, shape

logger = logging.getLogger(__name__)

POLYGON_TYPES = (shapefile.POLYGON, shapefile.POLYGONZ, shapefile.POLYGONM)


class VectorSourceUnavailable(OSError):
    """Raised when a coastline source has no path or cannot be opened."""


def _split_polygons(geom):
    """Yield the Polygon parts of a Polygon or MultiPolygon, skip the rest."""
    if isinstance(geom, Polygon):
        yield geom
    elif isinstance(geom, MultiPolygon):
        yield from geom.geoms


class CoastlineSource:
    """Polygon features read from a shapefile.

    Parameters
    ----------
    path : str or pathlib.Path
        Path to the ``.shp`` file. The sibling ``.shx``/``.dbf`` files are
        located by pyshp.
    """

    def __init__(self, path):
        self.path = pathlib.Path(path) if path else None

    def __repr__(self):
        return f"CoastlineSource({str(self.path)!r})"

    @property
    def exists(self):
        return self.path is not None and self.path.is_file()

    def _reader(self):
        if not self.exists:
            raise VectorSourceUnavailable(f"Shapefile not found: {self.path}")
        return shapefile.Reader(str(self.path))

    def iter_polygons(self):
        """Yield every polygon in file order.

        MultiPolygon records are split into their parts. Null and
        non-polygon shapes are skipped.

        Raises
        ------
        VectorSourceUnavailable
            If the path is unset or does not point at a file.
        shapefile.ShapefileException
            If the file is not a readable shapefile.
        """
        with self._reader() as sf:
            for i, shp in enumerate(sf.iterShapes()):
                if shp.shapeType == shapefile.NULL:
                    continue
                if shp.shapeType not in POLYGON_TYPES:
                    logger.debug(f"Skipping shape {i} of type {shp.shapeTypeName} in {self.path}")
                    continue
                yield from _split_polygons(shape(shp.__geo_interface__))

    def count(self):
        """Number of records in the shapefile."""
        with self._reader() as sf:
            return len(sf)


class PolygonSource:
    """In-memory polygon source.

    Parameters
    ----------
    polygons : iterable
        shapely Polygons and/or MultiPolygons. The iterable is materialised
        once so it can be streamed by every render.
    """

    def __init__(self, polygons):
        self._geoms = tuple(polygons)

    def __repr__(self):
        return f"PolygonSource({len(self._geoms)} features)"

    @property
    def exists(self):
        return True

    def iter_polygons(self):
        for geom in self._geoms:
            yield from _split_polygons(geom)

    def count(self):
        return len(self._geoms)


def open_source(source):
    """Normalise a path, ``None`` or source object to a polygon source."""
    if source is None or isinstance(source, (str, pathlib.PurePath)):
        return CoastlineSource(source)
    if not hasattr(source, "iter_polygons"):
        raise TypeError(f"not a polygon source: {source!r}")
    return source
