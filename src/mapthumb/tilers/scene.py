"""Scene renderer for map thumbnails.

A scene is composed in a fixed order:

1. water background,
2. every coastline polygon, vertices clamped into the view window,
3. other-platform dots,
4. center crosses,
5. launch-platform diamonds (top-most).

Rendering never raises: a missing or unusable source, an unparseable style
color or an error while drawing produces a placeholder tile carrying the
diagnostic message.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw

from .. import config
from ..readers.coastline import open_source
from ..viewport import (MarkerSet, ViewWindow, clamp_to_window, inside_window,
                        to_canvas, to_canvas_array)
from .utils import (draw_cross, draw_diamond, draw_dot, draw_placeholder,
                    fill_polygon_evenodd, to_rgba255)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MapStyle:
    """Colors and marker geometry for a rendered scene.

    Colors accept anything understood by ``matplotlib.colors.to_rgba`` or
    0-255 int tuples.
    """
    land_color: object = (58, 114, 76)
    water_color: object = (20, 22, 30)
    stroke_color: object = (0, 0, 0, 100)
    stroke_width: int = 1
    other_color: object = (70, 160, 255)
    other_outline: object = (255, 255, 255)
    other_radius: float = 3.0
    cross_size: float = 9.0
    cross_width: int = 2
    cross_opacity: float = 0.85
    launch_color: object = (255, 215, 0)
    launch_outline: object = (0, 0, 0)
    launch_size: float = 9.0
    placeholder_color: object = (25, 27, 34)
    placeholder_text_color: object = (211, 211, 211)

    @classmethod
    def from_settings(cls, **overrides) -> "MapStyle":
        """Style from the ``style`` settings table, then ``overrides``."""
        names = {f.name for f in dataclasses.fields(cls)}
        values = {k.lower(): v for k, v in dict(config.get("style") or {}).items()
                  if k.lower() in names}
        values.update(overrides)
        return cls(**values)

    def replace(self, **changes) -> "MapStyle":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class MarkerDraw:
    """One marker draw call, recorded in paint order."""
    layer: str
    x: float
    y: float


@dataclass(frozen=True, eq=False)
class RenderedTile:
    """Immutable RGBA raster produced by one render call.

    ``pixels`` is a read-only (height, width, 4) uint8 array. ``draws``
    lists the marker draw calls in paint order, so later entries are on top.
    """
    pixels: np.ndarray
    draws: Tuple[MarkerDraw, ...] = ()
    placeholder: bool = False
    message: Optional[str] = None

    @classmethod
    def from_image(cls, img, **kwargs) -> "RenderedTile":
        pixels = np.array(img.convert("RGBA"), dtype=np.uint8)
        pixels.setflags(write=False)
        return cls(pixels, **kwargs)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def image(self) -> Image.Image:
        """A fresh, independent Pillow copy of the raster."""
        return Image.fromarray(self.pixels.copy())

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        return tuple(int(v) for v in self.pixels[y, x])

    def save(self, path) -> None:
        self.image.save(path, format="PNG")


def placeholder_tile(width: int, height: int, message: Optional[str] = None,
                     style: Optional[MapStyle] = None) -> RenderedTile:
    """Diagnostic raster shown instead of a map.

    Colors of ``style`` that cannot be parsed fall back to the defaults.
    """
    style = style or MapStyle()
    try:
        background = to_rgba255(style.placeholder_color)
        text_color = to_rgba255(style.placeholder_text_color)
    except ValueError as e:
        logger.warning(f"Invalid placeholder style: {e}")
        background = to_rgba255(MapStyle.placeholder_color)
        text_color = to_rgba255(MapStyle.placeholder_text_color)
    img = draw_placeholder(width, height, message,
                           background=background, text_color=text_color)
    return RenderedTile.from_image(img, placeholder=True, message=message)


def _polygon_rings(polygon, window: ViewWindow, width: int, height: int):
    rings = [polygon.exterior, *polygon.interiors]
    result = []
    for ring in rings:
        coords = np.asarray(ring.coords, dtype=float)
        if coords.shape[0] == 0:
            continue
        lons, lats = clamp_to_window(coords[:, 0], coords[:, 1], window)
        result.append(to_canvas_array(lons, lats, window, width, height))
    return result


def _draw_markers(img: Image.Image, markers: MarkerSet, window: ViewWindow,
                  style: MapStyle):
    draw = ImageDraw.Draw(img, "RGBA")
    width, height = img.size
    draws = []
    for layer, points in markers.layers():
        for point in points:
            if not inside_window(point, window):
                continue
            x, y = to_canvas(point, window, width, height)
            if layer == "other":
                draw_dot(draw, x, y, style.other_radius,
                         fill=to_rgba255(style.other_color),
                         outline=to_rgba255(style.other_outline))
            elif layer == "center":
                draw_cross(draw, x, y, style.cross_size,
                           opacity=style.cross_opacity, width=style.cross_width)
            else:
                draw_diamond(draw, x, y, style.launch_size,
                             fill=to_rgba255(style.launch_color),
                             outline=to_rgba255(style.launch_outline))
            draws.append(MarkerDraw(layer, x, y))
    return tuple(draws)


def render_scene(source, window: ViewWindow, width: int, height: int,
                 markers: Optional[MarkerSet] = None,
                 style: Optional[MapStyle] = None) -> RenderedTile:
    """Render coastlines and markers for ``window`` into a new tile.

    Parameters
    ----------
    source : str, pathlib.Path, polygon source or None
        Coastline polygons; paths are opened as shapefiles.
    window : ViewWindow
        Geographic extent of the tile.
    width, height : int
        Raster size in pixels.
    markers : MarkerSet, optional
        Markers to draw; only those inside ``window`` are painted.
    style : MapStyle, optional
        Colors and marker geometry, by default ``MapStyle()``.

    Returns
    -------
    RenderedTile
        The map, or a placeholder tile carrying the error message when the
        coastline source is missing or unusable, a style color cannot be
        parsed or drawing fails. Rendered maps are always opaque.
    """
    style = style or MapStyle()
    markers = markers or MarkerSet()
    try:
        source = open_source(source)
    except TypeError as e:
        logger.warning(f"Unusable coastline source: {e}")
        return placeholder_tile(width, height, f"Shapefile error:\n{e}", style)

    if not source.exists:
        logger.warning(f"Coastline source unavailable: {source!r}")
        return placeholder_tile(width, height, "Shapefile not found", style)

    try:
        water = to_rgba255(style.water_color)
        land = to_rgba255(style.land_color)
        stroke = to_rgba255(style.stroke_color)
    except ValueError as e:
        logger.warning(f"Invalid map style: {e}")
        return placeholder_tile(width, height, f"Style error:\n{e}", style)

    # RGB base so that translucent land, strokes and markers blend
    img = Image.new("RGB", (width, height), water[:3])

    n_polygons = 0
    try:
        for polygon in source.iter_polygons():
            fill_polygon_evenodd(img, _polygon_rings(polygon, window, width, height),
                                 land, stroke, style.stroke_width)
            n_polygons += 1
    except Exception as e:
        logger.warning(f"Coastline rendering failed for {source!r}: {e}")
        return placeholder_tile(width, height, f"Shapefile error:\n{e}", style)
    logger.debug(f"Rendered {n_polygons} polygons from {source!r}")

    try:
        draws = _draw_markers(img, markers, window, style)
    except Exception as e:
        logger.warning(f"Marker rendering failed: {e}")
        return placeholder_tile(width, height, f"Render error:\n{e}", style)
    return RenderedTile.from_image(img, draws=draws)
