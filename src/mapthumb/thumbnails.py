"""Render entry points used by the file browser.

Every function here is synchronous and returns a new ``RenderedTile``;
data problems degrade to placeholder rasters instead of raising.
"""
from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageDraw, ImageOps, UnidentifiedImageError

from . import config
from .readers.exercise import read_scenario
from .tilers.scene import MapStyle, RenderedTile, render_scene
from .viewfit import adaptive_cluster_zoom, auto_view, compute_auto_view
from .viewport import MarkerSet, ViewWindow

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".webp")
EXERCISE_EXTENSION = ".exercise"

__all__ = [
    "IMAGE_EXTENSIONS", "EXERCISE_EXTENSION", "ZoomTuning",
    "render_world_map", "compute_auto_view", "compute_auto_view_from_exercise",
    "render_adaptive_cluster_zoom", "render_scenario_cluster_zoom",
    "render_exercise_preview",
    "render_exercise_overview",
    "load_image_thumbnail", "folder_icon",
]


@dataclass(frozen=True)
class ZoomTuning:
    """Parameters of the contacts-first hover view."""
    min_contacts_radius_nm: float = 8.0
    padding_nm: float = 8.0
    max_contacts_radius_nm: float = 120.0
    pad_ratio: float = 1.10
    cross_opacity: float = 0.9


def render_world_map(source, width: int, height: int,
                     markers: Optional[MarkerSet] = None,
                     window: Optional[ViewWindow] = None,
                     style: Optional[MapStyle] = None) -> RenderedTile:
    """Render ``markers`` over the coastlines in ``window``.

    Without a window the whole world (lat -85..85) is shown.
    """
    return render_scene(source, window or ViewWindow.world(), width, height,
                        markers, style)


def compute_auto_view_from_exercise(path, min_radius_nm: float = 60.0,
                                    padding_nm: float = 30.0,
                                    pad_ratio: float = 1.0) -> ViewWindow:
    """Auto-fit window over every platform of an exercise."""
    scenario = read_scenario(path)
    return compute_auto_view(scenario.platforms, min_radius_nm, padding_nm,
                             pad_ratio)


def render_adaptive_cluster_zoom(source, exercise_path, width: int, height: int,
                                 tuning: Optional[ZoomTuning] = None,
                                 style: Optional[MapStyle] = None) -> RenderedTile:
    """Close-up of an exercise's contacts that keeps launches in frame.

    Parameters
    ----------
    source : str, pathlib.Path or polygon source
        Coastline polygons.
    exercise_path : str or pathlib.Path
        Exercise file providing center, contacts and launch platforms.
    width, height : int
        Raster size in pixels.
    tuning : ZoomTuning, optional
        Radius limits, padding and marker opacity.
    style : MapStyle, optional
        Base style; ``tuning.cross_opacity`` overrides its cross opacity.
    """
    return render_scenario_cluster_zoom(source, read_scenario(exercise_path),
                                        width, height, tuning, style)


def render_scenario_cluster_zoom(source, scenario, width: int, height: int,
                                 tuning: Optional[ZoomTuning] = None,
                                 style: Optional[MapStyle] = None) -> RenderedTile:
    """``render_adaptive_cluster_zoom`` for an already parsed ``ExerciseScenario``."""
    tuning = tuning or ZoomTuning()
    style = (style or MapStyle.from_settings()).replace(cross_opacity=tuning.cross_opacity)
    window = adaptive_cluster_zoom(
        scenario.others, scenario.launches, scenario.center,
        tuning.min_contacts_radius_nm, tuning.padding_nm,
        tuning.max_contacts_radius_nm, tuning.pad_ratio,
    )
    return render_scene(source, window, width, height, scenario.markers(), style)


def render_exercise_preview(source, exercise_path, width: int, height: int,
                            radius_nm: Optional[float] = None,
                            pad_ratio: Optional[float] = None,
                            cross_opacity: Optional[float] = None,
                            style: Optional[MapStyle] = None) -> RenderedTile:
    """Default tile for an exercise: fixed radius around its center.

    Exercises without a readable center fall back to the world view.
    Unset parameters come from the ``zoom_radius_nm``, ``pad_ratio`` and
    ``cross_opacity`` settings.
    """
    radius_nm = radius_nm if radius_nm is not None else float(config.get("zoom_radius_nm"))
    pad_ratio = pad_ratio if pad_ratio is not None else float(config.get("pad_ratio"))
    cross_opacity = (cross_opacity if cross_opacity is not None
                     else float(config.get("cross_opacity")))
    style = (style or MapStyle.from_settings()).replace(cross_opacity=cross_opacity)

    scenario = read_scenario(exercise_path)
    if scenario.center is not None:
        window = ViewWindow.from_center(scenario.center, radius_nm, pad_ratio)
    else:
        window = ViewWindow.world()
    return render_scene(source, window, width, height, scenario.markers(), style)


def render_exercise_overview(source, exercise_path, width: int, height: int,
                             style: Optional[MapStyle] = None) -> RenderedTile:
    """Auto-fit tile showing every platform of an exercise."""
    style = (style or MapStyle.from_settings()).replace(cross_opacity=0.9)
    scenario = read_scenario(exercise_path)
    window = auto_view([scenario.launches, scenario.others]).to_window(1.10)
    return render_scene(source, window, width, height, scenario.markers(), style)


def folder_icon(width: int, height: int) -> RenderedTile:
    """Flat folder glyph on a dark tile."""
    img = Image.new("RGBA", (width, height), (60, 65, 75, 255))
    draw = ImageDraw.Draw(img)
    w = width * 0.3
    h = w * 0.7
    x0 = (width - w) / 2.0
    y0 = (height - h) / 2.0
    draw.rectangle([x0, y0, x0 + w * 0.45, y0 + h * 0.25], fill=(255, 215, 0, 255))
    draw.rectangle([x0, y0 + h * 0.15, x0 + w, y0 + h], fill=(255, 215, 0, 255))
    return RenderedTile.from_image(img)


def load_image_thumbnail(path, width: int, height: int) -> RenderedTile:
    """Decode an image file, cropped and scaled to fill ``width`` x ``height``.

    Unreadable or undecodable files give the folder icon.
    """
    try:
        with Image.open(pathlib.Path(path)) as img:
            img.load()
            fitted = ImageOps.fit(img.convert("RGBA"), (width, height),
                                  method=Image.LANCZOS)
        return RenderedTile.from_image(fitted)
    except (OSError, UnidentifiedImageError, ValueError,
            Image.DecompressionBombError) as e:
        logger.warning(f"Cannot decode image {path}: {e}")
        return folder_icon(width, height)
