"""Drawing helpers for tile rendering.

This module provides the Pillow primitives used by the scene renderer:
even-odd polygon filling, the three marker glyphs and the diagnostic
placeholder raster.
"""
import numpy as np
from matplotlib.colors import to_rgba
from PIL import Image, ImageChops, ImageDraw, ImageFont

from ..utils import clamp

# Rings thinner than this (pixel area) collapse onto the tile edge after
# clamping and are not drawn.
MIN_RING_AREA_PX = 0.5


def to_rgba255(color):
    """Convert a color spec to an (r, g, b, a) tuple of 0-255 ints.

    Parameters
    ----------
    color : str or tuple
        Anything accepted by ``matplotlib.colors.to_rgba`` (names, hex
        strings, float tuples), or an int tuple already in 0-255 range.

    Returns
    -------
    tuple of int
        RGBA components.
    """
    if isinstance(color, (tuple, list)) and all(isinstance(c, (int, np.integer)) for c in color):
        if len(color) == 3:
            return (int(color[0]), int(color[1]), int(color[2]), 255)
        if len(color) == 4:
            return tuple(int(c) for c in color)
    r, g, b, a = to_rgba(color)
    return (round(r * 255), round(g * 255), round(b * 255), round(a * 255))


def ring_area_px(ring):
    """Absolute shoelace area of an (N, 2) pixel ring."""
    x = ring[:, 0]
    y = ring[:, 1]
    return 0.5 * abs(float(np.dot(x, np.roll(y, 1)) - np.dot(y, np.roll(x, 1))))


def fill_polygon_evenodd(img, rings, fill, stroke=None, stroke_width=1):
    """Fill rings with the even-odd rule and stroke their outlines.

    The first ring is normally the exterior and the rest are holes; with the
    even-odd rule pixels covered by an odd number of rings are filled.

    Parameters
    ----------
    img : PIL.Image.Image
        RGB target image, modified in place. Translucent colors are blended
        over it.
    rings : list of numpy.ndarray
        (N, 2) arrays of pixel coordinates.
    fill : tuple of int
        RGBA fill color.
    stroke : tuple of int, optional
        RGBA outline color; no outline when None.
    stroke_width : int, optional
        Outline width in pixels, by default 1.
    """
    rings = [r for r in rings if len(r) >= 3 and ring_area_px(r) >= MIN_RING_AREA_PX]
    if not rings:
        return

    if len(rings) == 1:
        ImageDraw.Draw(img, "RGBA").polygon(rings[0].ravel().tolist(), fill=fill)
    else:
        mask = Image.new("1", img.size, 0)
        for ring in rings:
            ring_mask = Image.new("1", img.size, 0)
            ImageDraw.Draw(ring_mask).polygon(ring.ravel().tolist(), fill=1)
            mask = ImageChops.logical_xor(mask, ring_mask)
        alpha = fill[3] if len(fill) == 4 else 255
        mask = mask.convert("L").point(lambda v: v * alpha // 255)
        img.paste(fill[:3], (0, 0, img.size[0], img.size[1]), mask)

    if stroke is not None and stroke_width > 0:
        draw = ImageDraw.Draw(img, "RGBA")
        for ring in rings:
            draw.line(ring.ravel().tolist(), fill=stroke, width=stroke_width)


def draw_dot(draw, x, y, radius, fill, outline=(255, 255, 255, 255)):
    draw.ellipse([x - radius, y - radius, x + radius, y + radius],
                 fill=fill, outline=outline)


def draw_cross(draw, x, y, size, opacity=0.85, width=2):
    """White cross centred on (x, y) with the given opacity (0..1)."""
    half = size / 2.0
    alpha = int(clamp(opacity * 255.0, 0.0, 255.0))
    color = (255, 255, 255, alpha)
    draw.line([x - half, y, x + half, y], fill=color, width=width)
    draw.line([x, y - half, x, y + half], fill=color, width=width)


def draw_diamond(draw, x, y, size, fill=(255, 215, 0, 255), outline=(0, 0, 0, 255)):
    half = size / 2.0
    draw.polygon([x, y - half, x + half, y, x, y + half, x - half, y],
                 fill=fill, outline=outline)


def draw_placeholder(width, height, message=None,
                     background=(25, 27, 34, 255), text_color=(211, 211, 211, 255)):
    """Solid raster with an optional short diagnostic message.

    Returns
    -------
    PIL.Image.Image
        Opaque RGB image of the requested size.
    """
    img = Image.new("RGB", (width, height), tuple(background[:3]))
    if message:
        draw = ImageDraw.Draw(img, "RGBA")
        draw.multiline_text((12, 12), message, fill=text_color,
                            font=ImageFont.load_default())
    return img
