"""Raster rendering for map thumbnails.

This package contains the scene renderer and the Pillow drawing primitives
it is built from.
"""
