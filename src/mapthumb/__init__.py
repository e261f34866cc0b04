"""Map thumbnails for exercise files.

Small equirectangular map rasters are rendered from a coastline shapefile and
the platform positions stored in ``.exercise`` files. ``ThumbnailBrowser``
renders the tiles of a folder listing concurrently.
"""

from mapthumb.geodesy import GeoPoint, EcefPosition, ecef_to_geodetic, haversine_nm
from mapthumb.viewport import MarkerSet, ViewWindow
from mapthumb.viewfit import (ViewFit, adaptive_cluster_zoom, auto_view,
                              compute_auto_view, tight_cluster_view)
from mapthumb.readers import CoastlineSource, PolygonSource, read_scenario
from mapthumb.tilers.scene import MapStyle, RenderedTile, render_scene
from mapthumb.thumbnails import (ZoomTuning, render_adaptive_cluster_zoom,
                                 render_exercise_overview, render_exercise_preview,
                                 render_world_map)
from mapthumb.pipeline import (CancellationToken, ImmediateDispatcher,
                               RenderCancelled, ThumbnailBrowser, TileRenderState,
                               UiDispatcher)

__version__ = "0.1.0"
