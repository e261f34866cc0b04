"""Readers for coastline shapefiles and exercise scenario files.

This package contains the data sources a thumbnail is composed from: polygon
land masks and the center/platform markers of an exercise.
"""

from mapthumb.readers.coastline import (CoastlineSource, PolygonSource,
                                        VectorSourceUnavailable, open_source)
from mapthumb.readers.exercise import (ExerciseScenario, Platform, ReadStatus,
                                       read_center, read_launch_positions,
                                       read_other_positions, read_platforms,
                                       read_scenario)

__all__ = [
    "CoastlineSource", "PolygonSource", "VectorSourceUnavailable", "open_source",
    "ExerciseScenario", "Platform", "ReadStatus", "read_center",
    "read_launch_positions", "read_other_positions", "read_platforms",
    "read_scenario",
]
