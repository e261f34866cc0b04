"""Reader for ``.exercise`` scenario files.

An exercise is a small XML document. The fields used here are the first
root-level ``<X>/<Y>/<Z>`` triple (the exercise center, ECEF meters) and,
per platform, ``<Role>`` and ``<Position><X/><Y/><Z/></Position>``::

    <Exercise>
      <X>...</X><Y>...</Y><Z>...</Z>
      <PlatformManager>
        <Platforms>
          <Platform>
            <Role>LaunchPlatform</Role>
            <Position><X>...</X><Y>...</Y><Z>...</Z></Position>
          </Platform>
        </Platforms>
      </PlatformManager>
    </Exercise>

Unknown elements are ignored. ``read_scenario`` reports whether the file was
missing or malformed; the narrower ``read_center``/``read_platforms``
helpers collapse every failure to "no data" and only log it.
"""
from __future__ import annotations

import enum
import logging
import math
import pathlib
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..geodesy import EcefPosition, GeoPoint
from ..viewport import MarkerSet

logger = logging.getLogger(__name__)

LAUNCH_ROLE = "launchplatform"


class ReadStatus(enum.Enum):
    OK = "ok"
    MISSING = "missing"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class Platform:
    role: Optional[str]
    position: Optional[EcefPosition]

    @property
    def is_launch(self) -> bool:
        return self.role is not None and self.role.casefold() == LAUNCH_ROLE


@dataclass(frozen=True)
class ExerciseScenario:
    """Markers extracted from one exercise file."""
    path: pathlib.Path
    center: Optional[GeoPoint] = None
    launches: Tuple[GeoPoint, ...] = ()
    others: Tuple[GeoPoint, ...] = ()
    status: ReadStatus = ReadStatus.OK
    error: Optional[str] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.status is ReadStatus.OK

    @property
    def platforms(self) -> Tuple[GeoPoint, ...]:
        return self.launches + self.others

    @property
    def has_platforms(self) -> bool:
        return bool(self.launches or self.others)

    def markers(self) -> MarkerSet:
        centers = (self.center,) if self.center is not None else ()
        return MarkerSet(others=self.others, centers=centers,
                         launches=self.launches)


def _parse_float(text: Optional[str]) -> float:
    if text is None:
        raise ValueError("missing value")
    value = float(text.strip())
    if not math.isfinite(value):
        raise ValueError(f"non-finite value {text!r}")
    return value


def _extract(text: str, tag: str) -> float:
    """Value of the first ``<tag>...</tag>``, matched case-insensitively."""
    lower = text.lower()
    start_tag = f"<{tag.lower()}>"
    end_tag = f"</{tag.lower()}>"
    start = lower.find(start_tag)
    if start < 0:
        raise ValueError(f"tag not found: <{tag}>")
    start += len(start_tag)
    end = lower.find(end_tag, start)
    if end < 0:
        raise ValueError(f"closing tag not found: </{tag}>")
    return _parse_float(text[start:end])


def _center_from_text(text: str) -> GeoPoint:
    x, y, z = (_extract(text, tag) for tag in ("X", "Y", "Z"))
    return EcefPosition(x, y, z).to_geopoint()


def read_center(path) -> Optional[GeoPoint]:
    """Exercise center from the first ``<X>``, ``<Y>``, ``<Z>`` tags.

    A literal substring search is used rather than XML parsing, so the
    first occurrence of each tag in document order wins. Returns ``None``
    when the file cannot be read or a tag is missing or not numeric.
    """
    try:
        text = pathlib.Path(path).read_text(encoding="utf-8", errors="replace")
        return _center_from_text(text)
    except (OSError, ValueError) as e:
        logger.debug(f"No exercise center in {path}: {e}")
        return None


def _position(platform: ET.Element) -> Optional[EcefPosition]:
    pos = platform.find("Position")
    if pos is None:
        return None
    try:
        return EcefPosition(*(_parse_float(pos.findtext(tag))
                              for tag in ("X", "Y", "Z")))
    except ValueError:
        return None


def _iter_platform_elements(root: ET.Element):
    seen = set()
    for manager in root.iter("PlatformManager"):
        for platforms in manager.iter("Platforms"):
            for element in platforms.iter("Platform"):
                if id(element) in seen:
                    continue
                seen.add(id(element))
                yield element


def parse_platforms(root: ET.Element) -> List[Platform]:
    """All Platform records under PlatformManager/Platforms."""
    result = []
    for element in _iter_platform_elements(root):
        role = element.findtext("Role")
        result.append(Platform(role.strip() if role is not None else None,
                               _position(element)))
    return result


def _split_markers(platforms: List[Platform], path) -> Tuple[List[GeoPoint], List[GeoPoint]]:
    launch: List[GeoPoint] = []
    other: List[GeoPoint] = []
    for platform in platforms:
        if not platform.role or platform.position is None:
            logger.debug(f"Dropping platform without role/position in {path}")
            continue
        try:
            point = platform.position.to_geopoint()
        except ValueError as e:
            logger.debug(f"Dropping platform in {path}: {e}")
            continue
        (launch if platform.is_launch else other).append(point)
    return launch, other


def read_scenario(path) -> ExerciseScenario:
    """Read center and platform markers, reporting how the read went.

    Returns
    -------
    ExerciseScenario
        ``status`` is ``MISSING`` when the file cannot be read and
        ``MALFORMED`` when it is not well-formed XML; platform markers are
        empty in both cases.
    """
    path = pathlib.Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.warning(f"Cannot read exercise {path}: {e}")
        return ExerciseScenario(path, status=ReadStatus.MISSING, error=str(e))

    try:
        center = _center_from_text(data.decode("utf-8", errors="replace"))
    except ValueError as e:
        logger.debug(f"No exercise center in {path}: {e}")
        center = None

    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        logger.warning(f"Malformed exercise {path}: {e}")
        return ExerciseScenario(path, center=center,
                                status=ReadStatus.MALFORMED, error=str(e))

    launch, other = _split_markers(parse_platforms(root), path)
    return ExerciseScenario(path, center=center, launches=tuple(launch),
                            others=tuple(other))


def read_platforms(path) -> Tuple[List[GeoPoint], List[GeoPoint]]:
    """(launch, other) platform positions; empty lists on any failure."""
    scenario = read_scenario(path)
    return list(scenario.launches), list(scenario.others)


def read_launch_positions(path) -> List[GeoPoint]:
    return read_platforms(path)[0]


def read_other_positions(path) -> List[GeoPoint]:
    return read_platforms(path)[1]
