"""GNSS state types assembled from decoded sentences."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import IntEnum


class FixQuality(IntEnum):
    """GGA fix quality indicator."""

    INVALID = 0
    GPS = 1
    DGPS = 2
    PPS = 3
    RTK_FIXED = 4
    RTK_FLOAT = 5
    DEAD_RECKONING = 6
    MANUAL = 7
    SIMULATION = 8


def to_fix_quality(value: int) -> FixQuality:
    """Map a raw indicator to ``FixQuality``; out-of-range values are INVALID."""
    try:
        return FixQuality(value)
    except ValueError:
        return FixQuality.INVALID


@dataclass
class Position:
    """The receiver's most recent fix, merged from GGA and RMC.

    GGA owns altitude, fix quality, HDOP, satellites and geoid height.
    RMC owns speed and course. Both update latitude and longitude.

    Attributes:
        latitude: Decimal degrees, positive=North, 6 decimals.
        longitude: Decimal degrees, positive=East, 6 decimals.
        altitude_meters: Altitude above mean sea level.
        fix_quality: Fix quality reported by the last GGA.
        satellites_used: Satellites in the solution.
        hdop: Horizontal dilution of precision.
        geoid_height_meters: Geoid separation.
        speed_knots: Speed over ground from RMC.
        course_degrees: Course over ground from RMC.
    """

    latitude: float
    longitude: float
    altitude_meters: float | None = None
    fix_quality: FixQuality = FixQuality.INVALID
    satellites_used: int | None = None
    hdop: float | None = None
    geoid_height_meters: float | None = None
    speed_knots: float | None = None
    course_degrees: float | None = None

    def copy(self) -> "Position":
        return replace(self)


@dataclass
class PositionUpdate:
    """Payload of a position-updated notification."""

    position: Position
    timestamp: datetime


@dataclass
class SatelliteRecord:
    """Tracked state of one satellite, keyed by PRN.

    Elevation and azimuth are None when the receiver left them empty,
    which happens for satellites that are being acquired.
    """

    prn: int
    elevation_degrees: int | None
    azimuth_degrees: int | None
    snr_dbhz: int | None
    used: bool = False
