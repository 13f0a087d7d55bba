"""Receiver state assembled from NMEA: position, satellites, statistics."""

from rtklink.gnss.types import (
    FixQuality,
    Position,
    PositionUpdate,
    SatelliteRecord,
)
from rtklink.gnss.position import PositionStore
from rtklink.gnss.satellites import SatelliteTracker
from rtklink.gnss.receiver import GNSSReceiver

__all__ = [
    "FixQuality",
    "GNSSReceiver",
    "Position",
    "PositionStore",
    "PositionUpdate",
    "SatelliteRecord",
    "SatelliteTracker",
]
