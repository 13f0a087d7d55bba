"""PositionStore: the most recent fix merged from GGA and RMC sentences."""

from rtklink.gnss.types import Position, to_fix_quality
from rtklink.nmea.types import GGAData, RMCData

_STATUS_ACTIVE = "A"


class PositionStore:
    """Holds the current ``Position``.

    The position is created by the first sentence that carries coordinates
    and lives until ``reset()``. RMC never overwrites the fields GGA owns
    (altitude, fix quality, HDOP, satellites).
    """

    def __init__(self):
        self._position: Position | None = None

    @property
    def position(self) -> Position | None:
        return self._position

    def apply_gga(self, gga: GGAData) -> bool:
        """Merge a GGA fix.

        Returns:
            True if the position changed, False if the GGA had no coordinates.
        """
        if gga.latitude_degrees is None or gga.longitude_degrees is None:
            return False

        position = self._ensure(gga.latitude_degrees, gga.longitude_degrees)
        position.altitude_meters = gga.altitude_meters
        position.fix_quality = to_fix_quality(gga.fix_quality)
        position.hdop = gga.horizontal_dilution_of_precision
        position.satellites_used = gga.num_satellites
        position.geoid_height_meters = gga.geoid_height_meters
        return True

    def apply_rmc(self, rmc: RMCData) -> bool:
        """Merge an RMC fix when its status is active.

        Returns:
            True if the position changed.
        """
        if rmc.status != _STATUS_ACTIVE:
            return False
        if rmc.latitude_degrees is None or rmc.longitude_degrees is None:
            return False

        position = self._ensure(rmc.latitude_degrees, rmc.longitude_degrees)
        position.speed_knots = rmc.speed_knots
        position.course_degrees = rmc.course_degrees
        return True

    def _ensure(self, latitude: float, longitude: float) -> Position:
        if self._position is None:
            self._position = Position(latitude=latitude, longitude=longitude)
        else:
            self._position.latitude = latitude
            self._position.longitude = longitude
        return self._position

    def reset(self) -> None:
        self._position = None
