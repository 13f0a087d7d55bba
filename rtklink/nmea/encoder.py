"""GGA sentence encoder.

NTRIP casters serving network RTK (VRS) mountpoints need the rover's
position before they start streaming corrections. ``GgaEncoder`` renders a
``Position`` back into a GGA sentence for that purpose.

Encoded Sentence Format:
    $GPGGA,123519.042,4807.0380000,N,01131.0000000,E,1,08,0.9,545.4,M,46.9,M,,*CS<CR><LF>
           |          |              |              | |  |   |       |
           |          |              |              | |  |   |       +-- Geoid separation
           |          |              |              | |  |   +-- Altitude (1 decimal)
           |          |              |              | |  +-- HDOP (1 decimal)
           |          |              |              | +-- Satellites (2 digits)
           |          |              |              +-- Fix quality
           |          |              +-- DDDMM.MMMMMMM (7 fractional minute digits)
           |          +-- DDMM.MMMMMMM
           +-- Current UTC time, millisecond precision

Casters commonly ignore a GGA reporting no fix, so a missing fix quality,
satellite count or HDOP is filled in from ``GgaDefaults``. Every encoded
sentence is validated before it is returned; if encoding fails for any
reason the pre-validated ``FALLBACK_GGA`` is returned instead, so the caster
always receives a well-formed sentence.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from rtklink.nmea.checksum import format_checksum, validate_checksum

if TYPE_CHECKING:
    from rtklink.gnss.types import Position

logger = logging.getLogger(__name__)

FALLBACK_GGA = (
    "$GPGGA,000000.000,0000.0000,N,00000.0000,E,1,08,1.0,0.0,M,0.0,M,,*65\r\n"
)

_VALID_PREFIXES = ("$GPGGA", "$GNGGA")
_MINIMUM_FIELD_COUNT = 14
_MINUTE_DECIMALS = 7


@dataclass(frozen=True)
class GgaDefaults:
    """Values substituted when the position does not provide them.

    Attributes:
        fix_quality: Reported when the fix quality is unknown or 0.
        satellites: Reported when the satellite count is unknown or 0.
        hdop: Reported when HDOP is unknown or 0.
        fallback_latitude: Latitude reported before any fix is known.
        fallback_longitude: Longitude reported before any fix is known.
    """

    fix_quality: int = 1
    satellites: int = 8
    hdop: float = 1.0
    fallback_latitude: float = 0.1
    fallback_longitude: float = 0.1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_gga(sentence: str) -> bool:
    """Check that a sentence is a usable GGA for a caster.

    The sentence must start with $GPGGA or $GNGGA, have at least 14 fields,
    carry non-empty latitude and longitude, and have a matching checksum.
    """
    if not sentence or not sentence.startswith(_VALID_PREFIXES):
        return False
    if "*" not in sentence:
        return False

    fields = sentence[1 : sentence.index("*")].split(",")
    if len(fields) < _MINIMUM_FIELD_COUNT:
        return False
    if not fields[2] or not fields[4]:
        return False

    return validate_checksum(sentence)


def format_coordinate(value: float, degree_digits: int) -> str:
    """Render absolute decimal degrees as (D)DDMM.MMMMMMM.

    Minutes are rounded before splitting so that 59.99999999 minutes carry
    into the degree field instead of printing as 60.0000000.

    Example:
        >>> format_coordinate(53.361337, 2)
        '5321.6802200'
        >>> format_coordinate(6.50562, 3)
        '00630.3372000'
    """
    total_minutes = round(abs(value) * 60.0, _MINUTE_DECIMALS)
    degrees = int(total_minutes // 60)
    minutes = total_minutes - degrees * 60
    return f"{degrees:0{degree_digits}d}{minutes:0{_MINUTE_DECIMALS + 3}.{_MINUTE_DECIMALS}f}"


class GgaEncoder:
    """Encode positions as GGA sentences.

    Args:
        defaults: Substitutes for missing fix quality, satellites and HDOP.
        clock: Returns the current time as an aware UTC datetime.
    """

    def __init__(
        self,
        defaults: GgaDefaults | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.defaults = defaults or GgaDefaults()
        self._clock = clock

    def encode(self, position: "Position") -> str:
        """Encode a position, returning FALLBACK_GGA on any failure.

        Returns:
            A checksummed sentence terminated by CRLF.
        """
        try:
            sentence = self._build(position)
        except (TypeError, ValueError, AttributeError):
            logger.warning("Could not encode GGA for %r", position, exc_info=True)
            return FALLBACK_GGA

        if not is_valid_gga(sentence):
            logger.warning("Encoded GGA failed validation: %r", sentence)
            return FALLBACK_GGA

        return sentence

    def _build(self, position: "Position") -> str:
        latitude = position.latitude
        longitude = position.longitude
        if latitude is None or longitude is None:
            raise ValueError("position has no coordinates")

        timestamp = self._clock().astimezone(timezone.utc)
        utc_time = (
            f"{timestamp:%H%M%S}.{timestamp.microsecond // 1000:03d}"
        )

        fix_quality = int(position.fix_quality or self.defaults.fix_quality)
        satellites = position.satellites_used or self.defaults.satellites
        hdop = position.hdop or self.defaults.hdop
        altitude = position.altitude_meters or 0.0
        geoid_height = position.geoid_height_meters or 0.0

        fields = [
            "GPGGA",
            utc_time,
            format_coordinate(latitude, 2),
            "N" if latitude >= 0 else "S",
            format_coordinate(longitude, 3),
            "E" if longitude >= 0 else "W",
            str(fix_quality),
            f"{satellites:02d}",
            f"{hdop:.1f}",
            f"{altitude:.1f}",
            "M",
            f"{geoid_height:.1f}",
            "M",
            "",  # age of differential corrections
            "",  # differential station ID
        ]
        content = ",".join(fields)
        return f"${content}*{format_checksum(content)}\r\n"
