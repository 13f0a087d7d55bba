"""RMC sentence decoder.

RMC (Recommended Minimum Navigation Information) carries the minimum data
set a navigation receiver is expected to provide: time, date, position,
speed and course.

RMC Sentence Format:
    $GPRMC,092750.000,A,5321.6802,N,00630.3372,W,0.02,31.66,280511,,,A*43
           |          | |         | |          | |    |     |     ||
           |          | |         | |          | |    |     |     |+-- Mode (A/D/E/N)
           |          | |         | |          | |    |     |     +-- Magnetic variation + E/W
           |          | |         | |          | |    |     +-- Date (DDMMYY)
           |          | |         | |          | |    +-- Course over ground (degrees true)
           |          | |         | |          | +-- Speed over ground (knots)
           |          | |         | +----------+-- Longitude (DDDMM.MMMM) + E/W
           |          | +---------+-- Latitude (DDMM.MMMM) + N/S
           |          +-- Status (A = active, V = void)
           +-- UTC time (HHMMSS.sss)

Unlike GGA, RMC has no altitude and no fix quality. The position it reports
is only meaningful when the status is 'A'.
"""

from rtklink.nmea.fields import (
    extract_fields,
    field_at,
    parse_float_field,
    parse_latitude,
    parse_longitude,
    parse_string_field,
)
from rtklink.nmea.types import RMCData

# Fields 0-9 (through date); variation and mode are optional
_MINIMUM_FIELD_COUNT = 10

_STATUS_ACTIVE = "A"


def _format_time(value: str) -> str | None:
    """Convert HHMMSS(.sss) to HH:MM:SS(.sss).

    Example:
        >>> _format_time("092750.000")
        '09:27:50.000'
    """
    if len(value) < 6:
        return None
    return f"{value[0:2]}:{value[2:4]}:{value[4:]}"


def _format_date(value: str) -> str | None:
    """Convert DDMMYY to an ISO date, assuming the 21st century.

    Example:
        >>> _format_date("280511")
        '2011-05-28'
    """
    if len(value) != 6:
        return None
    return f"20{value[4:6]}-{value[2:4]}-{value[0:2]}"


def build_rmc(fields: list[str]) -> RMCData | None:
    """Construct an RMCData object from the fields of a checked sentence."""
    if len(fields) < _MINIMUM_FIELD_COUNT:
        return None

    status = parse_string_field(fields[2])

    return RMCData(
        utc_time=_format_time(fields[1]),
        status=status,
        latitude_degrees=parse_latitude(fields[3], fields[4]),
        longitude_degrees=parse_longitude(fields[5], fields[6]),
        speed_knots=parse_float_field(fields[7]),
        course_degrees=parse_float_field(fields[8]),
        date=_format_date(fields[9]),
        magnetic_variation_degrees=parse_float_field(field_at(fields, 10)),
        magnetic_variation_direction=parse_string_field(field_at(fields, 11)),
        mode=parse_string_field(field_at(fields, 12)),
        valid=status == _STATUS_ACTIVE,
    )


def parse_rmc(sentence: str) -> RMCData | None:
    """Parse a single RMC sentence, or return None if it is not one."""
    fields = extract_fields(sentence, "RMC")
    if fields is None:
        return None
    result = build_rmc(fields)
    if result is not None:
        result.raw = sentence.strip()
        result.talker = fields[0][:2]
    return result
