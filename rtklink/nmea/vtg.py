"""VTG sentence decoder.

VTG (Track Made Good and Ground Speed) provides velocity information:
ground speed and heading relative to true and magnetic north.

VTG Sentence Format:
    $GNVTG,054.7,T,034.4,M,005.5,N,010.2,K,A*3B
           |     | |     | |     | |     | |
           |     | |     | |     | |     | +-- Mode indicator (A/D/E/N)
           |     | |     | |     | +-----+-- Speed in km/h
           |     | |     | +-----+-- Speed in knots
           |     | +-----+-- Track (magnetic north, degrees)
           +-----+-- Track (true north, degrees)

Mode Indicators (FAA mode, NMEA 2.3+):
    A = Autonomous (standard GPS positioning)
    D = Differential (DGPS or RTK)
    E = Estimated (dead reckoning)
    N = Not valid (no fix)

Note: When stationary, the track angle may be empty (no heading when not moving).
"""

from rtklink.nmea.fields import (
    extract_fields,
    field_at,
    parse_float_field,
    parse_string_field,
)
from rtklink.nmea.types import VTGData

# VTG has 9 fields in basic format, 10 with FAA mode indicator
_MINIMUM_FIELD_COUNT = 9

# 1 km/h = 1000m / 3600s = 1/3.6 m/s
_KILOMETERS_PER_HOUR_TO_METERS_PER_SECOND = 3.6

_MODE_NOT_VALID = "N"


def _to_meters_per_second(speed_kilometers_per_hour: float | None) -> float | None:
    if speed_kilometers_per_hour is None:
        return None
    return speed_kilometers_per_hour / _KILOMETERS_PER_HOUR_TO_METERS_PER_SECOND


def build_vtg(fields: list[str]) -> VTGData | None:
    """Construct a VTGData object from the fields of a checked sentence.

    Maps NMEA field indices to VTGData attributes:
        fields[1] -> track_true_degrees
        fields[3] -> track_magnetic_degrees
        fields[5] -> speed_knots
        fields[7] -> speed_kilometers_per_hour (and derived m/s)
        fields[9] -> mode (optional, NMEA 2.3+)

    The unit letters (T, M, N, K) at even indices are fixed and ignored.
    A record is valid only when a mode indicator is present and is not 'N';
    pre-2.3 receivers without a mode are reported as not valid.
    """
    if len(fields) < _MINIMUM_FIELD_COUNT:
        return None

    speed_kilometers_per_hour = parse_float_field(fields[7])
    mode = parse_string_field(field_at(fields, 9))

    return VTGData(
        track_true_degrees=parse_float_field(fields[1]),
        track_magnetic_degrees=parse_float_field(fields[3]),
        speed_knots=parse_float_field(fields[5]),
        speed_kilometers_per_hour=speed_kilometers_per_hour,
        speed_meters_per_second=_to_meters_per_second(speed_kilometers_per_hour),
        mode=mode,
        valid=mode is not None and mode != _MODE_NOT_VALID,
    )


def parse_vtg(sentence: str) -> VTGData | None:
    """Parse a single VTG sentence into structured data.

    Returns:
        VTGData if the sentence is a checksum-valid VTG, otherwise None.

    Example:
        >>> result = parse_vtg("$GNVTG,054.7,T,034.4,M,005.5,N,010.2,K,A*3B")
        >>> result.speed_knots
        5.5
    """
    fields = extract_fields(sentence, "VTG")
    if fields is None:
        return None
    result = build_vtg(fields)
    if result is not None:
        result.raw = sentence.strip()
        result.talker = fields[0][:2]
    return result
