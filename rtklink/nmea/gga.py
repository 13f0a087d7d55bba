"""GGA sentence decoder.

GGA (Global Positioning System Fix Data) provides the position fix: coordinates,
altitude, fix quality, and satellite/accuracy metrics.

GGA Sentence Format:
    $GPGGA,092750.000,5321.6802,N,00630.3372,W,1,8,1.03,61.7,M,55.2,M,,*76
           |          |         | |          | | | |    |    | |    | |
           |          |         | |          | | | |    |    | |    | +-- DGPS station
           |          |         | |          | | | |    |    | |    +-- DGPS age
           |          |         | |          | | | |    |    | +-- Geoid height (M)
           |          |         | |          | | | |    +----+-- Altitude above MSL
           |          |         | |          | | | +-- HDOP
           |          |         | |          | | +-- Number of satellites
           |          |         | |          | +-- Fix quality (0-8)
           |          |         | +----------+-- Longitude (DDDMM.MMMM) + E/W
           |          +---------+-- Latitude (DDMM.MMMM) + N/S
           +-- UTC time (HHMMSS.sss)
"""

from rtklink.nmea.fields import (
    extract_fields,
    field_at,
    parse_float_field,
    parse_int_field,
    parse_latitude,
    parse_longitude,
    parse_string_field,
)
from rtklink.nmea.types import GGAData

# Fields 0-13; the DGPS station ID (14) is often omitted
_MINIMUM_FIELD_COUNT = 14


def build_gga(fields: list[str]) -> GGAData | None:
    """Construct a GGAData object from the fields of a checked sentence.

    Maps NMEA field indices to GGAData attributes:
        fields[1]      -> utc_time
        fields[2], [3] -> latitude_degrees
        fields[4], [5] -> longitude_degrees
        fields[6]      -> fix_quality (0 when empty)
        fields[7]      -> num_satellites
        fields[8]      -> HDOP
        fields[9]      -> altitude above MSL
        fields[11]     -> geoid height
        fields[13]     -> DGPS age
        fields[14]     -> DGPS station ID

    Returns:
        GGAData, or None if the sentence has fewer than 14 fields
    """
    if len(fields) < _MINIMUM_FIELD_COUNT:
        return None

    # Empty fix quality means no fix, same as an explicit 0
    fix_quality = parse_int_field(fields[6]) or 0

    return GGAData(
        utc_time=parse_string_field(fields[1]),
        latitude_degrees=parse_latitude(fields[2], fields[3]),
        longitude_degrees=parse_longitude(fields[4], fields[5]),
        fix_quality=fix_quality,
        num_satellites=parse_int_field(fields[7]),
        horizontal_dilution_of_precision=parse_float_field(fields[8]),
        altitude_meters=parse_float_field(fields[9]),
        geoid_height_meters=parse_float_field(fields[11]),
        dgps_age_seconds=parse_float_field(fields[13]),
        dgps_station_id=parse_string_field(field_at(fields, 14)),
        valid=fix_quality > 0,
    )


def parse_gga(sentence: str) -> GGAData | None:
    """Parse a single GGA sentence into structured data.

    Returns:
        GGAData if the sentence is a checksum-valid GGA from any talker,
        otherwise None.

    Example:
        >>> result = parse_gga("$GPGGA,092750.000,5321.6802,N,00630.3372,W,1,8,1.03,61.7,M,55.2,M,,*76")
        >>> result.latitude_degrees
        53.361337
    """
    fields = extract_fields(sentence, "GGA")
    if fields is None:
        return None
    result = build_gga(fields)
    if result is not None:
        result.raw = sentence.strip()
        result.talker = fields[0][:2]
    return result
