"""GST sentence decoder.

GST (GNSS Pseudorange Error Statistics) reports the receiver's own accuracy
estimate. RTK receivers emit it to show how tight the solution is.

GST Sentence Format:
    $GPGST,172814.0,0.006,0.023,0.020,273.6,0.023,0.020,0.031*6A
           |        |     |     |     |     |     |     |
           |        |     |     |     |     |     |     +-- Height error (m)
           |        |     |     |     |     |     +-- Longitude error (m)
           |        |     |     |     |     +-- Latitude error (m)
           |        |     |     |     +-- Orientation of semi-major axis (deg)
           |        |     |     +-- Semi-minor axis error (m)
           |        |     +-- Semi-major axis error (m)
           |        +-- RMS of the pseudorange residuals
           +-- UTC time
"""

from rtklink.nmea.fields import (
    extract_fields,
    parse_float_field,
    parse_string_field,
)
from rtklink.nmea.types import GSTData

_MINIMUM_FIELD_COUNT = 9


def build_gst(fields: list[str]) -> GSTData | None:
    if len(fields) < _MINIMUM_FIELD_COUNT:
        return None

    return GSTData(
        utc_time=parse_string_field(fields[1]),
        rms=parse_float_field(fields[2]),
        semi_major_error=parse_float_field(fields[3]),
        semi_minor_error=parse_float_field(fields[4]),
        orientation_degrees=parse_float_field(fields[5]),
        latitude_error=parse_float_field(fields[6]),
        longitude_error=parse_float_field(fields[7]),
        height_error=parse_float_field(fields[8]),
    )


def parse_gst(sentence: str) -> GSTData | None:
    """Parse a single GST sentence, or return None if it is not one."""
    fields = extract_fields(sentence, "GST")
    if fields is None:
        return None
    result = build_gst(fields)
    if result is not None:
        result.raw = sentence.strip()
        result.talker = fields[0][:2]
    return result
