"""RTCM3 frame validation.

Only framing is checked here; message contents are passed through to the
receiver untouched.

RTCM3 Frame Layout:
    byte 0        byte 1      byte 2     byte 3     byte 4
    +----------+------+-----+----------+----------+------+-----+------ ... --+-----+
    | 11010011 | 000000 | LL | LLLLLLLL | TTTTTTTT | TTTT | ... | payload    | CRC |
    +----------+------+-----+----------+----------+------+-----+------ ... --+-----+
      preamble   reserved  10-bit length  12-bit message type       3 bytes
       (0xD3)

    length       = ((byte1 & 0x03) << 8) | byte2     valid range [3, 1023]
    message type = (byte3 << 4) | (byte4 >> 4)       e.g. 1005, 1077, 1230

The message type is diagnostic only; it never decides whether a frame is
forwarded.

Casters that need a position before streaming may answer with their
sourcetable (plain text) instead of corrections. ``is_sourcetable``
recognises that reply so the client can send a GGA right away.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

RTCM3_PREAMBLE = 0xD3
MINIMUM_MESSAGE_LENGTH = 3
MAXIMUM_MESSAGE_LENGTH = 1023

_LENGTH_HEADER_SIZE = 3
_TYPE_HEADER_SIZE = 6

_SOURCETABLE_MARKERS = (b"SOURCETABLE", b"STR;")


@dataclass(frozen=True)
class RtcmFrameInfo:
    """Result of inspecting a buffer.

    Attributes:
        valid: True if the buffer passes the framing checks.
        length: Declared payload length, None with fewer than 3 bytes.
        message_type: 12-bit message number, None with fewer than 6 bytes
            or when the buffer is invalid.
    """

    valid: bool
    length: int | None = None
    message_type: int | None = None


_INVALID = RtcmFrameInfo(valid=False)


def inspect_frame(buffer: bytes) -> RtcmFrameInfo:
    """Check RTCM3 framing and extract the diagnostic header fields.

    Example:
        >>> inspect_frame(bytes([0xD3, 0x00, 0x13, 0x3E, 0xD0, 0x00]))
        RtcmFrameInfo(valid=True, length=19, message_type=1005)
        >>> inspect_frame(b"ICY 200 OK")
        RtcmFrameInfo(valid=False, length=None, message_type=None)
    """
    if not buffer or buffer[0] != RTCM3_PREAMBLE:
        return _INVALID

    if len(buffer) < _LENGTH_HEADER_SIZE:
        return RtcmFrameInfo(valid=True)

    length = ((buffer[1] & 0x03) << 8) | buffer[2]
    if not MINIMUM_MESSAGE_LENGTH <= length <= MAXIMUM_MESSAGE_LENGTH:
        logger.debug("RTCM3 frame has invalid length %d", length)
        return RtcmFrameInfo(valid=False, length=length)

    message_type = None
    if len(buffer) >= _TYPE_HEADER_SIZE:
        message_type = (buffer[3] << 4) | (buffer[4] >> 4)

    return RtcmFrameInfo(valid=True, length=length, message_type=message_type)


def is_valid_frame(buffer: bytes) -> bool:
    return inspect_frame(buffer).valid


def is_sourcetable(buffer: bytes) -> bool:
    """True if the buffer looks like an NTRIP sourcetable reply."""
    return any(marker in buffer for marker in _SOURCETABLE_MARKERS)
