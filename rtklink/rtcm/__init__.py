"""RTCM3 frame-level validation."""

from rtklink.rtcm.validator import (
    RtcmFrameInfo,
    inspect_frame,
    is_sourcetable,
    is_valid_frame,
)

__all__ = ["RtcmFrameInfo", "inspect_frame", "is_sourcetable", "is_valid_frame"]
