"""rtklink: NMEA decoding and NTRIP correction relay for GNSS receivers."""

from rtklink.device import DeviceTransport, TcpDeviceTransport
from rtklink.events import Channel
from rtklink.gnss import GNSSReceiver, Position, SatelliteRecord
from rtklink.nmea import GgaEncoder, SentenceDecoder, validate_checksum
from rtklink.ntrip import (
    ClientSettings,
    ConnectionConfig,
    ConnectionMode,
    ConnectResult,
    CorrectionClient,
)
from rtklink.rtcm import inspect_frame, is_valid_frame
from rtklink.session import RTKSession

__all__ = [
    "Channel",
    "ClientSettings",
    "ConnectResult",
    "ConnectionConfig",
    "ConnectionMode",
    "CorrectionClient",
    "DeviceTransport",
    "GNSSReceiver",
    "GgaEncoder",
    "Position",
    "RTKSession",
    "SatelliteRecord",
    "SentenceDecoder",
    "TcpDeviceTransport",
    "inspect_frame",
    "is_valid_frame",
    "validate_checksum",
]
