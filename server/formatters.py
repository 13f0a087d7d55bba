"""JSON formatting utilities for receiver and correction notifications."""

import json
from typing import Any

from rtklink.gnss import Position, PositionUpdate, SatelliteRecord
from rtklink.nmea import SentenceStatistics
from rtklink.ntrip import ConnectionInfo, RtcmReceived, RtcmStats

__all__ = [
    "connection_payload",
    "format_ntrip_message",
    "format_ping_message",
    "format_position_message",
    "format_rtcm_message",
    "format_satellites_message",
    "format_statistics_message",
    "position_payload",
    "satellite_payload",
]


def position_payload(position: Position | None) -> dict[str, Any] | None:
    if position is None:
        return None
    return {
        "lat": position.latitude,
        "lon": position.longitude,
        "alt": position.altitude_meters,
        "fix_quality": int(position.fix_quality),
        "fix_name": position.fix_quality.name,
        "num_satellites": position.satellites_used,
        "hdop": position.hdop,
        "geoid_height": position.geoid_height_meters,
        "speed_knots": position.speed_knots,
        "course_degrees": position.course_degrees,
    }


def satellite_payload(satellite: SatelliteRecord) -> dict[str, Any]:
    return {
        "prn": satellite.prn,
        "elevation": satellite.elevation_degrees,
        "azimuth": satellite.azimuth_degrees,
        "snr": satellite.snr_dbhz,
        "used": satellite.used,
    }


def _rtcm_stats_payload(stats: RtcmStats) -> dict[str, Any]:
    return {
        "messages_received": stats.messages_received,
        "bytes_received": stats.bytes_received,
        "bytes_sent": stats.bytes_sent,
        "correction_age": stats.correction_age_seconds,
        "message_types": {
            str(message_type): count
            for message_type, count in sorted(stats.message_type_histogram.items())
        },
    }


def connection_payload(info: ConnectionInfo) -> dict[str, Any]:
    """Summarise the correction client for the status endpoint."""
    return {
        "state": info.state.value,
        "connected": info.connected,
        "connecting": info.connecting,
        "caster_host": info.caster_host,
        "mountpoint": info.mountpoint,
        "mode": info.mode.value if info.mode is not None else None,
        "reconnect_attempts": info.reconnect_attempts,
        "auto_reconnect": info.auto_reconnect,
        "stats": _rtcm_stats_payload(info.stats),
    }


def format_position_message(update: PositionUpdate) -> str:
    """Serialize a position update into a JSON string for WebSocket transmission."""
    return json.dumps({
        "type": "position",
        "timestamp": update.timestamp.isoformat(),
        **position_payload(update.position),
    })


def format_satellites_message(satellites: list[SatelliteRecord]) -> str:
    return json.dumps({
        "type": "satellites",
        "in_view": len(satellites),
        "used": sum(1 for satellite in satellites if satellite.used),
        "satellites": [satellite_payload(satellite) for satellite in satellites],
    })


def format_statistics_message(statistics: SentenceStatistics) -> str:
    return json.dumps({
        "type": "statistics",
        "counts": statistics.counts,
        "total": statistics.total,
        "rejected": statistics.rejected,
        "data_rate": statistics.data_rate,
    })


def format_ntrip_message(event: str, **details: Any) -> str:
    """Serialize a correction-client lifecycle event.

    Args:
        event: One of connecting, connected, disconnected, error, info.
        **details: Event fields, for example ``reason`` or ``mode``.
    """
    return json.dumps({"type": "ntrip", "event": event, **details})


def format_rtcm_message(received: RtcmReceived) -> str:
    return json.dumps({
        "type": "rtcm",
        "size": len(received.data),
        "valid": received.valid,
        "message_type": received.frame.message_type,
        "sourcetable": received.sourcetable,
        "stats": _rtcm_stats_payload(received.stats),
    })


def format_ping_message() -> str:
    return json.dumps({"type": "ping"})
