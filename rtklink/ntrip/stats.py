"""Correction statistics and reconnect backoff."""

import random
from dataclasses import dataclass, field, replace

BACKOFF_FACTOR = 1.5


@dataclass
class RtcmStats:
    """Counters for the correction stream.

    ``messages_received`` counts inbound chunks, whether or not they held a
    valid frame. ``correction_age_seconds`` is refreshed when the stats are
    read, not when data arrives.
    """

    messages_received: int = 0
    bytes_received: int = 0
    bytes_sent: int = 0
    last_message_time: float | None = None
    correction_age_seconds: float | None = None
    message_type_histogram: dict[int, int] = field(default_factory=dict)

    def record_chunk(self, size: int, now: float, message_type: int | None) -> None:
        self.messages_received += 1
        self.bytes_received += size
        self.last_message_time = now
        if message_type is not None:
            self.message_type_histogram[message_type] = (
                self.message_type_histogram.get(message_type, 0) + 1
            )

    def refresh_age(self, now: float) -> None:
        if self.last_message_time is not None:
            self.correction_age_seconds = max(0.0, now - self.last_message_time)

    def copy(self) -> "RtcmStats":
        return replace(self, message_type_histogram=dict(self.message_type_histogram))


@dataclass
class ReconnectState:
    attempts: int = 0
    max_attempts: int = 5
    base_delay_seconds: float = 5.0
    last_failure_reason: str | None = None

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def copy(self) -> "ReconnectState":
        return replace(self)


def compute_reconnect_delay(
    attempts: int,
    base_delay: float,
    max_delay: float = 30.0,
    jitter: float = 0.1,
    rng: random.Random | None = None,
) -> float:
    """Exponential backoff with multiplicative jitter.

    delay = min(max_delay, base_delay * 1.5 ** attempts) * uniform(1 - jitter, 1 + jitter)

    Example (base 5 s, jitter ignored):
        attempts  0     1     2      3      4      5
        delay     5.0   7.5   11.25  16.88  25.31  30.0
    """
    rng = rng or random
    delay = min(max_delay, base_delay * BACKOFF_FACTOR**attempts)
    return delay * rng.uniform(1.0 - jitter, 1.0 + jitter)
