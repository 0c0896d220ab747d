"""Statistics tracking and reporting for the relay."""

from __future__ import annotations

import time
from typing import Any


class StatsManager:
    """
    Lifetime counters for the relay.

    Tracks:
    - Connections accepted and closed
    - Frames received and frames rejected as invalid
    - Error replies sent
    - Messages forwarded to other connections, and dropped forwards
    - Sessions created and joins requested
    """

    def __init__(self) -> None:
        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "connections": 0,
            "disconnects": 0,
            "frames_in": 0,
            "frames_bad": 0,
            "errors_sent": 0,
            "messages_out": 0,
            "forwarded": 0,
            "dropped": 0,
            "sessions_created": 0,
            "joins": 0,
        }

    def set_start_time(self) -> None:
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        return self._counters.get(key, 0)

    def snapshot(self) -> dict[str, int]:
        return dict(self._counters)

    def uptime_s(self) -> float:
        if self.started_monotonic is None:
            return 0.0
        return time.monotonic() - self.started_monotonic

    def format_stats(
        self,
        *,
        registry_stats: dict[str, Any] | None = None,
        directory_stats: dict[str, Any] | None = None,
    ) -> str:
        """Format current statistics as a human-readable string."""
        from . import __version__

        c = self.snapshot()
        registry_stats = registry_stats or {}
        directory_stats = directory_stats or {}

        lines: list[str] = []
        lines.append(f"lobbyd {__version__} stats")
        lines.append(f"uptime_s={self.uptime_s():.1f}")
        lines.append(
            "connections: live={} queued={} accepted={} closed={}".format(
                registry_stats.get("connections", 0),
                registry_stats.get("queued", 0),
                c.get("connections", 0),
                c.get("disconnects", 0),
            )
        )
        lines.append(
            "games: active={} memberships={} created={} joins={}".format(
                directory_stats.get("sessions_total", 0),
                directory_stats.get("memberships", 0),
                c.get("sessions_created", 0),
                c.get("joins", 0),
            )
        )
        lines.append(
            "io: frames_in={} frames_bad={} messages_out={} errors_sent={}".format(
                c.get("frames_in", 0),
                c.get("frames_bad", 0),
                c.get("messages_out", 0),
                c.get("errors_sent", 0),
            )
        )
        lines.append(
            "routing: forwarded={} dropped={}".format(
                c.get("forwarded", 0),
                c.get("dropped", 0),
            )
        )

        return "\n".join(lines)
