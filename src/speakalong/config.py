"""Tunable settings for the reader."""

from __future__ import annotations

from dataclasses import dataclass

TRANSLATE_URL = "https://translate.googleapis.com/translate_a/single"


@dataclass
class ReaderConfig:
    """Settings shared by the engine, clock, controller and collaborators."""

    baseline_cps: float = 12.0       # Estimated characters spoken per second at rate 1.0
    frame_interval: float = 1 / 60   # Seconds between polling ticks
    boundary_grace: float = 0.75     # Seconds to wait for a boundary event before estimating
    settle_delay: float = 0.1        # Seconds between engine cancel and the next speak
    base_wpm: int = 175              # Engine words per minute at rate 1.0
    volume: float = 1.0              # 0.0 – 1.0
    min_rate: float = 0.5
    max_rate: float = 2.0
    translate_url: str = TRANSLATE_URL
    translate_timeout: float = 10.0

    def clamp_rate(self, rate: float) -> float:
        """Return *rate* limited to the supported multiplier range."""
        return max(self.min_rate, min(self.max_rate, float(rate)))
