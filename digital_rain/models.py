"""
Rain Data Models - Enums and data classes shared by the simulation and loop.
"""

from dataclasses import dataclass
from enum import Enum


class SpeedMode(Enum):
    """Speed/density tier selected from terminal dimensions."""
    SLOW = "slow"
    NORMAL = "normal"

    @property
    def speed_range(self) -> tuple:
        """Inclusive (low, high) range drop speeds are drawn from."""
        return (1, 3) if self is SpeedMode.SLOW else (1, 6)

    @property
    def glyph_threshold(self) -> int:
        """Speeds below this threshold fall as '|', the rest as ':'."""
        return 2 if self is SpeedMode.SLOW else 3


class LoopState(Enum):
    """States of the animation loop."""
    RUNNING = "running"
    RESIZING = "resizing"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class Density:
    """Result of the density policy: how many drops, and how fast."""
    count: int
    speed_mode: SpeedMode


@dataclass
class RainConfig:
    """Runtime configuration for the animation."""
    frame_delay_ms: int = 80
    quit_key: str = 'q'
    clock_format: str = "%d/%m/%Y %H:%M:%S"

    def __post_init__(self):
        if self.frame_delay_ms < 0:
            raise ValueError(f"frame delay must be non-negative, got {self.frame_delay_ms}")
        if not isinstance(self.quit_key, str) or len(self.quit_key) != 1:
            raise ValueError(f"quit key must be a single character, got {self.quit_key!r}")

    @property
    def frame_delay(self) -> float:
        """Frame delay in seconds."""
        return self.frame_delay_ms / 1000.0


@dataclass
class RainState:
    """Mutable per-process state owned by the animation loop."""
    width: int = 0
    height: int = 0
    speed_mode: SpeedMode = SpeedMode.NORMAL
    state: LoopState = LoopState.RUNNING
    frames: int = 0
    epoch: int = 0
