"""
Digital Rain - Terminal Rain Animation

Falling colored glyphs with a centered live clock, adapting drop density
and speed to the terminal size.

Basic Usage:
    from digital_rain import run_rain
    run_rain()

With Custom Surface:
    from digital_rain import AnimationLoop, TerminalSurface

    class MySurface(TerminalSurface):
        def size(self):
            return (80, 24)
        # ... implement other methods

    AnimationLoop(MySurface()).run()
"""

__version__ = "1.0.0"

# Core classes
from .animation import AnimationLoop, run_rain, main
from .drops import Drop, DropPool, density_for
from .terminal import TerminalSurface, CursesSurface, BufferSurface, ResizeFlag

# Data models
from .models import (
    SpeedMode,
    LoopState,
    Density,
    RainConfig,
    RainState,
)

# Errors
from .utils.error_handling import RainError, CapabilityUnavailable, OutOfRange

# Visual components
from .colors import Colors, color_index_for_speed

__all__ = [
    # Version
    "__version__",
    # Core
    "AnimationLoop",
    "run_rain",
    "main",
    "Drop",
    "DropPool",
    "density_for",
    "TerminalSurface",
    "CursesSurface",
    "BufferSurface",
    "ResizeFlag",
    # Models
    "SpeedMode",
    "LoopState",
    "Density",
    "RainConfig",
    "RainState",
    # Errors
    "RainError",
    "CapabilityUnavailable",
    "OutOfRange",
    # Visual
    "Colors",
    "color_index_for_speed",
]
