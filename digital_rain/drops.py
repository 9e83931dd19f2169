"""
Rain Particles - falling drops, the drop pool and the density policy.

Each Drop keeps its column, speed, glyph and color for its whole life and
only moves down. A drop that runs off the bottom respawns near the top of
the same column. The DropPool owns every drop of one epoch and is rebuilt
wholesale when the terminal is resized.
"""

import logging
import os
import random
import time
from typing import Iterator, List, Optional

from .colors import Colors, clamp_color_index, color_index_for_speed
from .models import Density, SpeedMode
from .utils.error_handling import OutOfRange

logger = logging.getLogger(__name__)

FAST_GLYPH = ':'
SLOW_GLYPH = '|'

# Respawned drops restart somewhere in rows [0, RESPAWN_MAX_ROW]
RESPAWN_MAX_ROW = 10

_default_rng: Optional[random.Random] = None


def default_rng() -> random.Random:
    """Process-wide RNG, seeded once from the pid and the clock."""
    global _default_rng
    if _default_rng is None:
        _default_rng = random.Random(os.getpid() ^ time.time_ns())
    return _default_rng


def density_for(width: int, height: int) -> Density:
    """
    Pick drop count and speed mode for a terminal size.

    Cramped terminals (short and wide, or narrow and not tall) get slower,
    sparser rain. Everything else gets denser, faster rain. Counts round
    half up, so a 6-column terminal gets 5 drops rather than 4.
    """
    if (height < 20 and width > 100) or (width < 100 and height < 40):
        return Density(count=max(0, int(width * 0.75 + 0.5)), speed_mode=SpeedMode.SLOW)
    return Density(count=max(0, int(width * 1.5 + 0.5)), speed_mode=SpeedMode.NORMAL)


class Drop:
    """A single falling glyph."""

    __slots__ = ('_column', '_speed', '_glyph', '_color_index', 'row', 'height', '_rng')

    def __init__(self, column: int, row: int, speed: int, glyph: str, color_index: int,
                 height: int, rng: random.Random):
        self._column = column
        self._speed = speed
        self._glyph = glyph
        self._color_index = color_index
        self.row = row
        self.height = height
        self._rng = rng

    @classmethod
    def spawn(cls, rng: random.Random, width: int, height: int, speed_mode: SpeedMode,
              palette_size: int = Colors.MAX_DROP_INDEX + 1) -> 'Drop':
        """Create a drop with random position and speed for the given screen."""
        width = max(1, width)
        height = max(1, height)
        low, high = speed_mode.speed_range
        speed = rng.randint(low, high)
        glyph = SLOW_GLYPH if speed < speed_mode.glyph_threshold else FAST_GLYPH
        return cls(
            column=rng.randrange(width),
            row=rng.randrange(height),
            speed=speed,
            glyph=glyph,
            color_index=clamp_color_index(color_index_for_speed(speed), palette_size),
            height=height,
            rng=rng,
        )

    @property
    def column(self) -> int:
        return self._column

    @property
    def speed(self) -> int:
        return self._speed

    @property
    def glyph(self) -> str:
        return self._glyph

    @property
    def color_index(self) -> int:
        return self._color_index

    def advance(self):
        """Fall by one speed step, respawning near the top past the bottom edge."""
        self.row += self._speed
        if self.row >= self.height:
            self.row = self._rng.randint(0, RESPAWN_MAX_ROW)

    def draw(self, surface):
        """Write this drop's glyph to the surface."""
        surface.put(self.row, self._column, self._glyph, self._color_index)

    def __repr__(self) -> str:
        return (f"Drop(column={self._column}, row={self.row}, speed={self._speed}, "
                f"glyph={self._glyph!r}, color_index={self._color_index})")


class DropPool:
    """Ordered collection of drops for one epoch."""

    def __init__(self, count: int, width: int, height: int, speed_mode: SpeedMode,
                 rng: Optional[random.Random] = None, palette_size: int = Colors.MAX_DROP_INDEX + 1):
        self.rng = rng or default_rng()
        self.palette_size = palette_size
        self.width = width
        self.height = height
        self.speed_mode = speed_mode
        self._drops: List[Drop] = self._build(count)

    def _build(self, count: int) -> List[Drop]:
        return [
            Drop.spawn(self.rng, self.width, self.height, self.speed_mode, self.palette_size)
            for _ in range(max(0, count))
        ]

    def resize(self, new_count: int, width: int, height: int, speed_mode: SpeedMode):
        """Replace every drop with fresh ones sized for the new dimensions."""
        self.width = width
        self.height = height
        self.speed_mode = speed_mode
        self._drops = self._build(new_count)
        logger.debug(f"Drop pool rebuilt: {len(self._drops)} drops for "
                     f"{width}x{height} ({speed_mode.value})")

    def element_at(self, index: int) -> Drop:
        """Bounds-checked access; negative indexes are rejected."""
        if index < 0 or index >= len(self._drops):
            raise OutOfRange(index, len(self._drops))
        return self._drops[index]

    def __len__(self) -> int:
        return len(self._drops)

    def __iter__(self) -> Iterator[Drop]:
        return iter(self._drops)
