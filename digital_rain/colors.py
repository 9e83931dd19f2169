"""
Rain Color Definitions - speed-to-color mapping and curses palette setup.
"""

# Handle curses import for Windows compatibility
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    curses = None
    CURSES_AVAILABLE = False


def color_index_for_speed(speed: int) -> int:
    """
    Map a drop speed to a 256-color palette index.

    The cubic keeps slow drops near the bright end of the grayscale ramp
    (255) and pulls faster drops down towards 240.
    """
    x = speed
    return round(255 + (0.0416 * (x - 4) * (x - 3) * (x - 2) - 4) * (x - 1))


def clamp_color_index(index: int, palette_size: int) -> int:
    """Clamp a color index into [0, palette_size)."""
    if palette_size <= 0:
        return 0
    return max(0, min(palette_size - 1, index))


class Colors:
    """Palette constants and curses color pair registration."""
    NORMAL = 0
    BRIGHT_WHITE = 15
    CLOCK = BRIGHT_WHITE
    # Largest index produced by color_index_for_speed
    MAX_DROP_INDEX = 255

    @staticmethod
    def palette_size() -> int:
        """Number of color indices that can each get their own pair."""
        if not CURSES_AVAILABLE or curses is None:
            return 0
        return max(0, min(curses.COLORS, curses.COLOR_PAIRS - 1))

    @staticmethod
    def init_colors() -> int:
        """
        Register one color pair per palette color on the default background.

        Pair ``i + 1`` draws foreground color ``i``, so a drop's color index
        maps to ``curses.color_pair(index + 1)``.

        Returns:
            Number of registered palette entries
        """
        if not CURSES_AVAILABLE or curses is None:
            return 0
        curses.start_color()
        curses.use_default_colors()
        size = Colors.palette_size()
        for i in range(size):
            curses.init_pair(i + 1, i, -1)
        return size

    @staticmethod
    def attr(index: int) -> int:
        """curses attribute for a palette index."""
        if not CURSES_AVAILABLE or curses is None:
            return 0
        return curses.color_pair(index + 1)
