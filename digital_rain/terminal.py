"""
Terminal Surface Interface

Defines the abstract terminal capability the animation loop draws on,
together with a curses implementation and an in-memory one.

Usage:
    from digital_rain.terminal import TerminalSurface

    class MySurface(TerminalSurface):
        def size(self):
            return (80, 24)
        # ... implement other methods
"""

import logging
import os
import signal
import sys
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Dict, Iterable, Optional, Tuple

# Handle curses import for Windows compatibility
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    curses = None
    CURSES_AVAILABLE = False

from .colors import Colors, clamp_color_index
from .utils.error_handling import CapabilityUnavailable

logger = logging.getLogger(__name__)


class ResizeFlag:
    """
    Pending-resize mailbox.

    Written from a signal handler (or any other asynchronous source) and
    consumed only by the animation loop. Holds no lock: a handler that runs
    in the middle of consume() must never wait on the thread it interrupted.
    """

    def __init__(self):
        self._pending = False

    def set(self):
        self._pending = True

    def is_set(self) -> bool:
        return self._pending

    def consume(self) -> bool:
        """Clear the flag, returning whether it was set."""
        if not self._pending:
            return False
        # A set() landing here is folded into this resize; the caller
        # queries the new size only after consuming.
        self._pending = False
        return True


class TerminalSurface(ABC):
    """
    Abstract interface for the terminal the rain is drawn on.

    Implement this class to render the animation anywhere that can show a
    grid of colored characters. All methods must be non-blocking.
    """

    palette_size: int = Colors.MAX_DROP_INDEX + 1

    def __init__(self):
        self.resize_flag = ResizeFlag()

    def acquire(self):
        """Enter interactive mode. Raises CapabilityUnavailable on failure."""
        pass

    def release(self):
        """Leave interactive mode and restore the terminal."""
        pass

    def __enter__(self) -> 'TerminalSurface':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    @abstractmethod
    def size(self) -> Tuple[int, int]:
        """
        Get current surface dimensions.

        Returns:
            (width, height) in character cells
        """
        pass

    @abstractmethod
    def poll_resize(self) -> bool:
        """
        Consume a pending resize notification.

        Returns:
            True if the surface was resized since the last call. The new
            dimensions are already reported by size() when this returns.
        """
        pass

    @abstractmethod
    def read_key(self) -> Optional[str]:
        """Return the next pending key, or None if there is none."""
        pass

    @abstractmethod
    def put(self, row: int, column: int, glyph: str, color_index: int):
        """Write one cell. Out-of-range coordinates are ignored."""
        pass

    @abstractmethod
    def commit(self):
        """Show everything written since the last erase."""
        pass

    @abstractmethod
    def erase(self):
        """Clear the frame buffer for the next frame."""
        pass

    def write_text(self, row: int, column: int, text: str, color_index: int = Colors.CLOCK):
        """Write a string one cell at a time, clipping like put()."""
        for offset, char in enumerate(text):
            self.put(row, column + offset, char, color_index)


class CursesSurface(TerminalSurface):
    """
    curses-backed surface.

    Expects the screen handed out by curses.wrapper(), which already takes
    care of initscr/endwin, cbreak, noecho and keypad.
    """

    def __init__(self, screen, install_signal_handler: bool = True):
        super().__init__()
        self.screen = screen
        self.palette_size = 0
        self._install_signal_handler = install_signal_handler
        self._previous_handler = None
        self._handler_installed = False

    def acquire(self):
        if not CURSES_AVAILABLE or curses is None:
            raise CapabilityUnavailable("curses library not available.")

        try:
            curses.curs_set(0)
        except curses.error as e:
            raise CapabilityUnavailable(
                "Terminal emulator lacks capabilities. (Can't hide cursor)."
            ) from e

        if not curses.has_colors():
            raise CapabilityUnavailable(
                "Terminal emulator lacks capabilities. (Can't have colors)."
            )
        try:
            self.palette_size = Colors.init_colors()
        except curses.error as e:
            raise CapabilityUnavailable(
                f"Terminal emulator lacks capabilities. (Can't set up colors: {e})."
            ) from e
        if self.palette_size < 1:
            raise CapabilityUnavailable(
                "Terminal emulator lacks capabilities. (No usable color palette)."
            )

        self.screen.nodelay(True)
        self.screen.keypad(True)

        # Handle terminal resize (Unix only - Windows doesn't have SIGWINCH)
        if self._install_signal_handler and hasattr(signal, 'SIGWINCH'):
            try:
                self._previous_handler = signal.signal(
                    signal.SIGWINCH, lambda *_: self.resize_flag.set()
                )
                self._handler_installed = True
            except ValueError:
                # Not the main thread; KEY_RESIZE from getch still works
                logger.debug("SIGWINCH handler not installed outside main thread")

        logger.info(f"Terminal acquired: {self.size()[0]}x{self.size()[1]}, "
                    f"{self.palette_size} colors")

    def release(self):
        if self._handler_installed:
            signal.signal(signal.SIGWINCH, self._previous_handler or signal.SIG_DFL)
            self._handler_installed = False
        if not CURSES_AVAILABLE or curses is None:
            return
        try:
            curses.curs_set(1)
        except curses.error:
            pass
        self.screen.clear()
        self.screen.refresh()

    def size(self) -> Tuple[int, int]:
        height, width = self.screen.getmaxyx()
        return width, height

    def poll_resize(self) -> bool:
        if not self.resize_flag.consume():
            return False
        # Let curses pick up the new terminal size before anyone asks for it
        curses.endwin()
        self.screen.refresh()
        try:
            columns, lines = os.get_terminal_size(sys.__stdout__.fileno())
        except (OSError, AttributeError, ValueError):
            columns = lines = None
        if columns and lines and curses.is_term_resized(lines, columns):
            curses.resizeterm(lines, columns)
        self.screen.clear()
        return True

    def read_key(self) -> Optional[str]:
        key = self.screen.getch()
        if key == -1:
            return None
        if key == curses.KEY_RESIZE:
            self.resize_flag.set()
            return None
        if 0 <= key < 256:
            return chr(key)
        return None

    def put(self, row: int, column: int, glyph: str, color_index: int):
        height, width = self.screen.getmaxyx()
        if row < 0 or column < 0 or row >= height or column >= width:
            return
        color_index = clamp_color_index(color_index, self.palette_size)
        try:
            self.screen.addstr(row, column, glyph, Colors.attr(color_index))
        except curses.error:
            # Writing the bottom-right cell moves the cursor off-screen
            pass

    def commit(self):
        self.screen.refresh()

    def erase(self):
        self.screen.erase()


class BufferSurface(TerminalSurface):
    """
    In-memory surface with scripted keys and resizes.

    Used when no real terminal is available, e.g. in tests.
    """

    def __init__(self, width: int = 80, height: int = 24, keys: Iterable[str] = (),
                 palette_size: int = Colors.MAX_DROP_INDEX + 1):
        super().__init__()
        self.width = width
        self.height = height
        self.palette_size = palette_size
        self.cells: Dict[Tuple[int, int], Tuple[str, int]] = {}
        self.keys: Deque[Optional[str]] = deque(keys)
        self.acquired = False
        self.commits = 0
        self.erases = 0
        self.rejected_writes = 0
        self.last_frame: Dict[Tuple[int, int], Tuple[str, int]] = {}
        self._pending_size: Optional[Tuple[int, int]] = None

    def acquire(self):
        self.acquired = True

    def release(self):
        self.acquired = False

    def resize_to(self, width: int, height: int):
        """Simulate the terminal changing size."""
        self._pending_size = (width, height)
        self.resize_flag.set()

    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def poll_resize(self) -> bool:
        if not self.resize_flag.consume():
            return False
        if self._pending_size is not None:
            self.width, self.height = self._pending_size
            self._pending_size = None
        self.cells.clear()
        return True

    def read_key(self) -> Optional[str]:
        if not self.keys:
            return None
        return self.keys.popleft()

    def put(self, row: int, column: int, glyph: str, color_index: int):
        if row < 0 or column < 0 or row >= self.height or column >= self.width:
            self.rejected_writes += 1
            return
        self.cells[(row, column)] = (glyph, clamp_color_index(color_index, self.palette_size))

    def commit(self):
        self.commits += 1
        self.last_frame = dict(self.cells)

    def erase(self):
        self.erases += 1
        self.cells.clear()

    def row_text(self, row: int, frame: Optional[Dict] = None) -> str:
        """Render one row of a frame as text, blanks for empty cells."""
        cells = self.cells if frame is None else frame
        return ''.join(cells.get((row, col), (' ', 0))[0] for col in range(self.width))
