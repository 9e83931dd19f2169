"""
Digital Rain Animation - Terminal Rain Loop

Renders falling colored glyphs with a centered live clock on top.

Features:
- Drop density and speed adapt to the terminal size
- Terminal resize rebuilds the drop pool between frames
- Fixed frame delay, configurable from the command line

Usage:
    digital-rain
    digital-rain 40

Keyboard Shortcuts:
    [q] Quit
"""

import argparse
import logging
import random
import sys
import time
from datetime import datetime
from typing import Callable, List, Optional

# Handle curses import for Windows compatibility
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    curses = None
    CURSES_AVAILABLE = False

from .colors import Colors
from .drops import DropPool, default_rng, density_for
from .models import LoopState, RainConfig, RainState
from .terminal import CursesSurface, TerminalSurface
from .utils.error_handling import (
    CapabilityUnavailable,
    ErrorCategory,
    OutOfRange,
    configure_logging,
    handle_error,
)

logger = logging.getLogger(__name__)

USAGE_TEXT = """Usage: digital-rain [frame delay in milliseconds]
No arguments required. Default frame delay is 80 ms.
Hit 'q' to exit."""


def format_clock(now: datetime, fmt: str = "%d/%m/%Y %H:%M:%S") -> str:
    """Format the clock overlay text."""
    return now.strftime(fmt)


def clock_position(width: int, height: int, text: str):
    """(row, column) that centers text on a width x height surface."""
    return height // 2, (width - len(text)) // 2


class AnimationLoop:
    """
    Frame driver for the rain.

    Owns the drop pool and the loop state. Each step() advances and draws
    every drop, overlays the clock, sleeps for the frame delay and then
    checks for the quit key. Resizes are picked up at the start of a step,
    before anything is drawn.
    """

    def __init__(self, surface: TerminalSurface, config: Optional[RainConfig] = None,
                 rng: Optional[random.Random] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 sleep: Callable[[float], None] = time.sleep):
        self.surface = surface
        self.config = config or RainConfig()
        self.rng = rng or default_rng()
        self.clock = clock
        self.sleep = sleep
        self.state = RainState()
        self.pool: Optional[DropPool] = None

    @property
    def running(self) -> bool:
        return self.state.state != LoopState.TERMINATED

    def start(self):
        """Size the first epoch's pool from the current surface dimensions."""
        self._update_dimensions()
        density = density_for(self.state.width, self.state.height)
        self.state.speed_mode = density.speed_mode
        self.state.state = LoopState.RUNNING
        self.pool = DropPool(density.count, self.state.width, self.state.height,
                             density.speed_mode, rng=self.rng,
                             palette_size=self.surface.palette_size)
        logger.info(f"Rain started: {self.state.width}x{self.state.height}, "
                    f"{density.count} drops ({density.speed_mode.value}), "
                    f"{self.config.frame_delay_ms}ms frames")

    def _update_dimensions(self):
        self.state.width, self.state.height = self.surface.size()

    def _handle_resize(self):
        """Start a new epoch sized for the new terminal dimensions."""
        self.state.state = LoopState.RESIZING
        self._update_dimensions()
        density = density_for(self.state.width, self.state.height)
        self.state.speed_mode = density.speed_mode
        self.pool.resize(density.count, self.state.width, self.state.height,
                         density.speed_mode)
        self.state.epoch += 1
        self.state.state = LoopState.RUNNING
        logger.debug(f"Resize: epoch {self.state.epoch}, {self.state.width}x{self.state.height}, "
                     f"{density.count} drops ({density.speed_mode.value})")

    def _draw_drops(self):
        for i in range(len(self.pool)):
            drop = self.pool.element_at(i)
            drop.advance()
            drop.draw(self.surface)

    def _draw_clock(self):
        text = format_clock(self.clock(), self.config.clock_format)
        row, column = clock_position(self.state.width, self.state.height, text)
        self.surface.write_text(row, column, text, Colors.CLOCK)

    def step(self) -> LoopState:
        """Run one frame and return the resulting loop state."""
        if self.pool is None:
            self.start()
        if not self.running:
            return self.state.state

        if self.surface.poll_resize():
            self._handle_resize()

        self._draw_drops()
        self._draw_clock()
        self.surface.commit()
        self.state.frames += 1

        self.sleep(self.config.frame_delay)

        key = self.surface.read_key()
        if key == self.config.quit_key:
            self.state.state = LoopState.TERMINATED
            logger.info(f"Quit key pressed after {self.state.frames} frames")
            return self.state.state

        self.surface.erase()
        return self.state.state

    def stop(self):
        self.state.state = LoopState.TERMINATED

    def run(self) -> int:
        """Run frames until terminated. Returns the number of frames drawn."""
        if self.pool is None:
            self.start()
        while self.running:
            try:
                self.step()
            except KeyboardInterrupt:
                self.stop()
            except OutOfRange as e:
                handle_error(e, "draw_frame", ErrorCategory.INTERNAL,
                             additional_context={'frame': self.state.frames,
                                                 'pool_size': len(self.pool)},
                             reraise=True)
        return self.state.frames


def run_rain(config: Optional[RainConfig] = None) -> int:
    """
    Run the rain in the current terminal until the quit key is pressed.

    Raises:
        CapabilityUnavailable: If the terminal cannot support the animation

    Returns:
        Number of frames drawn
    """
    config = config or RainConfig()
    if not CURSES_AVAILABLE or curses is None:
        if sys.platform == 'win32':
            raise CapabilityUnavailable(
                "curses library not available. Try: pip install windows-curses"
            )
        raise CapabilityUnavailable("curses library not available.")

    def _main_loop(screen) -> int:
        with CursesSurface(screen) as surface:
            return AnimationLoop(surface, config).run()

    return curses.wrapper(_main_loop)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="digital-rain",
        description="Digital Rain - falling glyphs with a live clock",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    digital-rain           # Run with the default 80 ms frame delay
    digital-rain 40        # Faster animation

Environment:
    DIGITAL_RAIN_LOG        Write debug logs to this file
    DIGITAL_RAIN_LOG_LEVEL  Log level for that file (default: DEBUG)

Keyboard Shortcuts:
    q     Quit
        """
    )
    parser.add_argument("delay", nargs="?", default=None,
                        help="Frame delay in milliseconds (default: 80)")
    return parser


def parse_delay(value: str) -> int:
    """Parse a frame delay argument as a whole, non-negative millisecond count."""
    delay = int(value.strip())
    if delay < 0:
        raise ValueError(f"negative frame delay: {delay}")
    return delay


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the digital-rain command."""
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = build_parser()

    if len(argv) > 1:
        print(USAGE_TEXT)
        return 0

    # Unknown dash-prefixed arguments are malformed delays, not argparse errors
    args, unknown = parser.parse_known_args(argv)
    delay = unknown[0] if unknown else args.delay
    configure_logging()

    config = RainConfig()
    if delay is not None:
        try:
            config = RainConfig(frame_delay_ms=parse_delay(delay))
        except ValueError as e:
            handle_error(e, "parse_arguments", ErrorCategory.CONFIG,
                         additional_context={'argument': delay})
            print(USAGE_TEXT)
            return 1

    try:
        run_rain(config)
    except CapabilityUnavailable as e:
        handle_error(e, "acquire_terminal", ErrorCategory.TERMINAL)
        print(e, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
