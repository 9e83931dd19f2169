"""
Tests for the terminal surface layer.

The curses surface is exercised against mocked curses modules so the tests
run without a real terminal.
"""

import os
import signal
import sys
from unittest.mock import MagicMock, patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from digital_rain import colors, terminal
from digital_rain.terminal import BufferSurface, CursesSurface, ResizeFlag, TerminalSurface
from digital_rain.utils.error_handling import CapabilityUnavailable


class FakeCursesError(Exception):
    pass


class SignalMidConsumeFlag(ResizeFlag):
    """ResizeFlag that delivers SIGWINCH the first time consume() reads it once armed."""

    def __init__(self):
        self.armed = False
        self._value = False
        super().__init__()

    @property
    def _pending(self):
        if self.armed:
            self.armed = False
            signal.raise_signal(signal.SIGWINCH)
        return self._value

    @_pending.setter
    def _pending(self, value):
        self._value = value


@pytest.fixture
def mock_curses():
    """Patch curses in both the terminal and colors modules."""
    fake = MagicMock()
    fake.error = FakeCursesError
    fake.KEY_RESIZE = 410
    fake.COLORS = 256
    fake.COLOR_PAIRS = 256
    fake.has_colors.return_value = True
    fake.color_pair.side_effect = lambda n: n << 8
    with patch.object(terminal, 'curses', fake), \
            patch.object(terminal, 'CURSES_AVAILABLE', True), \
            patch.object(colors, 'curses', fake), \
            patch.object(colors, 'CURSES_AVAILABLE', True):
        yield fake


@pytest.fixture
def screen():
    scr = MagicMock()
    scr.getmaxyx.return_value = (24, 80)
    return scr


# ===========================================================================
# ResizeFlag Tests
# ===========================================================================

class TestResizeFlag:
    def test_starts_clear(self):
        flag = ResizeFlag()
        assert not flag.is_set()
        assert flag.consume() is False

    def test_consume_clears(self):
        flag = ResizeFlag()
        flag.set()
        assert flag.is_set()
        assert flag.consume() is True
        assert flag.consume() is False

    def test_repeated_sets_coalesce(self):
        flag = ResizeFlag()
        flag.set()
        flag.set()
        assert flag.consume() is True
        assert not flag.is_set()

    @pytest.mark.skipif(not hasattr(signal, 'SIGWINCH') or not hasattr(signal, 'raise_signal'),
                        reason="SIGWINCH not available on this platform")
    def test_handler_runs_while_consuming(self):
        flag = SignalMidConsumeFlag()
        calls = []

        def handler(signum, frame):
            calls.append(signum)
            flag.set()

        previous = signal.signal(signal.SIGWINCH, handler)
        try:
            flag.set()
            flag.armed = True
            assert flag.consume() is True
        finally:
            signal.signal(signal.SIGWINCH, previous)

        assert calls == [signal.SIGWINCH]
        assert flag.consume() is False

    @pytest.mark.skipif(not hasattr(signal, 'SIGWINCH') or not hasattr(signal, 'raise_signal'),
                        reason="SIGWINCH not available on this platform")
    def test_rapid_signals_never_block(self):
        flag = ResizeFlag()
        previous = signal.signal(signal.SIGWINCH, lambda *_: flag.set())
        try:
            for _ in range(200):
                signal.raise_signal(signal.SIGWINCH)
                assert flag.consume() is True
                assert flag.consume() is False
        finally:
            signal.signal(signal.SIGWINCH, previous)


# ===========================================================================
# TerminalSurface Interface Tests
# ===========================================================================

class TestTerminalSurface:
    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            TerminalSurface()

    def test_context_manager_acquires_and_releases(self):
        surface = BufferSurface()
        with surface as entered:
            assert entered is surface
            assert surface.acquired
        assert not surface.acquired

    def test_write_text_clips(self):
        surface = BufferSurface(width=5, height=2)
        surface.write_text(1, 2, "abcdef", 3)
        assert surface.row_text(1) == "  abc"
        assert surface.rejected_writes == 3


# ===========================================================================
# BufferSurface Tests
# ===========================================================================

class TestBufferSurface:
    def test_put_and_erase(self):
        surface = BufferSurface(width=4, height=3)
        surface.put(0, 0, '|', 255)
        assert surface.cells == {(0, 0): ('|', 255)}
        surface.erase()
        assert surface.cells == {}
        assert surface.erases == 1

    def test_put_ignores_out_of_range(self):
        surface = BufferSurface(width=4, height=3)
        for row, col in ((-1, 0), (0, -1), (3, 0), (0, 4)):
            surface.put(row, col, ':', 1)
        assert surface.cells == {}
        assert surface.rejected_writes == 4

    def test_color_clamped_to_palette(self):
        surface = BufferSurface(width=4, height=3, palette_size=8)
        surface.put(1, 1, ':', 240)
        assert surface.cells[(1, 1)] == (':', 7)

    def test_scripted_keys(self):
        surface = BufferSurface(keys=['a', None, 'q'])
        assert surface.read_key() == 'a'
        assert surface.read_key() is None
        assert surface.read_key() == 'q'
        assert surface.read_key() is None

    def test_resize_applies_on_poll(self):
        surface = BufferSurface(width=80, height=24)
        surface.resize_to(100, 40)
        assert surface.size() == (80, 24)
        assert surface.poll_resize() is True
        assert surface.size() == (100, 40)
        assert surface.poll_resize() is False

    def test_commit_snapshots_frame(self):
        surface = BufferSurface(width=4, height=3)
        surface.put(2, 3, '|', 9)
        surface.commit()
        surface.erase()
        assert surface.last_frame == {(2, 3): ('|', 9)}
        assert surface.commits == 1


# ===========================================================================
# CursesSurface Tests
# ===========================================================================

class TestCursesSurfaceAcquire:
    def test_acquire_success(self, mock_curses, screen):
        surface = CursesSurface(screen, install_signal_handler=False)
        surface.acquire()
        mock_curses.curs_set.assert_called_with(0)
        screen.nodelay.assert_called_with(True)
        assert surface.palette_size == 255
        assert mock_curses.init_pair.call_count == 255
        mock_curses.init_pair.assert_any_call(1, 0, -1)
        mock_curses.init_pair.assert_any_call(255, 254, -1)

    def test_cursor_cannot_hide(self, mock_curses, screen):
        mock_curses.curs_set.side_effect = FakeCursesError("no cursor control")
        surface = CursesSurface(screen, install_signal_handler=False)
        with pytest.raises(CapabilityUnavailable, match="hide cursor"):
            surface.acquire()

    def test_no_colors(self, mock_curses, screen):
        mock_curses.has_colors.return_value = False
        surface = CursesSurface(screen, install_signal_handler=False)
        with pytest.raises(CapabilityUnavailable, match="colors"):
            surface.acquire()

    def test_empty_palette(self, mock_curses, screen):
        mock_curses.COLORS = 0
        surface = CursesSurface(screen, install_signal_handler=False)
        with pytest.raises(CapabilityUnavailable, match="palette"):
            surface.acquire()

    def test_curses_missing(self, screen):
        with patch.object(terminal, 'CURSES_AVAILABLE', False):
            surface = CursesSurface(screen, install_signal_handler=False)
            with pytest.raises(CapabilityUnavailable):
                surface.acquire()

    def test_release_restores_cursor(self, mock_curses, screen):
        surface = CursesSurface(screen, install_signal_handler=False)
        surface.acquire()
        surface.release()
        mock_curses.curs_set.assert_called_with(1)
        screen.clear.assert_called()

    @pytest.mark.skipif(not hasattr(signal, 'SIGWINCH'),
                        reason="SIGWINCH not available on this platform")
    def test_sigwinch_sets_resize_flag(self, mock_curses, screen):
        previous = signal.getsignal(signal.SIGWINCH)
        surface = CursesSurface(screen)
        surface.acquire()
        try:
            handler = signal.getsignal(signal.SIGWINCH)
            handler(signal.SIGWINCH, None)
            assert surface.resize_flag.is_set()
        finally:
            surface.release()
        assert signal.getsignal(signal.SIGWINCH) == previous


class TestCursesSurfaceIO:
    def test_size_is_width_height(self, mock_curses, screen):
        surface = CursesSurface(screen, install_signal_handler=False)
        assert surface.size() == (80, 24)

    def test_put_in_range(self, mock_curses, screen):
        surface = CursesSurface(screen, install_signal_handler=False)
        surface.acquire()
        surface.put(3, 4, ':', 240)
        screen.addstr.assert_called_once_with(3, 4, ':', 241 << 8)

    def test_put_out_of_range_skips_write(self, mock_curses, screen):
        surface = CursesSurface(screen, install_signal_handler=False)
        surface.acquire()
        surface.put(24, 0, ':', 1)
        surface.put(0, 80, ':', 1)
        surface.put(-1, 0, ':', 1)
        screen.addstr.assert_not_called()

    def test_put_absorbs_curses_error(self, mock_curses, screen):
        screen.addstr.side_effect = FakeCursesError("bottom-right corner")
        surface = CursesSurface(screen, install_signal_handler=False)
        surface.acquire()
        surface.put(23, 79, '|', 255)

    def test_put_clamps_color(self, mock_curses, screen):
        mock_curses.COLORS = 8
        surface = CursesSurface(screen, install_signal_handler=False)
        surface.acquire()
        surface.put(0, 0, '|', 255)
        screen.addstr.assert_called_once_with(0, 0, '|', 8 << 8)

    def test_read_key(self, mock_curses, screen):
        surface = CursesSurface(screen, install_signal_handler=False)
        screen.getch.side_effect = [-1, ord('q'), 260, 410]
        assert surface.read_key() is None
        assert surface.read_key() == 'q'
        assert surface.read_key() is None
        assert not surface.resize_flag.is_set()
        assert surface.read_key() is None
        assert surface.resize_flag.is_set()

    def test_poll_resize(self, mock_curses, screen):
        surface = CursesSurface(screen, install_signal_handler=False)
        assert surface.poll_resize() is False
        mock_curses.endwin.assert_not_called()
        surface.resize_flag.set()
        assert surface.poll_resize() is True
        mock_curses.endwin.assert_called_once()
        screen.refresh.assert_called()
        screen.clear.assert_called_once()
        assert not surface.resize_flag.is_set()

    def test_commit_and_erase(self, mock_curses, screen):
        surface = CursesSurface(screen, install_signal_handler=False)
        surface.commit()
        surface.erase()
        screen.refresh.assert_called_once()
        screen.erase.assert_called_once()
