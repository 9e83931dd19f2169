"""
Error Handling Utilities for Digital Rain

Provides consistent error handling across the package with:
1. A small exception taxonomy (capability, bounds, configuration)
2. Error categorization and severity levels
3. Detailed error logging with context
4. Logging setup that stays off the terminal while curses owns it

USAGE:
    from digital_rain.utils.error_handling import (
        handle_error,
        ErrorCategory,
        CapabilityUnavailable,
    )

    try:
        surface.acquire()
    except CapabilityUnavailable as e:
        handle_error(e, "acquire_terminal", ErrorCategory.TERMINAL)
"""

import logging
import os
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

LOG_FILE_ENV = 'DIGITAL_RAIN_LOG'
LOG_LEVEL_ENV = 'DIGITAL_RAIN_LOG_LEVEL'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


class RainError(Exception):
    """Base class for digital rain errors."""
    pass


class CapabilityUnavailable(RainError):
    """Raised when the terminal cannot provide raw mode, cursor hiding or colors."""
    pass


class OutOfRange(RainError, IndexError):
    """Raised on an out-of-bounds drop pool access."""

    def __init__(self, index: int, size: int):
        super().__init__(f"Bad access: index {index} outside [0, {size})")
        self.index = index
        self.size = size


class ErrorCategory(Enum):
    """Categories of errors for proper handling and reporting."""
    # Terminal capability / curses errors
    TERMINAL = "terminal"

    # Command line or environment configuration errors
    CONFIG = "configuration"

    # Broken internal invariants (logic bugs)
    INTERNAL = "internal"

    # Unknown/uncategorized
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    # Warning - something unexpected but not critical
    WARNING = "warning"

    # Error - operation failed but process can report it
    ERROR = "error"

    # Fatal - process must exit
    FATAL = "fatal"


@dataclass
class ErrorContext:
    """What failed, where, and how badly."""
    error: Exception
    category: ErrorCategory
    severity: ErrorSeverity
    operation: str
    additional_context: Dict[str, Any] = field(default_factory=dict)
    stack_trace: str = ""

    def __post_init__(self):
        if not self.stack_trace and self.error.__traceback__ is not None:
            self.stack_trace = ''.join(traceback.format_exception(
                type(self.error), self.error, self.error.__traceback__))

    def to_dict(self) -> Dict[str, Any]:
        """Structured form attached to the log record as ``error_context``."""
        return {
            'error_type': type(self.error).__name__,
            'error_message': str(self.error),
            'category': self.category.value,
            'severity': self.severity.value,
            'operation': self.operation,
            'additional_context': dict(self.additional_context),
        }

    def format_log_message(self) -> str:
        """One summary line, then context and trace lines indented below it."""
        summary = (f"{self.operation} failed ({self.category.value}, "
                   f"{self.severity.value}): {type(self.error).__name__}: {self.error}")
        details = [f"{key}={value}" for key, value in self.additional_context.items()]
        lines = [summary]
        if details:
            lines.append("  " + ", ".join(details))
        lines.extend("  " + line for line in self.stack_trace.rstrip().splitlines())
        return '\n'.join(lines)


def determine_severity(error: Exception, category: ErrorCategory) -> ErrorSeverity:
    """Determine the severity level for an error based on type and category."""
    if isinstance(error, (SystemExit, KeyboardInterrupt)):
        return ErrorSeverity.FATAL

    # Startup without a usable terminal cannot continue
    if isinstance(error, CapabilityUnavailable):
        return ErrorSeverity.FATAL

    # Invariant violations surface as fatal so they show up in testing
    if category == ErrorCategory.INTERNAL or isinstance(error, OutOfRange):
        return ErrorSeverity.FATAL

    if category == ErrorCategory.CONFIG:
        return ErrorSeverity.WARNING

    return ErrorSeverity.ERROR


def handle_error(
    error: Exception,
    operation: str,
    category: ErrorCategory = ErrorCategory.UNKNOWN,
    severity: Optional[ErrorSeverity] = None,
    additional_context: Optional[Dict[str, Any]] = None,
    reraise: bool = False,
) -> ErrorContext:
    """
    Handle an error with detailed logging.

    Args:
        error: The exception that occurred
        operation: Name of the operation that failed
        category: Category of the error
        severity: Severity level (auto-determined if not provided)
        additional_context: Additional context information
        reraise: Whether to re-raise the exception after handling

    Returns:
        ErrorContext with full error details
    """
    if severity is None:
        severity = determine_severity(error, category)

    context = ErrorContext(
        error=error,
        category=category,
        severity=severity,
        operation=operation,
        additional_context=additional_context or {},
    )

    log_level_map = {
        ErrorSeverity.WARNING: logging.WARNING,
        ErrorSeverity.ERROR: logging.ERROR,
        ErrorSeverity.FATAL: logging.CRITICAL,
    }
    logger.log(log_level_map.get(severity, logging.ERROR), context.format_log_message(),
               extra={'error_context': context.to_dict()})

    if reraise:
        raise error

    return context


def configure_logging(environ: Optional[Dict[str, str]] = None) -> Optional[str]:
    """
    Route package logging to a file, or silence it.

    curses owns the terminal while the animation runs, so log records never
    go to stderr. Set DIGITAL_RAIN_LOG to a file path to capture them, and
    DIGITAL_RAIN_LOG_LEVEL to change the level (default DEBUG).

    Returns:
        The log file path in use, or None when logging is disabled or the
        file cannot be opened
    """
    environ = os.environ if environ is None else environ
    root = logging.getLogger('digital_rain')
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    log_path = environ.get(LOG_FILE_ENV)
    if not log_path:
        root.addHandler(logging.NullHandler())
        root.propagate = False
        return None

    level_name = environ.get(LOG_LEVEL_ENV, 'DEBUG').upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.DEBUG

    try:
        handler = logging.FileHandler(log_path, encoding='utf-8')
    except OSError as e:
        # Still before curses starts, so stderr is usable here
        print(f"digital-rain: cannot open log file {log_path}: {e}", file=sys.stderr)
        root.addHandler(logging.NullHandler())
        root.propagate = False
        return None
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    return log_path
