"""
Coloured console logging shared by the converter, the HTTP service and the CLI.
"""

import sys
import threading

from colorama import init, Fore, Style

# Initialize colorama for cross-platform colored output
init(autoreset=True)


class ConsoleLogger:
    """Prints tagged, coloured log lines. Safe to use from several threads."""

    def __init__(self, debug: bool = False):
        self.debug_enabled = debug
        self._lock = threading.Lock()

    def _emit(self, tag: str, message: str, stream=None) -> None:
        with self._lock:
            print(f"{tag}{Style.RESET_ALL} {message}", file=stream or sys.stdout, flush=True)

    def debug(self, message: str) -> None:
        """Log debug message with color (only if debug mode is enabled)."""
        if self.debug_enabled:
            self._emit(f"{Fore.CYAN}[DEBUG]", message)

    def info(self, message: str) -> None:
        """Log info message with color."""
        self._emit(f"{Fore.GREEN}[INFO]", message)

    def warning(self, message: str) -> None:
        """Log warning message with color."""
        self._emit(f"{Fore.YELLOW}[WARNING]", message)

    def error(self, message: str) -> None:
        """Log error message with color."""
        self._emit(f"{Fore.RED}[ERROR]", message, stream=sys.stderr)

    def success(self, message: str) -> None:
        """Log success message with color."""
        self._emit(f"{Fore.GREEN}[OK]", message)


logger = ConsoleLogger()


def set_debug(enabled: bool) -> None:
    """Toggle debug output on the shared logger."""
    logger.debug_enabled = enabled
