"""ANSI display surface and non-blocking key polling for the donut animation."""

from __future__ import annotations

import os
import select
import shutil
import sys
import termios
import tty
from typing import List, Optional, Tuple

TermiosAttr = List[int | List[bytes | int]]

_CLEAR_SCREEN = "\033[2J"
_CURSOR_HOME = "\033[H"
_HIDE_CURSOR = "\033[?25l"
_SHOW_CURSOR = "\033[?25h"
_RESET_STYLE = "\033[0m"


class TerminalController:
    """Context manager that owns the terminal while frames are being drawn."""

    def __init__(self, *, clear: bool = True) -> None:
        self._clear = clear
        self._cursor_hidden = False
        self._stdin_fd: Optional[int] = None
        self._termios_before: Optional[TermiosAttr] = None

    @property
    def input_enabled(self) -> bool:
        return self._stdin_fd is not None

    def __enter__(self) -> "TerminalController":
        if self._clear:
            sys.stdout.write(_CLEAR_SCREEN)
        sys.stdout.write(_CURSOR_HOME + _HIDE_CURSOR)
        sys.stdout.flush()
        self._cursor_hidden = True

        if sys.stdin.isatty():
            fd = sys.stdin.fileno()
            try:
                self._termios_before = termios.tcgetattr(fd)
                tty.setcbreak(fd)
                self._stdin_fd = fd
            except termios.error:
                self._termios_before = None
                self._stdin_fd = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.restore()

    def restore(self) -> None:
        if self._cursor_hidden:
            sys.stdout.write(_RESET_STYLE + _SHOW_CURSOR)
            sys.stdout.flush()
            self._cursor_hidden = False

        if self._stdin_fd is not None and self._termios_before is not None:
            try:
                termios.tcsetattr(self._stdin_fd, termios.TCSADRAIN, self._termios_before)
            except termios.error:
                pass
        self._stdin_fd = None
        self._termios_before = None

    def draw(self, frame: str) -> None:
        sys.stdout.write(_CURSOR_HOME)
        sys.stdout.write(frame)
        sys.stdout.flush()

    def size_tuple(self) -> Tuple[int, int]:
        size = shutil.get_terminal_size(fallback=(100, 40))
        return size.columns, size.lines

    def poll_keys(self) -> List[str]:
        """Return the keys pressed since the last call without blocking.

        Escape sequences (arrow keys and friends) are consumed and dropped.
        Ctrl-C is turned into ``KeyboardInterrupt`` because cbreak mode keeps
        the signal from reaching the driver while it is reading.
        """
        if self._stdin_fd is None:
            return []

        keys: List[str] = []
        try:
            while True:
                char = self._read_char()
                if char is None:
                    break
                if char == "\x03":
                    raise KeyboardInterrupt
                if char == "\x1b":
                    self._drain_escape_sequence()
                    continue
                if char:
                    keys.append(char)
        except OSError:
            return keys
        return keys

    def _read_char(self) -> Optional[str]:
        if self._stdin_fd is None:
            return None
        readable, _, _ = select.select([self._stdin_fd], [], [], 0)
        if not readable:
            return None
        data = os.read(self._stdin_fd, 1)
        if not data:
            return None
        return data.decode("utf-8", errors="ignore")

    def _drain_escape_sequence(self) -> None:
        while True:
            char = self._read_char()
            if char is None or char.isalpha() or char == "~":
                return
