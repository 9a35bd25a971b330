"""Maps character offsets in the wrapped program onto the author-facing display text."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class PositionMapper:
    """Line-granular mapping between two texts that share their line layout.

    The wrapped program and the display text both carry the same breakpoint
    call lines, so line *n* of one corresponds to line *n* of the other
    (clamped to the display text's length).
    """

    def __init__(self, program_text: str, display_text: str):
        self._program_lines = program_text.split("\n")
        self._display_lines = display_text.split("\n")

    def program_line(self, offset: int) -> int:
        position = 0
        for index, line in enumerate(self._program_lines):
            length = len(line) + 1
            if position + length > offset:
                return index
            position += length
        return 0

    def display_line(self, offset: int) -> int:
        line = self.program_line(offset)
        return max(0, min(line, len(self._display_lines) - 1))

    def _line_start(self, line: int) -> int:
        return sum(len(text) + 1 for text in self._display_lines[:line])

    def map_offset(self, offset: int) -> int:
        """Start offset of the display line corresponding to *offset*."""
        try:
            return self._line_start(self.display_line(offset))
        except (TypeError, ValueError):
            logger.warning("Could not map offset %r", offset)
            return 0

    def map_range(self, start: int, end: int) -> tuple[int, int]:
        """Display range covering the lines spanned by ``[start, end)``."""
        first = self.display_line(start)
        last = self.display_line(max(start, end - 1))
        return self._line_start(first), self._line_start(last) + len(
            self._display_lines[last]
        )
