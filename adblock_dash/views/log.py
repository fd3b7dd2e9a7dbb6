# adblock_dash/views/log.py
from collections import deque
from datetime import datetime
from typing import Deque

from textual.widgets import Static


class LogView(Static):
    """Rolling message panel; keeps the last ``max_lines`` entries."""

    def __init__(self, *args, max_lines: int = 4, **kwargs):
        super().__init__(*args, **kwargs)
        self._lines: Deque[str] = deque(maxlen=max_lines)

    def write(self, text: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        self._lines.append(f"[dim]{stamp}[/dim] {text}")
        self.update("\n".join(self._lines))

    def clear(self) -> None:
        self._lines.clear()
        self.update("")
