"""Wall clock and timer helpers shared by the scanning and alert services."""

from __future__ import annotations

import threading
import time
from typing import Callable


def now_ms() -> int:
    return int(time.time() * 1000)


class ThreadingScheduler:
    """Runs callbacks after a delay on daemon ``threading.Timer`` threads."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(delay_ms, 0) / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return timer
