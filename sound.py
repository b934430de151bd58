"""Alert tones synthesized with numpy and played through sounddevice."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from interfaces import Scheduler, TimerHandle
from scheduler import ThreadingScheduler

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

CHORD_FREQUENCIES = (523.0, 659.0, 784.0)  # C5, E5, G5
ATTACK_S = 0.01
FLOOR_GAIN = 0.01


class AlertSoundService:
    """Owns audio playback for the station; one tone plays at a time."""

    def __init__(
        self,
        sample_rate: int = 44100,
        volume: float = 0.3,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.volume = volume
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.Lock()
        self._playing = False
        self._reset_timer: Optional[TimerHandle] = None
        self._closed = False

    @property
    def playing(self) -> bool:
        return self._playing

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------

    def tone(self, frequency: float, duration_ms: int, volume: Optional[float] = None) -> Any:
        """Sine tone with a 10 ms attack and an exponential decay."""
        peak = self.volume if volume is None else volume
        duration_s = duration_ms / 1000.0
        t = np.arange(int(self.sample_rate * duration_s), dtype=np.float32) / self.sample_rate
        decay_s = max(duration_s - ATTACK_S, 1e-6)
        ratio = FLOOR_GAIN / peak if peak > 0 else 1.0
        envelope = np.where(
            t < ATTACK_S,
            peak * t / ATTACK_S,
            peak * np.power(ratio, (t - ATTACK_S) / decay_s),
        )
        return (np.sin(2 * np.pi * frequency * t) * envelope).astype(np.float32)

    def double_beep(self) -> Any:
        first = self.tone(800.0, 100)
        gap = np.zeros(int(self.sample_rate * 0.05), dtype=np.float32)
        second = self.tone(1000.0, 150)
        return np.concatenate([first, gap, second])

    def pleasant_chord(self) -> Any:
        stagger = int(self.sample_rate * 0.02)
        voice_len = int(self.sample_rate * 0.3)
        out = np.zeros(voice_len + stagger * (len(CHORD_FREQUENCIES) - 1), dtype=np.float32)
        for index, frequency in enumerate(CHORD_FREQUENCIES):
            voice = self.tone(frequency, 300, volume=self.volume * 0.3)
            start = index * stagger
            out[start:start + len(voice)] += voice
        return out

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play_notification(self) -> bool:
        return self._play("chord", self.pleasant_chord if np is not None else None, hold_ms=400)

    def play_beep(self, frequency: float = 800.0, duration_ms: int = 200) -> bool:
        build = (lambda: self.tone(frequency, duration_ms)) if np is not None else None
        return self._play("beep", build, hold_ms=duration_ms + 100)

    def play_double_beep(self) -> bool:
        return self._play("double beep", self.double_beep if np is not None else None, hold_ms=400)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._cancel_reset_locked()
            self._playing = False
        if sd is not None:
            try:
                sd.stop()
            except Exception as exc:
                logger.warning("failed to stop audio playback: %s", exc)

    def _play(self, name: str, build: Any, hold_ms: int) -> bool:
        if build is None or sd is None:
            logger.warning("%s skipped: numpy/sounddevice not installed", name)
            return False

        with self._lock:
            if self._closed:
                return False
            if self._playing:
                logger.debug("%s skipped (already playing)", name)
                return False
            self._playing = True

        try:
            sd.play(build(), self.sample_rate)
        except Exception as exc:
            logger.warning("failed to play %s: %s", name, exc)
            with self._lock:
                self._playing = False
            return False

        with self._lock:
            self._cancel_reset_locked()
            self._reset_timer = self._scheduler.call_later(hold_ms, self._on_finished)
        logger.debug("%s played", name)
        return True

    def _on_finished(self) -> None:
        with self._lock:
            self._reset_timer = None
            self._playing = False

    def _cancel_reset_locked(self) -> None:
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None
