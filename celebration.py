"""Confetti burst shown when a book is marked completed.

The physics lives in :class:`ConfettiBurst`, an explicit state machine advanced by
``tick(elapsed)``.  :class:`CelebrationRunner` drives bursts from any scheduler: the Tk
``after`` loop in the desktop app, or a manual loop in tests.
"""
from __future__ import annotations

import itertools
import logging
import math
import random
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from config import Config

if TYPE_CHECKING:
    from inventory import CollectionStore

logger = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"

DEFAULT_DURATION = 1200
DEFAULT_PIECES = 120
FADE_PORTION = 0.3


@dataclass
class Particle:
    x: float
    y: float
    vx: float
    vy: float
    size: float
    rotation: float
    spin: float
    alpha: float = 1.0

    def corners(self, scale: float = 1.0) -> List[float]:
        """Flat [x0, y0, x1, y1, ...] list of the rotated square, in surface pixels."""
        cos_r = math.cos(self.rotation)
        sin_r = math.sin(self.rotation)
        points: List[float] = []
        for dx, dy in ((-1, -1), (1, -1), (1, 1), (-1, 1)):
            px = dx * self.size
            py = dy * self.size
            points.append((self.x + px * cos_r - py * sin_r) * scale)
            points.append((self.y + px * sin_r + py * cos_r) * scale)
        return points


class ConfettiBurst:
    def __init__(
        self,
        width: float,
        height: float,
        *,
        title: str = "",
        duration: float = DEFAULT_DURATION,
        pieces: int = DEFAULT_PIECES,
        rng: Optional[random.Random] = None,
    ):
        self.width = width
        self.height = height
        self.scale = 1.0
        self.title = title
        self.duration = duration
        self.pieces = pieces
        self.rng = rng or random.Random()
        self.particles: List[Particle] = []
        self.state = IDLE

    def spawn(self) -> List[Particle]:
        rand = self.rng.random
        return [
            Particle(
                x=rand() * self.width,
                y=-rand() * self.height * 0.3,
                vx=(rand() - 0.5) * 2.2,
                vy=2.5 + rand() * 3.2,
                size=2 + rand() * 4,
                rotation=rand() * math.pi,
                spin=(rand() - 0.5) * 0.2,
            )
            for _ in range(self.pieces)
        ]

    def start(self) -> None:
        self.particles = self.spawn()
        self.state = RUNNING

    def tick(self, elapsed: float) -> None:
        if self.state != RUNNING:
            return
        fade_start = self.duration * (1 - FADE_PORTION)
        fading = elapsed > fade_start
        for particle in self.particles:
            particle.x += particle.vx
            particle.y += particle.vy
            particle.rotation += particle.spin
            if fading:
                particle.alpha = max(
                    0.0, 1 - (elapsed - fade_start) / (self.duration * FADE_PORTION)
                )

    def is_done(self, elapsed: float) -> bool:
        return elapsed >= self.duration

    def finish(self) -> None:
        self.particles = []
        self.state = IDLE

    def resize(self, width: float, height: float, scale: float = 1.0) -> None:
        self.width = width
        self.height = height
        self.scale = scale


class ConfettiSurface(Protocol):
    def size(self) -> Tuple[int, int]:
        ...

    def show(self) -> None:
        ...

    def hide(self) -> None:
        ...

    def draw(self, tag: str, particles: Sequence[Particle], scale: float) -> None:
        ...

    def erase(self, tag: str) -> None:
        ...


class ToneCue:
    """A single short beep. Failures never reach the caller."""

    def __init__(
        self,
        play: Callable[[float, float], None],
        *,
        frequency: float = 660.0,
        duration_ms: float = 140.0,
    ):
        self._play = play
        self.frequency = frequency
        self.duration_ms = duration_ms

    def play(self) -> None:
        try:
            self._play(self.frequency, self.duration_ms)
        except Exception as error:  # audio is best-effort
            logger.debug("Tone cue failed: %s", error)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class CelebrationRunner:
    def __init__(
        self,
        surface: ConfettiSurface,
        schedule: Callable[[Callable[[], None]], object],
        clock: Callable[[], float] = _monotonic_ms,
        *,
        duration: float = Config.CELEBRATION_MS,
        pieces: int = Config.CONFETTI_PIECES,
        sound_enabled: Callable[[], bool] = lambda: Config.SOUND_ENABLED,
        tone: Optional[ToneCue] = None,
        rng: Optional[random.Random] = None,
    ):
        self.surface = surface
        self.schedule = schedule
        self.clock = clock
        self.duration = duration
        self.pieces = pieces
        self.sound_enabled = sound_enabled
        self.tone = tone
        self.rng = rng
        self.active: Dict[str, ConfettiBurst] = {}
        self._ids = itertools.count(1)

    def attach(self, store: "CollectionStore") -> Callable[[], None]:
        return store.subscribe(lambda change: self.celebrate(change.title))

    def celebrate(self, title: str) -> ConfettiBurst:
        if self.tone is not None and self.sound_enabled():
            self.tone.play()

        width, height = self.surface.size()
        burst = ConfettiBurst(
            width,
            height,
            title=title,
            duration=self.duration,
            pieces=self.pieces,
            rng=self.rng,
        )
        tag = f"confetti-{next(self._ids)}"
        self.active[tag] = burst
        self.surface.show()
        burst.start()
        logger.info("Celebrating '%s'.", title)
        started = self.clock()

        def frame() -> None:
            elapsed = self.clock() - started
            burst.tick(elapsed)
            self.surface.draw(tag, burst.particles, burst.scale)
            if burst.is_done(elapsed):
                self._finish(tag)
            else:
                self.schedule(frame)

        self.schedule(frame)
        return burst

    def resize(self, width: float, height: float, scale: float = 1.0) -> None:
        for burst in self.active.values():
            burst.resize(width, height, scale)

    @property
    def running(self) -> bool:
        return bool(self.active)

    def _finish(self, tag: str) -> None:
        burst = self.active.pop(tag, None)
        if burst is not None:
            burst.finish()
        self.surface.erase(tag)
        if not self.active:
            self.surface.hide()
