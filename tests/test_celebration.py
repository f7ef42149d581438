from __future__ import annotations

import math
import random
import unittest
from typing import Callable, Dict, List, Sequence, Tuple

from celebration import (
    IDLE,
    RUNNING,
    CelebrationRunner,
    ConfettiBurst,
    Particle,
    ToneCue,
)
from conftest import draft, make_clock
from inventory import COMPLETED, READING, CollectionStore
from storage import MemoryStorage


class FakeSurface:
    def __init__(self, width: int = 800, height: int = 600):
        self.width = width
        self.height = height
        self.visible = False
        self.frames: Dict[str, List[List[Particle]]] = {}

    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def show(self) -> None:
        self.visible = True

    def hide(self) -> None:
        self.visible = False

    def draw(self, tag: str, particles: Sequence[Particle], scale: float) -> None:
        self.frames.setdefault(tag, []).append(list(particles))

    def erase(self, tag: str) -> None:
        self.frames.pop(tag, None)


class ManualScheduler:
    """Collects frame callbacks; ``run`` plays them back while advancing the clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.queue: List[Callable[[], None]] = []

    def schedule(self, callback: Callable[[], None]) -> None:
        self.queue.append(callback)

    def clock(self) -> float:
        return self.now

    def run(self, step: float = 16.0, limit: int = 1000) -> int:
        frames = 0
        while self.queue and frames < limit:
            callback = self.queue.pop(0)
            self.now += step
            callback()
            frames += 1
        return frames


class ConfettiBurstTests(unittest.TestCase):
    def test_spawn_ranges(self) -> None:
        burst = ConfettiBurst(400, 300, pieces=200, rng=random.Random(7))
        burst.start()

        self.assertEqual(burst.state, RUNNING)
        self.assertEqual(len(burst.particles), 200)
        for particle in burst.particles:
            self.assertTrue(0 <= particle.x < 400)
            self.assertTrue(-90 < particle.y <= 0)
            self.assertTrue(-1.1 <= particle.vx < 1.1)
            self.assertTrue(2.5 <= particle.vy < 5.7)
            self.assertTrue(2 <= particle.size < 6)
            self.assertTrue(0 <= particle.rotation < math.pi)
            self.assertTrue(-0.1 <= particle.spin < 0.1)
            self.assertEqual(particle.alpha, 1.0)

    def test_tick_moves_particles_by_velocity(self) -> None:
        burst = ConfettiBurst(100, 100, pieces=1, rng=random.Random(1))
        burst.start()
        particle = burst.particles[0]
        before = (particle.x, particle.y, particle.rotation)

        burst.tick(16)

        self.assertAlmostEqual(particle.x, before[0] + particle.vx)
        self.assertAlmostEqual(particle.y, before[1] + particle.vy)
        self.assertAlmostEqual(particle.rotation, before[2] + particle.spin)
        self.assertEqual(particle.alpha, 1.0)

    def test_fades_during_final_thirty_percent(self) -> None:
        burst = ConfettiBurst(100, 100, duration=1000, pieces=3, rng=random.Random(2))
        burst.start()

        burst.tick(700)
        self.assertTrue(all(p.alpha == 1.0 for p in burst.particles))
        burst.tick(850)
        self.assertTrue(all(math.isclose(p.alpha, 0.5) for p in burst.particles))
        burst.tick(1000)
        self.assertTrue(all(p.alpha == 0.0 for p in burst.particles))
        burst.tick(1300)
        self.assertTrue(all(p.alpha == 0.0 for p in burst.particles))

    def test_is_done_is_pure(self) -> None:
        burst = ConfettiBurst(100, 100, duration=1200)
        self.assertFalse(burst.is_done(0))
        self.assertFalse(burst.is_done(1199.9))
        self.assertTrue(burst.is_done(1200))
        self.assertTrue(burst.is_done(5000))
        self.assertEqual(burst.state, IDLE)

    def test_idle_burst_ignores_ticks(self) -> None:
        burst = ConfettiBurst(100, 100, pieces=2)
        burst.tick(100)
        self.assertEqual(burst.particles, [])

    def test_resize_updates_coordinate_system(self) -> None:
        burst = ConfettiBurst(100, 100, pieces=1, rng=random.Random(3))
        burst.start()
        burst.resize(300, 200, scale=2.0)
        self.assertEqual((burst.width, burst.height, burst.scale), (300, 200, 2.0))

        particle = Particle(x=10, y=20, vx=0, vy=0, size=2, rotation=0, spin=0)
        self.assertEqual(particle.corners(burst.scale), [16, 36, 24, 36, 24, 44, 16, 44])


class CelebrationRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.surface = FakeSurface()
        self.scheduler = ManualScheduler()
        self.tones: List[Tuple[float, float]] = []
        self.sound_on = True
        self.runner = CelebrationRunner(
            self.surface,
            self.scheduler.schedule,
            self.scheduler.clock,
            duration=1200,
            pieces=10,
            sound_enabled=lambda: self.sound_on,
            tone=ToneCue(lambda frequency, duration: self.tones.append((frequency, duration))),
            rng=random.Random(11),
        )

    def test_runs_until_duration_then_hides(self) -> None:
        burst = self.runner.celebrate("Dune")

        self.assertTrue(self.surface.visible)
        self.assertEqual(burst.title, "Dune")
        self.assertEqual(burst.state, RUNNING)

        frames = self.scheduler.run(step=16)

        self.assertEqual(frames, math.ceil(1200 / 16))
        self.assertFalse(self.surface.visible)
        self.assertEqual(burst.state, IDLE)
        self.assertFalse(self.runner.running)
        self.assertEqual(self.surface.frames, {})
        self.assertEqual(self.tones, [(660.0, 140.0)])

    def test_each_frame_redraws_every_particle(self) -> None:
        self.runner.celebrate("Dune")
        self.scheduler.run(step=16, limit=3)
        (frames,) = self.surface.frames.values()
        self.assertEqual([len(frame) for frame in frames], [10, 10, 10])

    def test_sound_preference_off_is_silent(self) -> None:
        self.sound_on = False
        self.runner.celebrate("Dune")
        self.assertEqual(self.tones, [])

    def test_audio_failure_never_blocks_celebration(self) -> None:
        def broken(_frequency: float, _duration: float) -> None:
            raise RuntimeError("no audio device")

        self.runner.tone = ToneCue(broken)
        burst = self.runner.celebrate("Dune")
        self.assertEqual(burst.state, RUNNING)
        self.scheduler.run()
        self.assertEqual(burst.state, IDLE)

    def test_concurrent_bursts_are_independent(self) -> None:
        first = self.runner.celebrate("One")
        self.scheduler.run(step=16, limit=10)
        second = self.runner.celebrate("Two")
        self.assertEqual(len(self.runner.active), 2)

        self.scheduler.run(step=16)
        self.assertEqual(first.state, IDLE)
        self.assertEqual(second.state, IDLE)
        self.assertFalse(self.surface.visible)

    def test_resize_reaches_running_bursts(self) -> None:
        burst = self.runner.celebrate("Dune")
        self.runner.resize(1024, 768, 2.0)
        self.assertEqual((burst.width, burst.height, burst.scale), (1024, 768, 2.0))

    def test_attach_listens_for_completed_transitions(self) -> None:
        store = CollectionStore(MemoryStorage(), clock=make_clock())
        self.runner.attach(store)
        book = store.create(draft(status=READING))

        store.set_status(book.id, READING)
        self.assertFalse(self.runner.running)

        store.set_status(book.id, COMPLETED)
        self.assertTrue(self.runner.running)
        (burst,) = self.runner.active.values()
        self.assertEqual(burst.title, "Dune")

        store.set_status(book.id, COMPLETED)
        self.assertEqual(len(self.runner.active), 1)


if __name__ == "__main__":
    unittest.main()
