"""Iterative force simulation and the clock that drives it.

A `Simulation` cools its `alpha` toward `alpha_target` every tick, applies its
forces and integrates velocities into positions. Pinned nodes (`fx`/`fy` set)
are snapped to their pinned coordinates and never integrated.

All running simulations share one `SimulationClock`, a single asyncio task
ticking every registered simulation once per frame.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..core.signals import Signal
from .forces import Force

logger = logging.getLogger(__name__)

FRAME_INTERVAL = 1 / 60
INITIAL_RADIUS = 10
INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))


class SimulationClock:
    """Fixed-rate scheduler shared by every simulation of a diagram."""

    def __init__(self, interval: float = FRAME_INTERVAL):
        self.interval = interval
        self._sims: List["Simulation"] = []
        self._task: Optional[asyncio.Task] = None
        self.frames = 0

    def register(self, sim: "Simulation") -> None:
        if sim not in self._sims:
            self._sims.append(sim)
        self.wake()

    def unregister(self, sim: "Simulation") -> None:
        if sim in self._sims:
            self._sims.remove(sim)

    def wake(self) -> None:
        if self._task is not None and not self._task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._task = loop.create_task(self._run())

    async def _run(self) -> None:
        while self._sims:
            self.frame()
            await asyncio.sleep(self.interval)
        self._task = None

    def frame(self) -> None:
        """Advance every registered simulation by one tick."""
        self.frames += 1
        for sim in list(self._sims):
            if sim.running:
                sim.step()

    def close(self) -> None:
        self._sims.clear()
        if self._task is not None:
            self._task.cancel()
            self._task = None


class Simulation:
    def __init__(self, nodes: Sequence[Any] = (), *, name: str = "", clock: Optional[SimulationClock] = None, seed: int = 0):
        self.name = name
        self.clock = clock
        self.alpha = 1.0
        self.alpha_min = 0.001
        self.alpha_decay = 1 - math.pow(self.alpha_min, 1 / 300)
        self.alpha_target = 0.0
        self.velocity_decay = 0.6
        # cooling state stashed by a grouping toggle
        self.previous_alpha: Optional[float] = None

        self.random = random.Random(seed)
        self.forces: Dict[str, Force] = {}
        self.nodes: List[Any] = []
        self.running = False
        self.ticks = 0

        self.ticked = Signal("tick")
        self.ended = Signal("end")

        self.set_nodes(nodes)

    def set_nodes(self, nodes: Sequence[Any]) -> "Simulation":
        self.nodes = list(nodes)
        for i, node in enumerate(self.nodes):
            node.index = i
            if node.fx is not None:
                node.x = node.fx
            if node.fy is not None:
                node.y = node.fy
            if node.x is None or node.y is None:
                radius = INITIAL_RADIUS * math.sqrt(0.5 + i)
                angle = i * INITIAL_ANGLE
                node.x = radius * math.cos(angle)
                node.y = radius * math.sin(angle)
            if node.vx is None or node.vy is None:
                node.vx = node.vy = 0.0
        for force in self.forces.values():
            force.initialize(self.nodes, self.random)
        return self

    def force(self, name: str, force: Optional[Force] = None) -> Optional[Force]:
        """Get a force by name, or register/replace it when `force` is given."""
        if force is None:
            return self.forces.get(name)
        force.initialize(self.nodes, self.random)
        self.forces[name] = force
        return force

    def remove_force(self, name: str) -> None:
        self.forces.pop(name, None)

    def tick(self, iterations: int = 1) -> "Simulation":
        """Advance the physics without emitting tick events."""
        for _ in range(iterations):
            self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay
            for force in list(self.forces.values()):
                force(self.alpha)
            for node in self.nodes:
                if node.fx is None:
                    node.vx *= self.velocity_decay
                    node.x += node.vx
                else:
                    node.x = node.fx
                    node.vx = 0.0
                if node.fy is None:
                    node.vy *= self.velocity_decay
                    node.y += node.vy
                else:
                    node.y = node.fy
                    node.vy = 0.0
            self.ticks += 1
        return self

    def step(self) -> bool:
        """One scheduled tick: advance, notify, stop once cooled. Returns `running`."""
        self.tick()
        self.ticked.emit(self)
        if self.alpha < self.alpha_min:
            self.stop()
            self.ended.emit(self)
        return self.running

    def restart(self) -> "Simulation":
        self.running = True
        if self.clock is not None:
            self.clock.register(self)
        return self

    def stop(self) -> "Simulation":
        self.running = False
        if self.clock is not None:
            self.clock.unregister(self)
        return self

    def run_until_settled(self, max_ticks: int = 300) -> int:
        """Step synchronously until cooled or `max_ticks` elapse. Returns ticks run."""
        self.running = True
        n = 0
        while self.running and n < max_ticks:
            self.step()
            n += 1
        if self.running:
            self.stop()
        return n


@dataclass
class SimulationPair:
    """A layer's node simulation and (when it has groups) group simulation."""

    nodes: Simulation
    groups: Optional[Simulation] = None

    def __iter__(self) -> Iterator[Simulation]:
        yield self.nodes
        if self.groups is not None:
            yield self.groups

    def heat(self, target: float = 0.7, *, groups: bool = True) -> None:
        """Hold the simulations warm while an interaction is live."""
        self.nodes.alpha_target = target
        self.nodes.restart()
        if groups and self.groups is not None:
            self.groups.alpha_target = target
            self.groups.restart()

    def cool(self) -> None:
        """Release the alpha target so the simulations cool out."""
        for sim in self:
            sim.alpha_target = 0.0

    def stop(self) -> None:
        for sim in self:
            sim.stop()

    @property
    def running(self) -> bool:
        return any(sim.running for sim in self)
