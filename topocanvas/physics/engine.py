"""Per-layer simulation pair: one simulation over nodes, one over groups."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from ..core.models import Edge, Layer
from ..core.settings import Settings
from ..core.signals import Signal
from .forces import ClusterForce, ForceLink, ForceX, ForceY, ManyBody, RectCollide
from .simulation import Simulation, SimulationClock, SimulationPair

if TYPE_CHECKING:
    from ..groups import GroupManager

logger = logging.getLogger(__name__)

# (centering strength, charge strength)
GROUPED_FORCES = (0.1, -3000.0)
UNGROUPED_FORCES = (0.4, -5000.0)

LINK_STRENGTH_UNGROUPED = 1.0
LINK_STRENGTH_SAME_GROUP = 0.3
LINK_STRENGTH_CROSS_GROUP = 0.09

DRAG_ALPHA_TARGET = 0.7


class SimulationEngine:
    """Builds, configures and drives the simulations of each layer.

    The node simulation centres on the world origin, which the default
    viewport transform maps to the middle of the canvas.
    """

    def __init__(self, settings: Settings, groups: "GroupManager", clock: Optional[SimulationClock] = None):
        self.settings = settings
        self.groups = groups
        self.clock = clock or SimulationClock()
        # emitted with the layer whenever its node simulation cools out
        self.settled = Signal("settled")

    def _link_strength(self, layer: Layer):
        settings = self.settings

        def strength(edge: Edge) -> float:
            if not settings.grouping or not layer.groups:
                return LINK_STRENGTH_UNGROUPED
            if edge.source.group == edge.target.group:
                return LINK_STRENGTH_SAME_GROUP
            return LINK_STRENGTH_CROSS_GROUP

        return strength

    def node_simulation(self, layer: Layer) -> Simulation:
        sim = Simulation(layer.nodes, name=f"{layer.id}:nodes", clock=self.clock)
        center, charge = GROUPED_FORCES
        sim.force("x", ForceX(0.0, center))
        sim.force("y", ForceY(0.0, center))
        sim.force("link", ForceLink(layer.edges, self._link_strength(layer)))
        sim.force("cluster", ClusterForce(layer, self.settings))
        sim.force("charge", ManyBody(charge))
        sim.ticked.connect(lambda _sim: self.render_tick(layer))
        sim.ended.connect(lambda _sim: self.settled.emit(layer))
        return sim

    def group_simulation(self, layer: Layer) -> Simulation:
        sim = Simulation(layer.groups, name=f"{layer.id}:groups", clock=self.clock)
        sim.force("collision", RectCollide(lambda g: self.groups.is_fixed(layer, g)))
        sim.ticked.connect(lambda _sim: self.groups.update(layer))
        return sim

    def start(self, layer: Layer) -> SimulationPair:
        """Create the layer's simulations and set them running."""
        if layer.simulations is not None:
            self.teardown(layer)
        pair = SimulationPair(
            nodes=self.node_simulation(layer),
            groups=self.group_simulation(layer) if layer.has_groups else None,
        )
        layer.simulations = pair
        if layer.has_groups:
            self.groups.update(layer)
        pair.nodes.restart()
        if pair.groups is not None:
            pair.groups.restart()
        self.setup(layer)
        logger.debug("Started simulations for layer %s (%d nodes, %d groups)", layer.id, len(layer.nodes), len(layer.groups))
        return pair

    def setup(self, layer: Layer) -> None:
        """Apply the force configuration for the current grouping mode."""
        sims = layer.simulations
        if sims is None:
            return
        grouping = self.settings.grouping
        center, charge = GROUPED_FORCES if grouping else UNGROUPED_FORCES
        sims.nodes.force("x", ForceX(0.0, center))
        sims.nodes.force("y", ForceY(0.0, center))
        sims.nodes.force("charge", ManyBody(charge))
        link = sims.nodes.force("link")
        if isinstance(link, ForceLink):
            link.refresh()
        if layer.surface is not None and layer.has_groups:
            layer.surface.set_group_display(grouping)
        if not grouping and sims.groups is not None:
            sims.groups.stop()

    def toggle_grouping(self, layer: Layer) -> Optional[bool]:
        """Flip grouping mode without discarding the layout in progress.

        Node positions are swapped with the positions stashed by the previous
        toggle and the simulations resume from the alpha they had back then.
        Returns the new grouping flag, or None when the layer has no groups.
        """
        sims = layer.simulations
        if not layer.groups or sims is None:
            return None

        self.settings.grouping = not self.settings.grouping

        for node in layer.nodes:
            px, py = node.px, node.py
            node.px, node.py = node.x, node.y
            if px is not None:
                node.x, node.y = px, py

        previous = (sims.nodes.previous_alpha, sims.groups.previous_alpha if sims.groups else None)
        sims.nodes.previous_alpha = sims.nodes.alpha
        if sims.groups is not None:
            sims.groups.previous_alpha = sims.groups.alpha

        if previous[0] is not None:
            sims.nodes.alpha = previous[0]
            if sims.groups is not None and previous[1] is not None:
                sims.groups.alpha = previous[1]
        else:
            sims.nodes.alpha = 1.0
            if sims.groups is not None:
                sims.groups.alpha = 1.0

        self.setup(layer)

        if self.settings.grouping and sims.groups is not None:
            sims.groups.alpha_target = 0.0
            sims.groups.restart()
        sims.nodes.alpha_target = 0.0
        sims.nodes.restart()
        return self.settings.grouping

    def render_tick(self, layer: Layer) -> None:
        """Node-simulation tick: contain a focused group's members, then draw."""
        group = layer.focused()
        if group is not None and group.bounds is not None:
            b = group.bounds
            for node in group.nodes:
                node.x = min(max(node.x, b.x0), b.x1)
                node.y = min(max(node.y, b.y0), b.y1)
        if layer.surface is not None:
            layer.surface.update_nodes(layer)

    def heat(self, layer: Layer, target: float = DRAG_ALPHA_TARGET) -> None:
        if layer.simulations is not None:
            layer.simulations.heat(target, groups=self.settings.grouping)

    def cool(self, layer: Layer) -> None:
        if layer.simulations is not None:
            layer.simulations.cool()

    def stop(self, layer: Layer) -> None:
        """Halt ticking; positions stay where they are."""
        if layer.simulations is not None:
            layer.simulations.stop()

    def teardown(self, layer: Layer) -> None:
        sims = layer.simulations
        if sims is None:
            return
        for sim in sims:
            sim.stop()
            sim.ticked.clear()
            sim.ended.clear()
        layer.simulations = None
        logger.debug("Tore down simulations for layer %s", layer.id)

    def run_until_settled(self, layer: Layer, max_ticks: int = 300) -> int:
        """Drive the layer's simulations synchronously. Returns ticks run."""
        sims = layer.simulations
        if sims is None:
            return 0
        n = 0
        while n < max_ticks and sims.running:
            for sim in sims:
                if sim.running:
                    sim.step()
            n += 1
        sims.stop()
        return n

    async def settle(self, layer: Layer, duration: float) -> None:
        """Let the running simulations advance on the clock for `duration` seconds."""
        if layer.simulations is None:
            return
        for sim in layer.simulations:
            if sim.running:
                self.clock.register(sim)
        await asyncio.sleep(duration)
