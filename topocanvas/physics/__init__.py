"""Force simulation."""

from .engine import SimulationEngine
from .forces import ClusterForce, ForceLink, ForceX, ForceY, ManyBody, RectCollide
from .simulation import Simulation, SimulationClock, SimulationPair

__all__ = [
    "ClusterForce",
    "ForceLink",
    "ForceX",
    "ForceY",
    "ManyBody",
    "RectCollide",
    "Simulation",
    "SimulationClock",
    "SimulationEngine",
    "SimulationPair",
]
