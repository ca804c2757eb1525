"""
Terrain values and the belief cells used by the inference engine.
"""

from enum import IntEnum
from typing import Iterable, Optional

from .errors import InferenceInconsistency
from .geometry import Position
from .grid import Grid

GROUND_PROBABILITY = 0.0
WATER_PROBABILITY = 1.0


class TerrainType(IntEnum):
    """Ground truth of a map cell."""

    GROUND = 0
    WATER = 1

    @property
    def probability(self) -> float:
        return WATER_PROBABILITY if self is TerrainType.WATER else GROUND_PROBABILITY


class TerrainCertainty:
    """
    Belief about one cell: unknown, a probability of water, or resolved.

    A resolved cell holds exactly 0 (ground) or 1 (water). Resolving it again
    to the other terrain raises InferenceInconsistency.
    """

    __slots__ = ("probability", "has_probability", "resolved", "position")

    def __init__(self, position: Optional[Position] = None):
        self.position = position
        self.probability = GROUND_PROBABILITY
        self.has_probability = False
        self.resolved = False

    @classmethod
    def obvious(cls, terrain: TerrainType, position: Optional[Position] = None) -> "TerrainCertainty":
        cell = cls(position)
        cell.set_obvious(terrain)
        return cell

    def set_obvious(self, terrain: TerrainType) -> bool:
        """Resolve the cell. Returns True if anything changed."""
        if self.resolved:
            if self.obvious_terrain is not terrain:
                raise InferenceInconsistency(self.position, self.obvious_terrain, terrain)
            return False

        self.resolved = True
        self.has_probability = True
        self.probability = terrain.probability
        return True

    def add_probability(self, probability: float):
        """Raise the water probability to ``probability`` if it is higher. Resolved cells are left alone."""
        if self.resolved:
            return
        self.probability = max(self.probability, min(max(probability, 0.0), 1.0))
        self.has_probability = True

    def reset_probability(self):
        """Forget an estimated probability. Resolved cells are left alone."""
        if self.resolved:
            return
        self.probability = GROUND_PROBABILITY
        self.has_probability = False

    @property
    def is_unknown(self) -> bool:
        return not self.has_probability

    @property
    def is_water_obvious(self) -> bool:
        return self.resolved and self.probability == WATER_PROBABILITY

    @property
    def is_ground_obvious(self) -> bool:
        return self.resolved and self.probability == GROUND_PROBABILITY

    @property
    def is_obvious(self) -> bool:
        return self.resolved

    @property
    def obvious_terrain(self) -> Optional[TerrainType]:
        if not self.resolved:
            return None
        return TerrainType.WATER if self.probability == WATER_PROBABILITY else TerrainType.GROUND

    def __eq__(self, other) -> bool:
        if not isinstance(other, TerrainCertainty):
            return NotImplemented
        return (
            self.resolved == other.resolved
            and self.has_probability == other.has_probability
            and self.probability == other.probability
        )

    __hash__ = None

    def __repr__(self) -> str:
        if self.resolved:
            return f"TerrainCertainty({self.obvious_terrain.name})"
        if self.has_probability:
            return f"TerrainCertainty(p={self.probability:.3f})"
        return "TerrainCertainty(unknown)"


def reveal(terrain: Grid, positions: Iterable[Position]) -> Grid:
    """Observation grid where only the given positions show their terrain."""
    observations = Grid(terrain.width, terrain.height)
    for position in positions:
        observations[position] = terrain[position]
    return observations


def certainty_grid_from_observations(observations: Grid) -> Grid:
    """Belief grid where observed cells are resolved and the rest is unknown."""
    certainties = Grid(
        observations.width,
        observations.height,
        factory=TerrainCertainty,
        default_factory=TerrainCertainty,
    )
    for cell in observations:
        if cell.value is not None:
            certainties[cell.position].set_obvious(TerrainType(cell.value))
    return certainties


def certainty_grid_from_truth(terrain: Grid) -> Grid:
    """Fully resolved belief grid matching the ground truth."""
    return Grid(
        terrain.width,
        terrain.height,
        factory=lambda position: TerrainCertainty.obvious(terrain[position], position),
        default_factory=TerrainCertainty,
    )
