"""Tests for terrain values and belief cells."""

import pytest

from py_rivermap.core.errors import InferenceInconsistency
from py_rivermap.core.geometry import Position
from py_rivermap.core.grid import Grid
from py_rivermap.core.terrain import (
    TerrainCertainty,
    TerrainType,
    certainty_grid_from_observations,
    certainty_grid_from_truth,
    reveal,
)

G = TerrainType.GROUND
W = TerrainType.WATER


class TestTerrainCertainty:
    """Test the tri-state belief cell."""

    def test_starts_unknown(self):
        cell = TerrainCertainty()
        assert cell.is_unknown
        assert not cell.is_obvious
        assert cell.obvious_terrain is None

    def test_set_obvious(self):
        cell = TerrainCertainty()
        assert cell.set_obvious(W) is True
        assert cell.is_water_obvious
        assert cell.probability == 1.0
        assert cell.set_obvious(W) is False

    def test_contradiction_raises(self):
        cell = TerrainCertainty.obvious(G, Position(2, 3))
        with pytest.raises(InferenceInconsistency) as exc_info:
            cell.set_obvious(W)
        assert exc_info.value.position == Position(2, 3)
        assert exc_info.value.existing is G
        assert exc_info.value.attempted is W

    def test_add_probability_keeps_maximum(self):
        cell = TerrainCertainty()
        cell.add_probability(0.3)
        cell.add_probability(0.1)
        assert cell.probability == pytest.approx(0.3)
        assert cell.has_probability
        assert not cell.is_obvious

    def test_add_probability_is_clamped(self):
        cell = TerrainCertainty()
        cell.add_probability(2.5)
        assert cell.probability == 1.0
        assert not cell.is_water_obvious

    def test_estimates_do_not_touch_resolved_cells(self):
        cell = TerrainCertainty.obvious(G)
        cell.add_probability(0.8)
        cell.reset_probability()
        assert cell.is_ground_obvious

    def test_reset_probability(self):
        cell = TerrainCertainty()
        cell.add_probability(0.5)
        cell.reset_probability()
        assert cell.is_unknown


class TestObservationHelpers:
    """Test building belief grids from observations."""

    @pytest.fixture
    def terrain(self):
        return Grid.from_rows([[G, W, G], [G, W, G], [G, W, W]], default=G)

    def test_reveal(self, terrain):
        observations = reveal(terrain, [Position(1, 0), Position(0, 0)])
        assert observations[1, 0] is W
        assert observations[0, 0] is G
        assert observations[2, 2] is None

    def test_certainty_grid_from_observations(self, terrain):
        observations = reveal(terrain, [Position(1, 1)])
        certainties = certainty_grid_from_observations(observations)
        assert certainties[1, 1].is_water_obvious
        assert certainties[1, 1].position == Position(1, 1)
        assert sum(1 for cell in certainties if cell.value.is_unknown) == 8

    def test_cells_are_independent(self, terrain):
        certainties = certainty_grid_from_observations(reveal(terrain, []))
        certainties[0, 0].add_probability(0.5)
        assert certainties[1, 0].is_unknown

    def test_certainty_grid_from_truth(self, terrain):
        certainties = certainty_grid_from_truth(terrain)
        assert all(cell.value.obvious_terrain is terrain[cell.position] for cell in certainties)
