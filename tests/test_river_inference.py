"""Tests for terrain inference."""

import numpy as np
import pytest

from py_rivermap.core.diagnostics import Diagnostics
from py_rivermap.core.errors import ConfigurationError, InferenceInconsistency
from py_rivermap.core.geometry import Position, Size
from py_rivermap.core.grid import Grid
from py_rivermap.core.river_generator import RiverConstraints, RiverOptions, create_river_map
from py_rivermap.core.river_inference import (
    InferenceOptions,
    PathSearch,
    PathValidity,
    TerrainInference,
    infer_terrain,
)
from py_rivermap.core.terrain import (
    TerrainCertainty,
    TerrainType,
    certainty_grid_from_observations,
    reveal,
)

G = TerrainType.GROUND
W = TerrainType.WATER


def beliefs(rows):
    """Belief grid from rows of 'W' (water), 'G' (ground) and '.' (unknown)."""
    symbols = {"W": W, "G": G, ".": None}
    observations = Grid.from_rows([[symbols[char] for char in row] for row in rows])
    return certainty_grid_from_observations(observations)


def no_band_engine(size, waves_to_use=2):
    """Engine for a river allowed to run along the edge."""
    constraints = RiverConstraints.for_size(size, RiverOptions(min_edge_distance=0))
    return TerrainInference(constraints, InferenceOptions(waves_to_use=waves_to_use))


def assert_consistent_with_truth(certainties, terrain):
    for cell in certainties:
        if cell.value.is_obvious:
            assert cell.value.obvious_terrain == terrain[cell.position], cell.position


@pytest.fixture(scope="module")
def river():
    return create_river_map(16, 16, seed=42)


class TestFullObservations:
    """Test the two extremes: everything or nothing revealed."""

    def test_fully_revealed_returns_truth_without_waves(self, river):
        everything = [cell.position for cell in river.terrain]
        result = infer_terrain(reveal(river.terrain, everything))

        assert result.passes == 0
        assert result.total_wave_runs == 0
        assert_consistent_with_truth(result.certainties, river.terrain)
        assert np.array_equal(result.to_numpy(), river.terrain.to_numpy(dtype=float))

    def test_fully_unknown_sum_within_estimate(self):
        result = infer_terrain(Grid(16, 16))

        minimum, maximum = result.water_estimate
        total = result.to_numpy().sum()
        assert minimum <= total <= maximum
        assert result.passes >= 1
        assert result.wave_runs[1] >= 1

    def test_fully_unknown_resolves_corners(self):
        result = infer_terrain(Grid(16, 16))
        for position in [Position(0, 0), Position(1, 0), Position(0, 1), Position(1, 1), Position(15, 15)]:
            assert result.certainties[position].is_ground_obvious

    def test_probabilities_are_bounded(self):
        result = infer_terrain(Grid(16, 16))
        array = result.to_numpy()
        assert array.shape == (16, 16)
        assert ((array >= 0) & (array <= 1)).all()

    def test_same_observations_same_probabilities(self, river):
        dry_cells = [cell.position for cell in river.terrain if cell.value == G and cell.edge_distance >= 2]
        observations = reveal(river.terrain, dry_cells[::7])
        first = infer_terrain(observations).to_numpy()
        second = infer_terrain(observations).to_numpy()
        assert np.array_equal(first, second)

    def test_no_waves_only_spreads_the_estimate(self):
        result = infer_terrain(Grid(16, 16), InferenceOptions(waves_to_use=0))
        assert result.total_wave_runs == 0
        assert all(not cell.value.is_obvious for cell in result.certainties)
        assert all(cell.value.has_probability for cell in result.certainties)


class TestEdgeWave:
    """Test wave 1 deductions."""

    @pytest.fixture
    def engine(self):
        return TerrainInference(RiverConstraints.for_size(Size(16, 16)), InferenceOptions(waves_to_use=1))

    def test_fat_edge_neighbors(self, engine):
        grid = Grid(16, 16, factory=TerrainCertainty)
        run = engine.fat_edge_neighbors(grid.get_cell(Position(5, 0)), 2)
        assert [cell.position for cell in run] == [Position(5, 0), Position(5, 1)]

        run = engine.fat_edge_neighbors(grid.get_cell(Position(5, 0)), 3)
        assert [cell.position for cell in run] == [Position(5, 0), Position(5, 1), Position(5, 2)]

        run = engine.fat_edge_neighbors(grid.get_cell(Position(1, 1)), 2)
        assert [cell.position for cell in run] == [Position(1, 1), Position(1, 0)]

        assert engine.fat_edge_neighbors(grid.get_cell(Position(5, 5)), 2) == []

    def test_fat_edge_neighbors_from_corner(self, engine):
        grid = Grid(16, 16, factory=TerrainCertainty)
        cells = engine.fat_edge_neighbors_from_corner(grid.get_cell(Position(15, 0)), 2)
        assert {cell.position for cell in cells} == {
            Position(15, 0), Position(14, 0), Position(15, 1), Position(14, 1)
        }
        assert engine.fat_edge_neighbors_from_corner(grid.get_cell(Position(5, 0)), 2) == []

    def test_one_end_clears_nearby_edge(self, engine, river):
        result = engine.infer(certainty_grid_from_observations(reveal(river.terrain, [river.entrance])))
        certainties = result.certainties
        separation = engine.constraints.min_endpoint_separation

        assert certainties[river.path[1]].is_water_obvious
        assert certainties[river.path[2]].is_water_obvious
        for cell in certainties.get_edge_cells():
            if cell.position != river.entrance and cell.position.distance_to(river.entrance) < separation:
                assert cell.value.is_ground_obvious
        assert_consistent_with_truth(certainties, river.terrain)

    def test_both_ends_resolve_the_band(self, engine, river):
        result = engine.infer(certainty_grid_from_observations(reveal(river.terrain, [river.entrance, river.exit])))
        certainties = result.certainties

        for cell in certainties:
            if cell.edge_distance < 2:
                assert cell.value.is_obvious, cell.position
        for position in (river.path[1], river.path[2], river.path[-2], river.path[-3]):
            assert certainties[position].is_water_obvious
        assert_consistent_with_truth(certainties, river.terrain)

    def test_contradiction_raises(self):
        with pytest.raises(InferenceInconsistency):
            infer_terrain(reveal(Grid(16, 16, fill=W), [Position(0, 0)]))


class TestLocalWave:
    """Test wave 2 rules on small grids."""

    def test_goal_reached_sets_ground(self):
        certainties = beliefs([
            ".....",
            "..W..",
            "..W..",
            "..W..",
            ".....",
        ])
        no_band_engine(Size(5, 5)).infer(certainties)
        assert certainties[1, 2].is_ground_obvious
        assert certainties[3, 2].is_ground_obvious

    def test_two_ground_neighbors_set_water(self):
        certainties = beliefs([
            ".....",
            ".....",
            ".GWG.",
            ".....",
            ".....",
        ])
        no_band_engine(Size(5, 5)).infer(certainties)
        assert certainties[2, 1].is_water_obvious
        assert certainties[2, 3].is_water_obvious

    def test_three_ground_neighbors_set_ground(self):
        certainties = beliefs([
            ".....",
            "..G..",
            ".G.G.",
            ".....",
            ".....",
        ])
        no_band_engine(Size(5, 5)).infer(certainties)
        assert certainties[2, 2].is_ground_obvious

    def test_three_water_diagonals_set_ground(self):
        certainties = beliefs([
            ".....",
            ".W.W.",
            ".....",
            ".W...",
            ".....",
        ])
        no_band_engine(Size(5, 5)).infer(certainties)
        assert certainties[2, 2].is_ground_obvious

    def test_cornered_by_water_sets_ground(self):
        certainties = beliefs([
            ".....",
            ".....",
            "..WW.",
            "..W..",
            ".....",
        ])
        no_band_engine(Size(5, 5)).infer(certainties)
        assert certainties[3, 3].is_ground_obvious

    def test_water_around_ground_corner_sets_water(self):
        certainties = beliefs([
            ".....",
            ".....",
            "...W.",
            "..WG.",
            ".....",
        ])
        no_band_engine(Size(5, 5)).infer(certainties)
        assert certainties[2, 2].is_water_obvious

    def test_ground_around_water_corner_sets_ground(self):
        certainties = beliefs([
            ".....",
            ".....",
            "...G.",
            "..GW.",
            ".....",
        ])
        no_band_engine(Size(5, 5)).infer(certainties)
        assert certainties[2, 2].is_ground_obvious

    def test_u_turn_pair_sets_ground(self):
        certainties = beliefs([
            "......",
            "......",
            ".G..G.",
            "..GG..",
            "......",
        ])
        no_band_engine(Size(6, 5)).infer(certainties)
        assert certainties[2, 2].is_ground_obvious
        assert certainties[3, 2].is_ground_obvious

    def test_wave_two_is_not_run_when_disabled(self):
        certainties = beliefs([
            ".....",
            "..G..",
            ".G.G.",
            ".....",
            ".....",
        ])
        no_band_engine(Size(5, 5), waves_to_use=1).infer(certainties)
        assert not certainties[2, 2].is_obvious


class TestReachWave:
    """Test wave 3 pruning against the remaining water budget."""

    @staticmethod
    def short_river_engine(waves_to_use):
        """7x7 engine whose river is 4 cells long, so a 3-cell fragment leaves 1 to place."""
        options = RiverOptions(min_edge_distance=0, target_cells_ratio_of_min_separation=0.5)
        constraints = RiverConstraints.for_size(Size(7, 7), options)
        assert constraints.target_water_cells == 4
        return TerrainInference(constraints, InferenceOptions(waves_to_use=waves_to_use))

    @staticmethod
    def fragment():
        return beliefs([
            "GGGGGGG",
            "G.....G",
            "G.....G",
            "G.WWW.G",
            "G.....G",
            "G.....G",
            "GGGGGGG",
        ])

    def test_cells_out_of_budget_become_ground(self):
        certainties = self.fragment()
        self.short_river_engine(waves_to_use=3).infer(certainties)
        for position in [Position(1, 1), Position(5, 5), Position(3, 1), Position(1, 5)]:
            assert certainties[position].is_ground_obvious, position

    def test_local_rules_alone_leave_them_unknown(self):
        certainties = self.fragment()
        self.short_river_engine(waves_to_use=2).infer(certainties)
        assert not certainties[1, 1].is_obvious
        assert not certainties[5, 5].is_obvious

    @pytest.fixture
    def cells(self):
        grid = Grid(9, 9, fill=0)
        return {name: grid.get_cell(position) for name, position in [
            ("west", Position(2, 4)), ("east", Position(6, 4)), ("far", Position(2, 0)), ("next", Position(3, 4)),
        ]}

    def test_pair_linking_through_a_cell(self, cells):
        in_range = [(cells["west"], 2, 2), (cells["east"], 2, 2)]
        connectable = [(cells["west"], 2), (cells["east"], 2)]
        assert TerrainInference._has_valid_pair(in_range, connectable, remaining=4)

    def test_pair_rejected_when_other_endpoints_need_the_cells(self, cells):
        in_range = [(cells["west"], 2, 2), (cells["east"], 2, 2)]
        connectable = [(cells["west"], 2), (cells["east"], 2), (cells["far"], 2)]
        assert not TerrainInference._has_valid_pair(in_range, connectable, remaining=4)

    def test_pair_rejected_when_too_far(self, cells):
        in_range = [(cells["west"], 2, 2), (cells["east"], 2, 2)]
        connectable = [(cells["west"], 2), (cells["east"], 2)]
        assert not TerrainInference._has_valid_pair(in_range, connectable, remaining=2)

    def test_adjacent_pair_is_not_a_link(self, cells):
        in_range = [(cells["west"], 1, 1), (cells["next"], 1, 1)]
        connectable = [(cells["west"], 1), (cells["next"], 1)]
        assert not TerrainInference._has_valid_pair(in_range, connectable, remaining=10)

    def test_must_link_diagonally(self):
        certainties = beliefs([
            ".....",
            ".W...",
            "..W..",
            ".....",
            ".....",
        ])
        assert TerrainInference._must_link_diagonally(certainties.get_cell(Position(1, 1)))
        assert not TerrainInference._must_link_diagonally(certainties.get_cell(Position(4, 4)))


class TestPathSearch:
    """Test the wave 4 candidate path arena."""

    def test_branching_splits_certainty(self):
        search = PathSearch(Position(0, 0), 2)
        first = search.branch(0, Position(1, 0), set())
        second = search.branch(0, Position(0, 1), set())
        search.replace(0, [first, second])

        assert search.to_test == [first, second]
        assert search[first].certainty == pytest.approx(1.0)
        assert search[second].certainty == pytest.approx(1.0)
        assert search[first].positions == [Position(0, 0), Position(1, 0)]

    def test_invalid_branch_gives_its_share_to_siblings(self):
        search = PathSearch(Position(0, 0), 2)
        first = search.branch(0, Position(1, 0), set())
        second = search.branch(0, Position(0, 1), set())
        search.replace(0, [first, second])

        search.invalidate(first)
        assert search[second].certainty == pytest.approx(2.0)
        search.validate(second, Position(0, 1))
        assert search.cell_totals() == {Position(0, 1): pytest.approx(2.0)}

    def test_invalidation_climbs_to_the_root(self):
        search = PathSearch(Position(0, 0), 1)
        first = search.branch(0, Position(1, 0), set())
        second = search.branch(0, Position(0, 1), set())
        search.replace(0, [first, second])

        search.invalidate(first)
        search.invalidate(second)
        assert search[0].validity is PathValidity.INVALID
        assert search.valid_paths == []
        assert len(search.invalid_paths) == 2

    def test_skipped_exits_are_inherited(self):
        search = PathSearch(Position(5, 5), 1)
        child = search.branch(0, Position(5, 4), {Position(0, 5)})
        grandchild = search.branch(child, Position(5, 3), {Position(0, 4)})
        assert search[grandchild].skipped_exits == {Position(0, 5), Position(0, 4)}


class TestInferenceEngine:
    """Test the whole pass loop."""

    def test_partial_observations_stay_consistent(self, river):
        observations = reveal(river.terrain, [river.entrance, river.exit])
        diagnostics = Diagnostics("Terrain inference")
        result = infer_terrain(observations, diagnostics=diagnostics)

        assert_consistent_with_truth(result.certainties, river.terrain)
        assert result.wave_runs[4] >= 1
        assert diagnostics.get_value("Passes") == result.passes
        assert len(diagnostics.children) >= result.total_wave_runs

    def test_wave_four_spreads_probability_near_endpoints(self, river):
        observations = reveal(river.terrain, [river.entrance, river.exit])
        result = infer_terrain(observations)

        next_cell = river.path[3]
        assert result.certainties[next_cell].has_probability
        assert result.certainties[next_cell].probability > 0

    def test_heatmap(self):
        result = infer_terrain(Grid(16, 16))
        lines = result.heatmap().split("\n")
        assert len(lines) == 16
        assert lines[0].split(";")[0] == "-100"

    def test_size_mismatch(self):
        engine = TerrainInference(RiverConstraints.for_size(Size(16, 16)))
        with pytest.raises(ConfigurationError):
            engine.infer(beliefs(["....."] * 5))
