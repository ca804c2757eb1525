"""Tests for river path generation."""

import pytest

from py_rivermap.core.alea_prng import AleaPRNG
from py_rivermap.core.diagnostics import Diagnostics
from py_rivermap.core.errors import ConfigurationError, PathGenerationFailure, RiverGenerationError
from py_rivermap.core.geometry import Position, Size
from py_rivermap.core.river_generator import (
    PathDecision,
    PathStrategy,
    RiverConstraints,
    RiverGenerator,
    RiverOptions,
    _Candidate,
    create_river_map,
    max_distance_between_ends,
)
from py_rivermap.core.terrain import TerrainType
from py_rivermap.utils.random import get_prng, set_random_seed

SEEDS = [1, 7, 42, 1234, 99999]


@pytest.fixture
def options():
    return RiverOptions()


class TestRiverConstraints:
    """Test the numbers derived from the map size."""

    def test_default_map(self, options):
        constraints = RiverConstraints.for_size(Size(16, 16), options)
        assert constraints.min_edge_distance == 2
        assert constraints.worst_case_max_distance == 21
        assert constraints.min_endpoint_separation == 21
        assert constraints.target_water_cells == 35
        assert constraints.min_water_cells == 29

    def test_best_case_distance(self):
        assert max_distance_between_ends(Size(16, 16), 2, best_case=True) == 26

    def test_worst_case_uses_longest_side(self):
        assert max_distance_between_ends(Size(10, 20), 2, best_case=False) == max_distance_between_ends(
            Size(20, 10), 2, best_case=False
        )

    @pytest.mark.parametrize("size", [Size(4, 4), Size(16, 3), Size(1, 1)])
    def test_too_small_map(self, options, size):
        with pytest.raises(ConfigurationError):
            RiverConstraints.for_size(size, options)

    def test_degenerate_ratio(self):
        with pytest.raises(ConfigurationError):
            RiverConstraints.for_size(Size(16, 16), RiverOptions(min_separation_ratio_of_max=0.01))


class TestRiverPath:
    """Test the shape of generated rivers."""

    @pytest.fixture(params=SEEDS)
    def river(self, request):
        return create_river_map(16, 16, seed=request.param)

    def test_path_is_four_connected(self, river):
        for previous, current in zip(river.path, river.path[1:]):
            assert previous.distance_to(current) == 1

    def test_path_never_revisits_a_cell(self, river):
        assert len(set(river.path)) == len(river.path)

    def test_path_never_touches_itself(self, river):
        for i, earlier in enumerate(river.path):
            for later in river.path[i + 3:]:
                assert max(abs(earlier.x - later.x), abs(earlier.y - later.y)) > 1

    def test_ends_on_the_boundary_away_from_corners(self, river):
        terrain = river.terrain
        med = river.constraints.min_edge_distance
        corners = [cell.position for cell in terrain.get_corner_cells()]
        for end in (river.entrance, river.exit):
            assert terrain.is_on_edge(end)
            assert min(end.distance_to(corner) for corner in corners) >= med

    def test_ends_are_far_enough_apart(self, river):
        assert river.entrance.distance_to(river.exit) >= river.constraints.min_endpoint_separation

    def test_keeps_away_from_the_edge(self, river):
        terrain = river.terrain
        med = river.constraints.min_edge_distance
        for position in river.path[2:-2]:
            assert terrain.edge_distance(position) >= med
        assert terrain.edge_distance(river.path[1]) == med - 1
        assert terrain.edge_distance(river.path[-2]) == med - 1

    def test_length_within_bounds(self, river):
        constraints = river.constraints
        overage = river.entrance.distance_to(river.exit) - constraints.min_endpoint_separation
        assert constraints.min_water_cells <= len(river.path) <= constraints.target_water_cells + overage

    def test_terrain_matches_path(self, river):
        water = [cell.position for cell in river.terrain if cell.value == TerrainType.WATER]
        assert sorted(water) == sorted(river.path)
        assert river.terrain.size == Size(16, 16)

    def test_decisions_follow_the_path(self, river):
        assert [decision.position for decision in river.decisions] == river.path
        assert river.decisions[0].strategy is PathStrategy.FORCED
        assert river.attempt <= 10


class TestRiverGeneration:
    """Test seeding, retries and errors."""

    def test_same_seed_same_river(self):
        first = create_river_map(16, 16, seed=321)
        second = create_river_map(16, 16, seed=321)
        assert first.path == second.path
        assert first.seed == second.seed
        assert first.terrain == second.terrain

    def test_different_seeds_differ(self):
        paths = {tuple(create_river_map(16, 16, seed=seed).path) for seed in SEEDS}
        assert len(paths) > 1

    def test_ambient_random_state_is_preserved(self):
        set_random_seed("ambient")
        before = get_prng().getstate()
        create_river_map(16, 16, seed=5)
        assert get_prng().getstate() == before

    def test_missing_seed_is_drawn_from_ambient_stream(self):
        set_random_seed("reproducible")
        first = create_river_map(16, 16)
        set_random_seed("reproducible")
        second = create_river_map(16, 16)
        assert first.path == second.path

    def test_retries_use_consecutive_seeds(self):
        river = create_river_map(16, 16, seed=1000)
        assert river.seed == 1000 + river.attempt - 1

    def test_small_map_straight_river(self):
        river = create_river_map(5, 5, seed=3)
        assert len(river.path) == 5
        assert river.path[2] == Position(2, 2)

    def test_too_small_map(self):
        with pytest.raises(ConfigurationError):
            create_river_map(4, 4, seed=1)

    def test_single_attempt_failure(self):
        options = RiverOptions(min_cells_ratio_of_target=1.0)
        constraints = RiverConstraints.for_size(Size(5, 5), options)
        with pytest.raises(PathGenerationFailure) as exc_info:
            RiverGenerator(constraints, seed=11, options=options).generate()
        assert exc_info.value.seed == 11
        assert exc_info.value.path_length == 5

    def test_gives_up_after_max_attempts(self):
        options = RiverOptions(min_cells_ratio_of_target=1.0, max_attempts=3)
        with pytest.raises(RiverGenerationError) as exc_info:
            create_river_map(5, 5, seed=20, options=options)
        assert exc_info.value.attempts == 3
        assert exc_info.value.first_seed == 20
        assert isinstance(exc_info.value.last_failure, PathGenerationFailure)

    def test_diagnostics(self):
        diagnostics = Diagnostics("River generation")
        river = create_river_map(16, 16, seed=42, diagnostics=diagnostics)
        assert diagnostics.get_value("Try number") == river.attempt
        assert len(diagnostics.children) == river.attempt
        assert diagnostics.children[-1].get_value("Seed used") == river.seed
        assert river.diagnostics is diagnostics

    def test_decision_str(self):
        decision = PathDecision(Position(3, 4), PathStrategy.CLOSEST, 2, 5, True, "Slack too low")
        assert str(decision) == "[>] [--] [(3, 4)] closest/2 (5) Slack too low"


class TestPathChoices:
    """Test the strategy weights and tie-breaks on a generator with a given history."""

    @pytest.fixture
    def generator(self, options):
        constraints = RiverConstraints.for_size(Size(16, 16), options)
        generator = RiverGenerator(constraints, seed=1, options=options)
        generator._prng = AleaPRNG(1)
        return generator

    @staticmethod
    def history(positions, horizontal=True):
        return [PathDecision(position, PathStrategy.CLOSEST, 2, 5, horizontal) for position in positions]

    def test_long_line_is_broken(self, generator):
        generator._placed = self.history([Position(x, 5) for x in (3, 4, 5, 6)])
        along = _Candidate(Position(7, 5), 10, 8, 5)
        across = _Candidate(Position(6, 6), 4, 7, 6)
        assert generator._break_long_lines([along, across]) == [across]

    def test_vertical_line_is_broken(self, generator):
        generator._placed = self.history([Position(5, y) for y in (3, 4, 5, 6)], horizontal=False)
        along = _Candidate(Position(5, 7), 4, 8, 5)
        across = _Candidate(Position(6, 6), 4, 7, 6)
        assert generator._break_long_lines([along, across]) == [across]

    def test_mixed_moves_keep_every_candidate(self, generator):
        generator._placed = self.history([Position(3, 5), Position(4, 5)]) + self.history(
            [Position(4, 6)], horizontal=False
        )
        candidates = [_Candidate(Position(5, 6), 3, 8, 5), _Candidate(Position(4, 7), 3, 7, 4)]
        assert generator._break_long_lines(candidates) == candidates

    def test_single_direction_candidates_are_kept(self, generator):
        generator._placed = self.history([Position(x, 5) for x in (3, 4, 5, 6)])
        candidates = [_Candidate(Position(7, 5), 10, 8, 5)]
        assert generator._break_long_lines(candidates) == candidates

    @pytest.mark.parametrize("slack, expected", [(0, 0.0), (2, 0.0), (3, 0.0), (3.5, 0.5), (4, 1.0), (12, 1.0)])
    def test_furthest_importance(self, generator, slack, expected):
        assert generator._furthest_importance(slack) == pytest.approx(expected)

    def test_closest_importance(self, generator):
        generator._initial_slack = 10
        assert generator._closest_importance(10) == pytest.approx(0.0)
        assert generator._closest_importance(5) == pytest.approx(0.5)
        assert generator._closest_importance(0) == pytest.approx(1.0)
        assert generator._closest_importance(-3) == pytest.approx(1.0)

    def test_closest_importance_without_initial_slack(self, generator):
        generator._initial_slack = 0
        assert generator._closest_importance(7) == 1.0

    def test_center_importance(self, generator):
        generator._target = 30  # river middle at step 10
        generator._placed = self.history([Position(2, y) for y in range(10)], horizontal=False)
        # Edge distance 2 out of a best of 7
        assert generator._center_importance(3) == pytest.approx(5 / 7)
        assert generator._center_importance(1.5) == pytest.approx(5 / 14)
        assert generator._center_importance(0) == 0.0

    def test_center_importance_away_from_the_river_middle(self, generator):
        generator._target = 30
        generator._placed = self.history([Position(2, y % 12 + 2) for y in range(20)], horizontal=False)
        assert generator._center_importance(5) == 0.0

    def test_select_by_proportion_skips_zero_weights(self, generator):
        weights = {PathStrategy.CLOSEST: 0.0, PathStrategy.FURTHEST: 0.0, PathStrategy.CENTER: 1.0}
        assert {generator._select_by_proportion(weights) for _ in range(200)} == {PathStrategy.CENTER}

    def test_select_by_proportion_follows_weights(self, generator):
        weights = {PathStrategy.CLOSEST: 1.0, PathStrategy.FURTHEST: 3.0}
        draws = [generator._select_by_proportion(weights) for _ in range(2000)]
        share = draws.count(PathStrategy.FURTHEST) / len(draws)
        assert 0.65 < share < 0.85
