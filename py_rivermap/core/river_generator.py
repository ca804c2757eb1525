"""
River path generation.

This module implements:
- Derivation of the river constraints from the map size
- Entrance and exit selection on the map boundary
- Step-by-step path extension driven by weighted strategies
- Retry of failed attempts with consecutive seeds

A river is a single 4-connected path from a boundary entrance to a boundary
exit. It keeps away from the boundary except at its two ends and never
touches itself, not even diagonally.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import structlog

from ..config import Settings, settings as default_settings
from ..utils.random import preserved_random_state, random_seed
from .alea_prng import AleaPRNG
from .diagnostics import Diagnostics, DiagnosticsSink, NullDiagnostics
from .errors import ConfigurationError, PathGenerationFailure, RiverGenerationError
from .geometry import OutOfBoundsRule, Position, Size
from .grid import Grid
from .terrain import TerrainType

logger = structlog.get_logger()


def _clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


class PathStrategy(Enum):
    """How the next river cell was picked among the candidates."""

    CLOSEST = "closest"  # minimize the distance to the exit
    FURTHEST = "furthest"  # maximize the distance to the exit
    CENTER = "center"  # maximize the distance to the edge
    FORCED = "forced"  # only one candidate
    ANY = "any"  # uniform pick

    @property
    def symbol(self) -> str:
        return {
            PathStrategy.CLOSEST: ">",
            PathStrategy.FURTHEST: "<",
            PathStrategy.CENTER: "o",
            PathStrategy.FORCED: ".",
            PathStrategy.ANY: "x",
        }[self]


@dataclass
class RiverOptions:
    """River generation options."""

    min_edge_distance: int = 2  # Cells kept between the river and the edge
    min_separation_ratio_of_max: float = 1.0  # Entrance/exit distance vs worst-case maximum
    target_cells_ratio_of_min_separation: float = 1.7  # Target length vs minimum separation
    min_cells_ratio_of_target: float = 0.85  # Shortest accepted river vs target

    # Strategy weights
    closest_modifier: float = 1.0
    furthest_modifier: float = 0.5
    center_modifier: float = 3.0
    furthest_slack_threshold: float = 3.0  # Slack needed before 'furthest' gets any weight
    center_slack_threshold: float = 3.0  # Slack at which 'center' gets its full weight

    max_attempts: int = 10

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RiverOptions":
        settings = settings or default_settings
        return cls(
            min_edge_distance=settings.river_min_edge_distance,
            min_separation_ratio_of_max=settings.river_min_separation_ratio_of_max,
            target_cells_ratio_of_min_separation=settings.river_target_cells_ratio_of_min_separation,
            min_cells_ratio_of_target=settings.river_min_cells_ratio_of_target,
            closest_modifier=settings.river_closest_modifier,
            furthest_modifier=settings.river_furthest_modifier,
            center_modifier=settings.river_center_modifier,
            furthest_slack_threshold=settings.river_furthest_slack_threshold,
            center_slack_threshold=settings.river_center_slack_threshold,
            max_attempts=settings.river_max_attempts,
        )


def max_distance_between_ends(size: Size, min_edge_distance: int, best_case: bool) -> int:
    """
    Longest possible entrance/exit distance.

    The best case starts next to a corner; the worst case starts in the middle
    of the longest side.
    """
    padding = min_edge_distance * 2
    inner = Size(size.width - padding, size.height - padding)

    if not best_case:
        if inner.height > inner.width:
            inner = inner.flip()
        inner = Size(inner.width // 2 + 1, inner.height)

    return (inner.width - 1) + (inner.height - 1) + padding


@dataclass(frozen=True)
class RiverConstraints:
    """Numbers shared by the generator and the inference engine for one map size."""

    size: Size
    min_edge_distance: int
    min_endpoint_separation: int
    target_water_cells: int
    min_water_cells: int

    @classmethod
    def for_size(cls, size: Size, options: Optional[RiverOptions] = None) -> "RiverConstraints":
        options = options or RiverOptions.from_settings()
        size = Size(*size)

        padding = options.min_edge_distance * 2
        if size.width - padding < 1 or size.height - padding < 1:
            raise ConfigurationError(
                f"A {size} map leaves no room for a river {options.min_edge_distance} cells away from the edge"
            )

        worst_case = max_distance_between_ends(size, options.min_edge_distance, best_case=False)
        min_separation = math.floor(options.min_separation_ratio_of_max * worst_case)
        target = math.floor(options.target_cells_ratio_of_min_separation * min_separation)
        minimum = math.floor(options.min_cells_ratio_of_target * target)

        if min_separation < 1 or target < 2:
            raise ConfigurationError(
                f"Ratios give a degenerate river on a {size} map "
                f"(separation {min_separation}, target {target} cells)"
            )

        return cls(
            size=size,
            min_edge_distance=options.min_edge_distance,
            min_endpoint_separation=min_separation,
            target_water_cells=target,
            min_water_cells=minimum,
        )

    @property
    def best_case_max_distance(self) -> int:
        return max_distance_between_ends(self.size, self.min_edge_distance, best_case=True)

    @property
    def worst_case_max_distance(self) -> int:
        return max_distance_between_ends(self.size, self.min_edge_distance, best_case=False)


@dataclass
class PathDecision:
    """Why a river cell was placed. Diagnostics only."""

    position: Position
    strategy: PathStrategy
    candidate_count: int
    slack: int
    horizontal_move: bool
    comment: str = ""

    def __str__(self) -> str:
        direction = "--" if self.horizontal_move else " |"
        return (
            f"[{self.strategy.symbol}] [{direction}] [{self.position}] "
            f"{self.strategy.value}/{self.candidate_count} ({self.slack}) {self.comment}"
        ).rstrip()


@dataclass
class _Candidate:
    position: Position
    entrance_distance: int
    exit_distance: int
    edge_distance: int


@dataclass
class RiverMap:
    """A generated map: terrain plus how it was built."""

    terrain: Grid
    path: List[Position]
    decisions: List[PathDecision]
    seed: int
    attempt: int
    constraints: RiverConstraints
    diagnostics: Optional[Diagnostics] = field(default=None, repr=False)

    @property
    def entrance(self) -> Position:
        return self.path[0]

    @property
    def exit(self) -> Position:
        return self.path[-1]

    def preview(self) -> str:
        return terrain_preview(self.terrain)


def terrain_preview(terrain: Grid) -> str:
    return terrain.to_console_string(lambda cell: "~" if cell.value == TerrainType.WATER else ".", " ")


class RiverGenerator:
    """
    Builds one river path from one seed.

    A failed attempt raises PathGenerationFailure; create_river_map() retries
    with the next seed.
    """

    def __init__(
        self,
        constraints: RiverConstraints,
        seed: int,
        options: Optional[RiverOptions] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
    ):
        self.constraints = constraints
        self.seed = seed
        self.options = options or RiverOptions.from_settings()
        self.diagnostics = diagnostics or NullDiagnostics()

        self._map = Grid(constraints.size.width, constraints.size.height, fill=False, default=False)
        self._prng: Optional[AleaPRNG] = None
        self._entrance: Optional[Position] = None
        self._exit: Optional[Position] = None
        self._target = constraints.target_water_cells
        self._initial_slack = 0
        self._placed: List[PathDecision] = []
        self._placed_index: Dict[Position, int] = {}

    @property
    def min_edge_distance(self) -> int:
        return self.constraints.min_edge_distance

    @property
    def target_water_cells(self) -> int:
        """Target length, including the realized entrance/exit distance overage."""
        return self._target

    def generate(self, prng: Optional[AleaPRNG] = None) -> Tuple[List[Position], List[PathDecision]]:
        """
        Run one attempt.

        Args:
            prng: Random source for this attempt. Defaults to AleaPRNG(seed).

        Returns:
            The path from entrance to exit and the decision taken for each cell
        """
        self._prng = prng or AleaPRNG(self.seed)
        self._placed = []
        self._placed_index = {}
        self._target = self.constraints.target_water_cells

        stats = self.diagnostics
        stats.record_value("Seed used", self.seed)
        stats.record_value("Minimum distance from edge", self.min_edge_distance)
        stats.record_value("Minimum distance between entrance and exit", self.constraints.min_endpoint_separation)
        stats.record_value("Target water cells to place", self.constraints.target_water_cells)
        stats.record_value("Minimum water cells to place", self.constraints.min_water_cells)

        with preserved_random_state():
            self._select_ends()
            self._build_path()

        stats.record_comment(
            "Summary of path decisions:\n" + "\n".join(f"{i}: {d}" for i, d in enumerate(self._placed))
        )

        if len(self._placed) < self.constraints.min_water_cells:
            raise PathGenerationFailure(
                f"The river is too short ({len(self._placed)} cells, "
                f"at least {self.constraints.min_water_cells} required)",
                seed=self.seed,
                path_length=len(self._placed),
            )

        return [decision.position for decision in self._placed], list(self._placed)

    def _select_ends(self):
        scope = self.diagnostics.start_child_scope("Setup river ends")
        corners = [cell.position for cell in self._map.get_corner_cells()]
        available = [
            cell.position
            for cell in self._map.get_edge_cells()
            if min(cell.position.distance_to(corner) for corner in corners) >= self.min_edge_distance
        ]
        if not available:
            raise ConfigurationError(
                f"No boundary cell of a {self.constraints.size} map is "
                f"{self.min_edge_distance} cells away from the corners"
            )

        separation = self.constraints.min_endpoint_separation
        entrances = [p for p in available if any(p.distance_to(q) >= separation for q in available)]
        if not entrances:
            raise ConfigurationError(
                f"No pair of boundary cells of a {self.constraints.size} map is {separation} cells apart"
            )

        self._entrance = self._prng.choice(entrances)
        exits = [p for p in available if p.distance_to(self._entrance) >= separation]
        self._exit = self._prng.choice(exits)

        distance = self._entrance.distance_to(self._exit)
        self._target = self.constraints.target_water_cells + (distance - separation)
        self._initial_slack = self._target - 1 - distance

        scope.record_value("Distance between ends", distance)
        scope.record_comment(f"Entrance: {self._entrance}")
        scope.record_comment(f"Exit: {self._exit}")
        scope.stop()

    def _candidate(self, position: Position) -> _Candidate:
        return _Candidate(
            position=position,
            entrance_distance=position.distance_to(self._entrance),
            exit_distance=position.distance_to(self._exit),
            edge_distance=self._map.edge_distance(position),
        )

    def _place(self, decision: PathDecision):
        self._placed_index[decision.position] = len(self._placed)
        self._placed.append(decision)

    def _build_path(self):
        width = self.constraints.size.width
        self._place(
            PathDecision(
                position=self._entrance,
                strategy=PathStrategy.FORCED,
                candidate_count=1,
                slack=self._initial_slack,
                horizontal_move=self._entrance.x in (0, width - 1),
                comment="Entrance",
            )
        )

        while len(self._placed) < self._target:
            current = self._placed[-1].position
            if current == self._exit:
                break  # Reaching the exit before the target length is fine

            cell = self._map.get_cell(current)
            candidates = [self._candidate(n.position) for n in cell.immediate_neighbors(OutOfBoundsRule.IGNORE)]
            candidates = self._filter_candidates(candidates)
            self._place(self._choose_next(candidates))

        if self._placed[-1].position != self._exit:
            raise PathGenerationFailure(
                f"The path was not able to reach the exit in {self._target} cells",
                seed=self.seed,
                path_length=len(self._placed),
            )

    def _placed_steps_ago(self, position: Position) -> Optional[int]:
        """1 for the last placed cell, 2 for the one before, None if never placed."""
        index = self._placed_index.get(position)
        if index is None:
            return None
        return len(self._placed) - index

    def _touches_older_path(self, position: Position) -> bool:
        for neighbor in self._map.get_cell(position).surrounding_neighbors(OutOfBoundsRule.IGNORE):
            steps_ago = self._placed_steps_ago(neighbor.position)
            if steps_ago is not None and steps_ago > 2:
                return True
        return False

    def _filter_candidates(self, candidates: List[_Candidate]) -> List[_Candidate]:
        result = [
            c for c in candidates
            if c.position not in self._placed_index and not self._touches_older_path(c.position)
        ]
        if not result:
            return result

        band = self.min_edge_distance
        if all(c.entrance_distance < band for c in result):
            # Leaving the entrance: head straight into the map
            best = max(c.edge_distance for c in result)
            result = [c for c in result if c.edge_distance == best]
        elif any(c.exit_distance < band for c in result):
            # Entering the exit band: head straight for the exit
            best = min(c.exit_distance for c in result)
            result = [c for c in result if c.exit_distance == best]
        else:
            result = [c for c in result if c.edge_distance >= band]

        return result

    def _choose_next(self, candidates: List[_Candidate]) -> PathDecision:
        if not candidates:
            raise PathGenerationFailure(
                "The path took a wrong turn and is now blocked",
                seed=self.seed,
                path_length=len(self._placed),
            )

        current = self._candidate(self._placed[-1].position)
        remaining = self._target - len(self._placed)
        slack = remaining - current.exit_distance
        band = self.min_edge_distance

        if len(candidates) == 1:
            strategy, comment = PathStrategy.FORCED, "Only 1 available move"
        elif slack < 2:
            strategy, comment = PathStrategy.CLOSEST, "Slack too low"
        elif current.exit_distance <= band + 1:
            strategy, comment = PathStrategy.CLOSEST, "Too close to the exit to afford a U-turn"
        elif (
            current.edge_distance == band
            and current.entrance_distance > band
            and all(c.edge_distance == current.edge_distance for c in candidates)
        ):
            strategy, comment = PathStrategy.CLOSEST, "Facing an edge, turning towards the exit"
        else:
            strategy, comment = self._random_strategy(slack)

        chosen = self._filter_by_strategy(candidates, strategy)
        chosen = self._break_long_lines(chosen)
        final = self._prng.choice(chosen)

        return PathDecision(
            position=final.position,
            strategy=strategy,
            candidate_count=len(candidates),
            slack=slack,
            horizontal_move=final.position.y == current.position.y,
            comment=comment,
        )

    def _random_strategy(self, slack: int) -> Tuple[PathStrategy, str]:
        """Weighted draw of the strategy for the next cell."""
        weights = {
            PathStrategy.CLOSEST: self._closest_importance(slack) * self.options.closest_modifier,
            PathStrategy.FURTHEST: self._furthest_importance(slack) * self.options.furthest_modifier,
            PathStrategy.CENTER: self._center_importance(slack) * self.options.center_modifier,
        }
        total = sum(weights.values())
        if total < 1:
            weights[PathStrategy.ANY] = 1 - total

        summary = " / ".join(f"{strategy.value}: {weight:.0%}" for strategy, weight in weights.items())
        return self._select_by_proportion(weights), summary

    def _closest_importance(self, slack: float) -> float:
        if self._initial_slack <= 0:
            return 1.0
        return _clamp01(1 - slack / self._initial_slack)

    def _furthest_importance(self, slack: float) -> float:
        return _clamp01(slack - self.options.furthest_slack_threshold)

    def _center_importance(self, slack: float) -> float:
        """
        High around the middle of the river, far from the map centre, and
        when there is enough slack to afford a detour.
        """
        size = self.constraints.size
        best_edge_distance = math.ceil(min(size.width, size.height) / 2) - 1
        river_middle = self._target / 2 - 5
        if best_edge_distance <= 0 or river_middle <= 0:
            return 0.0

        current_edge_distance = self._map.edge_distance(self._placed[-1].position)
        closeness_to_middle = _clamp01(1 - abs(len(self._placed) - river_middle) / river_middle)
        distance_from_center = _clamp01(1 - current_edge_distance / best_edge_distance)
        slack_availability = _clamp01(slack / self.options.center_slack_threshold)

        return closeness_to_middle * distance_from_center * slack_availability

    def _select_by_proportion(self, weights: Dict[PathStrategy, float]) -> PathStrategy:
        draw = self._prng.uniform(0, sum(weights.values()))
        for strategy, weight in weights.items():
            if draw < weight:
                return strategy
            draw -= weight
        return strategy  # float rounding left a sliver above 0

    def _filter_by_strategy(self, candidates: List[_Candidate], strategy: PathStrategy) -> List[_Candidate]:
        if strategy is PathStrategy.CLOSEST:
            best = min(c.exit_distance for c in candidates)
            return self._filter_by_strategy([c for c in candidates if c.exit_distance == best], PathStrategy.CENTER)
        if strategy is PathStrategy.FURTHEST:
            best = max(c.exit_distance for c in candidates)
            return self._filter_by_strategy([c for c in candidates if c.exit_distance == best], PathStrategy.CENTER)
        if strategy is PathStrategy.CENTER:
            best = max(c.edge_distance for c in candidates)
            return [c for c in candidates if c.edge_distance == best]
        return list(candidates)

    def _break_long_lines(self, candidates: List[_Candidate]) -> List[_Candidate]:
        """After 3 moves along the same axis, prefer a perpendicular move when there is one."""
        current = self._placed[-1].position
        recent_directions = {decision.horizontal_move for decision in self._placed[-3:]}

        horizontal = [c for c in candidates if c.position.y == current.y]
        vertical = [c for c in candidates if c.position.y != current.y]

        if horizontal and vertical and len(recent_directions) == 1:
            return vertical if recent_directions.pop() else horizontal
        return candidates


def create_river_map(
    width: Optional[int] = None,
    height: Optional[int] = None,
    seed: Optional[int] = None,
    options: Optional[RiverOptions] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> RiverMap:
    """
    Generate a map holding one river, retrying failed attempts.

    Attempt ``i`` uses ``seed + i``. After ``options.max_attempts`` failures a
    RiverGenerationError is raised.

    Args:
        width: Map width in cells (defaults to settings.map_width)
        height: Map height in cells (defaults to settings.map_height)
        seed: First seed. Drawn from the ambient PRNG when omitted.
        options: River options (defaults to the settings)
        diagnostics: Sink receiving one child scope per attempt

    Returns:
        The generated RiverMap
    """
    options = options or RiverOptions.from_settings()
    width = width if width is not None else default_settings.map_width
    height = height if height is not None else default_settings.map_height
    diagnostics = diagnostics or NullDiagnostics()

    constraints = RiverConstraints.for_size(Size(width, height), options)
    if seed is None:
        seed = random_seed()

    logger.info("Generating river", width=width, height=height, seed=seed)

    last_failure: Optional[PathGenerationFailure] = None
    for attempt in range(options.max_attempts):
        attempt_seed = seed + attempt
        scope = diagnostics.start_child_scope(f"Attempt {attempt + 1}")
        generator = RiverGenerator(constraints, attempt_seed, options, scope)

        try:
            path, decisions = generator.generate()
        except PathGenerationFailure as failure:
            scope.record_comment(str(failure))
            scope.stop()
            last_failure = failure
            logger.debug("River attempt failed", attempt=attempt + 1, seed=attempt_seed, reason=str(failure))
            continue

        terrain = Grid(width, height, fill=TerrainType.GROUND, default=TerrainType.GROUND)
        for position in path:
            terrain[position] = TerrainType.WATER

        scope.stop()
        diagnostics.record_value("Try number", attempt + 1)
        diagnostics.record_comment("Preview of the river path:\n" + terrain_preview(terrain))

        logger.info(
            "River generated",
            seed=attempt_seed,
            attempts=attempt + 1,
            length=len(path),
            entrance=str(path[0]),
            exit=str(path[-1]),
        )
        return RiverMap(
            terrain=terrain,
            path=path,
            decisions=decisions,
            seed=attempt_seed,
            attempt=attempt + 1,
            constraints=constraints,
            diagnostics=diagnostics if isinstance(diagnostics, Diagnostics) else None,
        )

    logger.error("River generation gave up", attempts=options.max_attempts, seed=seed)
    raise RiverGenerationError(options.max_attempts, seed, last_failure)
