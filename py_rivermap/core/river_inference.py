"""
Terrain inference: locate a hidden river from partial observations.

The engine works on a Grid[TerrainCertainty] and runs deduction waves until a
full pass changes nothing:

- Wave 1 resolves cells of the near-edge band from the river end rules
- Wave 2 applies local neighbourhood rules
- Wave 3 marks as ground the cells no dangling endpoint can reach
- Wave 4 enumerates candidate paths from each dangling water endpoint and
  turns them into water probabilities

A final step spreads the remaining water estimate over cells that still have
no probability.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

import numpy as np
import structlog

from ..config import Settings, settings as default_settings
from .diagnostics import Diagnostics, DiagnosticsSink, NullDiagnostics
from .errors import ConfigurationError, RiverMapError
from .geometry import OutOfBoundsRule, Position, Size
from .grid import Grid, GridCell
from .river_generator import RiverConstraints, RiverOptions
from .terrain import TerrainType, certainty_grid_from_observations

logger = structlog.get_logger()

IGNORE = OutOfBoundsRule.IGNORE

WATER_CELLS_FOUND = "Water cells found"
GROUND_CELLS_FOUND = "Ground cells found"


@dataclass
class InferenceOptions:
    """Terrain inference options."""

    waves_to_use: int = 4  # Highest wave that may run (0 only finalizes)
    path_certainty_threshold: float = 0.005  # Wave 4 stops growing branches below this weight

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "InferenceOptions":
        settings = settings or default_settings
        return cls(
            waves_to_use=settings.inference_waves,
            path_certainty_threshold=settings.inference_path_certainty_threshold,
        )


class PathValidity(Enum):
    UNKNOWN = "unknown"
    VALID = "valid"
    INVALID = "invalid"


@dataclass
class CandidatePath:
    """One node of the wave 4 search tree."""

    positions: List[Position]
    certainty: float
    validity: PathValidity = PathValidity.UNKNOWN
    end_position: Optional[Position] = None
    skipped_exits: Set[Position] = field(default_factory=set)
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)

    @property
    def last_position(self) -> Position:
        return self.positions[-1]


class PathSearch:
    """
    Arena of candidate paths grown from one dangling water endpoint.

    Nodes reference each other by index. The root starts with a certainty
    equal to the endpoint's missing water neighbours; branching splits a
    node's certainty evenly between its children that are not invalid.
    """

    def __init__(self, start: Position, missing_neighbors: int):
        self.start = start
        self.missing_neighbors = missing_neighbors
        self.paths: List[CandidatePath] = [CandidatePath(positions=[start], certainty=float(missing_neighbors))]
        self.to_test: List[int] = [0]

    def __getitem__(self, index: int) -> CandidatePath:
        return self.paths[index]

    @property
    def valid_paths(self) -> List[CandidatePath]:
        return [path for path in self.paths if path.validity is PathValidity.VALID]

    @property
    def invalid_paths(self) -> List[CandidatePath]:
        return [path for path in self.paths if path.validity is PathValidity.INVALID and not path.children]

    def branch(self, index: int, next_position: Position, skipped_exits: Set[Position]) -> int:
        parent = self.paths[index]
        child = CandidatePath(
            positions=parent.positions + [next_position],
            certainty=0.0,
            skipped_exits=parent.skipped_exits | skipped_exits,
            parent=index,
        )
        self.paths.append(child)
        child_index = len(self.paths) - 1
        parent.children.append(child_index)
        self.refresh_certainty(index)
        return child_index

    def replace(self, index: int, new_indices: List[int]):
        """Swap a path under test for its branches."""
        self.to_test.remove(index)
        self.to_test.extend(new_indices)

    def validate(self, index: int, end_position: Optional[Position]):
        self.to_test.remove(index)
        path = self.paths[index]
        path.validity = PathValidity.VALID
        path.end_position = end_position

    def invalidate(self, index: int):
        """
        Invalidate a path under test.

        The parent gets its certainty redistributed to the remaining children,
        or is invalidated in turn once all its children are.
        """
        self.to_test.remove(index)
        current: Optional[int] = index
        while current is not None:
            path = self.paths[current]
            path.validity = PathValidity.INVALID
            path.end_position = path.last_position

            parent_index = path.parent
            if parent_index is None:
                return
            parent = self.paths[parent_index]
            if any(self.paths[child].validity is not PathValidity.INVALID for child in parent.children):
                self.refresh_certainty(parent_index)
                return
            current = parent_index

    def refresh_certainty(self, index: int, certainty: Optional[float] = None):
        """Split certainty evenly down the subtree, skipping invalid children."""
        pending: List[Tuple[int, Optional[float]]] = [(index, certainty)]
        while pending:
            current, new_certainty = pending.pop()
            path = self.paths[current]
            if new_certainty is not None:
                path.certainty = new_certainty

            live_children = [
                child for child in path.children if self.paths[child].validity is not PathValidity.INVALID
            ]
            if live_children:
                share = path.certainty / len(live_children)
                pending.extend((child, share) for child in live_children)

    def cell_totals(self) -> Dict[Position, float]:
        """Summed certainty of the valid paths crossing each cell, the endpoint excluded."""
        totals: Dict[Position, float] = {}
        for path in self.valid_paths:
            for position in path.positions[1:]:
                totals[position] = totals.get(position, 0.0) + path.certainty
        return totals


@dataclass
class InferenceResult:
    """Output of TerrainInference.infer()."""

    certainties: Grid
    passes: int = 0
    wave_runs: Dict[int, int] = field(default_factory=lambda: {1: 0, 2: 0, 3: 0, 4: 0})
    water_estimate: Tuple[int, int] = (0, 0)
    diagnostics: Optional[Diagnostics] = field(default=None, repr=False)

    @property
    def probabilities(self) -> Grid:
        """Water probability of every cell. Cells left without an estimate read 0."""
        return self.certainties.map(lambda certainty: certainty.probability, default=0.0)

    @property
    def total_wave_runs(self) -> int:
        return sum(self.wave_runs.values())

    def to_numpy(self) -> np.ndarray:
        """Probabilities as a float array indexed [x, y]."""
        return self.probabilities.to_numpy(dtype=float)

    def heatmap(self) -> str:
        return heatmap_preview(self.certainties)


def heatmap_preview(certainties: Grid) -> str:
    """-100 is ground, 100 is water, 0 is a 50/50 guess or no estimate at all."""

    def display(cell: GridCell) -> str:
        if not cell.value.has_probability:
            return "0"
        return str(round(-100 + 200 * cell.value.probability))

    return certainties.to_console_string(display, ";")


class TerrainInference:
    """
    Deduction engine for one map size.

    Args:
        constraints: River constraints of the map being inferred
        options: Inference options (defaults to the settings)
        diagnostics: Sink receiving one child scope per wave run
    """

    def __init__(
        self,
        constraints: RiverConstraints,
        options: Optional[InferenceOptions] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
    ):
        self.constraints = constraints
        self.options = options or InferenceOptions.from_settings()
        self.diagnostics = diagnostics or NullDiagnostics()
        self._grid: Optional[Grid] = None

    @property
    def min_edge_distance(self) -> int:
        return self.constraints.min_edge_distance

    def infer(self, certainties: Grid) -> InferenceResult:
        """
        Refine a belief grid in place.

        Args:
            certainties: Grid[TerrainCertainty] of the constraints' size

        Returns:
            InferenceResult wrapping the same grid
        """
        if certainties.size != self.constraints.size:
            raise ConfigurationError(
                f"Belief grid is {certainties.size} but the constraints were computed for {self.constraints.size}"
            )

        self._grid = certainties
        result = InferenceResult(
            certainties=certainties,
            diagnostics=self.diagnostics if isinstance(self.diagnostics, Diagnostics) else None,
        )
        self.diagnostics.record_value("Configured number of waves to use", self.options.waves_to_use)

        try:
            if not all(cell.value.is_obvious for cell in certainties):
                self._run_passes(result)
            result.water_estimate = self._apply_overall_probabilities()
        except RiverMapError as exc:
            logger.error("Terrain inference failed", error=str(exc), passes=result.passes)
            raise

        self.diagnostics.record_comment(
            "Values guessed (-100 = Ground, 0 = 50/50, 100 = Water):\n" + heatmap_preview(certainties)
        )
        self.diagnostics.record_value("Passes", result.passes)

        logger.info(
            "Terrain inference finished",
            passes=result.passes,
            wave_runs=result.total_wave_runs,
            resolved=sum(1 for cell in certainties if cell.value.is_obvious),
            cells=certainties.size.total,
        )
        return result

    def _run_passes(self, result: InferenceResult):
        waves = self.options.waves_to_use
        changed = True
        while changed:
            changed = False
            result.passes += 1

            if self.min_edge_distance > 0:
                while waves >= 1 and self._run_wave(result, 1, self._manage_edge):
                    changed = True

            if not changed and waves >= 2:
                changed = self._run_wave(result, 2, self._spread_obviousness)
            if changed:
                continue

            if waves >= 3:
                changed = self._run_wave(result, 3, self._set_ground_where_too_far_from_water)
            if changed:
                continue

            if waves >= 4:
                changed = self._run_wave(result, 4, self._spread_partial_certainties)

    def _run_wave(self, result: InferenceResult, number: int, wave) -> bool:
        result.wave_runs[number] += 1
        scope = self.diagnostics.start_child_scope(f"Wave {number}")
        changed = wave(scope)
        scope.stop()
        return changed

    # Helpers

    def _cells(self) -> List[GridCell]:
        return list(self._grid)

    def _required_water_neighbors(self, cell: GridCell) -> int:
        """River ends have one water neighbour, every other river cell two."""
        return 1 if cell.is_on_edge and self.min_edge_distance > 0 else 2

    def _missing_water_neighbors(self, cell: GridCell) -> int:
        found = sum(1 for n in cell.immediate_neighbors(IGNORE) if n.value.is_water_obvious)
        return self._required_water_neighbors(cell) - found

    @staticmethod
    def _resolve(cell: GridCell, terrain: TerrainType, scope: DiagnosticsSink) -> bool:
        if cell.value.set_obvious(terrain):
            scope.add_to_value(WATER_CELLS_FOUND if terrain is TerrainType.WATER else GROUND_CELLS_FOUND)
            return True
        return False

    def fat_edge_neighbors(self, cell: GridCell, band_width: int) -> List[GridCell]:
        """
        The run of band cells perpendicular to the edge, starting at ``cell``.

        Only one cell per edge distance is collected, so the run never turns
        along the edge.
        """
        if cell.edge_distance >= band_width:
            return []

        result = [cell]
        found_new = True
        while found_new:
            found_new = False
            for current in list(result):
                for neighbor in current.immediate_neighbors(IGNORE):
                    if neighbor.edge_distance < band_width and all(
                        r.edge_distance != neighbor.edge_distance for r in result
                    ):
                        result.append(neighbor)
                        found_new = True
        return result

    def fat_edge_neighbors_from_corner(self, corner: GridCell, band_width: int) -> List[GridCell]:
        """Boundary cells closer than ``band_width`` to the corner, plus their band runs."""
        if not corner.is_on_corner:
            return []

        result = [corner]
        seen = {corner.position}
        found_new = True
        while found_new:
            found_new = False
            for current in list(result):
                for neighbor in current.immediate_neighbors(IGNORE):
                    if (
                        neighbor.position.distance_to(corner.position) < band_width
                        and neighbor.position not in seen
                        and neighbor.edge_distance == 0
                    ):
                        result.append(neighbor)
                        seen.add(neighbor.position)
                        found_new = True

        for near_corner in list(result):
            for neighbor in self.fat_edge_neighbors(near_corner, band_width):
                if neighbor.position not in seen:
                    result.append(neighbor)
                    seen.add(neighbor.position)
        return result

    def remaining_water_cells(self, scope: Optional[DiagnosticsSink] = None) -> Tuple[int, int]:
        """
        Estimate of the water cells still to find, as (minimum, maximum).

        Starts from the generator targets, stretches the maximum by the
        distance the known (or still possible) river ends allow, and removes
        the water cells already found.
        """
        maximum = self.constraints.target_water_cells
        minimum = self.constraints.min_water_cells

        if self.min_edge_distance > 0:
            edge_cells = self._grid.get_edge_cells()
            ends = [cell for cell in edge_cells if cell.value.is_water_obvious]
            unknown_edge = [cell for cell in edge_cells if not cell.value.is_obvious]

            distance_between_ends: Optional[int] = None
            if len(ends) == 2:
                distance_between_ends = ends[0].position.distance_to(ends[1].position)
            elif len(ends) == 1 and unknown_edge:
                distance_between_ends = max(c.position.distance_to(ends[0].position) for c in unknown_edge)
            elif not ends and unknown_edge:
                distance_between_ends = max(
                    a.position.distance_to(b.position) for a in unknown_edge for b in unknown_edge
                )

            if distance_between_ends is not None:
                maximum += distance_between_ends - self.constraints.min_endpoint_separation

        found = sum(1 for cell in self._grid if cell.value.is_water_obvious)
        minimum = max(minimum - found, 0)
        maximum = max(maximum - found, 0)

        if scope is not None:
            scope.record_value("Missing water cells (minimum)", minimum)
            scope.record_value("Missing water cells (maximum)", maximum)
        return minimum, maximum

    # Wave 1

    def _manage_edge(self, scope: DiagnosticsSink) -> bool:
        band = self.min_edge_distance
        changed = False

        cells = self._cells()
        band_cells = [cell for cell in cells if cell.edge_distance < band]
        edge_cells = [cell for cell in cells if cell.is_on_edge]

        # Corners can't hold a river end
        for corner in (cell for cell in edge_cells if cell.is_on_corner):
            for near_corner in self.fat_edge_neighbors_from_corner(corner, band):
                if not near_corner.value.is_ground_obvious:
                    changed |= self._resolve(near_corner, TerrainType.GROUND, scope)

        # Known band cells share their terrain with their run; water runs reach one cell past the band
        for cell in band_cells:
            terrain = cell.value.obvious_terrain
            if terrain is None:
                continue
            width = band + 1 if terrain is TerrainType.WATER else band
            for neighbor in self.fat_edge_neighbors(cell, width):
                if neighbor.value.obvious_terrain is not terrain:
                    changed |= self._resolve(neighbor, terrain, scope)

        # Boundary water cells are river ends
        ends = [cell for cell in edge_cells if cell.value.is_water_obvious]
        if len(ends) == 1:
            end = ends[0].position
            separation = self.constraints.min_endpoint_separation
            too_close = [
                cell for cell in edge_cells
                if cell.position != end and cell.position.distance_to(end) < separation
            ]
            changed |= self._set_runs_to_ground(too_close, scope)
        elif len(ends) == 2:
            end_positions = {end.position for end in ends}
            others = [cell for cell in edge_cells if cell.position not in end_positions]
            changed |= self._set_runs_to_ground(others, scope)

        return changed

    def _set_runs_to_ground(self, edge_cells: List[GridCell], scope: DiagnosticsSink) -> bool:
        changed = False
        for edge_cell in edge_cells:
            for neighbor in self.fat_edge_neighbors(edge_cell, self.min_edge_distance):
                if not neighbor.value.is_ground_obvious:
                    changed |= self._resolve(neighbor, TerrainType.GROUND, scope)
        return changed

    # Wave 2

    def _spread_obviousness(self, scope: DiagnosticsSink) -> bool:
        changed = False

        for cell in self._cells():
            neighbors = cell.immediate_neighbors(IGNORE)

            if cell.value.is_obvious:
                if not cell.value.is_water_obvious:
                    continue

                water_count = sum(1 for n in neighbors if n.value.is_water_obvious)
                ground_count = sum(1 for n in neighbors if n.value.is_ground_obvious)

                # 2.1: enough water neighbours, the others are ground
                if water_count == self._required_water_neighbors(cell):
                    for neighbor in neighbors:
                        if not neighbor.value.is_obvious:
                            changed |= self._resolve(neighbor, TerrainType.GROUND, scope)
                # 2.2: two ground neighbours, the others are water
                elif ground_count == 2:
                    for neighbor in neighbors:
                        if not neighbor.value.is_obvious:
                            changed |= self._resolve(neighbor, TerrainType.WATER, scope)
                continue

            terrain = self._deduce_uncertain_cell(cell, neighbors)
            if terrain is not None:
                changed |= self._resolve(cell, terrain, scope)
                continue

            # 2.9: two uncertain cells boxed in so that only a U-turn could cross them
            for neighbor in neighbors:
                if neighbor.value.is_obvious:
                    continue
                if self._is_dead_end_pair(cell, neighbor, neighbors):
                    changed |= self._resolve(cell, TerrainType.GROUND, scope)
                    changed |= self._resolve(neighbor, TerrainType.GROUND, scope)

        return changed

    @staticmethod
    def _deduce_uncertain_cell(cell: GridCell, neighbors: List[GridCell]) -> Optional[TerrainType]:
        """Rules 2.3 to 2.8 for a cell that is not resolved yet."""
        # 2.3: three ground neighbours
        if sum(1 for n in neighbors if n.value.is_ground_obvious) >= 3:
            return TerrainType.GROUND

        # 2.4: three diagonal water neighbours
        if sum(1 for n in cell.diagonal_neighbors(IGNORE) if n.value.is_water_obvious) >= 3:
            return TerrainType.GROUND

        cornered_by_water = cell.diagonal_neighbors_where_shared_immediates(lambda z: z.value.is_water_obvious, IGNORE)
        cornered_by_ground = cell.diagonal_neighbors_where_shared_immediates(lambda z: z.value.is_ground_obvious, IGNORE)

        # 2.5: water on both sides and in the corner
        if any(d.value.is_water_obvious for d in cornered_by_water):
            return TerrainType.GROUND

        # 2.6: ground on both sides, water in the opposite corner
        for diagonal in cornered_by_ground:
            opposite = cell.opposite_neighbor(diagonal, IGNORE)
            if opposite is not None and opposite.value.is_water_obvious:
                return TerrainType.GROUND

        # 2.7: water on both sides, ground in the corner
        if any(d.value.is_ground_obvious for d in cornered_by_water):
            return TerrainType.WATER

        # 2.8: ground on both sides, water in the corner
        if any(d.value.is_water_obvious for d in cornered_by_ground):
            return TerrainType.GROUND

        return None

    @staticmethod
    def _is_dead_end_pair(cell: GridCell, neighbor: GridCell, neighbors: List[GridCell]) -> bool:
        pair = {cell.position, neighbor.position}
        surrounding: List[GridCell] = []
        seen: Set[Position] = set()
        for candidate in neighbors + neighbor.immediate_neighbors(IGNORE):
            if candidate.position in pair or candidate.position in seen:
                continue
            seen.add(candidate.position)
            surrounding.append(candidate)

        uncertain = [c for c in surrounding if not c.value.is_obvious]
        ground = [c for c in surrounding if c.value.is_ground_obvious]
        return (
            len(uncertain) == 2
            and len(ground) == 4
            and uncertain[0].position.distance_to(uncertain[1].position) == 1
        )

    # Wave 3

    def _set_ground_where_too_far_from_water(self, scope: DiagnosticsSink) -> bool:
        changed = False
        _, remaining = self.remaining_water_cells(scope)

        connectable: List[Tuple[GridCell, int]] = []
        for cell in self._cells():
            if cell.value.is_water_obvious or (cell.is_on_edge and not cell.value.is_obvious):
                missing = self._missing_water_neighbors(cell)
                if missing > 0:
                    connectable.append((cell, missing))

        if not connectable:
            return False

        for unknown in [cell for cell in self._cells() if not cell.value.is_obvious]:
            in_range: List[Tuple[GridCell, int, int]] = []
            for cell, missing in connectable:
                distance = cell.position.distance_to(unknown.position)
                if distance > remaining:
                    continue
                if missing == 1 and distance > 1 and self._must_link_diagonally(cell):
                    continue
                in_range.append((cell, missing, distance))

            in_range.sort(key=lambda item: item[2])

            if not in_range:
                changed |= self._resolve(unknown, TerrainType.GROUND, scope)
            elif len(in_range) >= 2 and not self._has_valid_pair(in_range, connectable, remaining):
                changed |= self._resolve(unknown, TerrainType.GROUND, scope)

        return changed

    @staticmethod
    def _must_link_diagonally(cell: GridCell) -> bool:
        """A water diagonal with no water between them forces the cell's last connection."""
        diagonals = cell.diagonal_neighbors_where_shared_immediates(lambda z: not z.value.is_water_obvious, IGNORE)
        return any(d.value.is_water_obvious for d in diagonals)

    @staticmethod
    def _has_valid_pair(
        in_range: List[Tuple[GridCell, int, int]],
        connectable: List[Tuple[GridCell, int]],
        remaining: int,
    ) -> bool:
        """Whether the unknown cell could link two connectable cells and leave enough for the others."""
        for i, (cell1, missing1, distance1) in enumerate(in_range):
            for cell2, missing2, distance2 in in_range[i + 1:]:
                total_distance = distance1 + distance2 - 1
                if total_distance > remaining:
                    break  # sorted by distance
                if cell1.position.distance_to(cell2.position) == 1:
                    continue  # already connected to each other

                pair = {cell1.position, cell2.position}
                others = [missing for cell, missing in connectable if cell.position not in pair]
                to_leave = sum(1 for m in others if m == 2) + math.ceil(
                    (sum(1 for m in others if m == 1) + sum(1 for m in (missing1, missing2) if m == 2)) / 2
                )
                if remaining - total_distance < to_leave:
                    continue

                return True
        return False

    # Wave 4

    def _spread_partial_certainties(self, scope: DiagnosticsSink) -> bool:
        threshold = self.options.path_certainty_threshold
        scope.record_value("Path certainty threshold", threshold)
        changed = False
        _, remaining = self.remaining_water_cells(scope)

        for cell in self._grid:
            if not cell.value.is_obvious and cell.value.has_probability:
                cell.value.reset_probability()

        endpoints = []
        for cell in self._cells():
            if cell.value.is_water_obvious:
                missing = self._missing_water_neighbors(cell)
                if missing != 0:
                    endpoints.append((cell, missing))
        connectable_positions = {cell.position for cell, _ in endpoints}
        exits = [cell.position for cell in self._grid.get_edge_cells() if not cell.value.is_obvious]

        searches = []
        for endpoint, missing in endpoints:
            search_scope = scope.start_child_scope(str(endpoint.position))
            search = PathSearch(endpoint.position, missing)
            self._grow_paths(search, remaining, exits, connectable_positions, search_scope)
            search_scope.record_value("Valid paths", len(search.valid_paths))
            search_scope.record_value("Invalid paths", len(search.invalid_paths))
            search_scope.stop()
            searches.append(search)

        for search in searches:
            for position, total in search.cell_totals().items():
                self._grid[position].add_probability(total / search.missing_neighbors)

        if threshold == 0:
            # Exhaustive search: a cell no valid path crosses is ground
            for cell in self._cells():
                if not cell.value.has_probability:
                    changed |= self._resolve(cell, TerrainType.GROUND, scope)

        return changed

    def _grow_paths(
        self,
        search: PathSearch,
        remaining: int,
        exits: List[Position],
        connectable_positions: Set[Position],
        scope: DiagnosticsSink,
    ):
        band = self.min_edge_distance
        threshold = self.options.path_certainty_threshold

        steps = 0
        while search.to_test and steps < remaining:
            scope.add_to_value("Maximum path distance")

            for index in list(search.to_test):
                path = search[index]
                current = self._grid.get_cell(path.last_position)
                next_cells: List[GridCell] = []

                if len(path.positions) == remaining:
                    search.invalidate(index)
                elif exits and len(path.skipped_exits) == len(exits):
                    search.invalidate(index)  # every exit is behind the path
                elif path.certainty < threshold:
                    search.validate(index, None)
                elif current.is_on_edge and len(path.positions) > 1:
                    search.validate(index, current.position)
                else:
                    next_cells = self._next_path_cells(path, current, connectable_positions)
                    if not next_cells:
                        search.invalidate(index)
                    else:
                        path_ends = [
                            c for c in next_cells if not c.is_on_edge and c.position in connectable_positions
                        ]
                        if path_ends:
                            search.validate(index, path_ends[0].position)

                if path.validity is not PathValidity.UNKNOWN:
                    continue

                if len(next_cells) == 1:
                    path.positions.append(next_cells[0].position)
                else:
                    close_exits = [
                        (position, position.distance_to(current.position))
                        for position in exits
                        if position.distance_to(current.position) <= band + 1
                    ]
                    branches = []
                    for next_cell in next_cells:
                        skipped = {
                            position for position, distance in close_exits
                            if position.distance_to(next_cell.position) > distance
                        }
                        branches.append(search.branch(index, next_cell.position, skipped))
                    search.replace(index, branches)

            steps += 1

    def _next_path_cells(
        self,
        path: CandidatePath,
        current: GridCell,
        connectable_positions: Set[Position],
    ) -> List[GridCell]:
        on_path = set(path.positions)
        result = [n for n in current.immediate_neighbors(IGNORE) if n.position not in on_path]

        # Only unresolved cells or other dangling endpoints
        result = [n for n in result if not n.value.is_obvious or n.position in connectable_positions]

        # Inside the band the path can only move perpendicular to the edge
        if current.edge_distance < self.min_edge_distance:
            result = [n for n in result if n.edge_distance != current.edge_distance]

        # Never next to an older part of the path
        older = set(path.positions[:-2])
        if older:
            result = [
                n for n in result
                if not any(s.position in older for s in n.surrounding_neighbors(IGNORE))
            ]
        return result

    # Finalization

    def _apply_overall_probabilities(self) -> Tuple[int, int]:
        """Spread the remaining water estimate over cells without a probability."""
        scope = self.diagnostics.start_child_scope("Final wave")
        estimate = self.remaining_water_cells(scope)

        cells = self._cells()
        if all(cell.value.has_probability for cell in cells):
            scope.stop()
            return estimate

        minimum, maximum = estimate
        band = self.min_edge_distance

        if band > 0:
            band_cells = [cell for cell in cells if cell.edge_distance < band]
            uncertain_band = [cell for cell in band_cells if not cell.value.is_obvious]
            missing = max(2 * band - sum(1 for cell in band_cells if cell.value.is_water_obvious), 0)

            if uncertain_band:
                band_probability = missing / len(uncertain_band)
                for cell in uncertain_band:
                    if not cell.value.has_probability:
                        cell.value.add_probability(band_probability)

            minimum = max(minimum - missing, 0)
            maximum = max(maximum - missing, 0)

        uncertain_interior = [cell for cell in cells if not cell.value.is_obvious and cell.edge_distance >= band]
        if uncertain_interior:
            general_probability = (minimum + maximum) / 2 / len(uncertain_interior)
            for cell in uncertain_interior:
                if not cell.value.has_probability:
                    cell.value.add_probability(general_probability)

        scope.stop()
        return estimate


def infer_terrain(
    observations: Grid,
    options: Optional[InferenceOptions] = None,
    river_options: Optional[RiverOptions] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> InferenceResult:
    """
    Run the inference engine on an observation grid.

    Args:
        observations: Grid holding a TerrainType for revealed cells and None elsewhere
        options: Inference options (defaults to the settings)
        river_options: Options the river was generated with (defaults to the settings)
        diagnostics: Optional diagnostics sink

    Returns:
        InferenceResult over a fresh belief grid
    """
    constraints = RiverConstraints.for_size(Size(observations.width, observations.height), river_options)
    certainties = certainty_grid_from_observations(observations)
    return TerrainInference(constraints, options, diagnostics).infer(certainties)
