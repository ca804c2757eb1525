"""
Generic 2D grid used by the river generator and the inference engine.

Cells are addressed as grid[x, y] (or grid[Position]), 0-indexed from the
top-left corner. Storage is a NumPy object array of shape (width, height), so
any Python value can be stored and rotations/flips stay vectorized.

Every accessor that can reach outside of the grid takes an explicit
OutOfBoundsRule:

- THROW raises GridIndexError
- IGNORE leaves the cell out of the result
- TREAT_AS_DEFAULT returns a placeholder cell holding the grid default
"""

import weakref
from typing import Any, Callable, Generic, Iterator, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

from .errors import GridIndexError
from .geometry import (
    DEFAULT_OUT_OF_BOUNDS_RULE,
    Bounds,
    OutOfBoundsRule,
    Position,
    Size,
    bounds_intersection,
    bounds_union,
)

T = TypeVar("T")
T2 = TypeVar("T2")

CellPair = Tuple[Optional["GridCell"], Optional["GridCell"]]


class Grid(Generic[T]):
    """
    Owned, resizable 2D container.

    Args:
        width: Number of columns
        height: Number of rows
        fill: Initial value of every cell (defaults to the grid default)
        factory: Optional callable building the initial value from a Position
        default: Value used for new cells and TREAT_AS_DEFAULT placeholders
        default_factory: Zero-argument callable used instead of ``default``
            when every new cell needs its own instance
    """

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        fill: Optional[T] = None,
        factory: Optional[Callable[[Position], T]] = None,
        default: Optional[T] = None,
        default_factory: Optional[Callable[[], T]] = None,
    ):
        if width < 0 or height < 0:
            raise ValueError(f"Cannot create a grid of negative size {width}x{height}")

        self.default = default
        self.default_factory = default_factory
        self._cells = self._blank(width, height)

        if factory is not None:
            for x in range(width):
                for y in range(height):
                    self._cells[x, y] = factory(Position(x, y))
        elif fill is not None:
            for x in range(width):
                for y in range(height):
                    self._cells[x, y] = fill

    # Construction helpers

    @classmethod
    def from_array(cls, array: np.ndarray, **kwargs) -> "Grid":
        """Wrap a copy of an array indexed [x, y]."""
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2D array, got {array.ndim} dimensions")
        grid = cls(0, 0, **kwargs)
        grid._cells = np.empty(array.shape, dtype=object)
        grid._cells[:, :] = array
        return grid

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Any]], **kwargs) -> "Grid":
        """Build a grid from rows as they read on screen (rows[y][x])."""
        height = len(rows)
        width = len(rows[0]) if height else 0
        if any(len(row) != width for row in rows):
            raise ValueError("Every row must have the same length")
        grid = cls(width, height, **kwargs)
        for y, row in enumerate(rows):
            for x, value in enumerate(row):
                grid._cells[x, y] = value
        return grid

    @classmethod
    def from_row(cls, row: Sequence[Any], **kwargs) -> "Grid":
        return cls.from_rows([row], **kwargs)

    @classmethod
    def from_column(cls, column: Sequence[Any], **kwargs) -> "Grid":
        return cls.from_rows([[value] for value in column], **kwargs)

    def _new_default(self):
        if self.default_factory is not None:
            return self.default_factory()
        return self.default

    def _blank(self, width: int, height: int) -> np.ndarray:
        cells = np.empty((width, height), dtype=object)
        if self.default_factory is not None:
            for x in range(width):
                for y in range(height):
                    cells[x, y] = self.default_factory()
        elif self.default is not None:
            for x in range(width):
                for y in range(height):
                    cells[x, y] = self.default
        return cells

    def _like(self, cells: np.ndarray, grid_class=None) -> "Grid":
        """New grid sharing this grid's defaults, wrapping the given storage."""
        grid_class = grid_class or Grid
        result = grid_class.__new__(grid_class)
        result.default = self.default
        result.default_factory = self.default_factory
        result._cells = cells
        return result

    # Basic accessors

    @property
    def width(self) -> int:
        return self._cells.shape[0]

    @property
    def height(self) -> int:
        return self._cells.shape[1]

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    @property
    def position(self) -> Position:
        """Offset of this grid relative to a parent grid. Always (0, 0) for a plain grid."""
        return Position(0, 0)

    @property
    def bounds(self) -> Bounds:
        """This grid's own rectangle in its own coordinates."""
        return Bounds(Position(0, 0), self.size)

    def is_out_of_bounds(self, position: Position) -> bool:
        x, y = position
        return x < 0 or x >= self.width or y < 0 or y >= self.height

    def _check(self, position) -> Position:
        position = Position(*position)
        if self.is_out_of_bounds(position):
            raise GridIndexError(position, self.size)
        return position

    def __getitem__(self, position) -> T:
        x, y = self._check(position)
        return self._cells[x, y]

    def __setitem__(self, position, value: T):
        x, y = self._check(position)
        self._cells[x, y] = value

    def __iter__(self) -> Iterator["GridCell[T]"]:
        """Every cell, column by column (x outer, y inner)."""
        for x in range(self.width):
            for y in range(self.height):
                yield GridCell(self, Position(x, y), self._cells[x, y])

    def __eq__(self, other) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        if self.size != other.size:
            return False
        return all(
            self._cells[x, y] == other._cells[x, y]
            for x in range(self.width)
            for y in range(self.height)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(size={self.size}, position={self.position})"

    # Cell getters

    def get_cell(self, position, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> Optional["GridCell[T]"]:
        position = Position(*position)
        if self.is_out_of_bounds(position):
            if rule is OutOfBoundsRule.IGNORE:
                return None
            if rule is OutOfBoundsRule.TREAT_AS_DEFAULT:
                return GridCell(self, position, self._new_default())
            raise GridIndexError(position, self.size)
        return GridCell(self, position, self._cells[position.x, position.y])

    def get_cells(self, predicate: Optional[Callable[["GridCell[T]"], bool]] = None) -> List["GridCell[T]"]:
        if predicate is None:
            return list(self)
        return [cell for cell in self if predicate(cell)]

    def get_edge_cells(self) -> List["GridCell[T]"]:
        return self.get_cells(lambda cell: cell.is_on_edge)

    def get_corner_cells(self) -> List["GridCell[T]"]:
        return self.get_cells(lambda cell: cell.is_on_corner)

    def get_column(self, x: int, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> List["GridCell[T]"]:
        if rule is OutOfBoundsRule.IGNORE and self.is_out_of_bounds(Position(x, 0)):
            return []
        return [self.get_cell(Position(x, y), rule) for y in range(self.height)]

    def get_row(self, y: int, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> List["GridCell[T]"]:
        if rule is OutOfBoundsRule.IGNORE and self.is_out_of_bounds(Position(0, y)):
            return []
        return [self.get_cell(Position(x, y), rule) for x in range(self.width)]

    def get_cell_as_submatrix(self, position, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> "Submatrix[T]":
        return self.get_submatrix(Bounds(Position(*position), Size(1, 1)), rule)

    def get_column_as_submatrix(self, x: int, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> "Submatrix[T]":
        return self.get_submatrix(Bounds.of(x, 0, 1, self.height), rule)

    def get_row_as_submatrix(self, y: int, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> "Submatrix[T]":
        return self.get_submatrix(Bounds.of(0, y, self.width, 1), rule)

    # Edge geometry

    def is_on_edge(self, position: Position) -> bool:
        x, y = position
        return x == 0 or x == self.width - 1 or y == 0 or y == self.height - 1

    def is_on_corner(self, position: Position) -> bool:
        x, y = position
        return (x == 0 or x == self.width - 1) and (y == 0 or y == self.height - 1)

    def edge_distance(self, position: Position) -> int:
        """Number of steps to the closest boundary cell. 0 on the edge."""
        x, y = position
        return min(abs(x), abs(self.width - 1 - x), abs(y), abs(self.height - 1 - y))

    # Size manipulation

    def add_columns(self, index: Optional[int] = None, count: int = 1):
        """Insert blank columns before ``index`` (default: append on the right)."""
        index = self.width if index is None else index
        if count < 0:
            raise ValueError("Cannot add a negative amount of columns.")
        cells = self._blank(self.width + count, self.height)
        cells[:index, :] = self._cells[:index, :]
        cells[index + count:, :] = self._cells[index:, :]
        self._cells = cells

    def add_rows(self, index: Optional[int] = None, count: int = 1):
        """Insert blank rows before ``index`` (default: append at the bottom)."""
        index = self.height if index is None else index
        if count < 0:
            raise ValueError("Cannot add a negative amount of rows.")
        cells = self._blank(self.width, self.height + count)
        cells[:, :index] = self._cells[:, :index]
        cells[:, index + count:] = self._cells[:, index:]
        self._cells = cells

    def remove_columns(self, index: int, count: int = 1):
        if count < 0:
            raise ValueError("Cannot remove a negative amount of columns.")
        self._cells = np.delete(self._cells, np.s_[index:index + count], axis=0)

    def remove_rows(self, index: int, count: int = 1):
        if count < 0:
            raise ValueError("Cannot remove a negative amount of rows.")
        self._cells = np.delete(self._cells, np.s_[index:index + count], axis=1)

    def clear_columns(self, index: int, count: int = 1):
        """Reset columns to the default value without changing the size."""
        if count < 0:
            raise ValueError("Cannot clear a negative amount of columns.")
        self.set_submatrix(Position(index, 0), self._like(self._blank(count, self.height)), OutOfBoundsRule.IGNORE)

    def clear_rows(self, index: int, count: int = 1):
        if count < 0:
            raise ValueError("Cannot clear a negative amount of rows.")
        self.set_submatrix(Position(0, index), self._like(self._blank(self.width, count)), OutOfBoundsRule.IGNORE)

    def set_column(self, x: int, column: Sequence[T], rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE):
        self.set_submatrix(Position(x, 0), Grid.from_column(column), rule)

    def set_row(self, y: int, row: Sequence[T], rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE):
        self.set_submatrix(Position(0, y), Grid.from_row(row), rule)

    def append_column(self, column: Sequence[T], rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE):
        self.add_columns()
        self.set_column(self.width - 1, column, rule)

    def append_row(self, row: Sequence[T], rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE):
        self.add_rows()
        self.set_row(self.height - 1, row, rule)

    def insert_column(self, index: int, column: Sequence[T], rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE):
        self.add_columns(index, 1)
        self.set_column(index, column, rule)

    def insert_row(self, index: int, row: Sequence[T], rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE):
        self.add_rows(index, 1)
        self.set_row(index, row, rule)

    # Submatrix tools

    def get_submatrix(self, bounds: Bounds, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> "Submatrix[T]":
        """Copy a rectangular section of the grid. The result remembers its offset."""
        bounds = bounds.positify()

        if rule is OutOfBoundsRule.IGNORE:
            bounds = bounds_intersection(bounds, self.bounds)

        if bounds.size.total == 0:
            return Submatrix(Bounds(), default=self.default, default_factory=self.default_factory)

        result = Submatrix(bounds, default=self.default, default_factory=self.default_factory)
        if bounds_intersection(bounds, self.bounds) == bounds:
            (x0, y0), (x1, y1) = bounds.start_point, bounds.end_point
            result._cells[:, :] = self._cells[x0:x1, y0:y1]
            return result

        for x in range(result.width):
            for y in range(result.height):
                master = Position(x, y) + bounds.position
                if rule is OutOfBoundsRule.TREAT_AS_DEFAULT and self.is_out_of_bounds(master):
                    result._cells[x, y] = self._new_default()
                else:
                    result._cells[x, y] = self[master]
        return result

    def set_submatrix(self, position: Position, submatrix: "Grid", rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE):
        """
        Copy the submatrix values into this grid at the given offset.

        IGNORE drops values that fall outside of this grid. TREAT_AS_DEFAULT
        grows this grid to the union of both rectangles; cells of the grown
        area that the submatrix does not cover receive the default value.
        """
        this_position = Position(0, 0)
        sub_position = Position(*position)

        if rule is OutOfBoundsRule.TREAT_AS_DEFAULT:
            union = bounds_union(self.bounds, Bounds(sub_position, submatrix.size))
            if union.size != self.size:
                this_position = this_position - union.position
                sub_position = sub_position - union.position

                cells = self._blank(union.size.width, union.size.height)
                cells[this_position.x:this_position.x + self.width, this_position.y:this_position.y + self.height] = self._cells
                self._cells = cells

        targets = [
            (sub_x, sub_y, Position(sub_x + sub_position.x, sub_y + sub_position.y))
            for sub_x in range(submatrix.width)
            for sub_y in range(submatrix.height)
        ]
        if rule is OutOfBoundsRule.THROW:
            # Check everything before writing so a failure leaves the grid untouched
            for _, _, target in targets:
                self._check(target)

        for sub_x, sub_y, target in targets:
            if rule is OutOfBoundsRule.IGNORE and self.is_out_of_bounds(target):
                continue
            self[target] = submatrix._cells[sub_x, sub_y]

    def match_cells(self, working_bounds: Bounds, sub_position: Position, submatrix: "Grid[T2]") -> Iterator[CellPair]:
        """
        Align a submatrix with this grid and pair up their cells.

        Positions are expressed in this grid's coordinates; the submatrix sits
        at ``sub_position``. Coordinates where neither grid has a cell are
        skipped, otherwise the missing side of the pair is None.
        """
        for position in working_bounds.positions():
            this_cell = self.get_cell(position, OutOfBoundsRule.IGNORE)
            sub_cell = submatrix.get_cell(position - sub_position, OutOfBoundsRule.IGNORE)
            if this_cell is not None or sub_cell is not None:
                yield this_cell, sub_cell

    def match_cells_intersection(self, sub_position: Position, submatrix: "Grid[T2]") -> List[CellPair]:
        """Pairs where both grids have a cell."""
        working_bounds = bounds_intersection(self.bounds, Bounds(sub_position, submatrix.size))
        if working_bounds.size.total == 0:
            return []
        return list(self.match_cells(working_bounds, sub_position, submatrix))

    def match_cells_union(self, sub_position: Position, submatrix: "Grid[T2]") -> List[CellPair]:
        """Pairs where at least one grid has a cell."""
        working_bounds = bounds_union(self.bounds, Bounds(sub_position, submatrix.size))
        return list(self.match_cells(working_bounds, sub_position, submatrix))

    def match_cells_only_this(self, sub_position: Position, submatrix: "Grid[T2]") -> List[CellPair]:
        """Pairs for every cell of this grid."""
        return list(self.match_cells(self.bounds, sub_position, submatrix))

    def match_cells_only_submatrix(self, sub_position: Position, submatrix: "Grid[T2]") -> List[CellPair]:
        """Pairs for every cell of the submatrix, the typical template query."""
        return list(self.match_cells(Bounds(sub_position, submatrix.size), sub_position, submatrix))

    def includes_at_least_partially(self, bounds: Bounds) -> bool:
        return bounds_intersection(self.bounds, bounds).size.total > 0

    def includes_completely(self, bounds: Bounds) -> bool:
        return (
            self.includes_at_least_partially(bounds)
            and bounds_union(self.bounds, bounds).size.total == self.size.total
        )

    # Transformations

    def duplicate(self) -> "Grid[T]":
        """Shallow copy with the same values."""
        return self._like(self._cells.copy())

    def rotate_90_clockwise(self, times: int = 1) -> "Grid[T]":
        """New grid rotated clockwise. Four rotations give the original grid back."""
        if times < 0:
            raise ValueError("Cannot rotate a negative amount of times.")
        # Storage is indexed [x, y] with y pointing down, so a positive
        # np.rot90 turn is a clockwise turn on screen.
        return self._like(np.rot90(self._cells, k=times % 4).copy())

    def flip_x(self) -> "Grid[T]":
        return self._like(self._cells[::-1, :].copy())

    def flip_y(self) -> "Grid[T]":
        return self._like(self._cells[:, ::-1].copy())

    def map(self, function: Callable[[T], T2], default: Optional[T2] = None) -> "Grid[T2]":
        """New grid holding function(value) for each cell."""
        result = Grid(self.width, self.height, default=default)
        for x in range(self.width):
            for y in range(self.height):
                result._cells[x, y] = function(self._cells[x, y])
        return result

    def to_numpy(self, dtype=None) -> np.ndarray:
        """Copy of the values as an array indexed [x, y]."""
        if dtype is None:
            return self._cells.copy()
        return self._cells.astype(dtype)

    def to_console_string(self, displayer: Optional[Callable[["GridCell[T]"], str]] = None, separator: str = "") -> str:
        """Text preview, one line per row."""
        lines = []
        for y in range(self.height):
            texts = []
            for x in range(self.width):
                cell = self.get_cell(Position(x, y), OutOfBoundsRule.TREAT_AS_DEFAULT)
                texts.append(displayer(cell) if displayer is not None else str(cell.value))
            lines.append(separator.join(texts))
        return "\n".join(lines)


class Submatrix(Grid[T]):
    """
    Grid remembering the offset it was extracted from (or will be matched at).

    It owns its storage; the parent grid is never referenced.
    """

    def __init__(self, bounds: Bounds = Bounds(), **kwargs):
        bounds = bounds.positify()
        super().__init__(bounds.size.width, bounds.size.height, **kwargs)
        self._position = bounds.position

    @property
    def position(self) -> Position:
        return self._position

    @position.setter
    def position(self, value: Position):
        self._position = Position(*value)

    @property
    def placement(self) -> Bounds:
        """Rectangle covered in the parent grid's coordinates."""
        return Bounds(self._position, self.size)

    def _like(self, cells: np.ndarray, grid_class=None) -> "Grid":
        result = super()._like(cells, grid_class or Submatrix)
        if isinstance(result, Submatrix):
            result._position = self._position
        return result


class GridCell(Generic[T]):
    """
    A position and its value, computed on demand from a grid.

    The cell only keeps a weak reference to its grid, for neighbour lookups.
    Holding cells never keeps a grid alive.
    """

    __slots__ = ("position", "value", "_grid_ref")

    def __init__(self, grid: Grid[T], position: Position, value: T):
        self._grid_ref = weakref.ref(grid)
        self.position = position
        self.value = value

    @property
    def grid(self) -> Grid[T]:
        grid = self._grid_ref()
        if grid is None:
            raise ReferenceError("The grid this cell was read from no longer exists")
        return grid

    @property
    def master_position(self) -> Position:
        """Position relative to the parent grid when read from a Submatrix."""
        return self.grid.position + self.position

    def __eq__(self, other) -> bool:
        if not isinstance(other, GridCell):
            return NotImplemented
        return (
            self._grid_ref() is other._grid_ref()
            and self.position == other.position
            and self.value == other.value
        )

    def __hash__(self) -> int:
        return hash((id(self._grid_ref()), self.position))

    def __repr__(self) -> str:
        return f"GridCell({self.position}, {self.value!r})"

    # Neighbour positions

    @property
    def top_position(self) -> Position:
        return Position(self.position.x, self.position.y - 1)

    @property
    def bottom_position(self) -> Position:
        return Position(self.position.x, self.position.y + 1)

    @property
    def left_position(self) -> Position:
        return Position(self.position.x - 1, self.position.y)

    @property
    def right_position(self) -> Position:
        return Position(self.position.x + 1, self.position.y)

    @property
    def top_left_position(self) -> Position:
        return Position(self.position.x - 1, self.position.y - 1)

    @property
    def top_right_position(self) -> Position:
        return Position(self.position.x + 1, self.position.y - 1)

    @property
    def bottom_left_position(self) -> Position:
        return Position(self.position.x - 1, self.position.y + 1)

    @property
    def bottom_right_position(self) -> Position:
        return Position(self.position.x + 1, self.position.y + 1)

    def _cells_at(self, positions: Sequence[Position], rule: OutOfBoundsRule) -> List["GridCell[T]"]:
        grid = self.grid
        cells = (grid.get_cell(position, rule) for position in positions)
        return [cell for cell in cells if cell is not None]

    def immediate_neighbors(self, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> List["GridCell[T]"]:
        """Top, left, right and bottom neighbours."""
        return self._cells_at(
            [self.top_position, self.left_position, self.right_position, self.bottom_position], rule
        )

    def diagonal_neighbors(self, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> List["GridCell[T]"]:
        return self._cells_at(
            [self.top_left_position, self.top_right_position, self.bottom_left_position, self.bottom_right_position],
            rule,
        )

    def surrounding_neighbors(self, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> List["GridCell[T]"]:
        """Up to 8 cells around this one."""
        return self._cells_at(
            [
                self.top_left_position,
                self.top_position,
                self.top_right_position,
                self.left_position,
                self.right_position,
                self.bottom_left_position,
                self.bottom_position,
                self.bottom_right_position,
            ],
            rule,
        )

    def diagonal_neighbors_where_shared_immediates(
        self,
        predicate: Callable[["GridCell[T]"], bool],
        rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE,
    ) -> List["GridCell[T]"]:
        """
        Diagonal neighbours whose immediate neighbours shared with this cell
        all satisfy the predicate.
        """
        own = {cell.position for cell in self.immediate_neighbors(rule)}
        result = []
        for diagonal in self.diagonal_neighbors(rule):
            shared = [cell for cell in diagonal.immediate_neighbors(OutOfBoundsRule.IGNORE) if cell.position in own]
            if all(predicate(cell) for cell in shared):
                result.append(diagonal)
        return result

    def opposite_neighbor(self, neighbor: "GridCell", rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> Optional["GridCell[T]"]:
        """Neighbour on the other side of this cell, or None if ``neighbor`` is not adjacent."""
        offset = neighbor.position - self.position
        if offset == (0, 0) or abs(offset.x) > 1 or abs(offset.y) > 1:
            return None
        return self.grid.get_cell(self.position - offset, rule)

    def square_neighborhood(self, distance: int, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> Submatrix:
        """Square of side 2 * distance + 1 centred on this cell."""
        side = distance * 2 + 1
        return self.grid.get_submatrix(
            Bounds.of(self.position.x - distance, self.position.y - distance, side, side), rule
        )

    def neighborhood_3x3(self, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> Submatrix:
        return self.square_neighborhood(1, rule)

    def column(self, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> List["GridCell[T]"]:
        return self.grid.get_column(self.position.x, rule)

    def row(self, rule: OutOfBoundsRule = DEFAULT_OUT_OF_BOUNDS_RULE) -> List["GridCell[T]"]:
        return self.grid.get_row(self.position.y, rule)

    @property
    def is_on_edge(self) -> bool:
        return self.grid.is_on_edge(self.position)

    @property
    def is_on_corner(self) -> bool:
        return self.grid.is_on_corner(self.position)

    @property
    def edge_distance(self) -> int:
        return self.grid.edge_distance(self.position)
