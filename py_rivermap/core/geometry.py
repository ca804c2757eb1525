"""
Value types for grid coordinates.

Positions, sizes and bounds are immutable. Bounds may carry a negative size
while they are being built; positify() turns them into the equivalent
positively-sized rectangle.
"""

from enum import Enum
from typing import Iterable, NamedTuple


class OutOfBoundsRule(Enum):
    """How grid accessors treat coordinates outside of the grid."""

    THROW = "throw"  # raise GridIndexError
    IGNORE = "ignore"  # drop the cell from the result
    TREAT_AS_DEFAULT = "treat_as_default"  # placeholder cell holding the grid default


DEFAULT_OUT_OF_BOUNDS_RULE = OutOfBoundsRule.THROW


class Position(NamedTuple):
    """Integer grid coordinate, origin top-left."""

    x: int
    y: int

    def __add__(self, other: "Position") -> "Position":
        return Position(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Position") -> "Position":
        return Position(self.x - other.x, self.y - other.y)

    def flip(self) -> "Position":
        return Position(self.y, self.x)

    def distance_to(self, other: "Position") -> int:
        """Manhattan distance."""
        return abs(self.x - other.x) + abs(self.y - other.y)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


class Size(NamedTuple):
    """Width and height. Either may be negative before normalization."""

    width: int
    height: int

    @property
    def total(self) -> int:
        return abs(self.width * self.height)

    @property
    def is_square(self) -> bool:
        return self.width == self.height

    @property
    def is_width_inverted(self) -> bool:
        return self.width < 0

    @property
    def is_height_inverted(self) -> bool:
        return self.height < 0

    @property
    def is_inverted(self) -> bool:
        return self.is_width_inverted or self.is_height_inverted

    def flip(self) -> "Size":
        return Size(self.height, self.width)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class Bounds(NamedTuple):
    """Rectangle defined by its origin and its size."""

    position: Position = Position(0, 0)
    size: Size = Size(0, 0)

    @classmethod
    def of(cls, x: int, y: int, width: int, height: int) -> "Bounds":
        return cls(Position(x, y), Size(width, height))

    @classmethod
    def from_points(cls, start: Position, end: Position) -> "Bounds":
        """Bounds spanning from start (included) to end (excluded)."""
        return cls(start, Size(end.x - start.x, end.y - start.y))

    @property
    def start_point(self) -> Position:
        return self.position

    @property
    def end_point(self) -> Position:
        """Exclusive corner opposite to the origin."""
        return Position(self.position.x + self.size.width, self.position.y + self.size.height)

    def flip_x(self) -> "Bounds":
        return Bounds(
            Position(self.position.x + self.size.width, self.position.y),
            Size(-self.size.width, self.size.height),
        )

    def flip_y(self) -> "Bounds":
        return Bounds(
            Position(self.position.x, self.position.y + self.size.height),
            Size(self.size.width, -self.size.height),
        )

    def positify(self) -> "Bounds":
        """Equivalent bounds with a positive size and the origin at the top-left."""
        result = self
        if self.size.is_width_inverted:
            result = result.flip_x()
        if self.size.is_height_inverted:
            result = result.flip_y()
        return result

    def contains(self, position: Position) -> bool:
        bounds = self.positify()
        return (
            bounds.position.x <= position.x < bounds.end_point.x
            and bounds.position.y <= position.y < bounds.end_point.y
        )

    def positions(self) -> Iterable[Position]:
        """Every position inside the bounds, x outer and y inner."""
        bounds = self.positify()
        for x in range(bounds.position.x, bounds.end_point.x):
            for y in range(bounds.position.y, bounds.end_point.y):
                yield Position(x, y)

    def __str__(self) -> str:
        return f"{self.position} {self.size}"


def bounds_intersection(bounds1: Bounds, bounds2: Bounds) -> Bounds:
    """
    Largest bounds that fit inside both bounds.

    Disjoint (or merely touching) bounds produce the canonical empty bounds at
    the origin.
    """
    bounds1 = bounds1.positify()
    bounds2 = bounds2.positify()

    result = Bounds.from_points(
        Position(
            max(bounds1.start_point.x, bounds2.start_point.x),
            max(bounds1.start_point.y, bounds2.start_point.y),
        ),
        Position(
            min(bounds1.end_point.x, bounds2.end_point.x),
            min(bounds1.end_point.y, bounds2.end_point.y),
        ),
    )

    if result.size.total == 0 or result.size.is_inverted:
        return Bounds()
    return result


def bounds_union(bounds1: Bounds, bounds2: Bounds) -> Bounds:
    """Smallest bounds containing both bounds."""
    bounds1 = bounds1.positify()
    bounds2 = bounds2.positify()

    return Bounds.from_points(
        Position(
            min(bounds1.start_point.x, bounds2.start_point.x),
            min(bounds1.start_point.y, bounds2.start_point.y),
        ),
        Position(
            max(bounds1.end_point.x, bounds2.end_point.x),
            max(bounds1.end_point.y, bounds2.end_point.y),
        ),
    )


def bounds_from_positions(positions: Iterable[Position]) -> Bounds:
    """Smallest bounds containing every position. Empty input gives empty bounds."""
    positions = list(positions)
    if not positions:
        return Bounds()

    return Bounds.from_points(
        Position(min(p.x for p in positions), min(p.y for p in positions)),
        Position(max(p.x for p in positions) + 1, max(p.y for p in positions) + 1),
    )


def positions_where_bounds_include_submatrix(bounds: Bounds, submatrix_size: Size) -> Iterable[Position]:
    """Every offset at which a submatrix of the given size overlaps the bounds."""
    bounds = bounds.positify()
    for x in range(bounds.position.x - submatrix_size.width + 1, bounds.end_point.x):
        for y in range(bounds.position.y - submatrix_size.height + 1, bounds.end_point.y):
            yield Position(x, y)
