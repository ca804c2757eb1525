"""
Core river map functionality.
"""

from .errors import (
    RiverMapError,
    GridIndexError,
    ConfigurationError,
    PathGenerationFailure,
    RiverGenerationError,
    InferenceInconsistency,
)
from .geometry import Position, Size, Bounds, OutOfBoundsRule, bounds_union, bounds_intersection, bounds_from_positions
from .grid import Grid, Submatrix, GridCell
from .terrain import (
    TerrainType,
    TerrainCertainty,
    reveal,
    certainty_grid_from_observations,
    certainty_grid_from_truth,
)
from .diagnostics import Diagnostics, DiagnosticsSink, NullDiagnostics
from .river_generator import (
    RiverOptions,
    RiverConstraints,
    RiverGenerator,
    RiverMap,
    PathDecision,
    PathStrategy,
    create_river_map,
)
from .river_inference import (
    InferenceOptions,
    InferenceResult,
    TerrainInference,
    CandidatePath,
    PathSearch,
    PathValidity,
    infer_terrain,
)

__all__ = ['RiverMapError', 'GridIndexError', 'ConfigurationError', 'PathGenerationFailure',
           'RiverGenerationError', 'InferenceInconsistency',
           'Position', 'Size', 'Bounds', 'OutOfBoundsRule', 'bounds_union', 'bounds_intersection',
           'bounds_from_positions', 'Grid', 'Submatrix', 'GridCell',
           'TerrainType', 'TerrainCertainty', 'reveal', 'certainty_grid_from_observations',
           'certainty_grid_from_truth', 'Diagnostics', 'DiagnosticsSink', 'NullDiagnostics',
           'RiverOptions', 'RiverConstraints', 'RiverGenerator', 'RiverMap', 'PathDecision',
           'PathStrategy', 'create_river_map',
           'InferenceOptions', 'InferenceResult', 'TerrainInference', 'CandidatePath', 'PathSearch',
           'PathValidity', 'infer_terrain']
