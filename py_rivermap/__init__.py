"""
Procedural river maps and fog-of-war terrain inference.
"""

from .core import (
    Grid,
    InferenceOptions,
    Position,
    RiverOptions,
    TerrainType,
    create_river_map,
    infer_terrain,
    reveal,
)

__version__ = "0.1.0"

__all__ = ['Grid', 'InferenceOptions', 'Position', 'RiverOptions', 'TerrainType',
           'create_river_map', 'infer_terrain', 'reveal', '__version__']
