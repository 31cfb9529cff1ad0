"""
Spatial module: octree index with per-node centers of mass.
"""

from .com import CenterOfMass
from .octree import (
    COINCIDENT_POLICIES,
    DEFAULT_MAX_DEPTH,
    Branch,
    Empty,
    Leaf,
    Octree,
    octant_index,
)

__all__ = [
    "CenterOfMass",
    "Octree",
    "Empty",
    "Leaf",
    "Branch",
    "octant_index",
    "COINCIDENT_POLICIES",
    "DEFAULT_MAX_DEPTH",
]
