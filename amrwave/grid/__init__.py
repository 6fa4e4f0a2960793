"""
Adaptive mesh module.

This module provides:
- A quadtree/octree forest over a periodic box with 2:1 balance
- Refinement/coarsening flags and topology changes
- Transfer of cell-average solutions across topology changes
"""

from .forest import (
    AdaptiveMesh,
    MeshAdaptationError,
    TopologyChange,
    parent_of,
    children_of,
)

from .transfer import SolutionTransfer

__all__ = [
    # Forest
    'AdaptiveMesh',
    'MeshAdaptationError',
    'TopologyChange',
    'parent_of',
    'children_of',
    # Transfer
    'SolutionTransfer',
]
