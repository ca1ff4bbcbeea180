"""
Rigid-body transforms for the kinematics engine.

This module provides:
- SO(3) rotations (so3 module)
- SE(3) homogeneous transforms (se3 module)
- RigidTransform, the immutable pose value type exchanged with callers

The array modules are pure, stateless, and JIT-compatible.
"""

from . import so3
from . import se3
from .transform import (
    ORTHONORMAL_TOLERANCE,
    RigidTransform,
    compose,
    from_matrix,
    invert,
    to_matrix,
)

__all__ = [
    "so3",
    "se3",
    "ORTHONORMAL_TOLERANCE",
    "RigidTransform",
    "compose",
    "from_matrix",
    "invert",
    "to_matrix",
]
