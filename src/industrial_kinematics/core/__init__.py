"""Core robot model data structures.

This module provides the immutable, JAX-native representation of a robot's
kinematic chain.
"""

from .chain_model import NUM_JOINTS, JointSpec, KinematicChain

__all__ = ["NUM_JOINTS", "JointSpec", "KinematicChain"]
