"""
Industrial Kinematics: forward/inverse kinematics and link meshes for 6-axis
industrial robot arms.

Rigid transforms, chain evaluation and the damped least-squares IK solver are
written with JAX and JIT-compiled; robot models are immutable PyTrees shared
freely between threads.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import transforms
from . import core
from . import io
from .chain import PoseSet, forward_all, forward_end, home_pose, jacobian
from .core import JointSpec, KinematicChain
from .errors import (
    InvalidJointCount,
    InvalidTransform,
    KinematicsError,
    NoSolutionFound,
    UnknownRobotVariant,
    UnreachablePose,
)
from .ik import IKResult, IKSolver, SolverConfig, inverse
from .mesh import LinkMesh, link_meshes
from .robot import Robot
from .robots import RobotVariant, get_chain
from .transforms import RigidTransform

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "IKResult",
    "IKSolver",
    "InvalidJointCount",
    "InvalidTransform",
    "JointSpec",
    "KinematicChain",
    "KinematicsError",
    "LinkMesh",
    "NoSolutionFound",
    "PoseSet",
    "RigidTransform",
    "Robot",
    "RobotVariant",
    "SolverConfig",
    "UnknownRobotVariant",
    "UnreachablePose",
    "forward_all",
    "forward_end",
    "get_chain",
    "home_pose",
    "inverse",
    "jacobian",
    "link_meshes",
]
